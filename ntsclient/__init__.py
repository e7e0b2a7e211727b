"""Network Time Security client: NTS key establishment over TLS, AEAD ciphers, NTS extension fields and SNTP polling."""

__version__ = "0.1.0"