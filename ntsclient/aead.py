"""AEAD algorithms used by NTS: AES-SIV-CMAC (RFC 5297) and AES-GCM-SIV (RFC 8452)."""

from __future__ import annotations

import hmac
import struct
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import IntEnum

from cryptography.hazmat.primitives.cipher import Cipher, algorithms, modes
from cryptography.hazmat.primitives.cmac import CMAC

_BLOCK = 16


class AEADAlgorithm(IntEnum):
    """AEAD algorithm identifiers as registered for NTS."""

    AES_SIV_CMAC_256 = 15
    AES_SIV_CMAC_384 = 16
    AES_SIV_CMAC_512 = 17
    AES_128_GCM_SIV = 30
    AES_256_GCM_SIV = 31


@dataclass(frozen=True)
class AEADParam:
    """Runtime properties of an AEAD algorithm."""

    aead_id: AEADAlgorithm
    key_size: int
    block_size: int
    nonce_size: int
    tag_first: bool
    nonce_is_iv: bool
    cipher_name: str


class AEADError(Exception):
    """Raised when encryption or authenticated decryption fails."""


_SUPPORTED = {
    param.aead_id: param
    for param in (
        AEADParam(AEADAlgorithm.AES_SIV_CMAC_256, 256 // 8, 16, 16, True, False, "AES-128-SIV"),
        AEADParam(AEADAlgorithm.AES_SIV_CMAC_512, 512 // 8, 16, 16, True, False, "AES-256-SIV"),
        AEADParam(AEADAlgorithm.AES_SIV_CMAC_384, 384 // 8, 16, 16, True, False, "AES-192-SIV"),
        AEADParam(AEADAlgorithm.AES_128_GCM_SIV, 128 // 8, 16, 12, False, True, "AES-128-GCM-SIV"),
        AEADParam(AEADAlgorithm.AES_256_GCM_SIV, 256 // 8, 16, 12, False, True, "AES-256-GCM-SIV"),
    )
}


def get_param(aead_id: int) -> AEADParam | None:
    """Return the parameters of a supported algorithm, or None."""
    return _SUPPORTED.get(aead_id)


def _blocks(data: bytes) -> Iterator[bytes]:
    for offset in range(0, len(data), _BLOCK):
        yield data[offset:offset + _BLOCK]


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def _aes_ecb(key: bytes, data: bytes) -> bytes:
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def _split_key(key: bytes, param: AEADParam) -> bytes:
    key = bytes(key)
    if len(key) < param.key_size:
        raise AEADError(f"{param.cipher_name} needs a key of {param.key_size} bytes")
    return key[:param.key_size]


# --- AES-SIV-CMAC -----------------------------------------------------------

def _dbl(block: bytes) -> bytes:
    value = int.from_bytes(block, "big") << 1
    if value >> 128:
        value ^= 0x87
    return (value & ((1 << 128) - 1)).to_bytes(_BLOCK, "big")


def _cmac(key: bytes, data: bytes) -> bytes:
    mac = CMAC(algorithms.AES(key))
    mac.update(data)
    return mac.finalize()


def _s2v(key: bytes, components: Sequence[bytes], last: bytes) -> bytes:
    digest = _cmac(key, bytes(_BLOCK))
    for component in components:
        digest = _xor(_dbl(digest), _cmac(key, component))
    if len(last) >= _BLOCK:
        head, tail = last[:-_BLOCK], last[-_BLOCK:]
        final = head + _xor(tail, digest)
    else:
        padded = last + b"\x80" + bytes(_BLOCK - 1 - len(last))
        final = _xor(_dbl(digest), padded)
    return _cmac(key, final)


def _siv_ctr(key: bytes, iv: bytes, data: bytes) -> bytes:
    counter = int.from_bytes(iv, "big") & ~((1 << 63) | (1 << 31))
    cipher = Cipher(algorithms.AES(key), modes.CTR(counter.to_bytes(_BLOCK, "big")))
    encryptor = cipher.encryptor()
    return encryptor.update(data) + encryptor.finalize()


def _siv_encrypt(key: bytes, plaintext: bytes, associated_data: Sequence[bytes]) -> bytes:
    half = len(key) // 2
    mac_key, ctr_key = key[:half], key[half:]
    iv = _s2v(mac_key, associated_data, plaintext)
    return iv + _siv_ctr(ctr_key, iv, plaintext)


def _siv_decrypt(key: bytes, ciphertext: bytes, associated_data: Sequence[bytes]) -> bytes:
    half = len(key) // 2
    mac_key, ctr_key = key[:half], key[half:]
    iv, body = ciphertext[:_BLOCK], ciphertext[_BLOCK:]
    plaintext = _siv_ctr(ctr_key, iv, body)
    if not hmac.compare_digest(iv, _s2v(mac_key, associated_data, plaintext)):
        raise AEADError("authentication failed")
    return plaintext


# --- AES-GCM-SIV ------------------------------------------------------------

_POLYVAL_MODULUS = (1 << 128) | (1 << 127) | (1 << 126) | (1 << 121) | 1


def _dot(a: int, b: int) -> int:
    product = 0
    while b:
        if b & 1:
            product ^= a
        a <<= 1
        b >>= 1
    for _ in range(128):
        if product & 1:
            product ^= _POLYVAL_MODULUS
        product >>= 1
    return product


def _pad16(data: bytes) -> bytes:
    return data + bytes(-len(data) % _BLOCK)


def _polyval(hash_key: bytes, data: bytes) -> bytes:
    h = int.from_bytes(hash_key, "little")
    state = 0
    for block in _blocks(data):
        state = _dot(state ^ int.from_bytes(block, "little"), h)
    return state.to_bytes(_BLOCK, "little")


def _gcm_siv_keys(key: bytes, nonce: bytes) -> tuple[bytes, bytes]:
    count = 4 if len(key) == 16 else 6
    blocks = b"".join(struct.pack("<I", i) + nonce for i in range(count))
    derived = b"".join(block[:8] for block in _blocks(_aes_ecb(key, blocks)))
    return derived[:16], derived[16:]


def _gcm_siv_tag(auth_key: bytes, enc_key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> bytes:
    lengths = struct.pack("<QQ", len(aad) * 8, len(plaintext) * 8)
    digest = bytearray(_polyval(auth_key, _pad16(aad) + _pad16(plaintext) + lengths))
    digest[:12] = _xor(digest[:12], nonce)
    digest[15] &= 0x7F
    return _aes_ecb(enc_key, bytes(digest))


def _gcm_siv_ctr(enc_key: bytes, tag: bytes, data: bytes) -> bytes:
    if not data:
        return b""
    start = bytearray(tag)
    start[15] |= 0x80
    counter = int.from_bytes(start[:4], "little")
    rest = bytes(start[4:])
    count = -(-len(data) // _BLOCK)
    counters = b"".join(
        ((counter + i) & 0xFFFFFFFF).to_bytes(4, "little") + rest for i in range(count)
    )
    return _xor(data, _aes_ecb(enc_key, counters))


def _gcm_siv_split(associated_data: Sequence[bytes], param: AEADParam) -> tuple[bytes, bytes]:
    if not associated_data:
        raise AEADError(f"{param.cipher_name} needs a nonce")
    *aad_parts, nonce = (bytes(item) for item in associated_data)
    if len(nonce) != param.nonce_size:
        raise AEADError(f"{param.cipher_name} needs a nonce of {param.nonce_size} bytes")
    return b"".join(aad_parts), nonce


def _gcm_siv_encrypt(key: bytes, plaintext: bytes, associated_data: Sequence[bytes], param: AEADParam) -> bytes:
    aad, nonce = _gcm_siv_split(associated_data, param)
    auth_key, enc_key = _gcm_siv_keys(key, nonce)
    tag = _gcm_siv_tag(auth_key, enc_key, nonce, aad, plaintext)
    return _gcm_siv_ctr(enc_key, tag, plaintext) + tag


def _gcm_siv_decrypt(key: bytes, ciphertext: bytes, associated_data: Sequence[bytes], param: AEADParam) -> bytes:
    aad, nonce = _gcm_siv_split(associated_data, param)
    auth_key, enc_key = _gcm_siv_keys(key, nonce)
    body, tag = ciphertext[:-_BLOCK], ciphertext[-_BLOCK:]
    plaintext = _gcm_siv_ctr(enc_key, tag, body)
    if not hmac.compare_digest(tag, _gcm_siv_tag(auth_key, enc_key, nonce, aad, plaintext)):
        raise AEADError("authentication failed")
    return plaintext


# --- public interface -------------------------------------------------------

def encrypt(plaintext: bytes, associated_data: Sequence[bytes], param: AEADParam, key: bytes) -> bytes:
    """Encrypt and authenticate; the result is one block longer than the plaintext.

    For GCM-SIV the last associated-data item is used as the nonce.
    """
    key = _split_key(key, param)
    plaintext = bytes(plaintext)
    if param.nonce_is_iv:
        return _gcm_siv_encrypt(key, plaintext, associated_data, param)
    return _siv_encrypt(key, plaintext, [bytes(item) for item in associated_data])


def decrypt(ciphertext: bytes, associated_data: Sequence[bytes], param: AEADParam, key: bytes) -> bytes:
    """Verify and decrypt; raise AEADError when the data is not authentic."""
    key = _split_key(key, param)
    ciphertext = bytes(ciphertext)
    if len(ciphertext) < param.block_size:
        raise AEADError("ciphertext shorter than the authentication tag")
    if param.nonce_is_iv:
        return _gcm_siv_decrypt(key, ciphertext, associated_data, param)
    return _siv_decrypt(key, ciphertext, [bytes(item) for item in associated_data])