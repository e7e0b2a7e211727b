[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ntsclient"
version = "0.1.0"
description = "Network Time Security (NTS) client: NTS-KE negotiation, authenticated NTP extension fields and SNTP polling"
requires-python = ">=3.10"
keywords = ["nts", "ntp", "sntp", "time", "network-time-security", "rfc8915", "aead", "aes-siv", "aes-gcm-siv"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: System :: Networking :: Time Synchronization",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
ntsclient-demo = "ntsclient.demo:main"
qdntp = "ntsclient.qdntp:main"

[tool.hatch.build.targets.wheel]
packages = ["ntsclient"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
