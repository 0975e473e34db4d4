"""Prototype AES-CFB file encryption with keys kept in local files."""

from __future__ import annotations

import os
from pathlib import Path

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

USE_CRYPTO = False
KEY_FILE = ".keyfile"
IV_FILE = ".ivfile"
KEY_LENGTH = 16


def load_or_create_key(path: str | os.PathLike[str], size: int = KEY_LENGTH) -> bytes:
    """Read a key from ``path``, or generate ``size`` random bytes and store them there.

    The stored form is the key followed by one terminating byte.
    """
    key_path = Path(path)
    if key_path.exists():
        return key_path.read_bytes()[:-1]
    key = os.urandom(size)
    key_path.write_bytes(key + b"\n")
    return key


def _cipher(key_file: str | os.PathLike[str], iv_file: str | os.PathLike[str]) -> Cipher:
    key = load_or_create_key(key_file)
    iv = load_or_create_key(iv_file)
    return Cipher(algorithms.AES(key), modes.CFB(iv))


def encrypt_contents(
    contents: bytes,
    key_file: str | os.PathLike[str] = KEY_FILE,
    iv_file: str | os.PathLike[str] = IV_FILE,
) -> bytes:
    """Encrypt ``contents`` with the key and IV kept in the given files."""
    encryptor = _cipher(key_file, iv_file).encryptor()
    return encryptor.update(contents) + encryptor.finalize()


def decrypt_contents(
    contents: bytes,
    key_file: str | os.PathLike[str] = KEY_FILE,
    iv_file: str | os.PathLike[str] = IV_FILE,
) -> bytes:
    """Decrypt ``contents`` with the key and IV kept in the given files."""
    decryptor = _cipher(key_file, iv_file).decryptor()
    return decryptor.update(contents) + decryptor.finalize()