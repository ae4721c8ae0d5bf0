# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Versioned authenticated encryption of messages under a conversation key.

Payload layout (before base64 encoding):

    +---------+-------------+----------------------+----------+
    | version | nonce (32)  | ciphertext (padded)  | mac (32) |
    +---------+-------------+----------------------+----------+

The plaintext is prefixed with its length as a 16-bit big-endian integer
and padded with zeros to a size that only grows in steps, so that the
ciphertext size reveals little about the actual message size. Keys for
ChaCha20 and HMAC-SHA256 are expanded from the conversation key and the
nonce with HKDF, and the MAC covers the nonce and the ciphertext.
"""

import base64
import os
from typing import Final

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand

from .exceptions import AuthenticationFailed, EmptyPlaintext, MalformedPayload, PlaintextTooLarge

__all__ = 'VERSION', 'decrypt', 'encrypt', 'padded_length'


VERSION: Final = 2

MIN_PLAINTEXT_SIZE: Final = 1
MAX_PLAINTEXT_SIZE: Final = 65535

NONCE_SIZE: Final = 32
MAC_SIZE: Final = 32

MIN_PAYLOAD_SIZE: Final = 132  # base64 characters
MAX_PAYLOAD_SIZE: Final = 87472
MIN_DATA_SIZE: Final = 99  # decoded bytes
MAX_DATA_SIZE: Final = 65603


def padded_length(length: int) -> int:
    if length <= 32:
        return 32
    next_power = 1 << (length - 1).bit_length()
    chunk = 32 if next_power <= 256 else next_power // 8
    return chunk * ((length - 1) // chunk + 1)


def _pad(plaintext: bytes) -> bytes:
    length = len(plaintext)
    if length < MIN_PLAINTEXT_SIZE:
        raise EmptyPlaintext('cannot encrypt an empty message')
    if length > MAX_PLAINTEXT_SIZE:
        raise PlaintextTooLarge(f'message is {length} bytes long, the maximum is {MAX_PLAINTEXT_SIZE}')
    return length.to_bytes(2, 'big') + plaintext + bytes(padded_length(length) - length)


def _unpad(padded: bytes) -> bytes:
    length = int.from_bytes(padded[:2], 'big')
    if length < MIN_PLAINTEXT_SIZE or len(padded) != 2 + padded_length(length):
        raise MalformedPayload('invalid padding')
    return padded[2:2 + length]


def _message_keys(key: bytes, nonce: bytes) -> tuple[bytes, bytes, bytes]:
    if len(key) != 32:
        raise ValueError(f'conversation key must be 32 bytes long, got {len(key)}')
    keys = HKDFExpand(algorithm=hashes.SHA256(), length=76, info=nonce).derive(key)
    return keys[0:32], keys[32:44], keys[44:76]


def _chacha20(key: bytes, nonce: bytes, data: bytes) -> bytes:
    # the 16 byte nonce used by cryptography is a 4 byte little-endian block counter followed by the 12 byte nonce
    encryptor = Cipher(algorithms.ChaCha20(key, b'\x00\x00\x00\x00' + nonce), mode=None).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def _mac(key: bytes, nonce: bytes, ciphertext: bytes) -> hmac.HMAC:
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(nonce)
    mac.update(ciphertext)
    return mac


def encrypt(plaintext: bytes | str, key: bytes, nonce: bytes | None = None) -> str:
    if isinstance(plaintext, str):
        plaintext = plaintext.encode()
    if nonce is None:
        nonce = os.urandom(NONCE_SIZE)
    elif len(nonce) != NONCE_SIZE:
        raise ValueError(f'nonce must be {NONCE_SIZE} bytes long, got {len(nonce)}')
    padded = _pad(plaintext)
    chacha_key, chacha_nonce, hmac_key = _message_keys(key, nonce)
    ciphertext = _chacha20(chacha_key, chacha_nonce, padded)
    mac = _mac(hmac_key, nonce, ciphertext).finalize()
    return base64.b64encode(bytes([VERSION]) + nonce + ciphertext + mac).decode('ascii')


def decrypt(payload: str, key: bytes) -> bytes:
    if not payload or payload.startswith('#'):
        raise MalformedPayload('unknown encryption version')
    if not MIN_PAYLOAD_SIZE <= len(payload) <= MAX_PAYLOAD_SIZE:
        raise MalformedPayload(f'invalid payload size: {len(payload)}')
    try:
        data = base64.b64decode(payload, validate=True)
    except ValueError as exc:
        raise MalformedPayload('invalid base64 encoding') from exc
    if not MIN_DATA_SIZE <= len(data) <= MAX_DATA_SIZE:
        raise MalformedPayload(f'invalid data size: {len(data)}')
    if data[0] != VERSION:
        raise MalformedPayload(f'unknown encryption version: {data[0]}')
    nonce = data[1:1 + NONCE_SIZE]
    ciphertext = data[1 + NONCE_SIZE:-MAC_SIZE]
    mac = data[-MAC_SIZE:]
    chacha_key, chacha_nonce, hmac_key = _message_keys(key, nonce)
    try:
        _mac(hmac_key, nonce, ciphertext).verify(mac)
    except InvalidSignature as exc:
        raise AuthenticationFailed('invalid MAC') from exc
    return _unpad(_chacha20(chacha_key, chacha_nonce, ciphertext))
