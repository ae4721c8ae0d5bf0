# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import os
from dataclasses import dataclass, field
from typing import Final, Self

import coincurve
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.asymmetric import ec

from .exceptions import InvalidPeerKey, InvalidPrivateKey

__all__ = 'Identity', 'PublicKey', 'conversation_key', 'public_key_of', 'verify_signature'


type PublicKey = str  # hex encoded x-only public key

CURVE_ORDER: Final = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
CONVERSATION_KEY_SALT: Final = b'nip44-v2'


def _private_key(secret: bytes) -> ec.EllipticCurvePrivateKey:
    if len(secret) != 32:
        raise InvalidPrivateKey(f'private key must be 32 bytes long, got {len(secret)}')
    scalar = int.from_bytes(secret, 'big')
    if not 0 < scalar < CURVE_ORDER:
        raise InvalidPrivateKey('private key is outside the secp256k1 scalar range')
    return ec.derive_private_key(scalar, ec.SECP256K1())


def _peer_key(public_key: PublicKey) -> ec.EllipticCurvePublicKey:
    try:
        x_only = bytes.fromhex(public_key)
    except (TypeError, ValueError) as exc:
        raise InvalidPeerKey(f'public key is not a hex string: {public_key!r}') from exc
    if len(x_only) != 32:
        raise InvalidPeerKey(f'public key must be 32 bytes long, got {len(x_only)}')
    try:
        # x-only keys always refer to the point with the even y coordinate
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), b'\x02' + x_only)
    except ValueError as exc:
        raise InvalidPeerKey(f'public key is not on the curve: {public_key}') from exc


def public_key_of(secret: bytes) -> PublicKey:
    numbers = _private_key(secret).public_key().public_numbers()
    return numbers.x.to_bytes(32, 'big').hex()


def conversation_key(secret: bytes, peer: PublicKey) -> bytes:
    """
    Derive the symmetric key shared between the owner of secret and peer.

    The key is the HKDF extract step (HMAC-SHA256 keyed with a protocol
    label) applied to the x coordinate of the ECDH shared point, which
    makes it the same for both sides of the conversation.
    """
    shared_x = _private_key(secret).exchange(ec.ECDH(), _peer_key(peer))
    mac = hmac.HMAC(CONVERSATION_KEY_SALT, hashes.SHA256())
    mac.update(shared_x)
    return mac.finalize()


def verify_signature(public_key: PublicKey, message: bytes, signature: str) -> bool:
    try:
        return coincurve.PublicKeyXOnly(bytes.fromhex(public_key)).verify(bytes.fromhex(signature), message)
    except ValueError:
        return False


@dataclass(frozen=True, slots=True)
class Identity:
    secret: bytes = field(repr=False)
    public_key: PublicKey = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'public_key', public_key_of(self.secret))

    @classmethod
    def generate(cls) -> Self:
        while True:
            secret = os.urandom(32)
            if 0 < int.from_bytes(secret, 'big') < CURVE_ORDER:
                return cls(secret)

    @classmethod
    def from_hex(cls, value: str) -> Self:
        try:
            secret = bytes.fromhex(value)
        except ValueError as exc:
            raise InvalidPrivateKey('private key is not a hex string') from exc
        return cls(secret)

    def hex(self) -> str:
        return self.secret.hex()

    def conversation_key(self, peer: PublicKey) -> bytes:
        return conversation_key(self.secret, peer)

    def sign(self, message: bytes) -> str:
        """Return the hex encoded BIP-340 signature of a 32 byte message"""
        return coincurve.PrivateKey(self.secret).sign_schnorr(message, os.urandom(32)).hex()
