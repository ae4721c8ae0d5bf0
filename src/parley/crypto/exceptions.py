# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'CryptoError', 'InvalidPeerKey', 'InvalidPrivateKey', 'EmptyPlaintext', 'PlaintextTooLarge', 'MalformedPayload', 'AuthenticationFailed'  # noqa: RUF022


class CryptoError(ValueError):
    """Base class for the errors raised by the key agreement and cipher functions."""


class InvalidPeerKey(CryptoError):
    """Raised when a public key is not the x coordinate of a point on the curve."""


class InvalidPrivateKey(CryptoError):
    """Raised when a private key is not a valid secp256k1 scalar."""


class EmptyPlaintext(CryptoError):
    """Raised when trying to encrypt an empty message."""


class PlaintextTooLarge(CryptoError):
    """Raised when trying to encrypt a message that exceeds the maximum plaintext size."""


class MalformedPayload(CryptoError):
    """
    Raised when an encrypted payload is structurally invalid.

    This covers unknown versions, invalid encodings, payloads with an
    invalid size and invalid padding.

    """


class AuthenticationFailed(CryptoError):
    """Raised when the MAC of an encrypted payload does not match."""
