# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'InvalidPayload', 'MissingPrivateKey'


class InvalidPayload(ValueError):
    """Raised when a reservation payload field is missing or has an invalid value."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f'{field}: {reason}')
        self.field = field
        self.reason = reason


class MissingPrivateKey(LookupError):
    """Raised when the key store does not hold a private key."""
