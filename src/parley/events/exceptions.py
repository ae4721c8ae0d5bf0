# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from parley.python.types import MarkerEnum

__all__ = 'InvalidEvent', 'UnknownKindError', 'UnwrapFailed', 'UnwrapFailure'


class InvalidEvent(ValueError):
    """Raised when a record does not have the structure of an event."""


class UnknownKindError(ValueError):
    """Raised when an event references a Kind that is not defined."""


class UnwrapFailure(MarkerEnum):
    AUTHENTICATION = 'AUTHENTICATION'  # the envelope cannot be decrypted with our key
    STRUCTURAL = 'STRUCTURAL'  # the envelope decrypted but its content is not acceptable


class UnwrapFailed(ValueError):
    """
    Raised when an envelope cannot be opened.

    The reason tells apart envelopes that were simply not meant for us
    (AUTHENTICATION) from envelopes that decrypted fine but contained
    something invalid, like a bad signature or a forged author (STRUCTURAL).

    """

    def __init__(self, reason: UnwrapFailure, message: str) -> None:
        super().__init__(message)
        self.reason = reason

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.reason!r}, {self.args[0]!r})'
