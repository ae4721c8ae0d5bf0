# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'WouldBlock', 'ClosedResourceError', 'EndOfMailbox'


class WouldBlock(Exception):
    """Raised by ``X_nowait`` functions if ``X`` would block."""


class ClosedResourceError(Exception):
    """
    Raised when attempting to post to a resource after it has been closed.

    Closing is always explicit, done by calling ``close`` or by leaving
    the context manager that owns the resource.

    """


class EndOfMailbox(Exception):
    """
    Raised when trying to receive from a closed :class:`aio.Mailbox`.

    Items still queued when the mailbox is closed are discarded, so
    once closed there is nothing left to receive.

    """
