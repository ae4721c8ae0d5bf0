# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .exceptions import ClosedResourceError, EndOfMailbox, WouldBlock
from .mailbox import Mailbox

__all__ = 'Mailbox', 'ClosedResourceError', 'EndOfMailbox', 'WouldBlock'  # noqa: RUF022
