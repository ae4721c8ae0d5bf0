# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Mapping

__all__ = 'NoRelaysConfigured', 'PublishFailed'


class NoRelaysConfigured(ValueError):
    """Raised when trying to publish an event without any relay to publish it to."""


class PublishFailed(ConnectionError):
    """
    Raised when an event could not be published to any of the relays.

    The reasons attribute maps each relay to the error it failed with.

    """

    def __init__(self, reasons: Mapping[str, BaseException]) -> None:
        super().__init__(f'failed to publish to {len(reasons)} relay{"s" if len(reasons) != 1 else ""}: {", ".join(f"{relay} ({reason})" for relay, reason in reasons.items())}')
        self.reasons = dict(reasons)
