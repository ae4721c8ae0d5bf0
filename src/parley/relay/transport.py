# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from parley.events import SignedEvent

from .exceptions import NoRelaysConfigured, PublishFailed

__all__ = 'Filter', 'PublishResults', 'RawEvent', 'RelayTransport', 'SubscriptionHandle', 'normalize_relays', 'publish_to_relays'


logger = logging.getLogger(__name__)


type RawEvent = SignedEvent | Mapping[str, Any]
type PublishResults = Mapping[str, BaseException | None]  # None means the relay accepted the event


@dataclass(frozen=True, slots=True)
class Filter:
    kinds: tuple[int, ...] = ()
    recipients: tuple[str, ...] = ()
    since: int | None = None

    def to_mapping(self) -> dict[str, Any]:
        mapping: dict[str, Any] = {}
        if self.kinds:
            mapping['kinds'] = list(self.kinds)
        if self.recipients:
            mapping['#p'] = list(self.recipients)
        if self.since is not None:
            mapping['since'] = self.since
        return mapping


class SubscriptionHandle(Protocol):
    def close(self) -> None: ...


class RelayTransport(Protocol):
    """The connection to the relay network, which is provided by the application"""

    async def publish(self, event: SignedEvent, relays: Sequence[str]) -> PublishResults: ...

    def subscribe(self, relays: Sequence[str], filter: Filter, on_event: Callable[[RawEvent], None], on_end_of_backlog: Callable[[], None]) -> SubscriptionHandle: ...  # noqa: A002


def normalize_relays(relays: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(relay.strip() for relay in relays if relay.strip()))


async def publish_to_relays(transport: RelayTransport, event: SignedEvent, relays: Iterable[str]) -> PublishResults:
    relays = normalize_relays(relays)
    if not relays:
        raise NoRelaysConfigured('no relays configured')
    results = await transport.publish(event, relays)
    failures = {relay: results.get(relay) or ConnectionError('no response') for relay in relays if relay not in results or results[relay] is not None}
    if len(failures) == len(relays):
        raise PublishFailed(failures)
    for relay, reason in failures.items():
        logger.debug('Event %s was not published to %s: %s', event.id, relay, reason)
    return results
