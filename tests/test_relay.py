# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import asyncio
from collections.abc import Sequence

import pytest

from parley.crypto import Identity
from parley.events import SignedEvent
from parley.relay import Filter, NoRelaysConfigured, PublishFailed, PublishResults, normalize_relays, publish_to_relays


class RecordingTransport:
    def __init__(self, results: dict[str, BaseException | None]) -> None:
        self.results = results
        self.published: list[tuple[SignedEvent, list[str]]] = []

    async def publish(self, event: SignedEvent, relays: Sequence[str]) -> PublishResults:
        self.published.append((event, list(relays)))
        return {relay: result for relay, result in self.results.items() if relay in relays}

    def subscribe(self, *args: object, **kw: object) -> None:
        raise NotImplementedError


class TestRelays:

    def setup_method(self) -> None:
        self.event = SignedEvent.sign(Identity.generate(), kind=1, content='hello')

    def test_normalize_relays(self) -> None:
        assert normalize_relays([' wss://a.example ', '', 'wss://b.example', 'wss://a.example', '   ']) == ['wss://a.example', 'wss://b.example']

    def test_filter(self) -> None:
        assert Filter().to_mapping() == {}
        assert Filter(kinds=(1059,), recipients=('ab' * 32,), since=1000).to_mapping() == {'kinds': [1059], '#p': ['ab' * 32], 'since': 1000}

    def test_publish(self) -> None:
        transport = RecordingTransport({'wss://a.example': None, 'wss://b.example': ConnectionError('timeout')})
        results = asyncio.run(publish_to_relays(transport, self.event, ['wss://a.example', ' wss://b.example', 'wss://a.example']))
        assert transport.published == [(self.event, ['wss://a.example', 'wss://b.example'])]
        assert results['wss://a.example'] is None
        assert isinstance(results['wss://b.example'], ConnectionError)

    def test_publish_without_relays(self) -> None:
        transport = RecordingTransport({})
        with pytest.raises(NoRelaysConfigured):
            asyncio.run(publish_to_relays(transport, self.event, [' ']))
        assert transport.published == []

    def test_publish_failed(self) -> None:
        transport = RecordingTransport({'wss://a.example': ConnectionError('refused'), 'wss://b.example': TimeoutError('timeout')})
        with pytest.raises(PublishFailed, match=r'failed to publish to 2 relays') as exc_info:
            asyncio.run(publish_to_relays(transport, self.event, ['wss://a.example', 'wss://b.example']))
        assert set(exc_info.value.reasons) == {'wss://a.example', 'wss://b.example'}

    def test_missing_results_count_as_failures(self) -> None:
        transport = RecordingTransport({})
        with pytest.raises(PublishFailed, match=r'failed to publish to 1 relay:') as exc_info:
            asyncio.run(publish_to_relays(transport, self.event, ['wss://a.example']))
        assert isinstance(exc_info.value.reasons['wss://a.example'], ConnectionError)
