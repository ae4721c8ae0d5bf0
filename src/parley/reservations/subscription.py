# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from functools import partial

from parley.aio import Mailbox
from parley.crypto import Identity
from parley.events import InvalidEvent, SignedEvent, UnknownKindError, UnwrapFailed, UnwrapFailure, kinds, unwrap
from parley.python.types import MarkerEnum, StringEnum
from parley.relay import Filter, RawEvent, RelayTransport, SubscriptionHandle, normalize_relays

from .exceptions import InvalidPayload
from .messages import MessageType, ReservationMessage
from .payloads import PayloadCodec

__all__ = 'ReservationSubscription', 'SubscriptionState'


logger = logging.getLogger(__name__)


type MessageCallback = Callable[[ReservationMessage], object]
type ErrorCallback = Callable[[Exception, RawEvent], object]
type ReadyCallback = Callable[[], object]


class SubscriptionState(StringEnum):
    IDLE = 'idle'
    ACTIVE = 'active'
    READY = 'ready'  # the backlog of stored events was processed


class Signal(MarkerEnum):
    END_OF_BACKLOG = 'END_OF_BACKLOG'


type MailboxItem = RawEvent | Signal


class ReservationSubscription:
    """
    Receives the reservation messages addressed to an identity.

    Events delivered by the transport are queued and processed one at a
    time by a single task, which unwraps them, drops the ones that are
    not for us, and delivers every message only once, even when it is
    received multiple times (from different relays, or both as the copy
    sent to us and the copy the sender kept for itself).
    """

    def __init__(
        self,
        transport: RelayTransport,
        relays: Iterable[str],
        identity: Identity,
        *,
        on_message: MessageCallback,
        on_error: ErrorCallback | None = None,
        on_ready: ReadyCallback | None = None,
        codec: PayloadCodec | None = None,
        seen: Iterable[str] = (),
    ) -> None:
        self.transport = transport
        self.relays: Sequence[str] = normalize_relays(relays)
        self.identity = identity
        self.codec = codec or PayloadCodec()
        self.on_message = on_message
        self.on_error = on_error
        self.on_ready = on_ready
        self.state = SubscriptionState.IDLE
        self._seen = set(seen)
        self._ready = asyncio.Event()
        self._handle: SubscriptionHandle | None = None
        self._mailbox: Mailbox[MailboxItem] | None = None
        self._consumer: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.identity.public_key[:16]} state={self.state}>'

    @property
    def filter(self) -> Filter:
        return Filter(kinds=(kinds.GiftWrap.id,), recipients=(self.identity.public_key,))

    @property
    def seen(self) -> frozenset[str]:
        return frozenset(self._seen)

    @property
    def ready(self) -> bool:
        return self.state is SubscriptionState.READY

    def start(self) -> None:
        if self.state is not SubscriptionState.IDLE:
            logger.warning('Subscription for %s is already running (state=%s)', self.identity.public_key, self.state)
            return
        mailbox = Mailbox[MailboxItem]()
        self._mailbox = mailbox
        self._consumer = asyncio.get_running_loop().create_task(self._process(mailbox), name=f'reservation subscription {self.identity.public_key[:16]}')
        self.state = SubscriptionState.ACTIVE
        try:
            self._handle = self.transport.subscribe(
                self.relays,
                self.filter,
                on_event=partial(self._post, mailbox),
                on_end_of_backlog=partial(self._post, mailbox, Signal.END_OF_BACKLOG),
            )
        except BaseException:
            self.stop()
            raise

    def stop(self) -> None:
        if self.state is SubscriptionState.IDLE:
            return
        handle, mailbox, consumer = self._handle, self._mailbox, self._consumer
        self._handle = self._mailbox = self._consumer = None
        self.state = SubscriptionState.IDLE
        self._ready.clear()
        if mailbox is not None:
            mailbox.close()
        if consumer is not None and consumer is not asyncio.current_task():
            consumer.cancel()
        if handle is not None:
            handle.close()

    async def drain(self) -> None:
        """Wait until all the events received so far were processed"""
        if self._mailbox is not None:
            await self._mailbox.join()

    async def until_ready(self) -> None:
        await self._ready.wait()

    @staticmethod
    def _post(mailbox: Mailbox[MailboxItem], item: MailboxItem) -> None:
        if mailbox.closed:
            return  # the transport may still deliver events after the subscription was stopped
        mailbox.post(item)

    async def _process(self, mailbox: Mailbox[MailboxItem]) -> None:
        async for item in mailbox:
            try:
                if item is Signal.END_OF_BACKLOG:
                    self._handle_end_of_backlog()
                else:
                    self._handle_event(item)
            except Exception:
                logger.exception('Failed to process %r', item)
            finally:
                if not mailbox.closed:
                    mailbox.task_done()

    def _handle_end_of_backlog(self) -> None:
        if self.state is not SubscriptionState.ACTIVE:
            return
        self.state = SubscriptionState.READY
        self._ready.set()
        if self.on_ready is not None:
            self._notify(self.on_ready)

    def _handle_event(self, event: RawEvent) -> None:
        try:
            envelope = event if isinstance(event, SignedEvent) else SignedEvent.from_mapping(event)
        except InvalidEvent as exc:
            self._report(exc, event)
            return
        if envelope.kind != kinds.GiftWrap.id or self.identity.public_key not in envelope.tag_values('p'):
            logger.debug('Ignoring event %s that is not an envelope addressed to us', envelope.id)
            return
        try:
            rumor = unwrap(envelope, self.identity)
        except UnwrapFailed as exc:
            match exc.reason:
                case UnwrapFailure.AUTHENTICATION:
                    logger.debug('Ignoring envelope %s: %s', envelope.id, exc)
                case UnwrapFailure.STRUCTURAL:
                    self._report(exc, envelope)
            return
        if rumor.id in self._seen:
            logger.debug('Ignoring duplicate message %s (envelope %s)', rumor.id, envelope.id)
            return
        try:
            MessageType.from_kind(rumor.kind)
        except UnknownKindError:
            logger.debug('Ignoring message %s of kind %d', rumor.id, rumor.kind)
            return
        self._seen.add(rumor.id)
        try:
            message = ReservationMessage.classify(rumor, self.codec, envelope)
        except InvalidPayload as exc:
            self._report(exc, envelope)
            return
        self._notify(self.on_message, message)

    def _report(self, error: Exception, event: RawEvent) -> None:
        event_id = event.id if isinstance(event, SignedEvent) else event.get('id') if isinstance(event, Mapping) else None
        logger.debug('Invalid event %s: %s', event_id, error)
        if self.on_error is not None:
            self._notify(self.on_error, error, event)

    def _notify(self, callback: Callable[..., object], *args: object) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception('Unhandled exception in the %s callback', getattr(callback, '__name__', callback))
