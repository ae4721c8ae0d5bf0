# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import asyncio
import logging
from collections.abc import Iterable, Sequence

from parley.crypto import Identity, KeyStore, PublicKey
from parley.events import DEFAULT_TIMESTAMP_WINDOW, PlainMessage, SignedEvent, next_reply_tags, seal, send_with_self_copy, wrap
from parley.relay import RelayTransport, normalize_relays, publish_to_relays

from .exceptions import MissingPrivateKey
from .messages import MessageType, ReservationMessage
from .payloads import PayloadCodec, ReservationModificationRequest, ReservationModificationResponse, ReservationPayload, ReservationRequest, ReservationResponse, ReservationStatus

__all__ = 'ReservationOutbox',  # noqa: COM818


logger = logging.getLogger(__name__)


class ReservationOutbox:
    """
    Sends reservation messages.

    Every message is published twice, once addressed to the other party
    and once addressed to ourselves, so that the outgoing side of the
    conversation can be recovered from the relays later. The private key
    is fetched from the key store the first time it is needed.
    """

    def __init__(
        self,
        transport: RelayTransport,
        relays: Iterable[str],
        key_store: KeyStore,
        *,
        codec: PayloadCodec | None = None,
        self_copy: bool = True,
        timestamp_window: int = DEFAULT_TIMESTAMP_WINDOW,
    ) -> None:
        self.transport = transport
        self.relays: Sequence[str] = normalize_relays(relays)
        self.key_store = key_store
        self.codec = codec or PayloadCodec()
        self.self_copy = self_copy
        self.timestamp_window = timestamp_window
        self._identity: Identity | None = None

    async def identity(self) -> Identity:
        if self._identity is None:
            secret = await self.key_store.load_private_key()
            if secret is None:
                raise MissingPrivateKey('the key store does not contain a private key')
            self._identity = Identity(secret)
        return self._identity

    async def send(self, payload: ReservationPayload, recipient: PublicKey, *, tags: Iterable[Iterable[str]] = ()) -> PlainMessage:
        identity = await self.identity()
        message = self.codec.compose(payload, identity, recipient, tags=tags)
        await self.publish(message, identity, recipient)
        return message

    async def publish(self, message: PlainMessage, identity: Identity, recipient: PublicKey) -> None:
        envelopes: Sequence[SignedEvent]
        if self.self_copy:
            envelopes = send_with_self_copy(message, identity, recipient, timestamp_window=self.timestamp_window)
        else:
            envelopes = [wrap(seal(message, identity, recipient, timestamp_window=self.timestamp_window), recipient, timestamp_window=self.timestamp_window)]
        await asyncio.gather(*(publish_to_relays(self.transport, envelope, self.relays) for envelope in envelopes))
        logger.debug('Published message %s to %s in %d envelope(s)', message.id, recipient, len(envelopes))

    async def send_request(self, payload: ReservationPayload, recipient: PublicKey) -> PlainMessage:
        return await self.send(payload, recipient)

    async def reply(self, previous: ReservationMessage, payload: ReservationPayload) -> PlainMessage:
        identity = await self.identity()
        if previous.sender != identity.public_key:
            recipient = previous.sender
        else:
            recipient = next((pubkey for pubkey in previous.recipients if pubkey != identity.public_key), None)
            if recipient is None:
                raise ValueError(f'cannot find who message {previous.id} was sent to')
        return await self.send(payload, recipient, tags=next_reply_tags(previous.rumor, [recipient]))

    async def accept(self, request: ReservationMessage, *, message: str | None = None) -> PlainMessage:
        time, tzid = request.payload.time, request.payload.tzid
        if time is None or tzid is None:
            raise ValueError(f'message {request.id} does not specify a reservation time')
        return await self.reply(request, ReservationResponse(status=ReservationStatus.CONFIRMED, time=time, tzid=tzid, duration=request.payload.duration, message=message))

    async def decline(self, request: ReservationMessage, *, message: str | None = None) -> PlainMessage:
        return await self.reply(request, ReservationResponse(status=ReservationStatus.DECLINED, message=message))

    async def request_modification(self, request: ReservationMessage, *, time: int, tzid: str, message: str | None = None) -> PlainMessage:
        match request.payload:
            case ReservationRequest() as payload:
                modification = ReservationModificationRequest(
                    party_size=payload.party_size,
                    time=time,
                    tzid=tzid,
                    duration=payload.duration,
                    name=payload.name,
                    telephone=payload.telephone,
                    email=payload.email,
                    message=message,
                )
            case _:
                raise ValueError(f'can only propose another time for a request, not for a {request.type}')
        return await self.reply(request, modification)

    async def accept_modification(self, modification: ReservationMessage, *, message: str | None = None) -> PlainMessage:
        if modification.type is not MessageType.MODIFICATION_REQUEST:
            raise ValueError(f'expected a modification request, got a {modification.type}')
        payload = modification.payload
        return await self.reply(modification, ReservationModificationResponse(status=ReservationStatus.CONFIRMED, time=payload.time, tzid=payload.tzid, message=message))

    async def decline_modification(self, modification: ReservationMessage, *, message: str | None = None) -> PlainMessage:
        if modification.type is not MessageType.MODIFICATION_REQUEST:
            raise ValueError(f'expected a modification request, got a {modification.type}')
        return await self.reply(modification, ReservationModificationResponse(status=ReservationStatus.DECLINED, message=message))
