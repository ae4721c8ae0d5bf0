# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, Self

from parley.crypto import PublicKey
from parley.events import PlainMessage, SignedEvent, UnknownKindError, kinds, read_context, thread_root
from parley.python.types import StringEnum

from .payloads import PayloadCodec, ReservationPayload

__all__ = 'MessageType', 'ReservationMessage'


class MessageType(StringEnum):
    REQUEST = 'request'
    RESPONSE = 'response'
    MODIFICATION_REQUEST = 'modification-request'
    MODIFICATION_RESPONSE = 'modification-response'

    @property
    def kind(self) -> kinds.Kind:
        return _type_kinds[self]

    @property
    def stage(self) -> int:
        """The position of this message type in the negotiation, used to order messages with the same timestamp"""
        return _type_stages[self]

    @classmethod
    def from_kind(cls, kind: int) -> 'MessageType':
        for message_type, message_kind in _type_kinds.items():
            if message_kind.id == kind:
                return message_type
        raise UnknownKindError(f'Not a reservation message kind: {kind}')


_type_kinds: Final[Mapping[MessageType, kinds.Kind]] = {
    MessageType.REQUEST: kinds.ReservationRequest,
    MessageType.RESPONSE: kinds.ReservationResponse,
    MessageType.MODIFICATION_REQUEST: kinds.ReservationModificationRequest,
    MessageType.MODIFICATION_RESPONSE: kinds.ReservationModificationResponse,
}

_type_stages: Final[Mapping[MessageType, int]] = {
    MessageType.REQUEST: 1,
    MessageType.MODIFICATION_REQUEST: 2,
    MessageType.MODIFICATION_RESPONSE: 3,
    MessageType.RESPONSE: 4,
}


@dataclass(frozen=True, slots=True, kw_only=True)
class ReservationMessage:
    rumor: PlainMessage
    type: MessageType
    payload: ReservationPayload
    envelope: SignedEvent | None = None  # the envelope it was received in, if any

    @classmethod
    def classify(cls, rumor: PlainMessage, codec: PayloadCodec, envelope: SignedEvent | None = None) -> Self:
        message_type = MessageType.from_kind(rumor.kind)
        return cls(rumor=rumor, type=message_type, payload=codec.decode(rumor), envelope=envelope)

    @property
    def id(self) -> str:
        return self.rumor.id

    @property
    def sender(self) -> PublicKey:
        return self.rumor.pubkey

    @property
    def created_at(self) -> int:
        return self.rumor.created_at

    @property
    def root_id(self) -> str:
        return thread_root(self.rumor)

    @property
    def reply_to_id(self) -> str | None:
        return read_context(self.rumor).reply_to_id

    @property
    def recipients(self) -> list[PublicKey]:
        return self.rumor.tag_values('p')
