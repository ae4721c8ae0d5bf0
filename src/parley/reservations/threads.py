# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from bisect import insort
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from operator import attrgetter
from typing import Self

from parley.crypto import PublicKey

from .messages import MessageType, ReservationMessage

__all__ = 'ConversationThread', 'ThreadAssembler', 'assemble_threads'


def _negotiation_order(message: ReservationMessage) -> tuple[int, int]:
    # messages created in the same second are ordered by their stage in the negotiation
    return message.created_at, message.type.stage


@dataclass(frozen=True, slots=True)
class ConversationThread:
    root_id: str
    messages: tuple[ReservationMessage, ...]
    initial_request: ReservationMessage
    partner_pubkey: PublicKey

    @classmethod
    def from_messages(cls, root_id: str, messages: Iterable[ReservationMessage], local_pubkey: PublicKey) -> Self:
        ordered = tuple(sorted(messages, key=_negotiation_order))
        if not ordered:
            raise ValueError('a thread must contain at least one message')
        initial_request = (
            next((message for message in ordered if message.type is MessageType.REQUEST), None)
            or next((message for message in ordered if message.type is MessageType.MODIFICATION_REQUEST), None)
            or ordered[0]
        )
        return cls(root_id=root_id, messages=ordered, initial_request=initial_request, partner_pubkey=cls._find_partner(ordered, local_pubkey))

    @staticmethod
    def _find_partner(messages: Sequence[ReservationMessage], local_pubkey: PublicKey) -> PublicKey:
        for message in messages:
            if message.sender != local_pubkey:
                return message.sender
        # all the messages are our own (read back from the copies we kept), so look at who they were sent to
        for message in messages:
            for pubkey in message.recipients:
                if pubkey != local_pubkey:
                    return pubkey
        return messages[-1].sender

    @property
    def latest_message(self) -> ReservationMessage:
        return self.messages[-1]

    @property
    def latest_timestamp(self) -> int:
        return self.messages[-1].created_at

    @property
    def message_count(self) -> int:
        return len(self.messages)


def assemble_threads(messages: Iterable[ReservationMessage], local_pubkey: PublicKey) -> list[ConversationThread]:
    """Group messages into threads, with the most recently active thread first"""
    groups: dict[str, list[ReservationMessage]] = {}
    seen: set[str] = set()
    for message in messages:
        if message.id in seen:
            continue
        seen.add(message.id)
        groups.setdefault(message.root_id, []).append(message)
    threads = [ConversationThread.from_messages(root_id, group, local_pubkey) for root_id, group in groups.items()]
    threads.sort(key=attrgetter('latest_timestamp'), reverse=True)
    return threads


class ThreadAssembler:
    """Accumulates the messages of an identity and groups them into conversation threads"""

    def __init__(self, local_pubkey: PublicKey, messages: Iterable[ReservationMessage] = ()) -> None:
        self.local_pubkey = local_pubkey
        self._messages: list[ReservationMessage] = []
        self._ids: set[str] = set()
        self.extend(messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    @property
    def messages(self) -> list[ReservationMessage]:
        """All the messages, newest first"""
        return list(self._messages)

    def add(self, message: ReservationMessage) -> bool:
        if message.id in self._ids:
            return False
        self._ids.add(message.id)
        insort(self._messages, message, key=lambda item: -item.created_at)
        return True

    def extend(self, messages: Iterable[ReservationMessage]) -> int:
        return sum(self.add(message) for message in messages)

    def get_threads(self) -> list[ConversationThread]:
        return assemble_threads(self._messages, self.local_pubkey)

    def thread(self, root_id: str) -> ConversationThread | None:
        group = [message for message in self._messages if message.root_id == root_id]
        return ConversationThread.from_messages(root_id, group, self.local_pubkey) if group else None
