# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Thread markers on message tags.

Event references use marked ``e`` tags with a relay hint, which may be
empty, and a marker that is either ``root`` or ``reply``:

    ["e", <event-id>, <relay-hint>, <marker>]

Participants are listed using ``p`` tags:

    ["p", <pubkey>]

A message without any marked event reference starts a new thread.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Self

from parley.crypto import PublicKey
from parley.python.types import StringEnum

from .event import PlainMessage, Tag, Tags, normalize_tags

__all__ = 'Marker', 'EventReference', 'ParticipantReference', 'ThreadContext', 'mark_root', 'mark_reply', 'read_context', 'thread_root', 'next_reply_tags'  # noqa: RUF022


class Marker(StringEnum):
    ROOT = 'root'
    REPLY = 'reply'


@dataclass(frozen=True, slots=True)
class EventReference:
    event_id: str
    marker: Marker
    relay: str | None = None

    @classmethod
    def from_tag(cls, tag: Sequence[str]) -> Self | None:
        match tag:
            case ['e', str(event_id), str(relay), 'root' | 'reply' as marker, *_] if event_id:
                return cls(event_id, Marker(marker), relay or None)
            case _:
                return None

    def to_tag(self) -> Tag:
        return 'e', self.event_id, self.relay or '', self.marker.value


@dataclass(frozen=True, slots=True)
class ParticipantReference:
    pubkey: PublicKey
    relay: str | None = None

    @classmethod
    def from_tag(cls, tag: Sequence[str]) -> Self | None:
        match tag:
            case ['p', str(pubkey)] if pubkey:
                return cls(pubkey)
            case ['p', str(pubkey), str(relay), *_] if pubkey:
                return cls(pubkey, relay or None)
            case _:
                return None

    def to_tag(self) -> Tag:
        return ('p', self.pubkey, self.relay) if self.relay else ('p', self.pubkey)


@dataclass(frozen=True, slots=True)
class ThreadContext:
    root_id: str | None = None
    reply_to_id: str | None = None
    root_relay: str | None = None
    reply_relay: str | None = None

    @property
    def is_root(self) -> bool:
        return self.root_id is None and self.reply_to_id is None


def mark_root(tags: Iterable[Iterable[str]], root_id: str, relay: str | None = None) -> Tags:
    return (*normalize_tags(tags), EventReference(root_id, Marker.ROOT, relay).to_tag())


def mark_reply(tags: Iterable[Iterable[str]], root_id: str, reply_id: str, relays: tuple[str | None, str | None] = (None, None)) -> Tags:
    root_relay, reply_relay = relays
    return (*mark_root(tags, root_id, root_relay), EventReference(reply_id, Marker.REPLY, reply_relay).to_tag())


def read_context(message: PlainMessage) -> ThreadContext:
    root: EventReference | None = None
    reply: EventReference | None = None
    for tag in message.tags:
        reference = EventReference.from_tag(tag)
        if reference is None:
            continue
        if reference.marker is Marker.ROOT and root is None:
            root = reference
        elif reference.marker is Marker.REPLY and reply is None:
            reply = reference
    return ThreadContext(
        root_id=root.event_id if root is not None else None,
        reply_to_id=reply.event_id if reply is not None else None,
        root_relay=root.relay if root is not None else None,
        reply_relay=reply.relay if reply is not None else None,
    )


def thread_root(message: PlainMessage) -> str:
    """Return the id of the thread the message belongs to"""
    return read_context(message).root_id or message.id


def next_reply_tags(previous: PlainMessage, extra_participants: Iterable[PublicKey] = ()) -> Tags:
    context = read_context(previous)
    if context.root_id is not None:
        tags = mark_reply((), context.root_id, previous.id, relays=(context.root_relay, None))
    else:
        tags = mark_reply((), previous.id, previous.id)
    participants = list(dict.fromkeys([previous.pubkey, *extra_participants]))
    return (*tags, *(ParticipantReference(pubkey).to_tag() for pubkey in participants))
