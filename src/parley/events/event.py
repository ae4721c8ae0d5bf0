# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import json
import re
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Self

from parley.crypto import Identity, PublicKey, verify_signature

from .exceptions import InvalidEvent

__all__ = 'PlainMessage', 'SignedEvent', 'Tag', 'Tags', 'event_id', 'normalize_tags'


type Tag = tuple[str, ...]
type Tags = tuple[Tag, ...]

_hex32 = re.compile(r'[0-9a-f]{64}')
_hex64 = re.compile(r'[0-9a-f]{128}')


def normalize_tags(tags: Iterable[Iterable[str]]) -> Tags:
    return tuple(tuple(tag) for tag in tags)


def event_id(pubkey: PublicKey, created_at: int, kind: int, tags: Tags, content: str) -> str:
    serialized = json.dumps([0, pubkey, created_at, kind, [list(tag) for tag in tags], content], separators=(',', ':'), ensure_ascii=False)
    return sha256(serialized.encode()).hexdigest()


def _get[T](data: Mapping[str, Any], name: str, data_type: type[T]) -> T:
    try:
        value = data[name]
    except KeyError as exc:
        raise InvalidEvent(f'missing event field {name!r}') from exc
    if not isinstance(value, data_type) or (data_type is int and isinstance(value, bool)):
        raise InvalidEvent(f'event field {name!r} must be of type {data_type.__name__}')
    return value


def _get_hex(data: Mapping[str, Any], name: str, pattern: re.Pattern[str]) -> str:
    value = _get(data, name, str)
    if pattern.fullmatch(value) is None:
        raise InvalidEvent(f'event field {name!r} is not a valid hex string')
    return value


def _get_tags(data: Mapping[str, Any]) -> Tags:
    tags = _get(data, 'tags', list)
    if not all(isinstance(tag, list) and all(isinstance(item, str) for item in tag) for tag in tags):
        raise InvalidEvent('event tags must be lists of strings')
    return normalize_tags(tags)


@dataclass(frozen=True, slots=True, kw_only=True)
class PlainMessage:
    """An unsigned event, which is only ever transmitted inside a seal."""

    id: str
    pubkey: PublicKey
    created_at: int
    kind: int
    tags: Tags
    content: str

    @classmethod
    def create(cls, *, pubkey: PublicKey, kind: int, content: str = '', tags: Iterable[Iterable[str]] = (), created_at: int | None = None) -> Self:
        tags = normalize_tags(tags)
        created_at = int(time.time()) if created_at is None else created_at
        return cls(id=event_id(pubkey, created_at, kind, tags, content), pubkey=pubkey, created_at=created_at, kind=kind, tags=tags, content=content)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        if not isinstance(data, Mapping):
            raise InvalidEvent('event must be a JSON object')
        kind = _get(data, 'kind', int)
        if not 0 <= kind <= 65535:
            raise InvalidEvent(f'invalid event kind: {kind}')
        created_at = _get(data, 'created_at', int)
        if created_at < 0:
            raise InvalidEvent(f'invalid event timestamp: {created_at}')
        return cls(
            id=_get_hex(data, 'id', _hex32),
            pubkey=_get_hex(data, 'pubkey', _hex32),
            created_at=created_at,
            kind=kind,
            tags=_get_tags(data),
            content=_get(data, 'content', str),
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> Self:
        try:
            document = json.loads(data)
        except (ValueError, RecursionError) as exc:  # also covers oversized numbers and decoding errors
            raise InvalidEvent(f'event is not valid JSON: {exc}') from exc
        return cls.from_mapping(document)

    def to_mapping(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'pubkey': self.pubkey,
            'created_at': self.created_at,
            'kind': self.kind,
            'tags': [list(tag) for tag in self.tags],
            'content': self.content,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_mapping(), separators=(',', ':'), ensure_ascii=False)

    @property
    def computed_id(self) -> str:
        return event_id(self.pubkey, self.created_at, self.kind, self.tags, self.content)

    def has_valid_id(self) -> bool:
        return self.id == self.computed_id

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag with the given name"""
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]


@dataclass(frozen=True, slots=True, kw_only=True)
class SignedEvent(PlainMessage):
    sig: str

    @classmethod
    def sign(cls, identity: Identity, *, kind: int, content: str = '', tags: Iterable[Iterable[str]] = (), created_at: int | None = None) -> Self:
        tags = normalize_tags(tags)
        created_at = int(time.time()) if created_at is None else created_at
        identifier = event_id(identity.public_key, created_at, kind, tags, content)
        signature = identity.sign(bytes.fromhex(identifier))
        return cls(id=identifier, pubkey=identity.public_key, created_at=created_at, kind=kind, tags=tags, content=content, sig=signature)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        message = PlainMessage.from_mapping(data)
        return cls(
            id=message.id,
            pubkey=message.pubkey,
            created_at=message.created_at,
            kind=message.kind,
            tags=message.tags,
            content=message.content,
            sig=_get_hex(data, 'sig', _hex64),
        )

    def to_mapping(self) -> dict[str, Any]:
        return super(SignedEvent, self).to_mapping() | {'sig': self.sig}

    def has_valid_signature(self) -> bool:
        return verify_signature(self.pubkey, bytes.fromhex(self.id), self.sig)

    def verify(self) -> bool:
        """Check both the identifier and the signature of the event"""
        return self.has_valid_id() and self.has_valid_signature()
