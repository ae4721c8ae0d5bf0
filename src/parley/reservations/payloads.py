# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Reservation payloads and their encoding as message tags.

Every payload field is carried by a single value tag named after the
field, for example ``["party_size", "4"]`` or ``["tzid", "Europe/Paris"]``.
Times are unix timestamps and are interpreted in the time zone given by
the ``tzid`` tag. The free text note is carried by the message content.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any, ClassVar, Final
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from parley.crypto import Identity, PublicKey
from parley.events import PlainMessage, Tags, UnknownKindError, create_message, kinds
from parley.python.types import StringEnum

from .exceptions import InvalidPayload

__all__ = (  # noqa: RUF022
    'ReservationStatus',
    'SchemaVersion',
    'ReservationRequest',
    'ReservationResponse',
    'ReservationModificationRequest',
    'ReservationModificationResponse',
    'ReservationPayload',
    'PayloadCodec',
    'local_timestamp',
)


MIN_PARTY_SIZE: Final = 1
MAX_PARTY_SIZE: Final = 20


class ReservationStatus(StringEnum):
    CONFIRMED = 'confirmed'
    DECLINED = 'declined'
    SUGGESTED = 'suggested'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'


class SchemaVersion(IntEnum):
    V1 = 1  # allows suggesting another time and expiring requests in responses
    V2 = 2

    @property
    def response_statuses(self) -> frozenset[ReservationStatus]:
        return _response_statuses[self]

    @property
    def modification_statuses(self) -> frozenset[ReservationStatus]:
        return frozenset({ReservationStatus.CONFIRMED, ReservationStatus.DECLINED})


_response_statuses: Final[Mapping[SchemaVersion, frozenset[ReservationStatus]]] = {
    SchemaVersion.V1: frozenset(ReservationStatus),
    SchemaVersion.V2: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.DECLINED, ReservationStatus.CANCELLED}),
}


def local_timestamp(value: str | datetime, tzid: str) -> int:
    """Return the unix timestamp for an ISO 8601 time, with naive times taken to be in the tzid zone"""
    moment = datetime.fromisoformat(value) if isinstance(value, str) else value
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=_zone(tzid))
    return int(moment.timestamp())


def _zone(tzid: str) -> ZoneInfo:
    try:
        return ZoneInfo(tzid)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidPayload('tzid', f'unknown time zone {tzid!r}') from exc


def _parse_int(value: str) -> int:
    if not value.strip().lstrip('-').isdigit():
        raise ValueError(f'not an integer: {value!r}')
    return int(value)


@dataclass(frozen=True, slots=True)
class TagField:
    attribute: str
    tag: str
    parse: Callable[[str], Any] = str
    build: Callable[[Any], str] = str
    required: bool = False


_details_fields: Final = (
    TagField('party_size', 'party_size', _parse_int, required=True),
    TagField('time', 'time', _parse_int, required=True),
    TagField('tzid', 'tzid', required=True),
    TagField('duration', 'duration', _parse_int),
    TagField('earliest_time', 'earliest_time', _parse_int),
    TagField('latest_time', 'latest_time', _parse_int),
    TagField('name', 'name'),
    TagField('telephone', 'telephone'),
    TagField('email', 'email'),
)

_answer_fields: Final = (
    TagField('status', 'status', ReservationStatus, required=True),
    TagField('time', 'time', _parse_int),
    TagField('tzid', 'tzid'),
    TagField('duration', 'duration', _parse_int),
)


def _check_schedule(time: int | None, tzid: str | None) -> None:
    if (time is None) != (tzid is None):
        raise InvalidPayload('tzid' if tzid is None else 'time', 'time and tzid must be given together')
    if time is not None and time < 0:
        raise InvalidPayload('time', f'invalid timestamp {time}')
    if tzid is not None:
        _zone(tzid)


def _check_duration(duration: int | None) -> None:
    if duration is not None and duration <= 0:
        raise InvalidPayload('duration', 'the duration must be a positive number of seconds')


class _Scheduled:
    __slots__ = ()

    time: int | None
    tzid: str | None

    @property
    def local_time(self) -> datetime | None:
        if self.time is None or self.tzid is None:
            return None
        return datetime.fromtimestamp(self.time, _zone(self.tzid))


@dataclass(frozen=True, slots=True, kw_only=True)
class _ReservationDetails(_Scheduled):
    kind: ClassVar[kinds.Kind]
    tag_fields: ClassVar[tuple[TagField, ...]] = _details_fields

    party_size: int
    time: int
    tzid: str
    duration: int | None = None
    earliest_time: int | None = None
    latest_time: int | None = None
    name: str | None = None
    telephone: str | None = None
    email: str | None = None
    message: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.party_size, bool) or not MIN_PARTY_SIZE <= self.party_size <= MAX_PARTY_SIZE:
            raise InvalidPayload('party_size', f'must be between {MIN_PARTY_SIZE} and {MAX_PARTY_SIZE}, got {self.party_size}')
        _check_schedule(self.time, self.tzid)
        _check_duration(self.duration)
        if self.earliest_time is not None and self.latest_time is not None and self.earliest_time > self.latest_time:
            raise InvalidPayload('earliest_time', 'the earliest time is after the latest time')
        if self.telephone is not None and not self.telephone.startswith('tel:'):
            object.__setattr__(self, 'telephone', f'tel:{self.telephone.strip()}')
        if self.email is not None:
            if not self.email.startswith('mailto:'):
                object.__setattr__(self, 'email', f'mailto:{self.email.strip()}')
            if '@' not in self.email:
                raise InvalidPayload('email', f'invalid email address {self.email!r}')


@dataclass(frozen=True, slots=True, kw_only=True)
class _ReservationAnswer(_Scheduled):
    kind: ClassVar[kinds.Kind]
    tag_fields: ClassVar[tuple[TagField, ...]] = _answer_fields
    scheduled_statuses: ClassVar[frozenset[ReservationStatus]] = frozenset()

    status: ReservationStatus
    time: int | None = None
    tzid: str | None = None
    duration: int | None = None
    message: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.status, ReservationStatus):
            try:
                object.__setattr__(self, 'status', ReservationStatus(self.status))
            except ValueError as exc:
                raise InvalidPayload('status', f'unknown status {self.status!r}') from exc
        _check_schedule(self.time, self.tzid)
        _check_duration(self.duration)
        if self.status in self.scheduled_statuses and self.time is None:
            raise InvalidPayload('time', f'a {self.status} answer must include the reservation time')


@dataclass(frozen=True, slots=True, kw_only=True)
class ReservationRequest(_ReservationDetails):
    kind: ClassVar[kinds.Kind] = kinds.ReservationRequest


@dataclass(frozen=True, slots=True, kw_only=True)
class ReservationModificationRequest(_ReservationDetails):
    kind: ClassVar[kinds.Kind] = kinds.ReservationModificationRequest


@dataclass(frozen=True, slots=True, kw_only=True)
class ReservationResponse(_ReservationAnswer):
    kind: ClassVar[kinds.Kind] = kinds.ReservationResponse
    scheduled_statuses: ClassVar[frozenset[ReservationStatus]] = frozenset({ReservationStatus.CONFIRMED, ReservationStatus.SUGGESTED})


@dataclass(frozen=True, slots=True, kw_only=True)
class ReservationModificationResponse(_ReservationAnswer):
    kind: ClassVar[kinds.Kind] = kinds.ReservationModificationResponse


type ReservationPayload = ReservationRequest | ReservationResponse | ReservationModificationRequest | ReservationModificationResponse

_payload_types: Final[Mapping[int, type[ReservationPayload]]] = {
    payload_type.kind.id: payload_type for payload_type in (ReservationRequest, ReservationResponse, ReservationModificationRequest, ReservationModificationResponse)
}


class PayloadCodec:
    """Encodes and decodes reservation payloads according to one schema version"""

    def __init__(self, schema_version: SchemaVersion = SchemaVersion.V2) -> None:
        self.schema_version = SchemaVersion(schema_version)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.schema_version!r})'

    def _check_status(self, payload: ReservationPayload) -> None:
        match payload:
            case ReservationResponse(status=status) if status not in self.schema_version.response_statuses:
                raise InvalidPayload('status', f'{status} is not a valid response status in schema version {self.schema_version:d}')
            case ReservationModificationResponse(status=status) if status not in self.schema_version.modification_statuses:
                raise InvalidPayload('status', f'{status} is not a valid modification response status in schema version {self.schema_version:d}')

    def encode(self, payload: ReservationPayload) -> tuple[int, Tags, str]:
        self._check_status(payload)
        tags = tuple((field.tag, field.build(value)) for field in payload.tag_fields if (value := getattr(payload, field.attribute)) is not None)
        return payload.kind.id, tags, payload.message or ''

    def decode(self, message: PlainMessage) -> ReservationPayload:
        try:
            payload_type = _payload_types[message.kind]
        except KeyError as exc:
            raise UnknownKindError(f'Not a reservation message kind: {message.kind}') from exc
        values: dict[str, Any] = {}
        for field in payload_type.tag_fields:
            value = next((tag[1] for tag in message.tags if len(tag) >= 2 and tag[0] == field.tag), None)
            if value is None:
                if field.required:
                    raise InvalidPayload(field.attribute, 'missing required field')
                continue
            try:
                values[field.attribute] = field.parse(value)
            except ValueError as exc:
                raise InvalidPayload(field.attribute, f'invalid value {value!r}') from exc
        payload = payload_type(**values, message=message.content or None)
        self._check_status(payload)
        return payload

    def compose(self, payload: ReservationPayload, author: Identity, recipient: PublicKey, *, tags: Iterable[Iterable[str]] = (), created_at: int | None = None) -> PlainMessage:
        """Build the message carrying payload, addressed to recipient and with the extra tags (usually thread markers)"""
        kind, payload_tags, content = self.encode(payload)
        message_tags: list[tuple[str, ...]] = [('p', recipient)]
        for tag in (tuple(tag) for tag in tags):
            if tag not in message_tags:
                message_tags.append(tag)
        return create_message(author, kind=kind, content=content, tags=[*message_tags, *payload_tags], created_at=created_at)
