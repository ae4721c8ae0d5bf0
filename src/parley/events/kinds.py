# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

# Kinds register themselves when they are defined, so that incoming events
# can be matched against them by their numeric id. The kinds used by the
# reservation protocol and by the envelope layers are all defined here.


from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import ClassVar, Final, Self, assert_never

from parley.python.types import StringEnum

from .exceptions import UnknownKindError

__all__ = 'Kind', 'KindID', 'KindName', 'Layer', 'TextNote', 'Seal', 'GiftWrap', 'ReservationRequest', 'ReservationResponse', 'ReservationModificationRequest', 'ReservationModificationResponse'  # noqa: RUF022


type KindID = int
type KindName = str


class Layer(StringEnum):
    CONTENT = 'content'  # carried inside a seal, never published on its own
    SEAL = 'seal'
    WRAP = 'wrap'
    PUBLIC = 'public'


@dataclass(kw_only=True, slots=True)
class Kind:
    id: Final[int]
    name: Final[str]
    layer: Final[Layer]

    _id_map: ClassVar[MutableMapping[int, Self]] = {}
    _name_map: ClassVar[MutableMapping[str, Self]] = {}

    def __post_init__(self) -> None:
        if not 0 <= self.id <= 65535:
            raise ValueError(f'The Kind id must be an unsigned 16-bit integer: {self.id}')
        if self.id in self._id_map:
            raise ValueError(f'The Kind id is already used by another Kind: {self._id_map[self.id]}')
        if self.name in self._name_map:
            raise ValueError(f'The Kind name is already used by another Kind: {self._name_map[self.name]}')
        self._id_map[self.id] = self
        self._name_map[self.name] = self

    @classmethod
    def lookup(cls, identifier: KindID | KindName) -> Self:
        try:
            match identifier:
                case int():
                    return cls._id_map[identifier]
                case str():
                    return cls._name_map[identifier]
                case _:
                    assert_never(identifier)
        except KeyError as exc:
            raise UnknownKindError(f'Unknown kind: {identifier!r}') from exc


TextNote = Kind(id=1, name='text-note', layer=Layer.PUBLIC)

Seal = Kind(id=13, name='seal', layer=Layer.SEAL)

GiftWrap = Kind(id=1059, name='gift-wrap', layer=Layer.WRAP)

ReservationRequest = Kind(id=9901, name='reservation-request', layer=Layer.CONTENT)

ReservationResponse = Kind(id=9902, name='reservation-response', layer=Layer.CONTENT)

ReservationModificationRequest = Kind(id=9903, name='reservation-modification-request', layer=Layer.CONTENT)

ReservationModificationResponse = Kind(id=9904, name='reservation-modification-response', layer=Layer.CONTENT)
