# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import json
import logging
import time
from collections.abc import Iterable
from os import PathLike
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Final

from parley.events import InvalidEvent, PlainMessage, SignedEvent, UnknownKindError

from .exceptions import InvalidPayload
from .messages import ReservationMessage
from .payloads import PayloadCodec

__all__ = 'ARCHIVE_VERSION', 'MessageArchive'


logger = logging.getLogger(__name__)


ARCHIVE_VERSION: Final = 2


class MessageArchive:
    """
    Keeps the received and sent reservation messages in a JSON file.

    Archives written with a different format version are ignored, and
    so are the entries that cannot be read back into messages.
    """

    def __init__(self, path: str | PathLike[str]) -> None:
        self.path = Path(path).expanduser()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({str(self.path)!r})'

    def load(self, codec: PayloadCodec | None = None) -> list[ReservationMessage]:
        codec = codec or PayloadCodec()
        try:
            document = json.loads(self.path.read_text())
        except FileNotFoundError:
            return []
        except (OSError, ValueError, RecursionError) as exc:
            logger.warning('Cannot read the message archive %s: %s', self.path, exc)
            return []
        if not isinstance(document, dict) or document.get('version') != ARCHIVE_VERSION:
            logger.warning('Ignoring the message archive %s with an unsupported version', self.path)
            return []
        entries = document.get('messages', [])
        if not isinstance(entries, list):
            logger.warning('Ignoring the message archive %s with an invalid message list', self.path)
            return []
        messages = []
        for entry in entries:
            try:
                messages.append(self._load_entry(entry, codec))
            except (InvalidEvent, InvalidPayload, UnknownKindError, TypeError, KeyError) as exc:
                logger.warning('Skipping invalid entry in the message archive %s: %s', self.path, exc)
        return self.merge([], messages)

    @staticmethod
    def _load_entry(entry: dict[str, Any], codec: PayloadCodec) -> ReservationMessage:
        rumor = PlainMessage.from_mapping(entry['rumor'])
        if not rumor.has_valid_id():
            raise InvalidEvent(f'message {rumor.id} has an invalid id')
        envelope = SignedEvent.from_mapping(entry['envelope']) if entry.get('envelope') is not None else None
        return ReservationMessage.classify(rumor, codec, envelope)

    def save(self, messages: Iterable[ReservationMessage]) -> None:
        document = {
            'version': ARCHIVE_VERSION,
            'messages': [
                {'rumor': message.rumor.to_mapping(), 'envelope': message.envelope.to_mapping() if message.envelope is not None else None}
                for message in self.merge([], messages)
            ],
            'last_updated': int(time.time() * 1000),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tempfile = NamedTemporaryFile('w', dir=self.path.parent, delete=False, encoding='utf-8')
        try:
            with tempfile:
                json.dump(document, tempfile, ensure_ascii=False)
            Path(tempfile.name).replace(self.path)
        except BaseException:
            Path(tempfile.name).unlink(missing_ok=True)
            raise

    @staticmethod
    def merge(existing: Iterable[ReservationMessage], incoming: Iterable[ReservationMessage]) -> list[ReservationMessage]:
        """Combine two message lists without duplicates, newest first"""
        messages: dict[str, ReservationMessage] = {}
        for message in (*existing, *incoming):
            messages.setdefault(message.id, message)
        return sorted(messages.values(), key=lambda message: message.created_at, reverse=True)
