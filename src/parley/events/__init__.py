# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from . import kinds
from .envelope import DEFAULT_TIMESTAMP_WINDOW, create_message, seal, send_with_self_copy, unwrap, wrap
from .event import PlainMessage, SignedEvent, Tag, Tags, event_id
from .exceptions import InvalidEvent, UnknownKindError, UnwrapFailed, UnwrapFailure
from .kinds import Kind
from .threads import EventReference, Marker, ParticipantReference, ThreadContext, mark_reply, mark_root, next_reply_tags, read_context, thread_root

__all__ = (  # noqa: RUF022
    'kinds',
    'Kind',

    'PlainMessage',
    'SignedEvent',
    'Tag',
    'Tags',
    'event_id',

    'DEFAULT_TIMESTAMP_WINDOW',
    'create_message',
    'seal',
    'wrap',
    'unwrap',
    'send_with_self_copy',

    'Marker',
    'EventReference',
    'ParticipantReference',
    'ThreadContext',
    'mark_root',
    'mark_reply',
    'read_context',
    'thread_root',
    'next_reply_tags',

    'InvalidEvent',
    'UnknownKindError',
    'UnwrapFailed',
    'UnwrapFailure',
)
