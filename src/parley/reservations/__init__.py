# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .archive import MessageArchive
from .exceptions import InvalidPayload, MissingPrivateKey
from .messages import MessageType, ReservationMessage
from .outbox import ReservationOutbox
from .payloads import (
    PayloadCodec,
    ReservationModificationRequest,
    ReservationModificationResponse,
    ReservationPayload,
    ReservationRequest,
    ReservationResponse,
    ReservationStatus,
    SchemaVersion,
    local_timestamp,
)
from .subscription import ReservationSubscription, SubscriptionState
from .threads import ConversationThread, ThreadAssembler, assemble_threads

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

    'MessageType',
    'ReservationMessage',

    'ReservationSubscription',
    'SubscriptionState',

    'ConversationThread',
    'ThreadAssembler',
    'assemble_threads',

    'ReservationOutbox',
    'MessageArchive',

    'InvalidPayload',
    'MissingPrivateKey',
)
