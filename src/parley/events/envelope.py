# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
The three layer envelope used to exchange private messages.

    PlainMessage   unsigned, carries the actual content and the real author
    SealedMessage  the encrypted plain message, signed by the real author
    OuterEnvelope  the encrypted seal, signed by a single use key and
                   tagged with the recipient public key

Only the outer envelope is ever published. Relays and observers can see
who it is addressed to, but neither the author nor the content.
"""

import secrets
import time
from collections.abc import Iterable
from typing import Final

from parley.crypto import AuthenticationFailed, Identity, InvalidPeerKey, MalformedPayload, PublicKey, cipher

from .event import PlainMessage, SignedEvent
from .exceptions import InvalidEvent, UnknownKindError, UnwrapFailed, UnwrapFailure
from .kinds import GiftWrap, Kind, Layer, Seal

__all__ = 'DEFAULT_TIMESTAMP_WINDOW', 'create_message', 'seal', 'wrap', 'unwrap', 'send_with_self_copy'  # noqa: RUF022


DEFAULT_TIMESTAMP_WINDOW: Final = 2 * 24 * 60 * 60  # two days


def _randomized_timestamp(window: int, now: int | None = None) -> int:
    if window <= 0:
        raise ValueError('the timestamp window must be a positive number of seconds')
    now = int(time.time()) if now is None else now
    return now - secrets.randbelow(window)


def _is_envelope_layer(kind: int) -> bool:
    try:
        return Kind.lookup(kind).layer in {Layer.SEAL, Layer.WRAP}
    except UnknownKindError:
        return False


def create_message(author: Identity, *, kind: int, content: str = '', tags: Iterable[Iterable[str]] = (), created_at: int | None = None) -> PlainMessage:
    return PlainMessage.create(pubkey=author.public_key, kind=kind, content=content, tags=tags, created_at=created_at)


def seal(message: PlainMessage, sender: Identity, recipient: PublicKey, *, timestamp_window: int = DEFAULT_TIMESTAMP_WINDOW) -> SignedEvent:
    if message.pubkey != sender.public_key:
        raise ValueError('the message author does not match the sender identity')
    if not message.has_valid_id():
        raise ValueError('the message id does not match its content')
    if _is_envelope_layer(message.kind):
        raise ValueError(f'cannot seal a message of kind {message.kind}, which is an envelope layer')
    content = cipher.encrypt(message.to_json(), sender.conversation_key(recipient))
    return SignedEvent.sign(sender, kind=Seal.id, content=content, created_at=_randomized_timestamp(timestamp_window))


def wrap(sealed: SignedEvent, recipient: PublicKey, *, timestamp_window: int = DEFAULT_TIMESTAMP_WINDOW) -> SignedEvent:
    ephemeral = Identity.generate()
    content = cipher.encrypt(sealed.to_json(), ephemeral.conversation_key(recipient))
    return SignedEvent.sign(ephemeral, kind=GiftWrap.id, content=content, tags=[('p', recipient)], created_at=_randomized_timestamp(timestamp_window))


def _open(event: SignedEvent, identity: Identity, layer: str) -> str:
    try:
        return cipher.decrypt(event.content, identity.conversation_key(event.pubkey)).decode()
    except (InvalidPeerKey, MalformedPayload, AuthenticationFailed) as exc:
        raise UnwrapFailed(UnwrapFailure.AUTHENTICATION, f'cannot decrypt the {layer}: {exc}') from exc
    except UnicodeDecodeError as exc:
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, f'the {layer} content is not valid UTF-8') from exc


def unwrap(envelope: SignedEvent, identity: Identity) -> PlainMessage:
    if envelope.kind != GiftWrap.id:
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, f'expected an envelope of kind {GiftWrap.id}, got {envelope.kind}')
    try:
        sealed = SignedEvent.from_json(_open(envelope, identity, 'envelope'))
    except InvalidEvent as exc:
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, f'the envelope does not contain a valid seal: {exc}') from exc
    if sealed.kind != Seal.id:
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, f'expected a seal of kind {Seal.id}, got {sealed.kind}')
    if not sealed.has_valid_id():
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, 'the seal id does not match its content')
    if not sealed.has_valid_signature():
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, 'the seal signature is invalid')
    try:
        message = PlainMessage.from_json(_open(sealed, identity, 'seal'))
    except InvalidEvent as exc:
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, f'the seal does not contain a valid message: {exc}') from exc
    if message.pubkey != sealed.pubkey:
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, 'the message author does not match the seal signer')
    if not message.has_valid_id():
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, 'the message id does not match its content')
    if _is_envelope_layer(message.kind):
        raise UnwrapFailed(UnwrapFailure.STRUCTURAL, f'the seal contains another envelope layer of kind {message.kind}')
    return message


def send_with_self_copy(message: PlainMessage, sender: Identity, recipient: PublicKey, *, timestamp_window: int = DEFAULT_TIMESTAMP_WINDOW) -> tuple[SignedEvent, SignedEvent]:
    """
    Wrap the same message for the recipient and for the sender itself.

    The copy addressed to the sender lets any of its clients recover the
    outgoing side of the conversation from the relays.
    """
    recipient_copy = wrap(seal(message, sender, recipient, timestamp_window=timestamp_window), recipient, timestamp_window=timestamp_window)
    self_copy = wrap(seal(message, sender, sender.public_key, timestamp_window=timestamp_window), sender.public_key, timestamp_window=timestamp_window)
    return recipient_copy, self_copy
