# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import hashlib
import json
import time

import pytest

from parley.crypto import Identity, cipher
from parley.events import (
    EventReference,
    InvalidEvent,
    Kind,
    Marker,
    PlainMessage,
    SignedEvent,
    ThreadContext,
    UnknownKindError,
    UnwrapFailed,
    UnwrapFailure,
    create_message,
    kinds,
    mark_reply,
    mark_root,
    next_reply_tags,
    read_context,
    seal,
    send_with_self_copy,
    thread_root,
    unwrap,
    wrap,
)


class TestKinds:

    def test_lookup(self) -> None:
        assert Kind.lookup(1059) is kinds.GiftWrap
        assert Kind.lookup('seal') is kinds.Seal
        assert Kind.lookup(9901) is kinds.ReservationRequest
        with pytest.raises(UnknownKindError):
            Kind.lookup(4242)
        with pytest.raises(UnknownKindError):
            Kind.lookup('no-such-kind')

    def test_registration(self) -> None:
        with pytest.raises(ValueError, match=r'The Kind id is already used by another Kind'):
            Kind(id=13, name='other-seal', layer=kinds.Layer.SEAL)
        with pytest.raises(ValueError, match=r'The Kind name is already used by another Kind'):
            Kind(id=65000, name='seal', layer=kinds.Layer.SEAL)
        with pytest.raises(ValueError, match=r'unsigned 16-bit integer'):
            Kind(id=70000, name='too-large', layer=kinds.Layer.PUBLIC)


class TestEvents:

    def test_message_id(self) -> None:
        message = PlainMessage.create(pubkey='ab' * 32, kind=1, content='hello', tags=[['p', 'cd' * 32]], created_at=1700000000)
        serialized = json.dumps([0, 'ab' * 32, 1700000000, 1, [['p', 'cd' * 32]], 'hello'], separators=(',', ':'))
        assert message.id == hashlib.sha256(serialized.encode()).hexdigest()
        assert message.has_valid_id()
        assert message.tags == (('p', 'cd' * 32),)
        assert message.tag_values('p') == ['cd' * 32]

    def test_message_id_covers_non_ascii_content(self) -> None:
        message = PlainMessage.create(pubkey='ab' * 32, kind=1, content='crème brûlée', created_at=1700000000)
        assert 'crème brûlée' in message.to_json()
        assert PlainMessage.from_json(message.to_json()) == message
        assert PlainMessage.from_json(message.to_json()).has_valid_id()

    def test_from_mapping(self) -> None:
        message = PlainMessage.create(pubkey='ab' * 32, kind=9901, content='', tags=[['e', '01' * 32, '', 'root']], created_at=1700000000)
        assert PlainMessage.from_mapping(message.to_mapping()) == message

        for field in ('id', 'pubkey', 'created_at', 'kind', 'tags', 'content'):
            data = message.to_mapping()
            del data[field]
            with pytest.raises(InvalidEvent, match=rf'missing event field {field!r}'):
                PlainMessage.from_mapping(data)

        with pytest.raises(InvalidEvent, match=r'must be of type int'):
            PlainMessage.from_mapping(message.to_mapping() | {'kind': '9901'})
        with pytest.raises(InvalidEvent, match=r'must be of type int'):
            PlainMessage.from_mapping(message.to_mapping() | {'created_at': True})
        with pytest.raises(InvalidEvent, match=r'not a valid hex string'):
            PlainMessage.from_mapping(message.to_mapping() | {'pubkey': 'AB' * 32})
        with pytest.raises(InvalidEvent, match=r'lists of strings'):
            PlainMessage.from_mapping(message.to_mapping() | {'tags': [['p', 1]]})
        with pytest.raises(InvalidEvent, match=r'invalid event kind'):
            PlainMessage.from_mapping(message.to_mapping() | {'kind': 65536})
        with pytest.raises(InvalidEvent, match=r'must be a JSON object'):
            PlainMessage.from_mapping(['not', 'an', 'object'])  # type: ignore[arg-type]
        with pytest.raises(InvalidEvent, match=r'not valid JSON'):
            PlainMessage.from_json('{')
        with pytest.raises(InvalidEvent, match=r'not valid JSON'):
            PlainMessage.from_json('{"id":' + '1' * 5000 + '}')
        with pytest.raises(InvalidEvent, match=r'not valid JSON'):
            PlainMessage.from_json('[' * 100000)

    def test_signed_event(self) -> None:
        identity = Identity.generate()
        event = SignedEvent.sign(identity, kind=1, content='hello', tags=[['t', 'test']])
        assert event.pubkey == identity.public_key
        assert event.verify()
        assert SignedEvent.from_json(event.to_json()) == event

        tampered = SignedEvent.from_mapping(event.to_mapping() | {'content': 'goodbye'})
        assert not tampered.has_valid_id()
        assert not tampered.verify()

        forged = SignedEvent.from_mapping(event.to_mapping() | {'pubkey': Identity.generate().public_key})
        assert not forged.verify()

        with pytest.raises(InvalidEvent, match=r"missing event field 'sig'"):
            SignedEvent.from_mapping(PlainMessage.create(pubkey=identity.public_key, kind=1).to_mapping())


class TestThreadTagger:
    root_id = '01' * 32
    reply_id = '02' * 32

    def test_mark_root(self) -> None:
        tags = (('p', 'ab' * 32),)
        marked = mark_root(tags, self.root_id)
        assert tags == (('p', 'ab' * 32),)
        assert marked == (('p', 'ab' * 32), ('e', self.root_id, '', 'root'))
        assert mark_root([], self.root_id, 'wss://relay.example.com') == (('e', self.root_id, 'wss://relay.example.com', 'root'),)

    def test_mark_reply(self) -> None:
        tags = [['p', 'ab' * 32]]
        marked = mark_reply(tags, self.root_id, self.reply_id, relays=('wss://one.example.com', None))
        assert tags == [['p', 'ab' * 32]]
        assert marked == (
            ('p', 'ab' * 32),
            ('e', self.root_id, 'wss://one.example.com', 'root'),
            ('e', self.reply_id, '', 'reply'),
        )

    def test_read_context(self) -> None:
        message = PlainMessage.create(pubkey='ab' * 32, kind=1, tags=mark_reply((), self.root_id, self.reply_id, relays=('wss://one.example.com', None)))
        assert read_context(message) == ThreadContext(root_id=self.root_id, reply_to_id=self.reply_id, root_relay='wss://one.example.com')
        assert thread_root(message) == self.root_id

    def test_read_context_of_root(self) -> None:
        message = PlainMessage.create(pubkey='ab' * 32, kind=1, tags=[['p', 'cd' * 32], ['e', '03' * 32], ['e', '04' * 32, '', 'mention']])
        context = read_context(message)
        assert context.is_root
        assert thread_root(message) == message.id

    def test_read_context_uses_first_marker(self) -> None:
        tags = [['e', '03' * 32, '', 'root'], ['e', '04' * 32, '', 'root'], ['e', '05' * 32, '', 'reply'], ['e', '06' * 32, '', 'reply']]
        context = read_context(PlainMessage.create(pubkey='ab' * 32, kind=1, tags=tags))
        assert context.root_id == '03' * 32
        assert context.reply_to_id == '05' * 32

    def test_event_reference(self) -> None:
        assert EventReference.from_tag(['e', self.root_id, '', 'root']) == EventReference(self.root_id, Marker.ROOT)
        assert EventReference.from_tag(['e', self.root_id]) is None
        assert EventReference.from_tag(['e', '', '', 'root']) is None
        assert EventReference.from_tag(['p', self.root_id, '', 'root']) is None

    def test_next_reply_tags_from_root(self) -> None:
        alice = 'aa' * 32
        previous = PlainMessage.create(pubkey=alice, kind=9901, tags=[['p', 'bb' * 32]])
        tags = next_reply_tags(previous)
        assert tags == (
            ('e', previous.id, '', 'root'),
            ('e', previous.id, '', 'reply'),
            ('p', alice),
        )

    def test_next_reply_tags_in_thread(self) -> None:
        alice, bob, carol = 'aa' * 32, 'bb' * 32, 'cc' * 32
        previous = PlainMessage.create(pubkey=bob, kind=9903, tags=mark_reply([['p', alice]], self.root_id, self.reply_id, relays=('wss://relay.example.com', None)))
        tags = next_reply_tags(previous, [carol, bob, carol])
        assert tags == (
            ('e', self.root_id, 'wss://relay.example.com', 'root'),
            ('e', previous.id, '', 'reply'),
            ('p', bob),
            ('p', carol),
        )


class TestEnvelope:

    def setup_method(self) -> None:
        self.alice = Identity.generate()
        self.bob = Identity.generate()
        self.message = create_message(self.alice, kind=kinds.ReservationRequest.id, content='window seat please', tags=[['p', self.bob.public_key], ['party_size', '2']])

    def test_round_trip(self) -> None:
        envelope = wrap(seal(self.message, self.alice, self.bob.public_key), self.bob.public_key)
        assert unwrap(envelope, self.bob) == self.message

    def test_layers(self) -> None:
        sealed = seal(self.message, self.alice, self.bob.public_key)
        assert sealed.kind == kinds.Seal.id
        assert sealed.pubkey == self.alice.public_key
        assert sealed.tags == ()
        assert sealed.verify()
        assert 'window seat' not in sealed.content

        envelope = wrap(sealed, self.bob.public_key)
        assert envelope.kind == kinds.GiftWrap.id
        assert envelope.tags == (('p', self.bob.public_key),)
        assert envelope.pubkey not in (self.alice.public_key, self.bob.public_key)
        assert envelope.verify()

    def test_ephemeral_keys_are_not_reused(self) -> None:
        sealed = seal(self.message, self.alice, self.bob.public_key)
        assert wrap(sealed, self.bob.public_key).pubkey != wrap(sealed, self.bob.public_key).pubkey

    def test_randomized_timestamps(self) -> None:
        now = int(time.time())
        for _ in range(10):
            envelope = wrap(seal(self.message, self.alice, self.bob.public_key, timestamp_window=3600), self.bob.public_key, timestamp_window=3600)
            assert now - 3600 < envelope.created_at <= now + 1
        with pytest.raises(ValueError, match=r'positive number of seconds'):
            seal(self.message, self.alice, self.bob.public_key, timestamp_window=0)

    def test_seal_checks_the_author(self) -> None:
        with pytest.raises(ValueError, match=r'does not match the sender'):
            seal(self.message, self.bob, self.alice.public_key)

    def test_self_copy(self) -> None:
        recipient_copy, self_copy = send_with_self_copy(self.message, self.alice, self.bob.public_key)
        assert recipient_copy.id != self_copy.id
        assert recipient_copy.tag_values('p') == [self.bob.public_key]
        assert self_copy.tag_values('p') == [self.alice.public_key]
        assert unwrap(recipient_copy, self.bob).id == unwrap(self_copy, self.alice).id == self.message.id

    def test_wrong_recipient(self) -> None:
        envelope = wrap(seal(self.message, self.alice, self.bob.public_key), self.bob.public_key)
        with pytest.raises(UnwrapFailed) as exc_info:
            unwrap(envelope, Identity.generate())
        assert exc_info.value.reason is UnwrapFailure.AUTHENTICATION

    def test_not_an_envelope(self) -> None:
        event = SignedEvent.sign(self.alice, kind=1, content='hello')
        with pytest.raises(UnwrapFailed, match=r'expected an envelope of kind 1059') as exc_info:
            unwrap(event, self.bob)
        assert exc_info.value.reason is UnwrapFailure.STRUCTURAL

    def test_forged_author(self) -> None:
        mallory = Identity.generate()
        content = cipher.encrypt(self.message.to_json(), mallory.conversation_key(self.bob.public_key))
        sealed = SignedEvent.sign(mallory, kind=kinds.Seal.id, content=content)
        with pytest.raises(UnwrapFailed, match=r'does not match the seal signer') as exc_info:
            unwrap(wrap(sealed, self.bob.public_key), self.bob)
        assert exc_info.value.reason is UnwrapFailure.STRUCTURAL

    def test_invalid_seal_signature(self) -> None:
        sealed = seal(self.message, self.alice, self.bob.public_key)
        forged = SignedEvent.from_mapping(sealed.to_mapping() | {'sig': SignedEvent.sign(self.alice, kind=1).sig})
        with pytest.raises(UnwrapFailed, match=r'seal signature is invalid') as exc_info:
            unwrap(wrap(forged, self.bob.public_key), self.bob)
        assert exc_info.value.reason is UnwrapFailure.STRUCTURAL

    def test_message_id_mismatch(self) -> None:
        altered = PlainMessage.from_mapping(self.message.to_mapping() | {'content': 'altered'})
        content = cipher.encrypt(altered.to_json(), self.alice.conversation_key(self.bob.public_key))
        sealed = SignedEvent.sign(self.alice, kind=kinds.Seal.id, content=content)
        with pytest.raises(UnwrapFailed, match=r'message id does not match') as exc_info:
            unwrap(wrap(sealed, self.bob.public_key), self.bob)
        assert exc_info.value.reason is UnwrapFailure.STRUCTURAL

    def test_envelope_without_a_seal(self) -> None:
        ephemeral = Identity.generate()
        envelope = SignedEvent.sign(ephemeral, kind=kinds.GiftWrap.id, content=cipher.encrypt('not a seal', ephemeral.conversation_key(self.bob.public_key)), tags=[['p', self.bob.public_key]])
        with pytest.raises(UnwrapFailed, match=r'does not contain a valid seal') as exc_info:
            unwrap(envelope, self.bob)
        assert exc_info.value.reason is UnwrapFailure.STRUCTURAL

    def test_envelope_with_an_oversized_number(self) -> None:
        ephemeral = Identity.generate()
        content = cipher.encrypt('{"id":' + '1' * 5000 + '}', ephemeral.conversation_key(self.bob.public_key))
        envelope = SignedEvent.sign(ephemeral, kind=kinds.GiftWrap.id, content=content, tags=[['p', self.bob.public_key]])
        with pytest.raises(UnwrapFailed, match=r'does not contain a valid seal') as exc_info:
            unwrap(envelope, self.bob)
        assert exc_info.value.reason is UnwrapFailure.STRUCTURAL

    def test_envelope_layers_cannot_be_sealed(self) -> None:
        for kind in (kinds.Seal.id, kinds.GiftWrap.id):
            with pytest.raises(ValueError, match=r'envelope layer'):
                seal(create_message(self.alice, kind=kind), self.alice, self.bob.public_key)

    def test_nested_envelope_layer(self) -> None:
        message = create_message(self.alice, kind=kinds.GiftWrap.id, tags=[['p', self.bob.public_key]])
        content = cipher.encrypt(message.to_json(), self.alice.conversation_key(self.bob.public_key))
        sealed = SignedEvent.sign(self.alice, kind=kinds.Seal.id, content=content)
        with pytest.raises(UnwrapFailed, match=r'another envelope layer of kind 1059') as exc_info:
            unwrap(wrap(sealed, self.bob.public_key), self.bob)
        assert exc_info.value.reason is UnwrapFailure.STRUCTURAL
