# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from . import cipher
from .exceptions import AuthenticationFailed, CryptoError, EmptyPlaintext, InvalidPeerKey, InvalidPrivateKey, MalformedPayload, PlaintextTooLarge
from .keys import Identity, PublicKey, conversation_key, public_key_of, verify_signature
from .storage import FileKeyStore, KeyStore, MemoryKeyStore, load_private_key, save_private_key

__all__ = (  # noqa: RUF022
    'cipher',

    'Identity',
    'PublicKey',
    'conversation_key',
    'public_key_of',
    'verify_signature',

    'KeyStore',
    'FileKeyStore',
    'MemoryKeyStore',
    'load_private_key',
    'save_private_key',

    'CryptoError',
    'InvalidPeerKey',
    'InvalidPrivateKey',
    'EmptyPlaintext',
    'PlaintextTooLarge',
    'MalformedPayload',
    'AuthenticationFailed',
)
