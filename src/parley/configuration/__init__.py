# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Iterable
from pathlib import Path

from parley.crypto import FileKeyStore, Identity, KeyStore, MemoryKeyStore
from parley.events import DEFAULT_TIMESTAMP_WINDOW
from parley.relay import RelayTransport
from parley.reservations import MessageArchive, PayloadCodec, ReservationOutbox, ReservationSubscription
from parley.reservations.payloads import SchemaVersion
from parley.reservations.subscription import ErrorCallback, MessageCallback, ReadyCallback

from .xml import BooleanAdapter, ConfigurationError, IntegerAdapter, MultiDataElement, Namespace, OptionalDataElement, PositiveIntegerAdapter, XMLElement

__all__ = 'ClientConfiguration', 'ConfigurationError', 'ns_client'


ns_client = Namespace('urn:parley:params:xml:ns:client-config', schema='client.rng', prefix=None)


class SchemaVersionAdapter(IntegerAdapter, min_value=min(SchemaVersion), max_value=max(SchemaVersion), name='schema version'):
    pass


class ClientConfiguration(XMLElement, name='client-configuration', namespace=ns_client):
    relays: MultiDataElement[str] = MultiDataElement(str, name='relay')
    self_copy: OptionalDataElement[bool] = OptionalDataElement(bool, adapter=BooleanAdapter, default=True)
    timestamp_window: OptionalDataElement[int] = OptionalDataElement(int, adapter=PositiveIntegerAdapter, default=DEFAULT_TIMESTAMP_WINDOW)
    schema_version: OptionalDataElement[int] = OptionalDataElement(int, adapter=SchemaVersionAdapter, default=SchemaVersion.V2.value)
    key_file: OptionalDataElement[str] = OptionalDataElement(str, default=None)
    archive_file: OptionalDataElement[str] = OptionalDataElement(str, default=None)

    @property
    def payload_schema(self) -> SchemaVersion:
        return SchemaVersion(self.schema_version)

    @property
    def key_path(self) -> Path | None:
        return Path(self.key_file).expanduser() if self.key_file is not None else None

    @property
    def archive_path(self) -> Path | None:
        return Path(self.archive_file).expanduser() if self.archive_file is not None else None

    def create_key_store(self, *, password: str | None = None) -> KeyStore:
        """Return a key store backed by the configured key file, or an in-memory one when there is none"""
        if self.key_path is None:
            return MemoryKeyStore()
        return FileKeyStore(self.key_path, password=password)

    def create_archive(self) -> MessageArchive | None:
        return MessageArchive(self.archive_path) if self.archive_path is not None else None

    def create_outbox(self, transport: RelayTransport, key_store: KeyStore | None = None) -> ReservationOutbox:
        if key_store is None:
            key_store = self.create_key_store()
        return ReservationOutbox(
            transport,
            self.relays,
            key_store,
            codec=PayloadCodec(self.payload_schema),
            self_copy=self.self_copy,
            timestamp_window=self.timestamp_window,
        )

    def create_subscription(
        self,
        transport: RelayTransport,
        identity: Identity,
        *,
        on_message: MessageCallback,
        on_error: ErrorCallback | None = None,
        on_ready: ReadyCallback | None = None,
        seen: Iterable[str] = (),
    ) -> ReservationSubscription:
        return ReservationSubscription(
            transport,
            self.relays,
            identity,
            on_message=on_message,
            on_error=on_error,
            on_ready=on_ready,
            codec=PayloadCodec(self.payload_schema),
            seen=seen,
        )
