# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import asyncio
from os import PathLike
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Protocol

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, Encoding, NoEncryption, PrivateFormat, load_pem_private_key

from .keys import Identity

__all__ = 'KeyStore', 'FileKeyStore', 'MemoryKeyStore', 'load_private_key', 'save_private_key'  # noqa: RUF022


class KeyStore(Protocol):
    async def load_private_key(self) -> bytes | None: ...


def load_private_key(path: str | PathLike[str], *, password: str | None = None) -> bytes:
    key_data = Path(path).expanduser().read_bytes()
    key = load_pem_private_key(key_data, password=password.encode() if password is not None else None)
    match key:
        case ec.EllipticCurvePrivateKey(curve=ec.SECP256K1()):
            return key.private_numbers().private_value.to_bytes(32, 'big')
        case _:
            raise TypeError(f'Unsupported key type: {key.__class__.__qualname__!r} (expected a secp256k1 private key)')


def save_private_key(secret: bytes, path: str | PathLike[str], *, password: str | None = None) -> None:
    key = ec.derive_private_key(int.from_bytes(Identity(secret).secret, 'big'), ec.SECP256K1())
    key_encryption = BestAvailableEncryption(password.encode()) if password is not None else NoEncryption()
    key_data = key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, key_encryption)
    path = Path(path).expanduser()
    tempfile = NamedTemporaryFile(dir=path.parent, delete=False)
    try:
        with tempfile:
            tempfile.write(key_data)
        Path(tempfile.name).replace(path)
    except BaseException:
        Path(tempfile.name).unlink(missing_ok=True)
        raise


class FileKeyStore:
    """Keeps the private key in a PKCS#8 PEM file, optionally password protected"""

    def __init__(self, path: str | PathLike[str], *, password: str | None = None) -> None:
        self.path = Path(path).expanduser()
        self.password = password

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({str(self.path)!r})'

    async def load_private_key(self) -> bytes | None:
        try:
            return await asyncio.to_thread(load_private_key, self.path, password=self.password)
        except FileNotFoundError:
            return None

    async def save_private_key(self, secret: bytes) -> None:
        await asyncio.to_thread(save_private_key, secret, self.path, password=self.password)


class MemoryKeyStore:
    def __init__(self, secret: bytes | None = None) -> None:
        self.secret = secret

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}()'

    async def load_private_key(self) -> bytes | None:
        return self.secret

    async def save_private_key(self, secret: bytes) -> None:
        self.secret = secret
