# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Permanent file and metadata storage on Arweave.

NFT images and their JSON metadata are uploaded to Arweave and referenced by
URL from the on-chain Metaplex metadata. This module covers the subset of the
Arweave HTTP API needed for that:

- :class:`ArweaveWallet`: RSA-4096 JWK wallets, address derivation and
  RSA-PSS signing
- :class:`ArweaveTransaction`: format 2 transactions with a merkle
  ``data_root`` over 256 KiB chunks and deep-hash signature data
- :class:`ArweaveClient`: gateway queries, posting with chunked upload and
  the upload helpers returning :class:`UploadResult`
- :class:`StorageCostCalculator`: storage cost in AR and SOL from the gateway
  price endpoint and CoinGecko rates

Examples:
    Upload a file with a throwaway wallet::

        client = ArweaveClient()
        result = await client.upload_file("image.png", wallet=funded_wallet)
        print(result.url)
        await client.close()
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import math
import mimetypes
import os
import tempfile
import unittest
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import httpx
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .async_client import ApiError
from .wallet import SECRET_FILE_MODE

WINSTON_PER_AR = 10**12

MAX_CHUNK_SIZE = 256 * 1024
MIN_CHUNK_SIZE = 32 * 1024
NOTE_SIZE = 32

# Transactions whose data fits in one chunk are posted with the data inline.
MAX_CHUNKS_IN_BODY = 1

PSS_SALT_LENGTH = 32
KEY_SIZE = 4096
PUBLIC_EXPONENT = 65537

COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"
STORAGE_FEE_RATE = Decimal("0.15")


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def b64url_decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _int_to_b64url(value: int) -> str:
    return b64url_encode(value.to_bytes((value.bit_length() + 7) // 8, "big"))


def _b64url_to_int(value: str) -> int:
    return int.from_bytes(b64url_decode(value), "big")


def winston_to_ar(winston: Union[int, str]) -> Decimal:
    return Decimal(int(winston)) / WINSTON_PER_AR


def ar_to_winston(ar: Union[Decimal, str, int]) -> int:
    return int(Decimal(str(ar)) * WINSTON_PER_AR)


@dataclass(frozen=True)
class ArweaveConfig:
    host: str = "arweave.net"
    port: int = 443
    protocol: str = "https"
    timeout: float = 20.0

    @property
    def url(self) -> str:
        default_port = {"https": 443, "http": 80}.get(self.protocol)
        if self.port == default_port:
            return f"{self.protocol}://{self.host}"
        return f"{self.protocol}://{self.host}:{self.port}"


class ArweaveWallet:
    """RSA key pair in JWK form.

    The wallet address is the base64url SHA-256 of the modulus, which is
    also the transaction ``owner``.
    """

    private_key: rsa.RSAPrivateKey

    def __init__(self, private_key: rsa.RSAPrivateKey):
        self.private_key = private_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArweaveWallet):
            return NotImplemented
        return self.to_jwk() == other.to_jwk()

    @staticmethod
    def generate(key_size: int = KEY_SIZE) -> ArweaveWallet:
        return ArweaveWallet(
            rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
        )

    @staticmethod
    def from_jwk(jwk: Dict[str, Any]) -> ArweaveWallet:
        if jwk.get("kty") != "RSA":
            raise ValueError("Arweave wallets are RSA JWKs")
        public_numbers = rsa.RSAPublicNumbers(
            _b64url_to_int(jwk["e"]), _b64url_to_int(jwk["n"])
        )
        private_numbers = rsa.RSAPrivateNumbers(
            p=_b64url_to_int(jwk["p"]),
            q=_b64url_to_int(jwk["q"]),
            d=_b64url_to_int(jwk["d"]),
            dmp1=_b64url_to_int(jwk["dp"]),
            dmq1=_b64url_to_int(jwk["dq"]),
            iqmp=_b64url_to_int(jwk["qi"]),
            public_numbers=public_numbers,
        )
        return ArweaveWallet(private_numbers.private_key())

    @staticmethod
    def load(path: str) -> ArweaveWallet:
        with open(path) as file:
            return ArweaveWallet.from_jwk(json.load(file))

    def store(self, path: str):
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECRET_FILE_MODE)
        with os.fdopen(fd, "w") as file:
            json.dump(self.to_jwk(), file)

    def to_jwk(self) -> Dict[str, Any]:
        numbers = self.private_key.private_numbers()
        return {
            "kty": "RSA",
            "e": _int_to_b64url(numbers.public_numbers.e),
            "n": _int_to_b64url(numbers.public_numbers.n),
            "d": _int_to_b64url(numbers.d),
            "p": _int_to_b64url(numbers.p),
            "q": _int_to_b64url(numbers.q),
            "dp": _int_to_b64url(numbers.dmp1),
            "dq": _int_to_b64url(numbers.dmq1),
            "qi": _int_to_b64url(numbers.iqmp),
            "ext": True,
        }

    @property
    def owner(self) -> str:
        """Base64url modulus."""
        return _int_to_b64url(self.private_key.public_key().public_numbers().n)

    @property
    def address(self) -> str:
        return b64url_encode(hashlib.sha256(b64url_decode(self.owner)).digest())

    def sign(self, message: bytes) -> bytes:
        return self.private_key.sign(
            message,
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=PSS_SALT_LENGTH),
            hashes.SHA256(),
        )

    def verify(self, message: bytes, signature: bytes) -> bool:
        try:
            self.private_key.public_key().verify(
                signature,
                message,
                padding.PSS(
                    mgf=padding.MGF1(hashes.SHA256()), salt_length=PSS_SALT_LENGTH
                ),
                hashes.SHA256(),
            )
        except InvalidSignature:
            return False
        return True


DeepHashable = Union[bytes, Sequence["DeepHashable"]]


def deep_hash(data: DeepHashable) -> bytes:
    """Arweave's SHA-384 hash over nested byte lists."""
    if isinstance(data, (bytes, bytearray)):
        tag = hashlib.sha384(b"blob" + str(len(data)).encode()).digest()
        return hashlib.sha384(tag + hashlib.sha384(data).digest()).digest()

    accumulator = hashlib.sha384(b"list" + str(len(data)).encode()).digest()
    for item in data:
        accumulator = hashlib.sha384(accumulator + deep_hash(item)).digest()
    return accumulator


def _sha256(*parts: bytes) -> bytes:
    return hashlib.sha256(b"".join(parts)).digest()


def _note(value: int) -> bytes:
    return value.to_bytes(NOTE_SIZE, "big")


@dataclass
class Chunk:
    data_hash: bytes
    min_byte_range: int
    max_byte_range: int


@dataclass
class _Node:
    id: bytes
    max_byte_range: int
    data_hash: Optional[bytes] = None
    byte_range: int = 0
    left: Optional[_Node] = None
    right: Optional[_Node] = None


@dataclass
class Proof:
    offset: int
    proof: bytes


def chunk_data(data: bytes) -> List[Chunk]:
    """Split ``data`` into chunks of at most 256 KiB.

    When the remainder after a full chunk would be smaller than 32 KiB, the
    last two chunks are split evenly instead. Data that is an exact multiple
    of 256 KiB ends with an empty chunk; it is a merkle leaf but
    :class:`ArweaveTransaction` does not upload it.
    """
    chunks = []
    rest = data
    cursor = 0
    while len(rest) >= MAX_CHUNK_SIZE:
        chunk_size = MAX_CHUNK_SIZE
        next_chunk_size = len(rest) - MAX_CHUNK_SIZE
        if 0 < next_chunk_size < MIN_CHUNK_SIZE:
            chunk_size = math.ceil(len(rest) / 2)
        chunk = rest[:chunk_size]
        chunks.append(Chunk(_sha256(chunk), cursor, cursor + len(chunk)))
        cursor += len(chunk)
        rest = rest[chunk_size:]
    chunks.append(Chunk(_sha256(rest), cursor, cursor + len(rest)))
    return chunks


def _build_tree(chunks: List[Chunk]) -> _Node:
    nodes = [
        _Node(
            id=_sha256(_sha256(chunk.data_hash), _sha256(_note(chunk.max_byte_range))),
            max_byte_range=chunk.max_byte_range,
            data_hash=chunk.data_hash,
        )
        for chunk in chunks
    ]
    while len(nodes) > 1:
        layer = []
        for index in range(0, len(nodes), 2):
            left = nodes[index]
            right = nodes[index + 1] if index + 1 < len(nodes) else None
            if right is None:
                layer.append(left)
                continue
            layer.append(
                _Node(
                    id=_sha256(
                        _sha256(left.id),
                        _sha256(right.id),
                        _sha256(_note(left.max_byte_range)),
                    ),
                    max_byte_range=right.max_byte_range,
                    byte_range=left.max_byte_range,
                    left=left,
                    right=right,
                )
            )
        nodes = layer
    return nodes[0]


def _proofs(node: _Node, path: bytes = b"") -> List[Proof]:
    if node.data_hash is not None:
        return [
            Proof(
                node.max_byte_range - 1,
                path + node.data_hash + _note(node.max_byte_range),
            )
        ]
    partial = path + node.left.id + node.right.id + _note(node.byte_range)
    return _proofs(node.left, partial) + _proofs(node.right, partial)


@dataclass
class ChunkProgress:
    uploaded_chunks: int
    total_chunks: int
    last_response_status: int

    @property
    def percent_complete(self) -> float:
        if self.total_chunks == 0:
            return 100.0
        return round(self.uploaded_chunks * 100 / self.total_chunks, 2)


@dataclass
class ArweaveTransaction:
    """Format 2 transaction. ``id`` and ``signature`` are set by :meth:`sign`."""

    owner: str
    last_tx: str
    reward: int
    data: bytes = b""
    target: str = ""
    quantity: int = 0
    tags: List[Tuple[str, str]] = field(default_factory=list)
    id: str = ""
    signature: str = ""
    format: int = 2

    _chunks: Optional[List[Chunk]] = field(default=None, repr=False)
    _proofs: Optional[List[Proof]] = field(default=None, repr=False)
    _data_root: str = field(default="", repr=False)

    def __post_init__(self):
        if self.data:
            chunks = chunk_data(self.data)
            root = _build_tree(chunks)
            proofs = _proofs(root)
            # The empty trailing leaf counts toward data_root but is never uploaded.
            if chunks[-1].max_byte_range == chunks[-1].min_byte_range:
                chunks, proofs = chunks[:-1], proofs[:-1]
            self._chunks, self._proofs = chunks, proofs
            self._data_root = b64url_encode(root.id)
        else:
            self._chunks, self._proofs = [], []

    @property
    def data_size(self) -> int:
        return len(self.data)

    @property
    def data_root(self) -> str:
        return self._data_root

    @property
    def chunks(self) -> List[Chunk]:
        return self._chunks

    def add_tag(self, name: str, value: str):
        if self.signature:
            raise ValueError("Cannot add tags to a signed transaction")
        self.tags.append((name, value))

    def signature_data(self) -> bytes:
        return deep_hash(
            [
                str(self.format).encode(),
                b64url_decode(self.owner),
                b64url_decode(self.target),
                str(self.quantity).encode(),
                str(self.reward).encode(),
                b64url_decode(self.last_tx),
                [[name.encode(), value.encode()] for name, value in self.tags],
                str(self.data_size).encode(),
                b64url_decode(self.data_root),
            ]
        )

    def sign(self, wallet: ArweaveWallet):
        if wallet.owner != self.owner:
            raise ValueError("Transaction owner does not match the signing wallet")
        signature = wallet.sign(self.signature_data())
        self.signature = b64url_encode(signature)
        self.id = b64url_encode(hashlib.sha256(signature).digest())

    def verify(self) -> bool:
        if not self.signature:
            return False
        signature = b64url_decode(self.signature)
        if b64url_encode(hashlib.sha256(signature).digest()) != self.id:
            return False
        public_key = rsa.RSAPublicNumbers(
            PUBLIC_EXPONENT, _b64url_to_int(self.owner)
        ).public_key()
        try:
            public_key.verify(
                signature,
                self.signature_data(),
                padding.PSS(
                    mgf=padding.MGF1(hashes.SHA256()), salt_length=PSS_SALT_LENGTH
                ),
                hashes.SHA256(),
            )
        except InvalidSignature:
            return False
        return True

    def to_json(self, include_data: bool = True) -> Dict[str, Any]:
        return {
            "format": self.format,
            "id": self.id,
            "last_tx": self.last_tx,
            "owner": self.owner,
            "tags": [
                {"name": b64url_encode(name.encode()), "value": b64url_encode(value.encode())}
                for name, value in self.tags
            ],
            "target": self.target,
            "quantity": str(self.quantity),
            "data": b64url_encode(self.data) if include_data else "",
            "data_size": str(self.data_size),
            "data_root": self.data_root,
            "reward": str(self.reward),
            "signature": self.signature,
        }

    def chunk_json(self, index: int) -> Dict[str, str]:
        chunk = self._chunks[index]
        proof = self._proofs[index]
        return {
            "data_root": self.data_root,
            "data_size": str(self.data_size),
            "data_path": b64url_encode(proof.proof),
            "offset": str(proof.offset),
            "chunk": b64url_encode(
                self.data[chunk.min_byte_range : chunk.max_byte_range]
            ),
        }


@dataclass
class UploadResult:
    id: Optional[str]
    url: Optional[str]
    status: int
    wallet: Dict[str, Any] = field(repr=False)
    wallet_address: str


class ArweaveClient:
    """Async client for an Arweave gateway."""

    client: httpx.AsyncClient
    config: ArweaveConfig

    def __init__(
        self,
        config: ArweaveConfig = ArweaveConfig(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.client = httpx.AsyncClient(
            base_url=config.url,
            timeout=httpx.Timeout(config.timeout),
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    def url_for(self, transaction_id: str) -> str:
        return f"{self.config.url}/{transaction_id}"

    @staticmethod
    def create_wallet() -> ArweaveWallet:
        return ArweaveWallet.generate()

    @staticmethod
    def get_address(wallet: ArweaveWallet) -> str:
        return wallet.address

    @staticmethod
    def winston_to_ar(winston: Union[int, str]) -> Decimal:
        return winston_to_ar(winston)

    @staticmethod
    def ar_to_winston(ar: Union[Decimal, str, int]) -> int:
        return ar_to_winston(ar)

    async def get_balance(self, address: str) -> Decimal:
        """Balance in AR."""
        return winston_to_ar(await self._get_text(f"wallet/{address}/balance"))

    async def get_last_transaction_id(self, address: str) -> str:
        return await self._get_text(f"wallet/{address}/last_tx")

    async def get_price(self, num_bytes: int, target: str = "") -> int:
        """Reward in winston for storing ``num_bytes`` (and paying ``target``)."""
        endpoint = f"price/{num_bytes}/{target}" if target else f"price/{num_bytes}"
        return int(await self._get_text(endpoint))

    async def create_transaction(
        self,
        wallet: ArweaveWallet,
        data: Union[bytes, str] = b"",
        target: str = "",
        quantity: int = 0,
    ) -> ArweaveTransaction:
        """Unsigned transaction with the current anchor and price filled in."""
        if isinstance(data, str):
            data = data.encode()
        anchor = await self._get_text("tx_anchor")
        reward = await self.get_price(len(data), target)
        return ArweaveTransaction(
            owner=wallet.owner,
            last_tx=anchor,
            reward=reward,
            data=data,
            target=target,
            quantity=quantity,
        )

    async def post(
        self,
        transaction: ArweaveTransaction,
        chunk_callback: Optional[Callable[[ChunkProgress], Any]] = None,
    ) -> int:
        """Submit a signed transaction, uploading its data in chunks when large.

        :raises ApiError: If the gateway rejects the header or any chunk.
        """
        if not transaction.signature:
            raise ValueError("Transaction must be signed before posting")

        total = len(transaction.chunks)
        inline = total <= MAX_CHUNKS_IN_BODY
        response = await self.client.post("tx", json=transaction.to_json(inline))
        if response.status_code >= 400:
            raise ArweaveApiError(response.text, response.status_code)
        logging.info(f"Posted Arweave transaction {transaction.id}")

        if inline:
            if chunk_callback:
                chunk_callback(ChunkProgress(total, total, response.status_code))
            return response.status_code

        for index in range(total):
            chunk_response = await self.client.post(
                "chunk", json=transaction.chunk_json(index)
            )
            if chunk_response.status_code >= 400:
                raise ArweaveApiError(chunk_response.text, chunk_response.status_code)
            logging.debug(f"Uploaded chunk {index + 1}/{total} of {transaction.id}")
            if chunk_callback:
                chunk_callback(ChunkProgress(index + 1, total, chunk_response.status_code))
        return response.status_code

    async def get_transaction_status(self, transaction_id: str) -> Dict[str, Any]:
        """``status`` (HTTP code, 202 while pending) and ``confirmed`` details."""
        response = await self.client.get(f"tx/{transaction_id}/status")
        if response.status_code == 200:
            return {"status": 200, "confirmed": response.json()}
        if response.status_code in (202, 404):
            return {"status": response.status_code, "confirmed": None}
        raise ArweaveApiError(response.text, response.status_code)

    async def get_transaction(self, transaction_id: str) -> Dict[str, Any]:
        response = await self.client.get(f"tx/{transaction_id}")
        if response.status_code >= 400:
            raise ArweaveApiError(response.text, response.status_code)
        return response.json()

    async def get_transaction_data(self, transaction_id: str) -> bytes:
        response = await self.client.get(transaction_id)
        if response.status_code >= 400:
            raise ArweaveApiError(response.text, response.status_code)
        return response.content

    async def transfer(
        self, wallet: ArweaveWallet, target: str, amount: Union[Decimal, str, int]
    ) -> UploadResult:
        """Send ``amount`` AR from ``wallet`` to the ``target`` address."""
        transaction = await self.create_transaction(
            wallet, target=target, quantity=ar_to_winston(amount)
        )
        transaction.sign(wallet)
        status = await self.post(transaction)
        return self._result(transaction, status, wallet)

    async def upload_data(
        self,
        data: Union[bytes, str],
        wallet: Optional[ArweaveWallet] = None,
        chunk_callback: Optional[Callable[[ChunkProgress], Any]] = None,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """Store ``data``. Without a wallet an unfunded one is generated, which
        only works on gateways that do not charge (local test nets)."""
        wallet = wallet or self.create_wallet()
        transaction = await self.create_transaction(wallet, data)
        if content_type:
            transaction.add_tag("Content-Type", content_type)
        transaction.sign(wallet)
        status = await self.post(transaction, chunk_callback)
        return self._result(transaction, status, wallet)

    async def upload_metadata(
        self,
        metadata: Dict[str, Any],
        wallet: Optional[ArweaveWallet] = None,
        chunk_callback: Optional[Callable[[ChunkProgress], Any]] = None,
    ) -> UploadResult:
        return await self.upload_data(
            json.dumps(metadata), wallet, chunk_callback, "application/json"
        )

    async def upload_file(
        self,
        path: str,
        wallet: Optional[ArweaveWallet] = None,
        chunk_callback: Optional[Callable[[ChunkProgress], Any]] = None,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        content_type = content_type or mimetypes.guess_type(path)[0]
        with open(path, "rb") as file:
            data = file.read()
        return await self.upload_data(
            data, wallet, chunk_callback, content_type or "application/octet-stream"
        )

    def _result(
        self, transaction: ArweaveTransaction, status: int, wallet: ArweaveWallet
    ) -> UploadResult:
        return UploadResult(
            id=transaction.id or None,
            url=self.url_for(transaction.id) if transaction.id else None,
            status=status,
            wallet=wallet.to_jwk(),
            wallet_address=wallet.address,
        )

    async def _get_text(self, endpoint: str) -> str:
        response = await self.client.get(endpoint)
        if response.status_code >= 400:
            raise ArweaveApiError(f"{response.text} - {endpoint}", response.status_code)
        return response.text


@dataclass
class StorageCost:
    arweave: Decimal
    solana: Decimal
    arweave_price: Decimal
    solana_price: Decimal
    exchange_rate: Decimal
    total_bytes: int
    byte_cost: int
    fee: Decimal


class StorageCostCalculator:
    """Estimates what storing files on Arweave costs, in AR and in SOL.

    The byte cost comes from the gateway price endpoint; a 15% fee is added
    on top and the AR total is converted to SOL with CoinGecko USD prices.
    """

    def __init__(
        self,
        arweave_client: ArweaveClient,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.arweave_client = arweave_client
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(arweave_client.config.timeout), transport=transport
        )

    async def close(self):
        await self.client.aclose()

    async def fetch_token_prices(self) -> Dict[str, Decimal]:
        """USD prices keyed ``arweave`` and ``solana``."""
        response = await self.client.get(
            COINGECKO_PRICE_URL,
            params={"ids": "arweave,solana", "vs_currencies": "usd"},
        )
        if response.status_code >= 400:
            raise ArweaveApiError(response.text, response.status_code)
        prices = response.json()
        return {
            token: Decimal(str(prices[token]["usd"])) for token in ("arweave", "solana")
        }

    async def fetch_storage_cost(self, num_bytes: int) -> int:
        """Winston cost for ``num_bytes``, without fees."""
        return await self.arweave_client.get_price(num_bytes)

    async def calculate(self, file_sizes: Sequence[int] = (1_000_000,)) -> StorageCost:
        total_bytes = sum(file_sizes)
        prices = await self.fetch_token_prices()
        byte_cost = await self.fetch_storage_cost(total_bytes)
        fee = Decimal(byte_cost) * STORAGE_FEE_RATE
        arweave = (Decimal(byte_cost) + fee) / WINSTON_PER_AR
        exchange_rate = prices["arweave"] / prices["solana"]
        return StorageCost(
            arweave=arweave,
            solana=arweave * exchange_rate,
            arweave_price=prices["arweave"],
            solana_price=prices["solana"],
            exchange_rate=exchange_rate,
            total_bytes=total_bytes,
            byte_cost=byte_cost,
            fee=fee,
        )


class ArweaveApiError(ApiError):
    """The gateway returned a non-success status code, e.g., >= 400"""


class Test(unittest.IsolatedAsyncioTestCase):
    @classmethod
    def setUpClass(cls):
        # Smaller key than production wallets to keep the suite fast.
        cls.wallet = ArweaveWallet.generate(key_size=2048)

    def test_b64url(self):
        self.assertEqual(b64url_encode(b"\xfb\xff"), "-_8")
        self.assertEqual(b64url_decode("-_8"), b"\xfb\xff")
        self.assertEqual(b64url_decode(""), b"")

    def test_winston_conversion(self):
        self.assertEqual(winston_to_ar("1500000000000"), Decimal("1.5"))
        self.assertEqual(ar_to_winston("0.000000000001"), 1)
        self.assertEqual(ar_to_winston(Decimal("2")), 2 * WINSTON_PER_AR)

    def test_wallet_jwk(self):
        jwk = self.wallet.to_jwk()
        self.assertEqual(ArweaveWallet.from_jwk(jwk), self.wallet)
        self.assertEqual(
            self.wallet.address,
            b64url_encode(hashlib.sha256(b64url_decode(jwk["n"])).digest()),
        )
        self.assertEqual(len(b64url_decode(self.wallet.address)), 32)

    def test_wallet_store(self):
        (file, path) = tempfile.mkstemp()
        os.close(file)
        self.wallet.store(path)
        self.assertEqual(ArweaveWallet.load(path), self.wallet)
        os.remove(path)

    @unittest.skipIf(os.name == "nt", "POSIX file modes")
    def test_wallet_store_is_owner_only(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "arweave.json")
            self.wallet.store(path)
            self.assertEqual(os.stat(path).st_mode & 0o777, SECRET_FILE_MODE)

    def test_sign_and_verify(self):
        signature = self.wallet.sign(b"message")
        self.assertTrue(self.wallet.verify(b"message", signature))
        self.assertFalse(self.wallet.verify(b"other", signature))

    def test_deep_hash_shapes(self):
        self.assertEqual(len(deep_hash(b"")), 48)
        self.assertNotEqual(deep_hash(b"ab"), deep_hash([b"ab"]))
        self.assertNotEqual(deep_hash([b"a", b"b"]), deep_hash([b"ab"]))

    def test_chunking(self):
        self.assertEqual(len(chunk_data(b"x" * 10)), 1)
        self.assertEqual(
            [c.max_byte_range for c in chunk_data(b"x" * (2 * MAX_CHUNK_SIZE))],
            [MAX_CHUNK_SIZE, 2 * MAX_CHUNK_SIZE, 2 * MAX_CHUNK_SIZE],
        )
        # A tiny tail is rebalanced with the chunk before it.
        chunks = chunk_data(b"x" * (MAX_CHUNK_SIZE + 1))
        sizes = [c.max_byte_range - c.min_byte_range for c in chunks]
        self.assertEqual(sizes, [MAX_CHUNK_SIZE // 2 + 1, MAX_CHUNK_SIZE // 2])

    def test_single_chunk_data_root(self):
        data = b"hello arweave"
        transaction = ArweaveTransaction(self.wallet.owner, "", 0, data=data)
        leaf = _sha256(_sha256(_sha256(data)), _sha256(_note(len(data))))
        self.assertEqual(transaction.data_root, b64url_encode(leaf))
        self.assertEqual(len(transaction.chunks), 1)

    def test_empty_data(self):
        transaction = ArweaveTransaction(self.wallet.owner, "", 0)
        self.assertEqual(transaction.data_root, "")
        self.assertEqual(transaction.to_json()["data_size"], "0")

    def test_proof_offsets(self):
        data = os.urandom(MAX_CHUNK_SIZE * 2 + 100_000)
        transaction = ArweaveTransaction(self.wallet.owner, "", 0, data=data)
        self.assertEqual(len(transaction.chunks), 3)
        last = transaction.chunk_json(2)
        self.assertEqual(int(last["offset"]), len(data) - 1)
        self.assertEqual(
            b"".join(
                b64url_decode(transaction.chunk_json(i)["chunk"]) for i in range(3)
            ),
            data,
        )

    def test_exact_multiple_of_chunk_size(self):
        data = os.urandom(2 * MAX_CHUNK_SIZE)
        transaction = ArweaveTransaction(self.wallet.owner, "", 0, data=data)

        # Two uploadable chunks, while data_root also covers the empty leaf.
        self.assertEqual(len(transaction.chunks), 2)
        first, second = data[:MAX_CHUNK_SIZE], data[MAX_CHUNK_SIZE:]
        leaves = [
            _sha256(_sha256(_sha256(first)), _sha256(_note(MAX_CHUNK_SIZE))),
            _sha256(_sha256(_sha256(second)), _sha256(_note(2 * MAX_CHUNK_SIZE))),
            _sha256(_sha256(_sha256(b"")), _sha256(_note(2 * MAX_CHUNK_SIZE))),
        ]
        branch = _sha256(
            _sha256(leaves[0]), _sha256(leaves[1]), _sha256(_note(MAX_CHUNK_SIZE))
        )
        root = _sha256(
            _sha256(branch), _sha256(leaves[2]), _sha256(_note(2 * MAX_CHUNK_SIZE))
        )
        self.assertEqual(transaction.data_root, b64url_encode(root))

        self.assertEqual(
            [int(transaction.chunk_json(i)["offset"]) for i in range(2)],
            [MAX_CHUNK_SIZE - 1, 2 * MAX_CHUNK_SIZE - 1],
        )
        path = b64url_decode(transaction.chunk_json(1)["data_path"])
        self.assertEqual(
            path,
            branch
            + leaves[2]
            + _note(2 * MAX_CHUNK_SIZE)
            + leaves[0]
            + leaves[1]
            + _note(MAX_CHUNK_SIZE)
            + _sha256(second)
            + _note(2 * MAX_CHUNK_SIZE),
        )

        # One full chunk plus the empty leaf is still a single inline chunk.
        single = ArweaveTransaction(
            self.wallet.owner, "", 0, data=os.urandom(MAX_CHUNK_SIZE)
        )
        self.assertEqual(len(single.chunks), 1)

    def test_sign_transaction(self):
        transaction = ArweaveTransaction(
            self.wallet.owner, b64url_encode(b"\x01" * 32), 1000, data=b"payload"
        )
        transaction.add_tag("Content-Type", "text/plain")
        transaction.sign(self.wallet)

        self.assertEqual(
            transaction.id,
            b64url_encode(hashlib.sha256(b64url_decode(transaction.signature)).digest()),
        )
        self.assertTrue(transaction.verify())
        with self.assertRaises(ValueError):
            transaction.add_tag("App", "x")

        body = transaction.to_json()
        self.assertEqual(body["tags"][0]["name"], b64url_encode(b"Content-Type"))
        self.assertEqual(body["reward"], "1000")

        transaction.reward = 1
        self.assertFalse(transaction.verify())

    async def test_upload_chunks(self):
        posted: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/tx_anchor":
                return httpx.Response(200, text=b64url_encode(b"\x02" * 32))
            if path.startswith("/price/"):
                return httpx.Response(200, text="12345")
            posted.append(path)
            if path == "/tx":
                self.assertEqual(json.loads(request.content)["data"], "")
            return httpx.Response(200, text="OK")

        client = ArweaveClient(transport=httpx.MockTransport(handler))
        progress: List[ChunkProgress] = []
        result = await client.upload_data(
            b"z" * (MAX_CHUNK_SIZE + MIN_CHUNK_SIZE),
            wallet=self.wallet,
            chunk_callback=progress.append,
            content_type="image/png",
        )
        await client.close()

        self.assertEqual(posted, ["/tx", "/chunk", "/chunk"])
        self.assertEqual([p.uploaded_chunks for p in progress], [1, 2])
        self.assertEqual(progress[-1].percent_complete, 100.0)
        self.assertEqual(result.status, 200)
        self.assertEqual(result.url, f"https://arweave.net/{result.id}")
        self.assertEqual(result.wallet_address, self.wallet.address)

    async def test_upload_exact_multiple_skips_empty_chunk(self):
        chunks: List[Dict[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/tx_anchor":
                return httpx.Response(200, text=b64url_encode(b"\x02" * 32))
            if path.startswith("/price/"):
                return httpx.Response(200, text="1")
            if path == "/chunk":
                chunks.append(json.loads(request.content))
            return httpx.Response(200, text="OK")

        data = b"q" * (2 * MAX_CHUNK_SIZE)
        client = ArweaveClient(transport=httpx.MockTransport(handler))
        progress: List[ChunkProgress] = []
        await client.upload_data(data, wallet=self.wallet, chunk_callback=progress.append)
        await client.close()

        self.assertEqual(len(chunks), 2)
        self.assertTrue(all(b64url_decode(c["chunk"]) for c in chunks))
        self.assertEqual(b"".join(b64url_decode(c["chunk"]) for c in chunks), data)
        self.assertEqual([p.total_chunks for p in progress], [2, 2])

    async def test_get_transaction_data(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/abc":
                return httpx.Response(200, content=b"\x00stored bytes")
            return httpx.Response(404, text="Not Found.")

        client = ArweaveClient(transport=httpx.MockTransport(handler))
        self.assertEqual(await client.get_transaction_data("abc"), b"\x00stored bytes")
        with self.assertRaises(ArweaveApiError) as context:
            await client.get_transaction_data("missing")
        self.assertEqual(context.exception.status_code, 404)
        await client.close()

    async def test_small_upload_is_inline(self):
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/tx_anchor":
                return httpx.Response(200, text="")
            if path.startswith("/price/"):
                return httpx.Response(200, text="1")
            self.assertEqual(path, "/tx")
            body = json.loads(request.content)
            self.assertEqual(b64url_decode(body["data"]), b'{"name": "x"}')
            return httpx.Response(200, text="OK")

        client = ArweaveClient(transport=httpx.MockTransport(handler))
        result = await client.upload_metadata({"name": "x"}, wallet=self.wallet)
        await client.close()
        self.assertEqual(result.status, 200)

    async def test_rejected_post(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/tx":
                return httpx.Response(400, text="Transaction verification failed.")
            if request.url.path == "/tx_anchor":
                return httpx.Response(200, text=b64url_encode(b"\x03" * 32))
            return httpx.Response(200, text="1")

        client = ArweaveClient(transport=httpx.MockTransport(handler))
        with self.assertRaises(ArweaveApiError):
            await client.upload_data(b"data", wallet=self.wallet)
        await client.close()

    async def test_balance_and_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/balance"):
                return httpx.Response(200, text="2500000000000")
            return httpx.Response(202, text="Pending")

        client = ArweaveClient(transport=httpx.MockTransport(handler))
        self.assertEqual(await client.get_balance("addr"), Decimal("2.5"))
        status = await client.get_transaction_status("id")
        self.assertEqual(status, {"status": 202, "confirmed": None})
        await client.close()

    async def test_storage_cost(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.coingecko.com":
                return httpx.Response(
                    200, json={"arweave": {"usd": 50}, "solana": {"usd": 200}}
                )
            self.assertEqual(request.url.path, "/price/2000000")
            return httpx.Response(200, text="1000000000")

        transport = httpx.MockTransport(handler)
        arweave = ArweaveClient(transport=transport)
        calculator = StorageCostCalculator(arweave, transport=transport)
        cost = await calculator.calculate([1_000_000, 1_000_000])
        await calculator.close()
        await arweave.close()

        self.assertEqual(cost.total_bytes, 2_000_000)
        self.assertEqual(cost.byte_cost, 1_000_000_000)
        self.assertEqual(cost.fee, Decimal("150000000.00"))
        self.assertEqual(cost.arweave, Decimal("0.00115"))
        self.assertEqual(cost.exchange_rate, Decimal("0.25"))
        self.assertEqual(cost.solana, Decimal("0.0002875"))


if __name__ == "__main__":
    unittest.main()
