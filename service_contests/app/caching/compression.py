"""
Transparent compression for distributed cache payloads.

Values are encoded as compact JSON. Encodings at or above the threshold are
gzip-compressed and base64-encoded so they stay valid Redis strings.
"""

import asyncio
import base64
import binascii
import gzip
import json
import zlib
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from shared.errors import CacheSerializationError
from shared.logging import get_logger


DEFAULT_COMPRESSION_THRESHOLD = 1024


class _DecodeFailed:
    """Sentinel type returned when a payload cannot be decoded."""

    def __repr__(self) -> str:
        return "DECODE_FAILED"


DECODE_FAILED = _DecodeFailed()


class CacheJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime, Decimal and UUID values."""

    def default(self, obj):
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, Decimal):
            return float(obj)
        return super().default(obj)


@dataclass(frozen=True)
class CompressedPayload:
    payload: str
    compressed: bool


class CompressionCodec:
    """Encode/decode cache values with size-gated gzip compression."""

    def __init__(self, threshold_bytes: int = DEFAULT_COMPRESSION_THRESHOLD):
        self.threshold_bytes = threshold_bytes
        self.logger = get_logger("contests.cache.compression")

    @staticmethod
    def serialize(value: Any) -> str:
        try:
            return json.dumps(value, cls=CacheJSONEncoder, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise CacheSerializationError(
                "Cache value is not JSON serializable",
                details={"type": type(value).__name__, "error": str(exc)},
            ) from exc

    async def maybe_compress(self, value: Any) -> CompressedPayload:
        """Serialize ``value`` and compress it when it is large enough.

        Raises CacheSerializationError when the value cannot be encoded.
        A compression failure falls back to the uncompressed encoding.
        """
        return await self.compress_text(self.serialize(value))

    async def compress_text(self, text: str) -> CompressedPayload:
        """Compress already-serialized ``text`` when it is large enough."""
        raw = text.encode("utf-8")

        if len(raw) < self.threshold_bytes:
            return CompressedPayload(payload=text, compressed=False)

        try:
            packed = await asyncio.to_thread(gzip.compress, raw)
        except (OSError, zlib.error, MemoryError) as exc:
            self.logger.warning(
                "Compression failed, storing uncompressed",
                size=len(raw),
                error=str(exc),
            )
            return CompressedPayload(payload=text, compressed=False)

        return CompressedPayload(payload=base64.b64encode(packed).decode("ascii"), compressed=True)

    async def decompress_text(self, payload: Any, compressed: bool) -> Any:
        """Return the serialized text behind ``payload``, or DECODE_FAILED."""
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")

            if compressed:
                packed = base64.b64decode(payload, validate=True)
                raw = await asyncio.to_thread(gzip.decompress, packed)
                payload = raw.decode("utf-8")

            return payload
        except (binascii.Error, OSError, EOFError, zlib.error, UnicodeDecodeError,
                TypeError, ValueError) as exc:
            self.logger.warning(
                "Failed to decompress cached payload",
                compressed=compressed,
                error=str(exc),
            )
            return DECODE_FAILED

    def deserialize(self, text: str) -> Any:
        """Parse serialized text; returns DECODE_FAILED instead of raising."""
        try:
            return json.loads(text)
        except (json.JSONDecodeError, TypeError, ValueError) as exc:
            self.logger.warning("Failed to decode cached payload", error=str(exc))
            return DECODE_FAILED

    async def maybe_decompress(self, payload: Any, compressed: bool) -> Any:
        """Reverse ``maybe_compress``; returns DECODE_FAILED instead of raising."""
        text = await self.decompress_text(payload, compressed)
        if text is DECODE_FAILED:
            return DECODE_FAILED
        return self.deserialize(text)
