"""Size-bounded response decoding.

Pipeline: decompress -> bound -> classify status -> decode JSON. At most
``max_response_size + 1`` decoded bytes are ever held in memory, so a small
compressed body cannot balloon past the ceiling.
"""

from __future__ import annotations

import logging
import zlib
from functools import lru_cache
from typing import Any, Iterator, Optional, Tuple

import requests
import urllib3
from pydantic import TypeAdapter, ValidationError

from civitai_sdk.domain.config.limits import DEFAULT_MAX_RESPONSE_SIZE
from civitai_sdk.domain.errors import (
    APIError,
    ResponseDecodeError,
    ResponseSizeExceededError,
)
from civitai_sdk.domain.models.api_error import APIErrorPayload

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

GZIP_ENCODINGS = frozenset({"gzip", "x-gzip"})
IDENTITY_ENCODINGS = frozenset({"", "identity"})


@lru_cache(maxsize=None)
def _adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def _read_wire(raw: Any, amount: int) -> bytes:
    """Read raw (still encoded) bytes from the response stream"""
    if isinstance(raw, urllib3.HTTPResponse):
        return raw.read(amount, decode_content=False)
    return raw.read(amount)


def _has_zlib_header(data: bytes) -> bool:
    # RFC 1950: CM=8 and the first two bytes are a multiple of 31
    return len(data) >= 2 and data[0] & 0x0F == 8 and ((data[0] << 8) | data[1]) % 31 == 0


class BoundedResponseDecoder:
    """Turns a live ``requests.Response`` into a value or a classified error.

    Usage:
        decoder = BoundedResponseDecoder(max_response_size=10 * 1024 * 1024)
        model = decoder.decode(response, Model)
    """

    def __init__(self, max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if max_response_size <= 0:
            raise ValueError("max_response_size must be > 0")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        self.max_response_size = max_response_size
        self.chunk_size = chunk_size

    def decode(self, response: requests.Response, target: Any = None) -> Any:
        """Decode a response body into ``target``

        Args:
            response: Live response returned by the executor (always closed here)
            target: Pydantic model class or any type accepted by TypeAdapter;
                None discards the body

        Returns:
            Validated value, or None when no target was given

        Raises:
            APIError: Status outside 2xx
            ResponseSizeExceededError: 2xx body larger than the ceiling
            ResponseDecodeError: Malformed JSON, schema mismatch, bad encoding
        """
        try:
            success = 200 <= response.status_code < 300
            if success and target is None:
                return None

            body, truncated = self._read_body(response)

            if not success:
                raise self._api_error(response, body, truncated)

            if truncated:
                logger.warning(f"Response from {response.url} exceeded {self.max_response_size} bytes")
                raise ResponseSizeExceededError(self.max_response_size)

            try:
                return _adapter(target).validate_json(body)
            except ValidationError as e:
                raise ResponseDecodeError(f"failed to decode response: {e}") from e
        finally:
            response.close()

    def _read_body(self, response: requests.Response) -> Tuple[bytes, bool]:
        """Read at most limit + 1 decoded bytes; the flag says whether the ceiling was crossed"""
        if getattr(response, "_content_consumed", False) and isinstance(response._content, bytes):
            # A response hook already read the stream; requests has decoded it
            body = response.content
            return body[: self.max_response_size + 1], len(body) > self.max_response_size

        encoding = (response.headers.get("Content-Encoding") or "").strip().lower()
        raw = response.raw
        if raw is None:
            return b"", False

        if encoding in IDENTITY_ENCODINGS:
            return self._read_identity(raw)

        if encoding in GZIP_ENCODINGS:
            wbits: Optional[int] = 16 + zlib.MAX_WBITS
        elif encoding == "deflate":
            wbits = None
        else:
            raise ResponseDecodeError(f"unsupported content encoding: {encoding}")

        try:
            return self._collect(self._inflate(raw, wbits))
        except zlib.error as e:
            raise ResponseDecodeError(f"failed to decompress {encoding} response: {e}") from e

    def _read_identity(self, raw: Any) -> Tuple[bytes, bool]:
        budget = self.max_response_size + 1
        buffer = bytearray()
        while len(buffer) < budget:
            chunk = _read_wire(raw, min(self.chunk_size, budget - len(buffer)))
            if not chunk:
                break
            buffer += chunk
        return bytes(buffer), len(buffer) > self.max_response_size

    def _inflate(self, raw: Any, wbits: Optional[int]) -> Iterator[bytes]:
        budget = self.max_response_size + 1
        produced = 0
        # gzip bodies may hold several concatenated members
        multi_member = wbits is not None
        decompressor = None

        while produced < budget:
            data = _read_wire(raw, self.chunk_size)
            if not data:
                break
            while data and produced < budget:
                if decompressor is None:
                    if wbits is None:
                        # "deflate" is zlib-wrapped by the RFC, raw by some servers
                        wbits = zlib.MAX_WBITS if _has_zlib_header(data) else -zlib.MAX_WBITS
                    decompressor = zlib.decompressobj(wbits)
                out = decompressor.decompress(data, budget - produced)
                produced += len(out)
                if out:
                    yield out
                if not decompressor.eof:
                    data = decompressor.unconsumed_tail
                    continue
                if not multi_member:
                    return
                data = decompressor.unused_data
                decompressor = None

        if decompressor is not None and produced < budget:
            raise zlib.error("compressed stream ended unexpectedly")

    def _collect(self, chunks: Iterator[bytes]) -> Tuple[bytes, bool]:
        buffer = bytearray()
        for chunk in chunks:
            buffer += chunk
        return bytes(buffer), len(buffer) > self.max_response_size

    def _api_error(self, response: requests.Response, body: bytes, truncated: bool) -> APIError:
        fallback = f"API request failed with status {response.status_code}: {response.reason}"
        if truncated or not body:
            return APIError(response.status_code, fallback)
        try:
            payload = APIErrorPayload.model_validate_json(body)
        except ValidationError:
            return APIError(response.status_code, fallback)
        error = payload.to_exception(response.status_code)
        if not error.message and not error.code:
            return APIError(response.status_code, fallback)
        return error
