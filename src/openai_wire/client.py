"""HTTP client that opens streaming endpoints and hands their bodies to the decoders."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Mapping
from typing import Any, AsyncIterator, Callable, TypeVar

import httpx

from openai_wire.errors import DecodeError, ProviderError, TransportError, error_from_status_code
from openai_wire.reader import BufferedByteReader, JsonLinesStream
from openai_wire.stream import (
    ChatCompletionStream,
    CompletionStream,
    EventStream,
    FineTuneEventStream,
)
from openai_wire.types import ChatCompletionChunk, Completion, FineTuneEvent, ImageData

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_URL = "https://api.openai.com"
DEFAULT_TIMEOUT = 60.0


class Client:
    """Opens streaming and long-body endpoints of an OpenAI-style API."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        organization: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._organization = organization
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _build_headers(self) -> dict[str, str]:
        headers = {"authorization": f"Bearer {self._api_key}"}
        if self._organization:
            headers["openai-organization"] = self._organization
        return headers

    async def stream_completion(self, body: Mapping[str, Any]) -> CompletionStream:
        """POST /v1/completions with ``stream`` set; yields Completion records."""
        response = await self._open(
            "POST", f"{self._base_url}/v1/completions", json={**body, "stream": True}
        )
        return EventStream(ResponseBody(response), Completion.from_dict)

    async def stream_chat(self, body: Mapping[str, Any]) -> ChatCompletionStream:
        """POST /v1/chat/completions with ``stream`` set; yields ChatCompletionChunk records."""
        response = await self._open(
            "POST", f"{self._base_url}/v1/chat/completions", json={**body, "stream": True}
        )
        return EventStream(ResponseBody(response), ChatCompletionChunk.from_dict)

    async def fine_tune_events(self, fine_tune_id: str) -> FineTuneEventStream:
        response = await self._open(
            "GET",
            f"{self._base_url}/v1/fine-tunes/{fine_tune_id}/events",
            params={"stream": "true"},
        )
        return EventStream(ResponseBody(response), FineTuneEvent.from_dict)

    async def raw_file_content(self, file_id: str) -> BufferedByteReader:
        response = await self._open("GET", f"{self._base_url}/v1/files/{file_id}/content")
        return BufferedByteReader(ResponseBody(response))

    async def file_content(
        self,
        file_id: str,
        parse: Callable[[Any], T] | None = None,
    ) -> JsonLinesStream[T]:
        """Decode a JSON-lines file (e.g. fine-tune training data) record by record."""
        return JsonLinesStream(await self.raw_file_content(file_id), parse)

    async def download(self, url: str) -> BufferedByteReader:
        """Stream bytes from a URL the API handed out (generated images, audio)."""
        response = await self._open("GET", url, authorize=False)
        return BufferedByteReader(ResponseBody(response))

    async def image_reader(self, image: ImageData) -> BufferedByteReader:
        if image.b64_json is None:
            assert image.url is not None
            return await self.download(image.url)

        try:
            data = base64.b64decode(image.b64_json, validate=True)
        except binascii.Error as e:
            raw = image.b64_json.encode("ascii", errors="replace")
            raise DecodeError(f"image is not valid base64: {e}", frame=raw, cause=e) from e
        return BufferedByteReader(_single_chunk(data))

    async def _open(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
        authorize: bool = True,
    ) -> httpx.Response:
        request = self._client.build_request(
            method,
            url,
            json=json,
            params=params,
            headers=self._build_headers() if authorize else None,
        )
        logger.debug("Opening %s %s", method, request.url)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {request.url} failed: {e}", cause=e) from e

        if response.status_code >= 400:
            try:
                await response.aread()
            except httpx.HTTPError as e:
                raise TransportError(
                    f"reading HTTP {response.status_code} error body failed: {e}", cause=e
                ) from e
            finally:
                await response.aclose()
            raise self._error_from_response(response)
        return response

    def _error_from_response(self, response: httpx.Response) -> ProviderError:
        retry_after: float | None = None
        header = response.headers.get("retry-after")
        if header is not None:
            try:
                retry_after = float(header)
            except ValueError:
                retry_after = None

        raw: dict[str, Any]
        try:
            raw = response.json()
        except ValueError:
            raw = {"body": response.text}

        message = f"HTTP {response.status_code}"
        error_type: str | None = None
        if isinstance(raw, dict):
            error = raw.get("error")
            if isinstance(error, dict) and isinstance(error.get("message"), str):
                message = error["message"]
                if isinstance(error.get("type"), str):
                    error_type = error["type"]
            elif isinstance(raw.get("message"), str):
                message = raw["message"]

        return error_from_status_code(
            status_code=response.status_code,
            message=message,
            error_type=error_type,
            retry_after=retry_after,
            raw=raw if isinstance(raw, dict) else {"body": raw},
        )


class ResponseBody:
    """Byte source over a streamed httpx response; closing it releases the connection."""

    def __init__(self, response: httpx.Response):
        self._response = response
        self._chunks = response.aiter_bytes()

    def __aiter__(self) -> ResponseBody:
        return self

    async def __anext__(self) -> bytes:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            await self.aclose()
            raise
        except httpx.HTTPError as e:
            # Also covers a body whose content-encoding cannot be decoded.
            await self.aclose()
            raise TransportError(f"reading response body failed: {e}", cause=e) from e

    async def aclose(self) -> None:
        if not self._response.is_closed:
            await self._response.aclose()
            logger.debug("Closed response body for %s", self._response.request.url)


async def _single_chunk(data: bytes) -> AsyncIterator[bytes]:
    yield data
