"""Streaming client for the external segment generator (OpenRouter-compatible)."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Iterable, Mapping, Optional, Sequence

import httpx

from .config import Settings
from .errors import GenerationFailure
from .segments.pipeline import ChunkEvent, DoneEvent, ErrorEvent, GeneratorEvent

logger = logging.getLogger(__name__)

BAD_GATEWAY = 502


@dataclass
class ServerSentEvent:
    """Represents a parsed Server-Sent Event."""

    data: str
    event: str = "message"
    event_id: Optional[str] = None


def build_segmentation_prompt(text: str, target_duration: Optional[float]) -> str:
    """Return the user prompt asking for a timed phrase breakdown."""

    duration_info = ""
    if target_duration:
        duration_info = (
            f" The total duration should be about {int(target_duration * 1000)} "
            f"milliseconds ({target_duration:g} seconds)."
        )
    return (
        "Split the following speech into short phrases suitable for a "
        f"teleprompter (2-3 words per phrase).{duration_info}\n\n"
        f"Speech:\n{text}\n\n"
        'Respond with JSON of the form {"segments": [{"text": ..., "duration": ...}]} '
        "where duration is in milliseconds. A 2-word phrase takes about 800 ms and "
        "a 3-word phrase about 1200 ms. Add a short pause after punctuation."
    )


class SegmentGeneratorClient:
    """Client responsible for streaming segment documents from the generator."""

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings
        self._http_client = http_client

    def _client_key(self) -> tuple[str, float]:
        return (self._base_url, float(self._settings.request_timeout))

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        key = self._client_key()
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                )
                client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    http2=True,
                )
                self.__class__._client_pool[key] = client
        return client

    @property
    def _headers(self) -> dict[str, str]:
        api_key = self._settings.generator_api_key
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if api_key is not None:
            headers["Authorization"] = f"Bearer {api_key.get_secret_value()}"
        if self._settings.generator_app_url:
            referer = str(self._settings.generator_app_url)
            headers["HTTP-Referer"] = referer
            headers["Referer"] = referer
        if self._settings.generator_app_name:
            headers["X-Title"] = self._settings.generator_app_name
        return headers

    @property
    def _base_url(self) -> str:
        """Return the generator API base URL without a trailing slash."""

        return str(self._settings.generator_base_url).rstrip("/")

    def build_payload(
        self,
        text: str,
        *,
        model: Optional[str] = None,
        target_duration: Optional[float] = None,
    ) -> dict[str, Any]:
        return {
            "model": model or self._settings.default_model,
            "stream": True,
            "max_tokens": self._settings.generator_max_tokens,
            "messages": [
                {"role": "system", "content": self._settings.generator_system_prompt},
                {
                    "role": "user",
                    "content": build_segmentation_prompt(text, target_duration),
                },
            ],
        }

    async def stream_segments(
        self,
        text: str,
        *,
        model: Optional[str] = None,
        target_duration: Optional[float] = None,
    ) -> AsyncGenerator[GeneratorEvent, None]:
        """Stream generator output for ``text`` as chunk/done events."""

        payload = self.build_payload(
            text, model=model, target_duration=target_duration
        )
        async for event in self.stream_raw(payload):
            yield event

    async def stream_raw(
        self, payload: dict[str, Any]
    ) -> AsyncGenerator[GeneratorEvent, None]:
        """Low-level streaming helper accepting a prebuilt payload.

        Accepts either an SSE stream of chat completion deltas or a single JSON
        completion body, for providers that ignore ``stream: true``.
        """

        url = f"{self._base_url}/chat/completions"

        client = await self._get_http_client()
        try:
            async with client.stream(
                "POST",
                url,
                headers=self._headers,
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    detail = self._extract_error_detail(body)
                    raise GenerationFailure(response.status_code, detail)

                content_type = response.headers.get("content-type", "")
                if "text/event-stream" not in content_type:
                    body = await response.aread()
                    yield DoneEvent(self._extract_completion_text(body))
                    return

                chunks = 0
                async for event in self._iter_events(response):
                    if event.data == "[DONE]":
                        break
                    error = self._extract_stream_error(event.data)
                    if error is not None:
                        yield ErrorEvent(error)
                        return
                    content = self._extract_delta_text(event.data)
                    if content:
                        chunks += 1
                        yield ChunkEvent(content)
                logger.debug("Generator stream finished after %d chunks", chunks)
                yield DoneEvent()
        except httpx.HTTPError as exc:
            raise GenerationFailure(BAD_GATEWAY, str(exc)) from exc

    async def aclose(self) -> None:
        await self.__class__.aclose_shared()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close generator HTTP client: %s", exc)

    async def _iter_events(
        self, response: httpx.Response
    ) -> AsyncGenerator[ServerSentEvent, None]:
        buffer: list[str] = []
        async for line in response.aiter_lines():
            if not line:
                if buffer:
                    yield self._parse_event(buffer)
                    buffer.clear()
                continue
            if line.startswith(":"):
                continue
            buffer.append(line)
        if buffer:
            yield self._parse_event(buffer)

    def _parse_event(self, lines: Iterable[str]) -> ServerSentEvent:
        event_name: Optional[str] = None
        event_id: Optional[str] = None
        data_lines: list[str] = []

        for line in lines:
            field, _, value = line.partition(":")
            value = value.lstrip(" ")
            if field == "event":
                event_name = value or None
            elif field == "data":
                data_lines.append(value)
            elif field == "id":
                event_id = value or None

        data = "\n".join(data_lines)
        return ServerSentEvent(
            data=data, event=event_name or "message", event_id=event_id
        )

    @staticmethod
    def _extract_delta_text(data: str) -> str:
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            return ""  # keep-alives and partial frames carry no text
        if not isinstance(chunk, Mapping):
            return ""
        choices = chunk.get("choices")
        if not isinstance(choices, Sequence) or not choices:
            return ""
        choice = choices[0]
        if not isinstance(choice, Mapping):
            return ""
        delta = choice.get("delta")
        if isinstance(delta, Mapping) and isinstance(delta.get("content"), str):
            return delta["content"]
        return ""

    @staticmethod
    def _extract_stream_error(data: str) -> Optional[str]:
        """Return the error message carried by an in-stream error frame, if any."""

        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            return None
        if not isinstance(chunk, Mapping) or "error" not in chunk:
            return None
        error = chunk["error"]
        if isinstance(error, Mapping):
            return str(error.get("message") or error)
        return str(error)

    @staticmethod
    def _extract_completion_text(raw: bytes) -> str:
        """Pull the assistant text out of a non-streaming completion body."""

        try:
            payload = json.loads(raw.decode("utf-8", errors="ignore"))
        except json.JSONDecodeError:
            logger.warning("Generator returned a non-JSON completion body")
            return ""
        if not isinstance(payload, Mapping):
            return ""

        choices = payload.get("choices")
        if isinstance(choices, Sequence) and choices:
            first = choices[0]
            if isinstance(first, Mapping):
                message = first.get("message")
                if isinstance(message, Mapping) and isinstance(
                    message.get("content"), str
                ):
                    return message["content"]
                if isinstance(first.get("text"), str):
                    return first["text"]

        content = payload.get("content")
        if isinstance(content, Sequence) and not isinstance(content, str):
            return "".join(
                part.get("text") or ""
                for part in content
                if isinstance(part, Mapping)
            )
        return ""

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Generator returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("error") or payload
        return payload


__all__ = [
    "GenerationFailure",
    "SegmentGeneratorClient",
    "ServerSentEvent",
    "build_segmentation_prompt",
]
