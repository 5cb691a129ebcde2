"""Turn speech text into a timed segment sequence via the generator, with fallback."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncGenerator, Optional

from ..config import Settings
from ..errors import GenerationFailure, RateLimitExceeded
from ..schemas.segments import RateLimitStatus, SegmentationEvent, SegmentationRequest
from ..segments.durations import DurationPolicy
from ..segments.local import segment_locally
from ..segments.models import SegmentSequence
from ..segments.pipeline import (
    ChunkEvent,
    ExtractionResult,
    ExtractionSource,
    StreamAccumulator,
    extract_with_source,
)
from .rate_limiter import RollingWindowRateLimiter

if TYPE_CHECKING:
    from ..generator import SegmentGeneratorClient

logger = logging.getLogger(__name__)

DEFAULT_USER = "local"


@dataclass(frozen=True)
class SegmentationResult:
    sequence: SegmentSequence
    source: ExtractionSource
    error: Optional[str] = None

    @property
    def fallback(self) -> bool:
        return self.source is ExtractionSource.LOCAL


class SegmentationService:
    """Coordinates rate limiting, the generator stream and the extraction chain.

    Generator problems never surface as errors: rate limiting, transport failures,
    error events and unusable output all end in local segmentation of the
    request text, with the reason reported on the final event.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: "SegmentGeneratorClient | None" = None,
        rate_limiter: RollingWindowRateLimiter | None = None,
        policy: DurationPolicy | None = None,
    ):
        self._settings = settings
        if client is None and settings.generator_enabled:
            from ..generator import SegmentGeneratorClient

            client = SegmentGeneratorClient(settings)
        self._client = client
        self._rate_limiter = rate_limiter or RollingWindowRateLimiter(
            settings.rate_limit_per_hour
        )
        self._policy = policy or DurationPolicy.from_settings(settings)

    @property
    def policy(self) -> DurationPolicy:
        return self._policy

    @property
    def generator_available(self) -> bool:
        return self._client is not None

    def preview(
        self, text: str, target_duration: Optional[float] = None
    ) -> SegmentSequence:
        """Local segmentation shown before (or instead of) a generator run."""

        return segment_locally(text, target_duration, self._policy)

    def rate_limit_status(self, user_id: str = DEFAULT_USER) -> RateLimitStatus:
        return self._rate_limiter.usage(user_id)

    async def stream(
        self,
        request: SegmentationRequest,
        *,
        user_id: str = DEFAULT_USER,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[SegmentationEvent, None]:
        """Yield progress events for generated text, then one done event.

        When ``cancel_event`` is set the stream stops without a done event and the
        buffered generator text is dropped.
        """

        async for event, _ in self._run(request, user_id, cancel_event):
            yield event

    async def _run(
        self,
        request: SegmentationRequest,
        user_id: str,
        cancel_event: Optional[asyncio.Event],
    ) -> AsyncGenerator[tuple[SegmentationEvent, Optional[ExtractionResult]], None]:
        text = request.text.strip()
        raw: Optional[str] = None
        error: Optional[str] = None

        if text and self._client is None:
            error = "generator_unavailable"
        elif text:
            try:
                self._rate_limiter.acquire(user_id)
            except RateLimitExceeded:
                error = "rate_limited"
            else:
                accumulator = StreamAccumulator()
                try:
                    async for event in self._client.stream_segments(
                        text,
                        model=request.model,
                        target_duration=request.target_duration,
                    ):
                        if cancel_event is not None and cancel_event.is_set():
                            logger.info("Segmentation cancelled by caller")
                            return
                        if isinstance(event, ChunkEvent):
                            progress = SegmentationEvent(type="progress", content=event.text)
                            yield progress, None
                        if accumulator.feed(event):
                            break
                except GenerationFailure as exc:
                    logger.warning(
                        "Generator call failed (%s): %s; falling back to local segmentation",
                        exc.status_code,
                        exc.detail,
                    )
                    error = "generator_failed"
                else:
                    if cancel_event is not None and cancel_event.is_set():
                        logger.info("Segmentation cancelled by caller")
                        return
                    raw = accumulator.result()
                    if raw is None:
                        error = "generator_error"

        result = extract_with_source(
            raw, text, request.target_duration, self._policy
        )
        logger.info(
            "Segmented %d chars into %d segments (source=%s)",
            len(text),
            len(result.sequence),
            result.source.value,
        )
        done = SegmentationEvent(
            type="done",
            done=True,
            segments=result.sequence.to_document()["segments"],
            source=result.source.value,
            fallback=result.is_fallback,
            error=error,
        )
        yield done, result

    async def segment(
        self,
        request: SegmentationRequest,
        *,
        user_id: str = DEFAULT_USER,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[SegmentationResult]:
        """Run ``stream`` to completion; None when cancelled."""

        final: Optional[SegmentationResult] = None
        async for event, result in self._run(request, user_id, cancel_event):
            if result is not None:
                final = SegmentationResult(
                    sequence=result.sequence,
                    source=result.source,
                    error=event.error,
                )
        return final

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


__all__ = ["SegmentationResult", "SegmentationService"]
