"""Service layer coordinating the generator, rate limiting and extraction."""

from .rate_limiter import RollingWindowRateLimiter
from .segmentation import SegmentationResult, SegmentationService

__all__ = ["RollingWindowRateLimiter", "SegmentationResult", "SegmentationService"]
