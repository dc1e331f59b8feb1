"""Scan pipeline: validation, credit gating, provider call, scoring, persistence."""

from framescan.pipeline.domains import DomainInference, infer_image_domain, infer_text_domain
from framescan.pipeline.errors import (
    ContentRejected,
    InsufficientCredits,
    ProviderFailure,
    ScanError,
    ScanThrottled,
)
from framescan.pipeline.pipeline import ScanPipeline, ScanRequest, ScanState
from framescan.pipeline.throttle import ScanThrottle

__all__ = [
    "ContentRejected",
    "DomainInference",
    "InsufficientCredits",
    "ProviderFailure",
    "ScanError",
    "ScanPipeline",
    "ScanRequest",
    "ScanState",
    "ScanThrottle",
    "ScanThrottled",
    "infer_image_domain",
    "infer_text_domain",
]
