"""Anthropic LLM client for frame scans.

Text scans send the prompt as a single text block. Image scans put the image
first as a vision content block (URL source for https references, base64
source for data URIs) followed by the prompt, so the model sees the image
itself rather than only its reference inside the context payload.

Configuration via environment variables:
- ANTHROPIC_API_KEY: Required. Fail-closed if missing.
- FRAMESCAN_ANTHROPIC_MODEL: Model for frame scans (default: claude-sonnet-4-20250514).
"""

from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Final

import anthropic

logger = logging.getLogger(__name__)

FRAMESCAN_ANTHROPIC_MODEL_ENV: Final[str] = "FRAMESCAN_ANTHROPIC_MODEL"
DEFAULT_ANTHROPIC_MODEL: Final[str] = "claude-sonnet-4-20250514"

MAX_RETRIES = 2
RETRY_BACKOFF_BASE_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 120
MAX_TOKENS = 4096

SUPPORTED_IMAGE_MEDIA_TYPES: frozenset[str] = frozenset(
    {"image/jpeg", "image/png", "image/gif", "image/webp"}
)

FRAME_SCAN_SYSTEM_PROMPT = (
    "You are a frame analyst. You score how a message or image positions its "
    "author on each frame axis, from -3 (slave frame) to +3 (apex frame)."
)
JSON_ONLY_INSTRUCTION = (
    "You MUST respond with valid JSON only. No markdown, no explanation, "
    "no code fences. Output raw JSON."
)

_DATA_URI_PATTERN = re.compile(r"^data:(?P<media_type>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)


class UnsupportedImageRef(ValueError):
    """Raised when an image reference is neither an https URL nor a base64 data URI."""


def build_image_block(image_ref: str) -> dict[str, Any]:
    """Build an Anthropic image content block for an image reference.

    Raises:
        UnsupportedImageRef: For other schemes or unsupported media types.
    """
    ref = image_ref.strip()
    if ref.startswith("https://"):
        return {"type": "image", "source": {"type": "url", "url": ref}}

    match = _DATA_URI_PATTERN.match(ref)
    if match is None:
        raise UnsupportedImageRef(
            "Image reference must be an https URL or a base64 data URI "
            f"(got {ref[:32]!r})"
        )
    media_type = match.group("media_type").lower()
    if media_type not in SUPPORTED_IMAGE_MEDIA_TYPES:
        raise UnsupportedImageRef(f"Unsupported image media type: {media_type}")
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": match.group("data")},
    }


def _retry_label(exc: anthropic.APIError) -> str | None:
    """Return a log label for a retryable error, or None if it must not be retried."""
    if isinstance(exc, anthropic.APIConnectionError):
        return "connection error"
    if isinstance(exc, anthropic.APIStatusError):
        if exc.status_code == 429:
            return "rate limit"
        if exc.status_code >= 500:
            return f"server error {exc.status_code}"
    return None


class AnthropicLLMClient:
    """Anthropic-backed frame-scan client.

    Temperature is fixed at 0. Rate limits, 5xx responses, and connection
    errors are retried with exponential backoff; other API errors are not.

    Fail-closed: raises ValueError if ANTHROPIC_API_KEY is not set.
    """

    def __init__(self, *, model: str | None = None, max_tokens: int | None = None) -> None:
        """Initialize the Anthropic client.

        Args:
            model: Model identifier override. Falls back to FRAMESCAN_ANTHROPIC_MODEL,
                then DEFAULT_ANTHROPIC_MODEL.
            max_tokens: Maximum output tokens per request (default MAX_TOKENS).

        Raises:
            ValueError: If ANTHROPIC_API_KEY is not set in the environment.
        """
        api_key = os.environ.get("ANTHROPIC_API_KEY", "")
        if not api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable is required for the anthropic "
                "frame-scan backend. Set FRAMESCAN_LLM_BACKEND=deterministic to run offline."
            )

        self._model = model or os.environ.get(
            FRAMESCAN_ANTHROPIC_MODEL_ENV, DEFAULT_ANTHROPIC_MODEL
        )
        self._max_tokens = max_tokens or MAX_TOKENS
        self._client: anthropic.Anthropic = anthropic.Anthropic(
            api_key=api_key,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    @property
    def model(self) -> str:
        return self._model

    def build_messages(
        self, prompt: str, image_ref: str | None = None
    ) -> list[anthropic.types.MessageParam]:
        """Build the user message: optional image block, then the prompt text."""
        content: list[dict[str, Any]] = []
        if image_ref:
            content.append(build_image_block(image_ref))
        content.append({"type": "text", "text": prompt})
        return [{"role": "user", "content": content}]  # type: ignore[list-item]

    def call(self, prompt: str, *, json_mode: bool = False, image_ref: str | None = None) -> str:
        """Send a frame-scan prompt (and image, if any) and return the response text.

        Raises:
            UnsupportedImageRef: If image_ref cannot be sent as a vision block.
            RuntimeError: On a non-retryable API error or once retries are exhausted.
        """
        system = FRAME_SCAN_SYSTEM_PROMPT
        if json_mode:
            system = f"{system}\n\n{JSON_ONLY_INSTRUCTION}"
        messages = self.build_messages(prompt, image_ref)

        last_error: anthropic.APIError | None = None
        for attempt in range(MAX_RETRIES + 1):
            try:
                response = self._client.messages.create(
                    model=self._model,
                    max_tokens=self._max_tokens,
                    temperature=0,
                    system=system,
                    messages=messages,
                )
            except anthropic.APIError as exc:
                label = _retry_label(exc)
                if label is None:
                    status = getattr(exc, "status_code", None)
                    raise RuntimeError(
                        f"Anthropic API error (non-retryable): {status or type(exc).__name__}"
                    ) from exc
                last_error = exc
                logger.warning(
                    "Anthropic %s on frame scan (attempt %d/%d)",
                    label,
                    attempt + 1,
                    MAX_RETRIES + 1,
                )
                if attempt < MAX_RETRIES:
                    _backoff(attempt)
                continue

            texts = [str(block.text) for block in response.content if hasattr(block, "text")]
            if not texts:
                raise RuntimeError("Anthropic response contained no text content")
            return "".join(texts)

        raise RuntimeError(
            f"Anthropic API call failed after {MAX_RETRIES + 1} attempts"
        ) from last_error


def _backoff(attempt: int) -> None:
    time.sleep(RETRY_BACKOFF_BASE_SECONDS * (2**attempt))
