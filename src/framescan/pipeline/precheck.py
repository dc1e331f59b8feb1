"""Local context checks run before any credits move or the provider is called."""

from __future__ import annotations

from framescan.pipeline.errors import ContentRejected

MIN_TEXT_WORDS = 3
MIN_CONTEXT_LABEL_WORDS = 2

GENERIC_IMAGE_LABELS: frozenset[str] = frozenset(
    {"test", "image", "photo", "pic", "picture", "img", "screenshot", "untitled"}
)


def check_text_content(content: str | None) -> None:
    """Reject text with fewer than MIN_TEXT_WORDS words.

    Raises:
        ContentRejected: With a reason naming what is missing.
    """
    words = (content or "").split()
    if len(words) < MIN_TEXT_WORDS:
        raise ContentRejected(
            f"Not enough text to analyze (need at least {MIN_TEXT_WORDS} words). "
            "Paste the full message you want scanned."
        )


def check_image_context(image_ref: str | None, context_label: str | None) -> None:
    """Reject image scans without an image or a usable who/what/why description.

    Raises:
        ContentRejected: With a reason naming what is missing.
    """
    if not image_ref or not image_ref.strip():
        raise ContentRejected("No image was provided.")

    label = (context_label or "").strip()
    if not label:
        raise ContentRejected(
            "Describe the image: who is shown, what it is for, and why you are scanning it."
        )
    words = label.lower().split()
    if len(words) < MIN_CONTEXT_LABEL_WORDS or all(w in GENERIC_IMAGE_LABELS for w in words):
        raise ContentRejected(
            f"The description {label!r} is too generic. "
            "Say who is shown, what the image is for, and why you are scanning it."
        )
