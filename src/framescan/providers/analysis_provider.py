"""LLM-backed analysis provider.

Loads the frame-scan prompt, appends a deterministic JSON context payload
built from the ProviderRequest, calls the LLM, and parses the response into a
raw payload dict. Normalization happens later, at the pipeline boundary.

Fail-closed: a missing prompt, invalid JSON, or a non-object response raises
ValueError.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Final, Protocol

from framescan.providers.llm_client import (
    CONTEXT_PAYLOAD_MARKER,
    DeterministicFrameScanLLMClient,
    LLMClient,
)
from framescan.providers.models import ProviderRequest
from framescan.scoring.domain_packs import get_domain_pack
from framescan.scoring.models import Modality

logger = logging.getLogger(__name__)

FRAMESCAN_LLM_BACKEND_ENV: Final[str] = "FRAMESCAN_LLM_BACKEND"

_DEFAULT_PROMPT_PATH = (
    Path(__file__).resolve().parents[1] / "prompts" / "frame_scan" / "1.0.0" / "prompt.md"
)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


class AnalysisProvider(Protocol):
    """Produces a raw frame-scan payload for a request."""

    def analyze(self, request: ProviderRequest) -> dict[str, Any]:
        """Analyze content and return the provider's JSON object.

        Raises:
            Exception: Any failure; the pipeline maps it to ProviderFailure.
        """
        ...


def _load_prompt(prompt_path: Path) -> str:
    """Load prompt text from disk. Fail-closed on missing file."""
    if not prompt_path.exists():
        raise ValueError(f"Prompt file not found: {prompt_path}")
    return prompt_path.read_text(encoding="utf-8")


def _build_context_payload(request: ProviderRequest) -> str:
    """Build a deterministic JSON context payload for the frame-scan LLM."""
    pack = get_domain_pack(request.domain)
    payload = {
        "domain": request.domain.value,
        "domain_label": pack.label,
        "priority_axes": [a.value for a in pack.priority_axes],
        "modality": request.modality.value,
        "tier": request.tier.value,
        "content": request.content,
        "image_ref": request.image_ref,
        "context_label": request.context_label,
    }
    return json.dumps(payload, sort_keys=True, indent=2)


def _strip_markdown_fences(text: str) -> str:
    stripped = text.strip()
    match = _FENCE_PATTERN.search(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def _parse_llm_response(raw: str) -> dict[str, Any]:
    """Parse LLM response as a JSON object. Fail-closed on invalid.

    Raises:
        ValueError: If the response is not valid JSON or not an object.
    """
    cleaned = _strip_markdown_fences(raw)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"LLM response is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError(f"LLM response must be a JSON object, got {type(parsed).__name__}")
    return parsed


class LLMAnalysisProvider:
    """AnalysisProvider backed by an LLMClient and a versioned prompt."""

    def __init__(self, llm_client: LLMClient, prompt_path: Path | None = None) -> None:
        self._llm_client = llm_client
        self._prompt_path = prompt_path or _DEFAULT_PROMPT_PATH

    def analyze(self, request: ProviderRequest) -> dict[str, Any]:
        prompt_text = _load_prompt(self._prompt_path)
        full_prompt = f"{prompt_text}\n\n{CONTEXT_PAYLOAD_MARKER}{_build_context_payload(request)}"

        logger.debug(
            "Calling LLM for %s scan (domain=%s, tier=%s)",
            request.modality.value,
            request.domain.value,
            request.tier.value,
        )
        image_ref = request.image_ref if request.modality == Modality.IMAGE else None
        raw = self._llm_client.call(full_prompt, json_mode=True, image_ref=image_ref)
        return _parse_llm_response(raw)


def build_llm_client() -> LLMClient:
    """Build the LLM client from FRAMESCAN_LLM_BACKEND (default: deterministic).

    Raises:
        ValueError: If the anthropic backend is selected without ANTHROPIC_API_KEY,
            or the backend name is unknown.
    """
    backend = os.environ.get(FRAMESCAN_LLM_BACKEND_ENV, "deterministic").strip().lower()

    if backend == "anthropic":
        from framescan.providers.anthropic_client import AnthropicLLMClient

        return AnthropicLLMClient()
    if backend == "deterministic":
        return DeterministicFrameScanLLMClient()
    raise ValueError(
        f"Unknown {FRAMESCAN_LLM_BACKEND_ENV} value: {backend!r} "
        "(expected deterministic or anthropic)"
    )


def build_analysis_provider() -> LLMAnalysisProvider:
    return LLMAnalysisProvider(llm_client=build_llm_client())
