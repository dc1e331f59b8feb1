"""Provider-agnostic LLM client interface + deterministic offline client.

LLMClient: Protocol for making LLM calls (provider-agnostic).
DeterministicFrameScanLLMClient: Scores content from keyword cues so that the
engine runs end to end without network access. Used by default and in tests.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

from framescan.scoring.models import ALL_AXES, AxisId

logger = logging.getLogger(__name__)

CONTEXT_PAYLOAD_MARKER = "CONTEXT PAYLOAD:\n"

_APEX_CUES: tuple[str, ...] = (
    "i will",
    "i'll",
    "we will",
    "we'll",
    "let's",
    "next step",
    "i decided",
    "i've decided",
    "here's the plan",
    "my standard",
    "confident",
    "looking forward",
)
_SLAVE_CUES: tuple[str, ...] = (
    "sorry",
    "just checking",
    "just wanted",
    "i hope",
    "hopefully",
    "if you don't mind",
    "is it ok",
    "would it be possible",
    "permission",
    "please please",
    "i know you're busy",
    "any chance",
    "desperate",
    "begging",
)
_WIN_LOSE_CUES: tuple[str, ...] = (
    "last chance",
    "act now",
    "or else",
    "you'll regret",
    "limited time",
)
_MUTUAL_CUES: tuple[str, ...] = ("together", "both of us", "mutual", "for you and", "win-win")

_MIN_TEXT_WORDS = 3


class LLMClient(Protocol):
    """Provider-agnostic interface for LLM calls."""

    def call(self, prompt: str, *, json_mode: bool = False, image_ref: str | None = None) -> str:
        """Make an LLM call and return the raw response text.

        Args:
            prompt: The full prompt text to send.
            json_mode: If True, request JSON-formatted output.
            image_ref: Image to attach for vision analysis (https URL or data URI).

        Returns:
            Raw response string from the LLM.
        """
        ...


def _count_cues(text: str, cues: tuple[str, ...]) -> list[str]:
    return [cue for cue in cues if cue in text]


def _clamp(value: int) -> int:
    return max(-3, min(3, value))


class DeterministicFrameScanLLMClient:
    """Deterministic frame-scan client for offline runs and tests.

    Parses the context payload from the prompt and derives axis scores from
    apex/slave phrase cues. No external calls are made.
    """

    def call(self, prompt: str, *, json_mode: bool = False, image_ref: str | None = None) -> str:
        """Return deterministic frame-scan JSON for the prompt's payload.

        Args:
            prompt: Full prompt text ending in the context payload.
            json_mode: Ignored; always returns JSON.
            image_ref: Ignored; image scans are scored from the context label.
        """
        payload = self._extract_payload(prompt)
        result = self._analyze(payload)
        return json.dumps(result, sort_keys=True)

    def _extract_payload(self, prompt: str) -> dict[str, Any]:
        start = prompt.find(CONTEXT_PAYLOAD_MARKER)
        if start == -1:
            return {}
        try:
            payload = json.loads(prompt[start + len(CONTEXT_PAYLOAD_MARKER) :])
        except json.JSONDecodeError:
            logger.warning("Deterministic client could not parse context payload")
            return {}
        return payload if isinstance(payload, dict) else {}

    def _analyze(self, payload: dict[str, Any]) -> dict[str, Any]:
        modality = payload.get("modality", "text")
        content = str(payload.get("content") or "")
        context_label = str(payload.get("context_label") or "")

        if modality == "text" and len(content.split()) < _MIN_TEXT_WORDS:
            return {
                "status": "rejected",
                "rejection_reason": "Not enough human content to analyze.",
            }

        text = f"{content} {context_label}".lower()
        text = re.sub(r"\s+", " ", text)
        apex_hits = _count_cues(text, _APEX_CUES)
        slave_hits = _count_cues(text, _SLAVE_CUES)
        win_lose_hits = _count_cues(text, _WIN_LOSE_CUES)
        mutual_hits = _count_cues(text, _MUTUAL_CUES)

        base = _clamp(len(apex_hits) - len(slave_hits))
        axes: list[dict[str, Any]] = []
        for axis in ALL_AXES:
            score = base
            if axis == AxisId.WIN_WIN_INTEGRITY:
                score = _clamp(base + len(mutual_hits) - 2 * len(win_lose_hits))
            axes.append(
                {
                    "axis_id": axis.value,
                    "score": score,
                    "notes": f"{len(apex_hits)} apex cue(s), {len(slave_hits)} slave cue(s)",
                }
            )

        if win_lose_hits:
            win_win_state = "win_lose"
        elif mutual_hits:
            win_win_state = "win_win"
        else:
            win_win_state = "neutral"

        patterns: list[str] = []
        if "sorry" in slave_hits:
            patterns.append("apologetic opener")
        if any(c in slave_hits for c in ("is it ok", "permission", "would it be possible")):
            patterns.append("permission seeking")
        if any(c in slave_hits for c in ("just checking", "just wanted")):
            patterns.append("chasing posture")
        if win_lose_hits:
            patterns.append("pressure close")

        top_shifts: list[dict[str, Any]] = []
        if base < 0:
            top_shifts.append(
                {
                    "axis_id": AxisId.SELF_TRUST_VS_PERMISSION.value,
                    "shift": "State the decision instead of asking for approval",
                    "protocol_steps": ["Remove apologies", "Lead with the next step"],
                }
            )

        result: dict[str, Any] = {
            "status": "ok",
            "title": self._title(modality, content, context_label),
            "summary": f"Frame cues: {len(apex_hits)} apex, {len(slave_hits)} slave",
            "overall_win_win_state": win_win_state,
            "axes": axes,
            "diagnostics": {
                "primary_patterns": patterns,
                "supporting_evidence": sorted(set(apex_hits + slave_hits + win_lose_hits)),
            },
            "corrections": {"top_shifts": top_shifts},
        }
        if modality == "image":
            result["annotations"] = [
                {
                    "annotation_id": "ann-1",
                    "label": "Overall presence",
                    "description": context_label or "Image subject",
                    "severity": "info" if base >= 0 else "warning",
                    "x": 0.25,
                    "y": 0.25,
                    "width": 0.5,
                    "height": 0.5,
                }
            ]
        return result

    @staticmethod
    def _title(modality: str, content: str, context_label: str) -> str:
        source = context_label if modality == "image" else content
        words = source.split()
        title = " ".join(words[:6])
        return title + ("..." if len(words) > 6 else "")
