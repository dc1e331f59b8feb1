"""Analysis provider boundary: request/result models and LLM-backed providers."""

from framescan.providers.analysis_provider import (
    AnalysisProvider,
    LLMAnalysisProvider,
    build_analysis_provider,
    build_llm_client,
)
from framescan.providers.llm_client import DeterministicFrameScanLLMClient, LLMClient
from framescan.providers.models import (
    ProviderRequest,
    ProviderResult,
    ProviderStatus,
    WinWinState,
)

__all__ = [
    "AnalysisProvider",
    "DeterministicFrameScanLLMClient",
    "LLMAnalysisProvider",
    "LLMClient",
    "ProviderRequest",
    "ProviderResult",
    "ProviderStatus",
    "WinWinState",
    "build_analysis_provider",
    "build_llm_client",
]
