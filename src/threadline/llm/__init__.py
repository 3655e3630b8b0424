"""Thread analysis via Gemini.

Public API:
    analyze_thread(thread, ...) -> AnalysisResult
        Summarizes a discussion thread and detects its action items via
        Gemini structured output with retry logic and a TTL cache.
"""

from threadline.llm.analyzer import analyze_thread, clear_analysis_cache
from threadline.llm.client import get_gemini_client, reset_client
from threadline.llm.schemas import LLMAnalysis

__all__ = [
    "LLMAnalysis",
    "analyze_thread",
    "clear_analysis_cache",
    "get_gemini_client",
    "reset_client",
]
