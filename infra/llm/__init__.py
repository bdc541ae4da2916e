"""LLM access: LLMClient over OpenRouter, with retries and per-call cost."""

from infra.llm.client import LLMClient
from infra.llm.openrouter import (
    CostCalculator,
    MalformedResponseError,
    PricingCache,
)

__all__ = [
    "LLMClient",
    "CostCalculator",
    "MalformedResponseError",
    "PricingCache",
]
