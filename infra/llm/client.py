"""
OpenRouter chat client used for transcription, translation, summaries and
spread detection.

One ``call`` is one logical request: the transport posts it, the retry
policy absorbs transient vendor failures, the parser extracts text and
usage, and the cost calculator prices the usage.
"""

from typing import Dict, List, Optional, Tuple

from PIL import Image

from infra.config import Config
from infra.llm.openrouter import (
    CostCalculator,
    OpenRouterTransport,
    ResponseParser,
    RetryPolicy,
    add_images_to_messages,
)


class LLMClient:
    """
    Anything with the same ``call`` signature can stand in for this class;
    the pipeline components never look past it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        site_url: Optional[str] = None,
        site_name: Optional[str] = None,
        max_retries: Optional[int] = None,
        cost_calculator: Optional[CostCalculator] = None,
    ):
        self.transport = OpenRouterTransport(api_key=api_key, site_url=site_url, site_name=site_name)
        self.retry = RetryPolicy(max_retries=max_retries or Config.max_retries)
        self.parser = ResponseParser()
        self.cost_calculator = cost_calculator or CostCalculator()

    @staticmethod
    def build_payload(
        model: str,
        messages: List[Dict],
        temperature: float,
        max_tokens: Optional[int],
        response_format: Optional[Dict],
        images: Optional[List[Image.Image]],
    ) -> Dict:
        payload = {
            "model": model,
            "messages": add_images_to_messages(messages, images) if images else [dict(m) for m in messages],
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if response_format:
            payload["response_format"] = response_format
        return payload

    def call(
        self,
        model: str,
        messages: List[Dict],
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        timeout: int = 120,
        response_format: Optional[Dict] = None,
        images: Optional[List[Image.Image]] = None,
    ) -> Tuple[str, Dict, float]:
        """
        Send one chat completion and return ``(text, usage, cost_usd)``.

        ``response_format`` is passed through unchanged (OpenRouter's
        ``{"type": "json_schema", ...}`` form). ``images`` are attached to the
        last user message as JPEG data URLs.

        Raises requests exceptions or MalformedResponseError once the retry
        policy gives up.
        """
        payload = self.build_payload(model, messages, temperature, max_tokens, response_format, images)

        parsed = self.retry.execute_with_retry(
            lambda: self.parser.parse_chat_completion(self.transport.post(payload, timeout), model),
            payload,
        )

        cost = self.cost_calculator.calculate_cost(
            model,
            parsed.prompt_tokens,
            parsed.completion_tokens,
            num_images=len(images or []),
        )
        return parsed.content or "", parsed.usage, cost
