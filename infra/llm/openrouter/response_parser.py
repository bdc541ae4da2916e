import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import MalformedResponseError


@dataclass
class ParsedResponse:
    content: Optional[str]
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    model_used: str = ""

    @property
    def usage(self) -> Dict[str, int]:
        return {
            'prompt_tokens': self.prompt_tokens,
            'completion_tokens': self.completion_tokens,
            'total_tokens': self.total_tokens,
        }


class ResponseParser:
    """Extracts message text and token usage from a chat completion."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def parse_chat_completion(self, result: Dict[str, Any], model: str) -> ParsedResponse:
        try:
            message = result['choices'][0]['message']
            content = message['content']
        except (KeyError, IndexError, TypeError) as e:
            keys = sorted(result) if isinstance(result, dict) else type(result).__name__
            self.logger.error("Malformed OpenRouter response for %s: %r (keys=%s)", model, e, keys)
            raise MalformedResponseError(f"Malformed OpenRouter response for {model}: {e!r}") from e

        usage = result.get('usage') or {}
        prompt_tokens = usage.get('prompt_tokens', 0)
        completion_tokens = usage.get('completion_tokens', 0)

        parsed = ParsedResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=usage.get('total_tokens', prompt_tokens + completion_tokens),
            model_used=result.get('model') or model,
        )
        self.logger.debug(
            "model=%s chars=%d tokens=%d/%d",
            parsed.model_used, len(content or ""), prompt_tokens, completion_tokens
        )
        return parsed
