import logging
from typing import Any, Dict, Optional

import requests

from infra.config import Config

CHAT_COMPLETIONS_URL = "https://openrouter.ai/api/v1/chat/completions"


def _has_images(payload: Dict[str, Any]) -> bool:
    for message in payload.get('messages', []):
        content = message.get('content')
        if isinstance(content, list) and any(part.get('type') == 'image_url' for part in content):
            return True
    return False


class OpenRouterTransport:
    """POSTs chat-completion payloads; HTTP errors are raised as requests exceptions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        site_url: Optional[str] = None,
        site_name: Optional[str] = None,
        url: str = CHAT_COMPLETIONS_URL,
        logger: Optional[logging.Logger] = None,
    ):
        self.api_key = api_key
        self.site_url = site_url or Config.openrouter_site_url
        self.site_name = site_name or Config.openrouter_site_name
        self.url = url
        self.logger = logger or logging.getLogger(__name__)
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        # key checked lazily so ledger-only commands never need one
        key = self.api_key or Config.require_api_key()
        return {
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.site_url,
            "X-Title": self.site_name,
        }

    def post(self, payload: Dict[str, Any], timeout: int = 120) -> Dict[str, Any]:
        model = payload.get('model', 'unknown')
        self.logger.debug(
            "POST %s model=%s images=%s structured=%s",
            self.url, model, _has_images(payload), 'response_format' in payload
        )

        response = self.session.post(self.url, headers=self._headers(), json=payload, timeout=timeout)
        self.logger.debug("model=%s status=%s", model, response.status_code)

        response.raise_for_status()
        return response.json()
