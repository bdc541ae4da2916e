import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Optional

import requests
from pydantic import BaseModel, ValidationError

from infra.config import Config

logger = logging.getLogger(__name__)

MODELS_URL = "https://openrouter.ai/api/v1/models"


class ModelPricing(BaseModel):
    """USD per unit, as published by OpenRouter."""
    prompt: float = 0.0
    completion: float = 0.0
    request: float = 0.0
    image: float = 0.0

    def cost(self, prompt_tokens: int, completion_tokens: int, num_requests: int = 1, num_images: int = 0) -> float:
        return (
            prompt_tokens * self.prompt
            + completion_tokens * self.completion
            + num_requests * self.request
            + num_images * self.image
        )


class PricingCache:
    """Model price table, fetched at most once per TTL and kept on disk."""

    def __init__(self, cache_dir: Optional[Path] = None, cache_ttl_hours: int = 24):
        self.cache_dir = Path(cache_dir) if cache_dir is not None else Path.home() / ".cache" / "folio"
        self.cache_file = self.cache_dir / "openrouter_pricing.json"
        self.cache_ttl = timedelta(hours=cache_ttl_hours)
        self._table: Optional[Dict[str, ModelPricing]] = None

    def _read_cache(self) -> Optional[Dict[str, ModelPricing]]:
        try:
            with open(self.cache_file) as f:
                cached = json.load(f)
            cached_at = datetime.fromisoformat(cached['cached_at'])
            if datetime.now() - cached_at >= self.cache_ttl:
                return None
            return {
                model_id: ModelPricing.model_validate(entry)
                for model_id, entry in cached.get('pricing', {}).items()
            }
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, ValidationError) as e:
            logger.debug("Ignoring unreadable pricing cache %s: %s", self.cache_file, e)
            return None

    def _fetch(self) -> Dict[str, ModelPricing]:
        response = requests.get(
            MODELS_URL,
            headers={"Authorization": f"Bearer {Config.openrouter_api_key}"},
            timeout=10,
        )
        response.raise_for_status()

        table = {}
        for model in response.json().get('data', []):
            if model.get('id') and model.get('pricing'):
                raw = model['pricing']
                table[model['id']] = ModelPricing(**{
                    unit: float(raw.get(unit) or 0) for unit in ModelPricing.model_fields
                })
        return table

    def _write_cache(self, table: Dict[str, ModelPricing]) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with open(self.cache_file, 'w') as f:
            json.dump({
                'cached_at': datetime.now().isoformat(),
                'pricing': {model_id: p.model_dump() for model_id, p in table.items()},
            }, f, indent=2)

    def get_pricing(self, refresh: bool = False) -> Dict[str, ModelPricing]:
        if not refresh and self._table is None:
            self._table = self._read_cache()

        if refresh or self._table is None:
            self._table = self._fetch()
            self._write_cache(self._table)
            logger.info("Fetched OpenRouter pricing for %d models", len(self._table))

        return self._table

    def get_model_pricing(self, model_id: str, refresh: bool = False) -> Optional[ModelPricing]:
        return self.get_pricing(refresh=refresh).get(model_id)


class CostCalculator:
    """Turns token usage into USD; an unknown model or pricing outage costs 0.0."""

    def __init__(self, pricing_cache: Optional[PricingCache] = None):
        self.pricing_cache = pricing_cache or PricingCache()

    def calculate_cost(
        self,
        model_id: str,
        prompt_tokens: int,
        completion_tokens: int,
        num_requests: int = 1,
        num_images: int = 0
    ) -> float:
        try:
            pricing = self.pricing_cache.get_model_pricing(model_id)
        except (requests.exceptions.RequestException, OSError, ValueError) as e:
            logger.warning("Pricing lookup failed for %s: %s", model_id, e)
            return 0.0

        if pricing is None:
            return 0.0
        return pricing.cost(prompt_tokens, completion_tokens, num_requests, num_images)
