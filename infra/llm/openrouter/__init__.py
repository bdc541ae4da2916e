"""
OpenRouter building blocks composed by LLMClient.

- transport.py: authenticated POST to chat completions
- response_parser.py: text and usage extraction
- retry_policy.py: backoff for transient vendor failures
- pricing.py: cached per-model prices and cost calculation
- images.py: attaching PIL images to messages
"""

from .transport import OpenRouterTransport
from .response_parser import ResponseParser, ParsedResponse
from .retry_policy import RetryPolicy
from .errors import MalformedResponseError
from .pricing import PricingCache, CostCalculator, ModelPricing
from .images import add_images_to_messages, image_data_url

__all__ = [
    'OpenRouterTransport',
    'ResponseParser',
    'ParsedResponse',
    'MalformedResponseError',
    'RetryPolicy',
    'PricingCache',
    'CostCalculator',
    'ModelPricing',
    'add_images_to_messages',
    'image_data_url',
]
