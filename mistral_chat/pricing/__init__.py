"""Model price table and cost estimation."""

from mistral_chat.pricing.cost import estimate_cost, estimate_page_cost
from mistral_chat.pricing.models import (
    DEFAULT_MODEL,
    MISTRAL_MODELS,
    Currency,
    ModelInfo,
    PricingUnit,
    format_price,
    get_model_info,
    model_options,
)

__all__ = [
    "DEFAULT_MODEL",
    "MISTRAL_MODELS",
    "Currency",
    "ModelInfo",
    "PricingUnit",
    "estimate_cost",
    "estimate_page_cost",
    "format_price",
    "get_model_info",
    "model_options",
]
