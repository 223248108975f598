"""Cost estimation from token usage and the static price table."""

from typing import TYPE_CHECKING

from mistral_chat.logging_config import get_logger
from mistral_chat.pricing.models import Currency, ModelInfo, PricingUnit, get_model_info

if TYPE_CHECKING:
    from mistral_chat.usage import UsageRecord

logger = get_logger(__name__)

TOKENS_PER_PRICE_UNIT = 1_000_000


def estimate_page_cost(info: ModelInfo, usage: "UsageRecord", currency: Currency) -> float:
    """Cost of a page-priced model.

    Page counts are not part of the chat completion response, so there is
    nothing to price yet and the cost is reported as zero.
    """
    return 0.0


def estimate_cost(
    model_id: str,
    usage: "UsageRecord",
    currency: Currency = Currency.USD,
) -> float:
    """Estimate the cost of a completion in cents of ``currency``.

    Prices that do not apply and unknown models contribute nothing. The
    result is rounded to 4 decimal places of a cent.

    Args:
        model_id: Model the completion ran on.
        usage: Token counts.
        currency: Currency to price in.

    Returns:
        Cost in cents (or euro cents).
    """
    info = get_model_info(model_id)
    if info is None:
        logger.debug(f"No pricing for model {model_id!r}, reporting zero cost")
        return 0.0

    if info.pricing_unit == PricingUnit.PAGES:
        return estimate_page_cost(info, usage, currency)

    prompt_price = info.price("prompt", currency) or 0.0
    completion_price = info.price("completion", currency) or 0.0

    prompt_cost = (usage.prompt_tokens / TOKENS_PER_PRICE_UNIT) * prompt_price
    completion_cost = (usage.completion_tokens / TOKENS_PER_PRICE_UNIT) * completion_price

    return round((prompt_cost + completion_cost) * 100, 4)
