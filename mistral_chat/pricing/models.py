"""Static Mistral model table: display names, context sizes and prices.

Prices are per million tokens in the currency's major unit, except for
page-priced models where the prompt price is per ``pages_per_price_unit``
pages. ``None`` marks a price that does not apply.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Currency(str, Enum):
    """Currencies the price table is quoted in."""

    USD = "USD"
    EUR = "EUR"


class PricingUnit(str, Enum):
    """What a model is billed on."""

    TOKENS = "tokens"
    PAGES = "pages"


PriceKind = Literal["prompt", "completion"]


class ModelInfo(BaseModel):
    """One row of the model table."""

    model_config = ConfigDict(frozen=True)

    display_name: str
    context_length: int
    max_tokens: int
    prompt: dict[Currency, float | None]
    completion: dict[Currency, float | None]
    pricing_unit: PricingUnit = PricingUnit.TOKENS
    pages_per_price_unit: int | None = Field(
        default=None,
        description="Pages covered by one prompt price unit (page-priced models)",
    )

    def price(self, kind: PriceKind, currency: Currency) -> float | None:
        """Return the prompt or completion price in ``currency``."""
        table = self.prompt if kind == "prompt" else self.completion
        return table.get(currency)


def _usd_eur(usd: float | None, eur: float | None) -> dict[Currency, float | None]:
    return {Currency.USD: usd, Currency.EUR: eur}


def _token_model(
    display_name: str,
    context_length: int,
    prompt: tuple[float, float],
    completion: tuple[float, float] | None,
    max_tokens: int | None = None,
) -> ModelInfo:
    return ModelInfo(
        display_name=display_name,
        context_length=context_length,
        max_tokens=context_length if max_tokens is None else max_tokens,
        prompt=_usd_eur(*prompt),
        completion=_usd_eur(*completion) if completion else _usd_eur(None, None),
    )


MISTRAL_MODELS: dict[str, ModelInfo] = {
    # Premier models
    "mistral-large-latest": _token_model("Mistral Large 24.11", 131072, (2, 1.8), (6, 5.4)),
    "pixtral-large-latest": _token_model("Pixtral Large", 131072, (2, 1.8), (6, 5.4)),
    "mistral-saba-latest": _token_model("Mistral Saba", 32768, (0.2, 0.2), (0.6, 0.6)),
    "codestral-latest": _token_model("Codestral", 262144, (0.3, 0.3), (0.9, 0.9)),
    "ministral-8b-latest": _token_model("Ministral 8B 24.10", 131072, (0.1, 0.09), (0.1, 0.09)),
    "ministral-3b-latest": _token_model("Ministral 3B 24.10", 131072, (0.04, 0.04), (0.04, 0.04)),
    "mistral-embed": _token_model("Mistral Embed", 8192, (0.1, 0.09), None),
    "mistral-moderation-latest": _token_model("Mistral Moderation 24.11", 8192, (0.1, 0.09), None),
    "mistral-ocr-latest": ModelInfo(
        display_name="Mistral OCR",
        context_length=0,
        max_tokens=0,
        prompt=_usd_eur(1, 1),
        completion=_usd_eur(None, None),
        pricing_unit=PricingUnit.PAGES,
        pages_per_price_unit=1000,
    ),
    # Other models
    "mistral-small-latest": _token_model("Mistral Small", 131072, (0.1, 0.09), (0.3, 0.27)),
    "open-mistral-7b": _token_model("Open Mistral 7B", 32768, (0.25, 0.23), (0.25, 0.23)),
    "open-mixtral-8x7b": _token_model("Open Mixtral 8x7B", 32768, (0.7, 0.63), (0.7, 0.63)),
    "open-mixtral-8x22b": _token_model("Open Mixtral 8x22B", 64000, (2, 1.8), (6, 5.4)),
}

DEFAULT_MODEL = "mistral-large-latest"

UNAVAILABLE_PRICE = "-"


def get_model_info(model_id: str) -> ModelInfo | None:
    """Look up a model; unknown and future models return None."""
    return MISTRAL_MODELS.get(model_id)


def model_options() -> list[tuple[str, str]]:
    """Return ``(model id, display name)`` pairs for the model dropdown."""
    return [(model_id, info.display_name) for model_id, info in MISTRAL_MODELS.items()]


def _format_amount(amount: float, currency: Currency) -> str:
    text = f"{amount:g}"
    if currency == Currency.USD:
        return f"${text}"
    return f"{text} €"


def format_price(model_id: str, kind: PriceKind, currency: Currency) -> str:
    """Return the display label for a model price.

    Examples: ``$2``, ``1.8 €``, ``1000 Pages / $1``, and ``-`` when the price
    does not apply or the model is unknown.
    """
    info = get_model_info(model_id)
    if info is None:
        return UNAVAILABLE_PRICE
    amount = info.price(kind, currency)
    if amount is None:
        return UNAVAILABLE_PRICE
    if info.pricing_unit == PricingUnit.PAGES:
        if currency == Currency.USD:
            return f"{info.pages_per_price_unit} Pages / ${amount:g}"
        return f"{info.pages_per_price_unit} Pages / {amount:g}€"
    return _format_amount(amount, currency)
