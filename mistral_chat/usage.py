"""Token usage records and the token detail output.

Token details are either exact (reported by the API) or estimated (derived
from the response text). The two are distinct types so an estimate can
never be mistaken for billed usage.
"""

import math
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mistral_chat.logging_config import get_logger
from mistral_chat.pricing.models import Currency

logger = get_logger(__name__)

ESTIMATE_NOTE = "Token details estimated - actual counts not available in streaming mode"


class UsageRecord(BaseModel):
    """Token accounting returned by the chat completions endpoint.

    Attributes:
        prompt_tokens: Tokens in the request messages.
        completion_tokens: Tokens generated.
        total_tokens: Sum of both.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    prompt_tokens: int = Field(default=0, description="Prompt token count")
    completion_tokens: int = Field(default=0, description="Completion token count")
    total_tokens: int = Field(default=0, description="Total token count")

    @classmethod
    def from_payload(cls, payload: Any) -> "UsageRecord | None":
        """Read a usage object from a response payload.

        Returns None unless ``payload`` is a mapping with a non-zero
        ``total_tokens`` and integer counts.
        """
        if not isinstance(payload, dict) or not payload.get("total_tokens"):
            return None
        try:
            return cls(
                prompt_tokens=payload.get("prompt_tokens") or 0,
                completion_tokens=payload.get("completion_tokens") or 0,
                total_tokens=payload["total_tokens"],
            )
        except ValidationError as e:
            logger.warning(f"Ignoring malformed usage object: {e.error_count()} invalid field(s)")
            return None


class UsageSource(str, Enum):
    """Where the final usage figures came from."""

    RESPONSE = "response"
    INLINE = "inline"
    RETROSPECTIVE = "retrospective"
    ESTIMATED = "estimated"


class _TokenDetailsBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prompt: int
    completion: int
    total: int
    estimated_cost_cents: float = Field(alias="estimatedCostCents")
    currency: Currency

    def to_output(self) -> dict[str, Any]:
        """Return the object placed on the ``tokenDetails`` port."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ExactTokenDetails(_TokenDetailsBase):
    """Usage reported by the API."""

    kind: Literal["exact"] = "exact"


class EstimatedTokenDetails(_TokenDetailsBase):
    """Usage estimated from the response length."""

    kind: Literal["estimated"] = "estimated"
    note: str = ESTIMATE_NOTE


TokenDetails = Annotated[
    ExactTokenDetails | EstimatedTokenDetails,
    Field(discriminator="kind"),
]


def estimate_usage(response_text: str) -> UsageRecord:
    """Estimate usage at roughly four characters per completion token.

    Prompt tokens are unknown and reported as zero.
    """
    completion_tokens = math.ceil(len(response_text) / 4)
    return UsageRecord(
        prompt_tokens=0,
        completion_tokens=completion_tokens,
        total_tokens=completion_tokens,
    )
