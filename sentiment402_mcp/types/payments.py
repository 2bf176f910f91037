"""x402 payment models as seen by the adapter."""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel


logger = logging.getLogger(__name__)


class PaymentOption(BaseModel):
    """One offered way to pay for a resource (an entry of ``accepts``).

    Accepts both x402 v2 (``amount``) and v1 (``maxAmountRequired``) shapes.
    The amount stays a decimal string; policy code parses it.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    scheme: str
    network: str
    asset: str
    amount: str
    pay_to: str
    resource: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = None
    max_timeout_seconds: Optional[int] = None
    extra: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_amount(cls, data: Any) -> Any:
        if isinstance(data, dict) and "amount" not in data and "maxAmountRequired" in data:
            data = {**data, "amount": data["maxAmountRequired"]}
        return data

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_string(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def summary(self) -> Dict[str, str]:
        """Offer fields echoed back to callers."""
        return {
            "scheme": self.scheme,
            "network": self.network,
            "asset": self.asset,
            "amount": self.amount,
            "payTo": self.pay_to,
        }


class PaymentRequiredEnvelope(BaseModel):
    """Parsed 402 response: protocol version, resource and offered payments."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    x402_version: int
    resource: Optional[str] = None
    accepts: List[PaymentOption] = Field(default_factory=list)
    error: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _resource_url(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        resource = data.get("resource")
        if isinstance(resource, dict):
            # x402 v2 carries {"url", "description", "mimeType"}
            data = {**data, "resource": resource.get("url")}
        elif resource is None:
            accepts = data.get("accepts")
            if isinstance(accepts, list) and accepts and isinstance(accepts[0], dict):
                first = accepts[0].get("resource")
                if isinstance(first, str):
                    data = {**data, "resource": first}
        if data.get("accepts") is None:
            data = {**data, "accepts": []}
        return data

    @field_validator("accepts", mode="before")
    @classmethod
    def _drop_malformed_options(cls, value: Any) -> Any:
        # One bad offer must not hide the others.
        if not isinstance(value, list):
            return value
        options = []
        for entry in value:
            try:
                options.append(PaymentOption.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed payment option: {e.error_count()} error(s) in {entry!r}")
        return options

    def offers(self) -> List[Dict[str, str]]:
        return [option.summary() for option in self.accepts]


class SettlementRecord(BaseModel):
    """Settlement confirmation decoded from a PAYMENT-RESPONSE header."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    success: Optional[bool] = None
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None
    error_reason: Optional[str] = None


class PaymentProof(BaseModel):
    """Signed payment payload produced by a payment client."""
    model_config = ConfigDict(frozen=True)

    x402_version: int
    payload: Dict[str, Any]
