"""Fetch result types returned to every caller of the orchestrator."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .payments import PaymentOption, PaymentRequiredEnvelope, SettlementRecord
from .state import FetchState, PaymentRequiredReason, PAYMENT_REQUIRED_ERROR


class FetchOk(BaseModel):
    """The API answered with JSON, possibly after paying."""
    data: Any
    state: FetchState = FetchState.SUCCEEDED
    paid: bool = False
    from_cache: bool = False
    settlement: Optional[SettlementRecord] = None


class PaymentRequiredResult(BaseModel):
    """The resource needs payment the adapter could not (or may not) make.

    Carries the offered payment options so the caller can pay out-of-band.
    """
    reason: PaymentRequiredReason
    state: FetchState
    x402_version: Optional[int] = None
    resource: Optional[str] = None
    accepts: List[PaymentOption] = Field(default_factory=list)
    raw_header: Optional[str] = None
    details: Optional[Any] = None

    @classmethod
    def from_envelope(
        cls,
        reason: PaymentRequiredReason,
        state: FetchState,
        envelope: PaymentRequiredEnvelope,
        raw_header: Optional[str] = None,
        details: Optional[Any] = None
    ) -> "PaymentRequiredResult":
        return cls(
            reason=reason,
            state=state,
            x402_version=envelope.x402_version,
            resource=envelope.resource,
            accepts=list(envelope.accepts),
            raw_header=raw_header,
            details=details,
        )

    def to_response(self) -> Dict[str, Any]:
        """JSON-serializable payload handed back to the tool caller."""
        response: Dict[str, Any] = {
            "error": PAYMENT_REQUIRED_ERROR,
            "reason": self.reason.value,
        }
        if self.x402_version is not None:
            response["x402Version"] = self.x402_version
        if self.resource is not None:
            response["resource"] = self.resource
        response["accepts"] = [option.summary() for option in self.accepts]
        if self.raw_header is not None:
            response["rawHeader"] = self.raw_header
        if self.details is not None:
            response["details"] = self.details
        return response


FetchResult = Union[FetchOk, PaymentRequiredResult]
