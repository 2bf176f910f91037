"""Types package for sentiment402_mcp - payment models, results, states and errors."""

from .state import (
    FetchState,
    PaymentRequiredReason,
    PAYMENT_REQUIRED_ERROR
)

from .payments import (
    PaymentOption,
    PaymentRequiredEnvelope,
    SettlementRecord,
    PaymentProof
)

from .results import (
    FetchOk,
    PaymentRequiredResult,
    FetchResult
)

from .errors import (
    Sentiment402Error,
    ApiError,
    DecodeError,
    PaymentError,
    ConfigError
)

__all__ = [

    "FetchState",
    "PaymentRequiredReason",
    "PAYMENT_REQUIRED_ERROR",

    "PaymentOption",
    "PaymentRequiredEnvelope",
    "SettlementRecord",
    "PaymentProof",

    "FetchOk",
    "PaymentRequiredResult",
    "FetchResult",

    "Sentiment402Error",
    "ApiError",
    "DecodeError",
    "PaymentError",
    "ConfigError"
]
