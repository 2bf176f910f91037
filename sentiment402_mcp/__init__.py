"""sentiment402_mcp - MCP adapter for the x402-paywalled Sentiment402 API."""

# Types
from .types import (
    FetchState,
    PaymentRequiredReason,
    PaymentOption,
    PaymentRequiredEnvelope,
    SettlementRecord,
    PaymentProof,
    FetchOk,
    PaymentRequiredResult,
    FetchResult,
    Sentiment402Error,
    ApiError,
    DecodeError,
    PaymentError,
    ConfigError
)

# Core
from .core import (
    TtlCache,
    build_cache_key,
    DEFAULT_MAX_PAYMENT,
    MaxPaymentPolicy,
    filter_affordable,
    parse_max_payment,
    PaymentClient,
    X402PaymentClient,
    create_payment_client,
    PaywallFetcher,
    fetch_json
)

# Configuration
from .config import AdapterConfig, load_config

__version__ = "0.1.0"

__all__ = [
    # Types
    "FetchState",
    "PaymentRequiredReason",
    "PaymentOption",
    "PaymentRequiredEnvelope",
    "SettlementRecord",
    "PaymentProof",
    "FetchOk",
    "PaymentRequiredResult",
    "FetchResult",

    # Errors
    "Sentiment402Error",
    "ApiError",
    "DecodeError",
    "PaymentError",
    "ConfigError",

    # Core
    "TtlCache",
    "build_cache_key",
    "DEFAULT_MAX_PAYMENT",
    "MaxPaymentPolicy",
    "filter_affordable",
    "parse_max_payment",
    "PaymentClient",
    "X402PaymentClient",
    "create_payment_client",
    "PaywallFetcher",
    "fetch_json",

    # Configuration
    "AdapterConfig",
    "load_config"
]
