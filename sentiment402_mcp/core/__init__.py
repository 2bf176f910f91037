"""Core package exports for sentiment402_mcp."""

from .cache import TtlCache, CacheEntry, build_cache_key
from .policy import (
    DEFAULT_MAX_PAYMENT,
    MaxPaymentPolicy,
    filter_affordable,
    parse_max_payment
)
from .envelope import (
    PaymentRequiredParse,
    parse_payment_required,
    decode_payment_required_header,
    decode_settlement_header
)
from .payer import (
    PaymentClient,
    X402PaymentClient,
    create_payment_client
)
from .fetch import PaywallFetcher, fetch_json

__all__ = [
    # Cache
    "TtlCache",
    "CacheEntry",
    "build_cache_key",

    # Policy
    "DEFAULT_MAX_PAYMENT",
    "MaxPaymentPolicy",
    "filter_affordable",
    "parse_max_payment",

    # Payment headers
    "PaymentRequiredParse",
    "parse_payment_required",
    "decode_payment_required_header",
    "decode_settlement_header",

    # Payment client
    "PaymentClient",
    "X402PaymentClient",
    "create_payment_client",

    # Orchestrator
    "PaywallFetcher",
    "fetch_json"
]
