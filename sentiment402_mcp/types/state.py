"""Fetch state definitions and payment-required reasons."""

from enum import Enum


class FetchState(str, Enum):
    """Terminal state a fetch result reports"""
    CACHE_HIT = "cache-hit"                              # Served from cache, no network call
    SUCCEEDED = "succeeded"                              # First attempt returned 2xx
    UNPARSEABLE = "unparseable"                          # 402 without a usable envelope
    NO_PAYER = "no-payer"                                # No payment client configured
    POLICY_EMPTY = "policy-empty"                        # Nothing affordable under the ceiling
    AUTO_PAY_FAILED = "auto-pay-failed"                  # Proof could not be built or encoded
    PAID_RETRY_SUCCEEDED = "paid-retry-succeeded"        # Retry with proof returned 2xx
    PAID_RETRY_FAILED = "paid-retry-failed"              # Retry with proof returned 402 again


class PaymentRequiredReason(str, Enum):
    """Why a fetch ended with a payment-required result"""
    NO_PAYER = "NO_PAYER"
    POLICY_REJECTED = "POLICY_REJECTED"
    AUTO_PAY_FAILED = "AUTO_PAY_FAILED"
    UNPARSEABLE = "UNPARSEABLE"


PAYMENT_REQUIRED_ERROR = "PAYMENT_REQUIRED"
