"""Parsing of x402 payment headers and 402 response bodies."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

import httpx
from pydantic import ValidationError
from x402.encoding import safe_base64_decode

from ..types.errors import DecodeError
from ..types.payments import PaymentRequiredEnvelope, SettlementRecord


logger = logging.getLogger(__name__)

PAYMENT_REQUIRED_HEADERS = ("PAYMENT-REQUIRED", "X-PAYMENT-REQUIRED")
PAYMENT_RESPONSE_HEADERS = ("PAYMENT-RESPONSE", "X-PAYMENT-RESPONSE")


@dataclass(frozen=True)
class PaymentRequiredParse:
    """Outcome of reading a 402 response.

    ``envelope`` is None when neither the header nor the body described a
    payment; ``details`` then holds whatever body was returned.
    """
    envelope: Optional[PaymentRequiredEnvelope]
    raw_header: Optional[str] = None
    details: Optional[Any] = None


def first_header(headers: Mapping[str, str], names: Iterable[str]) -> Optional[str]:
    """Return the first non-empty header among ``names``."""
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


def decode_base64_json(raw: str) -> Any:
    """Decode a base64-encoded JSON header value.

    Raises:
        DecodeError: If the value is not base64 or not JSON
    """
    try:
        return json.loads(safe_base64_decode(raw.strip()))
    except (ValueError, TypeError) as e:
        raise DecodeError(f"Invalid base64 JSON header: {e}") from e


def decode_payment_required_header(raw: str) -> PaymentRequiredEnvelope:
    """Decode a PAYMENT-REQUIRED header into an envelope."""
    payload = decode_base64_json(raw)
    if not isinstance(payload, dict):
        raise DecodeError("PAYMENT-REQUIRED header did not decode into an object")
    try:
        return PaymentRequiredEnvelope.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(f"PAYMENT-REQUIRED header is not a payment envelope: {e}") from e


def decode_settlement_header(raw: str) -> SettlementRecord:
    """Decode a PAYMENT-RESPONSE header into a settlement record."""
    payload = decode_base64_json(raw)
    if not isinstance(payload, dict):
        raise DecodeError("PAYMENT-RESPONSE header did not decode into an object")
    try:
        return SettlementRecord.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(f"PAYMENT-RESPONSE header is not a settlement record: {e}") from e


def parse_payment_required(response: httpx.Response) -> PaymentRequiredParse:
    """Extract the payment envelope from a 402 response.

    The PAYMENT-REQUIRED header (or legacy X-PAYMENT-REQUIRED) wins; the JSON
    body is used when the header is absent or undecodable. A body only counts
    as an envelope when it carries ``x402Version``.
    """
    raw_header = first_header(response.headers, PAYMENT_REQUIRED_HEADERS)
    if raw_header:
        try:
            return PaymentRequiredParse(decode_payment_required_header(raw_header), raw_header)
        except DecodeError as e:
            logger.warning(f"Ignoring undecodable payment header, falling back to body: {e}")

    try:
        details = response.json()
    except ValueError:
        details = response.text or None

    envelope = None
    if isinstance(details, dict) and "x402Version" in details:
        try:
            envelope = PaymentRequiredEnvelope.model_validate(details)
        except ValidationError as e:
            logger.warning(f"402 body is not a valid payment envelope: {e}")

    return PaymentRequiredParse(envelope, raw_header, details)
