"""Test doubles and payload builders shared by the sentiment402_mcp tests."""

import json

import httpx
from x402.encoding import safe_base64_encode

from sentiment402_mcp.core.envelope import decode_settlement_header
from sentiment402_mcp.types import PaymentProof


API_BASE_URL = "https://sentiment.example.com"
USDC_BASE_SEPOLIA = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
MERCHANT = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"


def encode_header(payload) -> str:
    """Base64 JSON, as servers send PAYMENT-REQUIRED / PAYMENT-RESPONSE."""
    return safe_base64_encode(json.dumps(payload))


def requirement_dict(amount="50000", network="eip155:84532", **overrides):
    requirement = {
        "scheme": "exact",
        "network": network,
        "asset": USDC_BASE_SEPOLIA,
        "amount": amount,
        "payTo": MERCHANT,
        "maxTimeoutSeconds": 60,
        "extra": {"name": "USDC", "version": "2"},
    }
    requirement.update(overrides)
    return requirement


def envelope_dict(*requirements, version=2, resource="https://sentiment.example.com/v1/snapshot/global"):
    return {
        "x402Version": version,
        "resource": {"url": resource, "mimeType": "application/json"},
        "accepts": list(requirements),
    }


class ScriptedTransport:
    """httpx MockTransport handler replaying queued responses and recording requests."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self.responses.pop(0)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class FakePaymentClient:
    """Deterministic payer: no keys, no signing."""

    def __init__(self, max_payment: int = 100_000, fail_with: Exception = None):
        self.max_payment = max_payment
        self.fail_with = fail_with
        self.paid_requirements = []

    def create_payment_payload(self, envelope, requirement):
        self.paid_requirements.append(requirement)
        if self.fail_with is not None:
            raise self.fail_with
        return PaymentProof(
            x402_version=envelope.x402_version,
            payload={"amount": requirement.amount, "payTo": requirement.pay_to},
        )

    def encode_payment_headers(self, proof):
        return {"PAYMENT-SIGNATURE": f"proof:{proof.payload['amount']}:{proof.payload['payTo']}"}

    def decode_settlement_header(self, raw):
        return decode_settlement_header(raw)
