# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Payment signing: the payment client the fetch orchestrator delegates to."""

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, cast

from eth_account import Account
from eth_account.signers.local import LocalAccount
from x402.common import x402_VERSION
from x402.encoding import safe_base64_encode
from x402.exact import decode_payment, prepare_payment_header, sign_payment_header
from x402.types import PaymentRequirements, SupportedNetworks

from .envelope import decode_settlement_header
from .policy import DEFAULT_MAX_PAYMENT, MaxPaymentPolicy
from ..types.errors import PaymentError
from ..types.payments import (
    PaymentOption,
    PaymentProof,
    PaymentRequiredEnvelope,
    SettlementRecord
)

if TYPE_CHECKING:
    from ..config import AdapterConfig


logger = logging.getLogger(__name__)

# CAIP-2 identifiers used by x402 v2 mapped to x402 network names.
EVM_NETWORK_NAMES = {
    "eip155:8453": "base",
    "eip155:84532": "base-sepolia",
    "eip155:43114": "avalanche",
    "eip155:43113": "avalanche-fuji",
    "eip155:137": "polygon",
    "eip155:80002": "polygon-amoy",
    "eip155:4689": "iotex",
    "eip155:1329": "sei",
    "eip155:1328": "sei-testnet",
}

PAYMENT_SIGNATURE_HEADER = "PAYMENT-SIGNATURE"
LEGACY_PAYMENT_HEADER = "X-PAYMENT"


class PaymentClient(Protocol):
    """What the fetch orchestrator needs from a payer.

    ``max_payment`` is the policy ceiling in base units. Implementations must
    be safe to share between concurrent fetches.
    """

    max_payment: int

    def create_payment_payload(
        self,
        envelope: PaymentRequiredEnvelope,
        requirement: PaymentOption
    ) -> PaymentProof:
        ...

    def encode_payment_headers(self, proof: PaymentProof) -> Dict[str, str]:
        ...

    def decode_settlement_header(self, raw: str) -> SettlementRecord:
        ...


def normalize_private_key(private_key: str) -> str:
    """Ensure a hex private key carries the 0x prefix."""
    trimmed = private_key.strip()
    if trimmed.startswith(("0x", "0X")):
        return "0x" + trimmed[2:]
    return "0x" + trimmed


def to_x402_network(network: str) -> str:
    return EVM_NETWORK_NAMES.get(network, network)


def to_x402_requirements(
    envelope: PaymentRequiredEnvelope,
    requirement: PaymentOption
) -> PaymentRequirements:
    """Build the x402 library's PaymentRequirements for signing.

    Args:
        envelope: Parsed 402 envelope the requirement came from
        requirement: Selected payment option

    Returns:
        PaymentRequirements accepted by x402.exact
    """
    return PaymentRequirements(
        scheme=requirement.scheme,
        network=cast(SupportedNetworks, to_x402_network(requirement.network)),
        asset=requirement.asset,
        pay_to=requirement.pay_to,
        max_amount_required=requirement.amount,
        resource=requirement.resource or envelope.resource or "",
        description=requirement.description or "",
        mime_type=requirement.mime_type or "application/json",
        max_timeout_seconds=requirement.max_timeout_seconds or 60,
        extra=requirement.extra,
    )


class X402PaymentClient:
    """Signs x402 "exact" EVM payments with a local account.

    Example:
        payer = X402PaymentClient.from_private_key(key, max_payment=100_000)
        proof = payer.create_payment_payload(envelope, envelope.accepts[0])
        headers = payer.encode_payment_headers(proof)
    """

    def __init__(self, account: LocalAccount, max_payment: int = DEFAULT_MAX_PAYMENT):
        """Initialize payment client.

        Args:
            account: Ethereum account for signing
            max_payment: Maximum amount in base units willing to pay per request
        """
        self.account = account
        self.max_payment = max_payment
        self.policy = MaxPaymentPolicy(max_payment)

    @classmethod
    def from_private_key(cls, private_key: str, max_payment: int = DEFAULT_MAX_PAYMENT) -> "X402PaymentClient":
        return cls(Account.from_key(normalize_private_key(private_key)), max_payment)

    @property
    def address(self) -> str:
        return self.account.address

    def create_payment_payload(
        self,
        envelope: PaymentRequiredEnvelope,
        requirement: PaymentOption
    ) -> PaymentProof:
        """Sign a payment authorization for one requirement.

        Args:
            envelope: Parsed 402 envelope
            requirement: Requirement to pay, already filtered by policy

        Returns:
            PaymentProof ready for header encoding

        Raises:
            PaymentError: If the amount exceeds the ceiling or signing fails
        """
        # Validate payment amount against maximum willingness to pay
        if not self.policy.allows(requirement):
            raise PaymentError(
                f"Payment amount {requirement.amount} exceeds maximum willing to pay {self.max_payment}"
            )

        try:
            requirements = to_x402_requirements(envelope, requirement)
            unsigned_header = prepare_payment_header(self.account.address, x402_VERSION, requirements)
            signed_header_b64 = sign_payment_header(self.account, requirements, unsigned_header)
            decoded = decode_payment(signed_header_b64)
        except Exception as e:
            raise PaymentError(f"Could not sign {requirement.scheme} payment on {requirement.network}: {e}") from e

        if envelope.x402_version >= 2:
            payload: Dict[str, Any] = {
                "x402Version": envelope.x402_version,
                "accepted": requirement.model_dump(by_alias=True, exclude_none=True),
                "payload": decoded["payload"],
            }
            if envelope.resource:
                payload["resource"] = {"url": envelope.resource}
        else:
            payload = dict(decoded)
            payload["network"] = requirement.network

        logger.debug(f"Signed {requirement.scheme} payment of {requirement.amount} to {requirement.pay_to}")
        return PaymentProof(x402_version=envelope.x402_version, payload=payload)

    def encode_payment_headers(self, proof: PaymentProof) -> Dict[str, str]:
        """Encode a proof as request headers; v2 uses PAYMENT-SIGNATURE, v1 X-PAYMENT."""
        encoded = safe_base64_encode(json.dumps(proof.payload, separators=(",", ":"), sort_keys=True))
        if proof.x402_version >= 2:
            return {PAYMENT_SIGNATURE_HEADER: encoded}
        return {LEGACY_PAYMENT_HEADER: encoded}

    def decode_settlement_header(self, raw: str) -> SettlementRecord:
        return decode_settlement_header(raw)


def create_payment_client(config: "AdapterConfig") -> Optional[X402PaymentClient]:
    """Create the payment client, or None when no private key is configured."""
    if config.x402_private_key is None:
        return None
    private_key = config.x402_private_key.get_secret_value()
    if not private_key.strip():
        return None
    client = X402PaymentClient.from_private_key(private_key, config.x402_max_payment)
    logger.info(f"x402 auto-pay enabled for {client.address} (max {client.max_payment} base units)")
    return client
