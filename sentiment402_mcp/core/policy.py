"""Payment policy: decide which offered payments the adapter may make."""

import re
from typing import Any, List, Optional, Sequence

from ..types.errors import ConfigError
from ..types.payments import PaymentOption


# 0.10 USDC in base units (6 decimals).
DEFAULT_MAX_PAYMENT = 100_000

_DIGITS = re.compile(r"[0-9]+")
_SIGNED_DIGITS = re.compile(r"-?[0-9]+")


def parse_max_payment(raw: Optional[Any]) -> int:
    """Parse a configured payment ceiling.

    Args:
        raw: Integer base units as int or decimal string; empty means default

    Returns:
        Ceiling in base units

    Raises:
        ConfigError: If the value is not a positive integer
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return DEFAULT_MAX_PAYMENT
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    else:
        text = str(raw).strip()
        if not _SIGNED_DIGITS.fullmatch(text):
            raise ConfigError("Invalid SENTIMENT402_X402_MAX_PAYMENT; expected integer base units.")
        value = int(text)
    if value <= 0:
        raise ConfigError("Invalid SENTIMENT402_X402_MAX_PAYMENT; expected integer base units.")
    return value


def parse_amount(amount: Any) -> Optional[int]:
    """Parse a requirement amount; None when not a non-negative integer."""
    if not isinstance(amount, str):
        return None
    text = amount.strip()
    if not _DIGITS.fullmatch(text):
        return None
    return int(text)


def filter_affordable(ceiling: int, requirements: Sequence[PaymentOption]) -> List[PaymentOption]:
    """Keep requirements whose amount is at most ``ceiling``, in input order.

    Requirements with an unparseable or negative amount are dropped. An empty
    result means nothing is affordable.
    """
    affordable = []
    for requirement in requirements:
        amount = parse_amount(requirement.amount)
        if amount is not None and amount <= ceiling:
            affordable.append(requirement)
    return affordable


class MaxPaymentPolicy:
    """Callable policy bound to a fixed ceiling."""

    def __init__(self, ceiling: int = DEFAULT_MAX_PAYMENT):
        self.ceiling = ceiling

    def __call__(self, requirements: Sequence[PaymentOption]) -> List[PaymentOption]:
        return filter_affordable(self.ceiling, requirements)

    def allows(self, requirement: PaymentOption) -> bool:
        amount = parse_amount(requirement.amount)
        return amount is not None and amount <= self.ceiling
