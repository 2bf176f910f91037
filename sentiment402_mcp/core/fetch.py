"""Paywall-aware JSON fetching.

``PaywallFetcher`` issues a GET, and when the API answers 402 it reads the
x402 envelope, applies the payment policy, asks the payment client for a
signed proof and retries exactly once with the proof attached. Every payment
outcome comes back as a ``FetchResult``; only transport failures and
unexpected statuses raise ``ApiError``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Union

import httpx

from .cache import TtlCache, build_cache_key
from .envelope import PAYMENT_RESPONSE_HEADERS, first_header, parse_payment_required
from .payer import PaymentClient
from .policy import filter_affordable
from ..types.errors import ApiError, DecodeError
from ..types.payments import PaymentRequiredEnvelope, SettlementRecord
from ..types.results import FetchOk, FetchResult, PaymentRequiredResult
from ..types.state import FetchState, PaymentRequiredReason


logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "sentiment402-mcp/0.1.0"
DEFAULT_TIMEOUT_SECONDS = 30.0

_MISSING = object()


class PaywallFetcher:
    """Fetches JSON from an x402-protected API, paying when allowed.

    Example:
        fetcher = PaywallFetcher(
            user_agent="sentiment402-mcp/0.1.0",
            payment_client=create_payment_client(config),
            cache=TtlCache(ttl_ms=60_000),
        )
        result = await fetcher.fetch_json("https://api.example.com/v1/snapshot/global")
        if isinstance(result, PaymentRequiredResult):
            return result.to_response()
        return result.data
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        payment_client: Optional[PaymentClient] = None,
        cache: Optional[TtlCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS
    ):
        """Initialize fetcher.

        Args:
            user_agent: User-Agent header sent with every request
            payment_client: Payer used for auto-pay; None disables paying
            cache: Shared response cache; None disables caching
            http_client: Shared httpx client; a short-lived one is opened per fetch otherwise
            timeout: Timeout in seconds for short-lived clients
        """
        self.user_agent = user_agent
        self.payment_client = payment_client
        self.cache = cache
        self._http_client = http_client
        self.timeout = timeout

    async def fetch_json(self, url: Union[str, httpx.URL], cache_key: Optional[str] = None) -> FetchResult:
        """Fetch ``url`` and return its JSON, or a structured payment result.

        Args:
            url: Fully formed request URL, query included
            cache_key: Cache key override; derived from the URL by default

        Returns:
            FetchOk or PaymentRequiredResult

        Raises:
            ApiError: On transport failure or a status other than 2xx/402
        """
        key = cache_key or build_cache_key(url)
        if self.cache is not None:
            cached = self.cache.get(key, _MISSING)
            if cached is not _MISSING:
                logger.debug(f"Cache hit for {key}")
                return FetchOk(data=cached, state=FetchState.CACHE_HIT, from_cache=True)

        async with self._session() as client:
            response = await self._get(client, url, self._headers())
            if response.status_code == 402:
                return await self._handle_payment_required(client, url, key, response)

            data = self._read_json(response)
            self._store(key, data)
            return FetchOk(data=data, state=FetchState.SUCCEEDED)

    async def _handle_payment_required(
        self,
        client: httpx.AsyncClient,
        url: Union[str, httpx.URL],
        key: str,
        response: httpx.Response
    ) -> FetchResult:
        parsed = parse_payment_required(response)
        envelope = parsed.envelope
        if envelope is None:
            logger.warning(f"402 from {url} without a usable payment envelope")
            return PaymentRequiredResult(
                reason=PaymentRequiredReason.UNPARSEABLE,
                state=FetchState.UNPARSEABLE,
                raw_header=parsed.raw_header,
                details=parsed.details,
            )

        logger.info(
            f"x402 payment required: version={envelope.x402_version} "
            f"resource={envelope.resource} accepts={envelope.offers()}"
        )

        if self.payment_client is None:
            return PaymentRequiredResult.from_envelope(
                PaymentRequiredReason.NO_PAYER, FetchState.NO_PAYER, envelope, parsed.raw_header
            )

        affordable = filter_affordable(self.payment_client.max_payment, envelope.accepts)
        if not affordable:
            logger.info(f"No payment option within max payment {self.payment_client.max_payment}")
            return PaymentRequiredResult.from_envelope(
                PaymentRequiredReason.POLICY_REJECTED,
                FetchState.POLICY_EMPTY,
                envelope,
                parsed.raw_header,
                details={"maxPayment": str(self.payment_client.max_payment)},
            )

        selected = affordable[0]
        logger.info(
            f"x402 payment attempt: {selected.amount} of {selected.asset} "
            f"on {selected.network} to {selected.pay_to}"
        )
        try:
            proof = self.payment_client.create_payment_payload(envelope, selected)
            payment_headers = self.payment_client.encode_payment_headers(proof)
        except Exception as e:
            logger.warning(f"x402 auto-pay failed: {type(e).__name__}: {e}")
            return self._auto_pay_failed(envelope, parsed.raw_header, f"{type(e).__name__}: {e}")

        retry = await self._get(client, url, {**self._headers(), **payment_headers})
        if retry.status_code == 402:
            logger.warning(f"Paid retry for {url} was answered with 402 again")
            return self._auto_pay_failed(
                envelope,
                parsed.raw_header,
                "Payment was not accepted by the server",
                state=FetchState.PAID_RETRY_FAILED,
            )

        data = self._read_json(retry)
        settlement = self._read_settlement(retry)
        self._store(key, data)
        return FetchOk(
            data=data,
            state=FetchState.PAID_RETRY_SUCCEEDED,
            paid=True,
            settlement=settlement,
        )

    def _auto_pay_failed(
        self,
        envelope: PaymentRequiredEnvelope,
        raw_header: Optional[str],
        message: str,
        state: FetchState = FetchState.AUTO_PAY_FAILED
    ) -> PaymentRequiredResult:
        return PaymentRequiredResult.from_envelope(
            PaymentRequiredReason.AUTO_PAY_FAILED,
            state,
            envelope,
            raw_header,
            details={"message": message},
        )

    def _read_settlement(self, response: httpx.Response) -> Optional[SettlementRecord]:
        raw = first_header(response.headers, PAYMENT_RESPONSE_HEADERS)
        if not raw:
            return None
        try:
            settlement = self.payment_client.decode_settlement_header(raw)
        except DecodeError as e:
            logger.info(f"x402 payment settled; settlement header not decodable ({e}): {raw}")
            return None
        logger.info(
            f"x402 payment settled: transaction={settlement.transaction} "
            f"payer={settlement.payer} network={settlement.network}"
        )
        return settlement

    def _headers(self) -> Dict[str, str]:
        return {"accept": "application/json", "user-agent": self.user_agent}

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _get(
        self,
        client: httpx.AsyncClient,
        url: Union[str, httpx.URL],
        headers: Dict[str, str]
    ) -> httpx.Response:
        try:
            return await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise ApiError(None, f"{type(e).__name__}: {e}") from e

    def _read_json(self, response: httpx.Response) -> Any:
        if not response.is_success:
            raise ApiError(response.status_code, response.text)
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(response.status_code, f"Response is not JSON: {response.text[:200]}") from e

    def _store(self, key: str, data: Any) -> None:
        if self.cache is not None:
            self.cache.set(key, data)


async def fetch_json(
    url: Union[str, httpx.URL],
    user_agent: str = DEFAULT_USER_AGENT,
    payment_client: Optional[PaymentClient] = None,
    *,
    cache: Optional[TtlCache] = None,
    http_client: Optional[httpx.AsyncClient] = None
) -> FetchResult:
    """One-shot form of ``PaywallFetcher.fetch_json``."""
    fetcher = PaywallFetcher(
        user_agent=user_agent,
        payment_client=payment_client,
        cache=cache,
        http_client=http_client,
    )
    return await fetcher.fetch_json(url)
