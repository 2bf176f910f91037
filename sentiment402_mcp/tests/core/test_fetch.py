"""Unit tests for sentiment402_mcp.core.fetch module."""

import httpx
import pytest
from unittest.mock import patch

from sentiment402_mcp.core.fetch import PaywallFetcher, fetch_json
from sentiment402_mcp.types import (
    ApiError,
    FetchOk,
    FetchState,
    PaymentError,
    PaymentRequiredReason,
    PaymentRequiredResult
)

from sentiment402_mcp.tests.helpers import (
    MERCHANT,
    FakePaymentClient,
    ScriptedTransport,
    encode_header,
    envelope_dict,
    requirement_dict
)


GLOBAL_URL = "https://sentiment.example.com/v1/snapshot/global"


def payment_required(*requirements, version=2) -> httpx.Response:
    header = encode_header(envelope_dict(*requirements, version=version))
    return httpx.Response(402, headers={"PAYMENT-REQUIRED": header})


def make_fetcher(transport, payer=None, cache=None) -> PaywallFetcher:
    return PaywallFetcher(
        user_agent="sentiment402-mcp/test",
        payment_client=payer,
        cache=cache,
        http_client=transport.client(),
    )


class TestFirstRequest:
    """Test behaviour when no payment is involved."""

    @pytest.mark.asyncio
    async def test_ok_response_is_cached(self, cache):
        """Scenario A: 200 is returned and later served from cache."""
        transport = ScriptedTransport(httpx.Response(200, json={"score": 0.42}))
        fetcher = make_fetcher(transport, cache=cache)

        first = await fetcher.fetch_json(GLOBAL_URL)
        second = await fetcher.fetch_json(GLOBAL_URL)

        assert isinstance(first, FetchOk)
        assert first.data == {"score": 0.42}
        assert first.state == FetchState.SUCCEEDED
        assert first.paid is False
        assert second.data == {"score": 0.42}
        assert second.from_cache is True
        assert second.state == FetchState.CACHE_HIT
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_request_headers(self):
        transport = ScriptedTransport(httpx.Response(200, json={}))

        await make_fetcher(transport).fetch_json(GLOBAL_URL)

        request = transport.requests[0]
        assert request.method == "GET"
        assert request.headers["accept"] == "application/json"
        assert request.headers["user-agent"] == "sentiment402-mcp/test"
        assert "PAYMENT-SIGNATURE" not in request.headers

    @pytest.mark.asyncio
    async def test_ok_never_invokes_payer(self, fake_payer):
        """No double pay: a 200 on the first attempt never touches the payer."""
        transport = ScriptedTransport(httpx.Response(200, json={"score": 1}))

        with patch.object(fake_payer, "create_payment_payload") as mock_create:
            result = await make_fetcher(transport, fake_payer).fetch_json(GLOBAL_URL)

            mock_create.assert_not_called()

        assert result.data == {"score": 1}

    @pytest.mark.asyncio
    async def test_unexpected_status_raises_api_error(self):
        transport = ScriptedTransport(httpx.Response(503, text="maintenance"))

        with pytest.raises(ApiError) as exc_info:
            await make_fetcher(transport).fetch_json(GLOBAL_URL)

        assert exc_info.value.status == 503
        assert exc_info.value.body == "maintenance"
        assert str(exc_info.value) == "API error (503): maintenance"

    @pytest.mark.asyncio
    async def test_transport_failure_raises_api_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = PaywallFetcher(http_client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))

        with pytest.raises(ApiError) as exc_info:
            await fetcher.fetch_json(GLOBAL_URL)

        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_non_json_success_raises_api_error(self):
        transport = ScriptedTransport(httpx.Response(200, text="<html>"))

        with pytest.raises(ApiError):
            await make_fetcher(transport).fetch_json(GLOBAL_URL)

    @pytest.mark.asyncio
    async def test_cache_is_keyed_by_sorted_query(self, cache):
        transport = ScriptedTransport(httpx.Response(200, json={"n": 1}))
        fetcher = make_fetcher(transport, cache=cache)

        await fetcher.fetch_json(f"{GLOBAL_URL}?format=full&fields=score")
        result = await fetcher.fetch_json(f"{GLOBAL_URL}?fields=score&format=full")

        assert result.from_cache is True
        assert len(transport.requests) == 1


class TestPaymentRequiredWithoutPayer:
    """Test 402 handling when no payment client is configured."""

    @pytest.mark.asyncio
    async def test_no_payer_echoes_offers(self):
        transport = ScriptedTransport(payment_required(
            requirement_dict(amount="50000"),
            requirement_dict(amount="75000", network="eip155:8453", payTo="0xother"),
        ))

        result = await make_fetcher(transport).fetch_json(GLOBAL_URL)

        assert isinstance(result, PaymentRequiredResult)
        assert result.reason == PaymentRequiredReason.NO_PAYER
        assert result.state == FetchState.NO_PAYER
        assert len(transport.requests) == 1

        response = result.to_response()
        assert response["error"] == "PAYMENT_REQUIRED"
        assert response["reason"] == "NO_PAYER"
        assert response["x402Version"] == 2
        assert response["resource"] == GLOBAL_URL
        assert response["rawHeader"]
        assert [a["amount"] for a in response["accepts"]] == ["50000", "75000"]
        assert response["accepts"][1] == {
            "scheme": "exact",
            "network": "eip155:8453",
            "asset": requirement_dict()["asset"],
            "amount": "75000",
            "payTo": "0xother",
        }

    @pytest.mark.asyncio
    async def test_body_envelope(self):
        body = envelope_dict(requirement_dict(amount="1000"), version=1)
        transport = ScriptedTransport(httpx.Response(402, json=body))

        result = await make_fetcher(transport).fetch_json(GLOBAL_URL)

        assert result.reason == PaymentRequiredReason.NO_PAYER
        assert result.raw_header is None
        assert result.accepts[0].amount == "1000"

    @pytest.mark.asyncio
    async def test_unparseable(self, fake_payer):
        transport = ScriptedTransport(httpx.Response(402, json={"message": "pay"}))

        result = await make_fetcher(transport, fake_payer).fetch_json(GLOBAL_URL)

        assert result.reason == PaymentRequiredReason.UNPARSEABLE
        assert result.details == {"message": "pay"}
        assert result.accepts == []
        assert fake_payer.paid_requirements == []
        assert result.to_response() == {
            "error": "PAYMENT_REQUIRED",
            "reason": "UNPARSEABLE",
            "accepts": [],
            "details": {"message": "pay"},
        }


class TestAutoPay:
    """Test the paid retry path."""

    @pytest.mark.asyncio
    async def test_pays_and_caches(self, fake_payer, cache):
        """Scenario B: affordable requirement is paid, retry succeeds, value cached."""
        settlement = encode_header({"success": True, "transaction": "0xtx", "payer": "0xme", "network": "eip155:84532"})
        transport = ScriptedTransport(
            payment_required(requirement_dict(amount="50000")),
            httpx.Response(200, json={"score": 0.7}, headers={"PAYMENT-RESPONSE": settlement}),
        )
        fetcher = make_fetcher(transport, fake_payer, cache)

        result = await fetcher.fetch_json(GLOBAL_URL)
        again = await fetcher.fetch_json(GLOBAL_URL)

        assert isinstance(result, FetchOk)
        assert result.data == {"score": 0.7}
        assert result.paid is True
        assert result.state == FetchState.PAID_RETRY_SUCCEEDED
        assert result.settlement.transaction == "0xtx"
        assert again.from_cache is True
        assert again.data == {"score": 0.7}
        assert len(transport.requests) == 2
        assert [r.amount for r in fake_payer.paid_requirements] == ["50000"]

        retry = transport.requests[1]
        assert retry.headers["PAYMENT-SIGNATURE"] == f"proof:50000:{MERCHANT}"
        assert retry.headers["accept"] == "application/json"
        assert retry.headers["user-agent"] == "sentiment402-mcp/test"

    @pytest.mark.asyncio
    async def test_policy_rejects_expensive_offer(self, fake_payer):
        """Scenario C: amount above the ceiling is never paid or retried."""
        transport = ScriptedTransport(payment_required(requirement_dict(amount="500000")))

        result = await make_fetcher(transport, fake_payer).fetch_json(GLOBAL_URL)

        assert isinstance(result, PaymentRequiredResult)
        assert result.reason == PaymentRequiredReason.POLICY_REJECTED
        assert result.state == FetchState.POLICY_EMPTY
        assert result.accepts[0].amount == "500000"
        assert fake_payer.paid_requirements == []
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_empty_accepts_is_policy_rejected(self, fake_payer):
        transport = ScriptedTransport(payment_required())

        result = await make_fetcher(transport, fake_payer).fetch_json(GLOBAL_URL)

        assert result.reason == PaymentRequiredReason.POLICY_REJECTED
        assert result.accepts == []

    @pytest.mark.asyncio
    async def test_first_affordable_offer_is_used(self, fake_payer):
        transport = ScriptedTransport(
            payment_required(
                requirement_dict(amount="900000", payTo="0xpricey"),
                requirement_dict(amount="abc", payTo="0xbroken"),
                requirement_dict(amount="20000", payTo="0xfirst"),
                requirement_dict(amount="10000", payTo="0xsecond"),
            ),
            httpx.Response(200, json={"ok": True}),
        )

        await make_fetcher(transport, fake_payer).fetch_json(GLOBAL_URL)

        assert [r.pay_to for r in fake_payer.paid_requirements] == ["0xfirst"]

    @pytest.mark.asyncio
    async def test_repeated_402_stops_after_one_retry(self, fake_payer, cache):
        transport = ScriptedTransport(
            payment_required(requirement_dict(amount="50000")),
            payment_required(requirement_dict(amount="50000")),
        )

        result = await make_fetcher(transport, fake_payer, cache).fetch_json(GLOBAL_URL)

        assert isinstance(result, PaymentRequiredResult)
        assert result.reason == PaymentRequiredReason.AUTO_PAY_FAILED
        assert result.state == FetchState.PAID_RETRY_FAILED
        assert len(transport.requests) == 2
        assert len(fake_payer.paid_requirements) == 1
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_payment_construction_failure_is_recovered(self):
        payer = FakePaymentClient(fail_with=PaymentError("insufficient allowance"))
        transport = ScriptedTransport(payment_required(requirement_dict(amount="50000")))

        result = await make_fetcher(transport, payer).fetch_json(GLOBAL_URL)

        assert result.reason == PaymentRequiredReason.AUTO_PAY_FAILED
        assert result.state == FetchState.AUTO_PAY_FAILED
        assert result.details == {"message": "PaymentError: insufficient allowance"}
        assert result.accepts[0].amount == "50000"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_while_encoding_is_recovered(self, fake_payer):
        transport = ScriptedTransport(payment_required(requirement_dict(amount="50000")))

        with patch.object(fake_payer, "encode_payment_headers", side_effect=RuntimeError("boom")):
            result = await make_fetcher(transport, fake_payer).fetch_json(GLOBAL_URL)

        assert result.reason == PaymentRequiredReason.AUTO_PAY_FAILED
        assert result.details == {"message": "RuntimeError: boom"}

    @pytest.mark.asyncio
    async def test_retry_server_error_raises(self, fake_payer):
        transport = ScriptedTransport(
            payment_required(requirement_dict(amount="50000")),
            httpx.Response(500, text="settlement backend down"),
        )

        with pytest.raises(ApiError) as exc_info:
            await make_fetcher(transport, fake_payer).fetch_json(GLOBAL_URL)

        assert exc_info.value.status == 500
        assert "settlement backend down" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_bad_settlement_header_is_ignored(self, fake_payer, cache):
        transport = ScriptedTransport(
            payment_required(requirement_dict(amount="50000")),
            httpx.Response(200, json={"score": 0.1}, headers={"X-PAYMENT-RESPONSE": "not-base64-json"}),
        )

        result = await make_fetcher(transport, fake_payer, cache).fetch_json(GLOBAL_URL)

        assert result.data == {"score": 0.1}
        assert result.settlement is None
        assert len(cache) == 1


class TestFetchJsonFunction:

    @pytest.mark.asyncio
    async def test_one_shot_fetch(self):
        transport = ScriptedTransport(httpx.Response(200, json=[1, 2, 3]))

        result = await fetch_json(GLOBAL_URL, "agent/1.0", http_client=transport.client())

        assert result.data == [1, 2, 3]
        assert transport.requests[0].headers["user-agent"] == "agent/1.0"


class TestMalformedOffers:
    """Test that one broken offer does not hide the rest of the envelope."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_amount", [None, 1.5, {"v": 1}])
    async def test_valid_sibling_is_paid(self, fake_payer, bad_amount):
        transport = ScriptedTransport(
            payment_required(
                requirement_dict(amount=bad_amount, payTo="0xbad"),
                requirement_dict(amount="50000", payTo="0xgood"),
            ),
            httpx.Response(200, json={"score": 0.5}),
        )

        result = await make_fetcher(transport, fake_payer).fetch_json(GLOBAL_URL)

        assert isinstance(result, FetchOk)
        assert result.paid is True
        assert [r.pay_to for r in fake_payer.paid_requirements] == ["0xgood"]

    @pytest.mark.asyncio
    async def test_valid_sibling_is_echoed_without_payer(self):
        transport = ScriptedTransport(payment_required(
            requirement_dict(amount=None, payTo="0xbad"),
            requirement_dict(amount="50000", payTo="0xgood"),
        ))

        result = await make_fetcher(transport).fetch_json(GLOBAL_URL)

        assert result.reason == PaymentRequiredReason.NO_PAYER
        assert [a["payTo"] for a in result.to_response()["accepts"]] == ["0xgood"]


class TestNullPayload:

    @pytest.mark.asyncio
    async def test_paid_null_body_is_paid_once(self, fake_payer, cache):
        transport = ScriptedTransport(
            payment_required(requirement_dict(amount="50000")),
            httpx.Response(200, content=b"null", headers={"content-type": "application/json"}),
        )
        fetcher = make_fetcher(transport, fake_payer, cache)

        first = await fetcher.fetch_json(GLOBAL_URL)
        second = await fetcher.fetch_json(GLOBAL_URL)

        assert first.data is None
        assert first.paid is True
        assert second.data is None
        assert second.from_cache is True
        assert len(fake_payer.paid_requirements) == 1
        assert len(transport.requests) == 2
