import base64
import json

import httpx
import pytest

from application.dtos.payments import PayRequest
from domain.payment.entity import TransactionStatus
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentRecoverableError
from infrastructure.external.payments.phonepe_client import PhonePeClient


API_URL = "https://api-preprod.phonepe.com/apis/pg-sandbox"


def _pay_request(tid: str = "TXN1") -> PayRequest:
    return PayRequest(
        merchant_id="MERCHANTUAT",
        merchant_transaction_id=tid,
        merchant_user_id="U1",
        amount=50000,
        redirect_url=f"http://localhost:3000/payment-success?transactionId={tid}",
        callback_url="http://testserver/api/phonepe/callback",
        mobile_number="9876543210",
    )


def _client(phonepe_config, handler) -> PhonePeClient:
    return PhonePeClient(phonepe_config, api_url=API_URL, transport=httpx.MockTransport(handler))


def test_factory_builds_phonepe_client():
    gw = get_payment_gateway("phonepe")
    assert isinstance(gw, PhonePeClient)
    assert gw.provider == "phonepe"


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_payment_gateway("stripe")


def test_client_requires_credentials(phonepe_config):
    with pytest.raises(RuntimeError):
        PhonePeClient(phonepe_config.model_copy(update={"salt_key": None}), api_url=API_URL)


@pytest.mark.asyncio
async def test_pay_sends_signed_envelope(phonepe_config, signer):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "success": True,
                "code": "PAYMENT_INITIATED",
                "message": "Payment initiated",
                "data": {
                    "merchantTransactionId": "TXN1",
                    "instrumentResponse": {
                        "type": "PAY_PAGE",
                        "redirectInfo": {"url": "https://mercury-uat.phonepe.com/transact/pg?token=abc", "method": "GET"},
                    },
                },
            },
        )

    client = _client(phonepe_config, handler)
    result = await client.pay(_pay_request())
    await client.aclose()

    assert seen["url"] == f"{API_URL}/pg/v1/pay"
    encoded = seen["body"]["request"]
    assert seen["headers"]["X-VERIFY"] == signer.sign(encoded, "/pg/v1/pay")
    payload = json.loads(base64.b64decode(encoded))
    assert payload["merchantTransactionId"] == "TXN1"
    assert payload["amount"] == 50000
    assert payload["redirectMode"] == "POST"
    assert payload["paymentInstrument"] == {"type": "PAY_PAGE"}
    assert result.redirect_url == "https://mercury-uat.phonepe.com/transact/pg?token=abc"
    assert result.raw_response["merchantTransactionId"] == "TXN1"


@pytest.mark.asyncio
async def test_pay_rejection_carries_upstream_message(phonepe_config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"success": False, "code": "BAD_REQUEST", "message": "Please check the inputs you have provided."})

    client = _client(phonepe_config, handler)
    with pytest.raises(PaymentProviderError) as ei:
        await client.pay(_pay_request())
    assert ei.value.message == "Please check the inputs you have provided."
    assert ei.value.provider_code == "BAD_REQUEST"


@pytest.mark.asyncio
async def test_pay_rejection_without_message_uses_default(phonepe_config):
    client = _client(phonepe_config, lambda request: httpx.Response(200, json={"success": False}))
    with pytest.raises(PaymentProviderError) as ei:
        await client.pay(_pay_request())
    assert ei.value.message == "Payment initialization failed"


@pytest.mark.asyncio
async def test_pay_missing_redirect_is_gateway_error(phonepe_config):
    client = _client(phonepe_config, lambda request: httpx.Response(200, json={"success": True, "data": {}}))
    with pytest.raises(PaymentProviderError):
        await client.pay(_pay_request())


@pytest.mark.asyncio
async def test_non_json_response_is_gateway_error(phonepe_config):
    client = _client(phonepe_config, lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))
    with pytest.raises(PaymentProviderError):
        await client.pay(_pay_request())


@pytest.mark.asyncio
async def test_transport_failure_is_retried_then_surfaced(phonepe_config):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(phonepe_config, handler)
    with pytest.raises(PaymentRecoverableError):
        await client.pay(_pay_request())
    # RETRY__MAX=1 in conftest -> one retry
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_timeout_is_surfaced_as_gateway_error(phonepe_config):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(phonepe_config, handler)
    with pytest.raises(PaymentRecoverableError) as ei:
        await client.query_status("TXN1")
    assert "timed out" in ei.value.message


@pytest.mark.asyncio
async def test_transient_failure_recovers_on_retry(phonepe_config):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("reset", request=request)
        return httpx.Response(200, json={"success": True, "code": "PAYMENT_SUCCESS", "data": {"state": "COMPLETED"}})

    client = _client(phonepe_config, handler)
    result = await client.query_status("TXN1")
    assert result.status is TransactionStatus.SUCCESS
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_query_status_signs_endpoint_and_sends_merchant_header(phonepe_config, signer):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        return httpx.Response(
            200,
            json={
                "success": True,
                "code": "PAYMENT_SUCCESS",
                "message": "Your payment is successful.",
                "data": {"merchantTransactionId": "TXN1", "state": "COMPLETED", "amount": 50000},
            },
        )

    client = _client(phonepe_config, handler)
    result = await client.query_status("TXN1")

    endpoint = "/pg/v1/status/MERCHANTUAT/TXN1"
    assert seen["method"] == "GET"
    assert seen["url"] == f"{API_URL}{endpoint}"
    assert seen["headers"]["X-VERIFY"] == signer.sign("", endpoint)
    assert seen["headers"]["X-MERCHANT-ID"] == "MERCHANTUAT"
    assert result.status is TransactionStatus.SUCCESS
    assert result.upstream_state == "COMPLETED"
    assert result.raw_response["amount"] == 50000


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "state,expected",
    [("COMPLETED", TransactionStatus.SUCCESS), ("FAILED", TransactionStatus.FAILED), ("PENDING", None), ("SOMETHING_NEW", None)],
)
async def test_query_status_maps_upstream_states(phonepe_config, state, expected):
    client = _client(
        phonepe_config,
        lambda request: httpx.Response(200, json={"success": True, "data": {"state": state}}),
    )
    result = await client.query_status("TXN1")
    assert result.status is expected
    assert result.upstream_state == state


@pytest.mark.asyncio
async def test_query_status_failure_is_gateway_error(phonepe_config):
    client = _client(
        phonepe_config,
        lambda request: httpx.Response(200, json={"success": False, "code": "TRANSACTION_NOT_FOUND", "message": "No Transaction found with the given details."}),
    )
    with pytest.raises(PaymentProviderError) as ei:
        await client.query_status("TXN1")
    assert ei.value.message == "No Transaction found with the given details."
    assert ei.value.raw_response["code"] == "TRANSACTION_NOT_FOUND"
