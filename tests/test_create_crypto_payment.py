"""
Tests for the create crypto payment endpoint and the Coinbase Commerce client.
"""

import json
from dataclasses import replace
from decimal import Decimal

import httpx
import pytest

from conftest import scan_all
from shared.errors import ProviderError
from shared.providers import CoinbaseCommerceClient

CHARGE = {
    "id": "ch_new",
    "code": "CODE1234",
    "hosted_url": "https://commerce.coinbase.com/charges/CODE1234",
}


def coinbase_client(handler):
    transport = httpx.MockTransport(handler)
    return CoinbaseCommerceClient(
        "cb_api_key",
        http_client=httpx.Client(transport=transport, base_url="https://api.commerce.coinbase.com"),
    )


@pytest.fixture
def captured():
    return []


@pytest.fixture
def crypto_app_context(app_context, captured):
    import shared.app_context as app_context_module

    def respond(request):
        captured.append(request)
        return httpx.Response(201, json={"data": CHARGE})

    context = replace(app_context, coinbase=coinbase_client(respond))
    app_context_module._app_context = context
    yield context
    app_context_module._app_context = None


def charge_request(api_gateway_event, body):
    api_gateway_event["httpMethod"] = "POST"
    api_gateway_event["body"] = body if isinstance(body, str) else json.dumps(body)
    return api_gateway_event


class TestCreateCryptoPayment:
    def test_creates_charge_and_pending_record(self, crypto_app_context, captured, api_gateway_event,
                                               mock_dynamodb):
        from api.create_crypto_payment import handler

        response = handler(charge_request(api_gateway_event, {
            "amount": 19.99,
            "currency": "USD",
            "userId": "user_abc",
            "email": "fan@example.com",
            "items": [{"name": "KirkLite"}],
        }), {})

        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {
            "chargeId": "ch_new",
            "hostedUrl": "https://commerce.coinbase.com/charges/CODE1234",
            "code": "CODE1234",
        }

        request = captured[0]
        assert request.method == "POST"
        assert request.url.path == "/charges"
        assert request.headers["X-CC-Api-Key"] == "cb_api_key"
        assert request.headers["X-CC-Version"] == "2018-03-22"
        payload = json.loads(request.content)
        assert payload["pricing_type"] == "fixed_price"
        assert payload["local_price"] == {"amount": "19.99", "currency": "USD"}
        assert payload["name"] == "Kirk Client Purchase"
        assert payload["redirect_url"] == "https://kirkclient.site/success.html"
        assert payload["metadata"]["userId"] == "user_abc"
        assert payload["metadata"]["email"] == "fan@example.com"
        assert json.loads(payload["metadata"]["items"]) == [{"name": "KirkLite"}]

        records = scan_all(mock_dynamodb, "kirk-crypto-payments")
        assert len(records) == 1
        record = records[0]
        assert record["chargeId"] == "ch_new"
        assert record["userId"] == "user_abc"
        assert record["status"] == "pending"
        assert record["amount"] == Decimal("19.99")
        assert "createdAt" in record

    def test_guest_defaults(self, crypto_app_context, captured, api_gateway_event, mock_dynamodb):
        from api.create_crypto_payment import handler

        response = handler(charge_request(api_gateway_event, {"amount": 5}), {})

        assert response["statusCode"] == 200
        payload = json.loads(captured[0].content)
        assert payload["local_price"] == {"amount": "5.00", "currency": "USD"}
        assert payload["metadata"]["userId"] == "guest"
        assert scan_all(mock_dynamodb, "kirk-crypto-payments")[0]["userId"] == "guest"

    @pytest.mark.parametrize("amount", [None, 0, -1, "ten"])
    def test_invalid_amount(self, crypto_app_context, captured, api_gateway_event, mock_dynamodb, amount):
        from api.create_crypto_payment import handler

        response = handler(charge_request(api_gateway_event, {"amount": amount}), {})

        assert response["statusCode"] == 400
        assert captured == []
        assert scan_all(mock_dynamodb, "kirk-crypto-payments") == []

    @pytest.mark.parametrize("body, code", [
        ('{"amount": 19.99, "items": [{"name": "KirkLite", "price": NaN}]}', "invalid_json"),
        ('{"amount": Infinity, "items": []}', "invalid_json"),
        ('{"amount": 19.99, "items": [{"name": "KirkLite", '
         '"price": 19.9900000000000000000000000000000000000001}]}', "invalid_items"),
        ('{"amount": 19.9900000000000000000000000000000000000001}', "invalid_amount"),
    ])
    def test_unstorable_numbers_rejected_before_charge(self, crypto_app_context, captured,
                                                       api_gateway_event, mock_dynamodb, body, code):
        from api.create_crypto_payment import handler

        response = handler(charge_request(api_gateway_event, body), {})

        assert response["statusCode"] == 400
        assert json.loads(response["body"])["error"]["code"] == code
        assert captured == []
        assert scan_all(mock_dynamodb, "kirk-crypto-payments") == []

    def test_not_configured(self, installed_app_context, api_gateway_event):
        from api.create_crypto_payment import handler

        response = handler(charge_request(api_gateway_event, {"amount": 5}), {})

        assert response["statusCode"] == 500
        assert json.loads(response["body"])["error"]["code"] == "coinbase_not_configured"

    def test_provider_error_stores_nothing(self, app_context, api_gateway_event, mock_dynamodb):
        import shared.app_context as app_context_module
        from api.create_crypto_payment import handler

        def reject(request):
            return httpx.Response(400, json={"error": {"type": "invalid_request", "message": "Invalid price"}})

        app_context_module._app_context = replace(app_context, coinbase=coinbase_client(reject))

        response = handler(charge_request(api_gateway_event, {"amount": 5}), {})

        assert response["statusCode"] == 500
        error = json.loads(response["body"])["error"]
        assert error["code"] == "coinbase_error"
        assert error["message"] == "Invalid price"
        assert scan_all(mock_dynamodb, "kirk-crypto-payments") == []

    def test_preflight(self, crypto_app_context, api_gateway_event):
        from api.create_crypto_payment import handler

        api_gateway_event["httpMethod"] = "OPTIONS"

        assert handler(api_gateway_event, {})["statusCode"] == 204


class TestCoinbaseCommerceClient:
    def test_transport_error(self):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = coinbase_client(fail)

        with pytest.raises(ProviderError) as exc_info:
            client.create_charge("Kirk", "desc", Decimal("1"), "USD", {}, "https://a", "https://b")

        assert exc_info.value.code == "coinbase_error"

    def test_response_without_charge(self):
        client = coinbase_client(lambda request: httpx.Response(201, json={"data": {}}))

        with pytest.raises(ProviderError):
            client.create_charge("Kirk", "desc", Decimal("1"), "USD", {}, "https://a", "https://b")

    def test_error_without_json_body(self):
        client = coinbase_client(lambda request: httpx.Response(503, text="upstream down"))

        with pytest.raises(ProviderError) as exc_info:
            client.create_charge("Kirk", "desc", Decimal("1"), "USD", {}, "https://a", "https://b")

        assert "503" in exc_info.value.message
