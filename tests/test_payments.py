from datetime import date

import httpx
import pytest

from storefront.core.errors import PaymentGatewayError, ValidationError
from storefront.services.payments import (
    CardDetails, HttpPaymentGateway, SimulatedCardGateway, validate_card,
)

TODAY = date(2026, 10, 19)


def card(number="4242424242424242", expiry="12/27", cvc="123", holder_name="Ada Lovelace"):
    return CardDetails(number=number, expiry=expiry, cvc=cvc, holder_name=holder_name)


def test_validate_card_normalises_number():
    out = validate_card(card(number="4242 4242-4242 4242"), today=TODAY)
    assert out.number == "4242424242424242"


def test_fifteen_digit_number_is_accepted():
    assert validate_card(card(number="378282246310005", cvc="1234"), today=TODAY).cvc == "1234"


@pytest.mark.parametrize("number", ["4242", "42424242424242424", "4242abcd42424242"])
def test_bad_card_numbers(number):
    with pytest.raises(ValidationError, match="card number"):
        validate_card(card(number=number), today=TODAY)


@pytest.mark.parametrize("expiry", ["1227", "12/2027", "13/27", "00/27", "ab/cd"])
def test_malformed_expiry(expiry):
    with pytest.raises(ValidationError, match="MM/YY"):
        validate_card(card(expiry=expiry), today=TODAY)


def test_expiry_in_current_month_is_still_valid():
    assert validate_card(card(expiry="10/26"), today=TODAY)


@pytest.mark.parametrize("expiry", ["09/26", "12/25"])
def test_expired_card(expiry):
    with pytest.raises(ValidationError, match="expired"):
        validate_card(card(expiry=expiry), today=TODAY)


@pytest.mark.parametrize("cvc", ["12", "12345", "1a3"])
def test_bad_cvc(cvc):
    with pytest.raises(ValidationError, match="CVC"):
        validate_card(card(cvc=cvc), today=TODAY)


def test_missing_holder_name():
    with pytest.raises(ValidationError):
        validate_card(card(holder_name="  "), today=TODAY)


def test_simulated_gateway_outcomes():
    gw = SimulatedCardGateway()
    ok = gw.authorize(card(), 2659, "USD")
    assert ok.success and ok.reference.startswith("pi_")

    declined = gw.authorize(card(number="4000000000000002"), 2659, "USD")
    assert not declined.success and declined.reason == "card_declined"

    step_up = gw.authorize(card(number="4000000000003220"), 2659, "USD")
    assert not step_up.success and step_up.requires_action

    unknown = gw.authorize(card(number="5555555555554444"), 2659, "USD")
    assert not unknown.success and unknown.reason == "incorrect_number"


def test_http_gateway_posts_card_and_amount():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = request.read()
        return httpx.Response(200, json={"success": True, "payment_id": "pay_123"})

    gw = HttpPaymentGateway(base_url="http://payments.test", transport=httpx.MockTransport(handler))
    result = gw.authorize(card(), 2659, "USD")
    assert result.success and result.reference == "pay_123"
    assert seen["url"] == "http://payments.test/payment/v1/payments/authorize"
    assert b'"amount_cents":2659' in seen["body"].replace(b" ", b"")


def test_http_gateway_decline():
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"success": False, "error": "insufficient_funds"}))
    result = HttpPaymentGateway(base_url="http://payments.test", transport=transport).authorize(card(), 100, "USD")
    assert not result.success and result.reason == "insufficient_funds"


def test_http_gateway_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    gw = HttpPaymentGateway(base_url="http://payments.test", transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentGatewayError):
        gw.authorize(card(), 100, "USD")


def test_http_gateway_server_error():
    transport = httpx.MockTransport(lambda r: httpx.Response(503, text="down"))
    with pytest.raises(PaymentGatewayError):
        HttpPaymentGateway(base_url="http://payments.test", transport=transport).authorize(card(), 100, "USD")


@pytest.mark.parametrize("status", [200, 400])
def test_http_gateway_unreadable_body(status):
    transport = httpx.MockTransport(lambda r: httpx.Response(status, text="Bad Request"))
    with pytest.raises(PaymentGatewayError):
        HttpPaymentGateway(base_url="http://payments.test", transport=transport).authorize(card(), 100, "USD")
