"""Card payment authorization.

``get_gateway()`` returns the gateway selected by ``PAYMENT_GATEWAY``. The
simulated gateway recognises the usual processor test numbers so local
checkouts can exercise success, decline and step-up paths.
"""
import logging, re, secrets, string, time
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol
import httpx
from storefront.core.config import settings
from storefront.core.errors import ValidationError, PaymentGatewayError

logger = logging.getLogger(__name__)

SUCCESS_CARD = "4242424242424242"
DECLINED_CARD = "4000000000000002"
STEP_UP_CARD = "4000000000003220"

_EXPIRY_RE = re.compile(r"^(\d{2})/(\d{2})$")

@dataclass(frozen=True)
class CardDetails:
    number: str
    expiry: str
    cvc: str
    holder_name: str

@dataclass(frozen=True)
class PaymentResult:
    success: bool
    reference: Optional[str] = None
    reason: Optional[str] = None
    requires_action: bool = False

def clean_card_number(number: str) -> str:
    return re.sub(r"[\s-]", "", number or "")

def validate_card(card: CardDetails, today: date | None = None) -> CardDetails:
    """Check card fields before anything is sent to the processor; returns the card with a normalised number."""
    if not (card.number and card.expiry and card.cvc and card.holder_name and card.holder_name.strip()):
        raise ValidationError("Please fill in all card details")
    number = clean_card_number(card.number)
    if not number.isdigit() or not 15 <= len(number) <= 16:
        raise ValidationError("Please enter a valid card number")
    m = _EXPIRY_RE.match(card.expiry.strip())
    if not m:
        raise ValidationError("Please enter a valid expiry date (MM/YY)")
    month, year = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        raise ValidationError("Please enter a valid expiry date (MM/YY)")
    today = today or date.today()
    current_year = today.year % 100
    if year < current_year or (year == current_year and month < today.month):
        raise ValidationError("Card has expired")
    cvc = card.cvc.strip()
    if not cvc.isdigit() or not 3 <= len(cvc) <= 4:
        raise ValidationError("Please enter a valid CVC")
    return CardDetails(number=number, expiry=card.expiry.strip(), cvc=cvc, holder_name=card.holder_name.strip())

class PaymentGateway(Protocol):
    name: str
    def authorize(self, card: CardDetails, amount_cents: int, currency: str) -> PaymentResult: ...

def _reference() -> str:
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"pi_{int(time.time() * 1000)}_{suffix}"

class SimulatedCardGateway:
    name = "simulated"

    def authorize(self, card: CardDetails, amount_cents: int, currency: str) -> PaymentResult:
        number = clean_card_number(card.number)
        if number == SUCCESS_CARD:
            ref = _reference()
            logger.info("simulated authorization %s for %s %s", ref, amount_cents, currency)
            return PaymentResult(success=True, reference=ref)
        if number == STEP_UP_CARD:
            return PaymentResult(success=False, reason="authentication_required", requires_action=True)
        if number == DECLINED_CARD:
            return PaymentResult(success=False, reason="card_declined")
        return PaymentResult(success=False, reason="incorrect_number")

class HttpPaymentGateway:
    name = "http"

    def __init__(self, base_url: str | None = None, timeout: float = 5.0, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url or settings.PAYMENT_BASE
        self.timeout = timeout
        self.transport = transport

    def authorize(self, card: CardDetails, amount_cents: int, currency: str) -> PaymentResult:
        body = {
            "card_number": card.number,
            "expiry": card.expiry,
            "cvc": card.cvc,
            "holder_name": card.holder_name,
            "amount_cents": amount_cents,
            "currency": currency,
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(f"{self.base_url}/payment/v1/payments/authorize", json=body)
        except httpx.RequestError as exc:
            logger.error("payment gateway unreachable: %s", exc)
            raise PaymentGatewayError("Payment provider unavailable") from exc
        if resp.status_code >= 500:
            raise PaymentGatewayError(f"Payment provider error ({resp.status_code})")
        try:
            data = resp.json()
        except ValueError as exc:
            logger.error("payment gateway returned %s with a non-JSON body", resp.status_code)
            raise PaymentGatewayError(f"Unreadable payment provider response ({resp.status_code})") from exc
        if not isinstance(data, dict):
            raise PaymentGatewayError(f"Unreadable payment provider response ({resp.status_code})")
        return PaymentResult(
            success=bool(data.get("success")),
            reference=data.get("payment_id"),
            reason=data.get("error"),
            requires_action=bool(data.get("requires_action")),
        )

def get_gateway() -> PaymentGateway:
    if settings.PAYMENT_GATEWAY == "http":
        return HttpPaymentGateway()
    return SimulatedCardGateway()
