import hashlib
import hmac
import logging
from typing import Optional

from app.config import get_settings

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Raised when the Razorpay API call fails."""


def to_smallest_unit(amount) -> int:
    # paise for INR
    return int(round(float(amount) * 100))


def verify_signature(order_id: str, payment_id: str, signature: str, secret: Optional[str] = None) -> bool:
    """Check Razorpay's hex HMAC-SHA256 of "order_id|payment_id" in constant time."""
    if not signature:
        return False
    key = secret if secret is not None else get_settings().RAZORPAY_KEY_SECRET
    expected = hmac.new(key.encode("utf-8"), f"{order_id}|{payment_id}".encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


class RazorpayGateway:
    """Thin wrapper over the Razorpay SDK client for the calls the shop makes."""

    def __init__(self, key_id: str, key_secret: str, currency: str = "INR"):
        self.key_id = key_id
        self.key_secret = key_secret
        self.currency = currency
        self._client = None

    @property
    def client(self):
        if self._client is None:
            import razorpay

            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._client

    def create_order(self, amount, receipt: str, notes: Optional[dict] = None) -> dict:
        options = {
            "amount": to_smallest_unit(amount),
            "currency": self.currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            return self.client.order.create(data=options)
        except Exception as e:
            logger.error("Error creating Razorpay order for %s: %s", receipt, e, exc_info=True)
            raise PaymentGatewayError(str(e)) from e

    def fetch_payment(self, payment_id: str) -> dict:
        try:
            return self.client.payment.fetch(payment_id)
        except Exception as e:
            logger.error("Error fetching Razorpay payment %s: %s", payment_id, e, exc_info=True)
            raise PaymentGatewayError(str(e)) from e

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return verify_signature(order_id, payment_id, signature, self.key_secret)


def get_payment_gateway() -> RazorpayGateway:
    settings = get_settings()
    return RazorpayGateway(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET, settings.RAZORPAY_CURRENCY)
