"""
Thin wrapper around the Razorpay SDK.

Every SDK or transport failure surfaces as ``PaymentGatewayError`` so views
never see razorpay or requests exceptions directly.
"""
import logging

import razorpay
import requests
from razorpay.utility import Utility
from django.conf import settings
from rest_framework import status
from rest_framework.exceptions import APIException

logger = logging.getLogger(__name__)


class PaymentGatewayError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment gateway error"
    default_code = "payment_gateway_error"


SDK_ERRORS = (
    razorpay.errors.BadRequestError,
    razorpay.errors.GatewayError,
    razorpay.errors.ServerError,
    requests.RequestException,
)


class RazorpayGateway:
    def __init__(self, key_id=None, key_secret=None, webhook_secret=None):
        config = settings.RAZORPAY_CONFIG
        self.key_id = key_id or config["KEY_ID"]
        self.key_secret = key_secret or config["KEY_SECRET"]
        self.webhook_secret = webhook_secret or config["WEBHOOK_SECRET"]
        self._client = None

    @property
    def client(self):
        if not (self.key_id and self.key_secret):
            raise PaymentGatewayError("Razorpay is not configured")
        if self._client is None:
            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._client

    def _call(self, action, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SDK_ERRORS as exc:
            logger.error(f"Razorpay {action} failed: {exc}")
            raise PaymentGatewayError(f"Failed to {action}") from exc

    def create_order(self, amount_paise, receipt, notes=None, currency="INR"):
        return self._call("create payment order", self.client.order.create, {
            "amount": amount_paise,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "payment_capture": 1,
        })

    def fetch_payment(self, payment_id):
        return self._call("fetch payment", self.client.payment.fetch, payment_id)

    def refund_payment(self, payment_id, amount_paise, notes=None):
        return self._call("initiate refund", self.client.payment.refund, payment_id, {
            "amount": amount_paise,
            "speed": "normal",
            "notes": notes or {},
        })

    def fetch_refund(self, refund_id):
        return self._call("fetch refund", self.client.refund.fetch, refund_id)

    def verify_payment_signature(self, order_id, payment_id, signature):
        """HMAC-SHA256 of ``order_id|payment_id`` with the key secret."""
        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        except razorpay.errors.SignatureVerificationError:
            return False
        return True

    def verify_webhook_signature(self, body, signature):
        """HMAC-SHA256 of the raw request body with the webhook secret."""
        if not self.webhook_secret:
            raise PaymentGatewayError("Webhook secret not configured")
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        try:
            Utility().verify_webhook_signature(body, signature, self.webhook_secret)
        except razorpay.errors.SignatureVerificationError:
            return False
        return True


def get_gateway():
    return RazorpayGateway()
