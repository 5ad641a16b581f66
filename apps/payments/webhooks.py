import json
import logging
from datetime import datetime, timezone as dt_timezone

from django.db import transaction
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny

from apps.common.responses import success_response, error_response
from apps.common.throttling import WebhookRateThrottle

from .gateway import get_gateway
from .models import Transaction, WebhookEvent
from .services import (
    record_payment_failure,
    record_payment_success,
    record_refund_failed,
    record_refund_processed,
)

logger = logging.getLogger(__name__)

# A capture on a cancelled transaction is still recorded so it can be refunded
CAPTURABLE_STATUSES = Transaction.UNPAID_STATUSES + [Transaction.STATUS_CANCELLED]


def entity(payload, name):
    return (payload.get(name) or {}).get("entity") or {}


def handle_payment_captured(payload):
    payment = entity(payload, "payment")
    txn = Transaction.objects.select_for_update().filter(razorpay_order_id=payment.get("order_id")).first()
    if txn is None:
        logger.warning(f"Transaction not found for captured payment {payment.get('id')}")
        return None

    if txn.status not in CAPTURABLE_STATUSES:
        logger.info(f"Ignoring payment.captured for transaction {txn.id} in status {txn.status}")
        return txn

    paid_at = None
    if payment.get("created_at"):
        paid_at = datetime.fromtimestamp(payment["created_at"], tz=dt_timezone.utc)
    record_payment_success(txn, payment_id=payment.get("id"), paid_at=paid_at)
    return txn


def handle_payment_failed(payload):
    payment = entity(payload, "payment")
    txn = Transaction.objects.select_for_update().filter(razorpay_order_id=payment.get("order_id")).first()
    if txn is None:
        logger.warning(f"Transaction not found for failed payment {payment.get('id')}")
        return None

    if txn.status not in [Transaction.STATUS_CREATED, Transaction.STATUS_ATTEMPTED]:
        logger.info(f"Ignoring payment.failed for transaction {txn.id} in status {txn.status}")
        return txn

    reason = payment.get("error_description") or "UPI payment failed"
    record_payment_failure(txn, reason, payment_id=payment.get("id"))
    return txn


def find_refund_transaction(refund):
    txn = Transaction.objects.select_for_update().filter(razorpay_payment_id=refund.get("payment_id")).first()
    if txn is None:
        logger.warning(f"Transaction not found for refund {refund.get('id')}")
        return None
    if txn.refund_id != refund.get("id"):
        logger.warning(f"Refund {refund.get('id')} does not match transaction {txn.id} refund {txn.refund_id}")
        return None
    return txn


def handle_refund_processed(payload):
    txn = find_refund_transaction(entity(payload, "refund"))
    if txn is not None and not txn.is_refunded:
        record_refund_processed(txn)
    return txn


def handle_refund_failed(payload):
    txn = find_refund_transaction(entity(payload, "refund"))
    if txn is not None and not txn.is_refunded:
        record_refund_failed(txn)
    return txn


EVENT_HANDLERS = {
    "payment.captured": handle_payment_captured,
    "payment.failed": handle_payment_failed,
    "refund.processed": handle_refund_processed,
    "refund.failed": handle_refund_failed,
}


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([WebhookRateThrottle])
def razorpay_webhook(request):
    """Handle Razorpay webhooks, verified against the raw request body."""
    body = request.body
    signature = request.headers.get("X-Razorpay-Signature")
    gateway = get_gateway()

    if not signature or not gateway.webhook_secret:
        logger.warning("Razorpay webhook rejected: missing signature or secret")
        return error_response("Missing webhook signature or secret")
    if not gateway.verify_webhook_signature(body, signature):
        logger.warning("Razorpay webhook rejected: invalid signature")
        return error_response("Invalid webhook signature")

    try:
        data = json.loads(body)
    except ValueError:
        return error_response("Invalid webhook payload")

    event_name = data.get("event", "unknown")
    event_id = request.headers.get("X-Razorpay-Event-Id", "")
    if event_id and WebhookEvent.objects.filter(event_id=event_id, processed=True).exists():
        logger.info(f"Duplicate Razorpay webhook {event_id} ignored")
        return success_response("Event already processed")

    webhook_event = WebhookEvent.objects.create(
        event=event_name,
        event_id=event_id,
        payload=data,
        signature=signature,
    )

    handler = EVENT_HANDLERS.get(event_name)
    if handler is None:
        logger.warning(f"Unhandled Razorpay webhook event: {event_name}")
        webhook_event.mark_processed()
        return success_response("Event ignored")

    try:
        with transaction.atomic():
            txn = handler(data.get("payload") or {})
            webhook_event.mark_processed(transaction=txn)
    except Exception as e:
        logger.exception(f"Razorpay webhook error for {event_name}: {e}")
        webhook_event.error_message = str(e)
        webhook_event.save(update_fields=["error_message"])
        return error_response("Webhook processing failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info(f"Razorpay webhook {event_name} processed")
    return success_response("Webhook processed")
