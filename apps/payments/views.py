import logging
import time

from django.conf import settings
from django.db import transaction
from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes

from apps.common.pagination import paginate
from apps.common.responses import success_response, error_response
from apps.common.throttling import GeneralRateThrottle, PaymentRateThrottle
from apps.common.utils import to_paise
from apps.notifications.utils import notify
from apps.orders.models import Order

from .gateway import PaymentGatewayError, get_gateway
from .models import Transaction
from .serializers import (
    CreatePaymentOrderSerializer,
    PaymentFailureSerializer,
    RefundSerializer,
    TransactionSerializer,
    VerifyPaymentSerializer,
)
from .services import create_cod_transaction, record_payment_failure, record_payment_success, sync_group_share

logger = logging.getLogger(__name__)

PAYMENT_THROTTLES = [GeneralRateThrottle, PaymentRateThrottle]


def load_order_for(request, order_id):
    """Return (order, error_response) for an order the student owns."""
    order = Order.objects.filter(id=order_id, is_deleted=False).select_related("canteen").first()
    if order is None:
        return None, error_response("Order not found", status.HTTP_404_NOT_FOUND)
    if order.student_id != request.user.id:
        return None, error_response("Unauthorized access to order", status.HTTP_403_FORBIDDEN)
    return order, None


def load_transaction_for(request, **lookup):
    txn = Transaction.objects.filter(**lookup).select_related("order").first()
    if txn is None:
        return None, error_response("Transaction not found", status.HTTP_404_NOT_FOUND)
    if txn.user_id != request.user.id and not request.user.is_admin():
        return None, error_response("Unauthorized access to transaction", status.HTTP_403_FORBIDDEN)
    return txn, None


@api_view(["POST"])
@throttle_classes(PAYMENT_THROTTLES)
def create_payment_order(request):
    """Create a Razorpay order for a student's order and start a transaction."""
    serializer = CreatePaymentOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    order, error = load_order_for(request, serializer.validated_data["order_id"])
    if error:
        return error

    if order.transactions.filter(status=Transaction.STATUS_PAID).exists():
        return error_response("Order already paid")
    if order.status not in Order.PAYABLE_STATUSES:
        return error_response(f"Order cannot be paid while {order.status}")

    amount_paise = to_paise(order.total)
    gateway = get_gateway()
    razorpay_order = gateway.create_order(
        amount_paise,
        receipt=f"receipt_order_{int(time.time() * 1000)}",
        notes={
            "orderId": str(order.id),
            "userId": str(request.user.id),
            "canteenId": str(order.canteen_id),
        },
    )

    with transaction.atomic():
        txn = Transaction.objects.create(
            order=order,
            user=request.user,
            razorpay_order_id=razorpay_order["id"],
            amount=order.total,
            currency=settings.CAMPUS_BITES_SETTINGS["CURRENCY"],
            status=Transaction.STATUS_CREATED,
            payment_method=Transaction.METHOD_UPI,
            notes=razorpay_order.get("notes") or {},
        )
        if order.status != Order.STATUS_PAYMENT_PENDING:
            order.set_status(Order.STATUS_PAYMENT_PENDING, changed_by=request.user, notes="Payment started")

    logger.info(f"Razorpay order {txn.razorpay_order_id} created for order {order.order_number}")
    return success_response(
        "Payment order created",
        {
            "transactionId": txn.id,
            "razorpayOrderId": txn.razorpay_order_id,
            "amount": amount_paise,
            "currency": txn.currency,
            "key": gateway.key_id,
            "method": Transaction.METHOD_UPI,
        },
        status.HTTP_201_CREATED,
    )


@api_view(["POST"])
@throttle_classes(PAYMENT_THROTTLES)
def verify_payment(request):
    """Verify the checkout signature and confirm the UPI payment."""
    serializer = VerifyPaymentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    txn, error = load_transaction_for(request, razorpay_order_id=data["razorpay_order_id"])
    if error:
        return error

    if txn.status == Transaction.STATUS_PAID:
        return success_response("Payment already verified", TransactionSerializer(txn).data)
    if txn.status in [Transaction.STATUS_CANCELLED, Transaction.STATUS_REFUNDED]:
        return error_response(f"Transaction is {txn.status}")

    gateway = get_gateway()
    payment_id = data["razorpay_payment_id"]
    signature = data["razorpay_signature"]

    if not gateway.verify_payment_signature(txn.razorpay_order_id, payment_id, signature):
        with transaction.atomic():
            txn.mark_failed("Invalid signature", payment_id=payment_id, signature=signature)
            sync_group_share(txn)
        logger.warning(f"Invalid payment signature for transaction {txn.id}")
        return error_response("Invalid payment signature")

    with transaction.atomic():
        txn.mark_attempted(payment_id=payment_id)
        sync_group_share(txn)
    payment = gateway.fetch_payment(payment_id)
    if payment.get("method") != Transaction.METHOD_UPI:
        with transaction.atomic():
            txn.mark_failed("Invalid payment method", payment_id=payment_id, signature=signature)
            sync_group_share(txn)
        logger.warning(f"Transaction {txn.id} paid with {payment.get('method')} instead of UPI")
        return error_response("Only UPI payments are accepted")

    with transaction.atomic():
        record_payment_success(txn, payment_id=payment_id, signature=signature)

    return success_response("Payment verified successfully", {
        "transactionId": txn.id,
        "orderId": str(txn.order_id),
        "orderNumber": txn.order.order_number,
        "status": txn.status,
        "paidAt": txn.paid_at,
    })


@api_view(["POST"])
@throttle_classes(PAYMENT_THROTTLES)
def payment_failure(request):
    """Client-reported checkout failure."""
    serializer = PaymentFailureSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    txn, error = load_transaction_for(request, razorpay_order_id=data["razorpay_order_id"])
    if error:
        return error
    if txn.status == Transaction.STATUS_PAID:
        return error_response("Payment already completed")

    reason = (data.get("error") or {}).get("description") or "UPI payment failed"
    with transaction.atomic():
        record_payment_failure(txn, reason, payment_id=data.get("razorpay_payment_id") or None)

    return success_response("Payment failure recorded", {
        "transactionId": txn.id,
        "status": txn.status,
        "reason": reason,
    })


@api_view(["GET"])
@throttle_classes(PAYMENT_THROTTLES)
def transaction_detail(request, transaction_id):
    txn, error = load_transaction_for(request, id=transaction_id)
    if error:
        return error
    return success_response("Transaction fetched", TransactionSerializer(txn).data)


@api_view(["GET"])
@throttle_classes(PAYMENT_THROTTLES)
def transaction_list(request):
    transactions = Transaction.objects.filter(user=request.user).select_related("order")
    status_filter = request.query_params.get("status")
    if status_filter:
        transactions = transactions.filter(status=status_filter)

    items, pagination = paginate(transactions, request, total_key="totalTransactions")
    return success_response("Transactions fetched", {
        "transactions": TransactionSerializer(items, many=True).data,
        "pagination": pagination,
    })


@api_view(["GET", "POST"])
@throttle_classes(PAYMENT_THROTTLES)
def transaction_refund(request, transaction_id):
    """POST starts a full refund; GET reports its status."""
    txn, error = load_transaction_for(request, id=transaction_id)
    if error:
        return error

    if request.method == "GET":
        return refund_status(txn)

    serializer = RefundSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data["reason"]

    if not txn.can_refund:
        return error_response(
            "Transaction cannot be refunded",
            details={
                "status": txn.status,
                "alreadyRefunded": txn.is_refunded,
                "refundInProgress": txn.refund_in_progress,
            },
        )
    if txn.payment_method == Transaction.METHOD_COD:
        return error_response("Cash payments cannot be refunded online")

    refund = get_gateway().refund_payment(
        txn.razorpay_payment_id,
        to_paise(txn.amount),
        notes={
            "reason": reason,
            "transactionId": str(txn.id),
            "orderId": str(txn.order_id),
        },
    )

    with transaction.atomic():
        txn.initiate_refund(refund["id"], reason=reason, initiated_by=request.user)
        notify(
            txn.user,
            "Refund initiated",
            f"A refund of Rs. {txn.amount} for order {txn.order.order_number} has been initiated.",
            "refund",
            {"transactionId": txn.id, "refundId": txn.refund_id},
        )

    logger.info(f"Refund {txn.refund_id} initiated for transaction {txn.id} by {request.user.email}")
    return success_response("Refund initiated successfully", {
        "refundId": txn.refund_id,
        "amount": float(txn.amount),
        "status": refund.get("status", Transaction.REFUND_PENDING),
        "transactionId": txn.id,
    })


def refund_status(txn):
    if not txn.refund_id:
        return error_response("No refund found for this transaction", status.HTTP_404_NOT_FOUND)

    local = {
        "refundId": txn.refund_id,
        "status": txn.refund_status,
        "amount": float(txn.amount),
        "reason": txn.refund_reason,
        "initiatedAt": txn.refund_initiated_at,
        "processedAt": txn.refund_processed_at,
    }
    try:
        refund = get_gateway().fetch_refund(txn.refund_id)
    except PaymentGatewayError:
        local["note"] = "Live refund status unavailable; showing last known status"
        return success_response("Refund status fetched", local)

    local["status"] = refund.get("status", txn.refund_status)
    local["amount"] = refund.get("amount", to_paise(txn.amount)) / 100
    local["localStatus"] = txn.refund_status
    return success_response("Refund status fetched", local)


@api_view(["POST"])
@throttle_classes(PAYMENT_THROTTLES)
def cash_on_delivery(request):
    serializer = CreatePaymentOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    order, error = load_order_for(request, serializer.validated_data["order_id"])
    if error:
        return error
    if order.status != Order.STATUS_PENDING:
        return error_response("Only pending orders can be placed as cash on delivery")
    if order.transactions.exists():
        return error_response("A payment has already been started for this order")

    with transaction.atomic():
        txn = create_cod_transaction(order, request.user)

    return success_response(
        "Order placed with cash on delivery",
        {
            "transactionId": txn.id,
            "orderId": str(order.id),
            "orderNumber": order.order_number,
            "status": order.status,
            "paymentStatus": order.payment_status,
        },
        status.HTTP_201_CREATED,
    )
