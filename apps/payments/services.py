"""
Payment state changes shared by the client-facing endpoints and the
Razorpay webhook. Callers own the surrounding ``transaction.atomic`` block.
"""
import logging

from apps.notifications.utils import broadcast_new_order, notify
from apps.orders.models import Order

from .models import Transaction

logger = logging.getLogger(__name__)


def sync_group_share(txn):
    """Keep a group-order share in step with its transaction."""
    from apps.group_orders.models import GroupOrderShare

    share = GroupOrderShare.objects.filter(order_id=txn.order_id).select_related("group_order").first()
    if share is None:
        return
    share.transaction = txn
    share.status = txn.status
    share.save(update_fields=["transaction", "status"])
    share.group_order.refresh_payment_status()


def announce_order(order, title, student_message):
    notify(order.student, title, student_message, "order_placed", {"orderId": str(order.id)})
    notify(
        order.canteen.owner,
        "New order received",
        f"New order {order.order_number} for Rs. {order.total}.",
        "order_placed",
        {"orderId": str(order.id)},
    )
    broadcast_new_order(order)


def record_payment_success(txn, payment_id=None, signature=None, paid_at=None):
    """Mark the transaction paid and place its order."""
    txn.mark_paid(payment_id=payment_id, signature=signature, paid_at=paid_at)
    order = txn.order
    if order.status in Order.CLOSED_STATUSES:
        return record_late_capture(txn)

    order.mark_paid(paid_at=txn.paid_at)
    sync_group_share(txn)

    announce_order(
        order,
        "Payment successful",
        f"Payment of Rs. {txn.amount} received. Your order {order.order_number} has been placed.",
    )
    logger.info(f"Transaction {txn.id} paid; order {order.order_number} placed")
    return txn


def record_late_capture(txn):
    """
    Money captured for an order that was already cancelled or refunded.
    The order keeps its status; the paid transaction is left refundable.
    """
    order = txn.order
    sync_group_share(txn)
    notify(
        txn.user,
        "Payment received",
        f"Rs. {txn.amount} was captured for order {order.order_number}, which is {order.status}. "
        f"You can request a refund for this payment.",
        "payment_success",
        {"orderId": str(order.id), "transactionId": txn.id},
    )
    logger.warning(f"Payment {txn.razorpay_payment_id} captured for {order.status} order {order.order_number}")
    return txn


def record_payment_failure(txn, reason, payment_id=None, signature=None):
    """Mark the transaction failed and return its order to pending."""
    txn.mark_failed(reason=reason, payment_id=payment_id, signature=signature)
    order = txn.order
    if order.status in Order.PAYABLE_STATUSES:
        order.mark_payment_failed()
    sync_group_share(txn)

    notify(
        txn.user,
        "Payment failed",
        f"Payment for order {order.order_number} failed: {reason}",
        "payment_failed",
        {"orderId": str(order.id), "transactionId": txn.id},
    )
    logger.info(f"Transaction {txn.id} failed: {reason}")
    return txn


def record_refund_processed(txn):
    txn.complete_refund()
    order = txn.order
    order.set_status(Order.STATUS_REFUNDED, notes=f"Refund {txn.refund_id} processed")
    sync_group_share(txn)
    notify(
        txn.user,
        "Refund processed",
        f"Your refund of Rs. {txn.amount} for order {order.order_number} has been processed.",
        "refund",
        {"transactionId": txn.id, "refundId": txn.refund_id},
    )
    logger.info(f"Refund {txn.refund_id} processed for transaction {txn.id}")


def record_refund_failed(txn):
    refund_id = txn.refund_id
    txn.fail_refund()
    notify(
        txn.user,
        "Refund failed",
        f"Your refund for order {txn.order.order_number} could not be processed. Please try again.",
        "refund",
        {"transactionId": txn.id},
    )
    logger.warning(f"Refund {refund_id} failed for transaction {txn.id}")


def create_cod_transaction(order, user):
    """Cash on delivery: the order is placed immediately and settled on pickup."""
    txn = Transaction.objects.create(
        order=order,
        user=user,
        amount=order.total,
        payment_method=Transaction.METHOD_COD,
        status=Transaction.STATUS_CREATED,
    )
    old_status = order.status
    order.status = Order.STATUS_PLACED
    order.payment_status = Order.PAYMENT_STATUS_COD
    order.save(update_fields=["status", "payment_status", "updated_at"])
    order.history.create(status_from=old_status, status_to=order.status, changed_by=user, notes="Cash on delivery")

    announce_order(
        order,
        "Order placed",
        f"Your order {order.order_number} has been placed. Pay Rs. {order.total} at pickup.",
    )
    logger.info(f"COD order {order.order_number} placed")
    return txn
