import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone

from apps.canteens.models import Item
from apps.common.exceptions import ApiError
from apps.common.utils import campus_setting
from apps.notifications.utils import notify
from apps.offers.models import Offer

from .models import Order, OrderItem, Penalty

logger = logging.getLogger(__name__)

VENDOR_TRANSITIONS = {
    Order.STATUS_PREPARING: [Order.STATUS_PLACED],
    Order.STATUS_READY: [Order.STATUS_PLACED, Order.STATUS_PREPARING],
    Order.STATUS_COMPLETED: [Order.STATUS_PLACED, Order.STATUS_PREPARING, Order.STATUS_READY],
}
FINAL_STATUSES = [Order.STATUS_CANCELLED, Order.STATUS_COMPLETED, Order.STATUS_REFUNDED]
LATE_CANCEL_STATUSES = [Order.STATUS_PREPARING, Order.STATUS_READY]


def validate_pickup_time(pickup_time):
    lead = campus_setting("MIN_PICKUP_LEAD_MINUTES")
    if pickup_time < timezone.now() + timedelta(minutes=lead):
        raise ApiError(f"Pickup time must be at least {lead} minutes from now")
    return pickup_time


def resolve_items(canteen, items_data):
    """
    Map ``[{"id": ..., "quantity": ...}]`` onto available canteen items.
    Returns a list of ``(item, quantity)`` pairs.
    """
    if not items_data:
        raise ApiError("At least one item is required")

    ids = [entry["id"] for entry in items_data]
    items = {
        item.id: item
        for item in Item.objects.filter(id__in=ids, canteen=canteen, is_deleted=False)
    }

    resolved = []
    for entry in items_data:
        item = items.get(entry["id"])
        if item is None:
            raise ApiError(f"Item {entry['id']} not found in this canteen", status_code=404)
        if not item.available:
            raise ApiError(f"{item.name} is currently unavailable")
        resolved.append((item, entry.get("quantity") or 1))
    return resolved


def outstanding_penalties(device_id, canteen):
    """Unpaid penalties for a device at a canteen not already carried by a live order."""
    if not device_id:
        return Penalty.objects.none()
    return Penalty.objects.filter(
        device_id=device_id,
        canteen=canteen,
        is_paid=False,
    ).filter(
        Q(applied_to__isnull=True)
        | Q(applied_to__status__in=[Order.STATUS_CANCELLED, Order.STATUS_REFUNDED])
        | Q(applied_to__is_deleted=True)
    )


def apply_offer(offer_id, student, lines):
    """
    Lock and validate an offer against the order subtotal.
    Returns ``(offer, discount)``; ``(None, 0)`` when no offer is given.
    """
    if not offer_id:
        return None, Decimal("0.00")

    offer = Offer.objects.select_for_update().filter(id=offer_id, is_active=True).first()
    if offer is None:
        raise ApiError("Offer not found", status_code=404)

    subtotal = sum((item.price * quantity for item, quantity in lines), Decimal("0.00"))
    offer.check_eligible(student, subtotal)
    return offer, offer.discount_for(subtotal)


def create_order(student, canteen, items_data, pickup_time, device_id="", offer_id=None):
    if student.campus_id != canteen.campus_id:
        raise ApiError("You can only order from canteens on your campus", status_code=403)
    if not canteen.is_approved:
        raise ApiError("Canteen not found", status_code=404)
    if not canteen.is_open:
        raise ApiError("This canteen is currently closed")

    validate_pickup_time(pickup_time)
    lines = resolve_items(canteen, items_data)

    with transaction.atomic():
        penalties = list(outstanding_penalties(device_id, canteen).select_for_update())
        penalty_total = sum((p.amount for p in penalties), Decimal("0.00"))

        offer, discount = apply_offer(offer_id, student, lines)

        order = Order.objects.create(
            student=student,
            canteen=canteen,
            pickup_time=pickup_time,
            device_id=device_id or "",
            penalty_amount=penalty_total,
            offer=offer,
            discount_amount=discount,
        )
        for item, quantity in lines:
            OrderItem.objects.create(
                order=order,
                item=item,
                quantity=quantity,
                name_at_purchase=item.name,
                price_at_purchase=item.price,
            )
        order.calculate_total(save=True)
        if offer is not None:
            offer.claim(student)

        if penalties:
            Penalty.objects.filter(id__in=[p.id for p in penalties]).update(applied_to=order)
            logger.info(f"Order {order.order_number} carries penalties of {penalty_total}")

    if offer is not None:
        logger.info(f"Offer {offer.id} applied to order {order.order_number} for {discount}")
    logger.info(f"Order {order.order_number} created by {student.email} for canteen {canteen.id}")
    return order


def check_status_permission(order, new_status, user):
    """Students may only cancel their own orders; vendors manage their canteen's."""
    if user.is_admin():
        return
    if user.is_student():
        if order.student_id != user.id:
            raise ApiError("You can only update your own orders", status_code=403)
        if new_status != Order.STATUS_CANCELLED:
            raise ApiError("Students can only cancel orders", status_code=403)
        return
    canteen = user.get_canteen()
    if canteen is None or canteen.id != order.canteen_id:
        raise ApiError("You can only update orders of your canteen", status_code=403)


def update_order_status(order, new_status, user, device_id=""):
    from apps.payments.models import Transaction
    from apps.payments.services import sync_group_share

    if order.status == Order.STATUS_CANCELLED:
        raise ApiError("Cannot update a cancelled order")
    if order.status in FINAL_STATUSES:
        raise ApiError(f"Order is already {order.status}")

    check_status_permission(order, new_status, user)

    if new_status in VENDOR_TRANSITIONS and order.status not in VENDOR_TRANSITIONS[new_status]:
        raise ApiError(f"Cannot move an order from {order.status} to {new_status}")

    penalty = None
    with transaction.atomic():
        previous_status = order.status
        order.set_status(new_status, changed_by=user)

        if new_status == Order.STATUS_CANCELLED:
            if user.is_student() and previous_status in LATE_CANCEL_STATUSES:
                rate = Decimal(campus_setting("CANCELLATION_PENALTY_RATE"))
                amount = (order.total * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
                penalty = Penalty.objects.create(
                    device_id=device_id or order.device_id,
                    user=user,
                    order=order,
                    canteen=order.canteen,
                    amount=amount,
                )
                logger.info(f"Penalty of {amount} applied for cancelling {order.order_number}")

            for txn in order.transactions.filter(status__in=Transaction.UNPAID_STATUSES):
                txn.mark_cancelled()
                sync_group_share(txn)

        elif new_status == Order.STATUS_COMPLETED:
            now = timezone.now()
            order.applied_penalties.filter(is_paid=False).update(is_paid=True, paid_at=now)
            settled = Transaction.objects.filter(
                order=order,
                payment_method=Transaction.METHOD_COD,
                status__in=[Transaction.STATUS_CREATED, Transaction.STATUS_ATTEMPTED],
            ).update(status=Transaction.STATUS_PAID, paid_at=now)
            if settled:
                order.payment_status = Order.PAYMENT_STATUS_PAID
                order.paid_at = now
                order.save(update_fields=["payment_status", "paid_at", "updated_at"])

        message = f"Your order {order.order_number} is now {new_status}."
        if penalty is not None:
            message += f" A cancellation penalty of Rs. {penalty.amount} will be added to your next order."
        notify(order.student, "Order update", message, "order_status", {"orderId": str(order.id), "status": new_status})

        if new_status == Order.STATUS_CANCELLED and user.id == order.student_id:
            notify(
                order.canteen.owner,
                "Order cancelled",
                f"Order {order.order_number} was cancelled by the student.",
                "order_cancelled",
                {"orderId": str(order.id)},
            )

    logger.info(f"Order {order.order_number} moved {previous_status} -> {new_status} by {user.email}")
    return order, penalty


# Orders that reached the kitchen count towards popularity
RANKED_STATUSES = [Order.STATUS_PLACED, Order.STATUS_PREPARING, Order.STATUS_READY, Order.STATUS_COMPLETED]


def top_items(lines, limit):
    """
    Rank items in ``lines`` (an OrderItem queryset) by quantity ordered.
    Returns a list of ``(item, quantity)`` pairs, best first.
    """
    rows = list(
        lines.filter(
            order__is_deleted=False,
            order__status__in=RANKED_STATUSES,
            item__is_deleted=False,
        )
        .values("item")
        .annotate(ordered=Sum("quantity"))
        .order_by("-ordered", "item")[:limit]
    )
    items = Item.objects.in_bulk([row["item"] for row in rows])
    return [(items[row["item"]], row["ordered"]) for row in rows]


def recommendations(student, limit=3):
    return {
        "personal": top_items(OrderItem.objects.filter(order__student=student), limit),
        "trending_campus": top_items(
            OrderItem.objects.filter(order__canteen__campus_id=student.campus_id),
            limit,
        ),
        "global": top_items(OrderItem.objects.all(), limit),
    }


def also_ordered(item, limit=5):
    """Items most often ordered together with ``item``."""
    orders = OrderItem.objects.filter(item=item).values("order")
    lines = OrderItem.objects.filter(order__in=orders).exclude(item=item)
    return top_items(lines, limit)
