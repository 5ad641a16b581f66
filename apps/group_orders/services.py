import hashlib
import logging
import time
from datetime import timedelta
from decimal import Decimal, ROUND_DOWN

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.common.exceptions import ApiError
from apps.common.utils import campus_setting, to_paise
from apps.notifications.utils import notify
from apps.orders.models import Order, OrderItem
from apps.orders.services import resolve_items, validate_pickup_time
from apps.payments.gateway import get_gateway
from apps.payments.models import Transaction

from .models import GroupOrder, GroupOrderItem, GroupOrderShare

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def replace_items(group, items_data, user):
    """Swap the group's cart for ``items_data`` and recompute the total."""
    lines = resolve_items(group.canteen, items_data)
    GroupOrderItem.objects.filter(group_order=group).delete()
    for item, quantity in lines:
        GroupOrderItem.objects.create(
            group_order=group,
            item=item,
            quantity=quantity,
            name_at_purchase=item.name,
            price_at_purchase=item.price,
            added_by=user,
        )
    return group.recalculate_total()


def split_equal(total, members, creator):
    """Equal shares in paise; the leftover paise go to the creator."""
    count = len(members)
    base = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    remainder = total - base * count
    return [(member, base + remainder if member.id == creator.id else base) for member in members]


def split_custom(total, members, amounts):
    by_id = {member.id: member for member in members}
    shares = []
    for entry in amounts:
        member = by_id.get(entry["user"])
        if member is None:
            raise ApiError(f"User {entry['user']} is not a member of this group order")
        shares.append((member, entry["amount"].quantize(CENT)))

    if len({member.id for member, _ in shares}) != len(shares):
        raise ApiError("Each member can only appear once in a custom split")
    if sum((amount for _, amount in shares), Decimal("0.00")) != total:
        raise ApiError(f"Custom amounts must add up to the order total of {total}")
    return shares


def split_single(total, members, payer_id, creator):
    payer_id = payer_id or creator.id
    payer = next((member for member in members if member.id == payer_id), None)
    if payer is None:
        raise ApiError("The payer must be a member of this group order")
    return [(payer, total)]


def compute_shares(group, split_type, amounts=None, payer_id=None):
    total = group.total_amount
    if total <= 0:
        raise ApiError("Add items to the group order before checking out")

    members = list(group.members.order_by("id"))
    if split_type == GroupOrder.SPLIT_CUSTOM:
        return split_custom(total, members, amounts or [])
    if split_type == GroupOrder.SPLIT_SINGLE:
        return split_single(total, members, payer_id, group.creator)
    return split_equal(total, members, group.creator)


def group_receipt(group, user):
    digest = hashlib.md5(f"{group.id}_{user.id}_{time.time()}".encode()).hexdigest()[:8]
    return f"grp_{group.id.hex[-4:]}_{digest}"


def checkout(group, user, split_type, items_data=None, amounts=None, payer_id=None, pickup_time=None):
    """
    Freeze the cart, split it, and open one member order plus Razorpay
    order per non-zero share.
    """
    if group.status != GroupOrder.STATUS_PENDING:
        raise ApiError("This group order has already been checked out")
    if pickup_time is not None:
        validate_pickup_time(pickup_time)

    gateway = get_gateway()
    payments = []
    with transaction.atomic():
        if items_data:
            replace_items(group, items_data, user)

        shares = compute_shares(group, split_type, amounts, payer_id)
        lines = list(group.items.select_related("item"))
        pickup = pickup_time or group.pickup_time or default_pickup_time()

        for member, amount in shares:
            if amount <= 0:
                continue

            order = Order.objects.create(
                student=member,
                canteen=group.canteen,
                group_order=group,
                pickup_time=pickup,
                total=amount,
                status=Order.STATUS_PAYMENT_PENDING,
            )
            for line in lines:
                OrderItem.objects.create(
                    order=order,
                    item=line.item,
                    quantity=line.quantity,
                    name_at_purchase=line.name_at_purchase,
                    price_at_purchase=line.price_at_purchase,
                )

            razorpay_order = gateway.create_order(
                to_paise(amount),
                receipt=group_receipt(group, member),
                notes={
                    "groupOrderId": str(group.id),
                    "orderId": str(order.id),
                    "userId": str(member.id),
                    "canteenId": str(group.canteen_id),
                },
            )
            txn = Transaction.objects.create(
                order=order,
                user=member,
                razorpay_order_id=razorpay_order["id"],
                amount=amount,
                currency=settings.CAMPUS_BITES_SETTINGS["CURRENCY"],
                payment_method=Transaction.METHOD_UPI,
            )
            GroupOrderShare.objects.create(
                group_order=group,
                user=member,
                amount=amount,
                order=order,
                transaction=txn,
                status=txn.status,
            )
            payments.append({
                "userId": member.id,
                "orderId": str(order.id),
                "transactionId": txn.id,
                "razorpayOrderId": txn.razorpay_order_id,
                "amount": to_paise(amount),
                "currency": txn.currency,
                "key": gateway.key_id,
            })

            if member.id != user.id:
                notify(
                    member,
                    "Group order payment",
                    f"Your share of Rs. {amount} for the group order is ready to pay.",
                    "group_order",
                    {"groupLink": group.group_link, "orderId": str(order.id)},
                )

        group.split_type = split_type
        group.payer_id = shares[0][0].id if split_type == GroupOrder.SPLIT_SINGLE else None
        group.pickup_time = pickup
        group.status = GroupOrder.STATUS_PAYMENT_PENDING
        group.save(update_fields=["split_type", "payer", "pickup_time", "status", "updated_at"])

    logger.info(f"Group order {group.group_link} checked out with {len(payments)} payments ({split_type})")
    return payments


def default_pickup_time():
    return timezone.now() + timedelta(minutes=campus_setting("MIN_PICKUP_LEAD_MINUTES"))
