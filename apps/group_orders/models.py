import logging
import secrets
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models

logger = logging.getLogger(__name__)


def generate_group_link():
    return f"group-order-{secrets.token_hex(8)}"


class GroupOrder(models.Model):
    """Shared cart that several students fill and settle together."""

    STATUS_PENDING = "pending"
    STATUS_PAYMENT_PENDING = "payment_pending"
    STATUS_PLACED = "placed"
    STATUS_PREPARING = "preparing"
    STATUS_READY = "ready"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PAYMENT_PENDING, "Payment Pending"),
        (STATUS_PLACED, "Placed"),
        (STATUS_PREPARING, "Preparing"),
        (STATUS_READY, "Ready"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    SPLIT_EQUAL = "equal"
    SPLIT_CUSTOM = "custom"
    SPLIT_SINGLE = "single"

    SPLIT_CHOICES = [
        (SPLIT_EQUAL, "Split equally"),
        (SPLIT_CUSTOM, "Custom amounts"),
        (SPLIT_SINGLE, "Single payer"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="created_group_orders",
    )
    members = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name="group_orders")
    group_link = models.CharField(max_length=64, unique=True, default=generate_group_link)
    qr_code_url = models.TextField(blank=True)
    canteen = models.ForeignKey("canteens.Canteen", on_delete=models.PROTECT, related_name="group_orders")

    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    split_type = models.CharField(max_length=10, choices=SPLIT_CHOICES, default=SPLIT_EQUAL)
    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="paid_group_orders",
        blank=True,
        null=True,
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    pickup_time = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "group_orders_group_order"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.group_link} ({self.get_status_display()})"

    def is_member(self, user):
        return self.members.filter(id=user.id).exists()

    def recalculate_total(self, save=True):
        total = Decimal("0.00")
        for line in GroupOrderItem.objects.filter(group_order=self):
            total += line.line_total
        self.total_amount = total.quantize(Decimal("0.01"))
        if save:
            self.save(update_fields=["total_amount", "updated_at"])
        return self.total_amount

    def refresh_payment_status(self):
        """
        Place the group order once every share has been paid. A cancelled
        share means the cart can no longer be settled, so the group order
        is cancelled; members who already paid keep their own orders.
        """
        shares = list(self.shares.all())
        if not shares or self.status != self.STATUS_PAYMENT_PENDING:
            return self.status
        if any(share.status == "cancelled" for share in shares):
            self.status = self.STATUS_CANCELLED
            self.save(update_fields=["status", "updated_at"])
            logger.info(f"Group order {self.group_link} cancelled after a member share was cancelled")
        elif all(share.status == "paid" for share in shares):
            self.status = self.STATUS_PLACED
            self.save(update_fields=["status", "updated_at"])
            logger.info(f"Group order {self.group_link} fully paid and placed")
        return self.status


class GroupOrderItem(models.Model):
    group_order = models.ForeignKey(GroupOrder, on_delete=models.CASCADE, related_name="items")
    item = models.ForeignKey("canteens.Item", on_delete=models.PROTECT, related_name="group_order_items")
    quantity = models.PositiveIntegerField(default=1)
    name_at_purchase = models.CharField(max_length=200)
    price_at_purchase = models.DecimalField(max_digits=8, decimal_places=2)
    added_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        blank=True,
        null=True,
    )

    class Meta:
        db_table = "group_orders_item"

    def __str__(self):
        return f"{self.name_at_purchase} x {self.quantity}"

    @property
    def line_total(self):
        return self.price_at_purchase * self.quantity


class GroupOrderShare(models.Model):
    """One member's portion of a group order and the order/payment that covers it."""

    group_order = models.ForeignKey(GroupOrder, on_delete=models.CASCADE, related_name="shares")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="group_shares")
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    order = models.OneToOneField("orders.Order", on_delete=models.CASCADE, related_name="group_share")
    transaction = models.ForeignKey(
        "payments.Transaction",
        on_delete=models.SET_NULL,
        related_name="group_shares",
        blank=True,
        null=True,
    )
    status = models.CharField(max_length=20, default="created")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "group_orders_share"
        unique_together = [("group_order", "user")]

    def __str__(self):
        return f"{self.user} owes {self.amount} for {self.group_order.group_link}"
