import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone


class OrderCounter(models.Model):
    """Named monotonically increasing sequence used for readable order numbers."""

    name = models.CharField(max_length=50, primary_key=True)
    seq = models.PositiveBigIntegerField(default=0)

    class Meta:
        db_table = "orders_counter"

    @classmethod
    def next_value(cls, name="order"):
        with transaction.atomic():
            cls.objects.get_or_create(name=name)
            cls.objects.filter(name=name).update(seq=F("seq") + 1)
            return cls.objects.get(name=name).seq


def generate_order_number():
    return f"order#{OrderCounter.next_value()}"


class Order(models.Model):
    """Food order placed by a student at one canteen."""

    STATUS_PENDING = "pending"
    STATUS_PAYMENT_PENDING = "payment_pending"
    STATUS_PAYMENT_FAILED = "payment_failed"
    STATUS_PLACED = "placed"
    STATUS_PREPARING = "preparing"
    STATUS_READY = "ready"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUS_REFUNDED = "refunded"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PAYMENT_PENDING, "Payment Pending"),
        (STATUS_PAYMENT_FAILED, "Payment Failed"),
        (STATUS_PLACED, "Placed"),
        (STATUS_PREPARING, "Preparing"),
        (STATUS_READY, "Ready"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    # Statuses from which an online payment may be started
    PAYABLE_STATUSES = [STATUS_PENDING, STATUS_PAYMENT_PENDING, STATUS_PAYMENT_FAILED]
    ACTIVE_STATUSES = [STATUS_PLACED, STATUS_PREPARING, STATUS_READY]
    CLOSED_STATUSES = [STATUS_CANCELLED, STATUS_REFUNDED]

    PAYMENT_STATUS_PAID = "paid"
    PAYMENT_STATUS_FAILED = "failed"
    PAYMENT_STATUS_COD = "COD"

    PAYMENT_STATUS_CHOICES = [
        ("", "Unpaid"),
        (PAYMENT_STATUS_PAID, "Paid"),
        (PAYMENT_STATUS_FAILED, "Failed"),
        (PAYMENT_STATUS_COD, "Cash on Delivery"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True, default=generate_order_number)

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="orders",
    )
    canteen = models.ForeignKey("canteens.Canteen", on_delete=models.PROTECT, related_name="orders")
    group_order = models.ForeignKey(
        "group_orders.GroupOrder",
        on_delete=models.SET_NULL,
        related_name="member_orders",
        blank=True,
        null=True,
    )

    # Total includes any carried-over cancellation penalties, less the offer discount
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    penalty_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    offer = models.ForeignKey(
        "offers.Offer",
        on_delete=models.SET_NULL,
        related_name="orders",
        blank=True,
        null=True,
    )
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, blank=True, default="")

    pickup_time = models.DateTimeField()
    device_id = models.CharField(max_length=32, blank=True)
    is_deleted = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "orders_order"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["student", "created_at"]),
            models.Index(fields=["canteen", "status"]),
            models.Index(fields=["status"]),
        ]

    def __str__(self):
        return f"{self.order_number} - {self.get_status_display()}"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    def calculate_total(self, save=False):
        """Recalculate total from line items plus penalties less any discount. Call after creating items."""
        subtotal = Decimal("0.00")
        for line in self.items.all():
            subtotal += line.line_total
        total = subtotal + self.penalty_amount - self.discount_amount
        self.total = max(Decimal("0.00"), total).quantize(Decimal("0.01"))
        if save:
            self.save(update_fields=["total", "updated_at"])
        return self.total

    def set_status(self, new_status, changed_by=None, notes=""):
        """Change status and record the transition."""
        old_status = self.status
        self.status = new_status
        update_fields = ["status", "updated_at"]

        if new_status == self.STATUS_CANCELLED:
            self.cancelled_at = timezone.now()
            update_fields.append("cancelled_at")
        elif new_status == self.STATUS_COMPLETED:
            self.completed_at = timezone.now()
            update_fields.append("completed_at")

        self.save(update_fields=update_fields)
        OrderHistory.objects.create(
            order=self,
            status_from=old_status,
            status_to=new_status,
            changed_by=changed_by,
            notes=notes,
        )

    def mark_paid(self, paid_at=None):
        """Payment captured: the order is placed and visible to the canteen."""
        old_status = self.status
        self.status = self.STATUS_PLACED
        self.payment_status = self.PAYMENT_STATUS_PAID
        self.paid_at = paid_at or timezone.now()
        self.save(update_fields=["status", "payment_status", "paid_at", "updated_at"])
        OrderHistory.objects.create(order=self, status_from=old_status, status_to=self.status, notes="Payment captured")

    def mark_payment_failed(self):
        old_status = self.status
        self.status = self.STATUS_PENDING
        self.payment_status = self.PAYMENT_STATUS_FAILED
        self.save(update_fields=["status", "payment_status", "updated_at"])
        OrderHistory.objects.create(order=self, status_from=old_status, status_to=self.status, notes="Payment failed")


class OrderItem(models.Model):
    """Individual line item in an order."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    item = models.ForeignKey("canteens.Item", on_delete=models.PROTECT, related_name="order_items")
    quantity = models.PositiveIntegerField(default=1)
    name_at_purchase = models.CharField(max_length=200)
    price_at_purchase = models.DecimalField(max_digits=8, decimal_places=2)

    class Meta:
        db_table = "orders_orderitem"

    def __str__(self):
        return f"{self.name_at_purchase} x {self.quantity}"

    @property
    def line_total(self):
        return self.price_at_purchase * self.quantity

    def save(self, *args, **kwargs):
        # Snapshot the item name and price at ordering time
        if not self.name_at_purchase:
            self.name_at_purchase = self.item.name
        if self.price_at_purchase is None:
            self.price_at_purchase = self.item.price
        super().save(*args, **kwargs)


class OrderHistory(models.Model):
    """Audit trail of order status changes."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="history")
    status_from = models.CharField(max_length=20, blank=True)
    status_to = models.CharField(max_length=20)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="order_changes",
        blank=True,
        null=True,
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "orders_history"
        ordering = ["-created_at"]
        verbose_name_plural = "Order histories"

    def __str__(self):
        return f"{self.order.order_number}: {self.status_from} -> {self.status_to}"


class Penalty(models.Model):
    """
    Charge for a late cancellation. Penalties follow the device, not the
    account, and are added to that device's next order at the same canteen.
    """

    device_id = models.CharField(max_length=32, db_index=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="penalties")
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="penalties")
    canteen = models.ForeignKey("canteens.Canteen", on_delete=models.CASCADE, related_name="penalties")
    applied_to = models.ForeignKey(
        Order,
        on_delete=models.SET_NULL,
        related_name="applied_penalties",
        blank=True,
        null=True,
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    reason = models.CharField(max_length=255, default="Order cancelled after preparation started")
    is_paid = models.BooleanField(default=False)
    paid_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "orders_penalty"
        ordering = ["-created_at"]
        verbose_name_plural = "Penalties"

    def __str__(self):
        return f"Penalty {self.amount} for {self.order.order_number}"
