from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator
from django.conf import settings
from django.utils import timezone


class Transaction(models.Model):
    """Persisted record of a Razorpay (or cash) payment lifecycle."""

    STATUS_CREATED = 'created'
    STATUS_ATTEMPTED = 'attempted'
    STATUS_PAID = 'paid'
    STATUS_FAILED = 'failed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_REFUNDED = 'refunded'

    STATUS_CHOICES = [
        (STATUS_CREATED, 'Created'),
        (STATUS_ATTEMPTED, 'Attempted'),
        (STATUS_PAID, 'Paid'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_REFUNDED, 'Refunded'),
    ]

    UNPAID_STATUSES = [STATUS_CREATED, STATUS_ATTEMPTED, STATUS_FAILED]

    METHOD_UPI = 'upi'
    METHOD_COD = 'COD'

    PAYMENT_METHOD_CHOICES = [
        (METHOD_UPI, 'UPI'),
        (METHOD_COD, 'Cash on Delivery'),
    ]

    REFUND_PENDING = 'pending'
    REFUND_PROCESSED = 'processed'
    REFUND_FAILED = 'failed'

    REFUND_STATUS_CHOICES = [
        (REFUND_PENDING, 'Pending'),
        (REFUND_PROCESSED, 'Processed'),
        (REFUND_FAILED, 'Failed'),
    ]

    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.CASCADE,
        related_name='transactions'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='transactions'
    )

    # Razorpay identifiers
    razorpay_order_id = models.CharField(max_length=100, unique=True, blank=True, null=True)
    razorpay_payment_id = models.CharField(max_length=100, blank=True, db_index=True)
    razorpay_signature = models.CharField(max_length=256, blank=True)

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))]
    )
    currency = models.CharField(max_length=3, default='INR')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_CREATED)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES, default=METHOD_UPI)
    failure_reason = models.TextField(blank=True)
    notes = models.JSONField(default=dict, blank=True)

    # Refund details
    refund_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    refund_reason = models.TextField(blank=True)
    refund_status = models.CharField(max_length=20, choices=REFUND_STATUS_CHOICES, blank=True, null=True)
    refund_initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='initiated_refunds',
        blank=True,
        null=True
    )
    refund_initiated_at = models.DateTimeField(blank=True, null=True)
    refund_processed_at = models.DateTimeField(blank=True, null=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    refunded_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'payments_transaction'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at']),
            models.Index(fields=['order']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"Transaction {self.razorpay_order_id or self.id} - {self.amount} {self.currency} ({self.status})"

    @property
    def is_successful(self):
        return self.status == self.STATUS_PAID

    @property
    def can_refund(self):
        return self.status == self.STATUS_PAID and not self.refund_id

    @property
    def is_refunded(self):
        return self.status == self.STATUS_REFUNDED

    @property
    def refund_in_progress(self):
        return self.refund_status == self.REFUND_PENDING

    def mark_attempted(self, payment_id=None):
        self.status = self.STATUS_ATTEMPTED
        if payment_id:
            self.razorpay_payment_id = payment_id
        self.save(update_fields=['status', 'razorpay_payment_id', 'updated_at'])

    def mark_paid(self, payment_id=None, signature=None, paid_at=None):
        self.status = self.STATUS_PAID
        self.paid_at = paid_at or timezone.now()
        if payment_id:
            self.razorpay_payment_id = payment_id
        if signature:
            self.razorpay_signature = signature
        self.failure_reason = ''
        self.save(update_fields=[
            'status', 'paid_at', 'razorpay_payment_id', 'razorpay_signature', 'failure_reason', 'updated_at'
        ])

    def mark_failed(self, reason=None, payment_id=None, signature=None):
        self.status = self.STATUS_FAILED
        if reason:
            self.failure_reason = reason
        if payment_id:
            self.razorpay_payment_id = payment_id
        if signature:
            self.razorpay_signature = signature
        self.save(update_fields=[
            'status', 'failure_reason', 'razorpay_payment_id', 'razorpay_signature', 'updated_at'
        ])

    def mark_cancelled(self):
        self.status = self.STATUS_CANCELLED
        self.save(update_fields=['status', 'updated_at'])

    def initiate_refund(self, refund_id, reason='', initiated_by=None):
        self.refund_id = refund_id
        self.refund_reason = reason
        self.refund_status = self.REFUND_PENDING
        self.refund_initiated_by = initiated_by
        self.refund_initiated_at = timezone.now()
        self.save(update_fields=[
            'refund_id', 'refund_reason', 'refund_status', 'refund_initiated_by',
            'refund_initiated_at', 'updated_at'
        ])

    def complete_refund(self):
        now = timezone.now()
        self.status = self.STATUS_REFUNDED
        self.refund_status = self.REFUND_PROCESSED
        self.refund_processed_at = now
        self.refunded_at = now
        self.save(update_fields=['status', 'refund_status', 'refund_processed_at', 'refunded_at', 'updated_at'])

    def fail_refund(self):
        """Clear the refund so it can be attempted again."""
        self.refund_id = None
        self.refund_reason = ''
        self.refund_status = None
        self.refund_initiated_by = None
        self.refund_initiated_at = None
        self.save(update_fields=[
            'refund_id', 'refund_reason', 'refund_status', 'refund_initiated_by',
            'refund_initiated_at', 'updated_at'
        ])


class WebhookEvent(models.Model):
    """Raw Razorpay webhook deliveries, kept for audit and replay."""

    event = models.CharField(max_length=100)
    event_id = models.CharField(max_length=100, blank=True, db_index=True)
    payload = models.JSONField(default=dict)
    signature = models.CharField(max_length=256, blank=True)
    transaction = models.ForeignKey(
        Transaction,
        on_delete=models.SET_NULL,
        related_name='webhook_events',
        blank=True,
        null=True
    )
    processed = models.BooleanField(default=False)
    processed_at = models.DateTimeField(blank=True, null=True)
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payments_webhook_event'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.event} at {self.created_at}"

    def mark_processed(self, transaction=None):
        self.processed = True
        self.processed_at = timezone.now()
        if transaction is not None:
            self.transaction = transaction
        self.save(update_fields=['processed', 'processed_at', 'transaction'])
