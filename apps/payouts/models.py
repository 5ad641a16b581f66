from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator, RegexValidator
from django.db import models
from django.db.models import Sum, Count
from django.utils import timezone

from apps.common.utils import money


class BankDetails(models.Model):
    """Bank account a canteen is paid out to. Admin verification is required."""

    canteen = models.ForeignKey("canteens.Canteen", on_delete=models.CASCADE, related_name="bank_details")
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bank_details")

    account_holder_name = models.CharField(max_length=100)
    account_number = models.CharField(
        max_length=18,
        validators=[RegexValidator(r'^\d{9,18}$', "Account number must be 9 to 18 digits")]
    )
    ifsc_code = models.CharField(
        max_length=11,
        validators=[RegexValidator(r'^[A-Z]{4}0[A-Z0-9]{6}$', "Invalid IFSC code")]
    )
    bank_name = models.CharField(max_length=100)
    branch_name = models.CharField(max_length=100)
    upi_id = models.CharField(
        max_length=100,
        blank=True,
        validators=[RegexValidator(r'^[\w.\-]{2,256}@[a-zA-Z]{2,64}$', "Invalid UPI ID")]
    )

    is_verified = models.BooleanField(default=False)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="verified_bank_details",
        blank=True,
        null=True
    )
    verified_at = models.DateTimeField(blank=True, null=True)
    verification_notes = models.TextField(blank=True)

    is_active = models.BooleanField(default=True)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payouts_bank_details"
        verbose_name_plural = "Bank details"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["canteen"],
                condition=models.Q(is_deleted=False),
                name="one_live_bank_details_per_canteen",
            ),
        ]

    def __str__(self):
        return f"{self.bank_name} ****{self.account_number[-4:]} ({self.canteen})"

    @property
    def masked_account_number(self):
        return f"****{self.account_number[-4:]}"

    def snapshot(self):
        return {
            "accountHolderName": self.account_holder_name,
            "accountNumber": self.masked_account_number,
            "ifscCode": self.ifsc_code,
            "bankName": self.bank_name,
            "branchName": self.branch_name,
            "upiId": self.upi_id,
        }


class PayoutRequest(models.Model):
    """Vendor request to withdraw available balance."""

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_PROCESSING = "processing"
    STATUS_COMPLETED = "completed"
    STATUS_REJECTED = "rejected"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_FAILED, "Failed"),
    ]

    OPEN_STATUSES = [STATUS_PENDING, STATUS_APPROVED, STATUS_PROCESSING]

    canteen = models.ForeignKey("canteens.Canteen", on_delete=models.CASCADE, related_name="payout_requests")
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="payout_requests")
    requested_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("100")), MaxValueValidator(Decimal("100000"))]
    )
    available_balance = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="reviewed_payouts",
        blank=True,
        null=True
    )
    reviewed_at = models.DateTimeField(blank=True, null=True)
    admin_notes = models.TextField(blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="processed_payouts",
        blank=True,
        null=True
    )
    processed_at = models.DateTimeField(blank=True, null=True)
    transaction_id = models.CharField(max_length=100, blank=True)
    rejection_reason = models.TextField(blank=True)
    failure_reason = models.TextField(blank=True)

    bank_details = models.JSONField(default=dict)
    request_notes = models.TextField(blank=True)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payouts_request"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["canteen", "status"]),
        ]

    def __str__(self):
        return f"Payout {self.requested_amount} for {self.canteen} ({self.status})"

    def review(self, admin, approve, notes=""):
        self.status = self.STATUS_APPROVED if approve else self.STATUS_REJECTED
        self.reviewed_by = admin
        self.reviewed_at = timezone.now()
        self.admin_notes = notes
        if not approve:
            self.rejection_reason = notes or "Request rejected by admin"
        self.save(update_fields=[
            "status", "reviewed_by", "reviewed_at", "admin_notes", "rejection_reason", "updated_at"
        ])

    def complete(self, admin, transaction_id, notes=""):
        self.status = self.STATUS_COMPLETED
        self.processed_by = admin
        self.processed_at = timezone.now()
        self.transaction_id = transaction_id
        if notes:
            self.admin_notes = f"{self.admin_notes}\n{notes}".strip()
        self.save(update_fields=[
            "status", "processed_by", "processed_at", "transaction_id", "admin_notes", "updated_at"
        ])


class Payout(models.Model):
    """Admin-recorded transfer of funds to a canteen's bank account."""

    canteen = models.ForeignKey("canteens.Canteen", on_delete=models.CASCADE, related_name="payouts")
    admin = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, related_name="+", null=True)
    request = models.OneToOneField(
        PayoutRequest,
        on_delete=models.SET_NULL,
        related_name="payout",
        blank=True,
        null=True
    )
    trn_id = models.CharField(max_length=100)
    date = models.DateTimeField(default=timezone.now)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "payouts_payout"
        ordering = ["-date"]

    def __str__(self):
        return f"{self.trn_id}: {self.amount} to {self.canteen}"


def calculate_balance(canteen):
    """
    Earnings from completed, paid orders minus completed payouts and the
    platform fee. Refreshes the totals stored on the canteen.
    """
    from apps.orders.models import Order

    earnings = Order.objects.filter(
        canteen=canteen,
        status=Order.STATUS_COMPLETED,
        payment_status=Order.PAYMENT_STATUS_PAID,
    ).aggregate(total=Sum("total"), count=Count("id"))
    total_earnings = earnings["total"] or Decimal("0.00")

    payouts = PayoutRequest.objects.filter(
        canteen=canteen,
        status=PayoutRequest.STATUS_COMPLETED,
    ).aggregate(total=Sum("requested_amount"), count=Count("id"))
    total_payouts = payouts["total"] or Decimal("0.00")

    fee_rate = Decimal(settings.CAMPUS_BITES_SETTINGS["PLATFORM_FEE_RATE"])
    platform_fee = money(total_earnings * fee_rate)
    available = money(max(Decimal("0.00"), total_earnings - total_payouts - platform_fee))

    canteen.total_earnings = total_earnings
    canteen.total_payouts = total_payouts
    canteen.available_balance = available
    canteen.save(update_fields=["total_earnings", "total_payouts", "available_balance", "updated_at"])

    return {
        "totalEarnings": total_earnings,
        "totalPayouts": total_payouts,
        "platformFee": platform_fee,
        "availableBalance": available,
        "totalOrders": earnings["count"],
        "completedPayouts": payouts["count"],
    }
