from decimal import Decimal

from django.db import models
from django.db.models import Avg, Count
from django.core.validators import MinValueValidator, MaxValueValidator, RegexValidator
from django.conf import settings
from django.utils import timezone


class Campus(models.Model):
    """An institution grouping students, canteens and admins."""

    name = models.CharField(max_length=200)
    code = models.CharField(max_length=20, unique=True)
    city = models.CharField(max_length=100, blank=True)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'canteens_campus'
        verbose_name_plural = 'Campuses'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"


class CampusRequest(models.Model):
    """A canteen owner's request to add a campus that is not listed yet."""

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    name = models.CharField(max_length=200)
    code = models.CharField(max_length=20)
    city = models.CharField(max_length=100, blank=True)
    reason = models.TextField(blank=True)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='campus_requests',
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    campus = models.ForeignKey(Campus, on_delete=models.SET_NULL, blank=True, null=True, related_name='+')
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='reviewed_campus_requests',
        blank=True,
        null=True,
    )
    reviewed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'canteens_campus_request'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.code}) - {self.status}"


class Canteen(models.Model):
    """A vendor-operated food outlet registered under a campus."""

    APPROVAL_PENDING = 'pending'
    APPROVAL_APPROVED = 'approved'
    APPROVAL_REJECTED = 'rejected'

    APPROVAL_CHOICES = [
        (APPROVAL_PENDING, 'Pending'),
        (APPROVAL_APPROVED, 'Approved'),
        (APPROVAL_REJECTED, 'Rejected'),
    ]

    DAY_CHOICES = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

    time_regex = RegexValidator(regex=r'^([01]\d|2[0-3]):[0-5]\d$', message="Time must be in HH:MM format")

    name = models.CharField(max_length=200)
    campus = models.ForeignKey(Campus, on_delete=models.PROTECT, related_name='canteens')
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='canteens'
    )
    is_open = models.BooleanField(default=True)

    # Approval workflow
    approval_status = models.CharField(max_length=20, choices=APPROVAL_CHOICES, default=APPROVAL_PENDING)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='approved_canteens',
        blank=True,
        null=True
    )
    approved_at = models.DateTimeField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True)

    # Business details
    owner_name = models.CharField(max_length=150, blank=True)
    mobile = models.CharField(
        max_length=10,
        blank=True,
        validators=[RegexValidator(r'^[6-9]\d{9}$', "Mobile must be a 10 digit Indian number")]
    )
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    aadhaar_number = models.CharField(
        max_length=12,
        blank=True,
        validators=[RegexValidator(r'^\d{12}$', "Aadhaar number must be 12 digits")]
    )
    pan_number = models.CharField(
        max_length=10,
        blank=True,
        validators=[RegexValidator(r'^[A-Z]{5}[0-9]{4}[A-Z]$', "Invalid PAN number")]
    )
    gst_number = models.CharField(
        max_length=15,
        blank=True,
        validators=[RegexValidator(
            r'^\d{2}[A-Z]{5}\d{4}[A-Z][1-9A-Z]Z[0-9A-Z]$',
            "Invalid GST number"
        )]
    )
    fssai_license = models.CharField(
        max_length=14,
        blank=True,
        validators=[RegexValidator(r'^\d{14}$', "FSSAI license must be 14 digits")]
    )
    opening_time = models.CharField(max_length=5, default='08:00', validators=[time_regex])
    closing_time = models.CharField(max_length=5, default='20:00', validators=[time_regex])
    operating_days = models.JSONField(default=list, blank=True)

    # Earnings, refreshed by the payout balance calculation
    total_earnings = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    available_balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_payouts = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    average_rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal("0.00"))
    total_reviews = models.PositiveIntegerField(default=0)

    is_suspended = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'canteens_canteen'
        ordering = ['name']
        indexes = [
            models.Index(fields=['campus', 'is_deleted']),
            models.Index(fields=['approval_status']),
        ]

    def __str__(self):
        return self.name

    @property
    def is_approved(self):
        return self.approval_status == self.APPROVAL_APPROVED and not self.is_deleted

    def approve(self, admin):
        self.approval_status = self.APPROVAL_APPROVED
        self.approved_by = admin
        self.approved_at = timezone.now()
        self.rejection_reason = ''
        self.save(update_fields=['approval_status', 'approved_by', 'approved_at', 'rejection_reason'])

    def reject(self, admin, reason=''):
        self.approval_status = self.APPROVAL_REJECTED
        self.approved_by = admin
        self.approved_at = None
        self.rejection_reason = reason
        self.save(update_fields=['approval_status', 'approved_by', 'approved_at', 'rejection_reason'])

    def update_rating(self):
        """Recalculate average rating from reviews"""
        stats = self.reviews.aggregate(avg=Avg('rating'), total=Count('id'))
        self.average_rating = Decimal(str(stats['avg'] or 0)).quantize(Decimal("0.01"))
        self.total_reviews = stats['total']
        self.save(update_fields=['average_rating', 'total_reviews'])


class Item(models.Model):
    """A menu item sold by a canteen."""

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))]
    )
    canteen = models.ForeignKey(Canteen, on_delete=models.CASCADE, related_name='items')
    image = models.URLField(blank=True)
    available = models.BooleanField(default=True)
    is_ready = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'canteens_item'
        ordering = ['name']
        indexes = [
            models.Index(fields=['canteen', 'is_deleted']),
        ]

    def __str__(self):
        return f"{self.name} - {self.canteen.name}"

    def toggle_ready(self):
        self.is_ready = not self.is_ready
        self.save(update_fields=['is_ready', 'updated_at'])
        return self.is_ready


class Review(models.Model):
    """Student review of a canteen, optionally about one item."""

    canteen = models.ForeignKey(Canteen, on_delete=models.CASCADE, related_name='reviews')
    item = models.ForeignKey(Item, on_delete=models.SET_NULL, related_name='reviews', blank=True, null=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='reviews')
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'canteens_review'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user} - {self.canteen} ({self.rating})"
