from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.common.exceptions import ApiError
from apps.common.utils import money


class Offer(models.Model):
    """Percentage discount on an order subtotal within a value band."""

    description = models.CharField(max_length=255)
    min_value = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    max_value = models.DecimalField(max_digits=10, decimal_places=2)
    discount = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(100)],
        help_text="Percent off the subtotal",
    )
    max_discount = models.DecimalField(max_digits=10, decimal_places=2)

    # Unique offers can be claimed once per student
    is_unique = models.BooleanField(default=False)
    claimed_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="claimed_offers",
        blank=True,
    )

    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_offers",
        blank=True,
        null=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "offers_offer"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.description} ({self.discount}%)"

    def discount_for(self, subtotal):
        return money(min(subtotal * self.discount / Decimal(100), self.max_discount))

    def check_eligible(self, user, subtotal):
        if not self.is_active:
            raise ApiError("This offer is no longer active")
        if subtotal < self.min_value or subtotal > self.max_value:
            raise ApiError(
                f"Order amount must be between Rs. {self.min_value} and Rs. {self.max_value} for this offer"
            )
        if self.is_unique and self.claimed_users.filter(id=user.id).exists():
            raise ApiError("You have already used this offer")

    def claim(self, user):
        if self.is_unique:
            self.claimed_users.add(user)
