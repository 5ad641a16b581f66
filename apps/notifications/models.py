from django.db import models
from django.conf import settings


# ------------------------------------
# Shared constants
# ------------------------------------
NOTIFICATION_TYPE_CHOICES = [
    ("order_placed", "Order Placed"),
    ("order_status", "Order Status Update"),
    ("order_cancelled", "Order Cancelled"),
    ("payment_success", "Payment Successful"),
    ("payment_failed", "Payment Failed"),
    ("refund", "Refund Update"),
    ("group_order", "Group Order"),
    ("payout", "Payout Update"),
    ("canteen_approval", "Canteen Approval"),
    ("campus_request", "Campus Request"),
    ("security_alert", "Security Alert"),
]


# ------------------------------------
# Models
# ------------------------------------
class Notification(models.Model):
    TYPE_CHOICES = NOTIFICATION_TYPE_CHOICES

    target_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications"
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    notification_type = models.CharField(
        max_length=20,
        choices=TYPE_CHOICES
    )
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def mark_as_read(self):
        self.is_read = True
        self.save(update_fields=["is_read"])

    def __str__(self):
        return f"{self.title} - {self.target_user}"

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["target_user", "is_read"]),
        ]
