from django.contrib import admin
from .models import Transaction, WebhookEvent


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "razorpay_order_id", "user", "amount", "status", "payment_method", "refund_status", "created_at")
    list_filter = ("status", "payment_method", "refund_status")
    search_fields = ("razorpay_order_id", "razorpay_payment_id", "refund_id", "user__email")


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ("event", "event_id", "processed", "created_at")
    list_filter = ("event", "processed")
