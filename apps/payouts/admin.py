from django.contrib import admin
from .models import BankDetails, PayoutRequest, Payout


@admin.register(BankDetails)
class BankDetailsAdmin(admin.ModelAdmin):
    list_display = ("canteen", "bank_name", "ifsc_code", "is_verified", "is_deleted")
    list_filter = ("is_verified", "is_deleted")
    search_fields = ("canteen__name", "account_holder_name")


@admin.register(PayoutRequest)
class PayoutRequestAdmin(admin.ModelAdmin):
    list_display = ("canteen", "requested_amount", "status", "created_at", "processed_at")
    list_filter = ("status",)
    readonly_fields = ("bank_details", "available_balance")


admin.site.register(Payout)
