from django.contrib import admin
from .models import Offer


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ("description", "discount", "min_value", "max_value", "max_discount", "is_unique", "is_active")
    list_filter = ("is_active", "is_unique")
    search_fields = ("description",)
    filter_horizontal = ("claimed_users",)
