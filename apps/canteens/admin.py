from django.contrib import admin
from .models import Campus, CampusRequest, Canteen, Item, Review


@admin.register(Campus)
class CampusAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "city", "is_deleted")
    search_fields = ("name", "code")


@admin.register(Canteen)
class CanteenAdmin(admin.ModelAdmin):
    list_display = ("name", "campus", "owner", "approval_status", "is_open", "available_balance")
    list_filter = ("approval_status", "is_open", "campus")
    search_fields = ("name", "owner__email")


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ("name", "canteen", "price", "available", "is_ready", "is_deleted")
    list_filter = ("available", "canteen")


admin.site.register(Review)


@admin.register(CampusRequest)
class CampusRequestAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "city", "requested_by", "status", "created_at")
    list_filter = ("status",)
