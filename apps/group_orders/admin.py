from django.contrib import admin
from .models import GroupOrder, GroupOrderItem, GroupOrderShare


class GroupOrderItemInline(admin.TabularInline):
    model = GroupOrderItem
    extra = 0


class GroupOrderShareInline(admin.TabularInline):
    model = GroupOrderShare
    extra = 0


@admin.register(GroupOrder)
class GroupOrderAdmin(admin.ModelAdmin):
    list_display = ("group_link", "creator", "canteen", "total_amount", "split_type", "status", "created_at")
    list_filter = ("status", "split_type")
    inlines = [GroupOrderItemInline, GroupOrderShareInline]
