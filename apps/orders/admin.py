from django.contrib import admin
from .models import Order, OrderItem, OrderHistory, Penalty


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "student", "canteen", "total", "status", "payment_status", "created_at")
    list_filter = ("status", "payment_status", "canteen")
    search_fields = ("order_number", "student__email")
    inlines = [OrderItemInline]


admin.site.register(OrderHistory)
admin.site.register(Penalty)
