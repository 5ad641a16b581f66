from django.contrib import admin
from .models import Device, SecurityEvent, SecurityProfile, VerificationCode


@admin.register(SecurityProfile)
class SecurityProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "security_score", "suspicious_activity_count", "two_factor_enabled")
    search_fields = ("user__email",)


@admin.register(Device)
class DeviceAdmin(admin.ModelAdmin):
    list_display = ("user", "name", "device_type", "is_trusted", "last_active")
    list_filter = ("device_type", "is_trusted")


@admin.register(SecurityEvent)
class SecurityEventAdmin(admin.ModelAdmin):
    list_display = ("user", "event_type", "risk_level", "timestamp")
    list_filter = ("event_type", "risk_level")


admin.site.register(VerificationCode)
