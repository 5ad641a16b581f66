"""
Login monitoring, device registry and security scoring.

None of these checks block a login; they record events, adjust the
security score and suggest verification to the client.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from apps.notifications.utils import notify_admins

from .models import Device, SecurityEvent, SecurityProfile

logger = logging.getLogger(__name__)


def get_profile(user):
    profile, _ = SecurityProfile.objects.get_or_create(user=user)
    return profile


def add_security_event(user, event_type, description, device_info=None, risk_level=SecurityEvent.RISK_LOW):
    device_info = device_info or {}
    location = device_info.get("location") or {}
    if isinstance(location, dict):
        ip = location.get("ip") or device_info.get("ip")
        location_text = f"{location.get('city', 'Unknown')}, {location.get('country', 'Unknown')}" if location else ""
    else:
        ip = device_info.get("ip")
        location_text = location

    event = SecurityEvent.objects.create(
        user=user,
        event_type=event_type,
        description=description[:255],
        device_id=device_info.get("device_id", ""),
        ip=ip or None,
        user_agent=device_info.get("user_agent", ""),
        location=location_text,
        risk_level=risk_level,
    )

    if event_type == SecurityEvent.SUSPICIOUS_LOGIN or risk_level == SecurityEvent.RISK_HIGH:
        profile = get_profile(user)
        profile.suspicious_activity_count += 1
        profile.save(update_fields=["suspicious_activity_count", "updated_at"])

    keep = settings.CAMPUS_BITES_SETTINGS["MAX_SECURITY_EVENTS"]
    stale = SecurityEvent.objects.filter(user=user).values_list("id", flat=True)[keep:]
    stale_ids = list(stale)
    if stale_ids:
        SecurityEvent.objects.filter(id__in=stale_ids).delete()

    if risk_level != SecurityEvent.RISK_LOW:
        logger.info(f"Security event {event_type} ({risk_level}) for {user.email}: {description}")
    return event


def is_suspicious_activity(user):
    """Two or more red flags make a login attempt suspicious."""
    now = timezone.now()
    recent = SecurityEvent.objects.filter(user=user, timestamp__gt=now - timedelta(hours=24))
    factors = [
        Device.objects.filter(user=user, first_seen__gt=now - timedelta(hours=1)).count() > 2,
        recent.filter(event_type=SecurityEvent.LOGIN).count() > 5,
        recent.filter(event_type=SecurityEvent.FAILED_LOGIN).count() > 3,
        recent.filter(risk_level=SecurityEvent.RISK_HIGH).count() > 1,
    ]
    return sum(factors) >= 2


def add_device(user, device_info):
    """Register or refresh a device, evicting the stalest ones past the limit."""
    device = Device.objects.filter(user=user, device_id=device_info["device_id"]).first()
    location = device_info.get("location") or {}
    now = timezone.now()

    if device is not None:
        device.last_active = now
        device.session_count += 1
        device.is_active = True
        device.ip = location.get("ip") or device.ip
        device.save(update_fields=["last_active", "session_count", "is_active", "ip"])
        return device

    max_devices = get_profile(user).max_devices
    existing = Device.objects.filter(user=user).order_by("last_active")
    overflow = existing.count() - max_devices + 1
    if overflow > 0:
        Device.objects.filter(id__in=list(existing.values_list("id", flat=True)[:overflow])).delete()

    return Device.objects.create(
        user=user,
        device_id=device_info["device_id"],
        name=device_info.get("device_name") or "Unknown Device",
        device_type=device_info.get("device_type") or Device.TYPE_UNKNOWN,
        browser=device_info.get("browser", ""),
        os=device_info.get("os", ""),
        ip=location.get("ip") or None,
        city=location.get("city", "Unknown"),
        country=location.get("country", "Unknown"),
        campus=location.get("campus", "Unknown"),
    )


def calculate_security_score(user):
    profile = get_profile(user)
    devices = Device.objects.filter(user=user)
    score = 100

    if not user.has_usable_password():
        score -= 20
    score -= profile.suspicious_activity_count * 5
    if devices.count() > 3:
        score -= 5
    if not profile.email_notifications:
        score -= 10

    if profile.two_factor_enabled:
        score += 15
    if devices.filter(is_trusted=True).exists():
        score += 10
    if user.last_password_change and user.last_password_change > timezone.now() - timedelta(days=90):
        score += 10

    profile.security_score = max(0, min(100, score))
    profile.save(update_fields=["security_score", "updated_at"])
    return profile.security_score


def monitor_login_attempt(user, device_info):
    """
    Run the pre-login heuristics. Returns flags describing the attempt:
    ``requires_verification``, ``suspicious_reason`` and ``is_new_device``.
    """
    flags = {"requires_verification": False, "suspicious_reason": "", "is_new_device": False}
    profile = get_profile(user)

    if is_suspicious_activity(user) and profile.login_alerts:
        add_security_event(
            user,
            SecurityEvent.SUSPICIOUS_LOGIN,
            f"Login attempt from {device_info['device_name']} flagged as suspicious",
            device_info,
            SecurityEvent.RISK_MEDIUM,
        )
        flags["requires_verification"] = True
        flags["suspicious_reason"] = "Multiple red flags detected - verification recommended"

    other_emails = list(
        Device.objects.filter(device_id=device_info["device_id"])
        .exclude(user=user)
        .values_list("user__email", flat=True)
        .distinct()
    )
    if other_emails:
        previous = ",".join(other_emails)
        notify_admins(
            "Suspected device reuse",
            f"User {user.email} logged in from a device previously used by: {previous}",
            "security_alert",
            {"userId": user.id, "deviceId": device_info["device_id"]},
        )
        add_security_event(
            user,
            SecurityEvent.SUSPICIOUS_LOGIN,
            f"Device reused from another account (previously used by: {previous})",
            device_info,
            SecurityEvent.RISK_HIGH,
        )
        flags["requires_verification"] = True
        flags["suspicious_reason"] = "Device previously used by another user"

    if not Device.objects.filter(user=user, device_id=device_info["device_id"]).exists():
        add_security_event(
            user,
            SecurityEvent.NEW_DEVICE,
            f"New device detected: {device_info['device_name']}",
            device_info,
        )
        flags["is_new_device"] = True

    return flags


def security_prompt(requires_verification, is_new_device):
    if not (requires_verification or is_new_device):
        return None
    return {
        "type": "verification_recommended" if requires_verification else "new_device_detected",
        "message": (
            "We noticed some unusual activity. Would you like to verify this login?"
            if requires_verification
            else "New device detected! Consider adding it to your trusted devices."
        ),
        "severity": "medium" if requires_verification else "low",
        "actions": [
            {"type": "verify_email", "label": "Verify via Email"},
            {"type": "trust_device", "label": "Trust this Device"},
            {"type": "dismiss", "label": "Continue Normally"},
        ],
    }


def register_device_on_login(request, user):
    """Record the successful login and return the client-facing security summary."""
    device_info = getattr(request, "device_info", None)
    flags = getattr(request, "login_flags", None) or {}
    requires_verification = flags.get("requires_verification", False)
    is_new_device = flags.get("is_new_device", False)

    if device_info:
        add_device(user, device_info)
        add_security_event(
            user,
            SecurityEvent.LOGIN,
            f"Successful login from {device_info['device_name']}",
            device_info,
            SecurityEvent.RISK_MEDIUM if requires_verification else SecurityEvent.RISK_LOW,
        )

    return {
        "deviceRegistered": bool(device_info),
        "securityScore": calculate_security_score(user),
        "requiresVerification": requires_verification,
        "isNewDevice": is_new_device,
        "securityPrompt": security_prompt(requires_verification, is_new_device),
    }
