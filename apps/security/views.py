import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny

from apps.authentication.models import User
from apps.common.pagination import paginate
from apps.common.responses import success_response, error_response

from .models import Device, SecurityEvent, VerificationCode
from .serializers import (
    DeviceSerializer,
    EducationPromptSerializer,
    ManageDeviceSerializer,
    RecoveryCheckSerializer,
    SecurityEventSerializer,
    SecuritySettingsSerializer,
    SendCodeSerializer,
    VerifyCodeSerializer,
)
from .services import add_security_event, calculate_security_score, get_profile

logger = logging.getLogger(__name__)


def recommendations_for(user, profile):
    recommendations = []
    if not profile.two_factor_enabled:
        recommendations.append({
            "type": "enable_2fa",
            "title": "Enable Two-Factor Authentication",
            "description": "Add an extra layer of security to your account",
            "impact": "high",
            "action": "security_settings",
        })

    devices = Device.objects.filter(user=user)
    if devices.count() > 3 and not devices.filter(is_trusted=True).exists():
        recommendations.append({
            "type": "trust_devices",
            "title": "Mark Trusted Devices",
            "description": "Identify your regular devices for smoother login experience",
            "impact": "medium",
            "action": "device_management",
        })

    if user.last_password_change and user.last_password_change < timezone.now() - timedelta(days=180):
        recommendations.append({
            "type": "password_update",
            "title": "Update Your Password",
            "description": "Your password is over 6 months old",
            "impact": "medium",
            "action": "password_change",
        })
    return recommendations


@api_view(["GET"])
def security_dashboard(request):
    user = request.user
    score = calculate_security_score(user)
    profile = get_profile(user)

    return success_response("Security dashboard fetched", {
        "securityScore": score,
        "scoreCategory": profile.score_category,
        "devices": DeviceSerializer(Device.objects.filter(user=user, is_active=True), many=True).data,
        "recentEvents": SecurityEventSerializer(SecurityEvent.objects.filter(user=user)[:10], many=True).data,
        "recommendations": recommendations_for(user, profile),
        "settings": profile.settings_dict(),
    })


@api_view(["POST"])
def manage_device(request):
    """Trust, remove or rename one of the caller's devices."""
    serializer = ManageDeviceSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    device = Device.objects.filter(user=request.user, device_id=data["device_id"]).first()
    if device is None:
        return error_response("Device not found", status.HTTP_404_NOT_FOUND)

    action = data["action"]
    if action == "trust":
        device.is_trusted = True
        device.save(update_fields=["is_trusted"])
        add_security_event(
            request.user, SecurityEvent.DEVICE_TRUSTED,
            f"Device {device.name} marked as trusted", {"device_id": device.device_id},
        )
    elif action == "remove":
        device.delete()
        add_security_event(
            request.user, SecurityEvent.DEVICE_REMOVED,
            f"Device {device.name} removed from account", {"device_id": data["device_id"]},
        )
    elif data["new_name"]:
        device.name = data["new_name"]
        device.save(update_fields=["name"])
        add_security_event(
            request.user, SecurityEvent.DEVICE_RENAMED,
            f"Device renamed to {device.name}", {"device_id": device.device_id},
        )
    else:
        return error_response("A new name is required to rename a device")

    score = calculate_security_score(request.user)
    return success_response(f"Device {action} successful", {"securityScore": score})


@api_view(["POST"])
def send_verification_code(request):
    serializer = SendCodeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    purpose = serializer.validated_data["purpose"]
    ttl = settings.CAMPUS_BITES_SETTINGS["VERIFICATION_CODE_TTL_MINUTES"]

    code = f"{secrets.randbelow(900000) + 100000}"
    VerificationCode.issue(request.user, code, purpose, ttl)
    add_security_event(
        request.user, SecurityEvent.VERIFICATION_SENT,
        f"Verification code sent for {purpose}", getattr(request, "device_info", None),
    )

    send_mail(
        "Your Campus Bites verification code",
        f"Your verification code is {code}. It expires in {ttl} minutes.",
        settings.DEFAULT_FROM_EMAIL,
        [request.user.email],
    )
    logger.info(f"Verification code for {purpose} sent to {request.user.email}")
    return success_response("Verification code sent to your email", {"expiresIn": ttl * 60})


@api_view(["POST"])
def verify_code(request):
    serializer = VerifyCodeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    code = serializer.validated_data["code"]
    purpose = serializer.validated_data["purpose"]
    device_info = getattr(request, "device_info", None)

    record = VerificationCode.find_valid(request.user, code, purpose)
    if record is None:
        add_security_event(
            request.user, SecurityEvent.VERIFICATION_FAILED,
            f"Invalid verification code for {purpose}", device_info, SecurityEvent.RISK_MEDIUM,
        )
        return error_response("Invalid or expired verification code")

    record.used = True
    record.save(update_fields=["used"])
    add_security_event(
        request.user, SecurityEvent.VERIFICATION_SUCCESS,
        f"Successfully verified {purpose}", device_info,
    )

    if purpose == "device_verification" and device_info:
        Device.objects.filter(user=request.user, device_id=device_info["device_id"]).update(is_trusted=True)

    score = calculate_security_score(request.user)
    return success_response("Verification successful", {"securityScore": score})


@api_view(["PATCH"])
def security_settings(request):
    profile = get_profile(request.user)
    serializer = SecuritySettingsSerializer(profile, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save()

    add_security_event(
        request.user, SecurityEvent.SETTINGS_UPDATED,
        "Security settings updated", getattr(request, "device_info", None),
    )
    score = calculate_security_score(request.user)
    profile.refresh_from_db()
    return success_response("Security settings updated", {
        "settings": profile.settings_dict(),
        "securityScore": score,
    })


@api_view(["GET"])
def security_events(request):
    events = SecurityEvent.objects.filter(user=request.user)
    event_type = request.query_params.get("type")
    if event_type:
        events = events.filter(event_type=event_type)

    items, pagination = paginate(events, request, total_key="totalEvents", default_limit=20)
    return success_response("Security events fetched", {
        "events": SecurityEventSerializer(items, many=True).data,
        "pagination": pagination,
    })


@api_view(["PATCH"])
def education_prompt(request, prompt_type):
    serializer = EducationPromptSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    profile = get_profile(request.user)
    prompts = profile.education_prompts
    if prompt_type not in prompts:
        return error_response("Invalid prompt type")

    action = serializer.validated_data["action"]
    prompts[prompt_type]["shown"] = True
    if action == "dismissed":
        prompts[prompt_type]["dismissedAt"] = timezone.now().isoformat()
    profile.save(update_fields=["education_prompts", "updated_at"])

    return success_response(f"Education prompt {action}", {"prompts": prompts})


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def recovery_check(request):
    """Same answer whether or not the email is registered."""
    serializer = RecoveryCheckSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = User.objects.filter(email=serializer.validated_data["email"].lower(), is_deleted=False).first()
    if user is not None:
        add_security_event(
            user, SecurityEvent.RECOVERY_REQUESTED, "Account recovery requested",
            getattr(request, "device_info", None), SecurityEvent.RISK_MEDIUM,
        )

    has_trusted_device = user is not None and Device.objects.filter(user=user, is_trusted=True).exists()
    return success_response("If this email is registered, you will receive recovery instructions", {
        "recoveryOptions": [
            {"type": "email", "description": "Reset password via email", "available": True},
            {"type": "security_questions", "description": "Answer security questions", "available": False},
            {"type": "trusted_device", "description": "Verify from a trusted device", "available": has_trusted_device},
        ],
    })
