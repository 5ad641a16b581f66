import logging

from django.contrib.auth import authenticate
from django.db import transaction
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny

from apps.common.responses import success_response, error_response
from apps.security.models import SecurityEvent
from apps.security.services import add_security_event, get_profile, register_device_on_login

from .models import User
from .serializers import (
    ChangePasswordSerializer,
    LoginSerializer,
    ProfileSerializer,
    RegisterSerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def register(request):
    serializer = RegisterSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    with transaction.atomic():
        user = serializer.save()
        get_profile(user)
        token = Token.objects.create(user=user)

    logger.info(f"New {user.role} account registered: {user.email}")
    return success_response(
        "Registration successful",
        {"token": token.key, "user": UserSerializer(user).data},
        status.HTTP_201_CREATED,
    )


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request):
    """Token login. Security monitoring has already run in the middleware."""
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    email = serializer.validated_data["email"].lower()
    device_info = getattr(request, "device_info", None)

    user = User.objects.filter(email=email, is_deleted=False).first()
    if user is not None and user.is_account_locked():
        add_security_event(
            user, SecurityEvent.ACCOUNT_LOCKED,
            "Login attempt on a locked account", device_info, SecurityEvent.RISK_HIGH,
        )
        return error_response(
            "Account temporarily locked after too many failed attempts. Try again later.",
            status.HTTP_403_FORBIDDEN,
        )

    authenticated = authenticate(request._request, email=email, password=serializer.validated_data["password"])
    if authenticated is None:
        if user is not None:
            user.increment_failed_login()
            add_security_event(
                user, SecurityEvent.FAILED_LOGIN,
                "Failed login attempt", device_info, SecurityEvent.RISK_MEDIUM,
            )
        logger.info(f"Failed login for {email}")
        return error_response("Invalid email or password", status.HTTP_401_UNAUTHORIZED)

    if authenticated.is_banned:
        return error_response("Your account has been banned. Contact support.", status.HTTP_403_FORBIDDEN)

    authenticated.increment_login_count()
    token, _ = Token.objects.get_or_create(user=authenticated)
    security = register_device_on_login(request, authenticated)

    logger.info(f"User {authenticated.email} logged in")
    return success_response("Login successful", {
        "token": token.key,
        "user": UserSerializer(authenticated).data,
        "security": security,
    })


@api_view(["POST"])
def logout(request):
    Token.objects.filter(user=request.user).delete()
    return success_response("Logged out successfully")


@api_view(["GET"])
def me(request):
    return success_response("User fetched", UserSerializer(request.user).data)


@api_view(["GET", "PUT", "PATCH"])
def profile(request):
    """The signed-in user's profile; PUT or PATCH edits the personal fields."""
    if request.method == "GET":
        return success_response("Profile fetched", ProfileSerializer(request.user).data)

    serializer = ProfileSerializer(request.user, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    user = serializer.save()
    changed = ", ".join(sorted(serializer.validated_data)) or "nothing"
    add_security_event(
        user, SecurityEvent.PROFILE_UPDATE,
        f"Profile updated: {changed}", getattr(request, "device_info", None),
    )
    logger.info(f"Profile updated for {user.email}")
    return success_response("Profile updated successfully", serializer.data)


@api_view(["POST"])
def change_password(request):
    serializer = ChangePasswordSerializer(data=request.data, context={"user": request.user})
    serializer.is_valid(raise_exception=True)
    user = request.user

    if not user.check_password(serializer.validated_data["old_password"]):
        return error_response("Current password is incorrect")

    user.set_password(serializer.validated_data["new_password"])
    user.save(update_fields=["password", "last_password_change"])
    add_security_event(
        user, SecurityEvent.PASSWORD_CHANGE,
        "Password changed", getattr(request, "device_info", None),
    )

    # Existing sessions on other devices stop working.
    Token.objects.filter(user=user).delete()
    token = Token.objects.create(user=user)
    logger.info(f"Password changed for {user.email}")
    return success_response("Password changed successfully", {"token": token.key})
