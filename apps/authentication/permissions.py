from rest_framework import exceptions
from rest_framework.permissions import BasePermission, SAFE_METHODS

from apps.common.exceptions import ApiError


class IsStudent(BasePermission):
    message = "Only students can perform this action"

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_student())


class IsAdmin(BasePermission):
    message = "Admin access required"

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_admin())


class IsCanteenRole(BasePermission):
    message = "Only canteen accounts can perform this action"

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_canteen_owner())


class IsVendor(BasePermission):
    """
    Vendor with an approved canteen. The canteen is attached to the
    request as ``request.canteen`` for the view.
    """

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if user.is_student():
            raise exceptions.PermissionDenied("Vendor access required")

        canteen = user.get_canteen()
        if canteen is None:
            raise ApiError("Canteen not found", status_code=404)
        if not canteen.is_approved:
            raise ApiError(
                "Your canteen is not approved yet",
                status_code=403,
                approvalStatus=canteen.approval_status,
            )
        request.canteen = canteen
        return True


class ReadOnly(BasePermission):
    """Safe methods only; combine with ``|`` for public read endpoints."""

    def has_permission(self, request, view):
        return request.method in SAFE_METHODS
