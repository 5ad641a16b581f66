import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes

from apps.authentication.permissions import IsAdmin, IsCanteenRole, IsStudent, IsVendor, ReadOnly
from apps.common.responses import success_response, error_response
from apps.notifications.utils import notify, notify_admins
from apps.orders.models import Order

from .models import Campus, CampusRequest, Canteen, Item, Review
from .serializers import (
    CampusSerializer,
    CampusRequestSerializer,
    CanteenSerializer,
    CanteenRegistrationSerializer,
    CanteenUpdateSerializer,
    CanteenReviewDecisionSerializer,
    ItemSerializer,
    ReviewSerializer,
)

logger = logging.getLogger(__name__)


# --------------------
# Campuses
# --------------------
@api_view(["GET", "POST"])
@permission_classes([ReadOnly | IsAdmin])
def campus_list(request):
    if request.method == "POST":
        serializer = CampusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        campus = serializer.save()
        logger.info(f"Campus {campus.code} created by {request.user.email}")
        return success_response("Campus created", serializer.data, status.HTTP_201_CREATED)

    campuses = Campus.objects.filter(is_deleted=False)
    return success_response("Campuses fetched", CampusSerializer(campuses, many=True).data)


@api_view(["GET", "PUT", "PATCH", "DELETE"])
@permission_classes([ReadOnly | IsAdmin])
def campus_detail(request, campus_id):
    """A campus with its approved canteens; admins may edit or soft delete it."""
    campus = get_object_or_404(Campus, id=campus_id, is_deleted=False)

    if request.method == "DELETE":
        campus.is_deleted = True
        campus.save(update_fields=["is_deleted"])
        logger.info(f"Campus {campus.code} deleted by {request.user.email}")
        return success_response("Campus deleted successfully")

    if request.method in ("PUT", "PATCH"):
        serializer = CampusSerializer(campus, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Campus {campus.code} updated by {request.user.email}")
        return success_response("Campus updated", serializer.data)

    canteens = campus.canteens.filter(is_deleted=False, approval_status=Canteen.APPROVAL_APPROVED)
    return success_response("Campus fetched", {
        "campus": CampusSerializer(campus).data,
        "canteens": CanteenSerializer(canteens, many=True).data,
    })


@api_view(["GET", "POST"])
@permission_classes([IsCanteenRole | IsAdmin])
def campus_requests(request):
    """Canteen owners request a missing campus; admins list pending requests."""
    if request.method == "POST":
        if not request.user.is_canteen_owner():
            return error_response("Only canteen accounts can request a campus", status.HTTP_403_FORBIDDEN)
        serializer = CampusRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        campus_request = serializer.save(requested_by=request.user)
        notify_admins(
            "New campus request",
            f"{request.user.name} requested {campus_request.name} ({campus_request.code}).",
            "campus_request",
            {"campusRequestId": campus_request.id},
        )
        logger.info(f"Campus request {campus_request.code} submitted by {request.user.email}")
        return success_response("Campus request submitted", serializer.data, status.HTTP_201_CREATED)

    if request.user.is_admin():
        pending = CampusRequest.objects.all()
        status_filter = request.query_params.get("status", CampusRequest.STATUS_PENDING)
        if status_filter != "all":
            pending = pending.filter(status=status_filter)
    else:
        pending = CampusRequest.objects.filter(requested_by=request.user)
    return success_response("Campus requests fetched", CampusRequestSerializer(pending, many=True).data)


@api_view(["POST"])
@permission_classes([IsAdmin])
def review_campus_request(request, request_id):
    """Approving a request creates the campus."""
    campus_request = get_object_or_404(CampusRequest, id=request_id)
    if campus_request.status != CampusRequest.STATUS_PENDING:
        return error_response(f"Campus request is already {campus_request.status}")

    serializer = CanteenReviewDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    approve = serializer.validated_data["action"] == "approve"

    with transaction.atomic():
        if approve:
            if Campus.objects.filter(code=campus_request.code).exists():
                return error_response("A campus with this code already exists")
            campus_request.campus = Campus.objects.create(
                name=campus_request.name,
                code=campus_request.code,
                city=campus_request.city,
            )
        campus_request.status = CampusRequest.STATUS_APPROVED if approve else CampusRequest.STATUS_REJECTED
        campus_request.reviewed_by = request.user
        campus_request.reviewed_at = timezone.now()
        campus_request.save()

        message = f"Your request for {campus_request.name} was {campus_request.status}."
        reason = serializer.validated_data["reason"]
        if reason:
            message += f" {reason}"
        notify(campus_request.requested_by, "Campus request reviewed", message, "campus_request")

    logger.info(f"Campus request {campus_request.id} {campus_request.status} by {request.user.email}")
    return success_response(f"Campus request {campus_request.status}", CampusRequestSerializer(campus_request).data)


# --------------------
# Canteens
# --------------------
@api_view(["GET", "POST"])
@permission_classes([ReadOnly | IsCanteenRole])
def canteen_list(request):
    """Approved canteens, optionally for one campus; vendors POST to register theirs."""
    if request.method == "POST":
        if request.user.get_canteen():
            return error_response("You already have a canteen registered")
        serializer = CanteenRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        canteen = serializer.save(owner=request.user)
        logger.info(f"Canteen {canteen.id} submitted for approval by {request.user.email}")
        return success_response(
            "Canteen submitted for approval",
            CanteenSerializer(canteen).data,
            status.HTTP_201_CREATED,
        )

    canteens = Canteen.objects.filter(
        is_deleted=False,
        approval_status=Canteen.APPROVAL_APPROVED,
    ).select_related("campus")
    campus_id = request.query_params.get("campus")
    if campus_id:
        canteens = canteens.filter(campus_id=campus_id)
    return success_response("Canteens fetched", CanteenSerializer(canteens, many=True).data)


@api_view(["GET"])
@permission_classes([IsCanteenRole])
def my_canteen(request):
    canteen = request.user.get_canteen()
    if canteen is None:
        return error_response("Canteen not found", status.HTTP_404_NOT_FOUND)
    return success_response("Canteen fetched", CanteenSerializer(canteen).data)


@api_view(["GET", "PUT", "PATCH", "DELETE"])
@permission_classes([ReadOnly | IsCanteenRole])
def canteen_detail(request, canteen_id):
    canteen = get_object_or_404(Canteen, id=canteen_id, is_deleted=False)

    if request.method == "GET":
        return success_response("Canteen fetched", CanteenSerializer(canteen).data)

    if canteen.owner_id != request.user.id:
        return error_response("You can only manage your own canteen", status.HTTP_403_FORBIDDEN)

    if request.method == "DELETE":
        canteen.is_deleted = True
        canteen.is_open = False
        canteen.save(update_fields=["is_deleted", "is_open", "updated_at"])
        logger.info(f"Canteen {canteen.id} deleted by owner")
        return success_response("Canteen deleted")

    serializer = CanteenUpdateSerializer(canteen, data=request.data, partial=request.method == "PATCH")
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return success_response("Canteen updated", CanteenSerializer(canteen).data)


@api_view(["POST"])
@permission_classes([IsAdmin])
def canteen_approval(request, canteen_id):
    """Admin approves or rejects a canteen application."""
    canteen = get_object_or_404(Canteen, id=canteen_id, is_deleted=False)
    serializer = CanteenReviewDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    if serializer.validated_data["action"] == "approve":
        canteen.approve(request.user)
        notify(
            canteen.owner,
            "Canteen approved",
            f"{canteen.name} has been approved. You can start accepting orders.",
            "canteen_approval",
        )
    else:
        reason = serializer.validated_data["reason"]
        canteen.reject(request.user, reason)
        notify(
            canteen.owner,
            "Canteen rejected",
            f"{canteen.name} was not approved. {reason}".strip(),
            "canteen_approval",
        )

    logger.info(f"Canteen {canteen.id} {canteen.approval_status} by {request.user.email}")
    return success_response(f"Canteen {canteen.approval_status}", CanteenSerializer(canteen).data)


# --------------------
# Items
# --------------------
@api_view(["GET", "POST"])
@permission_classes([ReadOnly | IsVendor])
def canteen_items(request, canteen_id):
    canteen = get_object_or_404(Canteen, id=canteen_id, is_deleted=False)

    if request.method == "POST":
        if canteen.id != request.canteen.id:
            return error_response("You can only add items to your own canteen", status.HTTP_403_FORBIDDEN)
        serializer = ItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save(canteen=canteen)
        return success_response("Item created", serializer.data, status.HTTP_201_CREATED)

    items = canteen.items.filter(is_deleted=False)
    if request.query_params.get("available") == "true":
        items = items.filter(available=True)
    return success_response("Items fetched", ItemSerializer(items, many=True).data)


@api_view(["GET", "PUT", "PATCH", "DELETE"])
@permission_classes([ReadOnly | IsVendor])
def item_detail(request, item_id):
    item = get_object_or_404(Item, id=item_id, is_deleted=False)

    if request.method == "GET":
        return success_response("Item fetched", ItemSerializer(item).data)

    if item.canteen_id != request.canteen.id:
        return error_response("Item does not belong to your canteen", status.HTTP_403_FORBIDDEN)

    if request.method == "DELETE":
        item.is_deleted = True
        item.available = False
        item.save(update_fields=["is_deleted", "available", "updated_at"])
        return success_response("Item deleted")

    serializer = ItemSerializer(item, data=request.data, partial=request.method == "PATCH")
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return success_response("Item updated", serializer.data)


@api_view(["POST"])
@permission_classes([IsVendor])
def toggle_item_ready(request, item_id):
    item = get_object_or_404(Item, id=item_id, canteen=request.canteen, is_deleted=False)
    is_ready = item.toggle_ready()
    return success_response(
        f"{item.name} marked as {'ready' if is_ready else 'not ready'}",
        ItemSerializer(item).data,
    )


# --------------------
# Reviews
# --------------------
@api_view(["GET", "POST"])
@permission_classes([ReadOnly | IsStudent])
def canteen_reviews(request, canteen_id):
    canteen = get_object_or_404(Canteen, id=canteen_id, is_deleted=False)

    if request.method == "GET":
        reviews = canteen.reviews.select_related("user")
        return success_response("Reviews fetched", ReviewSerializer(reviews, many=True).data)

    serializer = ReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = serializer.validated_data.get("item")
    if item is not None and item.canteen_id != canteen.id:
        return error_response("Item does not belong to this canteen")

    has_ordered = Order.objects.filter(
        student=request.user,
        canteen=canteen,
        status=Order.STATUS_COMPLETED,
    ).exists()
    if not has_ordered:
        return error_response("You can only review canteens you have ordered from")

    with transaction.atomic():
        review, created = Review.objects.update_or_create(
            user=request.user,
            canteen=canteen,
            item=item,
            defaults={
                "rating": serializer.validated_data["rating"],
                "comment": serializer.validated_data.get("comment", ""),
            },
        )
        canteen.update_rating()

    return success_response(
        "Review added successfully" if created else "Review updated successfully",
        ReviewSerializer(review).data,
        status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )
