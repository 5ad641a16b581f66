import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes

from apps.authentication.permissions import IsStudent
from apps.canteens.models import Canteen
from apps.common.responses import success_response, error_response

from .models import GroupOrder
from .qr import generate_qr_data_url, join_url
from .serializers import (
    GroupCheckoutSerializer,
    GroupItemsSerializer,
    GroupOrderCreateSerializer,
    GroupOrderSerializer,
    JoinGroupOrderSerializer,
)
from .services import checkout, replace_items

logger = logging.getLogger(__name__)


def get_group(group_link):
    return get_object_or_404(
        GroupOrder.objects.select_related("canteen", "creator").prefetch_related("members", "items", "shares"),
        group_link=group_link,
    )


@api_view(["GET", "POST"])
@permission_classes([IsStudent])
def group_orders(request):
    """GET: the student's group orders. POST: start a new one with a join QR code."""
    if request.method == "GET":
        groups = request.user.group_orders.select_related("canteen").prefetch_related("members", "items", "shares")
        return success_response("Group orders fetched", GroupOrderSerializer(groups, many=True).data)

    serializer = GroupOrderCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    canteen = get_object_or_404(Canteen, id=serializer.validated_data["canteen_id"], is_deleted=False)
    if not canteen.is_approved:
        return error_response("Canteen not found", status.HTTP_404_NOT_FOUND)
    if canteen.campus_id != request.user.campus_id:
        return error_response("You can only order from canteens on your campus", status.HTTP_403_FORBIDDEN)

    with transaction.atomic():
        group = GroupOrder.objects.create(creator=request.user, canteen=canteen)
        group.members.add(request.user)
        group.qr_code_url = generate_qr_data_url(join_url(group.group_link))
        group.save(update_fields=["qr_code_url"])

    logger.info(f"Group order {group.group_link} created by {request.user.email}")
    return success_response(
        "Group order created",
        GroupOrderSerializer(group).data,
        status.HTTP_201_CREATED,
        joinUrl=join_url(group.group_link),
    )


@api_view(["POST"])
@permission_classes([IsStudent])
def join_group_order(request):
    serializer = JoinGroupOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    group = GroupOrder.objects.filter(group_link=serializer.validated_data["group_link"]).first()
    if group is None:
        return error_response("Group order not found", status.HTTP_404_NOT_FOUND)
    if group.is_member(request.user):
        return error_response("You are already a member of this group order")
    if group.status != GroupOrder.STATUS_PENDING:
        return error_response("This group order is no longer accepting members")
    if group.canteen.campus_id != request.user.campus_id:
        return error_response("This group order belongs to another campus", status.HTTP_403_FORBIDDEN)

    group.members.add(request.user)
    logger.info(f"{request.user.email} joined group order {group.group_link}")
    return success_response("Joined group order", GroupOrderSerializer(group).data)


@api_view(["GET"])
def group_order_detail(request, group_link):
    group = get_group(group_link)
    return success_response("Group order fetched", GroupOrderSerializer(group).data)


@api_view(["PUT"])
@permission_classes([IsStudent])
def group_order_items(request, group_link):
    """Replace the shared cart."""
    group = get_group(group_link)
    if not group.is_member(request.user):
        return error_response("Only members can change this group order", status.HTTP_403_FORBIDDEN)
    if group.status != GroupOrder.STATUS_PENDING:
        return error_response("Items can no longer be changed")

    serializer = GroupItemsSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        replace_items(group, serializer.validated_data["items"], request.user)

    group.refresh_from_db()
    return success_response("Group order items updated successfully", GroupOrderSerializer(group).data)


@api_view(["POST"])
@permission_classes([IsStudent])
def group_order_checkout(request, group_link):
    """Split the cart and open a payment for every member share."""
    group = get_group(group_link)
    if not group.is_member(request.user):
        return error_response("Only members can check out this group order", status.HTTP_403_FORBIDDEN)

    serializer = GroupCheckoutSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payments = checkout(
        group,
        request.user,
        data["split_type"],
        items_data=data.get("items"),
        amounts=data.get("amounts"),
        payer_id=data.get("payer"),
        pickup_time=data.get("pickup_time"),
    )
    group.refresh_from_db()
    return success_response(
        "Group order checked out",
        {"groupOrder": GroupOrderSerializer(group).data, "payments": payments},
        status.HTTP_201_CREATED,
    )
