import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes

from apps.authentication.permissions import IsStudent, IsVendor
from apps.canteens.models import Canteen, Item
from apps.canteens.serializers import ItemSerializer
from apps.common.pagination import paginate
from apps.common.responses import success_response, error_response

from .models import Order
from .serializers import (
    OrderCreateSerializer,
    OrderDetailSerializer,
    OrderSerializer,
    OrderStatusSerializer,
)
from .services import also_ordered, create_order, recommendations, update_order_status

logger = logging.getLogger(__name__)


def device_id_for(request):
    return getattr(request, "device_info", {}).get("device_id", "")


def can_view_order(user, order):
    if user.is_admin() or order.student_id == user.id:
        return True
    canteen = user.get_canteen()
    return canteen is not None and canteen.id == order.canteen_id


@api_view(["GET", "POST"])
@permission_classes([IsStudent])
def student_orders(request):
    """
    GET: the student's orders (unpaid drafts and deleted orders hidden).
    POST: place a new order.
    """
    if request.method == "POST":
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        canteen = get_object_or_404(Canteen, id=data["canteen_id"], is_deleted=False)
        order = create_order(
            request.user,
            canteen,
            data["items"],
            data["pickup_time"],
            device_id=device_id_for(request),
            offer_id=data.get("offer_id"),
        )
        return success_response(
            "Order created successfully",
            OrderSerializer(order).data,
            status.HTTP_201_CREATED,
        )

    orders = (
        Order.objects.filter(student=request.user, is_deleted=False)
        .exclude(status=Order.STATUS_PENDING)
        .select_related("canteen", "student")
        .prefetch_related("items")
    )
    status_filter = request.query_params.get("status")
    if status_filter:
        orders = orders.filter(status=status_filter)

    items, pagination = paginate(orders, request, total_key="totalOrders", default_limit=20)
    return success_response("Orders fetched", {
        "orders": OrderSerializer(items, many=True).data,
        "pagination": pagination,
    })


@api_view(["GET"])
@permission_classes([IsVendor])
def canteen_orders(request):
    """Orders of the vendor's canteen that have been placed (paid or COD)."""
    orders = (
        Order.objects.filter(canteen=request.canteen, is_deleted=False)
        .exclude(status__in=[Order.STATUS_PENDING, Order.STATUS_PAYMENT_PENDING])
        .select_related("canteen", "student")
        .prefetch_related("items")
    )
    status_filter = request.query_params.get("status")
    if status_filter:
        orders = orders.filter(status=status_filter)

    items, pagination = paginate(orders, request, total_key="totalOrders", default_limit=20)
    return success_response("Canteen orders fetched", {
        "orders": OrderSerializer(items, many=True).data,
        "pagination": pagination,
    })


@api_view(["GET", "DELETE"])
def order_detail(request, order_id):
    order = get_object_or_404(Order, id=order_id)

    if request.method == "DELETE":
        if order.student_id != request.user.id:
            return error_response("You can only delete your own orders", status.HTTP_403_FORBIDDEN)
        if order.is_active:
            return error_response("Active orders cannot be deleted")
        order.is_deleted = True
        order.save(update_fields=["is_deleted", "updated_at"])
        logger.info(f"Order {order.order_number} deleted by {request.user.email}")
        return success_response("Order deleted successfully")

    if not can_view_order(request.user, order):
        return error_response("You are not allowed to view this order", status.HTTP_403_FORBIDDEN)
    return success_response("Order fetched", OrderDetailSerializer(order).data)


@api_view(["PATCH", "PUT"])
def order_status(request, order_id):
    order = get_object_or_404(Order, id=order_id, is_deleted=False)
    serializer = OrderStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    order, penalty = update_order_status(
        order,
        serializer.validated_data["status"],
        request.user,
        device_id=device_id_for(request),
    )
    data = OrderSerializer(order).data
    if penalty is not None:
        data["penalty"] = float(penalty.amount)
    return success_response("Order status updated", data)


@api_view(["GET"])
@permission_classes([IsStudent])
def deleted_orders(request):
    orders = Order.objects.filter(student=request.user, is_deleted=True).prefetch_related("items")
    return success_response("Deleted orders fetched", OrderSerializer(orders, many=True).data)


def ranked(pairs):
    return [{**ItemSerializer(item).data, "orderedQuantity": quantity} for item, quantity in pairs]


@api_view(["GET"])
@permission_classes([IsStudent])
def order_recommendations(request):
    """The student's favourites, what their campus is ordering, and global best sellers."""
    ranking = recommendations(request.user)
    return success_response("Recommendations fetched", {
        "personalItems": ranked(ranking["personal"]),
        "trendingCampusItems": ranked(ranking["trending_campus"]),
        "globalTopItems": ranked(ranking["global"]),
    })


@api_view(["GET"])
def people_also_ordered(request, item_id):
    item = get_object_or_404(Item, id=item_id, is_deleted=False)
    return success_response("Related items fetched", ranked(also_ordered(item)))
