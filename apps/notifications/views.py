from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view

from apps.common.pagination import paginate
from apps.common.responses import success_response

from .models import Notification
from .serializers import NotificationSerializer


@api_view(["GET"])
def notifications_list(request):
    """Display user's notifications"""
    notifications = Notification.objects.filter(target_user=request.user)

    status = request.query_params.get("status", "all")
    if status == "unread":
        notifications = notifications.filter(is_read=False)
    elif status == "read":
        notifications = notifications.filter(is_read=True)

    items, pagination = paginate(notifications, request, total_key="totalNotifications", default_limit=20)
    unread_count = Notification.objects.filter(target_user=request.user, is_read=False).count()

    return success_response("Notifications fetched", {
        "notifications": NotificationSerializer(items, many=True).data,
        "unreadCount": unread_count,
        "pagination": pagination,
    })


@api_view(["POST"])
def mark_notification_read(request, notification_id):
    """Mark a notification as read"""
    notification = get_object_or_404(Notification, id=notification_id, target_user=request.user)
    notification.mark_as_read()
    return success_response("Notification marked as read")


@api_view(["POST"])
def mark_all_read(request):
    updated = Notification.objects.filter(target_user=request.user, is_read=False).update(is_read=True)
    return success_response(f"{updated} notifications marked as read", {"updated": updated})
