import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

from .models import Notification

logger = logging.getLogger(__name__)


def user_group(user_id):
    return f"user_{user_id}"


def canteen_group(canteen_id):
    return f"canteen_{canteen_id}"


def push_to_group(group, payload):
    """Send a realtime event once the surrounding transaction commits."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return

    def send():
        try:
            async_to_sync(channel_layer.group_send)(group, payload)
        except Exception as e:
            logger.exception(f"Realtime push to {group} failed: {e}")

    transaction.on_commit(send)


def notify(user, title, message, notification_type, data=None):
    """Store a notification for ``user`` and push it to their socket."""
    notification = Notification.objects.create(
        target_user=user,
        title=title,
        message=message,
        notification_type=notification_type,
        data=data or {},
    )
    push_to_group(user_group(user.id), {
        "type": "notification.message",
        "notification": {
            "id": notification.id,
            "title": title,
            "message": message,
            "notification_type": notification_type,
            "data": notification.data,
            "created_at": notification.created_at.isoformat(),
        },
    })
    logger.debug(f"Notification '{title}' queued for user {user.id}")
    return notification


def notify_admins(title, message, notification_type="security_alert", data=None):
    from apps.authentication.models import User

    admins = User.objects.filter(role=User.ROLE_ADMIN, is_active=True, is_deleted=False)
    return [notify(admin, title, message, notification_type, data) for admin in admins]


def broadcast_new_order(order):
    """Push a New_Order event to everyone watching the canteen's order feed."""
    push_to_group(canteen_group(order.canteen_id), {
        "type": "order.new",
        "order": {
            "id": str(order.id),
            "order_number": order.order_number,
            "student": order.student.name,
            "total": float(order.total),
            "status": order.status,
            "payment_status": order.payment_status,
            "pickup_time": order.pickup_time.isoformat() if order.pickup_time else None,
            "items": [
                {"name": line.name_at_purchase, "quantity": line.quantity}
                for line in order.items.all()
            ],
        },
    })
    logger.info(f"New_Order {order.order_number} broadcast to canteen {order.canteen_id}")
