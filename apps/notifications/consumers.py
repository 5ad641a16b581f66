import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .utils import canteen_group, user_group

logger = logging.getLogger(__name__)


class NotificationConsumer(AsyncJsonWebsocketConsumer):
    """Per-user notification feed."""

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4401)
            return
        self.group_name = user_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def notification_message(self, event):
        await self.send_json({"event": "notification", "notification": event["notification"]})


class CanteenOrderConsumer(AsyncJsonWebsocketConsumer):
    """Live order feed for the vendor's canteen."""

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4401)
            return
        canteen = await self.get_canteen(user)
        if canteen is None:
            await self.close(code=4403)
            return
        self.group_name = canteen_group(canteen.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"Vendor {user.id} joined order feed for canteen {canteen.id}")

    async def disconnect(self, code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def order_new(self, event):
        await self.send_json({"event": "New_Order", "order": event["order"]})

    @database_sync_to_async
    def get_canteen(self, user):
        if user.is_student():
            return None
        canteen = user.get_canteen()
        return canteen if canteen and canteen.is_approved else None
