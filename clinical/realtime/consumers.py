import json
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings


class PendientesConsumer(AsyncWebsocketConsumer):
    """Pushes ``tasks.changed`` events to open pendientes boards."""

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4003)
            return
        self.group_name = settings.PENDIENTES_CHANNEL_GROUP
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def tasks_changed(self, event):
        # event: {"type": "tasks.changed", "reason": "...", "ts": "...", "patientIds": [...]}
        await self.send(json.dumps(event))
