import json
from channels.generic.websocket import AsyncWebsocketConsumer

from clinic.services.booking import UPDATES_GROUP


class UpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes slot changes and cache refreshes to open dashboards."""
    GROUP = UPDATES_GROUP

    async def connect(self):
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def slots_changed(self, event):
        # event: {"type": "slots.changed", "doctorId": int, "date": "YYYY-MM-DD"}
        await self.send(json.dumps(event))

    async def broadcast_refresh(self, event):
        # event: {"type": "broadcast.refresh", "version": int, "ts": "...", "keys": [...]}
        await self.send(json.dumps(event))
