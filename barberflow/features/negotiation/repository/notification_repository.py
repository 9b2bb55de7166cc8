"""
Notification persistence.

Notifications are write-once except for the read flag; deletion is only
ever requested by the recipient.
"""

from typing import Protocol

from barberflow.features.negotiation.domain.models import Notification, Role


class NotificationRepository(Protocol):
    async def add(self, notification: Notification) -> None: ...

    async def get(self, notification_id: str) -> Notification | None: ...

    async def list_for_recipient(self, role: Role, recipient_id: str | None) -> list[Notification]: ...

    async def mark_read(self, notification_id: str) -> bool: ...

    async def delete(self, notification_id: str) -> bool: ...

    async def unread_count(self, role: Role, recipient_id: str | None) -> int: ...


def _inbox(role: Role, recipient_id: str | None) -> str:
    return f"{role.value}:{recipient_id or '*'}"


class InMemoryNotificationRepository:
    def __init__(self):
        self._notifications: dict[str, Notification] = {}

    async def add(self, notification: Notification) -> None:
        self._notifications[notification.id] = notification.model_copy(deep=True)

    async def get(self, notification_id: str) -> Notification | None:
        notification = self._notifications.get(notification_id)
        return notification.model_copy(deep=True) if notification else None

    async def list_for_recipient(self, role: Role, recipient_id: str | None) -> list[Notification]:
        inbox = _inbox(role, recipient_id)
        found = [
            n.model_copy(deep=True)
            for n in self._notifications.values()
            if _inbox(n.recipient_role, n.recipient_id) == inbox
        ]
        return sorted(found, key=lambda n: n.created_at, reverse=True)

    async def mark_read(self, notification_id: str) -> bool:
        notification = self._notifications.get(notification_id)
        if notification is None:
            return False
        notification.is_read = True
        return True

    async def delete(self, notification_id: str) -> bool:
        return self._notifications.pop(notification_id, None) is not None

    async def unread_count(self, role: Role, recipient_id: str | None) -> int:
        return sum(1 for n in await self.list_for_recipient(role, recipient_id) if not n.is_read)


class RedisNotificationRepository:
    def __init__(self, client, key_prefix: str = "barberflow"):
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, notification_id: str) -> str:
        return f"{self.key_prefix}:notification:{notification_id}"

    def _inbox_key(self, role: Role, recipient_id: str | None) -> str:
        return f"{self.key_prefix}:inbox:{_inbox(role, recipient_id)}"

    async def add(self, notification: Notification) -> None:
        await self.client.set(self._key(notification.id), notification.model_dump_json())
        await self.client.zadd(
            self._inbox_key(notification.recipient_role, notification.recipient_id),
            {notification.id: notification.created_at.timestamp()},
        )

    async def get(self, notification_id: str) -> Notification | None:
        raw = await self.client.get(self._key(notification_id))
        if not raw:
            return None
        return Notification.model_validate_json(raw)

    async def list_for_recipient(self, role: Role, recipient_id: str | None) -> list[Notification]:
        notification_ids = await self.client.zrevrange(self._inbox_key(role, recipient_id), 0, -1)
        notifications = []
        for notification_id in notification_ids:
            notification = await self.get(notification_id)
            if notification is not None:
                notifications.append(notification)
        return notifications

    async def mark_read(self, notification_id: str) -> bool:
        notification = await self.get(notification_id)
        if notification is None:
            return False
        if not notification.is_read:
            notification.is_read = True
            await self.client.set(self._key(notification.id), notification.model_dump_json())
        return True

    async def delete(self, notification_id: str) -> bool:
        notification = await self.get(notification_id)
        if notification is None:
            return False
        await self.client.delete(self._key(notification_id))
        await self.client.zrem(
            self._inbox_key(notification.recipient_role, notification.recipient_id), notification_id
        )
        return True

    async def unread_count(self, role: Role, recipient_id: str | None) -> int:
        return sum(1 for n in await self.list_for_recipient(role, recipient_id) if not n.is_read)
