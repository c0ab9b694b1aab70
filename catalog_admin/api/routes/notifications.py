"""Notification feed endpoint."""

from fastapi import APIRouter, Query

from catalog_admin.api.deps import Notifications
from catalog_admin.schemas.common import NotificationItem

router = APIRouter()


@router.get("", response_model=list[NotificationItem])
async def list_notifications(
    notifier: Notifications,
    include_expired: bool = Query(default=False, description="Include notifications past their display window"),
) -> list[NotificationItem]:
    """Active notifications, oldest first."""
    items = notifier.history() if include_expired else notifier.active()
    return [
        NotificationItem(level=n.level, message=n.message, createdAt=n.created_at, retry=n.retry)
        for n in items
    ]
