from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from app.studio.service import DataService, remote_error_message

logger = logging.getLogger(__name__)


def send_email_notification(recipient: str, notification: Mapping[str, Any]) -> None:
    # No mail transport is configured; the message is only logged.
    logger.info("[SIMULASI EMAIL] Mengirim notifikasi ke: %s. Judul: %s", recipient, notification.get("title"))


def add_notification(
    data: DataService,
    payload: Mapping[str, Any],
    profile: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Store a notification stamped with the current time and unread.

    Never raises: when the insert fails the unsaved notification is returned
    with a locally generated id and the failure is logged.
    """
    notification = {
        **payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "isRead": False,
    }
    try:
        saved = data.create_notification(notification)
    except Exception as e:
        logger.error("Error saving notification %r: %s", notification.get("title"), remote_error_message(e))
        return {"id": str(uuid.uuid4()), **notification}

    if profile and profile.get("email"):
        send_email_notification(profile["email"], saved)
    return saved
