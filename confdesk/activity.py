"""
Append-only audit trail for privileged mutations.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from confdesk.db import RecordStore
from confdesk.models import Admin, ActivityLog

logger = logging.getLogger(__name__)


class ActivityLogger:
    def __init__(self, store: RecordStore):
        self.store = store

    def log_admin_activity(
        self,
        admin: Optional[Admin],
        action_type: str,
        payload: dict,
        *,
        target_table: str = "papers",
        target_id: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        """
        Append one activity-log entry. Never raises: a failed audit write must
        not block the action it describes.
        """
        if admin is None:
            logger.warning("Skipping activity log %s: no admin identity", action_type)
            return None
        try:
            row = self.store.insert(
                "activity_logs",
                {
                    "admin_id": admin.id,
                    "actor_email": admin.email,
                    "actor_role": admin.role,
                    "action_type": action_type,
                    "action_description": json.dumps(payload, default=str),
                    "target_table": target_table,
                    "target_id": target_id or payload.get("paper_id"),
                    "new_data": payload,
                },
            )
        except Exception as exc:
            logger.warning("Error logging activity %s: %s", action_type, exc)
            return None
        return ActivityLog.from_row(row)
