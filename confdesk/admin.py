"""
Admin review path and dashboard aggregation.

Every operation re-checks the caller against the active `admins` rows; the
role is never taken from the request context.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Optional

from confdesk.activity import ActivityLogger
from confdesk.auth import AuthService
from confdesk.config import Settings, get_settings
from confdesk.db import RecordStore
from confdesk.errors import NotFound
from confdesk.models import Paper, PaperStatus, User, utc_now_iso
from confdesk.notifications import NotificationService
from confdesk.results import returns_result
from confdesk.storage import StorageClient

logger = logging.getLogger(__name__)

OWNER_FIELDS = ("full_name", "email", "phone", "affiliation", "designation", "category")


class AdminService:
    def __init__(
        self,
        auth: AuthService,
        store: RecordStore,
        storage: StorageClient,
        notifications: Optional[NotificationService] = None,
        activity: Optional[ActivityLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.auth = auth
        self.store = store
        self.storage = storage
        self.settings = settings or get_settings()
        self.notifications = notifications or NotificationService(store, self.settings)
        self.activity = activity or ActivityLogger(store)

    def _paper(self, paper_id: str) -> Paper:
        row = self.store.get("papers", paper_id)
        if not row:
            raise NotFound("Paper not found")
        return Paper.from_row(row)

    def _user(self, user_id: str) -> User:
        row = self.store.get("users", user_id)
        if not row:
            raise NotFound("User not found")
        return User.from_row(row)

    def _owner(self, user_id: str) -> Optional[User]:
        row = self.store.get("users", user_id)
        return User.from_row(row) if row else None

    # Papers

    @returns_result("list_all_papers")
    def list_all_papers(
        self, access_token: Optional[str], status_filter: Optional[str] = None
    ) -> list[dict]:
        """All papers, newest first, each with an `owner` dict of profile fields."""
        self.auth.require_admin_profile(access_token)
        filters = {}
        if status_filter:
            filters["status"] = PaperStatus.parse(status_filter).value
        rows = self.store.select(
            "papers", filters=filters, order_by="created_at", descending=True
        )
        owners: dict[str, Optional[User]] = {}
        papers = []
        for row in rows:
            if row["user_id"] not in owners:
                owners[row["user_id"]] = self._owner(row["user_id"])
            owner = owners[row["user_id"]]
            entry = Paper.from_row(row).as_dict()
            entry["owner"] = (
                {name: getattr(owner, name) for name in OWNER_FIELDS} if owner else None
            )
            papers.append(entry)
        return papers

    @returns_result("update_paper_status")
    def update_paper_status(
        self,
        access_token: Optional[str],
        paper_id: str,
        new_status: str,
        comments: str = "",
    ) -> Paper:
        admin = self.auth.require_admin_profile(access_token)
        status = PaperStatus.parse(new_status)
        self._paper(paper_id)
        row = self.store.update(
            "papers",
            paper_id,
            {
                "status": status.value,
                "review_comments": comments or None,
                "reviewed_by": admin.id,
                "reviewer_name": admin.full_name,
                "review_date": utc_now_iso(),
            },
        )
        if row is None:
            raise NotFound("Paper not found")
        paper = Paper.from_row(row)
        logger.info("Paper %s moved to %s by admin %s", paper.id, status.value, admin.id)

        self.notifications.paper_status_update(paper, self._owner(paper.user_id))
        self.activity.log_admin_activity(
            admin,
            "paper_status_update",
            {"paper_id": paper.id, "new_status": status.value, "comments": comments},
        )
        return paper

    @returns_result("admin_delete_paper")
    def admin_delete_paper(self, access_token: Optional[str], paper_id: str) -> None:
        admin = self.auth.require_admin_profile(access_token)
        paper = self._paper(paper_id)
        if paper.file_url:
            try:
                self.storage.remove([paper.file_url])
            except Exception as exc:
                logger.warning("Error deleting file from storage %s: %s", paper.file_url, exc)
        self.store.delete("papers", paper.id)
        self.activity.log_admin_activity(
            admin,
            "paper_delete",
            {"paper_id": paper.id, "paper_title": paper.paper_title},
        )

    @returns_result("delete_all_papers")
    def delete_all_papers(self, access_token: Optional[str]) -> dict:
        """Remove every stored paper file and record. Irreversible."""
        admin = self.auth.require_admin_profile(access_token)
        rows = self.store.select("papers")
        paths = [row["file_url"] for row in rows if row.get("file_url")]
        if paths:
            try:
                removed = self.storage.remove(paths)
                logger.info("Removed %d of %d stored paper files", len(removed), len(paths))
            except Exception as exc:
                logger.warning("Error deleting files from storage: %s", exc)
        count = self.store.delete_where("papers")
        self.activity.log_admin_activity(
            admin, "delete_all_papers", {"count": count}, target_id="all"
        )
        return {"count": count}

    # Registrations

    @returns_result("list_users")
    def list_users(self, access_token: Optional[str]) -> list[User]:
        self.auth.require_admin_profile(access_token)
        rows = self.store.select(
            "users", filters={"is_deleted": False}, order_by="created_at", descending=True
        )
        return [User.from_row(row) for row in rows]

    @returns_result("admin_update_payment_status")
    def admin_update_payment_status(
        self, access_token: Optional[str], user_id: str, completed: bool
    ) -> User:
        admin = self.auth.require_admin_profile(access_token)
        self._user(user_id)
        row = self.store.update("users", user_id, {"payment_completed": bool(completed)})
        if row is None:
            raise NotFound("User not found")
        self.activity.log_admin_activity(
            admin,
            "payment_status_override",
            {"user_id": user_id, "payment_completed": bool(completed)},
            target_table="users",
            target_id=user_id,
        )
        return User.from_row(row)

    @returns_result("soft_delete_user")
    def soft_delete_user(self, access_token: Optional[str], user_id: str) -> User:
        admin = self.auth.require_admin_profile(access_token)
        user = self._user(user_id)
        row = self.store.update("users", user_id, {"is_deleted": True})
        if row is None:
            raise NotFound("User not found")
        self.activity.log_admin_activity(
            admin,
            "user_delete",
            {"user_id": user_id, "email": user.email},
            target_table="users",
            target_id=user_id,
        )
        return User.from_row(row)

    @returns_result("get_statistics")
    def get_statistics(self, access_token: Optional[str]) -> dict:
        self.auth.require_admin_profile(access_token)
        users = [
            User.from_row(row)
            for row in self.store.select("users", filters={"is_deleted": False})
        ]
        papers = [Paper.from_row(row) for row in self.store.select("papers")]

        revenue: dict[str, float] = defaultdict(float)
        for user in users:
            if user.payment_completed:
                revenue[user.currency or "INR"] += float(user.registration_fee or 0)
        by_status = Counter(paper.status for paper in papers)
        return {
            "total_registrations": len(users),
            "total_papers": len(papers),
            "total_revenue": dict(revenue),
            "pending_reviews": by_status.get(PaperStatus.PENDING.value, 0),
            "accepted_papers": by_status.get(PaperStatus.ACCEPTED.value, 0),
            "rejected_papers": by_status.get(PaperStatus.REJECTED.value, 0),
            "registrations_by_category": dict(
                Counter(user.category or "unknown" for user in users)
            ),
            "papers_by_status": {
                status.value: by_status.get(status.value, 0) for status in PaperStatus
            },
        }
