"""
Paper submission workflow: upload, ownership-scoped listing, pending-only deletion
and signed downloads.

Every paper enters as `pending`. The record stores the storage key of the
uploaded file, never a public URL, so access stays gated through
`paper_download_url`.
"""

from __future__ import annotations

import hashlib
import logging
import mimetypes
import time
from dataclasses import dataclass, field
from typing import Optional

from confdesk.auth import AuthService
from confdesk.cache import KeyValueCache
from confdesk.config import Settings, get_settings
from confdesk.db import RecordStore
from confdesk.errors import InvalidState, NotFound, Unauthorized, ValidationError
from confdesk.models import Paper, PaperStatus, User
from confdesk.notifications import NotificationService
from confdesk.results import returns_result
from confdesk.storage import StorageClient
from confdesk.validation import check_upload

logger = logging.getLogger(__name__)


@dataclass
class PaperMetadata:
    title: str
    abstract: str = ""
    keywords: list[str] = field(default_factory=list)


def storage_key(owner_id: str, file_name: str, epoch_millis: Optional[int] = None) -> str:
    """`{ownerId}/{epochMillis}_{fileName}`; the timestamp keeps resubmissions apart."""
    if epoch_millis is None:
        epoch_millis = int(time.time() * 1000)
    return f"{owner_id}/{epoch_millis}_{file_name}"


def upload_idempotency_key(owner_id: str, data: bytes) -> str:
    return f"upload:{owner_id}:{hashlib.sha256(data).hexdigest()}"


def parse_keywords(raw: Optional[str]) -> list[str]:
    """Split a comma-separated keyword field, dropping blanks."""
    if not raw:
        return []
    return [keyword.strip() for keyword in raw.split(",") if keyword.strip()]


class SubmissionService:
    def __init__(
        self,
        auth: AuthService,
        store: RecordStore,
        storage: StorageClient,
        cache: KeyValueCache,
        notifications: Optional[NotificationService] = None,
        settings: Optional[Settings] = None,
    ):
        self.auth = auth
        self.store = store
        self.storage = storage
        self.cache = cache
        self.settings = settings or get_settings()
        self.notifications = notifications or NotificationService(store, self.settings)

    def _remove_quietly(self, path: str) -> None:
        try:
            self.storage.remove([path])
        except Exception as exc:
            logger.warning("Error deleting file from storage %s: %s", path, exc)

    @returns_result("upload_paper")
    def upload_paper(
        self,
        access_token: Optional[str],
        file_name: str,
        data: bytes,
        metadata: PaperMetadata,
        content_type: Optional[str] = None,
    ) -> Paper:
        _, profile = self.auth.require_profile(access_token)
        check_upload(
            file_name,
            len(data),
            allowed=self.settings.allowed_extensions,
            max_size_mb=self.settings.max_upload_mb,
        )
        title = (metadata.title or "").strip()
        if not title:
            raise ValidationError("Paper title is required")

        dedupe_key = upload_idempotency_key(profile.id, data)
        if not self.cache.add(
            dedupe_key, {"file_name": file_name}, self.settings.upload_dedupe_ttl_seconds
        ):
            raise InvalidState("This file was already submitted. Please wait before resubmitting.")

        path = storage_key(profile.id, file_name)
        try:
            self.storage.upload_bytes(
                path,
                data,
                content_type or mimetypes.guess_type(file_name)[0] or "application/octet-stream",
            )
            try:
                row = self.store.insert(
                    "papers",
                    {
                        "user_id": profile.id,
                        "user_name": profile.full_name,
                        "user_email": profile.email,
                        "paper_title": title,
                        "abstract": metadata.abstract or "",
                        "keywords": list(metadata.keywords or []),
                        "file_name": file_name,
                        "file_url": path,
                        "file_size_bytes": len(data),
                        "status": PaperStatus.PENDING.value,
                    },
                )
            except Exception:
                # Leave no orphaned object behind a failed insert.
                self._remove_quietly(path)
                raise
        except Exception:
            self.cache.delete(dedupe_key)
            raise

        paper = Paper.from_row(row)
        logger.info("Paper %s uploaded by %s to %s", paper.id, profile.id, path)
        if self.settings.notify_on_submission and isinstance(profile, User):
            self.notifications.paper_submission_confirmation(profile, paper)
            self.notifications.admin_new_submission(profile, paper)
        return paper

    def list_own_papers(self, access_token: Optional[str]) -> list[Paper]:
        """The caller's papers, newest first. Never fails: no identity means no papers."""
        try:
            profile = self.auth.get_current_user_record(access_token)
            if profile is None:
                return []
            rows = self.store.select(
                "papers",
                filters={"user_id": profile.id},
                order_by="created_at",
                descending=True,
            )
        except Exception as exc:
            logger.warning("Error fetching papers: %s", exc)
            return []
        return [Paper.from_row(row) for row in rows]

    def _owned_paper(self, access_token: Optional[str], paper_id: str) -> tuple[Paper, bool]:
        _, profile = self.auth.require_profile(access_token)
        row = self.store.get("papers", paper_id)
        if not row:
            raise NotFound("Paper not found")
        paper = Paper.from_row(row)
        return paper, paper.user_id == profile.id

    @returns_result("delete_own_paper")
    def delete_own_paper(self, access_token: Optional[str], paper_id: str) -> None:
        paper, owned = self._owned_paper(access_token, paper_id)
        if not owned:
            raise Unauthorized("You can only delete your own papers")
        if not paper.is_pending:
            raise InvalidState("Only pending papers can be deleted")
        if paper.file_url:
            self._remove_quietly(paper.file_url)
        self.store.delete("papers", paper.id)
        logger.info("Paper %s deleted by its owner", paper.id)

    @returns_result("paper_download_url")
    def paper_download_url(self, access_token: Optional[str], paper_id: str) -> str:
        paper, owned = self._owned_paper(access_token, paper_id)
        if not owned and not self.auth.is_admin(access_token):
            raise Unauthorized("You do not have access to this paper")
        return self.storage.presign_get(
            paper.file_url, expires_in=self.settings.signed_url_expires_in
        )
