"""
HTTP routes for the conference API.

Every response uses the `{success, data, error, code}` envelope; failure codes
map onto HTTP statuses via `STATUS_BY_CODE`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from confdesk.admin import AdminService
from confdesk.auth import AuthService, GuardResult
from confdesk.dependencies import (
    get_admin_service,
    get_auth_service,
    get_registration_service,
    get_submission_service,
)
from confdesk.registration import (
    CheckoutCallback,
    PaymentRequest,
    RegistrationForm,
    RegistrationService,
)
from confdesk.results import Result
from confdesk.schemas import (
    CancelPaymentPayload,
    CheckoutPayload,
    ConfirmPaymentPayload,
    CredentialsPayload,
    Envelope,
    PaymentOverridePayload,
    RegistrationPayload,
    ResetPasswordPayload,
    StatusUpdatePayload,
    UpdatePasswordPayload,
)
from confdesk.submissions import PaperMetadata, SubmissionService, parse_keywords

logger = logging.getLogger(__name__)

router = APIRouter()
bearer = HTTPBearer(auto_error=False)

STATUS_BY_CODE = {
    "not_authenticated": 401,
    "invalid_credential": 401,
    "unauthorized": 403,
    "incomplete_profile": 403,
    "not_found": 404,
    "invalid_state": 409,
    "duplicate_account": 409,
    "validation_error": 422,
    "weak_credential": 422,
    "payment_cancelled": 402,
    "upstream_failure": 502,
}


def access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[str]:
    return credentials.credentials if credentials else None


def _envelope(result: Result, success_status: int = 200) -> JSONResponse:
    status = success_status if result.success else STATUS_BY_CODE.get(result.code, 400)
    return JSONResponse(
        status_code=status,
        content=Envelope(
            success=result.success,
            data=jsonable_encoder(result.data),
            error=result.error,
            code=result.code,
        ).model_dump(),
    )


def _ok(data: Any, status_code: int = 200) -> JSONResponse:
    return _envelope(Result.ok(data), status_code)


def _denied(guard: GuardResult) -> JSONResponse:
    code = "not_authenticated" if guard.status_code == 401 else "unauthorized"
    return JSONResponse(
        status_code=guard.status_code,
        content=Envelope(success=False, error=guard.message, code=code).model_dump(),
        headers={"Refresh": f"{guard.delay_seconds:g}; url={guard.redirect_to}"},
    )


# Auth


@router.post("/auth/signup", status_code=201)
def sign_up(payload: CredentialsPayload, auth: AuthService = Depends(get_auth_service)):
    return _envelope(auth.sign_up(payload.email, payload.password), 201)


@router.post("/auth/login")
def login(payload: CredentialsPayload, auth: AuthService = Depends(get_auth_service)):
    result = auth.login(payload.email, payload.password)
    if not result.success:
        return _envelope(result)
    outcome = result.data
    return _ok(
        {
            "access_token": outcome.session.access_token,
            "refresh_token": outcome.session.refresh_token,
            "expires_in": outcome.session.expires_in,
            "user": outcome.session.user,
            "is_admin": outcome.is_admin,
            "profile": outcome.profile,
        }
    )


@router.post("/auth/logout")
def logout(
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
):
    return _envelope(auth.logout(token))


@router.post("/auth/reset-password")
def reset_password(
    payload: ResetPasswordPayload, auth: AuthService = Depends(get_auth_service)
):
    return _envelope(auth.reset_password(payload.email))


@router.post("/auth/update-password")
def update_password(
    payload: UpdatePasswordPayload,
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
):
    return _envelope(auth.update_password(token, payload.new_password))


@router.get("/auth/me")
def me(
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
):
    guard = auth.require_auth(token)
    if not guard.allowed:
        return _denied(guard)
    identity = auth.resolve_identity(token)
    return _ok(identity)


# Registration and payment


@router.post("/registrations", status_code=201)
def submit_registration(
    payload: RegistrationPayload,
    registrations: RegistrationService = Depends(get_registration_service),
):
    form = RegistrationForm(**payload.model_dump())
    return _envelope(registrations.submit_registration(form), 201)


@router.post("/payments/checkout")
def checkout(
    payload: CheckoutPayload,
    token: Optional[str] = Depends(access_token),
    registrations: RegistrationService = Depends(get_registration_service),
):
    request = PaymentRequest(amount=payload.amount, currency=payload.currency)
    return _envelope(registrations.process_payment(token, request))


@router.post("/payments/confirm")
def confirm_payment(
    payload: ConfirmPaymentPayload,
    registrations: RegistrationService = Depends(get_registration_service),
):
    callback = CheckoutCallback(
        order_id=payload.order_id,
        payment_id=payload.payment_id,
        signature=payload.signature,
    )
    return _envelope(registrations.confirm_payment(callback))


@router.post("/payments/cancel")
def cancel_payment(
    payload: CancelPaymentPayload,
    token: Optional[str] = Depends(access_token),
    registrations: RegistrationService = Depends(get_registration_service),
):
    return _envelope(registrations.cancel_payment(token, payload.order_id))


# Papers

UPLOAD_CHUNK_BYTES = 1024 * 1024


async def _read_capped(file: UploadFile, limit: int) -> bytes:
    """Read at most `limit + 1` bytes so an oversized body still fails the size check."""
    chunks = []
    remaining = limit + 1
    while remaining > 0:
        chunk = await file.read(min(UPLOAD_CHUNK_BYTES, remaining))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


@router.post("/papers", status_code=201)
async def upload_paper(
    file: UploadFile = File(...),
    title: str = Form(...),
    abstract: str = Form(""),
    keywords: str = Form(""),
    token: Optional[str] = Depends(access_token),
    submissions: SubmissionService = Depends(get_submission_service),
):
    data = await _read_capped(file, submissions.settings.max_upload_mb * 1024 * 1024)
    metadata = PaperMetadata(
        title=title, abstract=abstract, keywords=parse_keywords(keywords)
    )
    result = submissions.upload_paper(
        token, file.filename or "", data, metadata, content_type=file.content_type
    )
    return _envelope(result, 201)


@router.get("/papers")
def list_own_papers(
    token: Optional[str] = Depends(access_token),
    submissions: SubmissionService = Depends(get_submission_service),
):
    return _ok(submissions.list_own_papers(token))


@router.delete("/papers/{paper_id}")
def delete_own_paper(
    paper_id: str,
    token: Optional[str] = Depends(access_token),
    submissions: SubmissionService = Depends(get_submission_service),
):
    return _envelope(submissions.delete_own_paper(token, paper_id))


@router.get("/papers/{paper_id}/download-url")
def paper_download_url(
    paper_id: str,
    token: Optional[str] = Depends(access_token),
    submissions: SubmissionService = Depends(get_submission_service),
):
    result = submissions.paper_download_url(token, paper_id)
    if result.success:
        return _ok({"url": result.data})
    return _envelope(result)


# Admin


def _admin_guard(token: Optional[str], auth: AuthService) -> Optional[JSONResponse]:
    guard = auth.require_admin(token)
    return None if guard.allowed else _denied(guard)


@router.get("/admin/papers")
def list_all_papers(
    status: Optional[str] = Query(None),
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
    admin: AdminService = Depends(get_admin_service),
):
    denied = _admin_guard(token, auth)
    if denied:
        return denied
    return _envelope(admin.list_all_papers(token, status))


@router.patch("/admin/papers/{paper_id}/status")
def update_paper_status(
    paper_id: str,
    payload: StatusUpdatePayload,
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
    admin: AdminService = Depends(get_admin_service),
):
    denied = _admin_guard(token, auth)
    if denied:
        return denied
    return _envelope(
        admin.update_paper_status(token, paper_id, payload.status, payload.comments)
    )


@router.delete("/admin/papers/{paper_id}")
def admin_delete_paper(
    paper_id: str,
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
    admin: AdminService = Depends(get_admin_service),
):
    denied = _admin_guard(token, auth)
    if denied:
        return denied
    return _envelope(admin.admin_delete_paper(token, paper_id))


@router.delete("/admin/papers")
def delete_all_papers(
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
    admin: AdminService = Depends(get_admin_service),
):
    denied = _admin_guard(token, auth)
    if denied:
        return denied
    return _envelope(admin.delete_all_papers(token))


@router.get("/admin/statistics")
def get_statistics(
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
    admin: AdminService = Depends(get_admin_service),
):
    denied = _admin_guard(token, auth)
    if denied:
        return denied
    return _envelope(admin.get_statistics(token))


@router.get("/admin/users")
def list_users(
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
    admin: AdminService = Depends(get_admin_service),
):
    denied = _admin_guard(token, auth)
    if denied:
        return denied
    return _envelope(admin.list_users(token))


@router.patch("/admin/users/{user_id}/payment")
def admin_update_payment_status(
    user_id: str,
    payload: PaymentOverridePayload,
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
    admin: AdminService = Depends(get_admin_service),
):
    denied = _admin_guard(token, auth)
    if denied:
        return denied
    return _envelope(
        admin.admin_update_payment_status(token, user_id, payload.payment_completed)
    )


@router.delete("/admin/users/{user_id}")
def soft_delete_user(
    user_id: str,
    token: Optional[str] = Depends(access_token),
    auth: AuthService = Depends(get_auth_service),
    admin: AdminService = Depends(get_admin_service),
):
    denied = _admin_guard(token, auth)
    if denied:
        return denied
    return _envelope(admin.soft_delete_user(token, user_id))


@router.get("/health")
def health():
    return {"status": "ok"}
