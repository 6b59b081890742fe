"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from confdesk.activity import ActivityLogger
from confdesk.admin import AdminService
from confdesk.auth import AuthService
from confdesk.cache import InMemoryCache, KeyValueCache, RedisCache
from confdesk.config import get_settings
from confdesk.db import InMemoryRecordStore, RecordStore, SqlRecordStore
from confdesk.identity import AuthProvider, HostedAuthProvider, InMemoryAuthProvider
from confdesk.notifications import NotificationService
from confdesk.payments import InMemoryPaymentGateway, PaymentGateway, RazorpayGateway
from confdesk.registration import RegistrationService
from confdesk.storage import InMemoryStorageClient, S3StorageClient, StorageClient
from confdesk.submissions import SubmissionService

_record_store: RecordStore | None = None
_storage_client: StorageClient | None = None
_cache: KeyValueCache | None = None
_auth_provider: AuthProvider | None = None
_payment_gateway: PaymentGateway | None = None


def get_record_store() -> RecordStore:
    """
    Return a singleton record store so state persists across requests.
    """
    global _record_store
    if _record_store:
        return _record_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _record_store = InMemoryRecordStore()
    else:
        _record_store = SqlRecordStore(settings.database_url)
    return _record_store


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_endpoint:
        _storage_client = InMemoryStorageClient(bucket=settings.storage_bucket)
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.storage_access_key_id or "",
            secret_access_key=settings.storage_secret_access_key or "",
        )
    return _storage_client


def get_cache() -> KeyValueCache:
    """
    Return a singleton cache for sessions and upload idempotency keys.
    """
    global _cache
    if _cache:
        return _cache

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _cache = RedisCache(url=settings.redis_url, key_prefix=settings.cache_key_prefix)
    else:
        _cache = InMemoryCache()
    return _cache


def get_auth_provider() -> AuthProvider:
    global _auth_provider
    if _auth_provider:
        return _auth_provider

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.auth_url:
        _auth_provider = InMemoryAuthProvider()
    else:
        _auth_provider = HostedAuthProvider(
            base_url=settings.auth_url,
            api_key=settings.auth_api_key or "",
            service_key=settings.auth_service_key,
            timeout=settings.auth_timeout_seconds,
        )
    return _auth_provider


def get_payment_gateway() -> PaymentGateway:
    global _payment_gateway
    if _payment_gateway:
        return _payment_gateway

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.payment_key_secret:
        _payment_gateway = InMemoryPaymentGateway()
    else:
        _payment_gateway = RazorpayGateway(
            key_id=settings.payment_key_id or "",
            key_secret=settings.payment_key_secret,
            base_url=settings.payment_api_url,
        )
    return _payment_gateway


def reset_backends() -> None:
    """Drop every singleton so the next request rebuilds them (useful in tests)."""
    global _record_store, _storage_client, _cache, _auth_provider, _payment_gateway
    _record_store = None
    _storage_client = None
    _cache = None
    _auth_provider = None
    _payment_gateway = None


# Services are cheap wrappers over the singletons above.


def get_auth_service() -> AuthService:
    return AuthService(get_auth_provider(), get_record_store(), get_cache(), get_settings())


def get_notification_service() -> NotificationService:
    return NotificationService(get_record_store(), get_settings())


def get_submission_service() -> SubmissionService:
    return SubmissionService(
        get_auth_service(),
        get_record_store(),
        get_storage_client(),
        get_cache(),
        get_notification_service(),
        get_settings(),
    )


def get_admin_service() -> AdminService:
    store = get_record_store()
    return AdminService(
        get_auth_service(),
        store,
        get_storage_client(),
        get_notification_service(),
        ActivityLogger(store),
        get_settings(),
    )


def get_registration_service() -> RegistrationService:
    return RegistrationService(
        get_auth_service(),
        get_auth_provider(),
        get_record_store(),
        get_payment_gateway(),
        get_notification_service(),
        get_settings(),
    )
