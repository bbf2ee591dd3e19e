"""Wire the concrete adapters into a ready-to-use coordinator."""

from __future__ import annotations

from plansync.application.sync_coordinator import SyncCoordinator
from plansync.config import Settings
from plansync.database import LocalTaskCache
from plansync.infrastructure.backup.backup_store import RemoteBackupStore
from plansync.infrastructure.backup.jsonbin_gateway import JsonBinGateway
from plansync.infrastructure.cache.backup_state_store import BackupStateStore
from plansync.infrastructure.cache.json_cache import JsonCache
from plansync.infrastructure.google.firestore_gateway import FirestoreTasksGateway
from plansync.infrastructure.google.identity_service import FirebaseIdentityService
from plansync.infrastructure.network.connectivity import HttpConnectivityOracle


def build_identity(settings: Settings, cache: JsonCache | None = None) -> FirebaseIdentityService:
    return FirebaseIdentityService(
        settings.firebase_api_key,
        cache or JsonCache(str(settings.cache_dir)),
        timeout=settings.request_timeout,
    )


def build_coordinator(settings: Settings, *, initialize: bool = True) -> SyncCoordinator:
    json_cache = JsonCache(str(settings.cache_dir))
    identity = build_identity(settings, json_cache)
    coordinator = SyncCoordinator(
        cache=LocalTaskCache(str(settings.db_path)),
        primary=FirestoreTasksGateway(
            settings.firebase_project_id,
            identity.get_credentials,
            database=settings.firestore_database,
            timeout=settings.request_timeout,
        ),
        backup=RemoteBackupStore(
            JsonBinGateway(
                settings.jsonbin_base_url,
                settings.jsonbin_api_key,
                timeout=settings.request_timeout,
            ),
            BackupStateStore(json_cache),
        ),
        connectivity=HttpConnectivityOracle(
            settings.connectivity_url,
            timeout=min(settings.request_timeout, 5.0),
            ttl=settings.connectivity_ttl,
        ),
        identity=identity,
    )
    if initialize:
        coordinator.initialize()
    return coordinator
