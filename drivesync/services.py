from typing import Awaitable, Callable

from drivesync.cache import TTLCache
from drivesync.config import Settings, get_settings
from drivesync.folders import FolderEmulator
from drivesync.listing import ListingEngine
from drivesync.metadata.store import MetadataStore
from drivesync.models import OperationResult
from drivesync.objectstorage.store import StorePool
from drivesync.reconcile import Reconciler
from drivesync.scheduler import PeriodicSync


class DriveServices:
    """
    The engines of one application, sharing a store pool, a metadata database and a cache.
    Created by the application root (the API lifespan, a CLI command or a test fixture).
    """

    def __init__(self, stores: StorePool, metadata: MetadataStore, settings: Settings | None = None):
        settings = settings or get_settings()
        self.stores = stores
        self.metadata = metadata
        self.cache = TTLCache(max_entries=settings.cache_max_entries, default_ttl=settings.list_cache_ttl)
        self.listing = ListingEngine(
            stores, self.cache, list_ttl=settings.list_cache_ttl, search_ttl=settings.search_cache_ttl
        )
        self.folders = FolderEmulator(
            stores,
            metadata,
            self.cache,
            verify_attempts=settings.delete_verify_attempts,
            verify_delay=settings.delete_verify_delay,
        )
        self.reconciler = Reconciler(stores, metadata, self.listing, self.cache, concurrency=settings.sync_concurrency)
        self.scheduler = PeriodicSync(self.reconciler, metadata, interval=settings.sync_interval)

    def sync_operations(self) -> dict[str, Callable[[str], Awaitable[OperationResult]]]:
        """The per-owner sync operations by the name used in the API and on the command line"""
        return {
            "sync": self.reconciler.sync_user_files,
            "import": self.reconciler.import_orphaned_s3_files,
            "folders-to-store": self.reconciler.sync_folders_to_store,
            "folders-from-store": self.reconciler.sync_folders_from_store,
            "orphaned": self.reconciler.find_orphaned_s3_files,
            "full": self.reconciler.perform_full_sync,
            "check": self.reconciler.perform_consistency_check,
            "resume-renames": self.folders.resume_renames,
        }
