"""
Settings — runtime configuration.

Fluent builder pattern, same as the rest of the package:

    settings = (
        Settings.from_env()
        .with_database("sqlite+aiosqlite:///./storefront.db")
        .with_workers(4)
    )

Note: Immutable — each method returns new Settings.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import timedelta


ENV_PREFIX = "STOREFRONT_"


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Application settings.

    database_url:        SQLAlchemy async URL
    blob_root:           directory backing the local blob store
    blob_base_url:       public prefix used to build blob URLs
    import_workers:      number of import queue workers
    import_max_attempts: deliveries per import task before giving up
    stale_job_after:     PROCESSING jobs older than this are reaped
    max_upload_bytes:    CSV upload size limit
    identity_header:     trusted header carrying the authenticated user id
    """

    database_url: str = "sqlite+aiosqlite:///./storefront.db"
    blob_root: str = "./blobs"
    blob_base_url: str = "file://blobs"
    import_workers: int = 2
    import_max_attempts: int = 2
    stale_job_after: timedelta = timedelta(minutes=30)
    max_upload_bytes: int = 10 * 1024 * 1024
    identity_header: str = "x-user-id"
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """
        Build settings from STOREFRONT_* variables.

        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        base = cls()

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        stale_minutes = get("STALE_JOB_MINUTES")
        return cls(
            database_url=get("DATABASE_URL") or base.database_url,
            blob_root=get("BLOB_ROOT") or base.blob_root,
            blob_base_url=get("BLOB_BASE_URL") or base.blob_base_url,
            import_workers=int(get("IMPORT_WORKERS") or base.import_workers),
            import_max_attempts=int(
                get("IMPORT_MAX_ATTEMPTS") or base.import_max_attempts
            ),
            stale_job_after=(
                timedelta(minutes=float(stale_minutes))
                if stale_minutes
                else base.stale_job_after
            ),
            max_upload_bytes=int(get("MAX_UPLOAD_BYTES") or base.max_upload_bytes),
            identity_header=(get("IDENTITY_HEADER") or base.identity_header).lower(),
            log_level=(get("LOG_LEVEL") or base.log_level).upper(),
            log_json=(get("LOG_JSON") or "").lower() in ("1", "true", "yes"),
        )

    def with_database(self, url: str) -> Settings:
        return replace(self, database_url=url)

    def with_blob_root(self, root: str, base_url: str | None = None) -> Settings:
        return replace(
            self,
            blob_root=root,
            blob_base_url=base_url if base_url is not None else self.blob_base_url,
        )

    def with_workers(self, workers: int, *, max_attempts: int | None = None) -> Settings:
        if workers < 1:
            raise ValueError("import_workers must be >= 1")
        return replace(
            self,
            import_workers=workers,
            import_max_attempts=(
                max_attempts if max_attempts is not None else self.import_max_attempts
            ),
        )

    def with_stale_after(
        self,
        *,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> Settings:
        if delta is None:
            delta = timedelta(minutes=minutes or 0)
        return replace(self, stale_job_after=delta)


__all__ = ("Settings", "ENV_PREFIX")
