"""
ProfileRegistry -- versioned tax profiles with an explicit active pointer.

Responsibility:
    Keeps every published ``TaxProfile`` version per tenant and which
    version is active.  Publishing never edits an existing version;
    switching the active profile only repoints.

Architecture position:
    Kernel > Services.  In-memory stand-in for the external configuration
    store that owns profile records.

Invariants enforced:
    - Versions are append-only and numbered 1, 2, 3... per tenant.
    - ``active()`` hands out the ``ProfileVersion`` object itself, so a
      calculation that already holds it is unaffected by a later
      ``activate()``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from tax_kernel.domain.rules import TaxProfile
from tax_kernel.exceptions import ProfileNotFoundError
from tax_kernel.logging_config import get_logger

logger = get_logger("services.profile_registry")


@dataclass(frozen=True)
class ProfileVersion:
    tenant_id: str
    version: int
    profile: TaxProfile

    @property
    def profile_id(self) -> str:
        """Stable identifier recorded next to snapshots: ``<tenant>:v<version>``."""
        return f"{self.tenant_id}:v{self.version}"


class ProfileRegistry:
    """Thread-safe registry of profile versions keyed by tenant."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions: dict[str, list[ProfileVersion]] = {}
        self._active: dict[str, ProfileVersion] = {}

    def publish(
        self,
        tenant_id: str,
        profile: TaxProfile,
        activate: bool = False,
    ) -> ProfileVersion:
        """Append ``profile`` as the tenant's next version."""
        with self._lock:
            versions = self._versions.setdefault(tenant_id, [])
            published = ProfileVersion(
                tenant_id=tenant_id,
                version=len(versions) + 1,
                profile=profile,
            )
            versions.append(published)
            if activate:
                self._active[tenant_id] = published

        logger.info("tax_profile_published", extra={
            "tenant_id": tenant_id,
            "version": published.version,
            "activated": activate,
        })
        return published

    def activate(self, tenant_id: str, version: int) -> ProfileVersion:
        """Point the tenant's active profile at an existing version."""
        with self._lock:
            target = self._lookup(tenant_id, version)
            previous = self._active.get(tenant_id)
            self._active[tenant_id] = target

        logger.info("tax_profile_activated", extra={
            "tenant_id": tenant_id,
            "version": version,
            "previous_version": previous.version if previous else None,
        })
        return target

    def active(self, tenant_id: str) -> ProfileVersion:
        with self._lock:
            current = self._active.get(tenant_id)
        if current is None:
            raise ProfileNotFoundError(tenant_id)
        return current

    def get(self, tenant_id: str, version: int) -> ProfileVersion:
        with self._lock:
            return self._lookup(tenant_id, version)

    def versions(self, tenant_id: str) -> tuple[ProfileVersion, ...]:
        with self._lock:
            return tuple(self._versions.get(tenant_id, ()))

    def _lookup(self, tenant_id: str, version: int) -> ProfileVersion:
        versions = self._versions.get(tenant_id, [])
        if not 1 <= version <= len(versions):
            raise ProfileNotFoundError(tenant_id, version)
        return versions[version - 1]
