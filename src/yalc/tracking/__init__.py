"""Install provenance.

- yalc.lock: per-project record of installed packages and their mode
- installations.json: global package -> consuming projects index
"""

from yalc.tracking.installations import (
    Installations,
    InstallationsRegistry,
    PackageInstallation,
)
from yalc.tracking.lockfile import (
    InstallMode,
    Lockfile,
    LockfileEntry,
    LockfileRepository,
)

__all__ = [
    "InstallMode",
    "Installations",
    "InstallationsRegistry",
    "Lockfile",
    "LockfileEntry",
    "LockfileRepository",
    "PackageInstallation",
]
