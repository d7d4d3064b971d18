"""yalc: work with local npm packages through a shared local store."""

from yalc.config import YalcConfig
from yalc.errors import (
    CopyError,
    HookError,
    LockfileError,
    MissingProjectManifestError,
    RegistryError,
    StoreNotFoundError,
    YalcError,
)

__version__ = "0.1.0"

__all__ = [
    "CopyError",
    "HookError",
    "LockfileError",
    "MissingProjectManifestError",
    "RegistryError",
    "StoreNotFoundError",
    "YalcConfig",
    "YalcError",
    "__version__",
]
