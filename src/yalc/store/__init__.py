"""Local package store.

- Signatures over publishable file sets (change detection)
- Publishable file listing and `.yalcignore` rules
- Versioned store entries keyed by (name, version)
- Merge-safe directory copies used for vendor folders
"""

from yalc.store.files import IgnoreRules, list_publishable_files, read_ignore_file
from yalc.store.package_store import (
    PackageStore,
    StorePublishOptions,
    resolve_workspaces,
    strip_dev_fields,
)
from yalc.store.signature import (
    compute_signature,
    hash_file,
    read_signature,
    short_signature,
    write_signature,
)
from yalc.store.sync import copy_dir_safe, remove_path

__all__ = [
    "IgnoreRules",
    "PackageStore",
    "StorePublishOptions",
    "compute_signature",
    "copy_dir_safe",
    "hash_file",
    "list_publishable_files",
    "read_ignore_file",
    "read_signature",
    "remove_path",
    "resolve_workspaces",
    "short_signature",
    "strip_dev_fields",
    "write_signature",
]
