"""Project-level commands: add, update, remove/retreat, publish/push, check."""

from yalc.commands.add import (
    AddOptions,
    InstallResult,
    ManifestPatch,
    add_packages,
    apply_manifest_patch,
    local_address,
    select_install_mode,
)
from yalc.commands.check import check_manifest, find_local_dependencies
from yalc.commands.publish import (
    PublishOptions,
    PublishResult,
    publish_package,
    push_package,
)
from yalc.commands.remove import RemoveOptions, remove_packages
from yalc.commands.update import UpdateOptions, group_by_mode, update_packages

__all__ = [
    "AddOptions",
    "InstallResult",
    "ManifestPatch",
    "PublishOptions",
    "PublishResult",
    "RemoveOptions",
    "UpdateOptions",
    "add_packages",
    "apply_manifest_patch",
    "check_manifest",
    "find_local_dependencies",
    "group_by_mode",
    "local_address",
    "publish_package",
    "push_package",
    "remove_packages",
    "select_install_mode",
    "update_packages",
]
