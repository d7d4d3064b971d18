"""
Command line interface.

Usage:
    yalc publish [--push] [--changed] [--sig] [--private] [--no-scripts]
    yalc push [--replace] [--update] [--scripts]
    yalc add pkg[@version] ... [--dev] [--link] [--workspace] [--pure | --no-pure]
    yalc link pkg ...
    yalc update [pkg ...] [--replace] [--update]
    yalc restore [pkg ...]
    yalc remove [pkg ...] [--all]
    yalc retreat [pkg ...] [--all]
    yalc installations show|clean [pkg ...] [--dry]
    yalc check [--commit]
    yalc dir
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from yalc import __version__
from yalc.commands import (
    AddOptions,
    PublishOptions,
    RemoveOptions,
    UpdateOptions,
    add_packages,
    check_manifest,
    publish_package,
    remove_packages,
    update_packages,
)
from yalc.config import YalcConfig
from yalc.errors import YalcError
from yalc.logging_config import setup_logging
from yalc.tracking.lockfile import InstallMode

logger = logging.getLogger(__name__)


def _publish_flags(parser: argparse.ArgumentParser, *, scripts: bool) -> None:
    parser.add_argument("--sig", dest="signature", action="store_true", help="Append content signature to version")
    parser.add_argument("--changed", action="store_true", help="Skip publishing if content has not changed")
    parser.add_argument("--content", action="store_true", help="Log the published file list")
    parser.add_argument("--private", action="store_true", help="Publish even if the package is private")
    if scripts:
        parser.add_argument("--no-scripts", dest="scripts", action="store_false", help="Skip lifecycle scripts")
    else:
        parser.add_argument("--scripts", dest="scripts", action="store_true", help="Run lifecycle scripts")
    parser.set_defaults(scripts=scripts)
    parser.add_argument("--no-dev-mod", dest="dev_mod", action="store_false", help="Keep devDependencies")
    parser.add_argument(
        "--no-workspace-resolve",
        dest="workspace_resolve",
        action="store_false",
        help="Keep workspace: dependency ranges as-is",
    )
    parser.add_argument("--replace", action="store_true", help="Force content replacement when pushing")
    parser.add_argument("--update", action="store_true", help="Run package manager update in pushed projects")
    parser.add_argument("directory", nargs="?", type=Path, default=None, help="Package directory")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="yalc",
        description="Work with local npm packages without publishing them to a registry.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--store-folder", type=Path, default=None, help="Custom store location")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")

    sub = parser.add_subparsers(dest="command", required=True)

    publish = sub.add_parser("publish", help="Publish package in the local store")
    _publish_flags(publish, scripts=True)
    publish.add_argument("--push", action="store_true", help="Push to all installations after publishing")

    push = sub.add_parser("push", help="Publish and push to all installations")
    _publish_flags(push, scripts=False)

    for name, help_text in (("add", "Add packages from the store"), ("link", "Symlink packages from the store")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("packages", nargs="+", help="Package specs (name or name@version)")
        cmd.add_argument("--dev", "-D", action="store_true", help="Add to devDependencies")
        cmd.add_argument("--pure", dest="pure", action="store_true", default=None, help="Do not touch node_modules")
        cmd.add_argument("--no-pure", dest="pure", action="store_false", help="Disable automatic pure mode")
        cmd.add_argument("--replace", action="store_true", help="Rewrite every file")
        cmd.add_argument("--update", action="store_true", help="Run package manager update afterwards")
        cmd.add_argument("--restore", action="store_true", help="Install from existing .yalc copies")
        if name == "add":
            cmd.add_argument("--link", action="store_true", help="Use link: dependency protocol")
            cmd.add_argument("--workspace", "-W", action="store_true", help="Use workspace: dependency protocol")

    for name, help_text in (("update", "Update locked packages"), ("restore", "Restore retreated packages")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("packages", nargs="*", help="Packages (default: all locked)")
        cmd.add_argument("--replace", action="store_true", help="Rewrite every file")
        cmd.add_argument("--update", action="store_true", help="Run package manager update afterwards")

    for name, help_text in (("remove", "Remove packages"), ("retreat", "Temporarily remove packages")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("packages", nargs="*", help="Packages to remove")
        cmd.add_argument("--all", action="store_true", help="Apply to all locked packages")

    installations = sub.add_parser("installations", help="Work with the installations registry")
    installations.add_argument("action", choices=["show", "clean"])
    installations.add_argument("packages", nargs="*", help="Limit to these packages")
    installations.add_argument("--dry", action="store_true", help="Only show what would be removed")

    check = sub.add_parser("check", help="Fail if package.json still has yalc dependencies")
    check.add_argument("--commit", action="store_true", help="Only check when package.json is staged")

    sub.add_parser("dir", help="Show store directory")
    return parser


def _add_mode(args: argparse.Namespace) -> InstallMode:
    if args.command == "link":
        return InstallMode.SYMLINK
    if getattr(args, "workspace", False):
        return InstallMode.WORKSPACE
    if getattr(args, "link", False):
        return InstallMode.LINK_DEP
    return InstallMode.FILE


async def run_command(args: argparse.Namespace, config: YalcConfig) -> int:
    """Dispatch parsed arguments to a command.

    Returns:
        Process exit code.
    """
    cwd = Path.cwd()

    if args.command in ("publish", "push"):
        await publish_package(
            PublishOptions(
                working_dir=args.directory or cwd,
                push=args.command == "push" or args.push,
                replace=args.replace,
                update=args.update,
                private=args.private,
                scripts=args.scripts,
                signature=args.signature,
                changed=args.changed,
                content=args.content,
                dev_mod=args.dev_mod,
                workspace_resolve=args.workspace_resolve,
            ),
            config=config,
        )
        return 0

    if args.command in ("add", "link"):
        await add_packages(
            args.packages,
            AddOptions(
                working_dir=cwd,
                mode=_add_mode(args),
                pure=args.pure,
                dev=args.dev,
                replace=args.replace,
                restore=args.restore,
                update=args.update,
            ),
            config=config,
        )
        return 0

    if args.command in ("update", "restore"):
        await update_packages(
            args.packages,
            UpdateOptions(
                working_dir=cwd,
                replace=args.replace,
                update=args.update,
                restore=args.command == "restore",
            ),
            config=config,
        )
        return 0

    if args.command in ("remove", "retreat"):
        await remove_packages(
            args.packages,
            RemoveOptions(working_dir=cwd, retreat=args.command == "retreat", all=args.all),
            config=config,
        )
        return 0

    if args.command == "installations":
        registry = config.registry()
        if args.action == "show":
            for name, paths in registry.show(args.packages).items():
                print(name)
                for path in paths:
                    print(f"  {path}")
        else:
            registry.clean(args.packages, dry_run=args.dry)
        return 0

    if args.command == "check":
        found = check_manifest(cwd, commit=args.commit)
        return 1 if found else 0

    if args.command == "dir":
        print(config.store_dir)
        return 0

    logger.error(f"Unknown command: {args.command}")
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    setup_logging(level=level, json_format=args.log_json)

    config = YalcConfig.from_env(args.store_folder)
    try:
        return asyncio.run(run_command(args, config))
    except YalcError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
