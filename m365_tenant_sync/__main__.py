"""
M365 Tenant Sync — Command-line entry point

Usage:
    python -m m365_tenant_sync users sync users.xlsx                 # default profile
    python -m m365_tenant_sync users sync users.xlsx --dry-run       # plan only
    python -m m365_tenant_sync licenses assign licenses.xlsx --profile contoso-prod
    python -m m365_tenant_sync licenses export --format csv
    python -m m365_tenant_sync settings set --template Group.Unified \\
        --name EnableGroupCreation --value false

Profile management:
    python -m m365_tenant_sync profile add <name> --tenant-id ... --client-id ...
    python -m m365_tenant_sync profile list
    python -m m365_tenant_sync profile remove <name>
    python -m m365_tenant_sync profile set-default <name>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from . import __version__
from .config import (
    EngineConfig,
    CertificateAuth,
    SecretAuth,
    DelegatedAuth,
    OutputConfig,
    OUTPUT_FORMATS,
    REQUIRED_PERMISSIONS,
)
from .safety.guardian import SafetyGuardian
from .auth.authenticator import Authenticator, AuthenticationError
from .graph.client import GraphClient, GraphAPIError
from .directory import DirectoryService, DirectorySettingError, apply_directory_setting
from .sync import BatchReport, UserSyncRunner
from .licenses import LicenseAssignmentRunner, collect_license_table
from .tabular import InputFileNotFound, Table, read_table
from .reporting import (
    versioned_output_path,
    export_outcomes_xlsx,
    export_outcomes_csv,
    export_table_xlsx,
    export_table_csv,
    export_run_summary_json,
)
from .profiles import AUTH_MODES, ProfileStore, TenantProfile, resolve_profile

logger = logging.getLogger("m365_tenant_sync")

OUTPUT_PREFIXES = {
    "users": "user_sync",
    "licenses-assign": "license_assignment",
    "licenses-export": "license_export",
    "settings": "directory_setting",
}


class ConfigurationError(Exception):
    """No usable tenant credentials could be assembled."""
    pass


# ---------------------------------------------------------------------------
# Profile management sub-commands
# ---------------------------------------------------------------------------

def _cmd_profile(args: argparse.Namespace) -> int:
    """Handle `profile add|list|remove|set-default` sub-commands."""
    action = args.profile_action

    if action == "list":
        return _profile_list()
    elif action == "add":
        return _profile_add(args)
    elif action == "remove":
        return _profile_remove(args)
    elif action == "set-default":
        return _profile_set_default(args)
    print("Usage: python -m m365_tenant_sync profile {add|list|remove|set-default}")
    return 0


def _profile_list() -> int:
    store = ProfileStore.load()
    profiles = store.list_profiles()
    if not profiles:
        print("No profiles configured. Add one with:\n")
        print("  python -m m365_tenant_sync profile add <name> \\")
        print("    --tenant-id <GUID> --client-id <GUID> --cert-path ./base64.txt")
        return 0

    print(f"\n  {'Name':<20s} {'Tenant ID':<38s} {'Client ID':<38s} {'Auth':<12s} {'Default'}")
    print(f"  {'─'*20} {'─'*38} {'─'*38} {'─'*12} {'─'*7}")
    for p in profiles:
        default_marker = "  ✓" if p.name == store.default_profile else ""
        display = p.tenant_display_name
        name_col = p.name + (f" ({display})" if display else "")
        print(f"  {name_col:<20s} {p.tenant_id:<38s} {p.client_id:<38s} {p.auth_mode:<12s}{default_marker}")
    print()
    return 0


def _profile_add(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    name = args.profile_name
    if store.get(name):
        print(f"  Profile '{name}' already exists. It will be overwritten.")

    profile = TenantProfile(
        name=name,
        tenant_id=args.tenant_id,
        client_id=args.client_id,
        auth_mode=args.auth_mode,
        cert_path=args.cert_path or "./base64.txt",
        tenant_display_name=args.display_name or "",
        notes=args.notes or "",
    )
    set_as_default = args.set_default or not store.profiles
    store.add(profile, set_default=set_as_default)
    print(f"  ✅ Profile '{name}' saved.")
    if set_as_default:
        print("  ✅ Set as default profile.")
    return 0


def _profile_remove(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    if store.remove(args.profile_name):
        print(f"  ✅ Profile '{args.profile_name}' removed.")
        return 0
    print(f"  ❌ Profile '{args.profile_name}' not found.")
    return 1


def _profile_set_default(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    if store.set_default(args.profile_name):
        print(f"  ✅ Default profile set to '{args.profile_name}'.")
        return 0
    print(f"  ❌ Profile '{args.profile_name}' not found.")
    return 1


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _common_options() -> argparse.ArgumentParser:
    """Connection and output options shared by every tenant command."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--profile", "-p", default=None,
                        help="Tenant profile name (run 'profile list' to see available)")
    common.add_argument("--config", "-c", type=Path, help="Path to JSON configuration file")
    common.add_argument("--tenant-id", default=None, help="Tenant ID (overrides profile)")
    common.add_argument("--client-id", default=None, help="Client ID (overrides profile)")
    common.add_argument("--cert-path", type=Path, help="Base64-encoded PFX (overrides profile)")
    auth = common.add_mutually_exclusive_group()
    auth.add_argument("--delegated", action="store_true",
                      help="Use delegated (device-code) authentication")
    auth.add_argument("--secret", action="store_true",
                      help="Use client-secret authentication (M365_SYNC_CLIENT_SECRET)")
    common.add_argument("--output-dir", "-o", type=Path, default=None,
                        help="Output directory (default: ./m365_sync_output)")
    common.add_argument("--format", choices=OUTPUT_FORMATS, default=None,
                        help="Result sheet format (default: xlsx)")
    common.add_argument("--dry-run", action="store_true",
                        help="Plan writes without sending them")
    common.add_argument("--pause-every", type=int, default=None,
                        help="Pause after this many rows (0 disables)")
    common.add_argument("--pause-seconds", type=float, default=None,
                        help="Length of the rate-limit pause in seconds")
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="m365_tenant_sync",
        description="Spreadsheet-driven Microsoft 365 tenant administration",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Commands")
    common = _common_options()

    # --- users ---
    users = subparsers.add_parser("users", help="User provisioning")
    users_sub = users.add_subparsers(dest="users_action")
    sync_p = users_sub.add_parser("sync", parents=[common],
                                  help="Create missing users and update changed attributes")
    sync_p.add_argument("input", type=Path, help="Input sheet (.xlsx or .csv)")

    # --- licenses ---
    lic = subparsers.add_parser("licenses", help="License assignment and export")
    lic_sub = lic.add_subparsers(dest="licenses_action")
    assign_p = lic_sub.add_parser("assign", parents=[common],
                                  help="Assign the licenses listed per user")
    assign_p.add_argument("input", type=Path, help="Input sheet (.xlsx or .csv)")
    lic_sub.add_parser("export", parents=[common], help="Export users and their licenses")

    # --- settings ---
    settings = subparsers.add_parser("settings", help="Directory settings")
    settings_sub = settings.add_subparsers(dest="settings_action")
    set_p = settings_sub.add_parser("set", parents=[common], help="Set a directory setting value")
    set_p.add_argument("--template", required=True, help="Setting template, e.g. Group.Unified")
    set_p.add_argument("--name", required=True, help="Setting name, e.g. EnableGroupCreation")
    set_p.add_argument("--value", required=True, help="New value, e.g. false")

    # --- profile ---
    prof_parser = subparsers.add_parser("profile", help="Manage tenant profiles")
    prof_sub = prof_parser.add_subparsers(dest="profile_action", help="Profile actions")

    add_p = prof_sub.add_parser("add", help="Add or update a tenant profile")
    add_p.add_argument("profile_name", help="Short name for the profile (e.g. 'contoso-prod')")
    add_p.add_argument("--tenant-id", required=True, help="Entra tenant ID (GUID)")
    add_p.add_argument("--client-id", required=True, help="App registration client ID (GUID)")
    add_p.add_argument("--auth-mode", choices=AUTH_MODES, default="certificate",
                       help="Authentication mode (default: certificate)")
    add_p.add_argument("--cert-path", default="./base64.txt",
                       help="Path to base64-encoded PFX (default: ./base64.txt)")
    add_p.add_argument("--display-name", help="Friendly tenant display name")
    add_p.add_argument("--notes", help="Optional admin notes")
    add_p.add_argument("--set-default", action="store_true", help="Set as default profile")

    prof_sub.add_parser("list", help="List all configured profiles")

    rm_p = prof_sub.add_parser("remove", help="Remove a profile")
    rm_p.add_argument("profile_name", help="Name of the profile to remove")

    sd_p = prof_sub.add_parser("set-default", help="Set the default profile")
    sd_p.add_argument("profile_name", help="Name of the profile to set as default")

    return parser


def command_key(args: argparse.Namespace) -> Optional[str]:
    """Flatten the sub-command pair into one key, or None if incomplete."""
    if args.command == "users" and getattr(args, "users_action", None) == "sync":
        return "users"
    if args.command == "licenses" and getattr(args, "licenses_action", None) in ("assign", "export"):
        return f"licenses-{args.licenses_action}"
    if args.command == "settings" and getattr(args, "settings_action", None) == "set":
        return "settings"
    return None


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build the run configuration from config file, profile and CLI flags."""
    if args.config:
        config = EngineConfig.from_file(args.config)
    else:
        config = EngineConfig()

    profile = None
    if args.profile:
        profile = resolve_profile(args.profile)
        if not profile:
            raise ConfigurationError(
                f"Profile '{args.profile}' not found. Use 'profile list' to see available profiles."
            )
    elif not args.config and not args.tenant_id:
        profile = resolve_profile()

    # Auth mode: CLI flag > profile > config file
    if args.delegated:
        mode = "delegated"
    elif args.secret:
        mode = "secret"
    elif profile:
        mode = profile.auth_mode
    else:
        mode = config.auth.mode

    file_tenant, file_client = config.auth.identity()
    if profile:
        tenant_id = args.tenant_id or profile.tenant_id
        client_id = args.client_id or profile.client_id
    else:
        tenant_id = args.tenant_id or file_tenant
        client_id = args.client_id or file_client

    if not tenant_id or not client_id:
        raise ConfigurationError(
            "No tenant credentials found. Use --profile <name>, "
            "--tenant-id X --client-id Y, or --config config.json"
        )

    config.auth.mode = mode
    if mode == "certificate":
        if args.cert_path:
            cert_path = str(args.cert_path)
        elif profile:
            cert_path = profile.resolve_cert_path()
        elif config.auth.certificate:
            cert_path = config.auth.certificate.certificate_path
        else:
            cert_path = "./base64.txt"
        password = config.auth.certificate.certificate_password if config.auth.certificate else ""
        config.auth.certificate = CertificateAuth(
            tenant_id=tenant_id,
            client_id=client_id,
            certificate_path=cert_path,
            certificate_password=password,
        )
    elif mode == "secret":
        secret = config.auth.secret.client_secret if config.auth.secret else ""
        config.auth.secret = SecretAuth(tenant_id=tenant_id, client_id=client_id, client_secret=secret)
    else:
        scopes = config.auth.delegated.scopes if config.auth.delegated else None
        config.auth.delegated = DelegatedAuth(tenant_id=tenant_id, client_id=client_id)
        if scopes:
            config.auth.delegated.scopes = scopes

    if args.output_dir or args.format:
        config.output = OutputConfig(
            base_dir=str(args.output_dir) if args.output_dir else config.output.base_dir,
            format=args.format or config.output.format,
            write_summary=config.output.write_summary,
        )
    if args.dry_run:
        config.sync.dry_run = True
    if args.pause_every is not None:
        config.sync.pause_every = args.pause_every
    if args.pause_seconds is not None:
        config.sync.pause_seconds = args.pause_seconds
    if args.verbose:
        config.verbose = True

    return config


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

def _sheet_path(config: EngineConfig, prefix: str) -> Path:
    """Next free slot for the sheet and, when one is written, its JSON summary."""
    companions = ("json",) if config.output.write_summary else ()
    return versioned_output_path(
        config.output.output_dir, prefix, config.output.format, companions=companions
    )


def write_outcomes(report: BatchReport, config: EngineConfig, prefix: str) -> Path:
    path = _sheet_path(config, prefix)
    if config.output.format == "csv":
        return export_outcomes_csv(report, path)
    return export_outcomes_xlsx(report, path)


def write_table(table: Table, config: EngineConfig, prefix: str) -> Path:
    path = _sheet_path(config, prefix)
    if config.output.format == "csv":
        return export_table_csv(table, path)
    return export_table_xlsx(table, path, title="Licenses")


def print_counts(report: BatchReport) -> None:
    for action, count in report.counts().items():
        print(f"  {action:10s} {count}")


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------

async def run_command(
    key: str,
    args: argparse.Namespace,
    config: EngineConfig,
    directory: DirectoryService,
    table: Optional[Table],
    run_id: str,
) -> int:
    """Execute one tenant command against an authenticated directory."""
    prefix = OUTPUT_PREFIXES[key]
    audit = directory.graph.guardian.get_audit_record
    report: Optional[BatchReport] = None
    extra: dict = {}
    sheet: Optional[Path] = None

    if key == "users":
        report = await UserSyncRunner(directory, config.sync).run(table)
        sheet = write_outcomes(report, config, prefix)
    elif key == "licenses-assign":
        report = await LicenseAssignmentRunner(directory, config.sync).run(table)
        sheet = write_outcomes(report, config, prefix)
    elif key == "licenses-export":
        export = await collect_license_table(directory)
        sheet = write_table(export, config, prefix)
        extra["users_exported"] = len(export)
    elif key == "settings":
        try:
            change = await apply_directory_setting(directory, args.template, args.name, args.value)
        except DirectorySettingError as e:
            print(f"\n❌ {e}")
            return 1
        print(f"\n  {change.action.value}: {change.comment}")
        extra["setting"] = {"template": args.template, "name": args.name, **change.to_dict()}

    if report is not None:
        print("\n" + "=" * 70)
        print(" SUMMARY")
        print("=" * 70)
        print(f"  Rows:      {len(report)}")
        print_counts(report)
    if sheet is not None:
        print(f"\n  📊 Results: {sheet}")

    if config.output.write_summary:
        if sheet is not None:
            summary_path = sheet.with_suffix(".json")
        else:
            summary_path = versioned_output_path(config.output.output_dir, prefix, "json")
        extra["graph"] = directory.graph.get_stats()
        export_run_summary_json(summary_path, run_id, key, report=report, audit=audit(), extra=extra)
        print(f"  📄 Summary: {summary_path}")
    return 0


async def main_async(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "profile":
        return _cmd_profile(args)

    key = command_key(args)
    if key is None:
        parser.print_help()
        return 0

    try:
        config = build_config(args)
    except (ConfigurationError, ValueError, OSError) as e:
        print(f"\n❌ {e}")
        return 1
    setup_logging(config.verbose)

    run_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:8]
    print("=" * 70)
    print(f" M365 Tenant Sync v{__version__} — {key}")
    print(f" Mode: {'DRY-RUN (no writes sent)' if config.sync.dry_run else 'WRITE'}")
    print("=" * 70)
    print(f"\n📋 Run ID: {run_id}")
    print(f"📂 Output: {config.output.output_dir.resolve()}")

    # Input is read before authenticating so a bad path fails fast
    table = None
    if key in ("users", "licenses-assign"):
        try:
            table = read_table(args.input)
        except InputFileNotFound as e:
            print(f"\n❌ {e}")
            return 1
        print(f"📥 Input:  {args.input} ({len(table)} rows)")

    print("\n🔐 Authenticating...")
    try:
        token = Authenticator(config.auth).acquire_token()
    except AuthenticationError as e:
        print(f"❌ Authentication failed: {e}")
        print("   The app registration needs these Graph application permissions:")
        for permission, purpose in REQUIRED_PERMISSIONS.items():
            print(f"     {permission:<26s} {purpose}")
        return 1
    print("✅ Authentication successful.\n")

    guardian = SafetyGuardian(dry_run=config.sync.dry_run)
    try:
        async with GraphClient(access_token=token, guardian=guardian) as client:
            return await run_command(key, args, config, DirectoryService(client), table, run_id)
    except GraphAPIError as e:
        print(f"\n❌ {e}")
        return 1


def main(argv: Optional[list[str]] = None) -> None:
    """Synchronous entry point for `python -m m365_tenant_sync`."""
    sys.exit(asyncio.run(main_async(argv)))


if __name__ == "__main__":
    main()
