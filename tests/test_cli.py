import asyncio
import json
from types import SimpleNamespace

import pytest

from m365_tenant_sync.__main__ import (
    ConfigurationError,
    build_config,
    build_parser,
    command_key,
    main_async,
    run_command,
)
from m365_tenant_sync.profiles import ProfileStore
from m365_tenant_sync.safety.guardian import SafetyGuardian
from m365_tenant_sync.tabular import Table

from conftest import FakeDirectory


def parse(*argv):
    return build_parser().parse_args(list(argv))


def attach_graph(directory):
    directory.graph = SimpleNamespace(
        guardian=SafetyGuardian(),
        get_stats=lambda: {"total_requests": 0, "throttle_events": 0},
    )
    return directory


@pytest.mark.parametrize("argv, key", [
    (["users", "sync", "in.xlsx"], "users"),
    (["licenses", "assign", "in.csv"], "licenses-assign"),
    (["licenses", "export"], "licenses-export"),
    (["settings", "set", "--template", "Group.Unified", "--name", "X", "--value", "y"], "settings"),
    (["users"], None),
])
def test_command_key(argv, key):
    assert command_key(parse(*argv)) == key


def test_profile_add_and_list(profile_home, capsys):
    code = asyncio.run(main_async([
        "profile", "add", "contoso", "--tenant-id", "tenant-1", "--client-id", "client-1",
        "--auth-mode", "secret",
    ]))
    assert code == 0

    store = ProfileStore.load()
    assert store.default_profile == "contoso"
    assert store.get("CONTOSO").auth_mode == "secret"
    assert (profile_home / "profiles.json").exists()

    asyncio.run(main_async(["profile", "list"]))
    out = capsys.readouterr().out
    assert "contoso" in out and "tenant-1" in out


def test_profile_remove_unknown_fails(profile_home):
    assert asyncio.run(main_async(["profile", "remove", "nope"])) == 1


def test_build_config_from_default_profile(profile_home, tmp_path):
    asyncio.run(main_async(["profile", "add", "contoso", "--tenant-id", "t", "--client-id", "c",
                            "--cert-path", str(tmp_path / "cert.txt")]))

    config = build_config(parse("users", "sync", "in.xlsx", "--dry-run", "--pause-every", "10"))

    assert config.auth.mode == "certificate"
    assert config.auth.certificate.tenant_id == "t"
    assert config.auth.certificate.certificate_path == str(tmp_path / "cert.txt")
    assert config.sync.dry_run is True
    assert config.sync.pause_every == 10


def test_cli_flags_override_profile(profile_home):
    asyncio.run(main_async(["profile", "add", "contoso", "--tenant-id", "t", "--client-id", "c"]))

    config = build_config(parse("licenses", "export", "--profile", "contoso", "--delegated",
                                "--client-id", "other", "--format", "csv"))

    assert config.auth.mode == "delegated"
    assert config.auth.delegated.client_id == "other"
    assert config.auth.delegated.tenant_id == "t"
    assert config.output.format == "csv"


def test_build_config_from_file(profile_home, tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "auth": {"mode": "secret", "secret": {"tenant_id": "t", "client_id": "c"}},
        "sync": {"pause_every": 25, "pause_seconds": 1.5},
        "output": {"base_dir": str(tmp_path / "out"), "format": "csv"},
    }), encoding="utf-8")

    config = build_config(parse("users", "sync", "in.xlsx", "--config", str(path)))

    assert config.auth.mode == "secret"
    assert config.auth.secret.tenant_id == "t"
    assert config.sync.pause_every == 25
    assert config.sync.pause_seconds == 1.5
    assert config.output.output_dir == tmp_path / "out"


def test_missing_credentials_and_unknown_profile(profile_home):
    with pytest.raises(ConfigurationError):
        build_config(parse("users", "sync", "in.xlsx"))
    with pytest.raises(ConfigurationError):
        build_config(parse("users", "sync", "in.xlsx", "--profile", "ghost"))


def test_missing_input_file_exits_before_auth(profile_home, tmp_path, capsys):
    code = asyncio.run(main_async([
        "users", "sync", str(tmp_path / "missing.xlsx"),
        "--tenant-id", "t", "--client-id", "c", "--secret", "--output-dir", str(tmp_path / "out"),
    ]))

    assert code == 1
    out = capsys.readouterr().out
    assert "Input file not found" in out
    assert "Authenticating" not in out


def test_run_command_writes_results_and_summary(profile_home, tmp_path):
    args = parse("users", "sync", "in.xlsx", "--tenant-id", "t", "--client-id", "c",
                 "--secret", "--output-dir", str(tmp_path), "--pause-every", "0")
    config = build_config(args)
    directory = attach_graph(FakeDirectory())
    table = Table(headers=["UPN", "Display Name", "First Name", "Last Name", "Alias", "Password"], rows=[
        {"UPN": "ada@contoso.com", "Display Name": "Ada", "First Name": "Ada",
         "Last Name": "Lovelace", "Alias": "ada", "Password": "S3cret!"},
        {"UPN": "bob@contoso.com", "Display Name": "", "First Name": "", "Last Name": "",
         "Alias": "", "Password": ""},
    ])

    code = asyncio.run(run_command("users", args, config, directory, table, "run-1"))

    assert code == 0
    sheets = sorted(tmp_path.glob("user_sync_*.xlsx"))
    summaries = sorted(tmp_path.glob("user_sync_*.json"))
    assert len(sheets) == 1 and len(summaries) == 1
    summary = json.loads(summaries[0].read_text(encoding="utf-8"))
    assert summary["counts"]["Created"] == 1
    assert summary["counts"]["Skipped"] == 1
    assert summary["audit"]["write_guardian"]["status"] == "CLEAN"


def test_run_command_settings_error_returns_1(profile_home, tmp_path):
    args = parse("settings", "set", "--template", "Group.Unified", "--name", "EnableGroupCreation",
                 "--value", "false", "--tenant-id", "t", "--client-id", "c", "--secret",
                 "--output-dir", str(tmp_path))
    config = build_config(args)
    directory = attach_graph(FakeDirectory())

    assert asyncio.run(run_command("settings", args, config, directory, None, "run-1")) == 1


def test_consecutive_runs_in_different_formats_keep_both_summaries(profile_home, tmp_path):
    table = Table(headers=["UPN"], rows=[{"UPN": ""}])
    for run_id, fmt in (("run-csv", "csv"), ("run-xlsx", "xlsx")):
        args = parse("users", "sync", "in.xlsx", "--tenant-id", "t", "--client-id", "c",
                     "--secret", "--output-dir", str(tmp_path), "--format", fmt)
        config = build_config(args)
        asyncio.run(run_command("users", args, config, attach_graph(FakeDirectory()), table, run_id))

    summaries = sorted(tmp_path.glob("user_sync_*.json"))
    run_ids = [json.loads(p.read_text(encoding="utf-8"))["metadata"]["run_id"] for p in summaries]
    assert run_ids == ["run-csv", "run-xlsx"]
    assert summaries[1].with_suffix(".xlsx").exists()
