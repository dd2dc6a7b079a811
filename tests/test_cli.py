"""Tests for the command-line entry point."""
import json

import run_dashboard


def test_sample_run_writes_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "dashboard"

    exit_code = run_dashboard.main(["--sample", "--output-dir", str(out_dir), "--log-level", "WARNING"])

    assert exit_code == 0
    payload = json.loads((out_dir / "dashboard_data.json").read_text())
    assert len(payload["weeklyRevenue"]) == 12


def test_missing_token_exits_with_auth_code(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in run_dashboard.TOKEN_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    assert run_dashboard.main(["--no-save"]) == 2


def test_resolve_token_order(monkeypatch):
    monkeypatch.delenv("CLIO_ACCESS_TOKEN", raising=False)
    monkeypatch.setenv("CLIO_API_TOKEN", "from-env")
    monkeypatch.setenv("CLIO_API_KEY", "other")

    assert run_dashboard.resolve_token("explicit") == "explicit"
    assert run_dashboard.resolve_token() == "from-env"


def test_invalid_config_file_exits_with_failure(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config_path = tmp_path / "dashboard.yml"
    config_path.write_text("duration_unit: fortnights\n")

    assert run_dashboard.main(["--sample", "--no-save", "--config", str(config_path)]) == 1
