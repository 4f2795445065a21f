import json

import autologin.core.config as config_module  # type: ignore[import]
import pytest

from tests.helpers.autologin_imports import LoginAttemptReport, SessionLostError, cli


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *_args, **_kwargs: False)
    for key in ["LOGIN_USERNAME", "LOGIN_PASSWORD", "LOGIN_DOMAIN", "HEADLESS", "AMBIGUOUS_POLICY"]:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(cli, "verify_dependencies", lambda: {"playwright": True, "chromium": True})


def arguments(tmp_path, *extra):
    return ["-u", "https://app.example.test/login", "--report", str(tmp_path / "report.json"), *extra]


def fake_run_login(outcome, calls=None):
    def run(config):
        if calls is not None:
            calls.append(config)
        return LoginAttemptReport(target_url=config.target_url, outcome=outcome, strategy="fast_path")

    return run


@pytest.mark.parametrize(
    "outcome, expected",
    [("success", 0), ("failure", 1), ("uncertain", 1), ("entry_failed", 1), ("form_not_found", 2)],
)
def test_exit_codes_follow_outcome(monkeypatch, tmp_path, outcome, expected):
    monkeypatch.setattr(cli, "run_login", fake_run_login(outcome))

    code = cli.run_cli(arguments(tmp_path, "--username", "alice", "--password", "secret"))

    assert code == expected
    saved = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert saved["outcome"] == outcome


def test_missing_credentials_exit_with_prerequisite_code(monkeypatch, tmp_path, capsys):
    calls = []
    monkeypatch.setattr(cli, "run_login", fake_run_login("success", calls))

    code = cli.run_cli(arguments(tmp_path))

    assert code == 3
    assert calls == []
    assert "[!]" in capsys.readouterr().out


def test_missing_browser_exits_with_prerequisite_code(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(cli, "verify_dependencies", lambda: {"playwright": True, "chromium": False})
    monkeypatch.setattr(cli, "run_login", fake_run_login("success"))

    code = cli.run_cli(arguments(tmp_path, "--username", "alice", "--password", "secret"))

    assert code == 3
    assert "playwright install chromium" in capsys.readouterr().out


def test_cli_arguments_reach_configuration(monkeypatch, tmp_path):
    calls = []
    monkeypatch.setattr(cli, "run_login", fake_run_login("success", calls))

    cli.run_cli(
        arguments(
            tmp_path,
            "--username", "alice",
            "--password", "secret",
            "--domain", "CORP",
            "--headless",
            "--screenshot-dir", str(tmp_path / "shots"),
        )
    )

    config = calls[0]
    assert config.domain == "CORP"
    assert config.headless is True
    assert config.screenshot_dir == (tmp_path / "shots").resolve()


def test_browser_failure_is_a_login_failure(monkeypatch, tmp_path):
    def broken(config):
        raise SessionLostError("browser has been closed")

    monkeypatch.setattr(cli, "run_login", broken)

    assert cli.run_cli(arguments(tmp_path, "--username", "alice", "--password", "secret")) == 1


def test_summary_lists_fields_and_probes(capsys):
    report = LoginAttemptReport(
        target_url="https://app.example.test/login",
        strategy="heuristic",
        detected_fields={"username": "input[id=user]"},
        entry={"state": "done", "submit_method": "enter"},
        verification={"probes": [{"probe": "url_changed", "outcome": True, "confidence": 0.9}]},
        outcome="success",
    )

    cli.print_summary(report)
    output = capsys.readouterr().out

    assert "'heuristic'" in output
    assert "username: input[id=user]" in output
    assert "url_changed: True (0.9)" in output
    assert "[+] Resultado: success" in output


def test_dependency_status_names_the_install_command_for_each_gap(monkeypatch, capsys):
    monkeypatch.setattr(cli, "verify_dependencies", lambda: {"playwright": False, "chromium": False})

    assert cli.print_dependency_status() is False
    output = capsys.readouterr().out

    assert "[!] playwright ausente; execute 'pip install playwright'" in output
    assert "[!] chromium ausente; execute 'playwright install chromium'" in output
    assert "[+]" not in output
