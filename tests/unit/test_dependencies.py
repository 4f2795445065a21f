import subprocess as real_subprocess
from types import SimpleNamespace

from tests.helpers.autologin_imports import dependencies


def fake_subprocess(run):
    return SimpleNamespace(
        run=run,
        CalledProcessError=real_subprocess.CalledProcessError,
        TimeoutExpired=real_subprocess.TimeoutExpired,
    )


def test_verify_dependencies_handles_success(monkeypatch):
    commands = []

    def fake_run(command, capture_output, text, check, timeout):
        commands.append(command)
        return real_subprocess.CompletedProcess(command, 0)

    monkeypatch.setattr(dependencies, "subprocess", fake_subprocess(fake_run))
    monkeypatch.setattr(dependencies, "chromium_installed", lambda: True)

    results = dependencies.verify_dependencies()

    assert results == {"playwright": True, "chromium": True}
    assert commands == [dependencies.DRIVER_COMMAND]


def test_verify_dependencies_handles_failure(monkeypatch):
    checked = []

    def fake_run(command, capture_output, text, check, timeout):
        raise real_subprocess.CalledProcessError(returncode=1, cmd=command)

    monkeypatch.setattr(dependencies, "subprocess", fake_subprocess(fake_run))
    monkeypatch.setattr(dependencies, "chromium_installed", lambda: checked.append(True) or True)

    results = dependencies.verify_dependencies()

    assert results == {"playwright": False, "chromium": False}
    assert checked == []


def test_driver_available_handles_missing_executable(monkeypatch):
    def fake_run(command, capture_output, text, check, timeout):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(dependencies, "subprocess", fake_subprocess(fake_run))

    assert dependencies.driver_available(["missing-binary"]) is False
