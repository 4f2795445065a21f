import threading

import pytest

from tests.helpers.autologin_imports import (
    AppConfig,
    LoginFlow,
    LoginFormNotFoundError,
    SiteConfigurationStore,
    TimeoutConfig,
    VerificationOutcome,
    VerificationResult,
    flow_module,
)
from tests.helpers.fake_browser import FakeClock, FakeSession
from tests.helpers.pages import DASHBOARD, INVALID_CREDENTIALS, NO_FORM, SIMPLE_LOGIN, USERNAME_STEP, PASSWORD_STEP


def make_config(tmp_path, **overrides):
    values = dict(
        target_url="https://app.example.test/login",
        username="alice",
        password="S3cr3t-Passw0rd",
        report_path=tmp_path / "login_report.json",
    )
    values.update(overrides)
    return AppConfig(**values)


def navigate_to_dashboard(session):
    session.url = "https://app.example.test/dashboard"
    session.set_html(DASHBOARD)


def test_successful_login_produces_complete_report(tmp_path):
    session = FakeSession(SIMPLE_LOGIN)
    session.on_click["login-button"] = navigate_to_dashboard

    report = LoginFlow(make_config(tmp_path), clock=FakeClock()).run(session)

    assert report.outcome == "success"
    assert report.succeeded
    assert report.strategy == "fast_path"
    assert report.detected_fields["username"] == "input[id=username]"
    assert report.entry["submit_method"] == "click"
    assert report.transition.startswith("URL:")
    assert report.verification["decided_by"] == "url_changed"
    assert report.final_url == "https://app.example.test/dashboard"
    assert set(report.durations_ms) == {"detection", "entry", "verification"}
    assert report.screenshot is None


def test_failed_login_captures_screenshot(tmp_path):
    session = FakeSession(SIMPLE_LOGIN)
    session.on_click["login-button"] = lambda page: page.set_html(INVALID_CREDENTIALS)
    config = make_config(tmp_path, screenshot_dir=tmp_path / "shots")

    report = LoginFlow(config, clock=FakeClock()).run(session)

    assert report.outcome == "failure"
    assert report.transition == "Page content changed"
    assert report.screenshot is not None
    assert session.screenshots == [report.screenshot]
    assert report.screenshot.startswith(str(tmp_path / "shots"))
    assert (tmp_path / "shots").is_dir()


def test_missing_form_is_reported_or_raised(tmp_path):
    config = make_config(tmp_path)

    report = LoginFlow(config, clock=FakeClock()).run(FakeSession(NO_FORM))
    assert report.outcome == "form_not_found"
    assert report.entry is None

    with pytest.raises(LoginFormNotFoundError):
        LoginFlow(config, clock=FakeClock()).run(FakeSession(NO_FORM), require_form=True)


def test_progressive_form_is_filled(tmp_path):
    session = FakeSession(USERNAME_STEP)
    session.on_type["username"] = lambda page: page.append_html("form", PASSWORD_STEP)
    session.on_click["next"] = navigate_to_dashboard

    report = LoginFlow(make_config(tmp_path), clock=FakeClock()).run(session)

    assert report.progressive is True
    assert report.strategy == "partial"
    assert report.entry["filled"] == ["username", "password"]
    assert report.outcome == "success"


def test_entry_failure_is_reported(tmp_path):
    session = FakeSession(USERNAME_STEP)

    report = LoginFlow(make_config(tmp_path), clock=FakeClock()).run(session)

    assert report.outcome == "entry_failed"
    assert report.entry["failure_reason"] == "password field did not appear"
    assert report.verification is None


def test_lost_session_ends_the_attempt(tmp_path):
    session = FakeSession(SIMPLE_LOGIN)
    session.on_click["login-button"] = lambda page: setattr(page, "lost", True)

    report = LoginFlow(make_config(tmp_path), clock=FakeClock()).run(session)

    assert report.outcome == "session_lost"
    assert report.errors and "closed" in report.errors[0]


def test_load_site_store_reads_configured_file(tmp_path):
    path = tmp_path / "sites.json"
    path.write_text('[{"url_pattern": "portal.example.test", "username_selectors": ["#u"]}]', encoding="utf-8")

    store = flow_module.load_site_store(make_config(tmp_path, site_config_path=path))

    assert store.lookup("https://portal.example.test/login").username_selectors == ("#u",)
    assert isinstance(flow_module.load_site_store(make_config(tmp_path)), SiteConfigurationStore)


class WaitingVerifier:
    """Blocks until verification is cancelled, then reports an interruption."""

    def __init__(self):
        self.fired = None

    def record_initial_state(self, session):
        return session.current_url

    def verify_success(self, session, *, initial_url=None, site=None, cancel=None):
        self.fired = cancel.wait(2.0)
        return VerificationResult(VerificationOutcome.UNCERTAIN, "interrupted", interrupted=True)


def test_external_timeout_stops_verification_without_touching_caller_event(tmp_path):
    session = FakeSession(SIMPLE_LOGIN)
    caller_cancel = threading.Event()
    verifier = WaitingVerifier()
    config = make_config(tmp_path, timeouts=TimeoutConfig(external_timeout_seconds=0.05))

    report = LoginFlow(config, verifier=verifier, clock=FakeClock()).run(session, caller_cancel)

    assert verifier.fired is True
    assert report.outcome == "uncertain"
    assert not caller_cancel.is_set()
