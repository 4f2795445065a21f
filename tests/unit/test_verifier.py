import threading

import pytest

from tests.helpers.autologin_imports import (
    PROBE_WEIGHTS,
    AmbiguousPolicy,
    LoginVerificationConfig,
    LoginVerifier,
    Probe,
    SiteLoginConfiguration,
    TimeoutConfig,
    VerificationOutcome,
    is_actual_login_error,
    is_critical_login_error,
    looks_like_login_error_url,
    visible_text,
)
from tests.helpers.fake_browser import FakeClock, FakeSession
from tests.helpers.pages import DASHBOARD, INVALID_CREDENTIALS, SIMPLE_LOGIN

LOGIN_URL = "https://app.example.test/login"


def make_verifier(clock, **config):
    return LoginVerifier(LoginVerificationConfig(**config), TimeoutConfig(), clock=clock)


def test_weights_table_is_central_and_read_only():
    assert PROBE_WEIGHTS[Probe.URL_CHANGED].when_true == 0.90
    assert PROBE_WEIGHTS[Probe.URL_CHANGED].when_false == 0.10
    assert PROBE_WEIGHTS[Probe.FORM_GONE].when_true == 0.80
    assert PROBE_WEIGHTS[Probe.FORM_GONE].when_false == 0.20
    assert PROBE_WEIGHTS[Probe.SUCCESS_MARKERS].when_true == 0.85
    assert PROBE_WEIGHTS[Probe.SUCCESS_MARKERS].when_false == 0.15
    assert PROBE_WEIGHTS[Probe.ERROR_MARKERS].when_true == 0.95
    assert PROBE_WEIGHTS[Probe.ERROR_MARKERS].when_false == 0.10

    with pytest.raises(TypeError):
        PROBE_WEIGHTS[Probe.URL_CHANGED] = None


def test_url_change_short_circuits_to_success():
    clock = FakeClock()
    session = FakeSession(DASHBOARD, url="https://app.example.test/dashboard")
    verifier = make_verifier(clock)

    result = verifier.verify_success(session, initial_url=LOGIN_URL)

    assert result.succeeded
    assert result.decided_by == "url_changed"
    assert [probe.probe for probe in result.probes] == ["url_changed"]
    assert result.probes[0].confidence == 0.90
    assert result.elapsed_seconds < 1.0
    assert session.queries == []


def test_url_change_during_polling_is_picked_up():
    clock = FakeClock()
    session = FakeSession(SIMPLE_LOGIN, url=LOGIN_URL)
    verifier = make_verifier(clock, initial_delay_ms=0)
    initial_url = verifier.record_initial_state(session)
    clock.schedule(0.4, lambda: setattr(session, "url", "https://app.example.test/dashboard"))

    result = verifier.verify_success(session, initial_url=initial_url)

    assert result.decided_by == "url_changed"
    assert result.elapsed_seconds < 1.0


def test_reused_verifier_does_not_compare_against_an_earlier_page():
    clock = FakeClock()
    verifier = make_verifier(clock)
    first = FakeSession(DASHBOARD, url=LOGIN_URL)
    verifier.record_initial_state(first)
    first.url = "https://app.example.test/dashboard"
    assert verifier.verify_success(first, initial_url=LOGIN_URL).decided_by == "url_changed"

    second = FakeSession(SIMPLE_LOGIN, url="https://other.example.test/login")
    result = verifier.verify_success(second)

    assert result.decided_by != "url_changed"
    assert result.probe(Probe.URL_CHANGED).outcome is False


def test_invalid_credentials_text_means_failure():
    clock = FakeClock()
    session = FakeSession(INVALID_CREDENTIALS, url=LOGIN_URL)

    result = make_verifier(clock).verify_success(session, initial_url=LOGIN_URL)

    assert not result
    assert result.outcome is VerificationOutcome.FAILURE
    assert result.decided_by == "error_markers"
    assert result.probe(Probe.URL_CHANGED).outcome is False
    assert result.probe(Probe.ERROR_MARKERS).confidence == 0.95
    assert result.probe(Probe.FORM_GONE) is None


def test_redirect_to_login_error_page_is_not_a_url_change():
    clock = FakeClock()
    session = FakeSession(
        '<div class="error">Invalid username or password</div>',
        url="https://app.example.test/login?error=invalid",
    )

    result = make_verifier(clock).verify_success(session, initial_url=LOGIN_URL)

    assert result.outcome is VerificationOutcome.FAILURE
    assert result.probe(Probe.URL_CHANGED).outcome is False
    assert "error" in result.probe(Probe.ERROR_MARKERS).detail


def test_error_markers_override_positive_signals():
    clock = FakeClock()
    html = DASHBOARD.replace("<nav>", '<div role="alert">Login failed: account locked</div><nav>')
    session = FakeSession(html, url=LOGIN_URL)

    result = make_verifier(clock).verify_success(session, initial_url=LOGIN_URL)

    assert result.outcome is VerificationOutcome.FAILURE
    assert result.decided_by == "error_markers"


def test_form_gone_and_success_markers_sum_to_success():
    clock = FakeClock()
    session = FakeSession(DASHBOARD, url=LOGIN_URL)

    result = make_verifier(clock).verify_success(session, initial_url=LOGIN_URL)

    assert result.succeeded
    assert result.decided_by == "confidence_sum"
    assert result.ambiguous is False
    assert result.probe(Probe.FORM_GONE).confidence == 0.80
    assert result.probe(Probe.SUCCESS_MARKERS).confidence == 0.85
    assert result.elapsed_seconds <= 10.0


@pytest.mark.parametrize(
    "policy, expected",
    [
        (AmbiguousPolicy.SUCCESS, VerificationOutcome.SUCCESS),
        (AmbiguousPolicy.FAILURE, VerificationOutcome.FAILURE),
        (AmbiguousPolicy.UNCERTAIN, VerificationOutcome.UNCERTAIN),
    ],
)
def test_ambiguous_result_follows_policy(policy, expected):
    clock = FakeClock()
    session = FakeSession(SIMPLE_LOGIN, url=LOGIN_URL)

    result = make_verifier(clock, ambiguous_policy=policy).verify_success(session, initial_url=LOGIN_URL)

    assert result.outcome is expected
    assert result.ambiguous is True
    assert result.decided_by == "ambiguous_policy"
    assert len(result.probes) == 4
    assert clock.current - 1000.0 <= 10.0 + 1e-6


def test_probe_session_error_counts_as_zero_confidence():
    clock = FakeClock()
    session = FakeSession(DASHBOARD, url=LOGIN_URL)
    session.failing_queries.add("input[type='password']")

    result = make_verifier(clock).verify_success(session, initial_url=LOGIN_URL)

    form = result.probe(Probe.FORM_GONE)
    assert form.outcome is False
    assert form.confidence == 0.0
    assert "failed" in form.error
    assert result.ambiguous is True


def test_cancellation_stops_probing():
    clock = FakeClock()
    cancel = threading.Event()
    cancel.set()
    session = FakeSession(SIMPLE_LOGIN, url=LOGIN_URL)

    result = make_verifier(clock).verify_success(session, initial_url=LOGIN_URL, cancel=cancel)

    assert result.interrupted is True
    assert result.probes == []
    assert clock.current == 1000.0


def test_site_indicators_extend_markers():
    clock = FakeClock()
    site = SiteLoginConfiguration(
        url_pattern="portal.example.test",
        success_indicators=(".portal-home",),
        failure_indicators=(".portal-denied",),
    )
    denied = FakeSession('<div class="portal-denied">Nope</div>', url="https://portal.example.test/")

    result = make_verifier(clock).verify_success(denied, initial_url="https://portal.example.test/", site=site)

    assert result.decided_by == "error_markers"
    assert result.probe(Probe.ERROR_MARKERS).detail.startswith(".portal-denied")


def test_error_text_classifiers():
    assert is_critical_login_error("Invalid password for this account")
    assert not is_critical_login_error("Invalid coupon code")
    assert is_actual_login_error("Login failed")
    assert not is_actual_login_error("Password is required")
    assert looks_like_login_error_url("https://x.test/signin?error=1")
    assert not looks_like_login_error_url("https://x.test/home")
    assert visible_text("<p>Hi <script>var x = 'login failed';</script>there</p>") == "Hi there"
