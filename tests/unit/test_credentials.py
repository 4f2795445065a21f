import threading

from tests.helpers.autologin_imports import (
    CredentialEntryConfig,
    CredentialManager,
    DomainMode,
    EntryState,
    FieldRole,
    LoginDetector,
    LoginFormElements,
    TimeoutConfig,
)
from tests.helpers.fake_browser import FakeClock, FakeSession
from tests.helpers.pages import DOMAIN_LOGIN, PASSWORD_STEP, SIMPLE_LOGIN, USERNAME_STEP

USERNAME = "alice@example.test"
PASSWORD = "S3cr3t-Passw0rd"


def make_manager(clock, **timeouts):
    return CredentialManager(CredentialEntryConfig(), TimeoutConfig(**timeouts), clock=clock)


def detect(session, domain_mode=DomainMode.SKIP):
    return LoginDetector(clock=FakeClock()).detect(session, domain_mode)


def first_action_index(session, key):
    return next(index for index, action in enumerate(session.actions) if action[1] == key)


def test_fills_every_field_in_order_then_clicks_submit():
    clock = FakeClock()
    session = FakeSession(DOMAIN_LOGIN)
    form = detect(session, DomainMode.DETECT)

    result = make_manager(clock).run_entry(session, form, USERNAME, PASSWORD, "CORP.LOCAL")

    assert result.state is EntryState.DONE
    assert result.filled == [FieldRole.USERNAME, FieldRole.PASSWORD, FieldRole.DOMAIN]
    assert result.submit_method == "click"
    assert session.typed_value("username") == USERNAME
    assert session.typed_value("password") == PASSWORD
    assert ("select", "domain", "corp") in session.actions
    assert session.actions[-1] == ("click", "submit", "")
    order = [first_action_index(session, key) for key in ("username", "password", "domain", "submit")]
    assert order == sorted(order)


def test_no_domain_operations_when_domain_is_not_required():
    clock = FakeClock()
    session = FakeSession(DOMAIN_LOGIN)
    form = detect(session, DomainMode.DETECT)

    for domain in (None, "", "none"):
        session.actions.clear()
        assert make_manager(clock).enter_credentials(session, form, USERNAME, PASSWORD, domain) is True
        assert session.actions_for("domain") == []


def test_domain_aliasing_username_is_not_filled():
    clock = FakeClock()
    session = FakeSession(SIMPLE_LOGIN)
    username = session.element("#username")
    form = LoginFormElements(
        username_field=username,
        password_field=session.element("#password"),
        domain_field=username,
        submit_button=session.element("#login-button"),
    )

    result = make_manager(clock).run_entry(session, form, USERNAME, PASSWORD, "CORP")

    assert result.succeeded
    assert FieldRole.DOMAIN not in result.filled
    assert session.typed_value("username") == USERNAME


def test_unfilled_domain_fails_entry_without_submitting():
    clock = FakeClock()
    session = FakeSession(
        '<form><input type="text" id="username"><input type="password" id="password">'
        '<input type="text" id="domain" style="display: none"><button id="submit">Sign in</button></form>'
    )
    form = LoginFormElements(
        username_field=session.element("#username"),
        password_field=session.element("#password"),
        domain_field=session.element("#domain"),
        submit_button=session.element("#submit"),
    )

    manager = make_manager(clock, field_reveal_timeout_seconds=1.0)
    result = manager.run_entry(session, form, USERNAME, PASSWORD, "CORP")

    assert result.state is EntryState.FAILED
    assert result.failure_reason == "domain field could not be filled"
    assert result.filled == [FieldRole.USERNAME, FieldRole.PASSWORD]
    assert session.actions_for("submit") == []
    assert manager.enter_credentials(session, form, USERNAME, PASSWORD, "CORP") is False


def test_enter_is_pressed_in_domain_field_when_it_was_filled_last():
    clock = FakeClock()
    session = FakeSession(
        '<form><input type="text" id="username"><input type="password" id="password">'
        '<input type="text" id="domain" name="domain"></form>'
    )
    form = LoginFormElements(
        username_field=session.element("#username"),
        password_field=session.element("#password"),
        domain_field=session.element("#domain"),
    )

    result = make_manager(clock).run_entry(session, form, USERNAME, PASSWORD, "CORP")

    assert result.filled == [FieldRole.USERNAME, FieldRole.PASSWORD, FieldRole.DOMAIN]
    assert session.typed_value("domain") == "CORP"
    assert result.submit_method == "enter"
    assert session.actions[-1] == ("press_key", "domain", "Enter")


def test_progressive_form_reveals_password_after_username():
    clock = FakeClock()
    session = FakeSession(USERNAME_STEP)
    session.on_type["username"] = lambda page: page.append_html("form", PASSWORD_STEP)
    form = LoginDetector(clock=clock).detect_partial(session, DomainMode.SKIP)

    result = make_manager(clock).run_entry(session, form, USERNAME, PASSWORD)

    assert result.state is EntryState.DONE
    assert result.filled == [FieldRole.USERNAME, FieldRole.PASSWORD]
    assert session.typed_value("password") == PASSWORD
    assert result.submit_method == "searched_click"
    assert session.actions[-1] == ("click", "next", "")


def test_password_revealed_after_a_delay_is_filled_within_budget():
    clock = FakeClock()
    session = FakeSession(USERNAME_STEP)
    form = LoginFormElements(username_field=session.element("#username"))
    clock.schedule(2.0, lambda: session.append_html("form", PASSWORD_STEP))

    result = make_manager(clock).run_entry(session, form, USERNAME, PASSWORD)

    assert result.succeeded
    assert session.typed_value("password") == PASSWORD


def test_missing_field_fails_without_submitting():
    clock = FakeClock()
    session = FakeSession(USERNAME_STEP)
    form = LoginFormElements(username_field=session.element("#username"))

    manager = make_manager(clock, field_reveal_timeout_seconds=3.0)
    result = manager.run_entry(session, form, USERNAME, PASSWORD)

    assert result.state is EntryState.FAILED
    assert result.failure_reason == "password field did not appear"
    assert result.filled == [FieldRole.USERNAME]
    assert not any(action in ("click", "press_key") for action, key, _ in session.actions if key != "username")
    assert session.actions_for("next") == []
    assert 3.0 <= result.elapsed_seconds < 4.0


def test_enter_credentials_returns_false_on_failure():
    session = FakeSession(USERNAME_STEP)
    form = LoginFormElements(username_field=session.element("#username"))

    assert make_manager(FakeClock()).enter_credentials(session, form, USERNAME, PASSWORD) is False


def test_re_rendered_form_is_located_again():
    clock = FakeClock()
    session = FakeSession(SIMPLE_LOGIN)
    form = detect(session)
    session.set_html(SIMPLE_LOGIN)

    result = make_manager(clock).run_entry(session, form, USERNAME, PASSWORD)

    assert result.succeeded
    assert result.submit_method == "searched_click"
    assert session.element("#username").tag["value"] == USERNAME
    assert session.element("#password").tag["value"] == PASSWORD


def test_field_going_stale_while_typing_is_retyped():
    clock = FakeClock()
    session = FakeSession(SIMPLE_LOGIN)
    form = detect(session)
    session.on_type["username"] = lambda page: page.set_html(SIMPLE_LOGIN)

    result = make_manager(clock).run_entry(session, form, USERNAME, PASSWORD)

    assert result.succeeded
    assert session.element("#username").tag["value"] == USERNAME


def test_select_username_matches_option_text():
    clock = FakeClock()
    session = FakeSession(
        '<form><select id="username" name="username">'
        '<option value="u1">Alice Smith</option><option value="u2">Bob Jones</option>'
        '</select><input type="password" id="password"><button type="submit" id="go">Sign in</button></form>'
    )
    form = LoginFormElements(
        username_field=session.element("#username"),
        password_field=session.element("#password"),
        submit_button=session.element("#go"),
    )

    result = make_manager(clock).run_entry(session, form, "alice", PASSWORD)

    assert result.succeeded
    assert ("select", "username", "u1") in session.actions


def test_enter_key_fallback_without_submit_control():
    clock = FakeClock()
    session = FakeSession('<form><input type="text" id="username"><input type="password" id="password"></form>')
    form = LoginFormElements(
        username_field=session.element("#username"),
        password_field=session.element("#password"),
    )

    result = make_manager(clock).run_entry(session, form, USERNAME, PASSWORD)

    assert result.submit_method == "enter"
    assert session.actions[-1] == ("press_key", "password", "Enter")


def test_cancelled_entry_stops_before_typing():
    cancel = threading.Event()
    cancel.set()
    session = FakeSession(SIMPLE_LOGIN)
    form = detect(session)

    result = make_manager(FakeClock()).run_entry(session, form, USERNAME, PASSWORD, cancel=cancel)

    assert result.state is EntryState.FAILED
    assert result.failure_reason == "cancelled"
    assert session.actions == []
    assert result.as_dict()["state"] == "failed"
