import pytest

from swiftcause.outbox import Outbox, RetryPolicy, outbox


def test_retry_then_success(app, caplog):
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("transient")

    assert outbox.submit("flaky", flaky).result() is True
    assert len(attempts) == 2
    assert "failed (attempt 1/2)" in caplog.text


def test_permanent_failure_is_logged_and_swallowed(app, caplog):
    def broken():
        raise RuntimeError("still broken")

    fut = outbox.submit("broken", broken)

    assert fut.result() is False
    errors = [r for r in caplog.records if r.levelname == "ERROR"]
    assert errors and "broken permanently failed after 2 attempt(s)" in errors[0].getMessage()


def test_background_mode_runs_in_app_context(app):
    box = Outbox()
    box.init_app(app)
    box.eager = False
    seen = []

    def task(value):
        from flask import current_app

        seen.append((value, current_app.name))

    assert box.submit("bg", task, 7).result(timeout=5) is True
    assert seen == [(7, app.name)]


def test_submit_before_init_is_an_error():
    with pytest.raises(RuntimeError):
        Outbox().submit("x", lambda: None)


def test_worker_before_init_is_an_error():
    with pytest.raises(RuntimeError):
        Outbox()._run("x", lambda: None, (), {})


def test_policy_backoff_grows_linearly():
    policy = RetryPolicy(max_attempts=3, backoff_seconds=0.5)
    assert [policy.delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 1.5]
