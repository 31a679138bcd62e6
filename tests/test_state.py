"""Tests for cross-thread session state."""

import threading


def test_wait_for_response_released_by_reply(state):
    state.mark_waiting()
    assert state.waiting_for_response is True

    timer = threading.Timer(0.05, state.reply_received)
    timer.start()
    assert state.wait_for_response(timeout=5) is True
    timer.join()
    assert state.waiting_for_response is False


def test_wait_for_response_times_out(state):
    state.mark_waiting()
    assert state.wait_for_response(timeout=0.05) is False


def test_wait_for_response_returns_immediately_when_idle(state):
    assert state.wait_for_response(timeout=0) is True


def test_wait_until_authenticated(state):
    timer = threading.Timer(0.05, state.authenticate, args=("tok1",))
    timer.start()
    assert state.wait_until_authenticated(timeout=5) is True
    timer.join()
    assert state.access_token == "tok1"


def test_connection_lost_releases_waiters(state):
    state.mark_waiting()
    timer = threading.Timer(0.05, state.mark_connection_lost)
    timer.start()

    assert state.wait_for_response(timeout=5) is False
    assert state.wait_until_authenticated(timeout=5) is False
    timer.join()
    assert state.connection_lost is True
