# tests/unit/test_state_machine.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import logging
from unittest.mock import MagicMock

import pytest

from smux.core.errors import CleanupError, EnterError, InitError, StateNotFoundError
from smux.core.state_machine import StateMachine

# -----------------------------------------------------------------------------
# INITIALIZATION TESTS
# -----------------------------------------------------------------------------


def test_starts_in_initial_state(fetch_config):
    machine = StateMachine(fetch_config)

    assert machine.state.value == "idle"
    assert machine.state.next_events == ("FETCH",)
    assert machine.state.payload is None
    assert not machine.stopped


def test_initial_effect_runs_once(machine_factory):
    run = MagicMock(return_value=None)
    machine_factory("idle", {"idle": {"run": run}})
    assert run.call_count == 1


def test_plain_dict_config(toggle_config):
    machine = StateMachine(toggle_config)
    machine.send("TO_B", 123)
    assert machine.state.value == "b"
    assert machine.state.payload == 123


def test_init_failure_is_raised(machine_factory):
    original = ValueError("boom")

    def effect(ctx):
        raise original

    with pytest.raises(InitError) as exc_info:
        machine_factory("a", {"a": {"run": effect}})

    assert exc_info.value.context.phase == "init"
    assert exc_info.value.to_state == "a"
    assert exc_info.value.cause is original


def test_init_failure_recovered_by_error_transition(machine_factory):
    original = ValueError("boom")

    def effect(ctx):
        raise original

    machine = machine_factory("a", {"a": {"on": {"ERROR": "recovered"}, "run": effect}, "recovered": {}})

    assert machine.state.value == "recovered"
    assert machine.state.payload is original


def test_init_failure_in_recovery_state_is_wrapped(machine_factory):
    def effect(ctx):
        raise ValueError("first")

    def recovery_effect(ctx):
        raise ValueError("second")

    with pytest.raises(InitError) as exc_info:
        machine_factory("a", {"a": {"on": {"ERROR": "b"}, "run": effect}, "b": {"run": recovery_effect}})

    assert isinstance(exc_info.value.cause, EnterError)
    assert str(exc_info.value.cause.cause) == "second"


# -----------------------------------------------------------------------------
# SEND TESTS
# -----------------------------------------------------------------------------


def test_fetch_scenario(fetch_config):
    machine = StateMachine(fetch_config)

    machine.send("FETCH")
    assert machine.state.value == "loading"
    assert machine.state.next_events == ("RESOLVE",)

    before = machine.state
    machine.send("NOPE")
    assert machine.state is before


def test_unknown_and_self_transitions_are_noops(machine_factory, listener):
    run = MagicMock(return_value=None)
    machine = machine_factory("idle", {"idle": {"on": {"SELF": "idle"}, "run": run}})
    machine.subscribe(listener)
    before = machine.state

    machine.send("UNKNOWN", "dropped")
    machine.send("SELF", "dropped")

    assert machine.state is before
    assert machine.state.payload is None
    assert run.call_count == 1
    listener.assert_not_called()


def test_payload_identity_preserved(toggle_config, listener):
    machine = StateMachine(toggle_config)
    machine.subscribe(listener)
    payload = {"job": 1}

    machine.send("TO_B", payload)

    assert machine.state.payload is payload
    assert listener.call_args[0][0].payload is payload


def test_state_is_stable_between_reads(fetch_config):
    machine = StateMachine(fetch_config)
    assert machine.state is machine.state


def test_missing_target_state(machine_factory, recording_hook, cleanup):
    machine = machine_factory(
        "a", {"a": {"on": {"GO": "ghost"}, "run": lambda ctx: cleanup}}, hooks=[recording_hook]
    )
    before = machine.state

    with pytest.raises(StateNotFoundError) as exc_info:
        machine.send("GO")

    assert exc_info.value.state_id == "ghost"
    assert machine.state is before
    cleanup.assert_not_called()
    assert recording_hook.errors == [exc_info.value]


def test_chained_sends_from_effect(machine_factory, listener):
    machine = None

    def hop(ctx):
        ctx.send("NEXT", ctx.payload + 1)

    machine = machine_factory(
        "s0",
        {
            "s0": {"on": {"NEXT": "s1"}},
            "s1": {"on": {"NEXT": "s2"}, "run": hop},
            "s2": {"on": {"NEXT": "s3"}, "run": hop},
            "s3": {},
        },
    )
    machine.subscribe(listener)

    machine.send("NEXT", 1)

    assert machine.state.value == "s3"
    assert machine.state.payload == 3
    # every nested send notifies, and each outer send re-publishes the latest snapshot
    assert listener.call_count == 3
    assert all(c.args[0] is machine.state for c in listener.call_args_list)


def test_reentrant_send_from_listener(toggle_config):
    machine = StateMachine(toggle_config)
    seen = []

    def bounce(snapshot):
        seen.append(snapshot.value)
        if snapshot.value == "b":
            machine.send("TO_A")

    machine.subscribe(bounce)
    machine.send("TO_B")

    assert machine.state.value == "a"
    assert seen == ["b", "a"]


# -----------------------------------------------------------------------------
# SUBSCRIPTION TESTS
# -----------------------------------------------------------------------------


def test_subscribers_notified_and_unsubscribed(toggle_config):
    machine = StateMachine(toggle_config)
    spy1, spy2 = MagicMock(), MagicMock()
    off1 = machine.subscribe(spy1)
    off2 = machine.subscribe(spy2)

    machine.send("TO_B", 123)

    assert spy1.call_count == 1
    assert spy1.call_args[0][0] is spy2.call_args[0][0] is machine.state

    off1()
    off1()
    machine.send("TO_A", 456)

    assert spy1.call_count == 1
    assert spy2.call_count == 2
    assert spy2.call_args[0][0].value == "a"
    assert spy2.call_args[0][0].payload == 456
    off2()


def test_subscribe_does_not_deliver_current_snapshot(fetch_config, listener):
    machine = StateMachine(fetch_config)
    machine.subscribe(listener)
    listener.assert_not_called()


# -----------------------------------------------------------------------------
# CLEANUP TESTS
# -----------------------------------------------------------------------------


def test_cleanup_runs_before_next_effect(machine_factory):
    trace = []

    def enter_a(ctx):
        trace.append("enter a")
        return lambda: trace.append("cleanup a")

    def enter_b(ctx):
        trace.append("enter b")

    machine = machine_factory(
        "a",
        {"a": {"on": {"GO": "b"}, "run": enter_a}, "b": {"on": {"BACK": "a"}, "run": enter_b}},
    )
    machine.send("GO")
    machine.send("BACK")
    machine.send("GO")

    assert trace == ["enter a", "cleanup a", "enter b", "enter a", "cleanup a", "enter b"]


def test_cleanup_failure_aborts_transition(machine_factory, listener):
    original = RuntimeError("cleanup failed")
    entered_b = MagicMock()

    def enter_a(ctx):
        def cleanup():
            raise original

        return cleanup

    machine = machine_factory("a", {"a": {"on": {"GO": "b"}, "run": enter_a}, "b": {"run": entered_b}})
    machine.subscribe(listener)
    before = machine.state
    token = machine.token

    with pytest.raises(CleanupError) as exc_info:
        machine.send("GO", "payload")

    error = exc_info.value
    assert error.context.phase == "cleanup"
    assert (error.from_state, error.to_state, error.event) == ("a", "b", "GO")
    assert error.cause is original
    assert machine.state is before
    assert machine.token is token
    entered_b.assert_not_called()
    listener.assert_not_called()


# -----------------------------------------------------------------------------
# ENTER FAILURE TESTS
# -----------------------------------------------------------------------------


def test_enter_failure_commits_and_raises(machine_factory, listener):
    original = ValueError("enter failed")

    def effect(ctx):
        raise original

    machine = machine_factory("a", {"a": {"on": {"GO": "b"}}, "b": {"run": effect}})
    machine.subscribe(listener)

    with pytest.raises(EnterError) as exc_info:
        machine.send("GO", 5)

    error = exc_info.value
    assert error.context.phase == "enter"
    assert (error.from_state, error.to_state, error.event) == ("a", "b", "GO")
    assert error.cause is original
    assert machine.state.value == "b"
    assert machine.state.payload == 5
    listener.assert_not_called()


def test_enter_failure_recovered(machine_factory, listener):
    original = ValueError("enter failed")

    def effect(ctx):
        raise original

    machine = machine_factory(
        "a", {"a": {"on": {"GO": "b"}}, "b": {"on": {"ERROR": "recovered"}, "run": effect}, "recovered": {}}
    )
    machine.subscribe(listener)

    machine.send("GO")

    assert machine.state.value == "recovered"
    assert machine.state.payload is original
    assert listener.call_count == 2


def test_error_self_transition_does_not_recover(machine_factory):
    def effect(ctx):
        raise ValueError()

    machine = machine_factory("a", {"a": {"on": {"GO": "b"}}, "b": {"on": {"ERROR": "b"}, "run": effect}})
    with pytest.raises(EnterError):
        machine.send("GO")


def test_custom_error_event_name(machine_factory):
    def effect(ctx):
        raise ValueError()

    machine = machine_factory(
        "a",
        {"a": {"on": {"GO": "b"}}, "b": {"on": {"FAILED": "c", "ERROR": "wrong"}, "run": effect}, "c": {}, "wrong": {}},
        error_event="FAILED",
    )
    machine.send("GO")

    assert machine.state.value == "c"
    assert machine.error_event == "FAILED"
    assert machine.success_event == "SUCCESS"


# -----------------------------------------------------------------------------
# STOP TESTS
# -----------------------------------------------------------------------------


def test_stop_runs_cleanup_once(machine_factory, cleanup):
    machine = machine_factory("a", {"a": {"run": lambda ctx: cleanup}})

    machine.stop()
    machine.stop()

    cleanup.assert_called_once_with()
    assert machine.stopped


def test_stop_without_cleanup(fetch_config):
    machine = StateMachine(fetch_config)
    token = machine.token
    machine.stop()
    assert machine.token is not token


def test_stop_swallows_cleanup_failure(machine_factory, recording_hook, caplog):
    def effect(ctx):
        def cleanup():
            raise RuntimeError("late")

        return cleanup

    machine = machine_factory("a", {"a": {"run": effect}}, hooks=[recording_hook])

    with caplog.at_level(logging.ERROR, logger="smux"):
        machine.stop()

    assert machine.stopped
    assert [type(e) for e in recording_hook.errors] == [CleanupError]
    assert "Cleanup of 'a' failed during stop" in caplog.text


def test_stop_survives_raising_error_hook(machine_factory, caplog):
    hook = MagicMock(spec=["on_enter", "on_exit", "on_error"])
    hook.on_error.side_effect = RuntimeError("hook broke")

    def effect(ctx):
        def cleanup():
            raise RuntimeError("late")

        return cleanup

    machine = machine_factory("a", {"a": {"run": effect}}, hooks=[hook])

    with caplog.at_level(logging.ERROR, logger="smux"):
        machine.stop()

    assert machine.stopped
    hook.on_error.assert_called_once()
    assert "Cleanup of 'a' failed during stop" in caplog.text


def test_send_after_stop_still_transitions(toggle_config):
    machine = StateMachine(toggle_config)
    machine.stop()
    machine.send("TO_B")
    assert machine.state.value == "b"


def test_stale_guarded_send_after_stop(machine_factory):
    captured = {}

    def effect(ctx):
        captured["send"] = ctx.send

    machine = machine_factory("a", {"a": {"on": {"GO": "b"}, "run": effect}, "b": {}})
    machine.stop()

    captured["send"]("GO")

    assert machine.state.value == "a"


def test_cleanup_returned_after_effect_already_moved_on(machine_factory, cleanup):

    def effect(ctx):
        ctx.send("NEXT")
        return cleanup

    machine = machine_factory("a", {"a": {"on": {"GO": "b"}}, "b": {"on": {"NEXT": "c"}, "run": effect}, "c": {}})
    machine.send("GO")

    assert machine.state.value == "c"
    cleanup.assert_called_once_with()
    machine.stop()
    cleanup.assert_called_once_with()


def test_repr(fetch_config):
    assert repr(StateMachine(fetch_config)) == "<StateMachine state='idle' stopped=False>"
