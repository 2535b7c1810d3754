import threading
import time

import pytest

from engine import DriverState, SimulationDriver, SimulationStep
from errors import (ConfigurationError, SequenceError, StateError, TraceError,
                    UnknownPolicyError)
from policies import Outcome

TRACE = [1, 2, 3, 4, 1, 2, 5, 1, 2, 3, 4, 5]


@pytest.fixture
def driver():
    d = SimulationDriver()
    d.initialize(["FIFO", "LRU", "LFU"], 3)
    d.load_trace(TRACE)
    yield d
    d.stop()


def counters(d):
    return {pid: (s.hits, s.misses, s.evictions) for pid, s in d.live_states().items()}


# -----------------------------------------------------------------------------
# Initialization & configuration
# -----------------------------------------------------------------------------

def test_new_driver_is_uninitialized():
    d = SimulationDriver()
    assert d.state is DriverState.UNINITIALIZED
    assert d.current_step == 0
    assert d.total_steps == 0
    assert d.history == ()
    assert d.displayed_states() == {}


@pytest.mark.parametrize("call", [
    lambda d: d.step_forward(),
    lambda d: d.step_backward(),
    lambda d: d.seek(0),
    lambda d: d.reset(),
    lambda d: d.run(100),
])
def test_operations_before_initialize_raise_state_error(call):
    d = SimulationDriver()
    d.load_trace([1, 2, 3])
    with pytest.raises(StateError):
        call(d)


def test_initialize_creates_policies_in_selection_order():
    d = SimulationDriver()
    d.initialize(["lfu", "FIFO", "LFU"], 4)
    assert d.policy_ids == ("LFU", "FIFO")
    assert d.capacity == 4
    assert d.state is DriverState.READY
    assert list(d.displayed_states()) == ["LFU", "FIFO"]
    assert d.policy("fifo").capacity == 4


def test_initialize_accepts_single_identifier_string():
    d = SimulationDriver()
    d.initialize("LRU", 2)
    assert d.policy_ids == ("LRU",)


@pytest.mark.parametrize("ids,capacity,error", [
    ([], 3, ConfigurationError),
    (["FIFO", "MRU"], 3, UnknownPolicyError),
    (["FIFO"], 0, ConfigurationError),
    (["FIFO"], -2, ConfigurationError),
])
def test_initialize_rejects_bad_configuration(ids, capacity, error):
    d = SimulationDriver()
    with pytest.raises(error):
        d.initialize(ids, capacity)
    assert d.state is DriverState.UNINITIALIZED


def test_failed_initialize_leaves_previous_simulation_untouched(driver):
    driver.step_forward()
    driver.step_forward()
    with pytest.raises(ConfigurationError):
        driver.initialize(["LRU"], 0)
    assert driver.policy_ids == ("FIFO", "LRU", "LFU")
    assert driver.current_step == 2
    assert len(driver.history) == 2


def test_reinitialize_discards_history_but_keeps_trace(driver):
    driver.seek(5)
    driver.initialize(["LRU"], 2)
    assert driver.history == ()
    assert driver.current_step == 0
    assert driver.trace == tuple(TRACE)
    assert counters(driver) == {"LRU": (0, 0, 0)}


@pytest.mark.parametrize("trace", [[], [1, None, 2], [[1], [2]]])
def test_load_trace_rejects_bad_input(trace):
    d = SimulationDriver()
    with pytest.raises(TraceError):
        d.load_trace(trace)


def test_load_trace_restarts_simulation(driver):
    driver.seek(4)
    driver.load_trace([9, 8, 7])
    assert driver.total_steps == 3
    assert driver.current_step == 0
    assert driver.history == ()
    assert counters(driver)["FIFO"] == (0, 0, 0)


# -----------------------------------------------------------------------------
# Stepping
# -----------------------------------------------------------------------------

def test_step_forward_runs_every_policy_on_same_reference(driver):
    step = driver.step_forward()
    assert isinstance(step, SimulationStep)
    assert step.step_index == 0
    assert step.reference == 1
    assert list(step.results) == ["FIFO", "LRU", "LFU"]
    for pid, result in step.results.items():
        assert result.reference == 1
        assert result.outcome is Outcome.MISS
        assert step.states[pid].resident == (1,)
    assert driver.current_step == 1
    assert driver.current_reference == 1
    assert driver.current_result() is step


def test_spec_examples_through_driver():
    d = SimulationDriver()
    d.initialize(["FIFO"], 3)
    d.load_trace([1, 2, 3, 4])
    d.seek(4)
    assert d.history[-1].results["FIFO"].evicted == 1
    assert set(d.displayed_states()["FIFO"].resident) == {2, 3, 4}

    d.initialize(["LRU"], 3)
    d.load_trace([1, 2, 3, 1, 4])
    d.seek(5)
    assert d.history[3].results["LRU"].is_hit
    assert d.history[4].results["LRU"].evicted == 2

    d.initialize(["LFU"], 2)
    d.load_trace([1, 2, 1, 3])
    d.seek(4)
    assert d.history[-1].results["LFU"].evicted == 2
    assert set(d.displayed_states()["LFU"].resident) == {1, 3}


def test_step_forward_at_end_is_a_noop(driver):
    driver.seek(len(TRACE))
    before = counters(driver)
    assert driver.step_forward() is None
    assert driver.current_step == len(TRACE)
    assert counters(driver) == before


def test_step_forward_without_trace_is_a_noop():
    d = SimulationDriver()
    d.initialize(["FIFO"], 2)
    assert d.step_forward() is None
    assert d.current_step == 0


def test_step_backward_at_zero_is_a_noop(driver):
    assert driver.step_backward() is None
    assert driver.current_step == 0


def test_step_backward_does_not_touch_live_policies(driver):
    for _ in range(6):
        driver.step_forward()
    live = driver.live_states()
    assert driver.step_backward() == 5
    assert driver.step_backward() == 4
    assert driver.live_states() == live
    assert driver.displayed_states() == driver.history[3].states
    assert len(driver.history) == 6


def test_displayed_states_at_zero_are_initial_states(driver):
    initial = driver.displayed_states()
    driver.step_forward()
    driver.step_backward()
    assert driver.displayed_states() == initial
    assert driver.current_reference is None
    assert driver.current_result() is None
    assert all(s.resident == () for s in initial.values())


def test_backward_then_forward_replays_without_double_counting(driver):
    original = [driver.step_forward() for _ in range(8)]
    final_counts = counters(driver)

    for _ in range(5):
        driver.step_backward()
    assert driver.current_step == 3

    replayed = [driver.step_forward() for _ in range(5)]
    assert replayed == original[3:]
    assert all(a is b for a, b in zip(replayed, original[3:]))
    assert counters(driver) == final_counts
    assert len(driver.history) == 8

    # past the recorded history new steps mutate the policies again
    new = driver.step_forward()
    assert new.step_index == 8
    assert len(driver.history) == 9
    assert sum(counters(driver)["FIFO"][:2]) == 9


def test_history_matches_uninterrupted_run():
    plain = SimulationDriver()
    plain.initialize(["FIFO", "LRU", "LFU"], 3)
    plain.load_trace(TRACE)
    plain.seek(len(TRACE))

    wobbly = SimulationDriver()
    wobbly.initialize(["FIFO", "LRU", "LFU"], 3)
    wobbly.load_trace(TRACE)
    for _ in range(4):
        wobbly.step_forward()
    wobbly.step_backward()
    wobbly.step_backward()
    wobbly.seek(7)
    wobbly.seek(1)
    wobbly.seek(len(TRACE))

    assert wobbly.history == plain.history
    assert wobbly.live_states() == plain.live_states()


def test_recorded_steps_cannot_be_rewritten(driver):
    driver.seek(3)
    step = driver.history[2]
    with pytest.raises(TypeError):
        step.results["FIFO"] = "corrupted"
    with pytest.raises(TypeError):
        step.states["LRU"] = None
    with pytest.raises(TypeError):
        del step.results["LFU"]

    driver.seek(0)
    driver.seek(3)
    assert driver.current_result().results["FIFO"].reference == TRACE[2]
    assert set(driver.current_result().results) == {"FIFO", "LRU", "LFU"}


def test_step_does_not_alias_caller_mappings():
    results = {}
    step = SimulationStep(0, 1, results, {})
    results["FIFO"] = "late"
    assert "FIFO" not in step.results


def test_history_is_read_only_snapshot(driver):
    driver.step_forward()
    history = driver.history
    driver.step_forward()
    assert len(history) == 1
    assert isinstance(history, tuple)


def test_seek_bounds(driver):
    with pytest.raises(SequenceError):
        driver.seek(-1)
    with pytest.raises(SequenceError):
        driver.seek(len(TRACE) + 1)
    assert driver.seek(len(TRACE)) == len(TRACE)
    assert driver.seek(0) == 0
    assert len(driver.history) == len(TRACE)


def test_event_log_records_steps(driver):
    driver.step_forward()
    assert driver.event_log[-1] == "Step 1: 1 -> FIFO miss, LRU miss, LFU miss"


# -----------------------------------------------------------------------------
# Reset
# -----------------------------------------------------------------------------

def test_reset_matches_fresh_initialize(driver):
    fresh = driver.live_states()
    driver.seek(9)
    driver.step_backward()
    driver.reset()
    assert driver.live_states() == fresh
    assert driver.displayed_states() == fresh
    assert driver.history == ()
    assert driver.current_step == 0
    assert driver.total_steps == len(TRACE)
    assert driver.state is DriverState.READY


# -----------------------------------------------------------------------------
# Autoplay
# -----------------------------------------------------------------------------

def test_run_plays_to_end(driver):
    seen = []
    assert driver.run(1, on_step=seen.append)
    assert driver.wait(timeout=5)
    assert driver.current_step == len(TRACE)
    assert [s.step_index for s in seen] == list(range(len(TRACE)))
    assert driver.state is DriverState.PAUSED
    assert not driver.is_running


def test_run_at_end_returns_false(driver):
    driver.seek(len(TRACE))
    assert driver.run(10) is False
    assert not driver.is_running


@pytest.mark.parametrize("interval", [0, -5, 1.5, True])
def test_run_rejects_bad_interval(driver, interval):
    with pytest.raises(ConfigurationError):
        driver.run(interval)


def test_manual_stepping_blocked_while_running(driver):
    driver.run(1000)
    try:
        assert driver.is_running
        with pytest.raises(StateError):
            driver.step_forward()
        with pytest.raises(StateError):
            driver.step_backward()
        with pytest.raises(StateError):
            driver.run(10)
    finally:
        assert driver.stop()
    assert driver.state is DriverState.PAUSED


def test_no_step_lands_after_stop(driver):
    first_step = threading.Event()
    driver.run(5, on_step=lambda step: first_step.set())
    assert first_step.wait(timeout=5)
    driver.stop()
    position = driver.current_step
    recorded = len(driver.history)
    time.sleep(0.05)
    assert driver.current_step == position
    assert len(driver.history) == recorded
    assert not driver.is_running


def test_stop_from_callback(driver):
    def halt(step):
        if step.step_index == 2:
            driver.stop()

    driver.run(1, on_step=halt)
    assert driver.wait(timeout=5)
    assert driver.current_step == 3
    assert driver.state is DriverState.PAUSED


def test_stop_when_idle_returns_false(driver):
    assert driver.stop() is False


def test_run_resumes_after_backward_navigation(driver):
    driver.seek(6)
    counts = counters(driver)
    driver.seek(2)
    driver.run(1)
    driver.wait(timeout=5)
    assert driver.current_step == len(TRACE)
    hist = driver.history
    assert [s.step_index for s in hist] == list(range(len(TRACE)))
    assert sum(counters(driver)["LRU"][:2]) == len(TRACE)
    assert counts != counters(driver)


def test_run_error_terminates_and_surfaces(driver):
    def explode(step):
        raise RuntimeError("render failed")

    driver.run(1, on_step=explode)
    with pytest.raises(RuntimeError, match="render failed"):
        driver.wait(timeout=5)
    assert driver.current_step == 1
    assert not driver.is_running
    # the driver stays usable
    assert driver.step_forward().step_index == 1


def test_run_error_is_reported_once(driver):
    def explode(step):
        raise RuntimeError("render failed")

    driver.run(1, on_step=explode)
    with pytest.raises(RuntimeError):
        driver.wait(timeout=5)
    assert driver.run_error is None
    driver.step_forward()
    assert driver.wait(timeout=5) is True


def test_play_step_advances_until_end(driver):
    played = 0
    while driver.play_step():
        played += 1
    assert played == len(TRACE) - 1
    assert driver.current_step == len(TRACE)
    assert driver.play_step() is False
    assert driver.current_step == len(TRACE)


def test_play_step_replays_after_backward_navigation(driver):
    driver.seek(5)
    counts = counters(driver)
    driver.seek(3)
    assert driver.play_step() is True
    assert driver.current_step == 4
    assert counters(driver) == counts


def test_play_step_requires_initialized_driver():
    d = SimulationDriver()
    d.load_trace([1, 2])
    with pytest.raises(StateError):
        d.play_step()


def test_reset_stops_autoplay(driver):
    driver.run(1000)
    driver.reset()
    assert not driver.is_running
    assert driver.state is DriverState.READY
    assert driver.current_step == 0
