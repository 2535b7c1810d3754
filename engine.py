# engine.py

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from errors import ConfigurationError, SequenceError, StateError, TraceError
from policies import CacheState, EvictionPolicy, StepResult
from registry import create_policy, normalize_policy_id

logger = logging.getLogger(__name__)


class DriverState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class SimulationStep:
    """
    One entry of the simulation history.

    Attributes:
        step_index: 0-based position of the reference in the trace
        reference: The reference every policy consumed at this step
        results: policy id -> StepResult
        states: policy id -> CacheState snapshot taken after the step
    """
    step_index: int
    reference: Any
    results: Mapping[str, StepResult]
    states: Mapping[str, CacheState]

    def __post_init__(self):
        # recorded steps are replayed as-is, so their mappings must be read-only
        object.__setattr__(self, "results", MappingProxyType(dict(self.results)))
        object.__setattr__(self, "states", MappingProxyType(dict(self.states)))

    def describe(self) -> str:
        parts = []
        for pid, result in self.results.items():
            text = f"{pid} {result.outcome.value}"
            if result.evicted is not None:
                text += f" (evicted {result.evicted})"
            parts.append(text)
        return f"Step {self.step_index + 1}: {self.reference} -> " + ", ".join(parts)


class SimulationDriver:
    """
    Runs several independent replacement policies in lockstep over one trace.

    Every forward step that mutates the policies is recorded together with
    a snapshot of each policy's state. Moving backward only moves the
    displayed position through that history; the live policies always stay
    at the state produced by the newest recorded step. Moving forward again
    replays recorded steps until the position catches up with the history,
    after which new steps resume calling access().

    Autoplay runs on a background thread. A generation counter, checked
    under the driver lock before each step, guarantees that no step lands
    after stop() returns.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._state = DriverState.UNINITIALIZED
        self._policy_ids: Tuple[str, ...] = ()
        self._capacity: Optional[int] = None
        self._policies: Dict[str, EvictionPolicy] = {}
        self._initial_states: Dict[str, CacheState] = {}
        self._trace: Tuple[Any, ...] = ()
        self._history: List[SimulationStep] = []
        self._current_step = 0

        self._generation = 0
        self._runner: Optional[threading.Thread] = None
        self._wakeup: Optional[threading.Event] = None
        self.run_error: Optional[BaseException] = None

        self.event_log: List[str] = []

    # -----------------------------
    # Configuration
    # -----------------------------
    def initialize(self, policy_ids: Iterable[str], capacity: int):
        """
        Create one fresh policy per identifier and clear the history.

        Nothing changes if the configuration is rejected.

        Raises:
            ConfigurationError: empty policy set, unknown identifier or
                non-positive capacity.
        """
        if isinstance(policy_ids, str):
            policy_ids = [policy_ids]

        ids: List[str] = []
        for identifier in policy_ids:
            key = normalize_policy_id(identifier)
            if key not in ids:
                ids.append(key)
        if not ids:
            raise ConfigurationError("At least one cache policy must be selected")

        policies = {pid: create_policy(pid, capacity) for pid in ids}

        self.stop()
        with self._lock:
            self._policy_ids = tuple(ids)
            self._capacity = capacity
            self._install(policies)
            self.event_log.append(f"Initialized {', '.join(ids)} with capacity {capacity}")
        logger.info("Initialized policies %s with capacity %d", ", ".join(ids), capacity)

    def load_trace(self, references: Iterable[Any]):
        """
        Load the reference trace.

        If policies are already initialized they are re-created so the new
        trace starts from an empty cache.

        Raises:
            TraceError: empty trace, None or unhashable references.
        """
        trace = tuple(references)
        if not trace:
            raise TraceError("Trace must contain at least one reference")
        for i, ref in enumerate(trace):
            if ref is None:
                raise TraceError(f"Reference at position {i} is None")
            try:
                hash(ref)
            except TypeError:
                raise TraceError(f"Reference at position {i} is not hashable: {ref!r}") from None

        self.stop()
        with self._lock:
            self._trace = trace
            if self._state is not DriverState.UNINITIALIZED:
                self._install(self._build_policies())
            self.event_log.append(f"Loaded trace of {len(trace)} references")
        logger.info("Loaded trace of %d references", len(trace))

    def reset(self):
        """Re-create the policies with the same configuration; keep the trace."""
        self.stop()
        with self._lock:
            self._require_initialized()
            self._install(self._build_policies())
            self.event_log.append("Simulation reset")
        logger.info("Simulation reset")

    def _build_policies(self) -> Dict[str, EvictionPolicy]:
        return {pid: create_policy(pid, self._capacity) for pid in self._policy_ids}

    def _install(self, policies: Dict[str, EvictionPolicy]):
        self._policies = policies
        self._initial_states = {pid: p.get_state() for pid, p in policies.items()}
        self._history = []
        self._current_step = 0
        self.run_error = None
        self._state = DriverState.READY

    def _require_initialized(self):
        if self._state is DriverState.UNINITIALIZED:
            raise StateError("Simulation is not initialized")

    def _require_idle(self):
        self._require_initialized()
        if self._state is DriverState.RUNNING:
            raise StateError("Cannot navigate manually while autoplay is running")

    # -----------------------------
    # Navigation
    # -----------------------------
    def step_forward(self) -> Optional[SimulationStep]:
        """
        Advance the displayed position by one step.

        Returns:
            The SimulationStep now displayed, or None when the trace is
            exhausted.
        """
        with self._lock:
            self._require_idle()
            return self._advance()

    def step_backward(self) -> Optional[int]:
        """
        Move the displayed position back by one step without touching the
        live policies.

        Returns:
            The new current step, or None when already at step 0.
        """
        with self._lock:
            self._require_idle()
            if self._current_step == 0:
                logger.info("step_backward ignored: already at step 0")
                return None
            self._current_step -= 1
            logger.debug("Moved back to step %d", self._current_step)
            return self._current_step

    def seek(self, step: int) -> int:
        """
        Jump to any position in [0, total_steps], advancing the policies
        as needed when the target lies past the recorded history.

        Raises:
            SequenceError: target outside the loaded trace.
        """
        with self._lock:
            self._require_idle()
            if not 0 <= step <= len(self._trace):
                raise SequenceError(f"Step {step} outside [0, {len(self._trace)}]")
            if step <= len(self._history):
                self._current_step = step
            else:
                self._current_step = len(self._history)
                while self._current_step < step:
                    self._advance()
            return self._current_step

    def _advance(self) -> Optional[SimulationStep]:
        # lock held by caller
        if self._current_step >= len(self._trace):
            logger.info("step_forward ignored: end of trace reached")
            return None

        if self._current_step < len(self._history):
            # replay, the policies already consumed this reference
            step = self._history[self._current_step]
            self._current_step += 1
            logger.debug("Replayed step %d", step.step_index)
            return step

        reference = self._trace[self._current_step]
        results: Dict[str, StepResult] = {}
        states: Dict[str, CacheState] = {}
        for pid, policy in self._policies.items():
            results[pid] = policy.access(reference)
            states[pid] = policy.get_state()

        step = SimulationStep(self._current_step, reference, results, states)
        self._history.append(step)
        self._current_step += 1
        self.event_log.append(step.describe())
        logger.debug(step.describe())
        return step

    # -----------------------------
    # Autoplay
    # -----------------------------
    def run(self, interval_ms: int, on_step: Optional[Callable[[SimulationStep], None]] = None) -> bool:
        """
        Start stepping forward every interval_ms milliseconds until the end
        of the trace or stop().

        on_step is called on the autoplay thread, under the driver lock,
        after every step.

        Returns:
            False when there was nothing left to play.
        """
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
            raise ConfigurationError(f"Interval must be a positive number of milliseconds, got {interval_ms!r}")

        with self._lock:
            self._require_idle()
            if self._current_step >= len(self._trace):
                logger.info("run ignored: end of trace reached")
                return False
            self._generation += 1
            self._state = DriverState.RUNNING
            self.run_error = None
            self._wakeup = threading.Event()
            self._runner = threading.Thread(
                target=self._autoplay,
                args=(self._generation, interval_ms / 1000.0, on_step, self._wakeup),
                name="cache-sim-autoplay",
                daemon=True,
            )
            self._runner.start()
        logger.info("Autoplay started (%d ms)", interval_ms)
        return True

    def play_step(self) -> bool:
        """
        One step of caller-paced playback, for front ends that redraw
        between steps and cannot host the autoplay thread.

        Returns:
            True while there are steps left to play.
        """
        with self._lock:
            self._require_idle()
            self._advance()
            return self._current_step < len(self._trace)

    def _autoplay(self, generation, interval, on_step, wakeup):
        try:
            while not wakeup.wait(interval):
                with self._lock:
                    if generation != self._generation:
                        return
                    step = self._advance()
                    if step is not None and on_step is not None:
                        on_step(step)
                    if self._current_step >= len(self._trace):
                        self._generation += 1
                        self._state = DriverState.PAUSED
                        logger.info("Autoplay finished at step %d", self._current_step)
                        return
        except Exception as exc:
            logger.exception("Autoplay stopped by error")
            with self._lock:
                self.run_error = exc
                if generation == self._generation:
                    self._generation += 1
                    self._state = DriverState.PAUSED

    def stop(self) -> bool:
        """
        Cancel autoplay. No step fires once this returns.

        Returns:
            True if autoplay was running.
        """
        with self._lock:
            self._generation += 1
            was_running = self._state is DriverState.RUNNING
            if was_running:
                self._state = DriverState.PAUSED
            wakeup, runner = self._wakeup, self._runner
        if wakeup is not None:
            wakeup.set()
        if runner is not None and runner is not threading.current_thread():
            runner.join()
        if was_running:
            logger.info("Autoplay stopped at step %d", self._current_step)
        return was_running

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until autoplay ends, then re-raise any error it hit.

        An error is raised once; later calls do not report it again.

        Returns:
            True if autoplay is no longer running.
        """
        runner = self._runner
        if runner is not None and runner is not threading.current_thread():
            runner.join(timeout)
        with self._lock:
            error, self.run_error = self.run_error, None
        if error is not None:
            raise error
        return not self.is_running

    # -----------------------------
    # Read side
    # -----------------------------
    @property
    def state(self) -> DriverState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is DriverState.RUNNING

    @property
    def current_step(self) -> int:
        return self._current_step

    @property
    def total_steps(self) -> int:
        return len(self._trace)

    @property
    def trace(self) -> Tuple[Any, ...]:
        return self._trace

    @property
    def history(self) -> Tuple[SimulationStep, ...]:
        with self._lock:
            return tuple(self._history)

    @property
    def policy_ids(self) -> Tuple[str, ...]:
        return self._policy_ids

    @property
    def capacity(self) -> Optional[int]:
        return self._capacity

    @property
    def current_reference(self) -> Optional[Any]:
        """Reference consumed by the displayed step, None at step 0."""
        with self._lock:
            if self._current_step == 0:
                return None
            return self._trace[self._current_step - 1]

    def current_result(self) -> Optional[SimulationStep]:
        with self._lock:
            if self._current_step == 0:
                return None
            return self._history[self._current_step - 1]

    def policy(self, policy_id: str) -> EvictionPolicy:
        return self._policies[normalize_policy_id(policy_id)]

    def displayed_states(self) -> Dict[str, CacheState]:
        """Policy states at the displayed position."""
        with self._lock:
            if self._current_step == 0:
                return dict(self._initial_states)
            return dict(self._history[self._current_step - 1].states)

    def live_states(self) -> Dict[str, CacheState]:
        """States of the live policies, i.e. after the newest recorded step."""
        with self._lock:
            return {pid: p.get_state() for pid, p in self._policies.items()}
