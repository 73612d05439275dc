"""
Stepper Module

Core Idea:
    Drives either dynamic programming engine one step at a time. The stepper
    owns the run lifecycle (reset, single step, continuous run, stop), the
    iteration counter and the termination policy (iteration cap, engine
    convergence).

Problem Statement:
    A presentation layer wants to show the value table and the policy after
    every sweep, let the user advance one sweep at a time, run continuously
    and halt a run early. Solver state therefore has to live in an explicit
    record between calls, and halting has to be cooperative.

Concurrency:
    Single-threaded. ``run()`` returns a generator that suspends after every
    step; the caller observes the yielded snapshot and may request
    cancellation before resuming it. Cancellation is checked only at that
    suspension point, never inside a sweep, so a cancel request takes effect
    before the next sweep starts.

Lifecycle:
    ::

        reset ──▶ READY ──step──▶ RUNNING ──step──▶ ... ──▶ CONVERGED
                                    │                     └─▶ MAX_ITERATIONS_REACHED
                                    └──stop / run toggle──▶ STOPPED
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Iterator, Optional, Union

import numpy as np

from .algorithms import Phase, RunState, RunStatus, build_engine
from .config import POLICY_ITERATION, GridWorldConfig, InvalidConfiguration, SolverConfig
from .environment import Action, GridWorld, Policy, ValueFunction
from .transitions import TransitionModel

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative stop flag checked between steps of a run."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True)
class Snapshot:
    """
    Read-only view of a run after a step.

    Attributes:
        values: Copy of the value function
        policy: Copy of the exposed policy
        iteration: Completed steps
        delta: Delta of the last sweep (0.0 after a PI improvement)
        status: Run status
        algorithm: Selected algorithm name
        phase: Policy Iteration phase (None for Value Iteration)
        eval_sweeps_left: Remaining evaluation sweeps (None for Value Iteration)
    """
    values: ValueFunction
    policy: Policy
    iteration: int
    delta: float
    status: RunStatus
    algorithm: str
    phase: Optional[Phase] = None
    eval_sweeps_left: Optional[int] = None


class Stepper:
    """
    Step-wise solver driver for GridWorld.

    Attributes:
        env: Grid topology of the current run
        config: Solver parameters of the current run
        model: Transition model bound to env and config

    Example:
        >>> stepper = Stepper(config=SolverConfig(gamma=0.9, slip=0.0))
        >>> snapshot = stepper.step()
        >>> snapshot.iteration
        1
        >>> for snapshot in stepper.run():
        ...     pass
        >>> stepper.status
        <RunStatus.CONVERGED: 'Converged'>
    """

    def __init__(
        self,
        grid: Union[GridWorld, GridWorldConfig, None] = None,
        config: Optional[SolverConfig] = None
    ):
        """
        Initialize and reset the stepper.

        Args:
            grid: Grid topology or layout. Uses the reference layout if None.
            config: Solver parameters. Uses defaults if None.

        Raises:
            InvalidConfiguration: If grid or config is invalid.
        """
        self.env: Optional[GridWorld] = None
        self.config: Optional[SolverConfig] = None
        self.model: Optional[TransitionModel] = None
        self._token: Optional[CancellationToken] = None
        self.reset(grid if grid is not None else GridWorld(), config or SolverConfig())

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def reset(
        self,
        grid: Union[GridWorld, GridWorldConfig, None] = None,
        config: Optional[SolverConfig] = None
    ) -> Snapshot:
        """
        Reinitialize the run.

        Values become 0, the exposed and working policies take the default
        action on every non-terminal state, Policy Iteration restarts in the
        evaluation phase, the counter and delta become 0 and the status
        READY. Any in-progress run is cancelled.

        Args:
            grid: New topology or layout; keeps the current one if None
            config: New solver parameters; keeps the current ones if None

        Returns:
            Snapshot of the fresh run.

        Raises:
            InvalidConfiguration: If grid or config is invalid. The current
                run is left unchanged in that case.
        """
        env = self._resolve_grid(grid)
        config = config if config is not None else self.config
        if not isinstance(config, SolverConfig):
            raise InvalidConfiguration(f"Expected SolverConfig, got: {type(config).__name__}")
        config.validate()

        model = TransitionModel(env, slip=config.slip, step_reward=config.step_reward)
        engine = build_engine(
            config.algorithm,
            model,
            gamma=config.gamma,
            theta=config.theta,
            eval_sweeps=config.eval_sweeps,
        )

        if self._token is not None:
            self._token.cancel()
            self._token = None

        self.env = env
        self.config = config
        self.model = model
        self._engine = engine
        self._state = RunState.initial(
            env, Action[config.default_action], config.eval_sweeps
        )

        logger.info(
            "Reset %s: %dx%d grid, gamma=%.3f, slip=%.3f, step_reward=%.3f, max_iterations=%d",
            config.algorithm, env.rows, env.cols, config.gamma, config.slip,
            config.step_reward, config.max_iterations
        )
        return self.snapshot()

    def _resolve_grid(self, grid: Union[GridWorld, GridWorldConfig, None]) -> GridWorld:
        if grid is None:
            return self.env
        if isinstance(grid, GridWorld):
            return grid
        if isinstance(grid, GridWorldConfig):
            return GridWorld(grid)
        raise InvalidConfiguration(f"Expected GridWorld or GridWorldConfig, got: {type(grid).__name__}")

    def select_algorithm(self, algorithm: str) -> Snapshot:
        """
        Switch the solver algorithm. Resets the run.

        Args:
            algorithm: ``"value_iteration"`` or ``"policy_iteration"``

        Raises:
            InvalidConfiguration: If the algorithm name is unknown.
        """
        return self.reset(config=dataclasses.replace(self.config, algorithm=algorithm))

    def step(self) -> Snapshot:
        """
        Advance the run by one step.

        Once the iteration cap is reached or the run has converged this is a
        no-op that keeps reporting the same status.

        Returns:
            Snapshot after the step.
        """
        state = self._state

        if state.status is RunStatus.CONVERGED:
            return self.snapshot()

        if state.iteration >= self.config.max_iterations:
            state.status = RunStatus.MAX_ITERATIONS_REACHED
            return self.snapshot()

        converged = self._engine.step(state)
        state.iteration += 1

        if converged:
            state.status = RunStatus.CONVERGED
            logger.info(
                "%s converged after %d iterations (delta=%.6f)",
                self.config.algorithm, state.iteration, state.delta
            )
        elif state.iteration >= self.config.max_iterations:
            state.status = RunStatus.MAX_ITERATIONS_REACHED
            logger.info("Reached maximum iterations: %d", self.config.max_iterations)
        else:
            state.status = RunStatus.RUNNING

        return self.snapshot()

    def run(self, delay: float = 0.0) -> Iterator[Snapshot]:
        """
        Run continuously, yielding a snapshot after every step.

        The run ends when the status leaves RUNNING or the run is cancelled.
        Calling ``run()`` while a run is in progress is a stop request: the
        in-progress run halts at its next suspension point, a RUNNING status
        becomes STOPPED and an empty iterator is returned.

        Args:
            delay: Seconds to sleep between steps (for animation)

        Returns:
            Iterator of snapshots.
        """
        if self.is_running:
            self.stop()
            return iter(())

        token = CancellationToken()
        self._token = token
        return self._run_loop(self._state, token, delay)

    def _run_loop(
        self,
        state: RunState,
        token: CancellationToken,
        delay: float
    ) -> Iterator[Snapshot]:
        try:
            while not token.cancelled:
                snapshot = self.step()
                yield snapshot

                if snapshot.status is not RunStatus.RUNNING:
                    return
                if token.cancelled:
                    break
                if delay > 0:
                    time.sleep(delay)

            self._mark_stopped(state)
        finally:
            if self._token is token:
                self._token = None

    def stop(self) -> None:
        """
        Request the in-progress run to halt before its next step.

        A run that already converged or hit the iteration cap keeps its
        status.
        """
        if self._token is None:
            return
        self._token.cancel()
        self._token = None
        self._mark_stopped(self._state)
        logger.info("Run stopped at iteration %d", self._state.iteration)

    @staticmethod
    def _mark_stopped(state: RunState) -> None:
        if state.status in (RunStatus.READY, RunStatus.RUNNING):
            state.status = RunStatus.STOPPED

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._token is not None and not self._token.cancelled

    @property
    def algorithm(self) -> str:
        return self.config.algorithm

    @property
    def values(self) -> ValueFunction:
        return dict(self._state.values)

    @property
    def policy(self) -> Policy:
        return dict(self._state.policy)

    @property
    def iteration(self) -> int:
        return self._state.iteration

    @property
    def delta(self) -> float:
        return self._state.delta

    @property
    def status(self) -> RunStatus:
        return self._state.status

    @property
    def phase(self) -> Optional[Phase]:
        if self.config.algorithm == POLICY_ITERATION:
            return self._state.phase
        return None

    def snapshot(self) -> Snapshot:
        """Copy of the current run state."""
        state = self._state
        is_pi = self.config.algorithm == POLICY_ITERATION
        return Snapshot(
            values=dict(state.values),
            policy=dict(state.policy),
            iteration=state.iteration,
            delta=state.delta,
            status=state.status,
            algorithm=self.config.algorithm,
            phase=state.phase if is_pi else None,
            eval_sweeps_left=state.eval_sweeps_left if is_pi else None,
        )

    def value_grid(self) -> np.ndarray:
        """
        Dense value table for presentation.

        Returns:
            Array of shape (rows, cols); wall cells hold NaN.
        """
        grid = np.full((self.env.rows, self.env.cols), np.nan)
        for (i, j), value in self._state.values.items():
            grid[i, j] = value
        return grid
