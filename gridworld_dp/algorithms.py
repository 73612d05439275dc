"""
Dynamic Programming Algorithms for the GridWorld MDP

Core Idea:
    Value Iteration and Policy Iteration, both exposed as *incremental*
    engines: every call to ``step`` performs exactly one sweep (or one phase
    step for Policy Iteration) on an explicit run-state record, so that the
    value table, the policy and the convergence delta can be inspected
    between sweeps.

Mathematical Theory:
    **Bellman Optimality Backup** (Value Iteration):

    .. math::
        V_{k+1}(s) = \\max_a \\sum_{s'} P(s'|s,a) [r + \\gamma V_k(s')]

    **Bellman Expectation Backup** (Policy Evaluation, fixed π):

    .. math::
        V_{k+1}(s) = \\sum_{s'} P(s'|s,\\pi(s)) [r + \\gamma V_k(s')]

    **Greedy Improvement**:

    .. math::
        \\pi'(s) = \\arg\\max_a \\sum_{s'} P(s'|s,a)[r + \\gamma V(s')]

    All backups are synchronous (Jacobi-style): every value of sweep k+1 is
    computed from the table of sweep k only.

Problem Statement:
    Interactive stepping needs bounded work per visible step. Policy
    Iteration therefore uses *truncated* evaluation: a fixed number of
    expectation sweeps between two improvements. Truncated policy
    evaluation is a standard convergent variant of PI (modified policy
    iteration).

Comparison:
    Policy Iteration vs Value Iteration:
        - Value Iteration: one max-backup per step, converges when the
          sweep delta drops below θ
        - Policy Iteration: ``eval_sweeps`` expectation backups, then one
          improvement; converges when the improvement changes no action

Complexity:
    - Sweep: O(|S| × |A| × |A|) (four outcomes per action)
    - Greedy extraction: same as a sweep
    - Space: O(|S|) for the value table and the policy

References:
    [1] Bellman, R. (1957). Dynamic Programming. Princeton University Press.
    [2] Howard, R. (1960). Dynamic Programming and Markov Processes. MIT Press.
    [3] Puterman, M. & Shin, M. (1978). Modified Policy Iteration Algorithms
        for Discounted Markov Decision Problems. Management Science.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from .config import POLICY_ITERATION, VALUE_ITERATION, State
from .environment import ACTIONS, Action, GridWorld, Policy, ValueFunction
from .transitions import TransitionModel

logger = logging.getLogger(__name__)

TIE_TOLERANCE = 1e-9
"""Q-values closer than this are treated as equal when picking an action."""


# =============================================================================
# Run State
# =============================================================================

class RunStatus(Enum):
    """Lifecycle status of a solver run."""
    READY = "Ready"
    RUNNING = "Running"
    CONVERGED = "Converged"
    MAX_ITERATIONS_REACHED = "MaxIterationsReached"
    STOPPED = "Stopped"


class Phase(Enum):
    """Policy Iteration phase."""
    EVALUATING = "Evaluating"
    IMPROVING = "Improving"


@dataclass
class RunState:
    """
    Mutable record of one solver run.

    Created by a reset and mutated in place by every step. Engines receive
    it explicitly, so independent runs never share state.

    Attributes:
        values: Current value function (terminals pinned at 0)
        policy: Exposed policy (terminals map to None)
        iteration: Number of completed steps
        delta: Max absolute value change of the last sweep
        status: Run lifecycle status
        working_policy: Policy Iteration's working policy
        phase: Policy Iteration phase
        eval_sweeps_left: Remaining sweeps of the current evaluation phase
        improvements: Number of completed improvement sweeps
    """
    values: ValueFunction
    policy: Policy
    working_policy: Policy
    eval_sweeps_left: int
    iteration: int = 0
    delta: float = 0.0
    status: RunStatus = RunStatus.READY
    phase: Phase = Phase.EVALUATING
    improvements: int = 0

    @classmethod
    def initial(
        cls,
        env: GridWorld,
        default_action: Action,
        eval_sweeps: int
    ) -> "RunState":
        """
        Fresh run state: zero values, default action on every non-terminal.

        Args:
            env: Grid topology
            default_action: Action assigned to non-terminal states
            eval_sweeps: Length of the first evaluation phase

        Returns:
            New run state with status READY.
        """
        values = {s: 0.0 for s in env.states}
        policy: Policy = {
            s: None if env.is_terminal(s) else default_action
            for s in env.states
        }
        return cls(
            values=values,
            policy=dict(policy),
            working_policy=dict(policy),
            eval_sweeps_left=eval_sweeps,
        )


# =============================================================================
# Shared Backups
# =============================================================================

def greedy_action(
    model: TransitionModel,
    state: State,
    values: ValueFunction,
    gamma: float
) -> Action:
    """
    Select the value-maximizing action.

    Ties go to the first action in enumeration order (UP, DOWN, LEFT,
    RIGHT); Q-values within ``TIE_TOLERANCE`` of the maximum count as tied.
    Unlike a strict argmax, an earlier action whose Q-value lies up to
    ``TIE_TOLERANCE`` below the maximum can therefore win.

    Args:
        model: Transition model
        state: Non-terminal state
        values: Value function to look ahead into
        gamma: Discount factor

    Returns:
        Greedy action.
    """
    q_values = model.q_values(state, values, gamma)
    best_value = max(q_values.values())
    best_actions = [
        a for a in ACTIONS if abs(q_values[a] - best_value) < TIE_TOLERANCE
    ]
    return best_actions[0]


def greedy_policy(
    model: TransitionModel,
    values: ValueFunction,
    gamma: float
) -> Policy:
    """
    Construct the deterministic greedy policy from a value function.

    Args:
        model: Transition model
        values: Value function
        gamma: Discount factor

    Returns:
        Policy mapping every non-terminal state to its greedy action and
        every terminal state to None.
    """
    env = model.env
    policy: Policy = {}
    for state in env.states:
        if env.is_terminal(state):
            policy[state] = None
        else:
            policy[state] = greedy_action(model, state, values, gamma)
    return policy


def _max_change(old: ValueFunction, new: ValueFunction) -> float:
    """Infinity-norm distance between two value tables."""
    return max((abs(new[s] - old[s]) for s in old), default=0.0)


# =============================================================================
# Value Iteration
# =============================================================================

class ValueIterationEngine:
    """
    One synchronous Bellman-optimality sweep per step.

    Attributes:
        model: Transition model
        gamma: Discount factor γ ∈ [0, 1]
        theta: Convergence threshold on the sweep delta

    Example:
        >>> model = TransitionModel(GridWorld(), slip=0.0, step_reward=-0.04)
        >>> engine = ValueIterationEngine(model, gamma=0.9)
        >>> V = {s: 0.0 for s in model.env.states}
        >>> V, delta = engine.sweep(V)
    """

    def __init__(self, model: TransitionModel, gamma: float, theta: float = 1e-4):
        self.model = model
        self.gamma = gamma
        self.theta = theta

    def sweep(self, values: ValueFunction) -> Tuple[ValueFunction, float]:
        """
        Apply the Bellman optimality operator once.

        All Q-values are computed from ``values``; the input table is not
        modified.

        Args:
            values: Value function of the previous sweep

        Returns:
            Tuple of (new_values, delta).
        """
        env = self.model.env
        new_values: ValueFunction = {}

        for state in env.states:
            if env.is_terminal(state):
                new_values[state] = 0.0
                continue

            new_values[state] = max(
                self.model.q_value(state, action, values, self.gamma)
                for action in ACTIONS
            )

        return new_values, _max_change(values, new_values)

    def greedy_policy(self, values: ValueFunction) -> Policy:
        return greedy_policy(self.model, values, self.gamma)

    def step(self, run: RunState) -> bool:
        """
        Advance a run by one sweep and refresh its greedy policy.

        Args:
            run: Run state, updated in place

        Returns:
            True if the sweep delta fell below theta.
        """
        run.values, run.delta = self.sweep(run.values)
        run.policy = self.greedy_policy(run.values)
        logger.debug("VI sweep %d: delta=%.6f", run.iteration + 1, run.delta)
        return run.delta < self.theta


# =============================================================================
# Policy Iteration
# =============================================================================

class PolicyIterationEngine:
    """
    Truncated Policy Iteration as a two-phase state machine.

    Core Idea:
        Each step is either one policy-fixed evaluation sweep or one greedy
        improvement sweep. ``eval_sweeps`` evaluation steps are followed by
        one improvement step; an improvement that changes no action ends the
        run.

    Phase diagram:
        EVALUATING ──(counter hits 0)──▶ IMPROVING
            ▲                               │
            └──────(policy changed)─────────┘
                                            │ (policy stable)
                                            ▼
                                        converged

    Attributes:
        model: Transition model
        gamma: Discount factor γ ∈ [0, 1]
        eval_sweeps: Evaluation sweeps per improvement cycle
    """

    def __init__(self, model: TransitionModel, gamma: float, eval_sweeps: int = 10):
        self.model = model
        self.gamma = gamma
        self.eval_sweeps = eval_sweeps

    def evaluate_sweep(
        self,
        values: ValueFunction,
        policy: Policy
    ) -> Tuple[ValueFunction, float]:
        """
        Apply the Bellman expectation operator for a fixed policy once.

        Args:
            values: Value function of the previous sweep
            policy: Policy whose action is taken in every state

        Returns:
            Tuple of (new_values, delta).
        """
        env = self.model.env
        new_values: ValueFunction = {}

        for state in env.states:
            if env.is_terminal(state):
                new_values[state] = 0.0
                continue
            new_values[state] = self.model.q_value(
                state, policy[state], values, self.gamma
            )

        return new_values, _max_change(values, new_values)

    def improve(
        self,
        values: ValueFunction,
        policy: Policy
    ) -> Tuple[Policy, bool]:
        """
        Greedy improvement sweep.

        Args:
            values: Current value function
            policy: Working policy before improvement

        Returns:
            Tuple of (improved_policy, stable) where stable is True iff no
            state changed its action.
        """
        env = self.model.env
        improved: Policy = {}
        stable = True

        for state in env.states:
            if env.is_terminal(state):
                improved[state] = None
                continue

            best = greedy_action(self.model, state, values, self.gamma)
            if best is not policy[state]:
                stable = False
            improved[state] = best

        return improved, stable

    def step(self, run: RunState) -> bool:
        """
        Advance a run by one evaluation or improvement step.

        Args:
            run: Run state, updated in place

        Returns:
            True if this step was an improvement that left the policy stable.
        """
        if run.phase is Phase.EVALUATING:
            run.values, run.delta = self.evaluate_sweep(run.values, run.working_policy)
            run.eval_sweeps_left -= 1
            if run.eval_sweeps_left <= 0:
                run.phase = Phase.IMPROVING
            run.policy = dict(run.working_policy)
            logger.debug(
                "PI evaluation sweep %d: delta=%.6f, sweeps left=%d",
                run.iteration + 1, run.delta, run.eval_sweeps_left
            )
            return False

        improved, stable = self.improve(run.values, run.working_policy)
        run.working_policy = improved
        run.policy = dict(improved)
        run.delta = 0.0
        run.improvements += 1
        logger.debug(
            "PI improvement %d at step %d: stable=%s",
            run.improvements, run.iteration + 1, stable
        )

        if stable:
            return True

        run.phase = Phase.EVALUATING
        run.eval_sweeps_left = self.eval_sweeps
        return False


def build_engine(
    algorithm: str,
    model: TransitionModel,
    gamma: float,
    theta: float,
    eval_sweeps: int
):
    """
    Engine factory keyed by algorithm name.

    Raises:
        ValueError: If the algorithm name is unknown.
    """
    if algorithm == VALUE_ITERATION:
        return ValueIterationEngine(model, gamma=gamma, theta=theta)
    if algorithm == POLICY_ITERATION:
        return PolicyIterationEngine(model, gamma=gamma, eval_sweeps=eval_sweeps)
    raise ValueError(f"Unknown algorithm: {algorithm!r}")

