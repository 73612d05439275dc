"""
GridWorld Dynamic Programming: Step-wise Value and Policy Iteration

Solves a slippery grid-world Markov Decision Process with Value Iteration
and (truncated) Policy Iteration, one sweep at a time, so that the value
table, the policy and the convergence delta can be observed between sweeps.

Modules:
    config: Grid layout and solver parameters with validation
    environment: GridWorld topology and the compass action set
    transitions: Stochastic outcome distribution per state-action pair
    algorithms: Value Iteration and Policy Iteration engines
    stepper: Reset / step / run lifecycle with cooperative cancellation
    executor: Monte Carlo execution of computed policies
    rendering: Plain-text value and policy tables

References:
    [1] Sutton & Barto, "Reinforcement Learning: An Introduction", 2018
    [2] Bellman, R. "Dynamic Programming", Princeton University Press, 1957
    [3] Howard, R. "Dynamic Programming and Markov Processes", MIT Press, 1960
"""

from .config import (
    GridWorldConfig,
    SolverConfig,
    InvalidConfiguration,
    State,
    VALUE_ITERATION,
    POLICY_ITERATION,
    load_config,
    save_config,
)
from .environment import GridWorld, Action, Policy, ValueFunction
from .transitions import TransitionModel, Outcome
from .algorithms import (
    ValueIterationEngine,
    PolicyIterationEngine,
    RunState,
    RunStatus,
    Phase,
    greedy_policy,
)
from .stepper import Stepper, Snapshot, CancellationToken
from .executor import PolicyExecutor

__version__ = "1.0.0"

__all__ = [
    "GridWorldConfig",
    "SolverConfig",
    "InvalidConfiguration",
    "VALUE_ITERATION",
    "POLICY_ITERATION",
    "load_config",
    "save_config",
    "GridWorld",
    "Action",
    "TransitionModel",
    "Outcome",
    "ValueIterationEngine",
    "PolicyIterationEngine",
    "RunState",
    "RunStatus",
    "Phase",
    "greedy_policy",
    "Stepper",
    "Snapshot",
    "CancellationToken",
    "PolicyExecutor",
    "State",
    "Policy",
    "ValueFunction",
]
