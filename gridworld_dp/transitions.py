"""
Transition Model Module

Core Idea:
    Turns the deterministic grid moves into the stochastic ("slippery")
    outcome distribution :math:`P(s', r | s, a)` consumed by the solvers.

Mathematical Theory:
    With slip probability :math:`\\varepsilon`:

    .. math::
        P(s'|s,a) = (1-\\varepsilon) \\cdot \\mathbb{1}[s'=\\text{move}(s,a)] +
                    \\sum_{a' \\neq a} \\frac{\\varepsilon}{3} \\cdot \\mathbb{1}[s'=\\text{move}(s,a')]

    Reward of an outcome:

    .. math::
        r(s') = \\begin{cases}
            R_{term}(s') & \\text{if } s' \\text{ is terminal} \\\\
            r_{step} & \\text{otherwise}
        \\end{cases}

    From a terminal state every action yields :math:`(1, s, 0)`.

Complexity:
    - Outcome query: O(|A|), O(1) after the first call (cached)
    - Memory: O(|S| × |A|²) for the cache

Summary:
    The outcome list always has four entries for a non-terminal state, even
    when :math:`\\varepsilon = 0` or :math:`\\varepsilon = 1`, so that the
    floating-point summation order of every backup is fixed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .config import State
from .environment import ACTIONS, Action, GridWorld, ValueFunction


@dataclass(frozen=True)
class Outcome:
    """
    Immutable container for one branch of a transition.

    Attributes:
        probability: Probability of this branch
        next_state: The resulting state
        reward: Immediate reward received on the transition
    """
    probability: float
    next_state: State
    reward: float


class TransitionModel:
    """
    Stochastic transition function over a GridWorld.

    Attributes:
        env: Grid topology
        slip: Probability mass not given to the intended action
        step_reward: Reward for any transition not entering a terminal

    Example:
        >>> model = TransitionModel(GridWorld(), slip=0.2, step_reward=-0.04)
        >>> [round(o.probability, 3) for o in model.outcomes((0, 0), Action.RIGHT)]
        [0.8, 0.067, 0.067, 0.067]
    """

    def __init__(self, env: GridWorld, slip: float, step_reward: float):
        self.env = env
        self.slip = slip
        self.step_reward = step_reward
        self._cache: Dict[Tuple[State, Action], List[Outcome]] = {}

    def reward(self, next_state: State) -> float:
        """Immediate reward for landing in next_state."""
        if self.env.is_terminal(next_state):
            return self.env.terminal_reward(next_state)
        return self.step_reward

    def outcomes(self, state: State, action: Action) -> List[Outcome]:
        """
        Get the outcome distribution for a state-action pair.

        The intended move comes first, followed by the remaining actions in
        enumeration order.

        Args:
            state: Current state
            action: Intended action

        Returns:
            List of outcomes whose probabilities sum to 1.0.
        """
        key = (state, action)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        # Terminal state: self-loop with zero reward
        if self.env.is_terminal(state):
            result = [Outcome(1.0, state, 0.0)]
        else:
            main_prob = 1.0 - self.slip
            other_prob = self.slip / 3.0

            intended = self.env.move(state, action)
            result = [Outcome(main_prob, intended, self.reward(intended))]

            for other in ACTIONS:
                if other is action:
                    continue
                other_next = self.env.move(state, other)
                result.append(Outcome(other_prob, other_next, self.reward(other_next)))

        self._cache[key] = result
        return result

    def q_value(
        self,
        state: State,
        action: Action,
        values: ValueFunction,
        gamma: float
    ) -> float:
        """
        One-step lookahead value.

        .. math::
            Q(s,a) = \\sum_{s'} P(s'|s,a)[r + \\gamma V(s')]
        """
        q_val = 0.0
        for outcome in self.outcomes(state, action):
            q_val += outcome.probability * (
                outcome.reward + gamma * values[outcome.next_state]
            )
        return q_val

    def q_values(
        self,
        state: State,
        values: ValueFunction,
        gamma: float
    ) -> Dict[Action, float]:
        """Q-values of every action in enumeration order."""
        return {a: self.q_value(state, a, values, gamma) for a in ACTIONS}
