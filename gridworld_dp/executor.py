"""
Policy Executor Module

Core Idea:
    Executes a computed policy through the stochastic transition model and
    collects performance statistics. Empirical check that a dynamic
    programming solution behaves as its value table predicts.

Mathematical Theory:
    **Episode Return**:

    .. math::
        G_0 = \\sum_{t=0}^{T-1} r_{t+1}

    **Expected Return** (Monte Carlo estimate over N episodes):

    .. math::
        \\hat{G} = \\frac{1}{N} \\sum_{i=1}^{N} G_0^{(i)}

Complexity:
    - Single episode: O(T × |A|) where T is episode length
    - Multi-episode evaluation: O(N × T × |A|)
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from .config import State
from .environment import Policy
from .transitions import TransitionModel

logger = logging.getLogger(__name__)


class PolicyExecutor:
    """
    Execute and evaluate deterministic policies on a GridWorld.

    Attributes:
        model: Transition model the episodes are sampled from
        rng: NumPy random number generator for reproducibility

    Example:
        >>> executor = PolicyExecutor(stepper.model, seed=42)
        >>> reward, steps, trajectory = executor.run_episode(stepper.policy, (0, 0))
        >>> stats = executor.evaluate_policy(stepper.policy, (0, 0), num_episodes=100)
    """

    def __init__(self, model: TransitionModel, seed: Optional[int] = None):
        """
        Initialize policy executor.

        Args:
            model: Transition model
            seed: Random seed for reproducibility. If None, uses system entropy.
        """
        self.model = model
        self.env = model.env
        self.rng = np.random.default_rng(seed)

    def default_start(self) -> State:
        """
        First non-terminal state in row-major order.

        Raises:
            ValueError: If every open cell is terminal.
        """
        states = self.env.non_terminal_states
        if not states:
            raise ValueError("Grid has no non-terminal state to start from")
        return states[0]

    def run_episode(
        self,
        policy: Policy,
        start: Optional[State] = None,
        max_steps: int = 100
    ) -> Tuple[float, int, List[State]]:
        """
        Execute a single episode following the given policy.

        Args:
            policy: Deterministic policy to execute
            start: Starting state (default: first non-terminal state)
            max_steps: Maximum steps before forced termination

        Returns:
            Tuple of:
                - total_reward: Cumulative undiscounted reward
                - steps: Number of steps taken
                - trajectory: List of visited states including start
        """
        state = start if start is not None else self.default_start()
        total_reward = 0.0
        trajectory = [state]

        for step in range(max_steps):
            if self.env.is_terminal(state):
                logger.debug("Terminal %s reached after %d steps", state, step)
                return total_reward, step, trajectory

            outcomes = self.model.outcomes(state, policy[state])
            probs = np.array([o.probability for o in outcomes])
            idx = self.rng.choice(len(outcomes), p=probs / probs.sum())
            outcome = outcomes[idx]

            total_reward += outcome.reward
            state = outcome.next_state
            trajectory.append(state)

        return total_reward, max_steps, trajectory

    def evaluate_policy(
        self,
        policy: Policy,
        start: Optional[State] = None,
        num_episodes: int = 100,
        max_steps: int = 100
    ) -> Dict[str, float]:
        """
        Evaluate policy performance over multiple episodes.

        Args:
            policy: Policy to evaluate
            start: Starting state (default: first non-terminal state)
            num_episodes: Number of episodes to run
            max_steps: Maximum steps per episode

        Returns:
            Dictionary with statistics:
                - mean_reward: Average episode return
                - std_reward: Standard deviation of returns
                - mean_steps: Average episode length
                - success_rate: Fraction ending in a positive-reward terminal
        """
        rewards = []
        steps_list = []
        successes = 0

        for _ in range(num_episodes):
            reward, steps, trajectory = self.run_episode(policy, start, max_steps)
            rewards.append(reward)
            steps_list.append(steps)

            last = trajectory[-1]
            if self.env.is_terminal(last) and self.env.terminal_reward(last) > 0:
                successes += 1

        return {
            'mean_reward': float(np.mean(rewards)),
            'std_reward': float(np.std(rewards)),
            'mean_steps': float(np.mean(steps_list)),
            'success_rate': successes / num_episodes
        }

    def greedy_path(self, policy: Policy, start: Optional[State] = None) -> List[State]:
        """
        Follow the most probable outcome of each policy action.

        Args:
            policy: Policy defining action selection
            start: Starting state (default: first non-terminal state)

        Returns:
            List of states from start to a terminal, a cycle or the step limit.
        """
        state = start if start is not None else self.default_start()
        path = [state]
        visited = {state}

        for _ in range(self.env.num_states * 2):
            if self.env.is_terminal(state):
                break

            outcomes = self.model.outcomes(state, policy[state])
            next_state = max(outcomes, key=lambda o: o.probability).next_state

            # Cycle detection
            if next_state in visited:
                break

            visited.add(next_state)
            path.append(next_state)
            state = next_state

        return path
