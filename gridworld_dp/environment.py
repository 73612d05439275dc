"""
GridWorld Environment Module

Core Idea:
    Static topology of the grid MDP: dimensions, walls, absorbing terminal
    cells with their entry rewards, the fixed compass action set and the
    deterministic movement rule that ignores slipping.

Mathematical Theory:
    State space: :math:`\\mathcal{S} = \\{(i,j) : 0 \\leq i < R, 0 \\leq j < C\\} \\setminus \\text{walls}`

    Action space: :math:`\\mathcal{A} = \\{\\uparrow, \\downarrow, \\leftarrow, \\rightarrow\\}`

    Deterministic move:

    .. math::
        \\text{move}(s, a) = \\begin{cases}
            s & \\text{if } s \\text{ is terminal} \\\\
            s & \\text{if } s + \\delta_a \\text{ is out of bounds or a wall} \\\\
            s + \\delta_a & \\text{otherwise}
        \\end{cases}

Summary:
    Every coordinate is exactly one of {wall, terminal, ordinary}. Terminal
    rewards are realised when a transition *enters* the cell; the value of a
    terminal cell itself is pinned at zero by the solvers.

    Reference layout (5×5):
        ┌────┬────┬────┬────┬────┐
        │    │    │    │    │+10 │
        ├────┼────┼────┼────┼────┤
        │    │ █  │ █  │    │    │
        ├────┼────┼────┼────┼────┤
        │    │    │ █  │    │    │
        ├────┼────┼────┼────┼────┤
        │    │    │    │    │    │
        ├────┼────┼────┼────┼────┤
        │    │    │    │    │-10 │
        └────┴────┴────┴────┴────┘
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from .config import GridWorldConfig, State


class Action(Enum):
    """
    Enumeration of available actions in GridWorld.

    Declaration order is the enumeration order used everywhere (transition
    fan-out, greedy tie-breaking).

    Attributes:
        UP: Move one cell upward (row index decreases)
        DOWN: Move one cell downward (row index increases)
        LEFT: Move one cell leftward (column index decreases)
        RIGHT: Move one cell rightward (column index increases)
    """
    UP = (-1, 0)
    DOWN = (1, 0)
    LEFT = (0, -1)
    RIGHT = (0, 1)

    @property
    def delta(self) -> Tuple[int, int]:
        """Coordinate offset of the move."""
        return self.value

    @property
    def arrow(self) -> str:
        return ACTION_ARROWS[self]


ACTION_ARROWS: Dict[Action, str] = {
    Action.UP: '↑',
    Action.DOWN: '↓',
    Action.LEFT: '←',
    Action.RIGHT: '→',
}

ACTIONS: Tuple[Action, ...] = tuple(Action)

Policy = Dict[State, Optional[Action]]
"""Deterministic policy; terminal states map to None."""

ValueFunction = Dict[State, float]
"""State value function V(s) over all non-wall states."""


class GridWorld:
    """
    Grid topology with walls and absorbing terminals.

    Attributes:
        config: Validated grid layout

    Example:
        >>> env = GridWorld()
        >>> env.move((0, 0), Action.RIGHT)
        (0, 1)
        >>> env.move((0, 1), Action.DOWN)   # (1, 1) is a wall
        (0, 1)
    """

    def __init__(self, config: Optional[GridWorldConfig] = None):
        """
        Initialize GridWorld environment.

        Args:
            config: Grid layout. Uses the reference 5×5 layout if None.

        Raises:
            InvalidConfiguration: If the layout is invalid.
        """
        self.config = config or GridWorldConfig()
        self._build_state_space()

    @classmethod
    def default(cls) -> "GridWorld":
        """Reference 5×5 layout with two terminals and three walls."""
        return cls(GridWorldConfig())

    def _build_state_space(self) -> None:
        """Construct row-major state lists excluding walls."""
        self._states = [
            (i, j)
            for i in range(self.config.rows)
            for j in range(self.config.cols)
            if (i, j) not in self.config.walls
        ]
        self._non_terminal_states = [
            s for s in self._states if s not in self.config.terminals
        ]

    @property
    def rows(self) -> int:
        return self.config.rows

    @property
    def cols(self) -> int:
        return self.config.cols

    @property
    def states(self) -> List[State]:
        """Return copy of state space (row-major) to prevent external modification."""
        return self._states.copy()

    @property
    def non_terminal_states(self) -> List[State]:
        """Return non-wall, non-terminal states in row-major order."""
        return self._non_terminal_states.copy()

    @property
    def terminal_states(self) -> List[State]:
        return sorted(self.config.terminals)

    @property
    def actions(self) -> List[Action]:
        return list(ACTIONS)

    @property
    def num_states(self) -> int:
        return len(self._states)

    def in_bounds(self, state: State) -> bool:
        return self.config.in_bounds(state)

    def is_wall(self, state: State) -> bool:
        return state in self.config.walls

    def is_terminal(self, state: State) -> bool:
        return state in self.config.terminals

    def terminal_reward(self, state: State) -> float:
        """
        Reward received on entering a terminal cell.

        Raises:
            KeyError: If state is not terminal.
        """
        try:
            return self.config.terminals[state]
        except KeyError:
            raise KeyError(f"Not a terminal state: {state}") from None

    def move(self, state: State, action: Action) -> State:
        """
        Execute movement action with boundary and wall collision handling.

        Args:
            state: Current position
            action: Direction to move

        Returns:
            New position after move (same as input if terminal or blocked).
        """
        if self.is_terminal(state):
            return state

        di, dj = action.delta
        next_state = (state[0] + di, state[1] + dj)

        # Collision with boundary or wall: stay in place
        if not self.in_bounds(next_state) or self.is_wall(next_state):
            return state

        return next_state

