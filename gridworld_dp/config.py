"""
Configuration Module

Core Idea:
    Single source of truth for the grid layout and the solver hyperparameters.
    Both are validated once, at construction time, so that a solver run never
    starts from an inconsistent configuration.

Mathematical Theory:
    The solver parameters map directly onto the discounted MDP:

    - :math:`\\gamma \\in [0, 1]`: discount factor
    - :math:`\\varepsilon \\in [0, 1]`: slip probability, the mass *not*
      given to the intended action, split uniformly over the other three
    - :math:`r_{step}`: reward of every transition that does not enter a
      terminal cell
    - :math:`\\theta`: convergence threshold on the sweep delta

Summary:
    GridWorldConfig describes topology (dimensions, walls, terminals);
    SolverConfig describes how the MDP is solved. Both support dict and JSON
    round trips for the command line driver.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

State = Tuple[int, int]
"""State representation as (row, column) grid coordinates."""

VALUE_ITERATION = "value_iteration"
POLICY_ITERATION = "policy_iteration"
ALGORITHMS = (VALUE_ITERATION, POLICY_ITERATION)

ACTION_NAMES = ("UP", "DOWN", "LEFT", "RIGHT")


class InvalidConfiguration(ValueError):
    """Raised when a grid or solver configuration is rejected."""


def _as_state(value: Any) -> State:
    """Normalize a JSON-style coordinate (list or "r,c" string) to a tuple."""
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = list(value)
    if len(parts) != 2:
        raise InvalidConfiguration(f"Coordinate must have two components, got: {value!r}")
    return int(parts[0]), int(parts[1])


# =============================================================================
# Grid Layout
# =============================================================================

@dataclass(frozen=True)
class GridWorldConfig:
    """
    Static grid layout.

    Attributes:
        rows: Number of grid rows
        cols: Number of grid columns
        walls: Impassable cells
        terminals: Absorbing cells mapped to the reward received on entry
            (stored read-only)

    Example:
        >>> config = GridWorldConfig(
        ...     rows=5,
        ...     cols=5,
        ...     walls=frozenset({(1, 1), (1, 2), (2, 2)}),
        ...     terminals={(0, 4): 10.0, (4, 4): -10.0},
        ... )
    """
    rows: int = 5
    cols: int = 5
    walls: frozenset = field(
        default_factory=lambda: frozenset({(1, 1), (1, 2), (2, 2)})
    )
    terminals: Mapping[State, float] = field(
        default_factory=lambda: {(0, 4): 10.0, (4, 4): -10.0}
    )

    def __post_init__(self):
        """Normalize containers and validate the layout."""
        object.__setattr__(self, "walls", frozenset(_as_state(w) for w in self.walls))
        object.__setattr__(
            self,
            "terminals",
            MappingProxyType(
                {_as_state(k): float(v) for k, v in dict(self.terminals).items()}
            ),
        )
        self.validate()

    def validate(self) -> None:
        """
        Validate grid layout.

        Raises:
            InvalidConfiguration: If dimensions are non-positive, a wall or
                terminal lies outside the grid, or a cell is both.
        """
        if self.rows < 1 or self.cols < 1:
            raise InvalidConfiguration(
                f"Grid dimensions must be positive, got: {self.rows}x{self.cols}"
            )

        for wall in sorted(self.walls):
            if not self.in_bounds(wall):
                raise InvalidConfiguration(f"Wall out of bounds: {wall}")

        for terminal in sorted(self.terminals):
            if not self.in_bounds(terminal):
                raise InvalidConfiguration(f"Terminal out of bounds: {terminal}")
            if terminal in self.walls:
                raise InvalidConfiguration(f"Terminal cannot be a wall: {terminal}")

    def in_bounds(self, state: State) -> bool:
        """Check if a coordinate lies inside the grid."""
        return 0 <= state[0] < self.rows and 0 <= state[1] < self.cols

    def to_dict(self) -> Dict[str, Any]:
        """Convert layout to a JSON-compatible dictionary."""
        return {
            "rows": self.rows,
            "cols": self.cols,
            "walls": [list(w) for w in sorted(self.walls)],
            "terminals": {f"{r},{c}": v for (r, c), v in sorted(self.terminals.items())},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GridWorldConfig":
        """Create layout from a dictionary produced by :meth:`to_dict`."""
        kwargs: Dict[str, Any] = {}
        if "rows" in data:
            kwargs["rows"] = int(data["rows"])
        if "cols" in data:
            kwargs["cols"] = int(data["cols"])
        if "walls" in data:
            kwargs["walls"] = frozenset(_as_state(w) for w in data["walls"])
        if "terminals" in data:
            kwargs["terminals"] = {
                _as_state(k): float(v) for k, v in data["terminals"].items()
            }
        return cls(**kwargs)


# =============================================================================
# Solver Parameters
# =============================================================================

@dataclass(frozen=True)
class SolverConfig:
    """
    Solver hyperparameters, immutable for the duration of a run.

    Attributes:
        gamma: Discount factor γ ∈ [0, 1]
        slip: Slip probability ε ∈ [0, 1]
        step_reward: Reward of every non-terminal transition
        max_iterations: Cap on the number of steps of a run
        theta: Convergence threshold on the value-iteration delta
        eval_sweeps: Length of each truncated policy-evaluation phase.
            This is a tuning knob for interactive stepping, not an
            algorithmic requirement; any positive value converges.
        default_action: Action assigned to every non-terminal state at reset
        algorithm: ``"value_iteration"`` or ``"policy_iteration"``
    """
    gamma: float = 0.9
    slip: float = 0.2
    step_reward: float = -0.04
    max_iterations: int = 200
    theta: float = 1e-4
    eval_sweeps: int = 10
    default_action: str = "RIGHT"
    algorithm: str = VALUE_ITERATION

    def __post_init__(self):
        """Validate configuration parameters after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Validate solver parameters.

        Raises:
            InvalidConfiguration: If any parameter is outside its domain.
        """
        if not 0.0 <= self.gamma <= 1.0:
            raise InvalidConfiguration(f"gamma must be in [0, 1], got: {self.gamma}")

        if not 0.0 <= self.slip <= 1.0:
            raise InvalidConfiguration(f"slip must be in [0, 1], got: {self.slip}")

        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int):
            raise InvalidConfiguration(
                f"max_iterations must be an integer, got: {self.max_iterations!r}"
            )
        if self.max_iterations <= 0:
            raise InvalidConfiguration(
                f"max_iterations must be positive, got: {self.max_iterations}"
            )

        if self.theta <= 0:
            raise InvalidConfiguration(f"theta must be positive, got: {self.theta}")

        if self.eval_sweeps <= 0:
            raise InvalidConfiguration(
                f"eval_sweeps must be positive, got: {self.eval_sweeps}"
            )

        if self.default_action not in ACTION_NAMES:
            raise InvalidConfiguration(
                f"default_action must be one of {ACTION_NAMES}, got: {self.default_action!r}"
            )

        if self.algorithm not in ALGORITHMS:
            raise InvalidConfiguration(
                f"algorithm must be one of {ALGORITHMS}, got: {self.algorithm!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolverConfig":
        """Create configuration from dictionary."""
        return cls(**data)


# =============================================================================
# JSON Persistence
# =============================================================================

def save_config(path: str, grid: GridWorldConfig, solver: SolverConfig) -> None:
    """
    Save grid layout and solver parameters to a JSON file.

    Args:
        path: Output file path
        grid: Grid layout
        solver: Solver parameters
    """
    with open(path, "w", encoding="utf-8") as f:
        json.dump(
            {"grid": grid.to_dict(), "solver": solver.to_dict()},
            f,
            indent=2,
            ensure_ascii=False,
        )


def load_config(path: str) -> Tuple[GridWorldConfig, SolverConfig]:
    """
    Load grid layout and solver parameters from a JSON file.

    Missing sections fall back to defaults.

    Args:
        path: Input file path

    Returns:
        Tuple of (grid layout, solver parameters).

    Raises:
        InvalidConfiguration: If the file content is rejected.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    try:
        grid = GridWorldConfig.from_dict(data.get("grid", {}))
        solver = SolverConfig.from_dict(data.get("solver", {}))
    except TypeError as exc:
        raise InvalidConfiguration(f"Unrecognized configuration key in {path}: {exc}") from exc

    return grid, solver
