"""Plain-text rendering of value and policy tables for the command line."""

from __future__ import annotations

from typing import Callable, Optional

from .environment import GridWorld, Policy, ValueFunction

CELL_WIDTH = 7


def _border(left: str, mid: str, right: str, cols: int) -> str:
    return left + (("─" * CELL_WIDTH) + mid) * (cols - 1) + ("─" * CELL_WIDTH) + right


def _special_cell(env: GridWorld, state) -> Optional[str]:
    if env.is_wall(state):
        return "█".center(CELL_WIDTH)
    if env.is_terminal(state):
        return f"T({env.terminal_reward(state):+g})".center(CELL_WIDTH)
    return None


def _render(env: GridWorld, title: str, cell: Callable) -> str:
    lines = [f"\n{title}:", _border("┌", "┬", "┐", env.cols)]

    for i in range(env.rows):
        row = "│"
        for j in range(env.cols):
            text = _special_cell(env, (i, j))
            if text is None:
                text = cell((i, j))
            row += text + "│"
        lines.append(row)

        if i < env.rows - 1:
            lines.append(_border("├", "┼", "┤", env.cols))

    lines.append(_border("└", "┴", "┘", env.cols))
    return "\n".join(lines)


def render_values(env: GridWorld, values: ValueFunction) -> str:
    """Render a value function as a grid of numbers."""
    return _render(
        env,
        "State Value Function",
        lambda s: f"{values.get(s, 0.0):{CELL_WIDTH}.2f}",
    )


def render_policy(env: GridWorld, policy: Policy) -> str:
    """Render a policy as a grid of arrows."""
    def cell(s):
        action = policy.get(s)
        return (action.arrow if action is not None else " ").center(CELL_WIDTH)

    return _render(env, "Policy", cell)
