#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
GridWorld Dynamic Programming: Main Entry Point

Runs Value Iteration or Policy Iteration step by step on the slippery
GridWorld and prints the resulting value and policy tables.

Usage:
    python main.py                          # Value Iteration, defaults
    python main.py --algorithm pi           # Policy Iteration
    python main.py --slip 0.0 --gamma 0.9   # Deterministic movement
    python main.py --config run.json        # Load grid and solver settings
    python main.py --episodes 200           # Add Monte Carlo evaluation
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from gridworld_dp import (
    GridWorldConfig,
    InvalidConfiguration,
    PolicyExecutor,
    SolverConfig,
    Stepper,
    load_config,
    POLICY_ITERATION,
    VALUE_ITERATION,
)
from gridworld_dp.rendering import render_policy, render_values

logger = logging.getLogger(__name__)

ALGORITHM_ALIASES = {
    "vi": VALUE_ITERATION,
    "pi": POLICY_ITERATION,
}


def build_configs(args: argparse.Namespace):
    """
    Merge the optional JSON config with command line overrides.

    Raises:
        InvalidConfiguration: If the merged configuration is invalid.
    """
    if args.config:
        grid, solver = load_config(args.config)
    else:
        grid, solver = GridWorldConfig(), SolverConfig()

    overrides = {
        "gamma": args.gamma,
        "slip": args.slip,
        "step_reward": args.step_reward,
        "max_iterations": args.max_iterations,
        "eval_sweeps": args.eval_sweeps,
    }
    if args.algorithm:
        overrides["algorithm"] = ALGORITHM_ALIASES[args.algorithm]

    solver = dataclasses.replace(
        solver, **{k: v for k, v in overrides.items() if v is not None}
    )
    return grid, solver


def run_solver(stepper: Stepper, delay: float) -> None:
    """Run to completion, logging progress after every step."""
    for snapshot in stepper.run(delay=delay):
        if snapshot.phase is not None:
            logger.debug(
                "iteration=%d phase=%s delta=%.6f",
                snapshot.iteration, snapshot.phase.value, snapshot.delta
            )
        else:
            logger.debug("iteration=%d delta=%.6f", snapshot.iteration, snapshot.delta)


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Step-wise Value / Policy Iteration on a slippery GridWorld",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py --algorithm vi --gamma 0.9 --slip 0.2
    python main.py --algorithm pi --eval-sweeps 5
        """
    )

    parser.add_argument('--algorithm', choices=sorted(ALGORITHM_ALIASES), help='Solver algorithm')
    parser.add_argument('--gamma', type=float, help='Discount factor in [0, 1]')
    parser.add_argument('--slip', type=float, help='Slip probability in [0, 1]')
    parser.add_argument('--step-reward', type=float, help='Reward of each non-terminal step')
    parser.add_argument('--max-iterations', type=int, help='Iteration cap')
    parser.add_argument('--eval-sweeps', type=int, help='Evaluation sweeps per PI improvement')
    parser.add_argument('--config', help='JSON file with "grid" and "solver" sections')
    parser.add_argument('--delay', type=float, default=0.0, help='Seconds between steps')
    parser.add_argument('--episodes', type=int, default=0, help='Monte Carlo evaluation episodes')
    parser.add_argument('--seed', type=int, default=42, help='Random seed for evaluation')
    parser.add_argument('--verbose', action='store_true', help='Log every step')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        grid, solver = build_configs(args)
        stepper = Stepper(grid, solver)
    except InvalidConfiguration as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(2)

    run_solver(stepper, args.delay)

    print(render_values(stepper.env, stepper.values))
    print(render_policy(stepper.env, stepper.policy))
    print(f"\nIterations: {stepper.iteration}")
    print(f"Delta: {stepper.delta:.6f}")
    print(f"Status: {stepper.status.value}")

    if args.episodes > 0:
        executor = PolicyExecutor(stepper.model, seed=args.seed)
        stats = executor.evaluate_policy(stepper.policy, num_episodes=args.episodes)
        print(f"\n{args.episodes}-Episode Statistics:")
        print(f"  Mean reward: {stats['mean_reward']:.2f} ± {stats['std_reward']:.2f}")
        print(f"  Mean steps: {stats['mean_steps']:.2f}")
        print(f"  Success rate: {stats['success_rate']*100:.1f}%")


if __name__ == "__main__":
    main()
