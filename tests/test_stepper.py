"""
Unit Tests for the Stepper Lifecycle, Policy Executor and Rendering

Validates:
    - reset / step / run control discipline and status transitions
    - Iteration cap guard and cooperative cancellation
    - Monte Carlo policy execution
    - Plain-text tables
"""

import os
import sys
import unittest

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gridworld_dp.algorithms import Phase, RunStatus
from gridworld_dp.config import (
    POLICY_ITERATION,
    VALUE_ITERATION,
    GridWorldConfig,
    InvalidConfiguration,
    SolverConfig,
)
from gridworld_dp.environment import Action, GridWorld
from gridworld_dp.executor import PolicyExecutor
from gridworld_dp.rendering import render_policy, render_values
from gridworld_dp.stepper import Stepper
from gridworld_dp.transitions import TransitionModel


class TestStepperLifecycle(unittest.TestCase):
    """Test cases for reset and single stepping."""

    def setUp(self):
        self.config = SolverConfig(gamma=0.9, slip=0.2, step_reward=-0.04, max_iterations=500)
        self.stepper = Stepper(GridWorld.default(), self.config)

    def test_initial_state(self):
        snapshot = self.stepper.snapshot()

        self.assertEqual(snapshot.status, RunStatus.READY)
        self.assertEqual(snapshot.iteration, 0)
        self.assertEqual(snapshot.delta, 0.0)
        self.assertTrue(all(v == 0.0 for v in snapshot.values.values()))
        for state, action in snapshot.policy.items():
            if self.stepper.env.is_terminal(state):
                self.assertIsNone(action)
            else:
                self.assertIs(action, Action.RIGHT)

    def test_reset_is_idempotent(self):
        first = self.stepper.reset(config=self.config)
        second = self.stepper.reset(config=self.config)
        self.assertEqual(first, second)

    def test_reset_after_steps(self):
        initial = self.stepper.snapshot()
        for _ in range(5):
            self.stepper.step()

        self.assertEqual(self.stepper.reset(), initial)

    def test_step_increments_and_runs(self):
        snapshot = self.stepper.step()

        self.assertEqual(snapshot.iteration, 1)
        self.assertEqual(snapshot.status, RunStatus.RUNNING)
        self.assertGreater(snapshot.delta, 0.0)
        self.assertIsNone(snapshot.phase)

    def test_value_iteration_converges(self):
        snapshot = self.stepper.step()
        while snapshot.status is RunStatus.RUNNING:
            snapshot = self.stepper.step()

        self.assertEqual(snapshot.status, RunStatus.CONVERGED)
        self.assertLess(snapshot.delta, 1e-4)
        self.assertLess(snapshot.iteration, 500)

    def test_converged_run_stops_advancing(self):
        for snapshot in self.stepper.run():
            pass
        converged = self.stepper.snapshot()

        self.assertEqual(self.stepper.step(), converged)

    def test_max_iteration_guard(self):
        """Verify the cap is reported and further steps change nothing."""
        stepper = Stepper(GridWorld.default(), SolverConfig(gamma=0.9, slip=0.2, max_iterations=3))

        for _ in range(3):
            snapshot = stepper.step()
        self.assertEqual(snapshot.status, RunStatus.MAX_ITERATIONS_REACHED)
        self.assertEqual(snapshot.iteration, 3)

        again = stepper.step()
        self.assertEqual(again, snapshot)
        self.assertEqual(stepper.step(), snapshot)

    def test_policy_iteration_phases(self):
        stepper = Stepper(
            GridWorld.default(),
            SolverConfig(gamma=0.9, slip=0.0, eval_sweeps=3, algorithm=POLICY_ITERATION),
        )

        snapshot = stepper.reset()
        self.assertIs(snapshot.phase, Phase.EVALUATING)
        self.assertEqual(snapshot.eval_sweeps_left, 3)

        for _ in range(3):
            snapshot = stepper.step()
        self.assertIs(snapshot.phase, Phase.IMPROVING)
        self.assertEqual(snapshot.status, RunStatus.RUNNING)

        snapshot = stepper.step()
        self.assertIs(snapshot.phase, Phase.EVALUATING)
        self.assertEqual(snapshot.eval_sweeps_left, 3)
        self.assertEqual(snapshot.delta, 0.0)

    def test_policy_iteration_converges(self):
        stepper = Stepper(
            GridWorld.default(),
            SolverConfig(gamma=0.9, slip=0.0, max_iterations=1000, algorithm=POLICY_ITERATION),
        )
        for snapshot in stepper.run():
            pass

        self.assertEqual(stepper.status, RunStatus.CONVERGED)
        self.assertEqual(stepper.policy[(0, 0)], Action.RIGHT)
        self.assertIsNone(stepper.policy[(0, 4)])

    def test_select_algorithm_resets(self):
        self.stepper.step()
        snapshot = self.stepper.select_algorithm(POLICY_ITERATION)

        self.assertEqual(snapshot.algorithm, POLICY_ITERATION)
        self.assertEqual(snapshot.iteration, 0)
        self.assertEqual(snapshot.status, RunStatus.READY)
        self.assertIs(self.stepper.phase, Phase.EVALUATING)

    def test_invalid_reset_leaves_state_unchanged(self):
        self.stepper.step()
        before = self.stepper.snapshot()

        with self.assertRaises(InvalidConfiguration):
            self.stepper.select_algorithm("sarsa")
        with self.assertRaises(InvalidConfiguration):
            self.stepper.reset(grid="5x5")

        self.assertEqual(self.stepper.snapshot(), before)
        self.assertEqual(self.stepper.algorithm, VALUE_ITERATION)

    def test_value_grid(self):
        self.stepper.step()
        grid = self.stepper.value_grid()

        self.assertEqual(grid.shape, (5, 5))
        self.assertTrue(np.isnan(grid[1, 1]))
        self.assertTrue(np.isnan(grid[2, 2]))
        self.assertEqual(grid[0, 4], 0.0)
        self.assertAlmostEqual(grid[0, 3], self.stepper.values[(0, 3)])

    def test_accessors_return_copies(self):
        values = self.stepper.values
        values[(0, 0)] = 123.0
        self.assertEqual(self.stepper.values[(0, 0)], 0.0)


class TestStepperRun(unittest.TestCase):
    """Test cases for continuous runs and cancellation."""

    def setUp(self):
        self.stepper = Stepper(
            GridWorld.default(),
            SolverConfig(gamma=0.9, slip=0.2, max_iterations=500),
        )

    def test_run_to_convergence(self):
        snapshots = list(self.stepper.run())

        self.assertEqual(snapshots[-1].status, RunStatus.CONVERGED)
        self.assertEqual([s.iteration for s in snapshots], list(range(1, len(snapshots) + 1)))
        for snapshot in snapshots[:-1]:
            self.assertEqual(snapshot.status, RunStatus.RUNNING)
        self.assertFalse(self.stepper.is_running)

    def test_run_stops_at_cap(self):
        stepper = Stepper(GridWorld.default(), SolverConfig(gamma=0.9, max_iterations=4))
        snapshots = list(stepper.run())

        self.assertEqual(len(snapshots), 4)
        self.assertEqual(stepper.status, RunStatus.MAX_ITERATIONS_REACHED)

    def test_run_toggle_cancels(self):
        """Verify a second run() stops the first before its next sweep."""
        run = self.stepper.run()
        first = next(run)
        self.assertTrue(self.stepper.is_running)

        self.assertEqual(list(self.stepper.run()), [])
        self.assertEqual(self.stepper.status, RunStatus.STOPPED)

        with self.assertRaises(StopIteration):
            next(run)
        self.assertEqual(self.stepper.iteration, first.iteration)
        self.assertEqual(self.stepper.status, RunStatus.STOPPED)
        self.assertFalse(self.stepper.is_running)

    def test_stop_then_resume(self):
        run = self.stepper.run()
        next(run)
        next(run)
        self.stepper.stop()
        self.assertEqual(list(run), [])
        self.assertEqual(self.stepper.iteration, 2)

        snapshots = list(self.stepper.run())
        self.assertEqual(snapshots[0].iteration, 3)
        self.assertEqual(self.stepper.status, RunStatus.CONVERGED)

    def test_stop_without_run_is_noop(self):
        self.stepper.step()
        self.stepper.stop()
        self.assertEqual(self.stepper.status, RunStatus.RUNNING)

    def test_reset_cancels_run(self):
        run = self.stepper.run()
        next(run)
        self.stepper.reset()

        self.assertEqual(list(run), [])
        self.assertEqual(self.stepper.status, RunStatus.READY)
        self.assertEqual(self.stepper.iteration, 0)

    def test_reset_cancels_unstarted_run(self):
        """Verify a cancelled run that never started leaves the new run READY."""
        run = self.stepper.run()
        self.stepper.reset()

        self.assertEqual(list(run), [])
        self.assertEqual(self.stepper.status, RunStatus.READY)
        self.assertEqual(self.stepper.iteration, 0)
        self.assertFalse(self.stepper.is_running)

    def test_toggle_after_convergence_keeps_status(self):
        """Verify a toggle in the window after the final yield keeps CONVERGED."""
        run = self.stepper.run()
        snapshot = next(run)
        while snapshot.status is RunStatus.RUNNING:
            snapshot = next(run)
        self.assertEqual(snapshot.status, RunStatus.CONVERGED)

        self.assertEqual(list(self.stepper.run()), [])
        self.assertEqual(self.stepper.status, RunStatus.CONVERGED)

        self.assertEqual(self.stepper.step().iteration, snapshot.iteration)
        self.assertEqual(list(run), [])
        self.assertEqual(self.stepper.status, RunStatus.CONVERGED)
        self.assertEqual(self.stepper.iteration, snapshot.iteration)

    def test_stop_after_cap_keeps_status(self):
        stepper = Stepper(GridWorld.default(), SolverConfig(gamma=0.9, max_iterations=2))
        run = stepper.run()
        next(run)
        next(run)

        stepper.stop()
        self.assertEqual(stepper.status, RunStatus.MAX_ITERATIONS_REACHED)
        self.assertEqual(list(run), [])
        self.assertEqual(stepper.status, RunStatus.MAX_ITERATIONS_REACHED)

    def test_independent_steppers(self):
        other = Stepper(GridWorld.default(), SolverConfig(gamma=0.9, slip=0.2))
        self.stepper.step()

        self.assertEqual(other.iteration, 0)
        self.assertTrue(all(v == 0.0 for v in other.values.values()))


class TestPolicyExecutor(unittest.TestCase):
    """Test cases for policy execution."""

    def setUp(self):
        self.stepper = Stepper(
            GridWorld.default(),
            SolverConfig(gamma=0.9, slip=0.0, step_reward=-0.04),
        )
        for _ in self.stepper.run():
            pass
        self.executor = PolicyExecutor(self.stepper.model, seed=42)

    def test_episode_execution(self):
        reward, steps, trajectory = self.executor.run_episode(self.stepper.policy, (0, 0))

        self.assertEqual(trajectory[0], (0, 0))
        self.assertEqual(trajectory[-1], (0, 4))
        self.assertEqual(steps, 4)
        self.assertAlmostEqual(reward, 3 * -0.04 + 10.0)

    def test_evaluation_statistics(self):
        stats = self.executor.evaluate_policy(self.stepper.policy, num_episodes=20)

        self.assertEqual(stats['success_rate'], 1.0)
        self.assertAlmostEqual(stats['std_reward'], 0.0)
        self.assertIn('mean_steps', stats)

    def test_greedy_path(self):
        path = self.executor.greedy_path(self.stepper.policy, (0, 0))
        self.assertEqual(path, [(0, 0), (0, 1), (0, 2), (0, 3), (0, 4)])

    def test_default_start(self):
        self.assertEqual(self.executor.default_start(), (0, 0))

    def test_default_start_without_open_cells(self):
        env = GridWorld(GridWorldConfig(
            rows=1,
            cols=2,
            walls=frozenset({(0, 0)}),
            terminals={(0, 1): 1.0},
        ))
        executor = PolicyExecutor(TransitionModel(env, slip=0.0, step_reward=-0.04))

        with self.assertRaises(ValueError):
            executor.default_start()


class TestRendering(unittest.TestCase):

    def test_tables(self):
        stepper = Stepper(GridWorld.default(), SolverConfig(gamma=0.9, slip=0.0))
        stepper.step()

        values_text = render_values(stepper.env, stepper.values)
        policy_text = render_policy(stepper.env, stepper.policy)

        self.assertIn("█", values_text)
        self.assertIn("T(+10)", values_text)
        self.assertIn("T(-10)", values_text)
        self.assertIn("10.00", values_text)
        self.assertIn("→", policy_text)
        # One border line per row boundary plus top and bottom
        self.assertEqual(len(policy_text.strip().splitlines()), 1 + 5 + 6)


if __name__ == "__main__":
    unittest.main(verbosity=2)
