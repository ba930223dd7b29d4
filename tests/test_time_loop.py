"""
test_time_loop.py — Shock tube problems and the outer time loop
================================================================

Verifies:
  - Problem library and initial data
  - Integration ends exactly at t_end and stays admissible
  - Error norms against the exact solution are small on a modest graph
  - Rejected steps are retried with a reduced CFL number
  - The last step is clipped to end at t_end
  - Command line options of the driver
"""

import numpy as np
import pytest

from idp_euler import Restart, StepParameters
from shock_tube import PROBLEMS, TimeLoop, get_problem
from shock_tube.main import parse_args


class TestProblems:
    """Riemann problem library."""

    @pytest.mark.parametrize("name", sorted(PROBLEMS))
    def test_initial_state_admissible(self, name):
        problem = get_problem(name)
        x = np.linspace(*problem.x_range, 21)
        U = problem.initial_state(x)
        assert U.shape == (problem.eos.n_components, 21)
        assert np.all(problem.eos.is_admissible(U))

    def test_boundary_states(self):
        left, right = get_problem('sod').boundary_states()
        np.testing.assert_allclose(left, [1.0, 0.0, 2.5])
        np.testing.assert_allclose(right, [0.125, 0.0, 0.25])

    def test_gamma_override(self):
        assert get_problem('sod', gamma=1.67).eos.gamma == 1.67

    def test_unknown_problem(self):
        with pytest.raises(ValueError):
            get_problem('sedov')


class TestTimeLoop:
    """Forward Euler loop with Dirichlet ends."""

    def test_sod_reaches_t_end(self):
        loop = TimeLoop(get_problem('sod'), n_nodes=201)
        rho, u, p = loop.solve(t_end=0.1)

        assert loop.t == pytest.approx(0.1, rel=1e-12)
        assert np.all(rho > 0.0) and np.all(p > 0.0)
        assert loop.context.n_restarts == 0
        assert loop.time_history[0] == 0.0
        assert loop.time_history[-1] == loop.t
        assert len(loop.lij_history) == loop.n_steps
        # the last step is clipped, not redone
        assert loop.context.n_steps == loop.n_steps

    def test_sod_errors(self):
        loop = TimeLoop(get_problem('sod'), n_nodes=201)
        loop.solve(t_end=0.1)
        errors = loop.compute_errors()

        assert set(errors) == {f'{v}_{norm}' for v in ('rho', 'u', 'p')
                               for norm in ('L1', 'L2', 'Linf')}
        assert errors['rho_L1'] < 0.02
        assert errors['p_L1'] < 0.02

    def test_dam_break(self):
        loop = TimeLoop(get_problem('dam_break'), n_nodes=101)
        h, u = loop.solve(t_end=0.02)
        assert np.all(h > 0.0)
        assert loop.compute_errors()['h_L1'] < 0.05

    def test_near_vacuum_single_step(self):
        parameters = StepParameters(id_violation_strategy='warn')
        loop = TimeLoop(get_problem('near_vacuum'), n_nodes=101, parameters=parameters)
        U_0 = loop.U.copy()
        result = loop.step()

        assert result.violation is None
        assert loop.context.n_warnings == 0
        assert loop.context.n_restarts == 0
        assert np.all(loop.U[0] > 0.0)
        assert np.all(loop.problem.eos.is_admissible(loop.U))
        assert np.isfinite(result.tau_max)
        assert np.all((result.lij >= 0.0) & (result.lij <= 1.0))
        # the vacuum ahead of the jump edge is untouched
        np.testing.assert_allclose(loop.U[:, 52:], U_0[:, 52:], rtol=1e-14)

    def test_retry_reduces_cfl(self, monkeypatch):
        loop = TimeLoop(get_problem('sod'), n_nodes=51, cfl=0.8)
        original_step = loop.stepper.step
        seen = []

        def flaky_step(U, context, **kwargs):
            seen.append(context.cfl)
            if len(seen) == 1:
                raise Restart("forced rejection")
            return original_step(U, context, **kwargs)

        monkeypatch.setattr(loop.stepper, 'step', flaky_step)
        loop.step()

        assert seen == [0.8, pytest.approx(0.4)]
        assert loop.context.cfl == 0.8
        assert loop.n_steps == 1

    def test_retries_exhausted(self, monkeypatch):
        loop = TimeLoop(get_problem('sod'), n_nodes=51, max_retries=2)

        def always_reject(U, context, **kwargs):
            raise Restart("forced rejection")

        monkeypatch.setattr(loop.stepper, 'step', always_reject)
        with pytest.raises(RuntimeError):
            loop.step()
        assert loop.context.cfl == loop.cfl

    def test_invalid_retry_factor(self):
        with pytest.raises(ValueError):
            TimeLoop(get_problem('sod'), n_nodes=21, retry_factor=1.0)

    def test_clipped_tau(self):
        loop = TimeLoop(get_problem('sod'), n_nodes=51)
        tau_max = loop.stepper.compute_tau_max(loop.stepper.build_viscosity(loop.U),
                                               loop.context.cfl)

        assert loop.clipped_tau(t_end=1.0) == 0.0
        assert loop.clipped_tau(t_end=0.5 * tau_max) == pytest.approx(0.5 * tau_max)

        result = loop.step(tau=loop.clipped_tau(t_end=0.5 * tau_max))
        assert loop.t == pytest.approx(0.5 * tau_max)
        assert result.violation is None
        assert loop.context.n_steps == loop.n_steps == 1


class TestCommandLine:
    """Options of the shock tube driver."""

    def test_parse_args(self):
        args = parse_args(['--problem', 'leblanc', '--t-end', '0.2', '--workers', '3',
                           '--output-dir', 'out', '--no-plots', '--limiter-passes', '4'])

        assert args.problem == 'leblanc'
        assert args.t_end == 0.2
        assert args.workers == 3
        assert args.output_dir == 'out'
        assert args.no_plots
        assert args.limiter_passes == 4

    def test_defaults(self):
        args = parse_args([])
        assert args.workers == 1
        assert args.t_end is None
        assert args.strategy == 'raise'
