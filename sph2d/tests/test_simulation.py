"""
Simulation driver tests.

Reset, atomic steps, host controls, parameter validation and the headless
runner.
"""

import numpy as np
import pytest

import sph2d
from sph2d import simulation as simulation_module
from sph2d.api import Stage
from sph2d.core.kernels import equilibrium_spacing
from sph2d.core.params import (BoxCollider, CapacityError, CircleCollider, ConfigurationError,
                               FLUID_PRESETS, SimulationParameters)
from sph2d.core.particles import ParticleArrays
from sph2d.scenarios import create_block_layout, create_square_grid


@pytest.fixture
def layout():
    return create_block_layout(64, equilibrium_spacing(55.0), center=(0.0, 1.0),
                               jitter=0.1, seed=3)


@pytest.fixture
def params(layout):
    return SimulationParameters(num_particles=len(layout))


class TestReset:
    """Resetting restores the initial layout exactly."""

    def test_reset_with_params_is_not_a_step(self, layout, params):
        sim = sph2d.FluidSimulation(layout)
        calls = []
        sim.add_step_listener(lambda: calls.append(1))

        sim.reset(params)
        assert calls == []
        assert sim.steps_completed == 0

    def test_reset_without_params_clears_density(self, layout, params):
        sim = sph2d.FluidSimulation(layout)
        sim.step(params)
        assert np.all(sim.snapshot()['density'] > 0)

        sim.reset()
        state = sim.snapshot()
        np.testing.assert_array_equal(state['density'], 0.0)
        np.testing.assert_array_equal(state['near_density'], 0.0)

    def test_reset_restores_layout(self, layout, params, backend):
        sim = sph2d.FluidSimulation(layout, backend=backend)
        for _ in range(5):
            sim.step(params)
        assert not np.array_equal(sim.get_particle_positions(), layout)

        sim.reset()
        np.testing.assert_array_equal(sim.get_particle_positions(), layout)
        np.testing.assert_array_equal(sim.particles.velocity[:len(layout)], 0.0)

    def test_reset_is_idempotent(self, layout, params, backend):
        first = sph2d.FluidSimulation(layout, backend=backend)
        first.step(params)
        first.reset(params)
        once = first.snapshot()

        first.reset(params)
        twice = first.snapshot()
        for name in once:
            np.testing.assert_array_equal(once[name], twice[name], err_msg=name)

        fresh = sph2d.FluidSimulation(layout, backend=backend)
        fresh.reset(params)
        for name in once:
            np.testing.assert_array_equal(fresh.snapshot()[name], once[name], err_msg=name)

    def test_reset_with_params_pauses_and_refreshes_density(self, layout, params):
        sim = sph2d.FluidSimulation(layout)
        sim.reset(params)

        assert sim.paused
        assert np.all(sim.snapshot()['density'] > 0)
        np.testing.assert_array_equal(sim.get_particle_positions(), layout)
        assert sim.run_frame(params, 1.0 / 60.0) == 0


class TestAtomicStep:
    """A failing stage leaves the particle state as it was."""

    def test_failed_stage_rolls_back(self, layout, params, monkeypatch):
        sim = sph2d.FluidSimulation(layout)
        sim.step(params)
        before = sim.particles.copy_state(len(layout))
        real_run_stage = simulation_module.run_stage

        def failing_run_stage(stage, *args, **kwargs):
            if stage is Stage.VISCOSITY:
                raise FloatingPointError("viscosity blew up")
            return real_run_stage(stage, *args, **kwargs)

        monkeypatch.setattr(simulation_module, "run_stage", failing_run_stage)
        with pytest.raises(FloatingPointError):
            sim.step(params)

        after = sim.particles.copy_state(len(layout))
        for name in before:
            np.testing.assert_array_equal(before[name], after[name], err_msg=name)
        assert sim.steps_completed == 1

    def test_listeners_not_called_on_failure(self, layout, params, monkeypatch):
        sim = sph2d.FluidSimulation(layout)
        calls = []
        sim.add_step_listener(lambda: calls.append(1))

        def failing_run_stage(stage, *args, **kwargs):
            raise RuntimeError("device lost")

        monkeypatch.setattr(simulation_module, "run_stage", failing_run_stage)
        with pytest.raises(RuntimeError):
            sim.step(params)
        assert calls == []


class TestHostControls:
    """Pause, single stepping, listeners and frame splitting."""

    def test_run_frame_substeps(self, layout, params):
        sim = sph2d.FluidSimulation(layout)
        seen = []
        sim.add_step_listener(lambda: seen.append(sim.steps_completed))

        assert sim.run_frame(params, 1.0 / 60.0, iterations_per_frame=3) == 3
        assert seen == [1, 2, 3]

    def test_run_frame_splits_time(self, layout, params, monkeypatch):
        sim = sph2d.FluidSimulation(layout)
        time_steps = []
        real_run_stage = simulation_module.run_stage

        def recording_run_stage(stage, particles, table, step_params, *args, **kwargs):
            if stage is Stage.INTEGRATE:
                time_steps.append(step_params.delta_time)
            return real_run_stage(stage, particles, table, step_params, *args, **kwargs)

        monkeypatch.setattr(simulation_module, "run_stage", recording_run_stage)
        sim.run_frame(params, 0.03, iterations_per_frame=3, time_scale=0.5)
        assert time_steps == pytest.approx([0.005, 0.005, 0.005])

    def test_pause_and_single_step(self, layout, params):
        sim = sph2d.FluidSimulation(layout)
        sim.toggle_pause()
        assert sim.paused
        assert sim.run_frame(params, 1.0 / 60.0, iterations_per_frame=2) == 0
        assert sim.steps_completed == 0

        sim.step_simulation()
        assert sim.run_frame(params, 1.0 / 60.0, iterations_per_frame=2) == 2
        assert sim.paused
        assert sim.run_frame(params, 1.0 / 60.0, iterations_per_frame=2) == 0

        sim.toggle_pause()
        assert not sim.paused

    def test_remove_listener(self, layout, params):
        sim = sph2d.FluidSimulation(layout)
        calls = []
        listener = lambda: calls.append(1)  # noqa: E731
        sim.add_step_listener(listener)
        sim.step(params)
        sim.remove_step_listener(listener)
        sim.step(params)
        assert calls == [1]

    def test_non_positive_substeps_rejected(self, layout, params):
        sim = sph2d.FluidSimulation(layout)
        with pytest.raises(ConfigurationError):
            sim.run_frame(params, 1.0 / 60.0, iterations_per_frame=0)

    def test_fluid_override(self, layout, params, monkeypatch):
        sim = sph2d.FluidSimulation(layout)
        seen = []
        real_run_stage = simulation_module.run_stage

        def recording_run_stage(stage, particles, table, step_params, *args, **kwargs):
            if stage is Stage.VISCOSITY:
                seen.append(step_params.viscosity_strength)
            return real_run_stage(stage, particles, table, step_params, *args, **kwargs)

        monkeypatch.setattr(simulation_module, "run_stage", recording_run_stage)
        sim.set_fluid_properties(FLUID_PRESETS['honey'])
        sim.step(params)
        sim.set_fluid_properties(None)
        sim.step(params)
        assert seen == [FLUID_PRESETS['honey'].viscosity_strength, params.viscosity_strength]


class TestOutput:
    """Read-only views of particle state."""

    def test_snapshot_is_read_only_copy(self, layout, params):
        sim = sph2d.FluidSimulation(layout)
        sim.step(params)
        state = sim.snapshot()

        assert set(state) == {'position', 'velocity', 'density', 'near_density'}
        assert state['position'].shape == (len(layout), 2)
        with pytest.raises(ValueError):
            state['position'][0, 0] = 100.0

        sim.step(params)
        assert not np.array_equal(state['position'], sim.snapshot()['position'])

    def test_particle_count(self, layout):
        sim = sph2d.FluidSimulation(layout)
        assert sim.particle_count == len(layout)

    def test_extra_capacity(self, layout):
        sim = sph2d.FluidSimulation(layout, capacity=100)
        assert sim.particles.capacity == 100
        sim.step(SimulationParameters(num_particles=len(layout)))
        assert np.all(np.isfinite(sim.get_particle_positions()))


class TestValidation:
    """Configuration and capacity errors."""

    def test_more_particles_than_capacity(self, layout):
        sim = sph2d.FluidSimulation(layout)
        with pytest.raises(CapacityError):
            sim.step(SimulationParameters(num_particles=len(layout) + 1))

    def test_particle_count_mismatch(self, layout):
        sim = sph2d.FluidSimulation(layout, capacity=100)
        with pytest.raises(ConfigurationError):
            sim.step(SimulationParameters(num_particles=10))

    def test_layout_over_capacity(self):
        with pytest.raises(CapacityError):
            sph2d.FluidSimulation(create_square_grid(4, 4, 0.1), capacity=8)

    def test_velocity_count_mismatch(self):
        particles = ParticleArrays.allocate(4)
        with pytest.raises(ConfigurationError):
            particles.load_layout(np.zeros((4, 2)), np.zeros((3, 2)))

    def test_empty_layout(self):
        with pytest.raises(ConfigurationError):
            sph2d.FluidSimulation(np.zeros((0, 2)))

    def test_zero_capacity(self):
        with pytest.raises(ConfigurationError):
            ParticleArrays.allocate(0)

    @pytest.mark.parametrize("changes", [
        {'num_particles': 0},
        {'smoothing_radius': 0.0},
        {'smoothing_radius': -0.35},
        {'target_density': 0.0},
        {'collision_damping': 1.5},
        {'collision_damping': -0.1},
        {'delta_time': -0.01},
        {'bounds_half_extent': (-1.0, 1.0)},
        {'interaction_radius': -2.0},
    ])
    def test_invalid_parameters(self, changes):
        values = {'num_particles': 10}
        values.update(changes)
        with pytest.raises(ConfigurationError):
            SimulationParameters(**values)

    def test_with_updates_revalidates(self, params):
        with pytest.raises(ConfigurationError):
            params.with_updates(smoothing_radius=0.0)

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)

    def test_parameters_normalise_sequences(self):
        params = SimulationParameters(num_particles=3, bounds_half_extent=[4, 2],
                                      interaction_point=[1, 1])
        assert params.bounds_half_extent == (4.0, 2.0)
        assert params.interaction_point == (1.0, 1.0)
        hash(params)

    def test_colliders_normalise_sequences(self):
        box = BoxCollider(center=[0, 1], size=[2, 1])
        circle = CircleCollider(center=[3, 0], radius=1)
        params = SimulationParameters(num_particles=1, box_colliders=[box],
                                      circle_colliders=[circle])
        assert box.center == (0.0, 1.0)
        assert box.size == (2.0, 1.0)
        assert circle.center == (3.0, 0.0)
        assert isinstance(circle.radius, float)
        hash(params)

    @pytest.mark.parametrize("name", sorted(FLUID_PRESETS))
    def test_presets_rest_spacing_inside_radius(self, name):
        fluid = FLUID_PRESETS[name]
        assert fluid.smoothing_radius > 1.5 * equilibrium_spacing(fluid.target_density)
        SimulationParameters(num_particles=1).with_fluid(fluid)


class TestLongRun:
    """A settling block stays finite and inside the bounds."""

    def test_block_stays_contained(self, backend):
        layout = create_block_layout(225, equilibrium_spacing(55.0), center=(0.0, 0.0))
        params = SimulationParameters(num_particles=len(layout), bounds_half_extent=(2.0, 2.0))
        sim = sph2d.FluidSimulation(layout, backend=backend)
        for _ in range(20):
            sim.run_frame(params, 1.0 / 60.0, iterations_per_frame=2)

        state = sim.snapshot()
        assert np.all(np.isfinite(state['position']))
        assert np.all(np.isfinite(state['velocity']))
        assert np.all(np.abs(state['position']) <= 2.0)
        assert np.all(state['density'] > 0)


class TestHeadless:
    """Command line runner."""

    def test_main_runs(self):
        from sph2d.main_headless import main
        try:
            assert main(['--particles', '49', '--frames', '2', '--substeps', '1',
                         '--backend', 'cpu', '--obstacle']) == 0
        finally:
            sph2d.set_backend('cpu')
