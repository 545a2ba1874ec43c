"""
Tests for the device context and the simulation state.
"""

import os
import threading

import numpy as np
import pytest

from fieldscript.engine import (
    DeviceContext, DeviceAffinityError, Simulation, Mesh, Uniform, Vortex, normalize,
)


def _on_other_thread(fn):
    """Run fn on a fresh thread and return the exception it raised, if any."""
    errors = []

    def target():
        try:
            fn()
        except Exception as e:
            errors.append(e)

    thread = threading.Thread(target=target)
    thread.start()
    thread.join()
    return errors[0] if errors else None


@pytest.fixture
def sim():
    device = DeviceContext()
    device.lock_thread()
    return Simulation(device, Mesh(4, 2, 1, 1e-9, 1e-9, 1e-9))


class TestDeviceContext:
    """Single-thread affinity."""

    def test_unlocked(self):
        device = DeviceContext()
        assert not device.locked
        with pytest.raises(DeviceAffinityError):
            device.ensure_owner()

    def test_owner(self):
        device = DeviceContext(gpu=1)
        device.lock_thread()
        assert device.owner is threading.current_thread()
        device.ensure_owner()
        device.lock_thread()  # owner may lock again

    def test_other_thread_refused(self):
        device = DeviceContext()
        device.lock_thread()
        error = _on_other_thread(device.ensure_owner)
        assert isinstance(error, DeviceAffinityError)

    def test_cannot_steal_lock(self):
        device = DeviceContext()
        device.lock_thread()
        error = _on_other_thread(device.lock_thread)
        assert isinstance(error, DeviceAffinityError)
        assert device.owner is threading.current_thread()


class TestSimulation:
    """Magnetization, time stepping and output."""

    def test_initial_state(self, sim):
        assert sim.magnetization is None
        assert sim.time == 0.0
        assert sim.average() == (0.0, 0.0, 0.0)

    def test_set_magnetization_normalizes(self, sim):
        sim.set_magnetization(Uniform(2, 0, 0))
        m = sim.magnetization
        assert m.shape == (1, 2, 4, 3)
        assert np.allclose(m[..., 0], 1.0)
        assert sim.average() == pytest.approx((1.0, 0.0, 0.0))

    def test_magnetization_is_a_copy(self, sim):
        sim.set_magnetization(Uniform(1, 0, 0))
        sim.magnetization[...] = 0
        assert sim.average() == pytest.approx((1.0, 0.0, 0.0))

    def test_grid_change_resamples(self, sim):
        sim.set_magnetization(Vortex.on_mesh(1, 1, sim.mesh))
        sim.set_grid_size(8, 8, 1)
        assert sim.magnetization.shape == (1, 8, 8, 3)
        sim.set_cell_size(2e-9, 2e-9, 1e-9)
        assert sim.mesh.cell_size() == (2e-9, 2e-9, 1e-9)

    def test_run_advances_time(self, sim):
        sim.set_magnetization(Uniform(0, 0, 1))
        sim.run(1e-12)
        assert sim.time == pytest.approx(1e-12)
        assert sim.steps == 10
        sim.run(0)
        assert sim.time == pytest.approx(1e-12)

    def test_long_run_without_solver_step(self, sim):
        sim.set_magnetization(Uniform(0, 1, 0))
        before = sim.magnetization
        sim.run(1e-3)  # 1e10 steps of 1e-13 s
        assert sim.steps == pytest.approx(10 ** 10, abs=1)
        assert sim.time == pytest.approx(1e-3)
        assert np.array_equal(sim.magnetization, before)

    def test_run_with_custom_step(self):
        device = DeviceContext()
        device.lock_thread()
        flip = Simulation(device, Mesh(), step=lambda m, dt: -m, dt=1e-12)
        flip.set_magnetization(Uniform(1, 0, 0))
        flip.run(3e-12)
        assert flip.average() == pytest.approx((-1.0, 0.0, 0.0))

    def test_run_requires_magnetization(self, sim):
        with pytest.raises(RuntimeError):
            sim.run(1e-12)

    def test_negative_duration(self, sim):
        sim.set_magnetization(Uniform(1, 0, 0))
        with pytest.raises(ValueError):
            sim.run(-1.0)

    def test_save(self, sim, tmp_path):
        sim.set_magnetization(Uniform(0, 1, 0))
        first = sim.save(str(tmp_path))
        second = sim.save(str(tmp_path))
        assert os.path.basename(first) == "m000000.npy"
        assert os.path.basename(second) == "m000001.npy"
        np.testing.assert_array_equal(np.load(first), sim.magnetization)

    def test_off_thread_mutation_refused(self, sim):
        error = _on_other_thread(lambda: sim.set_magnetization(Uniform(1, 0, 0)))
        assert isinstance(error, DeviceAffinityError)
        assert sim.magnetization is None

    def test_summary(self, sim):
        summary = sim.summary()
        assert summary["time"] == 0.0
        assert "4x2x1" in summary["mesh"]


class TestNormalize:
    def test_unit_length(self):
        m = np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 0.0]])
        out = normalize(m)
        assert out[0] == pytest.approx([0.6, 0.8, 0.0])
        assert list(out[1]) == [0.0, 0.0, 0.0]
