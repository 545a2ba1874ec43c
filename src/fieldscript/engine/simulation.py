"""
Simulation state driven by scripts.

Holds the mesh, the magnetization array sampled from a Config and the
simulated time. Time stepping is delegated to a pluggable solver step;
the default step leaves the magnetization unchanged and only advances
time. Every operation that touches device-resident state checks thread
affinity first.
"""

import logging
import math
import os
from typing import Callable, Optional, Tuple

import numpy as np

from .config import Config, sample
from .device import DeviceContext
from .mesh import Mesh

logger = logging.getLogger(__name__)

# (magnetization, dt) -> new magnetization
SolverStep = Callable[[np.ndarray, float], np.ndarray]


def identity_step(m: np.ndarray, dt: float) -> np.ndarray:
    return m


def normalize(m: np.ndarray) -> np.ndarray:
    """Scale every cell vector to unit length; zero vectors stay zero."""
    norms = np.linalg.norm(m, axis=-1, keepdims=True)
    with np.errstate(invalid="ignore", divide="ignore"):
        out = np.where(norms > 0, m / norms, 0.0)
    return out


class Simulation:
    """
    Magnetization, mesh and time of one run.

    Args:
        device: The device context owning this state
        mesh: Initial mesh geometry
        step: Solver step applied by run()
        dt: Fixed time step used by run()
    """

    def __init__(self, device: DeviceContext, mesh: Optional[Mesh] = None,
                 step: SolverStep = identity_step, dt: float = 1e-13):
        self.device = device
        self.mesh = mesh or Mesh()
        self.step = step
        self.dt = dt
        self.time = 0.0
        self.steps = 0
        self.saved = 0
        self._m: Optional[np.ndarray] = None
        self._config: Optional[Config] = None

    # --- Mesh ---

    def set_grid_size(self, nx: int, ny: int, nz: int) -> None:
        self.device.ensure_owner()
        self.mesh = self.mesh.with_grid(nx, ny, nz)
        self._resample()
        logger.info("grid size set: %s", self.mesh)

    def set_cell_size(self, cx: float, cy: float, cz: float) -> None:
        self.device.ensure_owner()
        self.mesh = self.mesh.with_cells(cx, cy, cz)
        self._resample()
        logger.info("cell size set: %s", self.mesh)

    def _resample(self) -> None:
        if self._config is not None:
            self._m = normalize(sample(self._config, self.mesh))

    # --- Magnetization ---

    @property
    def magnetization(self) -> Optional[np.ndarray]:
        """Copy of the current magnetization, or None if never set."""
        return None if self._m is None else self._m.copy()

    @property
    def config(self) -> Optional[Config]:
        return self._config

    def set_magnetization(self, config: Config) -> None:
        """Sample a Config on the mesh and normalize it."""
        self.device.ensure_owner()
        self._m = normalize(sample(config, self.mesh))
        self._config = config

    def average(self) -> Tuple[float, float, float]:
        """Mean magnetization vector."""
        if self._m is None:
            return (0.0, 0.0, 0.0)
        avg = self._m.reshape(-1, 3).mean(axis=0)
        return (float(avg[0]), float(avg[1]), float(avg[2]))

    # --- Time stepping ---

    def run(self, duration: float) -> None:
        """Advance simulated time by `duration` seconds."""
        self.device.ensure_owner()
        if duration < 0:
            raise ValueError(f"run duration must not be negative: {duration}")
        if self._m is None:
            raise RuntimeError("magnetization not set (assign m first)")
        end = self.time + duration
        # absorb rounding in duration / dt
        nsteps = max(1, math.ceil(duration / self.dt - 1e-9)) if duration > 0 else 0
        if self.step is identity_step:
            # m is already normalized and does not change
            self.steps += nsteps
        else:
            for _ in range(nsteps):
                self._m = normalize(self.step(self._m, duration / nsteps))
                self.steps += 1
        self.time = end
        logger.info("ran %g s, t = %g s", duration, self.time)

    # --- Output ---

    def save(self, output_dir: str, prefix: str = "m") -> str:
        """
        Write the magnetization to `<output_dir>/<prefix>NNNNNN.npy`.

        Returns:
            The path written
        """
        self.device.ensure_owner()
        if self._m is None:
            raise RuntimeError("magnetization not set (assign m first)")
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, f"{prefix}{self.saved:06d}.npy")
        np.save(path, self._m)
        self.saved += 1
        logger.info("saved %s", path)
        return path

    def summary(self) -> dict:
        return {
            "mesh": str(self.mesh),
            "time": self.time,
            "steps": self.steps,
            "m_average": list(self.average()),
        }
