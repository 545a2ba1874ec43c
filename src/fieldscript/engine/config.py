"""
Field configuration algebra.

A Config maps a position (x, y, z) to a magnetization vector. Base
constructors describe common initial states; combinators wrap an existing
Config and evaluate it at a transformed position (or perturb its result),
returning a new Config without touching the wrapped one:

    c = Vortex.on_mesh(1, 1, mesh).translate(100e-9, 0, 0)   # core at x=100nm
    m = sample(c, mesh)   # (nz, ny, nx, 3) array

Evaluation has no side effects, so a Config can be sampled any number of
times and from any thread. `Noisy` is the one exception to determinism: each
evaluation draws fresh random numbers unless a seed is given, in which case
the noise at a point depends only on the seed and the position.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .mesh import Mesh

Vec3 = Tuple[float, float, float]


class Config(ABC):
    """A magnetization configuration: position -> vector."""

    @abstractmethod
    def evaluate(self, x: float, y: float, z: float) -> Vec3:
        """The vector at position (x, y, z)."""
        pass

    def __call__(self, x: float, y: float, z: float) -> Vec3:
        return self.evaluate(x, y, z)

    def translate(self, dx: float, dy: float, dz: float) -> "Config":
        """Translated copy: the result at p equals self at p - d."""
        return Translated(self, dx, dy, dz)

    def scale(self, sx: float, sy: float, sz: float) -> "Config":
        """Scaled copy: the result at p equals self at p / s."""
        return Scaled(self, sx, sy, sz)

    def rotate_z(self, theta: float) -> "Config":
        """Copy rotated around the z axis over theta radians."""
        return RotatedZ(self, theta)

    def add_noise(self, amplitude: float, seed: Optional[int] = None) -> "Config":
        return Noisy(self, amplitude, seed)


# =============================================================================
# Base Constructors
# =============================================================================

@dataclass(frozen=True)
class Uniform(Config):
    """The same vector everywhere."""
    mx: float
    my: float
    mz: float

    def evaluate(self, x, y, z):
        return (float(self.mx), float(self.my), float(self.mz))


@dataclass(frozen=True)
class Vortex(Config):
    """
    In-plane vortex with a smoothed out-of-plane core.

    `circ` is the circulation (+1 counter-clockwise) and `pol` the core
    polarization (+1 up). The core width follows the cell size along x.
    """
    circ: int
    pol: int
    diam2: float

    @classmethod
    def on_mesh(cls, circ: int, pol: int, mesh: Mesh) -> "Vortex":
        return cls(circ, pol, 2 * mesh.cx ** 2)

    def evaluate(self, x, y, z):
        r2 = x * x + y * y
        mz = 1.5 * self.pol * math.exp(-r2 / self.diam2)
        if r2 == 0:
            return (0.0, 0.0, mz)
        r = math.sqrt(r2)
        return (-y * self.circ / r, x * self.circ / r, mz)


@dataclass(frozen=True)
class VortexWall(Config):
    """Uniform left and right domains separated by a vortex."""
    mleft: float
    mright: float
    vortex: Vortex
    height: float

    @classmethod
    def on_mesh(cls, mleft: float, mright: float, circ: int, pol: int,
                mesh: Mesh) -> "VortexWall":
        return cls(mleft, mright, Vortex.on_mesh(circ, pol, mesh), mesh.world_size()[1])

    def evaluate(self, x, y, z):
        if x < -self.height / 2:
            return (float(self.mleft), 0.0, 0.0)
        if x > self.height / 2:
            return (float(self.mright), 0.0, 0.0)
        return self.vortex.evaluate(x, y, z)


@dataclass(frozen=True)
class TwoDomain(Config):
    """
    Two domains separated by a smoothed wall at x = 0.

    E.g. TwoDomain((1,0,0), (0,1,0), (-1,0,0), ww) gives head-to-head
    domains with a transverse wall.
    """
    left: Vec3
    wall: Vec3
    right: Vec3
    width: float

    @classmethod
    def on_mesh(cls, mx1, my1, mz1, mxw, myw, mzw, mx2, my2, mz2,
                mesh: Mesh) -> "TwoDomain":
        return cls((mx1, my1, mz1), (mxw, myw, mzw), (mx2, my2, mz2), 2 * mesh.cx)

    def evaluate(self, x, y, z):
        m = self.left if x < 0 else self.right
        gauss = math.exp(-(x / self.width) ** 2)
        return tuple(float((1 - gauss) * m[i] + gauss * self.wall[i]) for i in range(3))


# =============================================================================
# Combinators
# =============================================================================

@dataclass(frozen=True)
class Translated(Config):
    inner: Config
    dx: float
    dy: float
    dz: float

    def evaluate(self, x, y, z):
        return self.inner.evaluate(x - self.dx, y - self.dy, z - self.dz)


@dataclass(frozen=True)
class Scaled(Config):
    inner: Config
    sx: float
    sy: float
    sz: float

    def evaluate(self, x, y, z):
        return self.inner.evaluate(x / self.sx, y / self.sy, z / self.sz)


@dataclass(frozen=True)
class RotatedZ(Config):
    """Evaluates at the rotated position and rotates the result back."""
    inner: Config
    theta: float

    def evaluate(self, x, y, z):
        cos, sin = math.cos(self.theta), math.sin(self.theta)
        mx, my, mz = self.inner.evaluate(x * cos + y * sin, -x * sin + y * cos, z)
        return (mx * cos - my * sin, mx * sin + my * cos, mz)


@dataclass(frozen=True)
class Noisy(Config):
    """Adds amplitude * (u - 0.5) to every component, u uniform in [0, 1)."""
    inner: Config
    amplitude: float
    seed: Optional[int] = None
    _rng: Optional[np.random.Generator] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.seed is None:
            object.__setattr__(self, "_rng", np.random.default_rng())

    def _uniform3(self, x, y, z) -> np.ndarray:
        if self.seed is None:
            return self._rng.random(3)
        # seeded noise is a pure function of (seed, position)
        point = hash((float(x), float(y), float(z))) & 0xFFFFFFFF
        return np.random.default_rng([self.seed & 0xFFFFFFFF, point]).random(3)

    def evaluate(self, x, y, z):
        m = self.inner.evaluate(x, y, z)
        u = self._uniform3(x, y, z)
        return tuple(float(m[i] + self.amplitude * (u[i] - 0.5)) for i in range(3))


# =============================================================================
# Sampling
# =============================================================================

def sample(config: Config, mesh: Mesh) -> np.ndarray:
    """
    Evaluate a Config at every cell centre of a mesh.

    Returns:
        float64 array of shape (nz, ny, nx, 3)
    """
    xs, ys, zs = mesh.axis_centres()
    out = np.empty((mesh.nz, mesh.ny, mesh.nx, 3), dtype=np.float64)
    for iz, z in enumerate(zs):
        for iy, y in enumerate(ys):
            for ix, x in enumerate(xs):
                out[iz, iy, ix] = config.evaluate(float(x), float(y), float(z))
    return out
