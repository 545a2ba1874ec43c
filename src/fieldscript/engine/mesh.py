"""Simulation mesh: a regular grid of cells centred on the origin."""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

Vec3 = Tuple[float, float, float]


@dataclass(frozen=True)
class Mesh:
    """
    Read-only grid geometry.

    `nx, ny, nz` is the number of cells along each axis and `cx, cy, cz`
    the cell size in metres. The world spans
    `[-nx*cx/2, nx*cx/2]` (and likewise for y and z).
    """
    nx: int = 1
    ny: int = 1
    nz: int = 1
    cx: float = 1e-9
    cy: float = 1e-9
    cz: float = 1e-9

    def __post_init__(self):
        if min(self.nx, self.ny, self.nz) < 1:
            raise ValueError(f"grid size must be positive: {self.grid_size()}")
        if min(self.cx, self.cy, self.cz) <= 0:
            raise ValueError(f"cell size must be positive: {self.cell_size()}")

    def grid_size(self) -> Tuple[int, int, int]:
        return (self.nx, self.ny, self.nz)

    def cell_size(self) -> Vec3:
        return (self.cx, self.cy, self.cz)

    def world_size(self) -> Vec3:
        return (self.nx * self.cx, self.ny * self.cy, self.nz * self.cz)

    @property
    def ncell(self) -> int:
        return self.nx * self.ny * self.nz

    def with_grid(self, nx: int, ny: int, nz: int) -> "Mesh":
        return Mesh(nx, ny, nz, self.cx, self.cy, self.cz)

    def with_cells(self, cx: float, cy: float, cz: float) -> "Mesh":
        return Mesh(self.nx, self.ny, self.nz, cx, cy, cz)

    def axis_centres(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Cell-centre coordinates along x, y and z."""
        def centres(n, c):
            return (np.arange(n) - (n - 1) / 2.0) * c
        return centres(self.nx, self.cx), centres(self.ny, self.cy), centres(self.nz, self.cz)

    def cell_centre(self, ix: int, iy: int, iz: int) -> Vec3:
        return (
            (ix - (self.nx - 1) / 2.0) * self.cx,
            (iy - (self.ny - 1) / 2.0) * self.cy,
            (iz - (self.nz - 1) / 2.0) * self.cz,
        )

    def __str__(self) -> str:
        return (f"{self.nx}x{self.ny}x{self.nz} cells of "
                f"{self.cx:g}x{self.cy:g}x{self.cz:g} m")
