"""
fieldscript engine: the simulation side scripts act on.

- Mesh: read-only grid geometry
- Config algebra: position -> magnetization functions and their combinators
- DeviceContext: single-thread-affine device model
- Simulation: magnetization, time and solver step
- build_world: the default Registry of built-in identifiers
"""

from .mesh import Mesh
from .config import (
    Config,
    Uniform,
    Vortex,
    TwoDomain,
    VortexWall,
    Translated,
    Scaled,
    RotatedZ,
    Noisy,
    sample,
)
from .device import DeviceContext, DeviceAffinityError
from .simulation import Simulation, normalize
from .world import build_world

__all__ = [
    'Mesh',
    'Config',
    'Uniform',
    'Vortex',
    'TwoDomain',
    'VortexWall',
    'Translated',
    'Scaled',
    'RotatedZ',
    'Noisy',
    'sample',
    'DeviceContext',
    'DeviceAffinityError',
    'Simulation',
    'normalize',
    'build_world',
]
