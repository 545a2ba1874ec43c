"""
The default world: every built-in identifier scripts can use.

build_world() fills a Registry once at start-up and seals it. Functions
that need the mesh or the simulation declare `takes_context` and receive
the ExecutionContext first; everything else is a plain callable.
"""

import math
from typing import Any

from ..script.registry import Registry
from ..script.types import INT, FLOAT, STRING, VECTOR, CONFIG, NONE, ANY
from .config import Config, Uniform, Vortex, TwoDomain, VortexWall, Noisy

XYZ_FLOAT = [("x", FLOAT), ("y", FLOAT), ("z", FLOAT)]


def _format(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, tuple):
        return "(" + ", ".join(_format(v) for v in value) + ")"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# --- Directives ---

def _interactive(ctx) -> None:
    ctx.request_interaction()


def _run(ctx, duration: float) -> None:
    ctx.simulation.run(duration)


def _save(ctx) -> str:
    if ctx.output_dir is None:
        raise RuntimeError("no output directory configured")
    return ctx.simulation.save(ctx.output_dir)


def _print(ctx, value: Any) -> None:
    ctx.write(_format(value))


def _set_m(ctx, config: Config) -> None:
    ctx.simulation.set_magnetization(config)


def _register_math(registry: Registry) -> None:
    registry.register_value("pi", math.pi, FLOAT, "The number π")
    registry.register_function("sin", math.sin, "Sine of x (radians)", [("x", FLOAT)], FLOAT)
    registry.register_function("cos", math.cos, "Cosine of x (radians)", [("x", FLOAT)], FLOAT)
    registry.register_function("sqrt", math.sqrt, "Square root of x", [("x", FLOAT)], FLOAT)
    registry.register_function("exp", math.exp, "e to the power x", [("x", FLOAT)], FLOAT)
    registry.register_function(
        "vector", lambda x, y, z: (x, y, z), "A 3-component vector", XYZ_FLOAT, VECTOR
    )


def _register_mesh(registry: Registry) -> None:
    registry.register_function(
        "setGridSize",
        lambda ctx, nx, ny, nz: ctx.simulation.set_grid_size(nx, ny, nz),
        "Set the number of cells along x, y and z",
        [("nx", INT), ("ny", INT), ("nz", INT)],
        takes_context=True,
    )
    registry.register_function(
        "setCellSize",
        lambda ctx, cx, cy, cz: ctx.simulation.set_cell_size(cx, cy, cz),
        "Set the cell size in metres",
        [("cx", FLOAT), ("cy", FLOAT), ("cz", FLOAT)],
        takes_context=True,
    )


def _register_configs(registry: Registry) -> None:
    registry.register_value(
        "m", None, CONFIG, "Magnetization; assign a config to set it", on_set=_set_m
    )
    registry.register_function(
        "uniform", Uniform, "Uniform magnetization in given direction",
        [("mx", FLOAT), ("my", FLOAT), ("mz", FLOAT)], CONFIG,
    )
    registry.register_function(
        "vortex",
        lambda ctx, circ, pol: Vortex.on_mesh(circ, pol, ctx.mesh),
        "Vortex magnetization with given core circulation and polarization",
        [("circ", INT), ("pol", INT)], CONFIG, takes_context=True,
    )
    registry.register_function(
        "twoDomain",
        lambda ctx, *m: TwoDomain.on_mesh(*m, mesh=ctx.mesh),
        "Two-domain magnetization with given magnetization in left domain, wall, "
        "and right domain",
        [("mx1", FLOAT), ("my1", FLOAT), ("mz1", FLOAT),
         ("mxwall", FLOAT), ("mywall", FLOAT), ("mzwall", FLOAT),
         ("mx2", FLOAT), ("my2", FLOAT), ("mz2", FLOAT)],
        CONFIG, takes_context=True,
    )
    registry.register_function(
        "vortexWall",
        lambda ctx, mleft, mright, circ, pol: VortexWall.on_mesh(mleft, mright, circ, pol, ctx.mesh),
        "Vortex wall magnetization with given mx in left and right domain and "
        "core circulation and polarization",
        [("mleft", FLOAT), ("mright", FLOAT), ("circ", INT), ("pol", INT)],
        CONFIG, takes_context=True,
    )

    # Combinators as functions
    registry.register_function(
        "addNoise", lambda amplitude, c: Noisy(c, amplitude),
        "Add noise with given amplitude to configuration",
        [("amplitude", FLOAT), ("c", CONFIG)], CONFIG,
    )
    registry.register_function(
        "translate", lambda c, dx, dy, dz: c.translate(dx, dy, dz),
        "Translated copy of configuration c",
        [("c", CONFIG), ("dx", FLOAT), ("dy", FLOAT), ("dz", FLOAT)], CONFIG,
    )
    registry.register_function(
        "scale", lambda c, sx, sy, sz: c.scale(sx, sy, sz),
        "Scaled copy of configuration c",
        [("c", CONFIG), ("sx", FLOAT), ("sy", FLOAT), ("sz", FLOAT)], CONFIG,
    )
    registry.register_function(
        "rotateZ", lambda c, theta: c.rotate_z(theta),
        "Copy of configuration c rotated around the z axis over theta radians",
        [("c", CONFIG), ("theta", FLOAT)], CONFIG,
    )

    # The same combinators as config methods
    for name in ("translate", "transl"):
        registry.register_method(
            CONFIG, name, Config.translate, "Translated copy",
            [("dx", FLOAT), ("dy", FLOAT), ("dz", FLOAT)], CONFIG,
        )
    registry.register_method(
        CONFIG, "scale", Config.scale, "Scaled copy",
        [("sx", FLOAT), ("sy", FLOAT), ("sz", FLOAT)], CONFIG,
    )
    for name in ("rotateZ", "rotZ"):
        registry.register_method(
            CONFIG, name, Config.rotate_z, "Copy rotated around the z axis",
            [("theta", FLOAT)], CONFIG,
        )
    registry.register_method(
        CONFIG, "addNoise", lambda c, amplitude: Noisy(c, amplitude),
        "Copy with added noise of given amplitude", [("amplitude", FLOAT)], CONFIG,
    )


def _register_directives(registry: Registry) -> None:
    registry.register_function(
        "interactive", _interactive, "Wait for operator interaction", takes_context=True
    )
    registry.register_function(
        "run", _run, "Run the simulation for a time (seconds)",
        [("duration", FLOAT)], takes_context=True,
    )
    registry.register_function(
        "save", _save, "Save the magnetization to the output directory",
        returns=STRING, takes_context=True,
    )
    registry.register_function(
        "print", _print, "Print a value", [("value", ANY)], NONE, takes_context=True
    )
    registry.register_function(
        "t", lambda ctx: ctx.simulation.time, "Simulated time (s)", returns=FLOAT,
        takes_context=True,
    )
    registry.register_function(
        "average", lambda ctx: ctx.simulation.average(), "Average magnetization",
        returns=VECTOR, takes_context=True,
    )


def build_world(seal: bool = True) -> Registry:
    """
    Build the default registry.

    Args:
        seal: Seal the registry before returning it. Pass False to add
            further entries first, then call seal() yourself.
    """
    registry = Registry()
    _register_math(registry)
    _register_mesh(registry)
    _register_configs(registry)
    _register_directives(registry)
    if seal:
        registry.seal()
    return registry
