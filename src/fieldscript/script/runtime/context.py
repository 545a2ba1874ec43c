"""
Execution context for running compiled statements.

One ExecutionContext is constructed per run and handed to the executor;
it is the only place run state lives (no module-level globals). Statement
implementations that declare `takes_context` receive it as their first
argument.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..registry import RegistryEntry
from ...engine.device import DeviceContext
from ...engine.mesh import Mesh
from ...engine.simulation import Simulation

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """
    The state a running script acts on.

    Tracks:
    - The device context and the simulation it owns
    - Current bindings of settable registry values
    - The output directory
    - Whether the last statement asked to wait for the operator
    - Text written by the script (print)
    """
    device: DeviceContext
    simulation: Simulation
    output_dir: Optional[str] = None

    values: Dict[str, Any] = field(default_factory=dict)
    output: List[str] = field(default_factory=list)
    echo: Optional[Callable[[str], None]] = None

    _interaction_requested: bool = False

    @property
    def mesh(self) -> Mesh:
        return self.simulation.mesh

    def get_value(self, entry: RegistryEntry) -> Any:
        """Current binding of a value entry, falling back to its default."""
        return self.values.get(entry.key, entry.obj)

    def assign(self, entry: RegistryEntry, value: Any) -> None:
        """Bind a settable value and run its on-set hook."""
        if entry.on_set is not None:
            entry.on_set(self, value)
        self.values[entry.key] = value

    def request_interaction(self) -> None:
        """Ask the executor to wait for the operator after this statement."""
        self._interaction_requested = True

    def consume_interaction(self) -> bool:
        """Return and clear the interaction request."""
        requested = self._interaction_requested
        self._interaction_requested = False
        return requested

    def write(self, text: str) -> None:
        """Record script output."""
        self.output.append(text)
        logger.info("%s", text)
        if self.echo is not None:
            self.echo(text)


def create_context(gpu: int = 0, output_dir: Optional[str] = None,
                   mesh: Optional[Mesh] = None,
                   echo: Optional[Callable[[str], None]] = None) -> ExecutionContext:
    """
    Create a fresh execution context with its own device and simulation.

    Args:
        gpu: Device index
        output_dir: Where save() writes; None disables saving
        mesh: Initial mesh (defaults to a single 1nm cell)
        echo: Optional sink for printed text besides the log

    Returns:
        A new ExecutionContext; the device is not yet locked to a thread
    """
    device = DeviceContext(gpu)
    return ExecutionContext(
        device=device,
        simulation=Simulation(device, mesh),
        output_dir=output_dir,
        echo=echo,
    )
