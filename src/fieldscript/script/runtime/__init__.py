"""
fieldscript runtime - runs compiled statements on the device thread.

This module provides:
- ExecutionContext: Per-run state (device, simulation, value bindings)
- InteractiveExecutor: The single-worker loop accepting injections
- CommandChannel: Remote control of a running executor
"""

from .context import (
    ExecutionContext,
    create_context,
)

from .executor import (
    Mode,
    ExecutionState,
    ExecutedStatement,
    ExecutorSnapshot,
    ExecutorClosedError,
    InteractiveExecutor,
)

from .channel import (
    CommandChannel,
)

__all__ = [
    # Context
    'ExecutionContext',
    'create_context',

    # Executor
    'Mode',
    'ExecutionState',
    'ExecutedStatement',
    'ExecutorSnapshot',
    'ExecutorClosedError',
    'InteractiveExecutor',

    # Channel
    'CommandChannel',
]
