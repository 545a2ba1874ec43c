"""
Device (GPU) execution context.

The device context has hard single-thread affinity: once a thread has
locked it, every device-affecting operation must run on that same thread
for the rest of the context's lifetime. DeviceContext enforces this by
recording the owner thread and refusing calls from anywhere else.
"""

import logging
import threading
from typing import Optional

from ..script.errors import ScriptError

logger = logging.getLogger(__name__)


class DeviceAffinityError(ScriptError):
    """A device operation was attempted from a thread that does not own it."""
    pass


class DeviceContext:
    """
    Models one GPU context bound to a single owner thread.

    Usage:
        device = DeviceContext(gpu=0)
        device.lock_thread()      # on the worker thread
        device.ensure_owner()     # before every device-affecting call
    """

    def __init__(self, gpu: int = 0):
        self.gpu = gpu
        self._owner: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def owner(self) -> Optional[threading.Thread]:
        return self._owner

    @property
    def locked(self) -> bool:
        return self._owner is not None

    def lock_thread(self) -> None:
        """
        Bind the context to the calling thread.

        Locking again from the owner is a no-op.

        Raises:
            DeviceAffinityError: if another thread already owns the context
        """
        current = threading.current_thread()
        with self._lock:
            if self._owner is None:
                self._owner = current
                logger.debug("device %d locked to thread %s", self.gpu, current.name)
                return
            if self._owner is not current:
                raise DeviceAffinityError(
                    f"device {self.gpu} is owned by thread {self._owner.name}, "
                    f"cannot lock from {current.name}"
                )

    def ensure_owner(self) -> None:
        """
        Raises:
            DeviceAffinityError: unless called on the owner thread
        """
        current = threading.current_thread()
        if self._owner is None:
            raise DeviceAffinityError(f"device {self.gpu} has not been locked to a thread")
        if self._owner is not current:
            raise DeviceAffinityError(
                f"device {self.gpu} is owned by thread {self._owner.name}, "
                f"called from {current.name}"
            )

    def __repr__(self) -> str:
        owner = self._owner.name if self._owner is not None else None
        return f"DeviceContext(gpu={self.gpu}, owner={owner!r})"
