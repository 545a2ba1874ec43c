"""
Interactive executor.

Runs a StatementSequence on the single thread that owns the device while
other threads inject statements and request mode changes. Remote parties
never execute anything: they hand the worker data (statements, requests)
under one condition variable, and the worker applies it between statements.

Per iteration, on the worker:

    (a) drain pending injections into the tail of the sequence
    (b) apply requested transitions in arrival order; while PAUSED or
        AWAITING_INTERACTION, wait for a wake-up and re-check
    (c) execute the statement at `position` and advance; an exception
        fails the run
    (d) at the end of the sequence, finish unless keep-open is set, in
        which case wait for more injections or a stop request

Usage:
    executor = InteractiveExecutor(sequence, ctx)
    executor.start()                     # dedicated worker thread
    executor.inject([statement])         # from any thread
    executor.request_pause()
    executor.wait_for(Mode.FINISHED, Mode.FAILED, timeout=10)
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Iterable, List, Optional, Union

from ..errors import (
    ScriptError, RuntimeStatementError, error_device_unavailable, error_statement_failed,
)
from ..statements import Statement, StatementSequence
from .context import ExecutionContext
from ...engine.device import DeviceAffinityError

logger = logging.getLogger(__name__)


class Mode(Enum):
    """Executor modes."""
    RUNNING = "running"
    PAUSED = "paused"
    AWAITING_INTERACTION = "awaiting_interaction"
    FINISHED = "finished"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Mode.FINISHED, Mode.FAILED)

    @property
    def is_suspended(self) -> bool:
        return self in (Mode.PAUSED, Mode.AWAITING_INTERACTION)


class Request(Enum):
    """Mode-change requests posted by remote parties."""
    PAUSE = "pause"
    RESUME = "resume"


class ExecutorClosedError(ScriptError):
    """The run has finished or failed and accepts no more statements."""
    pass


@dataclass
class ExecutionState:
    """Mutable run state; only the worker writes position and mode."""
    position: int = 0
    mode: Mode = Mode.RUNNING
    pending: Deque[Statement] = field(default_factory=deque)
    requests: Deque[Request] = field(default_factory=deque)
    stop_requested: bool = False
    stopped: bool = False
    error: Optional[RuntimeStatementError] = None


@dataclass(frozen=True)
class ExecutedStatement:
    """One history record."""
    position: int
    statement: Statement
    result: Any


@dataclass(frozen=True)
class ExecutorSnapshot:
    """A consistent, immutable view of the executor state."""
    mode: Mode
    position: int
    length: int
    pending: int
    stopped: bool
    keep_open: bool
    current: Optional[str] = None
    error: Optional[str] = None

    @property
    def idle(self) -> bool:
        """Running, but waiting at the end of the sequence for injections."""
        return self.mode == Mode.RUNNING and self.position >= self.length and self.pending == 0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "position": self.position,
            "length": self.length,
            "pending": self.pending,
            "stopped": self.stopped,
            "keep_open": self.keep_open,
            "idle": self.idle,
            "current": self.current,
            "error": self.error,
        }


class InteractiveExecutor:
    """
    Single-worker executor accepting concurrent injections.

    Args:
        sequence: The compiled script; injected statements are appended to it
        ctx: The execution context (device, simulation, values)
        keep_open: Wait for injections instead of finishing at the end
    """

    def __init__(self, sequence: StatementSequence, ctx: ExecutionContext,
                 keep_open: bool = False):
        self.sequence = sequence
        self.ctx = ctx
        self.history: List[ExecutedStatement] = []
        self._state = ExecutionState()
        self._keep_open = keep_open
        self._cond = threading.Condition()
        self._started = False
        self._thread: Optional[threading.Thread] = None

    # =========================================================================
    # Observer API (any thread)
    # =========================================================================

    def inject(self, statements: Union[Statement, Iterable[Statement]]) -> int:
        """
        Queue statements for execution after everything already queued.

        Returns:
            Number of statements now pending

        Raises:
            ExecutorClosedError: if the run has already finished or failed
        """
        if isinstance(statements, Statement):
            statements = [statements]
        with self._cond:
            if self._state.mode.is_terminal:
                raise ExecutorClosedError(
                    f"run is {self._state.mode.value}, cannot inject statements"
                )
            for statement in statements:
                self._state.pending.append(statement)
                logger.info("injected from %s: %s", statement.origin, statement.text)
            self._cond.notify_all()
            return len(self._state.pending)

    def request_pause(self) -> None:
        self._post(Request.PAUSE)

    def request_resume(self) -> None:
        self._post(Request.RESUME)

    def _post(self, request: Request) -> None:
        with self._cond:
            self._state.requests.append(request)
            self._cond.notify_all()

    def request_stop(self) -> None:
        """Stop at the next statement boundary."""
        with self._cond:
            self._state.stop_requested = True
            self._cond.notify_all()

    def set_keep_open(self, flag: bool) -> None:
        with self._cond:
            self._keep_open = flag
            self._cond.notify_all()

    @property
    def keep_open(self) -> bool:
        with self._cond:
            return self._keep_open

    @property
    def mode(self) -> Mode:
        with self._cond:
            return self._state.mode

    @property
    def position(self) -> int:
        with self._cond:
            return self._state.position

    @property
    def error(self) -> Optional[RuntimeStatementError]:
        with self._cond:
            return self._state.error

    def snapshot(self) -> ExecutorSnapshot:
        with self._cond:
            state = self._state
            current = None
            if state.position < len(self.sequence):
                current = self.sequence[state.position].text
            return ExecutorSnapshot(
                mode=state.mode,
                position=state.position,
                length=len(self.sequence),
                pending=len(state.pending),
                stopped=state.stopped,
                keep_open=self._keep_open,
                current=current,
                error=str(state.error) if state.error is not None else None,
            )

    def wait_for(self, *modes: Mode, timeout: Optional[float] = None) -> bool:
        """Block until the executor is in one of `modes`; False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._state.mode in modes, timeout)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until everything queued has run (or the run has ended)."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._state.mode.is_terminal or (
                    self._state.position >= len(self.sequence) and not self._state.pending
                ),
                timeout,
            )

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread; True if it has ended."""
        if self._thread is None:
            return not self._started or self.mode.is_terminal
        self._thread.join(timeout)
        return not self._thread.is_alive()

    # =========================================================================
    # Worker
    # =========================================================================

    def start(self, name: str = "fieldscript-worker") -> threading.Thread:
        """Run on a new dedicated worker thread."""
        self._thread = threading.Thread(target=self.run, name=name, daemon=True)
        self._thread.start()
        return self._thread

    def run(self) -> ExecutorSnapshot:
        """
        Run on the calling thread, which becomes the device owner.

        Returns:
            The final snapshot (FINISHED or FAILED)
        """
        with self._cond:
            if self._started:
                raise RuntimeError("executor has already been started")
            self._started = True
        try:
            self.ctx.device.lock_thread()
        except DeviceAffinityError as e:
            error = error_device_unavailable(self.position, e)
            error.__cause__ = e
            logger.error("%s", error.diagnostic.format())
            with self._cond:
                self._state.error = error
                self._set_mode(Mode.FAILED)
            return self.snapshot()
        logger.debug("worker %s running %d statements",
                     threading.current_thread().name, len(self.sequence))
        self._loop()
        return self.snapshot()

    def _set_mode(self, mode: Mode) -> None:
        # Caller holds the condition
        if mode != self._state.mode:
            logger.info("mode %s -> %s", self._state.mode.value, mode.value)
            self._state.mode = mode
            self._cond.notify_all()

    def _apply_requests(self) -> None:
        state = self._state
        while state.requests:
            request = state.requests.popleft()
            if request == Request.PAUSE and state.mode == Mode.RUNNING:
                self._set_mode(Mode.PAUSED)
            elif request == Request.RESUME and state.mode.is_suspended:
                self._set_mode(Mode.RUNNING)
            else:
                logger.debug("ignoring %s request while %s", request.value, state.mode.value)

    def _next_statement(self) -> Optional[Statement]:
        """
        Block until there is a statement to run; None when the run ends.

        Caller holds the condition.
        """
        state = self._state
        while True:
            while state.pending:
                self.sequence.append(state.pending.popleft())
            self._apply_requests()

            if state.stop_requested:
                state.stopped = True
                logger.info("stopped at statement %d", state.position)
                self._set_mode(Mode.FINISHED)
                return None
            if state.mode.is_suspended:
                self._cond.wait()
                continue
            if state.position < len(self.sequence):
                return self.sequence[state.position]
            if self._keep_open:
                self._cond.notify_all()  # wake wait_idle()
                self._cond.wait()
                continue
            self._set_mode(Mode.FINISHED)
            return None

    def _loop(self) -> None:
        while True:
            with self._cond:
                statement = self._next_statement()
                if statement is None:
                    return
                position = self._state.position

            try:
                result = statement.execute(self.ctx)
            except Exception as e:
                error = error_statement_failed(position, statement.text, e, statement.span)
                error.__cause__ = e
                logger.error("%s", error.diagnostic.format())
                with self._cond:
                    self._state.error = error
                    self._set_mode(Mode.FAILED)
                return

            with self._cond:
                self.history.append(ExecutedStatement(position, statement, result))
                self._state.position += 1
                if self.ctx.consume_interaction():
                    self._set_mode(Mode.AWAITING_INTERACTION)
                self._cond.notify_all()
