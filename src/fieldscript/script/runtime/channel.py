"""
Command channel between remote operators and the executor.

The channel turns requests into executor calls. It never touches the
device or the simulation: injected text is compiled on the requester's
thread (compilation is pure and the registry is sealed) and the resulting
Statement is handed to the executor's pending queue. A failed compile is
reported to the requester only; the run is not affected.
"""

import json
import logging
from typing import Union

from pydantic import ValidationError

from ..compiler import compile_statement
from ..errors import CompileError, InjectionCompileError, error_injection_failed
from ..registry import Registry
from ..statements import Statement
from .executor import InteractiveExecutor, ExecutorClosedError
from ...server.models import CommandKind, CommandRequest, CommandResponse, StateSnapshot

logger = logging.getLogger(__name__)


class CommandChannel:
    """
    Remote control surface of one run.

    Usage:
        channel = CommandChannel(executor, registry)
        channel.run_statement("m = uniform(0, 0, 1)")
        channel.dispatch(CommandRequest(kind="pause"))
        channel.handle_json('{"kind": "query_state"}')
    """

    def __init__(self, executor: InteractiveExecutor, registry: Registry):
        self.executor = executor
        self.registry = registry

    def state(self) -> StateSnapshot:
        return StateSnapshot(**self.executor.snapshot().to_dict())

    def _ok(self, message: str = "") -> CommandResponse:
        return CommandResponse(ok=True, message=message, state=self.state())

    # --- Requests ---

    def inject_text(self, text: str, origin: str = "remote") -> Statement:
        """
        Compile one statement and queue it.

        Raises:
            InjectionCompileError: if the text does not compile
            ExecutorClosedError: if the run has ended
        """
        try:
            statement = compile_statement(text, self.registry, origin)
        except CompileError as e:
            error = error_injection_failed(e, origin)
            logger.warning("%s", error.diagnostic.message)
            raise error from e
        self.executor.inject(statement)
        return statement

    def run_statement(self, text: str, origin: str = "remote") -> CommandResponse:
        try:
            statement = self.inject_text(text, origin)
        except InjectionCompileError as e:
            return CommandResponse(
                ok=False,
                message=e.diagnostic.message,
                state=self.state(),
                diagnostics=[e.diagnostic.to_json()],
            )
        except ExecutorClosedError as e:
            return CommandResponse(ok=False, message=str(e), state=self.state())
        return self._ok(f"queued: {statement.text}")

    def pause(self) -> CommandResponse:
        self.executor.request_pause()
        return self._ok("pause requested")

    def resume(self) -> CommandResponse:
        self.executor.request_resume()
        return self._ok("resume requested")

    def stop(self) -> CommandResponse:
        self.executor.request_stop()
        return self._ok("stop requested")

    def keep_open(self, flag: bool) -> CommandResponse:
        self.executor.set_keep_open(flag)
        return self._ok(f"keep open {'on' if flag else 'off'}")

    def query_state(self) -> CommandResponse:
        return self._ok()

    # --- Decoding ---

    def dispatch(self, request: CommandRequest) -> CommandResponse:
        """Execute a decoded request."""
        if request.kind == CommandKind.RUN_STATEMENT:
            return self.run_statement(request.text, request.origin)
        if request.kind == CommandKind.PAUSE:
            return self.pause()
        if request.kind == CommandKind.RESUME:
            return self.resume()
        if request.kind == CommandKind.STOP:
            return self.stop()
        if request.kind == CommandKind.KEEP_OPEN:
            return self.keep_open(request.flag)
        return self.query_state()

    def handle_json(self, payload: Union[str, bytes, dict]) -> CommandResponse:
        """Decode and execute a serialized request; malformed requests get ok=False."""
        try:
            if isinstance(payload, dict):
                request = CommandRequest.model_validate(payload)
            else:
                request = CommandRequest.model_validate_json(payload)
        except (ValidationError, json.JSONDecodeError) as e:
            logger.warning("malformed command: %s", e)
            return CommandResponse(ok=False, message=f"malformed command: {e}")
        return self.dispatch(request)
