"""fieldscript command server - FastAPI front end of the command channel."""
import logging
import threading
from typing import Optional, Tuple

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..script.introspection import entry_to_dict
from ..script.registry import Registry
from ..script.runtime.channel import CommandChannel
from ..script.types import BUILTIN_TYPES
from .models import (
    CommandRequest, CommandResponse, StateSnapshot, EntryInfo, RegistryListResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = ":35367"


def create_app(channel: CommandChannel, registry: Registry) -> FastAPI:
    """
    Build the HTTP app for one run.

    Every endpoint only turns the request into a CommandChannel call or a
    registry read; nothing here touches the device.
    """
    app = FastAPI(title="fieldscript command server", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.post("/api/command", response_model=CommandResponse)
    def post_command(request: CommandRequest) -> CommandResponse:
        """Run a statement or change the run mode."""
        return channel.dispatch(request)

    @app.get("/api/state", response_model=StateSnapshot)
    def get_state() -> StateSnapshot:
        """Current executor state."""
        return channel.state()

    @app.get("/api/registry", response_model=RegistryListResponse)
    def list_registry() -> RegistryListResponse:
        """All registered identifiers and methods."""
        entries = [EntryInfo(**entry_to_dict(e)) for e in registry.all_entries()]
        methods = [
            EntryInfo(**entry_to_dict(m))
            for _, t in sorted(BUILTIN_TYPES.items())
            for m in registry.methods_of(t)
        ]
        return RegistryListResponse(entries=entries, methods=methods, total=len(entries))

    @app.get("/api/registry/{name}", response_model=EntryInfo)
    def get_registry_entry(name: str) -> EntryInfo:
        """One identifier, looked up case-insensitively."""
        entry = registry.lookup(name)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Unknown identifier: {name}")
        return EntryInfo(**entry_to_dict(entry))

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split "host:port" (host optional, as in ":35367") into its parts.

    Raises:
        ValueError: if the port is missing or not a number
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid address '{address}', expected [host]:port")
    return (host or "127.0.0.1", int(port))


class CommandServer:
    """Serves an app with uvicorn on a daemon thread."""

    def __init__(self, app: FastAPI, address: str = DEFAULT_ADDRESS, log_level: str = "warning"):
        host, port = parse_address(address)
        self.config = uvicorn.Config(app, host=host, port=port, log_level=log_level)
        self.server = uvicorn.Server(self.config)
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return f"http://{self.config.host}:{self.config.port}"

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.server.run, name="fieldscript-http", daemon=True)
        self._thread.start()
        logger.info("serving command channel at %s", self.url)
        return self._thread

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self.server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
