"""Pydantic models for the fieldscript command channel and HTTP API."""
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

__all__ = [
    "CommandKind",
    "CommandRequest",
    "StateSnapshot",
    "CommandResponse",
    "ParameterInfo",
    "EntryInfo",
    "RegistryListResponse",
    "ErrorResponse",
]


class CommandKind(str, Enum):
    """Kinds of remote command."""
    RUN_STATEMENT = "run_statement"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    QUERY_STATE = "query_state"
    KEEP_OPEN = "keep_open"


class CommandRequest(BaseModel):
    """One request from a remote operator."""
    kind: CommandKind
    text: Optional[str] = None  # statement source for run_statement
    flag: Optional[bool] = None  # for keep_open
    origin: str = Field(default="remote")

    model_config = {"title": "CommandRequest"}

    @model_validator(mode="after")
    def _check_arguments(self) -> "CommandRequest":
        if self.kind == CommandKind.RUN_STATEMENT and not (self.text and self.text.strip()):
            raise ValueError("run_statement requires non-empty 'text'")
        if self.kind == CommandKind.KEEP_OPEN and self.flag is None:
            raise ValueError("keep_open requires 'flag'")
        return self


class StateSnapshot(BaseModel):
    """Executor state as reported to remote operators."""
    mode: str
    position: int
    length: int
    pending: int
    stopped: bool = False
    keep_open: bool = False
    idle: bool = False
    current: Optional[str] = None
    error: Optional[str] = None

    model_config = {"title": "StateSnapshot"}


class CommandResponse(BaseModel):
    """Reply to a CommandRequest."""
    ok: bool
    message: str = ""
    state: Optional[StateSnapshot] = None
    diagnostics: List[dict] = Field(default_factory=list)

    model_config = {"title": "CommandResponse"}


class ParameterInfo(BaseModel):
    name: str
    type: str


class EntryInfo(BaseModel):
    """A registry entry as listed by the introspection API."""
    name: str
    kind: str
    signature: str
    doc: str = ""
    params: List[ParameterInfo] = Field(default_factory=list)
    returns: str
    settable: bool = False
    receiver: Optional[str] = None

    model_config = {"title": "EntryInfo"}


class RegistryListResponse(BaseModel):
    """Response for GET /api/registry."""
    entries: List[EntryInfo]
    methods: List[EntryInfo] = Field(default_factory=list)
    total: int

    model_config = {"title": "RegistryListResponse"}


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None

    model_config = {"title": "ErrorResponse"}
