"""fieldscript command server: API models and the FastAPI front end."""
from .models import (
    CommandKind,
    CommandRequest,
    StateSnapshot,
    CommandResponse,
    ParameterInfo,
    EntryInfo,
    RegistryListResponse,
    ErrorResponse,
)

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
