"""
Introspection API for documentation tooling and remote operators.

Read-only views of a Registry: entries as dictionaries or JSON, formatted
signatures, and filters by kind, return type and name prefix. Nothing here
has any execution effect.

Usage:
    from fieldscript.engine.world import build_world
    from fieldscript.script.introspection import (
        get_api_reference, get_entry_info, list_entries, describe_entry,
    )

    registry = build_world()
    info = get_entry_info(registry, "vortex")
    print(info["signature"])  # "vortex(circ: int, pol: int) -> config"

    for name in list_entries(registry, returns="config"):
        print(name)
"""

from typing import Any, Dict, List, Optional
import json

from .registry import Registry, RegistryEntry, EntryKind
from .types import BUILTIN_TYPES, resolve_type_name


def entry_to_dict(entry: RegistryEntry) -> Dict[str, Any]:
    """Convert a registry entry to a JSON-serializable dictionary."""
    return {
        "name": entry.name,
        "kind": entry.kind.name.lower(),
        "signature": entry.signature,
        "doc": entry.doc,
        "params": [{"name": p.name, "type": p.type.name} for p in entry.params],
        "returns": entry.returns.name,
        "settable": entry.settable,
        "receiver": entry.receiver.name if entry.receiver is not None else None,
    }


def get_api_reference(registry: Registry) -> Dict[str, Any]:
    """
    Get the complete API as a dictionary.

    Returns:
        {"types": [...], "entries": [...], "methods": {type: [...]}}
    """
    methods = {}
    for type_name, t in sorted(BUILTIN_TYPES.items()):
        type_methods = registry.methods_of(t)
        if type_methods:
            methods[type_name] = [entry_to_dict(m) for m in type_methods]
    return {
        "types": sorted(BUILTIN_TYPES),
        "entries": [entry_to_dict(e) for e in registry.all_entries()],
        "methods": methods,
    }


def list_entries(registry: Registry, kind: Optional[str] = None,
                 returns: Optional[str] = None,
                 prefix: Optional[str] = None) -> List[str]:
    """
    List entry names, sorted case-insensitively.

    Args:
        kind: "function" or "value"
        returns: Only entries producing this type (e.g. "config")
        prefix: Only names starting with this prefix (any case)
    """
    names = []
    for entry in registry.all_entries():
        if kind is not None and entry.kind != EntryKind[kind.upper()]:
            continue
        if returns is not None and entry.returns.name != returns.lower():
            continue
        if prefix is not None and not entry.key.startswith(prefix.lower()):
            continue
        names.append(entry.name)
    return names


def get_entry_info(registry: Registry, name: str) -> Optional[Dict[str, Any]]:
    """Information about one entry, or None if the name is unknown."""
    entry = registry.lookup(name)
    if entry is None:
        return None
    return entry_to_dict(entry)


def get_methods_for_type(registry: Registry, type_name: str) -> Dict[str, Dict[str, Any]]:
    """
    Get all methods callable on a type, e.g. "config".

    Returns:
        Dictionary mapping method names to their descriptions; empty for
        unknown types
    """
    t = resolve_type_name(type_name)
    if t is None:
        return {}
    return {m.name: entry_to_dict(m) for m in registry.methods_of(t)}


def describe_entry(registry: Registry, name: str) -> str:
    """Human-readable description of an entry."""
    entry = registry.lookup(name)
    if entry is None:
        return f"Unknown identifier: {name}"

    lines = [
        f"{entry.kind.name.capitalize()}: {entry.name}",
        f"Signature: {entry.signature}",
        f"Description: {entry.doc or 'No description available'}",
    ]
    if entry.settable:
        lines.append("Note: This value can be assigned from scripts")
    return "\n".join(lines)


def format_api(registry: Registry) -> str:
    """Plain-text listing of every entry and method."""
    lines = []
    for entry in registry.all_entries():
        lines.append(entry.signature)
        if entry.doc:
            lines.append(f"    {entry.doc}")
    for type_name, t in sorted(BUILTIN_TYPES.items()):
        for method in registry.methods_of(t):
            lines.append(method.signature)
            if method.doc:
                lines.append(f"    {method.doc}")
    return "\n".join(lines)


def get_api_as_json(registry: Registry) -> str:
    """The complete API reference as a JSON string."""
    return json.dumps(get_api_reference(registry), indent=2)


# =============================================================================
# Quick Reference for Common Tasks
# =============================================================================

COMMON_PATTERNS = {
    "uniform_relax": """
setGridSize 64 64 1
setCellSize 4e-9 4e-9 4e-9
m = uniform(1, 0, 0)
run 1e-9
save
""",

    "shifted_vortex": """
// vortex with its core 20 nm right of centre
m = vortex(1, 1).translate(20e-9, 0, 0)
""",

    "operator_checkpoint": """
m = uniform(1, 0, 0)
run 1e-9
interactive     # wait here until the operator resumes
m = addNoise(0.1, m)
run 1e-9
""",
}


def get_common_pattern(name: str) -> Optional[str]:
    """A short example script, or None if the pattern is unknown."""
    return COMMON_PATTERNS.get(name)


def list_common_patterns() -> List[str]:
    return list(COMMON_PATTERNS.keys())
