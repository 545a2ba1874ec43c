"""
Identifier registry for fieldscript.

The registry (the "world") maps case-insensitive names to typed, documented
callables and values. It is filled once at process start, sealed, and only
read afterwards by the compiler, the executor and introspection tools.

Usage:
    registry = Registry()
    registry.register_function(
        "uniform", Uniform, "Uniform magnetization in given direction",
        params=[("mx", FLOAT), ("my", FLOAT), ("mz", FLOAT)],
        returns=CONFIG,
    )
    registry.seal()
    entry = registry.resolve("UNIFORM")
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .types import Type, NONE
from .errors import DuplicateNameError, NotFoundError, RegistryError


class EntryKind(Enum):
    """What a registry name refers to."""
    FUNCTION = auto()
    VALUE = auto()


@dataclass(frozen=True)
class Parameter:
    """A declared parameter: name and semantic type."""
    name: str
    type: Type

    def __str__(self) -> str:
        return f"{self.name}: {self.type.name}"


ParamSpec = Union[Parameter, Tuple[str, Type]]


@dataclass(frozen=True)
class RegistryEntry:
    """
    A registered identifier.

    FUNCTION entries hold a callable in `obj` and declare `params` and
    `returns`. VALUE entries hold a constant (or default) in `obj`; settable
    values may be assigned from scripts, with `on_set` invoked on the
    execution context when they are.
    """
    name: str
    kind: EntryKind
    doc: str
    obj: Any
    params: Tuple[Parameter, ...] = ()
    returns: Type = NONE
    takes_context: bool = False
    settable: bool = False
    on_set: Optional[Callable[..., None]] = None
    receiver: Optional[Type] = None  # Set for methods

    @property
    def key(self) -> str:
        """Case-folded lookup key."""
        return self.name.lower()

    @property
    def is_function(self) -> bool:
        return self.kind == EntryKind.FUNCTION

    @property
    def is_method(self) -> bool:
        return self.receiver is not None

    @property
    def type(self) -> Type:
        """The type an identifier reference to this entry produces."""
        return self.returns

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def signature(self) -> str:
        """Human readable signature, e.g. 'vortex(circ: int, pol: int) -> config'."""
        if self.kind == EntryKind.VALUE:
            return f"{self.name}: {self.returns.name}"
        params = ", ".join(str(p) for p in self.params)
        prefix = f"{self.receiver.name}." if self.receiver is not None else ""
        return f"{prefix}{self.name}({params}) -> {self.returns.name}"


def _make_params(params: Iterable[ParamSpec]) -> Tuple[Parameter, ...]:
    """Normalize (name, type) tuples into Parameter objects."""
    result = []
    for p in params:
        if isinstance(p, Parameter):
            result.append(p)
        else:
            name, ptype = p
            result.append(Parameter(name, ptype))
    return tuple(result)


class Registry:
    """
    Case-insensitive table of named functions and values.

    Provides:
    - Registration of functions, values and receiver methods
    - Case-insensitive resolution
    - Sorted snapshots for introspection

    Registration happens once before any compilation; `seal()` ends the
    registration phase. There is no removal operation.
    """

    def __init__(self):
        self._entries: Dict[str, RegistryEntry] = {}
        self._methods: Dict[Tuple[str, str], RegistryEntry] = {}  # (type_name, method_key)
        self._sealed = False

    # --- Registration ---

    def _check_open(self, name: str) -> None:
        if self._sealed:
            raise RegistryError(f"cannot register '{name}': registry is sealed")

    def _add(self, entry: RegistryEntry) -> RegistryEntry:
        self._check_open(entry.name)
        existing = self._entries.get(entry.key)
        if existing is not None:
            raise DuplicateNameError(entry.name, existing.name)
        self._entries[entry.key] = entry
        return entry

    def register(self, name: str, obj: Any, doc: str = "", **kwargs) -> RegistryEntry:
        """
        Register a callable or a value.

        Callables become FUNCTION entries (pass `params` and `returns`);
        anything else becomes a VALUE entry (pass `type`).

        Raises:
            DuplicateNameError: if the name is already present (any case)
        """
        if callable(obj):
            return self.register_function(name, obj, doc, **kwargs)
        return self.register_value(name, obj, doc=doc, **kwargs)

    def register_function(
        self,
        name: str,
        fn: Callable[..., Any],
        doc: str = "",
        params: Sequence[ParamSpec] = (),
        returns: Type = NONE,
        takes_context: bool = False,
    ) -> RegistryEntry:
        """Register a function with its declared signature."""
        return self._add(RegistryEntry(
            name=name,
            kind=EntryKind.FUNCTION,
            doc=doc,
            obj=fn,
            params=_make_params(params),
            returns=returns,
            takes_context=takes_context,
        ))

    def register_value(
        self,
        name: str,
        value: Any,
        type: Type = NONE,
        doc: str = "",
        settable: bool = False,
        on_set: Optional[Callable[..., None]] = None,
    ) -> RegistryEntry:
        """Register a named value, optionally assignable from scripts."""
        return self._add(RegistryEntry(
            name=name,
            kind=EntryKind.VALUE,
            doc=doc,
            obj=value,
            returns=type,
            settable=settable or on_set is not None,
            on_set=on_set,
        ))

    def register_method(
        self,
        receiver: Type,
        name: str,
        fn: Callable[..., Any],
        doc: str = "",
        params: Sequence[ParamSpec] = (),
        returns: Type = NONE,
    ) -> RegistryEntry:
        """
        Register a method callable as `receiver.name(args)`.

        The implementation receives the receiver as its first argument.
        """
        self._check_open(name)
        entry = RegistryEntry(
            name=name,
            kind=EntryKind.FUNCTION,
            doc=doc,
            obj=fn,
            params=_make_params(params),
            returns=returns,
            receiver=receiver,
        )
        key = (receiver.name, entry.key)
        existing = self._methods.get(key)
        if existing is not None:
            raise DuplicateNameError(f"{receiver.name}.{name}", f"{receiver.name}.{existing.name}")
        self._methods[key] = entry
        return entry

    def seal(self) -> "Registry":
        """End the registration phase."""
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    # --- Lookup ---

    def resolve(self, name: str) -> RegistryEntry:
        """
        Look up an entry by name, ignoring case.

        Raises:
            NotFoundError: if no entry exists
        """
        entry = self._entries.get(name.lower())
        if entry is None:
            raise NotFoundError(name)
        return entry

    def lookup(self, name: str) -> Optional[RegistryEntry]:
        """Like resolve() but returns None for unknown names."""
        return self._entries.get(name.lower())

    def resolve_method(self, receiver: Type, name: str) -> Optional[RegistryEntry]:
        """Look up a method for a receiver type, ignoring case."""
        return self._methods.get((receiver.name, name.lower()))

    def contains(self, name: str) -> bool:
        return name.lower() in self._entries

    def __contains__(self, name: str) -> bool:
        return self.contains(name)

    def __len__(self) -> int:
        return len(self._entries)

    # --- Snapshots ---

    def all_entries(self) -> List[RegistryEntry]:
        """Snapshot of all entries, sorted by case-insensitive name."""
        return sorted(self._entries.values(), key=lambda e: e.key)

    def methods_of(self, receiver: Type) -> List[RegistryEntry]:
        """Snapshot of the methods for a receiver type, sorted by name."""
        methods = [m for (type_name, _), m in self._methods.items()
                   if type_name == receiver.name]
        return sorted(methods, key=lambda e: e.key)
