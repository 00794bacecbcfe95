"""Type Environment: the arena of named types for one analysis session."""

import itertools
import logging
from typing import Dict, Iterator, List, Optional, Set

from src.errors import CycleDetected, TypeResolutionFallback
from src.typesys.types import (
    ArrayType,
    Binding,
    FunctionType,
    JSType,
    NullableType,
    OBJECT_PROTOTYPE,
    ObjectType,
    PRIMITIVES,
    UnionType,
    UnresolvedType,
    normalize_name,
)

logger = logging.getLogger(__name__)

GLOBAL_NAME = "Global"


class TypeEnvironment:
    """Maps qualified names (``Outer.Inner``, ``Foo.prototype``) to types.

    Prototype links are stored as names, so the link graph may contain cycles.
    Every walk over it carries a visited set and stops at the first repeat.
    """

    def __init__(self):
        self.by_name: Dict[str, JSType] = {}
        self.modules: Dict[str, JSType] = {}
        self._anonymous = itertools.count(1)

        self.object_type = ObjectType(name="Object", nominal=True, is_builtin=True)
        self.global_object = ObjectType(name=GLOBAL_NAME, nominal=True, is_builtin=True)
        self.by_name["Object"] = self.object_type
        self.by_name[GLOBAL_NAME] = self.global_object
        self.by_name[OBJECT_PROTOTYPE] = ObjectType(
            name=OBJECT_PROTOTYPE, nominal=True, is_builtin=True, proto_name=None
        )

    @property
    def globals(self) -> Dict[str, Binding]:
        return self.global_object.properties

    def lookup(self, name: str) -> Optional[JSType]:
        """Find a type by name without creating it."""
        name = normalize_name(name)
        if name in PRIMITIVES:
            return PRIMITIVES[name]
        if name == "Array":
            return ArrayType()
        return self.by_name.get(name)

    def resolve(self, name: str) -> JSType:
        """Strict lookup.

        Raises:
            TypeResolutionFallback: If nothing is registered under ``name``
        """
        found = self.lookup(name)
        if found is None:
            raise TypeResolutionFallback(name)
        return found

    def resolve_or_object(self, name: str) -> JSType:
        try:
            return self.resolve(name)
        except TypeResolutionFallback as e:
            logger.debug("%s, using Object", e)
            return self.object_type

    def named(self, name: str, builtin: bool = False, proto: Optional[str] = None) -> JSType:
        """Return the type registered under ``name``, creating a nominal shell if absent."""
        found = self.lookup(name)
        if found is not None:
            return found
        shell = ObjectType(
            name=name,
            nominal=True,
            is_builtin=builtin,
            proto_name=proto or OBJECT_PROTOTYPE,
        )
        self.by_name[name] = shell
        return shell

    def register(self, name: str, t: JSType) -> None:
        self.by_name[name] = t

    def anonymous_key(self) -> str:
        return f"<anonymous#{next(self._anonymous)}>"

    def define_module(self, name: str, t: JSType) -> None:
        self.modules[name] = t

    def module(self, name: str) -> Optional[JSType]:
        return self.modules.get(name)

    def proto_chain(self, t: JSType) -> List[JSType]:
        """Prototype objects of ``t``, nearest first, cut at the first cycle."""
        chain: List[JSType] = []
        visited: Set[str] = set()
        try:
            for proto in self._walk_protos(t, visited):
                chain.append(proto)
        except CycleDetected as e:
            logger.debug("%s", e)
        return chain

    def _walk_protos(self, t: JSType, visited: Set[str]) -> Iterator[JSType]:
        if isinstance(t, ObjectType) and t.nominal and t.name.endswith(".prototype"):
            visited.add(t.name)
        current = t
        while True:
            name = _proto_name(current)
            if not name:
                return
            if name in visited:
                raise CycleDetected(name)
            visited.add(name)
            proto = self.by_name.get(name)
            if proto is None and name != OBJECT_PROTOTYPE and OBJECT_PROTOTYPE not in visited:
                # prototypes nobody assigned behave like Object.prototype
                visited.add(OBJECT_PROTOTYPE)
                proto = self.by_name.get(OBJECT_PROTOTYPE)
            if proto is None or proto is current:
                return
            yield proto
            current = proto

    def lookup_property(self, t: JSType, name: str) -> Optional[Binding]:
        """Find a member on ``t`` or its prototype chain.

        Unions try their members in order; nullable wrappers are transparent.
        """
        if isinstance(t, UnionType):
            for member in t.members:
                found = self.lookup_property(member, name)
                if found is not None:
                    return found
            return None
        if isinstance(t, NullableType):
            return self.lookup_property(t.inner, name)
        own = _own(t)
        if name in own:
            return own[name]
        for proto in self.proto_chain(t):
            own = _own(proto)
            if name in own:
                return own[name]
        return None

    def fallback(self, t: Optional[JSType]) -> JSType:
        """Replace anything unresolved with the generic Object type."""
        if t is None or isinstance(t, UnresolvedType):
            return self.object_type
        return t


def _own(t: JSType) -> Dict[str, Binding]:
    if isinstance(t, (ObjectType, FunctionType)):
        return t.properties
    return {}


def _proto_name(t: JSType) -> Optional[str]:
    if isinstance(t, UnionType):
        return t.members[0].proto if t.members else None
    return t.proto
