"""Type model for JavaScript inference.

Types are plain mutable objects. Inference shares them by reference, so a
property added to an object literal after it was assigned is visible through
every binding that holds it. Nominal types live in the TypeEnvironment arena
and are linked to their prototypes by name, never by reference.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ANONYMOUS = "{}"
DEFAULT_DISPLAY_DEPTH = 2

OBJECT_PROTOTYPE = "Object.prototype"
FUNCTION_PROTOTYPE = "Function.prototype"
ARRAY_PROTOTYPE = "Array.prototype"

PRIMITIVE_PROTOS = {
    "Number": "Number.prototype",
    "String": "String.prototype",
    "Boolean": "Boolean.prototype",
}

# Spellings that normalize onto the canonical type names
TYPE_ALIASES = {
    "number": "Number",
    "string": "String",
    "boolean": "Boolean",
    "bool": "Boolean",
    "object": "Object",
    "function": "Function",
    "array": "Array",
    "void": "undefined",
    "*": "Object",
    "?": "Object",
}

# Function evaluation status
PENDING = "pending"
RUNNING = "running"
DONE = "done"


class JSType:
    """Base class of every type in the model."""

    kind = "type"

    @property
    def proto(self) -> Optional[str]:
        return OBJECT_PROTOTYPE


@dataclass(eq=False)
class Primitive(JSType):
    name: str

    kind = "primitive"

    @property
    def proto(self) -> Optional[str]:
        return PRIMITIVE_PROTOS.get(self.name)

    def __repr__(self) -> str:
        return f"Primitive({self.name})"


NUMBER = Primitive("Number")
STRING = Primitive("String")
BOOLEAN = Primitive("Boolean")
UNDEFINED = Primitive("undefined")
NULL = Primitive("null")

PRIMITIVES = {p.name: p for p in (NUMBER, STRING, BOOLEAN, UNDEFINED, NULL)}


@dataclass(eq=False)
class Binding:
    """A named slot holding a type: a variable, a parameter or a property."""
    name: str
    type: JSType
    declared_via_jsdoc: bool = False
    is_implicit_global: bool = False
    is_builtin: bool = False


@dataclass(eq=False)
class ObjectType(JSType):
    """Structural record or nominal (constructor/prototype) object."""
    name: str = ANONYMOUS
    properties: Dict[str, Binding] = field(default_factory=dict)
    proto_name: Optional[str] = OBJECT_PROTOTYPE
    is_builtin: bool = False
    nominal: bool = False

    kind = "object"

    @property
    def proto(self) -> Optional[str]:
        return self.proto_name

    def __repr__(self) -> str:
        return f"ObjectType({self.name}, {list(self.properties)})"


@dataclass(eq=False)
class Param:
    name: Optional[str]
    type: JSType
    optional: bool = False
    explicit: bool = False


@dataclass(eq=False)
class FunctionType(JSType):
    """A callable.

    ``return_type`` of None means "not stated" (index signatures without ``->``),
    which displays as nothing rather than ``undefined``. User functions also carry
    the syntax node, defining scope and evaluation status used by the engine.
    """
    name: Optional[str] = None
    params: List[Param] = field(default_factory=list)
    return_type: Optional[JSType] = None
    new_type: Optional[JSType] = None
    properties: Dict[str, Binding] = field(default_factory=dict)
    is_builtin: bool = False
    node: Any = None
    scope: Any = None
    status: str = DONE
    return_fixed: bool = False
    this_type: Optional[JSType] = None
    prototype_key: Optional[str] = None

    kind = "function"

    @property
    def proto(self) -> Optional[str]:
        return FUNCTION_PROTOTYPE

    @property
    def is_constructor(self) -> bool:
        return self.name is not None and self.new_type is not None

    def __repr__(self) -> str:
        return f"FunctionType({self.name}, {[p.name for p in self.params]})"


@dataclass(eq=False)
class ArrayType(JSType):
    element: Optional[JSType] = None
    label: Optional[str] = None

    kind = "array"

    @property
    def proto(self) -> Optional[str]:
        return ARRAY_PROTOTYPE


@dataclass(eq=False)
class UnionType(JSType):
    members: List[JSType] = field(default_factory=list)

    kind = "union"

    @property
    def proto(self) -> Optional[str]:
        return self.members[0].proto if self.members else OBJECT_PROTOTYPE


@dataclass(eq=False)
class NullableType(JSType):
    inner: JSType
    nullable: bool = False
    non_nullable: bool = False

    kind = "nullable"

    @property
    def proto(self) -> Optional[str]:
        return self.inner.proto


@dataclass(eq=False)
class UnresolvedType(JSType):
    """Placeholder for a name still being resolved. Displays as Object."""
    name: str = "Object"

    kind = "unresolved"


def normalize_name(name: str) -> str:
    return TYPE_ALIASES.get(name, name)


def is_constructor_name(name: Optional[str]) -> bool:
    """True when the last dotted segment starts with a character that upper-cases to itself."""
    if not name:
        return False
    first = name.rsplit(".", 1)[-1][:1]
    return bool(first) and first == first.upper()


def new_object(**properties: JSType) -> ObjectType:
    obj = ObjectType()
    for key, value in properties.items():
        obj.properties[key] = Binding(key, value)
    return obj


def member_type(t: JSType) -> JSType:
    """Unwrap modifiers down to the type that actually owns members."""
    while True:
        if isinstance(t, NullableType):
            t = t.inner
        elif isinstance(t, UnionType) and t.members:
            t = t.members[0]
        else:
            return t


def simple_name(t: JSType) -> Optional[str]:
    """Name usable as a stand-in for an unnamed parameter, if the type has one."""
    if isinstance(t, Primitive):
        return t.name
    if isinstance(t, ObjectType) and t.nominal:
        return t.name
    if isinstance(t, UnresolvedType):
        return "Object"
    return None


def render(t: Optional[JSType], depth: int = 0, max_depth: int = DEFAULT_DISPLAY_DEPTH) -> str:
    """Render a type the way proposals display it.

    Args:
        t: Type to render
        depth: Current object nesting level
        max_depth: Nesting level at which anonymous objects collapse to ``{...}``

    Returns:
        Display string, e.g. ``{a:Number,b:{...}}`` or ``function(x):String``
    """
    if t is None or isinstance(t, UnresolvedType):
        return "Object"
    if isinstance(t, Primitive):
        return t.name
    if isinstance(t, ObjectType):
        if t.nominal:
            return t.name
        if not t.properties:
            return ANONYMOUS
        if depth >= max_depth:
            return "{...}"
        inner = ",".join(
            f"{name}:{render(b.type, depth + 1, max_depth)}" for name, b in t.properties.items()
        )
        return "{" + inner + "}"
    if isinstance(t, FunctionType):
        parts = []
        if t.new_type is not None:
            parts.append(f"new:{render(t.new_type, depth, max_depth)}")
        for param in t.params:
            if param.name and param.explicit:
                parts.append(f"{param.name}:{render(param.type, depth, max_depth)}")
            elif param.name:
                parts.append(param.name)
            else:
                parts.append(render(param.type, depth, max_depth))
        text = f"function({','.join(parts)})"
        if t.return_type is not None and t.return_type is not UNDEFINED:
            text += ":" + render(t.return_type, depth, max_depth)
        elif t.is_constructor:
            text += ":" + render(t.new_type, depth, max_depth)
        return text
    if isinstance(t, ArrayType):
        if t.label:
            return t.label
        if t.element is not None:
            return f"Array.<{render(t.element, depth, max_depth)}>"
        return "Array"
    if isinstance(t, UnionType):
        return "(" + "|".join(render(m, depth, max_depth) for m in t.members) + ")"
    if isinstance(t, NullableType):
        mark = "?" if t.nullable else "!" if t.non_nullable else ""
        return mark + render(t.inner, depth, max_depth)
    return "Object"


def to_closure(t: Optional[JSType]) -> str:
    """Render a type as a closure-compiler signature.

    Used for imported index signatures, where an unstated return reads
    ``undefined`` and an array of Object collapses to plain ``Array``.
    """
    if t is None:
        return "undefined"
    if isinstance(t, FunctionType):
        parts = []
        if t.new_type is not None:
            parts.append(f"new:{to_closure(t.new_type)}")
        for param in t.params:
            text = to_closure(param.type)
            if param.optional:
                text += "="
            parts.append(f"{param.name}:{text}" if param.name else text)
        return f"function({','.join(parts)}):{to_closure(t.return_type)}"
    if isinstance(t, ArrayType):
        element = t.element
        if element is None or (isinstance(element, ObjectType) and element.name == "Object"):
            return "Array"
        return f"Array.<{to_closure(element)}>"
    if isinstance(t, UnionType):
        return "(" + "|".join(to_closure(m) for m in t.members) + ")"
    if isinstance(t, NullableType):
        return ("?" if t.nullable else "!") + to_closure(t.inner)
    return render(t)
