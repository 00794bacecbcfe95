"""Reassignment generality lattice.

A binding that already holds a type only takes a newly inferred type when the
new one is not less informative. Types are first sorted into a closed set of
categories; the decision is a lookup over those categories.
"""

from enum import IntEnum

from src.typesys.types import JSType, ObjectType, Primitive


class Generality(IntEnum):
    UNDEFINED = 0
    OBJECT = 1   # the generic nominal "Object"
    EMPTY = 2    # anonymous {}
    RECORD = 3   # anonymous object with members
    ANY = 4      # primitives, functions, arrays, nominal types, unions


def classify(t: JSType) -> Generality:
    if t is None:
        return Generality.UNDEFINED
    if isinstance(t, Primitive) and t.name == "undefined":
        return Generality.UNDEFINED
    if isinstance(t, ObjectType):
        if t.nominal:
            return Generality.OBJECT if t.name == "Object" else Generality.ANY
        return Generality.RECORD if t.properties else Generality.EMPTY
    return Generality.ANY


# new category -> old categories it may replace
_REPLACES = {
    Generality.UNDEFINED: frozenset({Generality.UNDEFINED}),
    Generality.OBJECT: frozenset({Generality.UNDEFINED}),
    Generality.EMPTY: frozenset({Generality.UNDEFINED, Generality.OBJECT}),
    Generality.RECORD: frozenset(Generality),
    Generality.ANY: frozenset(Generality),
}


def should_replace(old: JSType, new: JSType, declared_via_jsdoc: bool = False) -> bool:
    """Decide whether ``new`` may overwrite ``old`` on a binding.

    Args:
        old: Type currently stored
        new: Type inferred by the assignment
        declared_via_jsdoc: The binding's type came from a JSDoc annotation

    Returns:
        True if the binding should now hold ``new``
    """
    new_cat = classify(new)
    if declared_via_jsdoc:
        # Annotated bindings still take any informative type.
        return new_cat in (Generality.RECORD, Generality.ANY)
    return classify(old) in _REPLACES[new_cat]
