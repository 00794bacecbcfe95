"""Tests for the reassignment generality lattice."""

import pytest

from src.typesys.lattice import Generality, classify, should_replace
from src.typesys.types import (
    ArrayType,
    FunctionType,
    NUMBER,
    ObjectType,
    STRING,
    UNDEFINED,
    new_object,
)

OBJECT = ObjectType(name="Object", nominal=True, is_builtin=True)


def empty():
    return ObjectType()


def record():
    return new_object(a=NUMBER)


class TestClassify:
    def test_categories(self):
        assert classify(UNDEFINED) == Generality.UNDEFINED
        assert classify(None) == Generality.UNDEFINED
        assert classify(OBJECT) == Generality.OBJECT
        assert classify(empty()) == Generality.EMPTY
        assert classify(record()) == Generality.RECORD
        assert classify(NUMBER) == Generality.ANY
        assert classify(FunctionType()) == Generality.ANY
        assert classify(ArrayType()) == Generality.ANY
        assert classify(ObjectType(name="Date", nominal=True)) == Generality.ANY


@pytest.mark.parametrize("old, new, expected", [
    # undefined upgrades to anything
    (UNDEFINED, OBJECT, True),
    (UNDEFINED, empty(), True),
    (UNDEFINED, record(), True),
    (UNDEFINED, NUMBER, True),
    # Object upgrades to {} / {props} / primitive
    (OBJECT, empty(), True),
    (OBJECT, record(), True),
    (OBJECT, STRING, True),
    (OBJECT, UNDEFINED, False),
    # {} upgrades to {props} or primitive only
    (empty(), record(), True),
    (empty(), NUMBER, True),
    (empty(), UNDEFINED, False),
    (empty(), OBJECT, False),
    # {props} only moves to other informative types
    (record(), NUMBER, True),
    (record(), UNDEFINED, False),
    (record(), OBJECT, False),
    (record(), empty(), False),
    # primitives never downgrade
    (NUMBER, STRING, True),
    (NUMBER, UNDEFINED, False),
    (NUMBER, OBJECT, False),
    (NUMBER, empty(), False),
])
def test_should_replace(old, new, expected):
    assert should_replace(old, new) is expected


class TestDeclaredBindings:
    """Bindings typed by a JSDoc annotation."""

    def test_any_informative_type_replaces_annotation(self):
        declared = ObjectType(name="Widget", nominal=True)
        assert should_replace(declared, NUMBER, declared_via_jsdoc=True)
        assert should_replace(declared, record(), declared_via_jsdoc=True)

    def test_placeholders_do_not_replace_annotation(self):
        declared = STRING
        assert not should_replace(declared, empty(), declared_via_jsdoc=True)
        assert not should_replace(declared, UNDEFINED, declared_via_jsdoc=True)
        assert not should_replace(declared, OBJECT, declared_via_jsdoc=True)
