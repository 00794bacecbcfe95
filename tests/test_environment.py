"""Tests for the type environment arena."""

import pytest

from src.errors import TypeResolutionFallback
from src.typesys.environment import GLOBAL_NAME, TypeEnvironment
from src.typesys.types import (
    Binding,
    NUMBER,
    NullableType,
    OBJECT_PROTOTYPE,
    ObjectType,
    STRING,
    UnionType,
    new_object,
)


@pytest.fixture
def env():
    return TypeEnvironment()


class TestNames:
    def test_builtin_entries(self, env):
        assert env.lookup("Object") is env.object_type
        assert env.lookup(GLOBAL_NAME) is env.global_object
        assert env.lookup(OBJECT_PROTOTYPE) is not None

    def test_primitive_aliases(self, env):
        assert env.lookup("number") is NUMBER
        assert env.lookup("String") is STRING

    def test_named_creates_one_shell(self, env):
        shell = env.named("Widget")
        assert isinstance(shell, ObjectType)
        assert shell.nominal
        assert env.named("Widget") is shell

    def test_resolve_unknown_name(self, env):
        with pytest.raises(TypeResolutionFallback):
            env.resolve("Nope")
        assert env.resolve_or_object("Nope") is env.object_type

    def test_modules(self, env):
        fs = new_object(readFile=NUMBER)
        env.define_module("fs", fs)
        assert env.module("fs") is fs
        assert env.module("path") is None


class TestPrototypes:
    def test_cycle_is_cut(self, env):
        a = ObjectType(name="A.prototype", nominal=True, proto_name="B.prototype")
        b = ObjectType(name="B.prototype", nominal=True, proto_name="A.prototype")
        env.register(a.name, a)
        env.register(b.name, b)
        chain = env.proto_chain(ObjectType(proto_name="A.prototype"))
        assert chain == [a, b]

    def test_unassigned_prototype_behaves_like_object_prototype(self, env):
        chain = env.proto_chain(ObjectType(proto_name="Foo.prototype"))
        assert chain == [env.lookup(OBJECT_PROTOTYPE)]

    def test_lookup_property_walks_chain(self, env):
        proto = env.lookup(OBJECT_PROTOTYPE)
        proto.properties["toString"] = Binding("toString", STRING)
        found = env.lookup_property(new_object(a=NUMBER), "toString")
        assert found is not None and found.type is STRING

    def test_lookup_property_through_modifiers(self, env):
        t = NullableType(UnionType([new_object(a=NUMBER), new_object(b=STRING)]), nullable=True)
        assert env.lookup_property(t, "b").type is STRING
        assert env.lookup_property(t, "c") is None

    def test_fallback(self, env):
        assert env.fallback(None) is env.object_type
        assert env.fallback(NUMBER) is NUMBER
