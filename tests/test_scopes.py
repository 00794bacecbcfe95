"""Tests for the scope builder."""

from src.analyzer.parser import LanguageParser
from src.analyzer.scopes import CATCH, FUNCTION, GLOBAL, ScopeBuilder
from src.typesys.environment import TypeEnvironment
from src.typesys.types import UNDEFINED


def build(source, exclude_text=None):
    env = TypeEnvironment()
    tree = LanguageParser().parse_source(source)
    data = source.encode("utf-8")
    exclude = None
    if exclude_text is not None:
        start = data.rindex(exclude_text.encode("utf-8"))
        exclude = (start, start + len(exclude_text))
    return env, ScopeBuilder(env).build(tree.root_node, data, exclude)


class TestHoisting:
    def test_top_level_declarations_are_globals(self):
        env, tree = build("var a = 1;\nfunction f(x) {}\nlet b;")
        assert tree.root.kind == GLOBAL
        assert {"a", "f", "b"} <= set(env.globals)
        assert env.globals["a"].type is UNDEFINED

    def test_parameters_precede_locals(self):
        _, tree = build("function f(x, y) { var z; function inner() {} }")
        scope = tree.root.children[0]
        assert scope.kind == FUNCTION
        assert scope.param_names == ["x", "y"]
        assert [b.name for b in scope.params()] == ["x", "y", "arguments"]
        assert [b.name for b in scope.locals()] == ["z", "inner"]

    def test_nested_declarations_stay_inside(self):
        env, tree = build("function f() { var hidden; }")
        assert "hidden" not in env.globals
        assert "hidden" in tree.root.children[0].bindings

    def test_var_in_block_is_hoisted_to_function(self):
        _, tree = build("function f() { if (true) { var inside = 1; } }")
        assert "inside" in tree.root.children[0].bindings

    def test_for_in_declaration(self):
        env, _ = build("for (var key in source) {}")
        assert "key" in env.globals
        assert env.globals["source"].is_implicit_global

    def test_destructured_parameters(self):
        _, tree = build("function f({a, b: c}, [d], e = 1, ...rest) {}")
        assert tree.root.children[0].param_names == ["a", "c", "d", "e", "rest"]


class TestFunctionKinds:
    def test_arrow_functions_have_no_arguments(self):
        _, tree = build("var f = (a) => a;")
        scope = tree.root.children[0]
        assert "arguments" not in scope.bindings
        assert scope.param_names == ["a"]

    def test_named_function_expression_binds_own_name(self):
        env, tree = build("var f = function g() {};")
        assert "g" not in env.globals
        assert "g" in tree.root.children[0].bindings

    def test_catch_scope(self):
        _, tree = build("try { } catch (err) { err; }")
        scope = tree.root.children[0]
        assert scope.kind == CATCH
        assert list(scope.bindings) == ["err"]


class TestReferences:
    def test_unresolved_references_become_implicit_globals(self):
        env, tree = build("function f() { g = 1; h; }")
        assert [n.text.decode() for n in tree.unresolved] == ["g", "h"]
        assert env.globals["g"].is_implicit_global
        assert env.globals["h"].type is UNDEFINED

    def test_resolved_references_do_not(self):
        env, tree = build("function f(p) { p; var q; q; }")
        assert tree.unresolved == []
        assert "p" not in env.globals

    def test_excluded_identifier(self):
        env, tree = build("var a;\nzzz", exclude_text="zzz")
        assert "zzz" not in env.globals
        assert tree.unresolved == []

    def test_property_names_are_not_references(self):
        env, _ = build("var o = {key: 1};\no.prop;")
        assert "key" not in env.globals
        assert "prop" not in env.globals


class TestLookup:
    def test_scope_at(self):
        source = "var a;\nfunction f() { var b; }\n"
        _, tree = build(source)
        inside = source.index("var b")
        assert tree.scope_at(inside).kind == FUNCTION
        assert tree.scope_at(0) is tree.root
        assert tree.scope_at(len(source)) is tree.root

    def test_resolve_walks_outward(self):
        _, tree = build("var a;\nfunction f() { var b; }")
        inner = tree.root.children[0]
        assert inner.resolve("b") is inner.bindings["b"]
        assert inner.resolve("a") is tree.root.bindings["a"]
        assert inner.resolve("nothing") is None

    def test_parent_is_weak(self):
        _, tree = build("function f() {}")
        assert tree.root.children[0].parent is tree.root

    def test_function_keyword_opens_no_scope(self):
        source = "var a;\nfunction f(x) { var b; }"
        _, tree = build(source)
        assert len(tree.root.children) == 1
        assert tree.root.children[0].children == []
        assert tree.root.children[0].node.type == "function_declaration"


class TestUnterminatedFunctions:
    def test_parameters_visible_in_open_body(self):
        source = "function foo(xxxyyy) {\n    if (!xx"
        env, tree = build(source, exclude_text="xx")
        scope = tree.scope_at(len(source))
        assert scope.kind == FUNCTION
        assert scope.param_names == ["xxxyyy"]
        assert "foo" in env.globals
        assert "xxxyyy" not in env.globals

    def test_locals_stay_in_open_body(self):
        source = "function foo() {\n    var xxxyyy = false;\n    if (!xx"
        env, tree = build(source, exclude_text="xx")
        assert "xxxyyy" in tree.scope_at(len(source)).bindings
        assert "xxxyyy" not in env.globals

    def test_closed_function_is_unaffected(self):
        source = "function foo(p) { }\nvar q;"
        _, tree = build(source)
        assert tree.open_functions == {}
        assert tree.scope_at(len(source)) is tree.root
