"""Tests for the inference engine."""

from conftest import analyse

from src.typesys.types import FunctionType, NUMBER, STRING, render


def label(env, name):
    return render(env.globals[name].type)


class TestLiterals:
    def test_primitives(self):
        env, *_ = analyse("var a = 1; var s = 'x'; var b = true; var n = null; var t = `t`;")
        assert label(env, "a") == "Number"
        assert label(env, "s") == "String"
        assert label(env, "b") == "Boolean"
        assert label(env, "n") == "null"
        assert label(env, "t") == "String"

    def test_object_literal(self):
        env, *_ = analyse("var o = {a: 1, b: {c: ''}};")
        assert label(env, "o") == "{a:Number,b:{c:String}}"

    def test_uninitialised_var_is_empty_object(self):
        env, *_ = analyse("var x;")
        assert label(env, "x") == "{}"

    def test_arrays(self):
        env, *_ = analyse("var arr = [1, 2];\nvar first = arr[0];\nvar none = [];")
        assert label(env, "arr") == "Array.<Number>"
        assert label(env, "first") == "Number"
        assert label(env, "none") == "Array"

    def test_regex(self):
        env, *_ = analyse("var r = /ab+c/;")
        assert label(env, "r") == "RegExp"


class TestReassignment:
    def test_record_is_not_replaced_by_empty_object(self):
        env, *_ = analyse("var x = {a: 1};\nx = {};")
        assert label(env, "x") == "{a:Number}"

    def test_primitive_is_not_replaced_by_undefined(self):
        env, *_ = analyse("var y = 1;\ny = undefined;")
        assert label(env, "y") == "Number"

    def test_primitive_replaces_primitive(self):
        env, *_ = analyse("var s = 1;\ns += 'x';")
        assert label(env, "s") == "String"

    def test_statements_run_in_order(self):
        env, *_ = analyse("var x = 1;\nfunction f() { return x; }\nx = 'a';\nvar r = f();")
        assert label(env, "r") == "String"


class TestOperators:
    def test_arithmetic_and_comparison(self):
        env, *_ = analyse(
            "var a = 1 + 'x'; var b = 1 + 2; var c = 1 < 2; var d = typeof a;"
            " var e = !a; var f = b++; var g = -b; var h = b * 2; var v = void 0;"
        )
        assert label(env, "a") == "String"
        assert label(env, "b") == "Number"
        assert label(env, "c") == "Boolean"
        assert label(env, "d") == "String"
        assert label(env, "e") == "Boolean"
        assert label(env, "f") == "Number"
        assert label(env, "g") == "Number"
        assert label(env, "h") == "Number"

    def test_logical_prefers_structural_left(self):
        env, *_ = analyse("var o = {p: 1};\nvar r = o || 5;\nvar s = null || 'x';")
        assert label(env, "r") == "{p:Number}"
        assert label(env, "s") == "String"

    def test_ternary(self):
        env, *_ = analyse("var t = true ? undefined : 4;\nvar u = true ? 'a' : 4;")
        assert label(env, "t") == "Number"
        assert label(env, "u") == "String"


class TestFunctions:
    def test_return_type(self):
        env, *_ = analyse("function f(a) { return 'x'; }\nvar r = f();")
        assert label(env, "f") == "function(a):String"
        assert label(env, "r") == "String"

    def test_no_return(self):
        env, *_ = analyse("function f() {}")
        assert label(env, "f") == "function()"

    def test_one_shot_closure_binds_arguments(self):
        env, *_ = analyse("var r = (function(a) { return a; })(5);")
        assert label(env, "r") == "Number"

    def test_arrow_expression_body(self):
        env, *_ = analyse("var twice = (n) => n * 2;\nvar r = twice(1);")
        assert label(env, "r") == "Number"

    def test_recursion_terminates(self):
        env, *_ = analyse("function f() { return f(); }\nvar r = f();")
        assert isinstance(env.globals["f"].type, FunctionType)

    def test_uncalled_bodies_still_run(self):
        env, *_ = analyse("function f() { g = 1; }")
        assert label(env, "g") == "Number"

    def test_calling_a_non_function(self):
        env, *_ = analyse("var o = {};\nvar r = o.nothing();")
        assert label(env, "r") == "{}"

    def test_method_this_is_the_literal(self):
        env, *_ = analyse("var o = { a: 1, m: function() { return this.a; } };\nvar r = o.m();")
        assert label(env, "r") == "Number"


class TestConstructors:
    def test_new_gives_nominal_instance(self):
        env, *_ = analyse("function Fun() { this.xxx = 9; }\nvar y = new Fun();")
        y = env.globals["y"].type
        assert render(y) == "Fun"
        assert y.properties["xxx"].type is NUMBER
        assert label(env, "Fun") == "function(new:Fun):Fun"

    def test_dotted_constructor_name(self):
        env, *_ = analyse("var x = { Fun: function() { this.a = ''; } };\nvar y = new x.Fun();")
        assert label(env, "y") == "x.Fun"
        assert label(env, "x") == "{Fun:function(new:x.Fun):x.Fun}"

    def test_prototype_members(self):
        env, *_ = analyse(
            "function Car() {}\n"
            "Car.prototype.drive = function() { return 1; };\n"
            "var c = new Car();\n"
            "var d = c.drive();"
        )
        assert label(env, "d") == "Number"

    def test_prototype_replacement(self):
        env, *_ = analyse(
            "function Dog() {}\n"
            "Dog.prototype = { bark: function() { return ''; } };\n"
            "var s = new Dog().bark();"
        )
        assert label(env, "s") == "String"

    def test_new_on_builtin(self):
        env, *_ = analyse("var d = new Date();\nvar t = d.getTime();")
        assert label(env, "d") == "Date"
        assert label(env, "t") == "Number"


class TestProperties:
    def test_reading_a_missing_property_creates_it(self):
        env, *_ = analyse("var o = {};\nvar v = o.missing;")
        assert label(env, "o") == "{missing:{}}"
        assert label(env, "v") == "{}"

    def test_string_subscripts(self):
        env, *_ = analyse("var o = {};\no['k'] = 1;\nvar v = o['k'];")
        assert label(env, "v") == "Number"

    def test_builtins_are_not_extended(self):
        env, *_ = analyse("Math.extra = 1;")
        assert "extra" not in env.lookup("Math").properties

    def test_implicit_global_receiver(self):
        env, *_ = analyse("h.x = 1;")
        assert env.globals["h"].is_implicit_global
        assert label(env, "h") == "{x:Number}"

    def test_top_level_this_is_global(self):
        env, *_ = analyse("this.z = 1;")
        assert env.globals["z"].type is NUMBER


class TestJSDoc:
    def test_type_annotation_wins(self):
        env, *_ = analyse("/** @type {Number} */\nvar n = {};")
        assert label(env, "n") == "Number"
        assert env.globals["n"].declared_via_jsdoc

    def test_nullable_annotation(self):
        env, *_ = analyse("/** @type {?String}*/\nvar xx;")
        assert label(env, "xx") == "?String"

    def test_params_and_return(self):
        env, *_ = analyse(
            "/**\n * @param {String} s\n * @returns {Number}\n */\n"
            "function f(s) { return s; }"
        )
        fn = env.globals["f"].type
        assert fn.params[0].type is STRING
        assert fn.return_type is NUMBER

    def test_type_is_ignored_for_function_values(self):
        env, *_ = analyse("/** @type {Number} */\nvar f = function() {};")
        assert isinstance(env.globals["f"].type, FunctionType)


class TestStatements:
    def test_for_in_key_is_string(self):
        env, *_ = analyse("for (var k in {a: 1}) {}")
        assert label(env, "k") == "String"

    def test_catch_parameter_is_error(self):
        env, *_ = analyse("try {} catch (e) { var m = e.message; }")
        assert label(env, "m") == "String"

    def test_require_module(self):
        env, *_ = analyse("var fs = require('fs');", environments=("ecma5", "node"))
        assert env.globals["fs"].type is env.module("fs")

    def test_unknown_module_is_object(self):
        env, *_ = analyse("var m = require('nope');", environments=("ecma5", "node"))
        assert label(env, "m") == "Object"


class TestTypeOf:
    def test_final_state_is_used(self):
        env, scopes, engine, root = analyse("var x = {};\nx.fff = '';")
        statement = root.named_children[0]
        name = statement.named_children[0].child_by_field_name("name")
        t = engine.type_of(name, scopes.root)
        assert render(t) == "{fff:String}"
