"""Tests for lint environment options and directive comments."""

from src.analyzer.directives import (
    EnvOptions,
    collect_directives,
    parse_boolean_config,
    parse_list_config,
    request_options,
)
from src.analyzer.parser import LanguageParser


def directives(source, lint_options=None):
    tree = LanguageParser().parse_source(source)
    return collect_directives(tree.root_node, source.encode("utf-8"), lint_options)


class TestConfigSyntax:
    def test_boolean_config(self):
        assert parse_boolean_config("browser:true, node : false") == {"browser": True, "node": False}

    def test_value_must_be_exactly_true(self):
        assert parse_boolean_config("a b:true c:yes") == {"a": False, "b": True, "c": False}

    def test_list_config(self):
        assert parse_list_config(" browser, node  amd ") == ["browser", "node", "amd"]


class TestRequestOptions:
    def test_environments_and_globals(self):
        options = request_options({"options": {"node": True}, "global": ["$", "jQuery"]})
        assert options.node is True
        assert options.browser is None
        assert list(options.globals) == ["$", "jQuery"]

    def test_global_string(self):
        assert list(request_options({"global": "a b"}).globals) == ["a", "b"]

    def test_nothing(self):
        assert request_options(None) == EnvOptions()


class TestDirectives:
    def test_eslint_env(self):
        options = directives("/*eslint-env node*/\nvar a;")
        assert options.node is True
        assert options.browser is False

    def test_jslint(self):
        options = directives("/*jslint browser:true*/\nvar a;")
        assert options.browser is True
        assert options.node is None

    def test_eslint_env_replaces_jslint(self):
        options = directives("/*jslint node:true*/\n/*eslint-env browser*/\nvar a;")
        assert options.node is False
        assert options.browser is True

    def test_directive_overrides_request(self):
        options = directives("/*jslint node:false*/", {"options": {"node": True}})
        assert options.node is False

    def test_globals(self):
        options = directives("/*global foo bar:true*/\nfoo();")
        assert options.globals == {"foo": False, "bar": True}

    def test_line_comments_are_not_directives(self):
        assert directives("// eslint-env node\nvar a;").node is None

    def test_node_modules_only(self):
        assert EnvOptions().node_modules_only
        assert not EnvOptions(node=False).node_modules_only
        assert not EnvOptions(browser=True).node_modules_only
