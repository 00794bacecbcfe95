"""Tests for proposal matching, ordering and rendering."""

from src.assist.proposals import (
    DIVIDER,
    DIVIDER_TEXT,
    HEADER,
    KEYWORD,
    TEMPLATE,
    Proposal,
    build_proposals,
    camel_hump_match,
    constructor_paths,
    keyword_proposals,
    matches,
    section,
    template_proposals,
    type_proposal,
)
from src.assist.templates import EXPRESSION_TEMPLATES, STATEMENT_KEYWORDS, STATEMENT_TEMPLATES
from src.typesys.types import (
    FunctionType,
    NUMBER,
    ObjectType,
    Param,
    STRING,
    UNDEFINED,
    new_object,
)


def fn(*params, returns=UNDEFINED, name=None):
    return FunctionType(name=name, params=list(params), return_type=returns)


def descriptions(proposals):
    return [p.description for p in proposals]


class TestMatching:
    def test_camel_hump(self):
        assert camel_hump_match("gAT", "getAnotherThing")
        assert camel_hump_match("xXY", "xXYZ")
        assert not camel_hump_match("gAT", "getThing")
        assert not matches("getaN", "getAnotherThing")
        assert not camel_hump_match("", "anything")

    def test_case_insensitive_only_for_lower_case_prefix(self):
        assert matches("obj", "Object")
        assert matches("Ob", "Object")
        assert not matches("Ha", "hasX")

    def test_empty_prefix_matches_everything(self):
        assert matches("", "whatever")

    def test_hump_fallback(self):
        assert matches("tS", "toString")
        assert not matches("tF", "toString")


class TestOrdering:
    def test_functions_first_then_case_insensitive_names(self):
        groups = [
            [("b", NUMBER), ("a", fn(returns=None)), ("B2", STRING)],
            [("a", STRING), ("c", NUMBER)],
        ]
        result = build_proposals(groups, "")
        assert descriptions(result) == [
            "a()",
            "b : Number",
            "B2 : String",
            DIVIDER_TEXT,
            "c : Number",
        ]
        assert result[3].category == DIVIDER

    def test_case_insensitive_stable_order(self):
        group = [(name, NUMBER) for name in ("xXYZ", "xxxx", "xXXX", "xxyz")]
        assert [p.display_text for p in build_proposals([group], "")] == ["xxxx", "xXXX", "xXYZ", "xxyz"]

    def test_empty_groups_are_dropped(self):
        result = build_proposals([[], [("x", NUMBER)], []], "")
        assert descriptions(result) == ["x : Number"]

    def test_duplicates_are_removed_before_filtering(self):
        groups = [[("ab", NUMBER)], [("ab", STRING), ("ac", STRING)]]
        assert descriptions(build_proposals(groups, "ac")) == ["ac : String"]

    def test_inner_binding_shadows_outer(self):
        groups = [[("x", NUMBER)], [("x", STRING)]]
        assert descriptions(build_proposals(groups, "x")) == ["x : Number"]


class TestRendering:
    def test_optional_parameters(self):
        f = fn(Param("a", NUMBER), Param("b", NUMBER, optional=True), returns=None)
        proposal = type_proposal("f", f)
        assert proposal.display_text == "f(a, [b])"
        assert proposal.description == "f(a, [b])"
        assert proposal.insertion_text == "f(a, [b])"

    def test_unnamed_parameter_uses_type_name(self):
        assert type_proposal("f", fn(Param(None, STRING), returns=NUMBER)).description == "f(String) : Number"

    def test_constructor_label(self):
        instance = ObjectType(name="obj.Fun", nominal=True)
        ctor = FunctionType(name="obj.Fun", new_type=instance, return_type=UNDEFINED)
        assert type_proposal("obj.Fun", ctor).description == "obj.Fun() : obj.Fun"

    def test_value_label(self):
        assert type_proposal("o", new_object(a=NUMBER)).description == "o : {a:Number}"

    def test_depth(self):
        t = new_object(a=new_object(b=NUMBER))
        assert type_proposal("o", t, depth=1).description == "o : {a:{...}}"

    def test_as_dict(self):
        data = Proposal("x", "Number", "x").as_dict()
        assert data == {
            "proposal": "x",
            "display": "x",
            "label": "Number",
            "description": "x : Number",
            "category": "type",
            "overwrite": True,
        }


class TestConstructorPaths:
    def test_nested_constructors(self):
        inner_ctor = FunctionType(name="obj.inner.Fun", new_type=ObjectType(name="obj.inner.Fun", nominal=True))
        obj = new_object(
            Fun=FunctionType(name="obj.Fun", new_type=ObjectType(name="obj.Fun", nominal=True)),
            fun=fn(name="obj.fun"),
            inner=new_object(Fun=inner_ctor),
        )
        found = sorted(path for path, _ in constructor_paths("obj", obj))
        assert found == ["obj.Fun", "obj.inner.Fun"]

    def test_name_must_match_path(self):
        other = FunctionType(name="Other", new_type=ObjectType(name="Other", nominal=True))
        assert constructor_paths("obj", new_object(Alias=other)) == []


class TestKeywordsAndTemplates:
    def test_keywords_insert_the_remainder(self):
        result = keyword_proposals(STATEMENT_KEYWORDS, "fun")
        assert [(p.insertion_text, p.description, p.category) for p in result] == [
            ("ction", "function", KEYWORD),
        ]
        assert not result[0].overwrite

    def test_type_proposals_replace_the_prefix(self):
        proposal = type_proposal("value", NUMBER)
        assert proposal.insertion_text == "value"
        assert proposal.overwrite

    def test_statement_template(self):
        result = template_proposals(STATEMENT_TEMPLATES, "fun")
        assert len(result) == 1
        assert result[0].category == TEMPLATE
        assert result[0].description == "function - function declaration"
        assert result[0].insertion_text.startswith("/**\n * @name name")

    def test_expression_template_drops_typed_prefix(self):
        result = template_proposals(EXPRESSION_TEMPLATES, "fun")
        assert result[0].insertion_text == "ction(parameter) {\n\t\n}"
        assert result[0].description == "function - member function expression"

    def test_shared_trigger(self):
        result = template_proposals(STATEMENT_TEMPLATES, "if")
        assert [p.description for p in result] == ["if - if statement", "if - if else statement"]

    def test_section_header(self):
        assert section("Keywords", []) == []
        result = section("Keywords", keyword_proposals(STATEMENT_KEYWORDS, "whi"))
        assert result[0].category == HEADER
        assert result[0].description == "Keywords"
        assert result[0].insertion_text == ""
        assert [p.display_text for p in result[1:]] == ["while"]
