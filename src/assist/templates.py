"""Keyword, template and JSDoc tag tables for content assist."""
from dataclasses import dataclass
from typing import Dict, List

STATEMENT_KEYWORDS = [
    "break", "case", "catch", "continue", "debugger", "default", "delete", "do",
    "else", "false", "finally", "for", "function", "if", "in", "instanceof", "new",
    "null", "return", "switch", "this", "throw", "true", "try", "typeof", "var",
    "void", "while", "with",
]

EXPRESSION_KEYWORDS = [
    "delete", "false", "function", "new", "null", "this", "true", "typeof", "void",
]


@dataclass(frozen=True)
class Template:
    trigger: str
    description: str
    body: str

    @property
    def label(self) -> str:
        return f"{self.trigger} - {self.description}"


STATEMENT_TEMPLATES = [
    Template("if", "if statement", "if (condition) {\n\t\n}"),
    Template("if", "if else statement", "if (condition) {\n\t\n} else {\n\t\n}"),
    Template("for", "iterate over array", "for (var i = 0; i < array.length; i++) {\n\t\n}"),
    Template("for", "iterate over array with local var",
             "for (var i = 0; i < array.length; i++) {\n\tvar value = array[i];\n\t\n}"),
    Template("for..in", "iterate over properties of an object",
             "for (var property in object) {\n\tif (object.hasOwnProperty(property)) {\n\t\t\n\t}\n}"),
    Template("while", "while loop with condition", "while (condition) {\n\t\n}"),
    Template("do", "do while loop with condition", "do {\n\t\n} while (condition);"),
    Template("switch", "switch case statement",
             "switch (expression) {\n\tcase value1:\n\t\t\n\t\tbreak;\n\tdefault:\n\t\t\n}"),
    Template("try", "try..catch statement", "try {\n\t\n} catch (err) {\n}"),
    Template("try", "try..catch statement with finally block",
             "try {\n\t\n} catch (err) {\n} finally {\n}"),
    Template("function", "function declaration",
             "/**\n * @name name\n * @param parameter\n */\nfunction name (parameter) {\n\t\n}"),
]

EXPRESSION_TEMPLATES = [
    Template("function", "member function expression", "function(parameter) {\n\t\n}"),
]

JSDOC_TAGS: Dict[str, str] = {
    "author": "Author JSDoc tag",
    "callback": "Callback JSDoc tag",
    "class": "Class JSDoc tag",
    "constant": "Constant JSDoc tag",
    "constructor": "Constructor JSDoc tag",
    "deprecated": "Deprecated JSDoc tag",
    "example": "Example JSDoc tag",
    "function": "Function JSDoc tag",
    "lends": "Lends JSDoc tag",
    "name": "Name JSDoc tag",
    "param": "Param JSDoc tag",
    "private": "Private JSDoc tag",
    "public": "Public JSDoc tag",
    "returns": "Returns JSDoc tag",
    "since": "Since JSDoc tag",
    "static": "Static JSDoc tag",
    "throws": "Throws JSDoc tag",
    "type": "Type JSDoc tag",
    "typedef": "Typedef JSDoc tag",
    "version": "Version JSDoc tag",
}


def keywords_for(expression_position: bool) -> List[str]:
    return EXPRESSION_KEYWORDS if expression_position else STATEMENT_KEYWORDS


def templates_for(expression_position: bool) -> List[Template]:
    return EXPRESSION_TEMPLATES if expression_position else STATEMENT_TEMPLATES
