"""Shared helpers: run a content assist request the way an editor would."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from src.analyzer.inference import InferenceEngine
from src.analyzer.parser import LanguageParser
from src.analyzer.scopes import ScopeBuilder
from src.assist.content_assist import JSContentAssist
from src.config import Config
from src.indexes.importer import IndexImporter, load_builtin_index
from src.typesys.environment import TypeEnvironment


class FakeEditorContext:
    """In-memory editor: a text buffer and contributed type definitions."""

    def __init__(self, text: str, type_defs: Optional[Dict[str, Dict[str, Any]]] = None):
        self.text = text
        self.type_defs = type_defs or {}
        self.requested: List[str] = []

    async def get_text(self) -> str:
        return self.text

    async def get_type_def(self, name: str):
        self.requested.append(name)
        return self.type_defs.get(name)


def compute(buffer: str, prefix: str = "", offset: Optional[int] = None,
            lint_options: Optional[Dict[str, Any]] = None,
            type_defs: Optional[Dict[str, Dict[str, Any]]] = None,
            **params):
    """Run one request and return the AssistResult."""
    if offset is None:
        offset = len(buffer)
    request = {"offset": offset, "prefix": prefix, "keyword": False, "template": False}
    request.update(params)
    if type_defs:
        request.setdefault("type_defs", {name: {"type": "tern"} for name in type_defs})
    context = FakeEditorContext(buffer, type_defs)
    assist = JSContentAssist(lint_options=lint_options, config=Config())
    return asyncio.run(assist.compute_content_assist(context, request))


def proposals(buffer: str, prefix: str = "", offset: Optional[int] = None, **kwargs) -> List[Tuple[str, str]]:
    """``(insertion_text, description)`` pairs, the shape editors consume."""
    result = compute(buffer, prefix, offset, **kwargs)
    return [(p.insertion_text, p.description) for p in result.proposals]


def analyse(source: str, environments=("ecma5",)):
    """Parse, scope and infer ``source``; returns (env, scopes, engine, root)."""
    env = TypeEnvironment()
    importer = IndexImporter(env)
    for name in environments:
        importer.import_index(load_builtin_index(name))
    tree = LanguageParser().parse_source(source)
    data = source.encode("utf-8")
    scopes = ScopeBuilder(env).build(tree.root_node, data)
    engine = InferenceEngine(env, scopes, data)
    engine.run(tree.root_node)
    return env, scopes, engine, tree.root_node


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep ASSIST_* variables from the developer's shell out of every test."""
    for name in ("ASSIST_INDEX_DIR", "ASSIST_DISPLAY_DEPTH", "ASSIST_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
