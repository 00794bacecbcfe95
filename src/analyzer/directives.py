"""Lint environment options and in-source directives.

Sources, weakest first: request options, ``/*jslint ...*/``, ``/*eslint-env ...*/``.
``/*global ...*/`` comments only ever add names.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from src.analyzer.parser import node_text

logger = logging.getLogger(__name__)

ENVIRONMENTS = ('browser', 'node', 'amd')

_DIRECTIVE_RE = re.compile(r'^(eslint-env|eslint-\w+|eslint|globals?|jslint)(\s|$)')


@dataclass
class EnvOptions:
    browser: Optional[bool] = None
    node: Optional[bool] = None
    amd: Optional[bool] = None
    globals: Dict[str, bool] = field(default_factory=dict)

    @property
    def node_modules_only(self) -> bool:
        """Node core modules stay resolvable unless some environment was chosen."""
        return self.node is None and not self.amd and not self.browser


def parse_boolean_config(text: str) -> Dict[str, bool]:
    """Parse ``name[:bool]`` lists; a name is true only when its value is exactly ``true``."""
    items: Dict[str, bool] = {}
    text = re.sub(r'\s*:\s*', ':', text)
    text = re.sub(r'\s*,\s*', ',', text)
    for name in re.split(r'\s|,+', text):
        if not name:
            continue
        value = None
        pos = name.find(':')
        if pos != -1:
            value = name[pos + 1:]
            name = name[:pos]
        items[name] = value == 'true'
    return items


def parse_list_config(text: str) -> List[str]:
    return [name for name in re.split(r'[\s,]+', text.strip()) if name]


def block_comments(root, source: bytes) -> Iterator[str]:
    """Yield the inner text of every ``/* */`` comment in the tree."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == 'comment':
            text = node_text(node, source)
            if text.startswith('/*'):
                yield text[2:-2] if text.endswith('*/') else text[2:]
            continue
        stack.extend(reversed(node.children))


def request_options(lint_options: Optional[Dict[str, Any]]) -> EnvOptions:
    """Build options from a request's ``{"options": {...}, "global": [...]}`` mapping."""
    env = EnvOptions()
    if not lint_options:
        return env
    options = lint_options.get('options') or {}
    for name in ENVIRONMENTS:
        if name in options:
            setattr(env, name, bool(options[name]))
    declared = lint_options.get('global') or lint_options.get('globals') or []
    if isinstance(declared, str):
        declared = parse_list_config(declared)
    elif isinstance(declared, dict):
        declared = list(declared)
    for name in declared:
        env.globals[name] = False
    return env


def collect_directives(root, source: bytes, lint_options: Optional[Dict[str, Any]] = None) -> EnvOptions:
    """Merge request options with the directives found in the source.

    Args:
        root: Root node of the parsed file
        source: UTF-8 source bytes
        lint_options: Request-level lint options

    Returns:
        The effective EnvOptions
    """
    env = request_options(lint_options)
    jslint: Dict[str, bool] = {}
    eslint_env: Optional[List[str]] = None

    for body in block_comments(root, source):
        value = body.strip()
        match = _DIRECTIVE_RE.match(value)
        if not match:
            continue
        kind, rest = match.group(1), value[len(match.group(1)):]
        if kind in ('global', 'globals'):
            env.globals.update(parse_boolean_config(rest))
        elif kind == 'jslint':
            jslint.update(parse_boolean_config(rest))
        elif kind == 'eslint-env':
            eslint_env = (eslint_env or []) + parse_list_config(rest)

    for name in ENVIRONMENTS:
        if name in jslint:
            setattr(env, name, jslint[name])

    if eslint_env is not None:
        for name in ENVIRONMENTS:
            setattr(env, name, name in eslint_env)

    logger.debug("Environment: browser=%s node=%s amd=%s globals=%s",
                 env.browser, env.node, env.amd, list(env.globals))
    return env
