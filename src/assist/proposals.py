"""Proposal Engine: candidate groups to ordered, rendered proposals."""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Set, Tuple

from src.assist.templates import Template
from src.typesys.environment import TypeEnvironment
from src.typesys.types import (
    DEFAULT_DISPLAY_DEPTH,
    FunctionType,
    JSType,
    ObjectType,
    member_type,
    render,
    simple_name,
)

logger = logging.getLogger(__name__)

TYPE = "type"
DIVIDER = "divider"
HEADER = "header"
KEYWORD = "keyword"
TEMPLATE = "template"
JSDOC = "jsdoc"

DIVIDER_TEXT = "-" * 33

_HUMP_RE = re.compile(r"[A-Z]?[^A-Z]*")

# One candidate: a name and the type it is bound to
Candidate = Tuple[str, JSType]


@dataclass
class Proposal:
    """One rendered proposal.

    ``insertion_text`` of a type proposal is the whole name and replaces the
    typed prefix (``overwrite`` is True). Keyword, template and JSDoc proposals
    insert only what follows the prefix at the cursor. Headers and dividers
    insert nothing.
    """

    display_text: str
    type_label: str = ""
    insertion_text: str = ""
    category: str = TYPE

    @property
    def description(self) -> str:
        if self.category == TYPE:
            if not self.type_label:
                return self.display_text
            return f"{self.display_text} : {self.type_label}"
        if self.category == DIVIDER:
            return DIVIDER_TEXT
        if self.category in (TEMPLATE, JSDOC):
            return self.type_label
        return self.display_text

    @property
    def overwrite(self) -> bool:
        return self.category == TYPE

    def as_dict(self) -> dict:
        return {
            "proposal": self.insertion_text,
            "display": self.display_text,
            "label": self.type_label,
            "description": self.description,
            "category": self.category,
            "overwrite": self.overwrite,
        }


def divider() -> Proposal:
    return Proposal(DIVIDER_TEXT, category=DIVIDER)


def header(title: str) -> Proposal:
    return Proposal(title, category=HEADER)


def _humps(text: str) -> List[str]:
    return [part for part in _HUMP_RE.findall(text) if part]


def camel_hump_match(prefix: str, name: str) -> bool:
    """``gAT`` matches ``getAnotherThing``: chunk i of the prefix starts part i of the name."""
    chunks = _humps(prefix)
    parts = _humps(name)
    if not chunks or len(chunks) > len(parts):
        return False
    return all(part.startswith(chunk) for chunk, part in zip(chunks, parts))


def matches(prefix: str, name: str) -> bool:
    if not prefix or name.startswith(prefix):
        return True
    if prefix == prefix.lower() and name.lower().startswith(prefix):
        return True
    return camel_hump_match(prefix, name)


def param_display(fn: FunctionType) -> str:
    names = []
    for i, param in enumerate(fn.params):
        name = param.name or simple_name(param.type) or f"arg{i}"
        names.append(f"[{name}]" if param.optional else name)
    return ", ".join(names)


def function_label(fn: FunctionType, depth: int = DEFAULT_DISPLAY_DEPTH) -> str:
    if fn.is_constructor:
        return render(fn.new_type, max_depth=depth)
    if fn.return_type is None:
        return ""
    return render(fn.return_type, max_depth=depth)


def type_proposal(name: str, t: JSType, depth: int = DEFAULT_DISPLAY_DEPTH) -> Proposal:
    """Render one binding.

    Functions display as ``name(a, [b])`` labelled with what a call produces;
    everything else as the bare name labelled with the rendered type.
    """
    target = member_type(t)
    if isinstance(target, FunctionType):
        display = f"{name}({param_display(target)})"
        return Proposal(display, function_label(target, depth), display, TYPE)
    return Proposal(name, render(t, max_depth=depth), name, TYPE)


def _ordered(entries: List[Tuple[bool, Proposal]]) -> List[Proposal]:
    """Functions first, then the rest; each part stable-sorted by lower-cased name."""
    ordered = sorted(entries, key=lambda entry: (not entry[0], entry[1].display_text.lower()))
    return [proposal for _, proposal in ordered]


def build_proposals(groups: Iterable[List[Candidate]], prefix: str,
                    depth: int = DEFAULT_DISPLAY_DEPTH) -> List[Proposal]:
    """Filter, dedupe, order and divide candidate groups.

    Args:
        groups: Candidate groups, innermost first
        prefix: Text typed so far
        depth: Object nesting depth for labels

    Returns:
        Proposals with a divider between every two non-empty groups
    """
    seen: Set[str] = set()
    result: List[Proposal] = []
    for group in groups:
        rendered: List[Tuple[bool, Proposal]] = []
        for name, t in group:
            if name in seen:
                continue
            seen.add(name)
            if matches(prefix, name):
                is_function = isinstance(member_type(t), FunctionType)
                rendered.append((is_function, type_proposal(name, t, depth)))
        if not rendered:
            continue
        if result:
            result.append(divider())
        result.extend(_ordered(rendered))
    return result


def receiver_groups(env: TypeEnvironment, t: JSType) -> List[List[Candidate]]:
    """Own members of ``t``, then one group per prototype level."""
    target = member_type(t)
    groups: List[List[Candidate]] = []
    if isinstance(target, (ObjectType, FunctionType)):
        groups.append([(name, b.type) for name, b in target.properties.items()])
    for proto in env.proto_chain(t):
        if isinstance(proto, (ObjectType, FunctionType)):
            groups.append([(name, b.type) for name, b in proto.properties.items()])
    return groups


def constructor_paths(name: str, t: JSType, limit: int = 4) -> List[Candidate]:
    """Constructors reachable as ``name.a.B`` whose own name is that same path."""
    found: List[Candidate] = []
    visited: Set[int] = set()
    stack: List[Tuple[str, JSType, int]] = [(name, t, 0)]
    while stack:
        path, current, level = stack.pop()
        target = member_type(current)
        if not isinstance(target, ObjectType) or target.is_builtin or id(target) in visited:
            continue
        visited.add(id(target))
        for key, binding in target.properties.items():
            child_path = f"{path}.{key}"
            member = member_type(binding.type)
            if isinstance(member, FunctionType) and member.is_constructor and member.name == child_path:
                found.append((child_path, member))
            elif level + 1 < limit:
                stack.append((child_path, binding.type, level + 1))
    return found


def template_proposals(templates: List[Template], prefix: str) -> List[Proposal]:
    proposals = []
    for template in templates:
        if not template.trigger.startswith(prefix):
            continue
        body = template.body
        insertion = body[len(prefix):] if body.startswith(prefix) else body
        proposals.append(Proposal(template.trigger, template.label, insertion, TEMPLATE))
    return proposals


def keyword_proposals(keywords: List[str], prefix: str) -> List[Proposal]:
    return [
        Proposal(word, "", word[len(prefix):], KEYWORD)
        for word in keywords
        if word.startswith(prefix)
    ]


def section(title: str, proposals: List[Proposal]) -> List[Proposal]:
    if not proposals:
        return []
    return [header(title)] + proposals

