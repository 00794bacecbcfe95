"""JSDoc support: comment discovery, tag extraction and the type-expression grammar."""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from src.typesys.environment import TypeEnvironment
from src.typesys.types import (
    ArrayType,
    Binding,
    FunctionType,
    JSType,
    NullableType,
    ObjectType,
    Param,
    UNDEFINED,
    UnionType,
    normalize_name,
    render,
)

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\.\.\.|\.<|[\w$]+(?:\.[\w$]+)*|[{}()\[\]<>|?!,:=*]")
_TAG_SPLIT_RE = re.compile(r"(?=@\w)")
_TAG_RE = re.compile(r"@(\w+)\s*(.*)", re.S)

# Tokens that end a type; a bare '?' in front of one of these means "any"
_TERMINATORS = {None, ",", ")", "}", "]", "|", "=", ">"}


@dataclass
class DocTags:
    type_expr: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)
    return_expr: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.type_expr is None and not self.params and self.return_expr is None


def doc_comment_for(node, source: bytes) -> Optional[str]:
    """Find the doc comment attached to ``node``.

    Walks the run of comments immediately preceding the node (only whitespace
    between them) and returns the nearest one that opens with ``/**`` or ``//*``.
    """
    run = []
    current = node
    prev = node.prev_sibling
    while prev is not None and prev.type == "comment":
        if source[prev.end_byte:current.start_byte].strip():
            break
        run.append(prev)
        current = prev
        prev = prev.prev_sibling

    for comment in run:
        text = source[comment.start_byte:comment.end_byte].decode("utf-8", errors="replace")
        if text.startswith("/**") or text.startswith("//*"):
            return text
    return None


def _comment_body(text: str) -> str:
    if text.startswith("/**"):
        text = text[3:]
    elif text.startswith("//*"):
        text = text[3:]
    elif text.startswith("/*") or text.startswith("//"):
        text = text[2:]
    if text.endswith("*/"):
        text = text[:-2]
    lines = [re.sub(r"^\s*\*(?!/)", "", line) for line in text.splitlines()]
    return "\n".join(lines)


def _read_type(rest: str) -> Tuple[Optional[str], str]:
    """Split a leading type (braced or a single word) off a tag's text."""
    rest = rest.lstrip()
    if not rest:
        return None, ""
    if rest.startswith("{"):
        depth = 0
        for i, ch in enumerate(rest):
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return rest[1:i].strip(), rest[i + 1:]
        return rest[1:].strip(), ""
    parts = rest.split(None, 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


def parse_doc(text: str) -> DocTags:
    """Extract the @type, @param and @return(s) tags of a doc comment."""
    tags = DocTags()
    for chunk in _TAG_SPLIT_RE.split(_comment_body(text)):
        match = _TAG_RE.match(chunk.strip())
        if not match:
            continue
        tag, rest = match.group(1), match.group(2)
        if tag == "type":
            tags.type_expr, _ = _read_type(rest)
        elif tag in ("return", "returns"):
            tags.return_expr, _ = _read_type(rest)
        elif tag == "param":
            type_expr, remainder = _read_type(rest)
            words = remainder.split()
            if type_expr and words:
                name = words[0].strip("[]").split("=")[0]
                tags.params[name] = type_expr
    return tags


class TypeExpressionParser:
    """Recursive descent over closure-style JSDoc type expressions.

    Supports names and dotted names, ``?T``, ``!T``, ``A|B``, ``(A|B)``, ``T[]``,
    ``[T, U]``, ``Array.<T>``, ``...T``, records ``{a:T, b}`` and
    ``function(new:T, a:T, T=):R``. Unknown names resolve to Object.
    """

    def __init__(self, text: str, env: TypeEnvironment):
        self.text = text
        self.env = env
        self.tokens: List[str] = _TOKEN_RE.findall(text)
        self.pos = 0

    def parse(self) -> JSType:
        if not self.tokens:
            return self.env.object_type
        return self._union()

    def _peek(self, ahead: int = 0) -> Optional[str]:
        index = self.pos + ahead
        return self.tokens[index] if index < len(self.tokens) else None

    def _next(self) -> Optional[str]:
        token = self._peek()
        self.pos += 1
        return token

    def _expect(self, token: str) -> None:
        found = self._next()
        if found != token:
            raise ValueError(f"expected {token!r}, found {found!r} in {self.text!r}")

    def _union(self) -> JSType:
        members = [self._prefixed()]
        while self._peek() == "|":
            self._next()
            members.append(self._prefixed())
        return members[0] if len(members) == 1 else UnionType(members)

    def _prefixed(self) -> JSType:
        token = self._peek()
        if token == "?":
            self._next()
            if self._peek() in _TERMINATORS:
                return self.env.object_type
            return NullableType(self._prefixed(), nullable=True)
        if token == "!":
            self._next()
            return NullableType(self._prefixed(), non_nullable=True)
        if token == "...":
            self._next()
            return ArrayType(self._prefixed())
        t = self._primary()
        while self._peek() == "[" and self._peek(1) == "]":
            self.pos += 2
            t = ArrayType(t, label=f"{render(t)}[]")
        return t

    def _primary(self) -> JSType:
        token = self._next()
        if token is None:
            raise ValueError(f"unexpected end of {self.text!r}")
        if token == "(":
            t = self._union()
            self._expect(")")
            return t
        if token == "{":
            return self._record()
        if token == "[":
            return self._tuple()
        if token == "*":
            return self.env.object_type
        if token == "function":
            return self._function()
        if not re.match(r"[\w$]", token):
            raise ValueError(f"unexpected {token!r} in {self.text!r}")
        if self._peek() == ".<":
            self._next()
            args = [self._union()]
            while self._peek() == ",":
                self._next()
                args.append(self._union())
            self._expect(">")
            if normalize_name(token) == "Array":
                return ArrayType(args[0], label=f"Array.<{render(args[0])}>")
        return self.env.resolve_or_object(token)

    def _record(self) -> JSType:
        record = ObjectType()
        while self._peek() not in (None, "}"):
            key = self._next()
            value = self.env.object_type
            if self._peek() == ":":
                self._next()
                value = self._union()
            record.properties[key] = Binding(key, value)
            if self._peek() == ",":
                self._next()
        self._expect("}")
        return record

    def _tuple(self) -> JSType:
        if self._peek() == "]":
            self._next()
            return ArrayType(label="[]")
        elements = [self._union()]
        while self._peek() == ",":
            self._next()
            elements.append(self._union())
        self._expect("]")
        label = "[" + ",".join(render(e) for e in elements) + "]"
        return ArrayType(elements[0], label=label)

    def _function(self) -> JSType:
        self._expect("(")
        params: List[Param] = []
        new_type = None
        while self._peek() not in (None, ")"):
            name = None
            if self._peek() in ("new", "this") and self._peek(1) == ":":
                marker = self._next()
                self._next()
                target = self._union()
                if marker == "new":
                    new_type = target
            else:
                if self._peek(1) == ":" and re.match(r"[\w$]", self._peek() or ""):
                    name = self._next()
                    self._next()
                param_type = self._union()
                optional = False
                if self._peek() == "=":
                    self._next()
                    optional = True
                params.append(Param(name, param_type, optional=optional, explicit=name is not None))
            if self._peek() == ",":
                self._next()
        self._expect(")")
        return_type = UNDEFINED
        if self._peek() == ":":
            self._next()
            return_type = self._union()
        return FunctionType(params=params, return_type=return_type, new_type=new_type)


def parse_type(text: Optional[str], env: TypeEnvironment) -> Optional[JSType]:
    """Parse a JSDoc type expression, degrading to Object on malformed input."""
    if text is None:
        return None
    try:
        return TypeExpressionParser(text, env).parse()
    except ValueError as e:
        logger.debug("Unparseable JSDoc type: %s", e)
        return env.object_type
