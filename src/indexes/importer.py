"""Index Importer for Tern-style library definitions.

An index is a JSON object. Top-level keys become built-in global bindings,
``!define`` holds named types (lower-case names double as ``require()``
modules), and values are either type strings such as
``fn(path: String, mode?: Number) -> Boolean`` or nested objects using the
reserved keys ``!type``, ``!proto`` and ``prototype``.
"""

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.errors import ImportMalformed
from src.typesys.environment import GLOBAL_NAME, TypeEnvironment
from src.typesys.types import (
    ArrayType,
    Binding,
    FunctionType,
    JSType,
    OBJECT_PROTOTYPE,
    ObjectType,
    Param,
    is_constructor_name,
    to_closure,
)

logger = logging.getLogger(__name__)

BUILTIN_INDEX_DIR = Path(__file__).parent
BUILTIN_INDEXES = ("ecma5", "browser", "node")

_SIG_TOKEN_RE = re.compile(r"\s*(fn(?=\()|->|<top>|[\w$.]+|[()\[\]?:,+!])")
_IGNORED_KEYS = {"!doc", "!url", "!span", "!effects", "!data", "!stdProto"}
_TOP_ALIASES = {"<top>": GLOBAL_NAME}


@lru_cache(maxsize=None)
def _read_index_file(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def load_builtin_index(name: str) -> Dict[str, Any]:
    """Load one of the bundled index files.

    The file text is cached for the process lifetime; each call returns a fresh
    dict so importing can never mutate shared data.
    """
    if name not in BUILTIN_INDEXES:
        raise ValueError(f"Unknown built-in index: {name}")
    return json.loads(_read_index_file(str(BUILTIN_INDEX_DIR / f"{name}.json")))


def load_index_file(path: Path) -> Dict[str, Any]:
    """Load a user supplied index file.

    Raises:
        ImportMalformed: If the file cannot be read or is not a JSON object
    """
    try:
        data = json.loads(_read_index_file(str(Path(path).resolve())))
    except json.JSONDecodeError as e:
        raise ImportMalformed(str(path), f"invalid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise ImportMalformed(str(path), f"not UTF-8 text: {e.reason}") from e
    except OSError as e:
        raise ImportMalformed(str(path), f"cannot read file: {e.strerror or e}") from e
    if not isinstance(data, dict):
        raise ImportMalformed(str(path), f"expected an object, got {type(data).__name__}")
    return data


class SignatureParser:
    """Parses one Tern type string into the Type Model."""

    def __init__(self, text: str, env: TypeEnvironment, path: Optional[str] = None):
        self.text = text
        self.env = env
        self.path = path
        self.tokens = self._tokenize(text)
        self.pos = 0

    def _tokenize(self, text: str) -> List[str]:
        tokens = []
        pos = 0
        text = text.rstrip()
        while pos < len(text):
            match = _SIG_TOKEN_RE.match(text, pos)
            if not match:
                raise ImportMalformed(text, f"unexpected character {text[pos]!r}", self.path)
            tokens.append(match.group(1))
            pos = match.end()
        return tokens

    def _peek(self) -> Optional[str]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> Optional[str]:
        token = self._peek()
        self.pos += 1
        return token

    def _expect(self, token: str) -> None:
        found = self._next()
        if found != token:
            raise ImportMalformed(self.text, f"expected {token!r}, found {found!r}", self.path)

    def parse(self) -> JSType:
        if not self.tokens:
            raise ImportMalformed(self.text, "empty type", self.path)
        t = self._type(self.path)
        if self._peek() is not None:
            raise ImportMalformed(self.text, f"trailing {self._peek()!r}", self.path)
        return t

    def _type(self, path: Optional[str] = None) -> JSType:
        token = self._next()
        if token == "fn":
            return self._function(path)
        if token == "[":
            element = self._type()
            self._expect("]")
            return ArrayType(element)
        if token == "?":
            return self.env.object_type
        if token == "+":
            name = self._next()
            if name is None or not re.match(r"[\w$]", name):
                raise ImportMalformed(self.text, "expected a type name after '+'", self.path)
            return self.env.named(name, builtin=True)
        if token is None or not re.match(r"[\w$<]", token):
            raise ImportMalformed(self.text, f"unexpected {token!r}", self.path)
        return self.env.named(_TOP_ALIASES.get(token, token), builtin=True)

    def _function(self, path: Optional[str]) -> FunctionType:
        self._expect("(")
        params: List[Param] = []
        while self._peek() not in (None, ")"):
            name = self._next()
            if name is None or not re.match(r"[\w$]", name):
                raise ImportMalformed(self.text, f"bad parameter name {name!r}", self.path)
            optional = False
            if self._peek() == "?":
                self._next()
                optional = True
            param_type = self.env.object_type
            if self._peek() == ":":
                self._next()
                param_type = self._type()
            params.append(Param(name, param_type, optional=optional, explicit=True))
            if self._peek() == ",":
                self._next()
        self._expect(")")

        return_type = None
        if self._peek() == "->":
            self._next()
            return_type = self._type()

        fn = FunctionType(name=path, params=params, return_type=return_type, is_builtin=True)
        if path and is_constructor_name(path):
            fn.new_type = instance_type(self.env, path)
            if fn.return_type is None:
                fn.return_type = fn.new_type
        return fn


def instance_type(env: TypeEnvironment, path: str) -> JSType:
    """Type produced by ``new <path>()``; named shells get ``<path>.prototype`` as proto."""
    t = env.named(path, builtin=True)
    if isinstance(t, ObjectType) and t.nominal and t is not env.object_type:
        if t.proto_name == OBJECT_PROTOTYPE and t.name != GLOBAL_NAME:
            t.proto_name = f"{path}.prototype"
    return t


def signature_to_closure(signature: str, constructor_name: Optional[str] = None) -> str:
    """Convert a Tern signature to closure syntax, e.g. for diagnostics and tests."""
    env = TypeEnvironment()
    return to_closure(SignatureParser(signature, env, constructor_name).parse())


class IndexImporter:
    """Imports index data into a TypeEnvironment."""

    def __init__(self, env: TypeEnvironment):
        self.env = env
        self.skipped: List[ImportMalformed] = []

    def import_index(self, data: Dict[str, Any], include_globals: bool = True) -> Optional[str]:
        """Import one index.

        Args:
            data: Parsed index JSON
            include_globals: When False only ``!define`` entries (types and modules)
                are imported

        Returns:
            The index's ``!name``, if any
        """
        name = data.get("!name")
        defines = data.get("!define") or {}
        if not isinstance(defines, dict):
            self._skip(ImportMalformed(repr(defines), "!define must be an object", name))
            defines = {}
        logger.debug("Importing index %s (%d definitions)", name, len(defines))

        for key, value in defines.items():
            if isinstance(value, str):
                self.env.register(key, self._typed(key, value))
            elif isinstance(value, dict):
                target = self.env.named(key, builtin=True)
                if isinstance(target, ObjectType) and target is not self.env.object_type:
                    self._fill(target, key, value)
                else:
                    self.env.register(key, self._entry(key, value))
            else:
                self._skip(ImportMalformed(repr(value), "unsupported definition", key))
                continue
            if key[:1].islower():
                self.env.define_module(key, self.env.lookup(key))

        if include_globals:
            for key, value in data.items():
                if key.startswith("!"):
                    continue
                self.env.globals[key] = Binding(key, self._entry(key, value), is_builtin=True)
        return name

    def _skip(self, error: ImportMalformed) -> None:
        logger.warning("%s; using an Object stub", error)
        self.skipped.append(error)

    def _typed(self, path: str, text: Any) -> JSType:
        if not isinstance(text, str):
            self._skip(ImportMalformed(repr(text), "type must be a string", path))
            return self.env.object_type
        try:
            return SignatureParser(text, self.env, path).parse()
        except ImportMalformed as e:
            self._skip(e)
            return self.env.object_type

    def _entry(self, path: str, value: Any) -> JSType:
        if isinstance(value, str):
            return self._typed(path, value)
        if not isinstance(value, dict):
            self._skip(ImportMalformed(repr(value), "expected a string or an object", path))
            return self.env.object_type

        if "!type" in value:
            t = self._typed(path, value["!type"])
            if isinstance(t, FunctionType):
                for key, member in value.items():
                    if key == "prototype" and isinstance(member, dict):
                        self._fill(self._prototype(path), f"{path}.prototype", member)
                    elif not key.startswith("!") and key != "prototype":
                        t.properties[key] = Binding(key, self._entry(f"{path}.{key}", member), is_builtin=True)
            return t

        target = self.env.named(path, builtin=True)
        if not isinstance(target, ObjectType) or target is self.env.object_type:
            self._skip(ImportMalformed(path, "name already bound to a non-object type", path))
            return self.env.object_type
        self._fill(target, path, value)
        return target

    def _prototype(self, path: str) -> ObjectType:
        proto = self.env.named(f"{path}.prototype", builtin=True)
        if not isinstance(proto, ObjectType):
            proto = ObjectType(name=f"{path}.prototype", nominal=True, is_builtin=True)
            self.env.register(proto.name, proto)
        return proto

    def _fill(self, target: ObjectType, path: str, value: Dict[str, Any]) -> None:
        for key, member in value.items():
            if key == "!proto":
                target.proto_name = _proto_ref(member)
            elif key == "!type":
                # a typed object value carries no members of its own
                continue
            elif key in _IGNORED_KEYS or key.startswith("!"):
                continue
            elif key == "prototype" and isinstance(member, dict):
                self._fill(self._prototype(path), f"{path}.prototype", member)
            else:
                target.properties[key] = Binding(key, self._entry(f"{path}.{key}", member), is_builtin=True)


def _proto_ref(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text[1:] if text.startswith("+") else text
