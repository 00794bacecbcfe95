"""Scope Builder: one walk over the syntax tree producing the lexical scope tree.

Declarations are hoisted to the nearest function (or the program), parameters
are bound before locals, and every identifier reference that resolves nowhere
becomes an implicit global.
"""
import logging
import weakref
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from tree_sitter import Node

from src.analyzer.parser import FUNCTION_KINDS, node_text
from src.typesys.environment import TypeEnvironment
from src.typesys.types import Binding, FunctionType, ObjectType, UNDEFINED

logger = logging.getLogger(__name__)

GLOBAL = 'Global'
FUNCTION = 'Function'
CATCH = 'Catch'

ARGUMENTS = 'arguments'

# Node kinds whose 'name' field declares rather than references
_NAMED_DECLARATIONS = frozenset({
    'variable_declarator',
    'function_declaration',
    'function_expression',
    'generator_function',
    'generator_function_declaration',
    'class_declaration',
    'class',
})

_PATTERN_KINDS = frozenset({
    'assignment_pattern',
    'rest_pattern',
    'object_pattern',
    'array_pattern',
    'pair_pattern',
    'object_assignment_pattern',
})


class Scope:
    """A lexical scope.

    The global scope shares its bindings dict with the environment's Global
    object, so top-level declarations are also properties of ``this``.
    """

    def __init__(self, kind: str, node: Node, parent: Optional['Scope'] = None,
                 bindings: Optional[Dict[str, Binding]] = None,
                 env: Optional[TypeEnvironment] = None):
        self.kind = kind
        self.node = node
        self._parent = weakref.ref(parent) if parent is not None else None
        self.bindings: Dict[str, Binding] = bindings if bindings is not None else {}
        self.start = node.start_byte
        self.end = node.end_byte
        self.children: List['Scope'] = []
        self.param_names: List[str] = []
        self.function_type: Optional[FunctionType] = None
        self.env = env
        # set for function bodies that error recovery left without a closing brace
        self.unterminated = False

    @property
    def parent(self) -> Optional['Scope']:
        return self._parent() if self._parent is not None else None

    def declare(self, name: str, binding: Binding) -> Binding:
        existing = self.bindings.get(name)
        if existing is not None:
            return existing
        self.bindings[name] = binding
        return binding

    def lookup_local(self, name: str) -> Optional[Binding]:
        found = self.bindings.get(name)
        if found is None and self.kind == GLOBAL and self.env is not None:
            # the global object inherits from Object.prototype
            found = self.env.lookup_property(self.env.global_object, name)
        return found

    def resolve(self, name: str) -> Optional[Binding]:
        scope: Optional[Scope] = self
        while scope is not None:
            found = scope.lookup_local(name)
            if found is not None:
                return found
            scope = scope.parent
        return None

    def contains(self, byte: int) -> bool:
        if self.kind == GLOBAL:
            return True
        if self.start < byte < self.end:
            return True
        return byte == self.end and (self.unterminated or _is_open(self.node))

    def locals(self) -> List[Binding]:
        params = set(self.param_names)
        params.add(ARGUMENTS)
        return [b for name, b in self.bindings.items() if name not in params]

    def params(self) -> List[Binding]:
        ordered = [self.bindings[name] for name in self.param_names if name in self.bindings]
        if ARGUMENTS in self.bindings:
            ordered.append(self.bindings[ARGUMENTS])
        return ordered

    def __repr__(self) -> str:
        return f"Scope({self.kind}, {self.start}-{self.end}, {list(self.bindings)})"


@dataclass
class ScopeTree:
    root: Scope
    by_node: Dict[int, Scope] = field(default_factory=dict)
    unresolved: List[Node] = field(default_factory=list)
    # ERROR node id -> {child index of the parameter list: function scope}
    open_functions: Dict[int, Dict[int, Scope]] = field(default_factory=dict)

    def scope_at(self, byte: int) -> Scope:
        """Innermost scope containing ``byte``."""
        scope = self.root
        while True:
            for child in scope.children:
                if child.contains(byte):
                    scope = child
                    break
            else:
                return scope

    def routed(self, node: Node, scope: Scope,
               opener: Optional[Callable[[Node, Scope], None]] = None) -> List[Tuple[Node, Scope]]:
        """Children of ``node`` paired with the scope each one belongs to.

        Children of an ERROR node that follow an unterminated function's
        ``(params) {`` belong to that function, and so does everything after
        such an ERROR node in the same container. ``opener`` is called on each
        child first so the scope builder can register those functions.
        """
        opened = self.open_functions.get(node.id, {})
        pairs: List[Tuple[Node, Scope]] = []
        current = scope
        for index, child in enumerate(node.children):
            current = opened.get(index, current)
            pairs.append((child, current))
            if opener is not None:
                opener(child, current)
            inner = self.open_functions.get(child.id)
            if inner:
                current = inner[max(inner)]
        return pairs


def open_function_splits(node: Node) -> List[int]:
    """Indexes of ``formal_parameters`` children directly followed by ``{``.

    Error recovery leaves ``function f(a) { ...`` without its closing brace as
    loose children of an ERROR node.
    """
    if node.type != 'ERROR':
        return []
    children = node.children
    return [
        index for index, child in enumerate(children[:-1])
        if child.type == 'formal_parameters' and children[index + 1].type == '{'
    ]


def _until_open(children: List[Node]) -> List[Node]:
    """``children`` up to and including the first ERROR holding an unterminated function."""
    for index, child in enumerate(children):
        if open_function_splits(child):
            return children[:index + 1]
    return children


def _is_open(node: Node) -> bool:
    """True when a function's body is missing its closing brace."""
    body = node.child_by_field_name('body')
    if body is None or body.type != 'statement_block':
        return False
    if body.child_count == 0:
        return True
    last = body.children[-1]
    return last.is_missing or last.type != '}'


def _field_is(parent: Node, field_name: str, node: Node) -> bool:
    child = parent.child_by_field_name(field_name)
    return child is not None and child.id == node.id


def pattern_names(node: Node, source: bytes) -> List[Tuple[str, Node]]:
    """Identifiers bound by a parameter or destructuring pattern."""
    if node.type in ('identifier', 'shorthand_property_identifier_pattern'):
        return [(node_text(node, source), node)]
    if node.type == 'assignment_pattern':
        left = node.child_by_field_name('left')
        return pattern_names(left, source) if left is not None else []
    if node.type == 'pair_pattern':
        value = node.child_by_field_name('value')
        return pattern_names(value, source) if value is not None else []
    names: List[Tuple[str, Node]] = []
    if node.type in _PATTERN_KINDS:
        for child in node.named_children:
            names.extend(pattern_names(child, source))
    return names


def parameter_nodes(fn_node: Node) -> List[Node]:
    single = fn_node.child_by_field_name('parameter')
    if single is not None:
        return [single]
    params = fn_node.child_by_field_name('parameters')
    if params is None:
        return []
    return [p for p in params.named_children if p.type != 'comment']


class ScopeBuilder:
    """Builds the scope tree for one request.

    Args:
        env: Session type environment; its Global object backs the global scope
    """

    def __init__(self, env: TypeEnvironment):
        self.env = env

    def build(self, root: Node, source: bytes,
              exclude: Optional[Tuple[int, int]] = None) -> ScopeTree:
        """Walk the program once.

        Args:
            root: Program node
            source: UTF-8 source bytes
            exclude: Byte range of the identifier being completed; it neither
                resolves nor becomes an implicit global

        Returns:
            ScopeTree with implicit globals already declared on the global scope
        """
        self.source = source
        self.exclude = exclude
        self._declared_names: Set[int] = set()
        global_scope = Scope(GLOBAL, root, bindings=self.env.globals, env=self.env)
        tree = ScopeTree(root=global_scope)
        tree.by_node[root.id] = global_scope
        self._hoist(root, global_scope)

        def opener(child: Node, current: Scope) -> None:
            self._open_functions(child, current, tree)

        # error recovery can leave the whole program as one ERROR node
        opener(root, global_scope)

        references: List[Tuple[Node, Scope]] = []
        stack: List[Tuple[Node, Scope]] = [(root, global_scope)]
        while stack:
            node, scope = stack.pop()

            if node.type in FUNCTION_KINDS:
                scope = self._function_scope(node, scope, tree)
            elif node.type == 'catch_clause':
                scope = self._catch_scope(node, scope, tree)
            elif node.type in ('identifier', 'shorthand_property_identifier'):
                if self._is_reference(node):
                    references.append((node, scope))
                continue

            stack.extend(reversed(tree.routed(node, scope, opener)))

        for node, scope in references:
            name = node_text(node, source)
            if scope.resolve(name) is None:
                tree.unresolved.append(node)
                self.env.globals[name] = Binding(name, UNDEFINED, is_implicit_global=True)
                logger.debug("Implicit global %s at byte %d", name, node.start_byte)
        return tree

    def _bind_parameters(self, scope: Scope, params: List[Node], arguments: bool = True) -> None:
        for param in params:
            for name, _ in pattern_names(param, self.source):
                scope.param_names.append(name)
                scope.declare(name, Binding(name, ObjectType()))
        if arguments:
            arguments_type = self.env.resolve_or_object('Arguments')
            scope.declare(ARGUMENTS, Binding(ARGUMENTS, arguments_type, is_builtin=True))

    def _function_scope(self, node: Node, parent: Scope, tree: ScopeTree) -> Scope:
        scope = Scope(FUNCTION, node, parent=parent, env=self.env)
        parent.children.append(scope)
        tree.by_node[node.id] = scope
        self._bind_parameters(scope, parameter_nodes(node), arguments=node.type != 'arrow_function')

        if node.type != 'function_declaration' and node.type != 'generator_function_declaration':
            name_node = node.child_by_field_name('name')
            if name_node is not None and name_node.type == 'identifier':
                name = node_text(name_node, self.source)
                scope.declare(name, Binding(name, UNDEFINED))

        body = node.child_by_field_name('body')
        if body is not None:
            self._hoist(body, scope)
        return scope

    def _open_functions(self, node: Node, parent: Scope, tree: ScopeTree) -> None:
        """Give each unterminated function inside an ERROR node its scope.

        The body of such a function runs to the end of the ERROR node's
        container, so its scope does too.
        """
        splits = open_function_splits(node)
        if not splits or node.id in tree.open_functions:
            return
        children = node.children
        end = node.parent.end_byte if node.parent is not None else node.end_byte
        opened: Dict[int, Scope] = {}
        for position, split in enumerate(splits):
            name_node = children[split - 1] if split > 0 else None
            if name_node is not None and name_node.type == 'identifier':
                self._declare(parent, node_text(name_node, self.source))
                self._declared_names.add(name_node.id)

            params = children[split]
            scope = Scope(FUNCTION, node, parent=parent, env=self.env)
            scope.start = params.start_byte
            scope.end = end
            scope.unterminated = True
            parent.children.append(scope)
            self._bind_parameters(scope, [p for p in params.named_children if p.type != 'comment'])

            stop = splits[position + 1] if position + 1 < len(splits) else len(children)
            for child in children[split + 2:stop]:
                self._hoist(child, scope)
            opened[split] = scope
            parent = scope
        # statements after the ERROR node also run inside the innermost function
        if node.parent is not None:
            later = node.parent.children
            later = later[[c.id for c in later].index(node.id) + 1:]
            for sibling in _until_open(later):
                self._hoist(sibling, parent)
        tree.open_functions[node.id] = opened
        logger.debug("Unterminated function at byte %d", node.start_byte)

    def _catch_scope(self, node: Node, parent: Scope, tree: ScopeTree) -> Scope:
        scope = Scope(CATCH, node, parent=parent, env=self.env)
        parent.children.append(scope)
        tree.by_node[node.id] = scope
        param = node.child_by_field_name('parameter')
        if param is not None:
            error_type = self.env.resolve_or_object('Error')
            for name, _ in pattern_names(param, self.source):
                scope.declare(name, Binding(name, error_type))
        return scope

    def _hoist(self, body: Node, scope: Scope) -> None:
        """Declare every var/let/const and function declaration owned by ``scope``."""
        stack = list(reversed(_until_open(body.children))) if body.type == 'program' else [body]
        while stack:
            node = stack.pop()
            if node.type in ('function_declaration', 'generator_function_declaration'):
                name_node = node.child_by_field_name('name')
                if name_node is not None:
                    self._declare(scope, node_text(name_node, self.source))
                continue
            if node.type in FUNCTION_KINDS or node.type in ('class', 'class_declaration'):
                continue
            splits = open_function_splits(node)
            if splits:
                # the unterminated function hoists its own body
                stack.extend(reversed(node.children[:splits[0]]))
                continue
            if node.type == 'variable_declarator':
                name_node = node.child_by_field_name('name')
                if name_node is not None:
                    for name, _ in pattern_names(name_node, self.source):
                        self._declare(scope, name)
            elif node.type == 'for_in_statement' and node.child_by_field_name('kind') is not None:
                left = node.child_by_field_name('left')
                if left is not None:
                    for name, _ in pattern_names(left, self.source):
                        self._declare(scope, name)
            stack.extend(reversed(_until_open(node.children)))

    def _declare(self, scope: Scope, name: str) -> None:
        existing = scope.bindings.get(name)
        if existing is not None:
            return
        scope.bindings[name] = Binding(name, UNDEFINED)

    def _is_reference(self, node: Node) -> bool:
        if self.exclude is not None and (node.start_byte, node.end_byte) == self.exclude:
            return False
        if node.id in self._declared_names:
            return False
        parent = node.parent
        if parent is None:
            return True
        kind = parent.type
        if kind in _NAMED_DECLARATIONS and _field_is(parent, 'name', node):
            return False
        if kind in ('formal_parameters', 'rest_pattern', 'catch_clause', 'array_pattern', 'object_pattern'):
            return False
        if kind == 'assignment_pattern' and _field_is(parent, 'left', node):
            return False
        if kind == 'pair_pattern' and _field_is(parent, 'value', node):
            return False
        if kind == 'arrow_function' and _field_is(parent, 'parameter', node):
            return False
        if kind == 'for_in_statement' and _field_is(parent, 'left', node):
            return parent.child_by_field_name('kind') is None
        if kind in ('import_specifier', 'import_clause', 'namespace_import', 'export_specifier'):
            return False
        return True
