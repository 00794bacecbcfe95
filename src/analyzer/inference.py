"""Inference Engine: evaluates every statement of a program once, in order.

Function bodies are queued when their function value is created and run
after the enclosing code, or earlier if something calls them first. Types are
shared by reference, so later property assignments show up through every
binding that holds the same object.
"""
import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from tree_sitter import Node

from src.analyzer.parser import FUNCTION_KINDS, node_text
from src.analyzer.scopes import Scope, ScopeTree
from src.typesys.environment import TypeEnvironment
from src.typesys.jsdoc import DocTags, doc_comment_for, parse_doc, parse_type
from src.typesys.lattice import Generality, classify, should_replace
from src.typesys.types import (
    ArrayType,
    BOOLEAN,
    Binding,
    FunctionType,
    JSType,
    NULL,
    NUMBER,
    ObjectType,
    PENDING,
    Param,
    RUNNING,
    DONE,
    STRING,
    UNDEFINED,
    is_constructor_name,
    member_type,
)

logger = logging.getLogger(__name__)

# Stands in for the missing property name when completing right after a dot
PLACEHOLDER = '__assist__'

_COMPARISONS = frozenset({
    '==', '!=', '===', '!==', '<', '>', '<=', '>=', 'in', 'instanceof',
})
_LOGICAL = frozenset({'&&', '||', '??'})


def unwrap(node: Node) -> Node:
    """Strip parentheses around an expression."""
    while node.type == 'parenthesized_expression' and node.named_child_count:
        inner = [c for c in node.named_children if c.type != 'comment']
        if not inner:
            break
        node = inner[-1]
    return node


def string_value(node: Node, source: bytes) -> str:
    text = node_text(node, source)
    if len(text) >= 2 and text[0] in '"\'`' and text[-1] == text[0]:
        return text[1:-1]
    return text.strip('"\'`')


class InferenceEngine:
    """Runs one ordered pass over a program.

    Args:
        env: Session type environment
        tree: Scope tree built for the same syntax tree
        source: UTF-8 source bytes
        exclude: Byte range of the identifier being completed; it is never
            created as a binding or property
    """

    def __init__(self, env: TypeEnvironment, tree: ScopeTree, source: bytes,
                 exclude: Optional[Tuple[int, int]] = None):
        self.env = env
        self.tree = tree
        self.source = source
        self.exclude = exclude
        self.queue: Deque[FunctionType] = deque()
        self.functions: Dict[int, FunctionType] = {}
        self.literals: Dict[int, ObjectType] = {}
        self.memo: Dict[Tuple[int, int], JSType] = {}
        self._running: List[FunctionType] = []
        # receiver of the member being completed, and its type when the walk reached it
        self.watched: Optional[Node] = None
        self.snapshot: Optional[JSType] = None
        self._held: Optional[Tuple[Scope, int, str]] = None

        self._statements: Dict[str, Callable[[Node, Scope], None]] = {
            'variable_declaration': self._declaration,
            'lexical_declaration': self._declaration,
            'function_declaration': self._function_declaration,
            'generator_function_declaration': self._function_declaration,
            'return_statement': self._return,
            'for_in_statement': self._for_in,
            'class_declaration': self._skip,
            'comment': self._skip,
        }
        self._expressions: Dict[str, Callable[[Node, Scope], JSType]] = {
            'identifier': self._identifier,
            'this': self._this,
            'member_expression': self._member,
            'subscript_expression': self._subscript,
            'call_expression': self._call,
            'new_expression': self._new,
            'assignment_expression': self._assignment,
            'augmented_assignment_expression': self._augmented,
            'binary_expression': self._binary,
            'unary_expression': self._unary,
            'update_expression': self._update,
            'ternary_expression': self._ternary,
            'parenthesized_expression': self._parenthesized,
            'sequence_expression': self._sequence,
            'await_expression': self._parenthesized,
            'spread_element': self._spread,
            'object': lambda n, s: self._object(n, s),
            'array': self._array,
            'number': lambda n, s: NUMBER,
            'string': lambda n, s: STRING,
            'template_string': lambda n, s: STRING,
            'true': lambda n, s: BOOLEAN,
            'false': lambda n, s: BOOLEAN,
            'null': lambda n, s: NULL,
            'undefined': lambda n, s: UNDEFINED,
            'regex': lambda n, s: self.env.named('RegExp', builtin=True),
            'class': lambda n, s: self.env.object_type,
        }
        for kind in FUNCTION_KINDS:
            self._expressions[kind] = lambda n, s: self._function(n, s)

    # -- driving ---------------------------------------------------------

    def run(self, root: Node) -> None:
        """Evaluate the program, then every queued function body."""
        self._exec_children(root, self.tree.root)
        self.drain()
        logger.debug("Inference done: %d functions, %d object literals",
                     len(self.functions), len(self.literals))

    def drain(self) -> None:
        while self.queue:
            self._run(self.queue.popleft())

    def watch(self, receiver: Node) -> None:
        """Record the type of ``receiver`` at the point the ordered walk reaches it."""
        self.watched = receiver
        self.snapshot = None
        self._held = None

    def receiver_type(self, scope: Scope) -> JSType:
        """Type of the watched receiver as seen from the completion point.

        A receiver that already held a value there keeps that value; later
        reassignments do not reach it, while members added to the same object
        later still do. A receiver that had no value yet is read from the final
        state, minus the member writes that followed it in its own scope.
        """
        if self.watched is None:
            return self.env.object_type
        if self.snapshot is not None and classify(self.snapshot) != Generality.UNDEFINED:
            return self.snapshot
        return self.type_of(self.watched, scope)

    def type_of(self, node: Node, scope: Scope) -> JSType:
        """Type of ``node`` in the final program state."""
        self.memo.clear()
        t = self.evaluate(node, scope)
        self.drain()
        return t

    def _run(self, fn: FunctionType) -> None:
        if fn.status != PENDING or fn.node is None:
            return
        fn.status = RUNNING
        self._running.append(fn)
        try:
            body = fn.node.child_by_field_name('body')
            if body is None:
                pass
            elif body.type == 'statement_block':
                self._exec_children(body, fn.scope)
            else:
                result = self.evaluate(body, fn.scope)
                if not fn.return_fixed:
                    fn.return_type = result
        finally:
            self._running.pop()
            fn.status = DONE

    # -- statements ------------------------------------------------------

    def _exec_children(self, node: Node, scope: Scope) -> None:
        for child, child_scope in self.tree.routed(node, scope):
            if child.is_named:
                self.execute(child, child_scope)

    def execute(self, node: Node, scope: Scope) -> None:
        handler = self._statements.get(node.type)
        if handler is not None:
            handler(node, scope)
            return
        if node.type in self._expressions:
            self.evaluate(node, scope)
            return
        if node.type == 'catch_clause':
            scope = self.tree.by_node.get(node.id, scope)
        self._exec_children(node, scope)

    def _skip(self, node: Node, scope: Scope) -> None:
        return None

    def _declaration(self, node: Node, scope: Scope) -> None:
        doc = self._doc(node)
        for declarator in node.named_children:
            if declarator.type == 'variable_declarator':
                self._declarator(declarator, scope, doc)

    def _declarator(self, node: Node, scope: Scope, doc: Optional[DocTags]) -> None:
        name_node = node.child_by_field_name('name')
        value = node.child_by_field_name('value')
        if name_node is None or name_node.type != 'identifier':
            if value is not None:
                self.evaluate(value, scope)
            return

        name = node_text(name_node, self.source)
        binding = scope.resolve(name)
        declared = None
        if doc is not None and doc.type_expr:
            declared = parse_type(doc.type_expr, self.env)

        t: Optional[JSType] = None
        if value is not None:
            if unwrap(value).type in FUNCTION_KINDS:
                declared = None
            t = self._value(value, scope, hint=name, doc=doc)
        if binding is None:
            return
        if declared is not None:
            self._assign_binding(binding, declared, force=True)
        else:
            self._assign_binding(binding, t if t is not None else ObjectType())

    def _function_declaration(self, node: Node, scope: Scope) -> None:
        name_node = node.child_by_field_name('name')
        name = node_text(name_node, self.source) if name_node is not None else None
        fn = self._function(node, scope, name=name, doc=self._doc(node))
        if name is None:
            return
        binding = scope.resolve(name)
        if binding is not None and not binding.is_builtin:
            binding.type = fn

    def _return(self, node: Node, scope: Scope) -> None:
        values = [c for c in node.named_children if c.type != 'comment']
        t = self.evaluate(values[0], scope) if values else UNDEFINED
        if self._running:
            fn = self._running[-1]
            if not fn.return_fixed:
                fn.return_type = t

    def _for_in(self, node: Node, scope: Scope) -> None:
        right = node.child_by_field_name('right')
        left = node.child_by_field_name('left')
        body = node.child_by_field_name('body')
        operator = node.child_by_field_name('operator')

        collection = self.evaluate(right, scope) if right is not None else self.env.object_type
        if operator is not None and node_text(operator, self.source) == 'of':
            target = member_type(collection)
            element = target.element if isinstance(target, ArrayType) and target.element else self.env.object_type
        else:
            element = STRING
        if left is not None:
            if unwrap(left).type in ('identifier', 'member_expression', 'subscript_expression'):
                self._assign(left, element, scope)
            else:
                self.evaluate(left, scope)
        if body is not None:
            self.execute(body, scope)

    # -- expressions -----------------------------------------------------

    def evaluate(self, node: Optional[Node], scope: Scope) -> JSType:
        if node is None:
            return self.env.object_type
        key = (node.id, id(scope))
        cached = self.memo.get(key)
        if cached is not None:
            return cached
        handler = self._expressions.get(node.type)
        if handler is None:
            self._exec_children(node, scope)
            t: JSType = self.env.object_type
        else:
            t = self.env.fallback(handler(node, scope))
        self.memo[key] = t
        return t

    def _excluded(self, node: Node) -> bool:
        return self.exclude is not None and (node.start_byte, node.end_byte) == self.exclude

    def _is_watched(self, node: Node) -> bool:
        return self.watched is not None and node.id == self.watched.id

    def _is_held(self, left: Node, scope: Scope) -> bool:
        if self._held is None:
            return False
        held_scope, after, text = self._held
        obj = left.child_by_field_name('object')
        return (held_scope is scope and left.start_byte >= after
                and obj is not None and node_text(unwrap(obj), self.source) == text)

    def _identifier(self, node: Node, scope: Scope) -> JSType:
        if self._excluded(node):
            return self.env.object_type
        name = node_text(node, self.source)
        if name == 'undefined':
            return UNDEFINED
        binding = scope.resolve(name)
        if binding is None:
            return self.env.object_type
        if binding.is_implicit_global and classify(binding.type) == Generality.UNDEFINED:
            binding.type = ObjectType()
        return binding.type

    def _this(self, node: Node, scope: Scope) -> JSType:
        current = node.parent
        while current is not None:
            if current.type in FUNCTION_KINDS and current.type != 'arrow_function':
                fn = self.functions.get(current.id)
                if fn is not None and fn.this_type is not None:
                    return fn.this_type
                return ObjectType()
            if current.type == 'object':
                literal = self.literals.get(current.id)
                if literal is not None:
                    return literal
            current = current.parent
        return self.env.global_object

    def _member(self, node: Node, scope: Scope) -> JSType:
        obj = node.child_by_field_name('object')
        receiver = self.evaluate(obj, scope)
        if obj is not None and self._is_watched(obj) and self.snapshot is None:
            self.snapshot = receiver
            if classify(receiver) == Generality.UNDEFINED:
                # no value yet: member writes later in this scope belong to a later value
                self._held = (scope, obj.end_byte, node_text(unwrap(obj), self.source))
        prop = node.child_by_field_name('property')
        if prop is None:
            return self.env.object_type
        name = node_text(prop, self.source)
        if name == PLACEHOLDER:
            return receiver
        return self.property_type(receiver, name, create=not self._excluded(prop))

    def property_type(self, receiver: JSType, name: str, create: bool = True) -> JSType:
        """Read ``receiver.name``; user objects grow an empty ``{}`` member on first read."""
        target = member_type(receiver)
        if isinstance(target, FunctionType) and name == 'prototype':
            return self.prototype_of(target)
        found = self.env.lookup_property(receiver, name)
        if found is not None:
            return self.env.fallback(found.type)
        if create and self._extensible(target):
            binding = Binding(name, ObjectType())
            target.properties[name] = binding
            return binding.type
        return self.env.object_type

    def prototype_of(self, fn: FunctionType) -> JSType:
        if fn.is_builtin:
            found = self.env.lookup(f"{fn.name}.prototype") if fn.name else None
            return found or self.env.object_type
        if not fn.prototype_key:
            fn.prototype_key = fn.name or self.env.anonymous_key()
        return self.env.named(f"{fn.prototype_key}.prototype")

    def _extensible(self, t: JSType) -> bool:
        if t is self.env.global_object:
            return True
        if isinstance(t, (ObjectType, FunctionType)):
            return not t.is_builtin
        return False

    def _subscript(self, node: Node, scope: Scope) -> JSType:
        receiver = self.evaluate(node.child_by_field_name('object'), scope)
        index = node.child_by_field_name('index')
        if index is not None:
            self.evaluate(index, scope)
        target = member_type(receiver)
        if isinstance(target, ArrayType):
            return target.element or self.env.object_type
        if index is not None and index.type == 'string':
            return self.property_type(receiver, string_value(index, self.source))
        return self.env.object_type

    def _arguments(self, node: Node, scope: Scope) -> List[JSType]:
        args = node.child_by_field_name('arguments')
        if args is None or args.type != 'arguments':
            return []
        return [self.evaluate(a, scope) for a in args.named_children if a.type != 'comment']

    def _call(self, node: Node, scope: Scope) -> JSType:
        callee = node.child_by_field_name('function')
        if callee is None:
            return self.env.object_type
        if callee.type == 'identifier' and node_text(callee, self.source) == 'require':
            return self._require(node, scope)

        fn_type = self.evaluate(callee, scope)
        arg_types = self._arguments(node, scope)
        target = member_type(fn_type)
        if not isinstance(target, FunctionType):
            return ObjectType()

        # one-shot closure: bind the actual arguments before running the body
        if unwrap(callee).type in FUNCTION_KINDS and target.status == PENDING and target.scope is not None:
            for name, t in zip(target.scope.param_names, arg_types):
                binding = target.scope.bindings.get(name)
                if binding is not None and not binding.declared_via_jsdoc:
                    binding.type = t
        self._run(target)
        if target.return_type is None:
            return UNDEFINED
        return target.return_type

    def _require(self, node: Node, scope: Scope) -> JSType:
        args = node.child_by_field_name('arguments')
        first = None
        if args is not None:
            named = [a for a in args.named_children if a.type != 'comment']
            first = named[0] if named else None
        self._arguments(node, scope)
        if first is None or first.type != 'string':
            return self.env.object_type
        name = string_value(first, self.source)
        module = self.env.module(name)
        if module is None:
            logger.debug("Unknown module %s", name)
            return self.env.object_type
        return module

    def _new(self, node: Node, scope: Scope) -> JSType:
        ctor = node.child_by_field_name('constructor')
        if ctor is None:
            return self.env.object_type
        t = member_type(self.evaluate(ctor, scope))
        self._arguments(node, scope)
        if isinstance(t, FunctionType):
            self._run(t)
            if t.new_type is not None:
                return t.new_type
            if t.is_builtin:
                return t.return_type or self.env.object_type
            if t.this_type is None:
                t.this_type = ObjectType(proto_name=f"{t.prototype_key}.prototype")
            return t.this_type
        return self.env.named(self.path_of(ctor) or 'Object', builtin=True)

    def path_of(self, node: Node) -> Optional[str]:
        """Dotted name of an identifier/member chain; a leading ``this.`` is dropped."""
        node = unwrap(node)
        if node.type == 'identifier':
            return node_text(node, self.source)
        if node.type == 'member_expression':
            obj = node.child_by_field_name('object')
            prop = node.child_by_field_name('property')
            if obj is None or prop is None:
                return None
            name = node_text(prop, self.source)
            if unwrap(obj).type == 'this':
                return name
            base = self.path_of(obj)
            return f"{base}.{name}" if base else None
        return None

    def _assignment(self, node: Node, scope: Scope) -> JSType:
        left = node.child_by_field_name('left')
        right = node.child_by_field_name('right')
        if left is None or right is None:
            return self.env.object_type
        doc = None
        if node.parent is not None and node.parent.type == 'expression_statement':
            doc = self._doc(node.parent)

        this_type = None
        target = unwrap(left)
        if target.type == 'member_expression' and unwrap(right).type in FUNCTION_KINDS:
            receiver = member_type(self.evaluate(target.child_by_field_name('object'), scope))
            if isinstance(receiver, ObjectType) and self._extensible(receiver):
                this_type = receiver

        value = self._value(right, scope, hint=self.path_of(left), doc=doc, this_type=this_type)
        if doc is not None and doc.type_expr:
            self._assign(left, parse_type(doc.type_expr, self.env), scope, force=True)
        else:
            self._assign(left, value, scope)
        return value

    def _assign(self, left: Node, t: JSType, scope: Scope, force: bool = False) -> None:
        left = unwrap(left)
        if left.type == 'identifier':
            if self._excluded(left):
                return
            name = node_text(left, self.source)
            binding = scope.resolve(name)
            if binding is None:
                binding = Binding(name, UNDEFINED, is_implicit_global=True)
                self.env.globals[name] = binding
            self._assign_binding(binding, t, force)
        elif left.type == 'member_expression':
            receiver = self.evaluate(left.child_by_field_name('object'), scope)
            prop = left.child_by_field_name('property')
            if prop is None:
                return
            name = node_text(prop, self.source)
            if name == PLACEHOLDER or self._is_held(left, scope):
                return
            target = member_type(receiver)
            if isinstance(target, FunctionType) and name == 'prototype':
                if not target.is_builtin:
                    self.prototype_of(target)
                    self.env.register(f"{target.prototype_key}.prototype", t)
                return
            self._assign_property(target, name, t, force)
        elif left.type == 'subscript_expression':
            receiver = self.evaluate(left.child_by_field_name('object'), scope)
            index = left.child_by_field_name('index')
            if index is not None:
                self.evaluate(index, scope)
            if self._is_held(left, scope):
                return
            target = member_type(receiver)
            if isinstance(target, ArrayType):
                if target.element is None or should_replace(target.element, t):
                    target.element = t
            elif index is not None and index.type == 'string':
                self._assign_property(target, string_value(index, self.source), t, force)
        else:
            self.evaluate(left, scope)

    def _assign_property(self, target: JSType, name: str, t: JSType, force: bool = False) -> None:
        if not self._extensible(target):
            return
        existing = target.properties.get(name)
        if existing is None:
            target.properties[name] = Binding(name, t, declared_via_jsdoc=force)
        else:
            self._assign_binding(existing, t, force)

    def _assign_binding(self, binding: Binding, t: JSType, force: bool = False) -> None:
        if binding.is_builtin:
            return
        if force:
            binding.type = t
            binding.declared_via_jsdoc = True
        elif should_replace(binding.type, t, binding.declared_via_jsdoc):
            binding.type = t

    def _augmented(self, node: Node, scope: Scope) -> JSType:
        left = node.child_by_field_name('left')
        right = node.child_by_field_name('right')
        operator = node.child_by_field_name('operator')
        op = node_text(operator, self.source) if operator is not None else '+='
        lt = self.evaluate(left, scope) if left is not None else UNDEFINED
        rt = self.evaluate(right, scope) if right is not None else UNDEFINED
        if op in ('&&=', '||=', '??='):
            result = rt
        elif op == '+=' and (_is_string(lt) or _is_string(rt)):
            result = STRING
        else:
            result = NUMBER
        if left is not None:
            self._assign(left, result, scope)
        return result

    def _binary(self, node: Node, scope: Scope) -> JSType:
        operator = node.child_by_field_name('operator')
        op = node_text(operator, self.source) if operator is not None else ''
        left = node.child_by_field_name('left')
        right = node.child_by_field_name('right')
        lt = self.evaluate(left, scope) if left is not None else UNDEFINED
        rt = self.evaluate(right, scope) if right is not None else UNDEFINED
        if op == '+':
            return STRING if _is_string(lt) or _is_string(rt) else NUMBER
        if op in _LOGICAL:
            return lt if _is_structural(lt) else rt
        if op in _COMPARISONS:
            return BOOLEAN
        return NUMBER

    def _unary(self, node: Node, scope: Scope) -> JSType:
        operator = node.child_by_field_name('operator')
        argument = node.child_by_field_name('argument')
        if argument is not None:
            self.evaluate(argument, scope)
        op = node_text(operator, self.source) if operator is not None else ''
        if op in ('!', 'delete'):
            return BOOLEAN
        if op == 'typeof':
            return STRING
        if op == 'void':
            return UNDEFINED
        return NUMBER

    def _update(self, node: Node, scope: Scope) -> JSType:
        argument = node.child_by_field_name('argument')
        if argument is not None:
            self.evaluate(argument, scope)
        return NUMBER

    def _ternary(self, node: Node, scope: Scope) -> JSType:
        condition = node.child_by_field_name('condition')
        consequence = node.child_by_field_name('consequence')
        alternative = node.child_by_field_name('alternative')
        if condition is not None:
            self.evaluate(condition, scope)
        first = self.evaluate(consequence, scope) if consequence is not None else UNDEFINED
        second = self.evaluate(alternative, scope) if alternative is not None else UNDEFINED
        return first if classify(first) != Generality.UNDEFINED else second

    def _parenthesized(self, node: Node, scope: Scope) -> JSType:
        inner = [c for c in node.named_children if c.type != 'comment']
        t: JSType = UNDEFINED
        for child in inner:
            t = self.evaluate(child, scope)
        return t

    def _sequence(self, node: Node, scope: Scope) -> JSType:
        return self._parenthesized(node, scope)

    def _spread(self, node: Node, scope: Scope) -> JSType:
        self._parenthesized(node, scope)
        return self.env.object_type

    def _array(self, node: Node, scope: Scope) -> JSType:
        elements = [self.evaluate(c, scope) for c in node.named_children if c.type != 'comment']
        return ArrayType(elements[0] if elements else None)

    # -- values with naming context ---------------------------------------

    def _value(self, node: Node, scope: Scope, hint: Optional[str] = None,
               doc: Optional[DocTags] = None, this_type: Optional[JSType] = None) -> JSType:
        inner = unwrap(node)
        if inner.type in FUNCTION_KINDS:
            return self._function(inner, scope, name=hint, doc=doc, this_type=this_type)
        if inner.type == 'object':
            return self._object(inner, scope, hint=hint)
        return self.evaluate(node, scope)

    def _key(self, node: Optional[Node]) -> Optional[str]:
        if node is None:
            return None
        if node.type == 'string':
            return string_value(node, self.source)
        if node.type in ('property_identifier', 'number', 'identifier', 'private_property_identifier'):
            return node_text(node, self.source)
        return None

    def _object(self, node: Node, scope: Scope, hint: Optional[str] = None) -> JSType:
        existing = self.literals.get(node.id)
        if existing is not None:
            return existing
        literal = ObjectType()
        self.literals[node.id] = literal

        for child in node.named_children:
            if child.type == 'pair':
                value = child.child_by_field_name('value')
                key = self._key(child.child_by_field_name('key'))
                if value is None:
                    continue
                if key is None:
                    self.evaluate(value, scope)
                    continue
                doc = self._doc(child)
                path = f"{hint}.{key}" if hint else key
                t = self._value(value, scope, hint=path, doc=doc, this_type=literal)
                declared = (doc is not None and doc.type_expr is not None
                            and unwrap(value).type not in FUNCTION_KINDS)
                if declared:
                    t = parse_type(doc.type_expr, self.env)
                literal.properties[key] = Binding(key, t, declared_via_jsdoc=declared)
            elif child.type == 'shorthand_property_identifier':
                name = node_text(child, self.source)
                literal.properties[name] = Binding(name, self.evaluate(child, scope))
            elif child.type == 'method_definition':
                key = self._key(child.child_by_field_name('name'))
                path = f"{hint}.{key}" if hint and key else key
                fn = self._function(child, scope, name=path, doc=self._doc(child), this_type=literal)
                if key is not None:
                    literal.properties[key] = Binding(key, fn)
            elif child.type != 'comment':
                self.evaluate(child, scope)
        return literal

    def _function(self, node: Node, scope: Scope, name: Optional[str] = None,
                  doc: Optional[DocTags] = None, this_type: Optional[JSType] = None) -> FunctionType:
        """Create the FunctionType for a function node and queue its body.

        Args:
            node: Any function-like node
            scope: Scope the function is created in
            name: Qualified name hint from the declaration or assignment target
            doc: JSDoc tags attached to the defining statement
            this_type: Receiver object for methods

        Returns:
            The FunctionType; creating it twice returns the first one
        """
        existing = self.functions.get(node.id)
        if existing is not None:
            return existing
        fn_scope = self.tree.by_node.get(node.id)
        if name is None:
            own = node.child_by_field_name('name')
            if own is not None and own.type == 'identifier':
                name = node_text(own, self.source)

        fn = FunctionType(name=name, node=node, scope=fn_scope, status=PENDING, return_type=UNDEFINED)
        fn.prototype_key = name or self.env.anonymous_key()
        tags = doc or DocTags()

        if fn_scope is not None:
            for param_name in fn_scope.param_names:
                binding = fn_scope.bindings[param_name]
                declared = tags.params.get(param_name)
                if declared is not None:
                    binding.type = parse_type(declared, self.env)
                    binding.declared_via_jsdoc = True
                fn.params.append(Param(param_name, binding.type))
            fn_scope.function_type = fn
            own = node.child_by_field_name('name')
            if node.type not in ('function_declaration', 'generator_function_declaration') \
                    and own is not None and own.type == 'identifier':
                own_binding = fn_scope.bindings.get(node_text(own, self.source))
                if own_binding is not None and classify(own_binding.type) == Generality.UNDEFINED:
                    own_binding.type = fn

        if tags.return_expr:
            fn.return_type = parse_type(tags.return_expr, self.env)
            fn.return_fixed = True

        if node.type == 'arrow_function':
            fn.this_type = None
        elif is_constructor_name(name):
            fn.new_type = self._instance_type(name)
            fn.this_type = fn.new_type
        else:
            fn.this_type = this_type or ObjectType(proto_name=f"{fn.prototype_key}.prototype")

        self.functions[node.id] = fn
        self.queue.append(fn)
        return fn

    def _instance_type(self, name: str) -> ObjectType:
        shell = self.env.by_name.get(name)
        if isinstance(shell, ObjectType) and shell.nominal and not shell.is_builtin:
            shell.proto_name = f"{name}.prototype"
            return shell
        instance = ObjectType(name=name, nominal=True, proto_name=f"{name}.prototype")
        if shell is None:
            self.env.register(name, instance)
        return instance

    def _doc(self, node: Node) -> Optional[DocTags]:
        text = doc_comment_for(node, self.source)
        if text is None:
            return None
        return parse_doc(text)


def _is_string(t: JSType) -> bool:
    return member_type(t) is STRING


def _is_structural(t: JSType) -> bool:
    target = member_type(t)
    return isinstance(target, ObjectType) and not target.nominal
