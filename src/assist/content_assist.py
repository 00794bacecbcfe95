"""Content assist request pipeline.

One request: fetch the text, parse it, build the per-request type
environment, run scope building and inference, then turn the cursor context
into ordered proposals. Nothing computed here outlives the request.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from tree_sitter import Node

from src.analyzer.directives import collect_directives
from src.analyzer.inference import PLACEHOLDER, InferenceEngine, unwrap
from src.analyzer.parser import ASTManager, FUNCTION_KINDS, first_syntax_error, node_text
from src.analyzer.scopes import CATCH, FUNCTION, ScopeBuilder, ScopeTree, parameter_nodes, pattern_names
from src.assist.proposals import (
    JSDOC,
    Candidate,
    Proposal,
    build_proposals,
    constructor_paths,
    keyword_proposals,
    receiver_groups,
    section,
    template_proposals,
    type_proposal,
)
from src.assist.templates import JSDOC_TAGS, keywords_for, templates_for
from src.config import Config, get_config
from src.errors import AssistError, ImportMalformed, ParseError
from src.indexes.importer import IndexImporter, load_builtin_index, load_index_file
from src.typesys.environment import TypeEnvironment
from src.typesys.types import Binding, ObjectType, member_type

logger = logging.getLogger(__name__)

_IDENTIFIER_KINDS = frozenset({
    'identifier',
    'property_identifier',
    'shorthand_property_identifier',
    'private_property_identifier',
})
_NEW_RE = re.compile(r'(?:^|[^\w$.])new\s+$')
_TAG_CONTEXT_RE = re.compile(r'@(\w*)$')
_NAME_CONTEXT_RE = re.compile(r'@(name|param)\s+(?:\{[^}]*\}\s*)?(\S*)$')

NAME_DESCRIPTION = 'The name of the function'
PARAM_DESCRIPTION = 'Function parameter'


@dataclass
class Diagnostic:
    message: str
    line: int = 1
    column: int = 0


@dataclass
class AssistResult:
    proposals: List[Proposal] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


def _byte_offset(text: str, index: int) -> int:
    return len(text[:index].encode('utf-8'))


class JSContentAssist:
    """Computes JavaScript content assist proposals.

    Args:
        ast_manager: AST provider; a tree-sitter backed ASTManager by default
        lint_options: Request-level environment options,
            e.g. ``{"options": {"node": True}, "global": ["$"]}``
        config: Configuration; the process-wide instance by default
    """

    def __init__(self, ast_manager: Optional[ASTManager] = None,
                 lint_options: Optional[Dict[str, Any]] = None,
                 config: Optional[Config] = None):
        self.ast_manager = ast_manager or ASTManager()
        self.lint_options = lint_options
        self.config = config or get_config()

    async def compute_content_assist(self, editor_context, params: Dict[str, Any]) -> AssistResult:
        """Compute proposals at ``params["offset"]``.

        Args:
            editor_context: Object with ``async get_text()`` and optionally
                ``async get_type_def(name)``
            params: ``offset``, ``prefix``, ``keyword``, ``template`` and
                optionally ``type_defs``

        Returns:
            AssistResult; failures become diagnostics, never exceptions
        """
        text = await editor_context.get_text()
        offset = params.get('offset')
        if offset is None or offset > len(text):
            offset = len(text)
        prefix = params.get('prefix') or ''
        if len(prefix) > offset:
            prefix = prefix[len(prefix) - offset:]

        try:
            return await self._compute(editor_context, text, offset, prefix, params)
        except ParseError as e:
            logger.info("Content assist failed: %s", e)
            return AssistResult([], [Diagnostic(e.message, e.line, e.column)])
        except AssistError as e:
            logger.warning("Content assist degraded: %s", e)
            return AssistResult([], [Diagnostic(str(e))])
        except RecursionError:
            logger.warning("Source nested too deeply for analysis")
            return AssistResult([], [Diagnostic("Source is nested too deeply to analyse")])

    async def _compute(self, editor_context, text: str, offset: int, prefix: str,
                       params: Dict[str, Any]) -> AssistResult:
        prefix_start = offset - len(prefix)
        member = prefix_start > 0 and text[prefix_start - 1] == '.'

        analysed, end = text, offset
        if member and not prefix:
            analysed = text[:offset] + PLACEHOLDER + text[offset:]
            end = offset + len(PLACEHOLDER)

        tree = await self.ast_manager.get_ast(analysed)
        root = tree.root_node
        source = analysed.encode('utf-8')
        start_byte = _byte_offset(analysed, prefix_start)
        end_byte = _byte_offset(analysed, end)
        diagnostics = _syntax_diagnostics(root)

        comment = _comment_at(root, _byte_offset(analysed, offset), source)
        if comment is not None:
            if node_text(comment, source).startswith('/**'):
                return AssistResult(jsdoc_proposals(comment, source, text, offset, prefix), diagnostics)
            return AssistResult([], diagnostics)

        env = await self.build_environment(editor_context, root, source, params)
        completion = _completion_node(root, start_byte, end_byte)
        exclude = (completion.start_byte, completion.end_byte) if completion is not None else None
        scopes = ScopeBuilder(env).build(root, source, exclude)
        engine = InferenceEngine(env, scopes, source, exclude)
        receiver = _member_receiver(root, start_byte, end_byte) if member else None
        if receiver is not None:
            engine.watch(receiver)
        engine.run(root)
        depth = self.config.display_depth

        if member:
            if receiver is None:
                logger.debug("No member expression at byte %d", start_byte)
                return AssistResult([], diagnostics)
            t = engine.receiver_type(scopes.scope_at(start_byte))
            return AssistResult(build_proposals(receiver_groups(env, t), prefix, depth), diagnostics)

        groups = self._scope_groups(engine, scopes, root, start_byte, completion)
        if _NEW_RE.search(text[:prefix_start]):
            groups = [group + _constructors(group) for group in groups]
        proposals = build_proposals(groups, prefix, depth)

        expression_position = _is_property_value(completion)
        if params.get('template') and (prefix_start == 0 or text[prefix_start - 1].isspace()):
            proposals += section('Templates', template_proposals(templates_for(expression_position), prefix))
        if params.get('keyword'):
            proposals += section('Keywords', keyword_proposals(keywords_for(expression_position), prefix))
        logger.debug("%d proposals for prefix %r at %d", len(proposals), prefix, offset)
        return AssistResult(proposals, diagnostics)

    async def build_environment(self, editor_context, root: Node, source: bytes,
                                params: Optional[Dict[str, Any]] = None) -> TypeEnvironment:
        """Assemble the type environment for one request.

        Built-in indexes follow the effective lint environment; configured and
        contributed indexes come next; declared globals last.
        """
        params = params or {}
        env = TypeEnvironment()
        importer = IndexImporter(env)
        importer.import_index(load_builtin_index('ecma5'))

        options = collect_directives(root, source, self.lint_options)
        if options.browser:
            importer.import_index(load_builtin_index('browser'))
        if options.node:
            importer.import_index(load_builtin_index('node'))
        elif options.node_modules_only:
            importer.import_index(load_builtin_index('node'), include_globals=False)

        index_dir = self.config.index_dir
        if index_dir is not None and index_dir.is_dir():
            for path in sorted(index_dir.glob('*.json')):
                try:
                    importer.import_index(load_index_file(path))
                except ImportMalformed as e:
                    logger.warning("Skipping index %s: %s", path, e)

        type_defs = params.get('type_defs') or params.get('typeDefs') or {}
        get_type_def = getattr(editor_context, 'get_type_def', None)
        if type_defs and get_type_def is not None:
            for name, entry in type_defs.items():
                if isinstance(entry, dict) and entry.get('type', 'tern') != 'tern':
                    continue
                data = await get_type_def(name)
                if isinstance(data, dict):
                    importer.import_index(data)
                else:
                    logger.warning("No type definition returned for %s", name)

        for name in options.globals:
            if name not in env.globals:
                env.globals[name] = Binding(name, ObjectType())
        return env

    def _scope_groups(self, engine: InferenceEngine, scopes: ScopeTree, root: Node,
                      start_byte: int, completion: Optional[Node]) -> List[List[Candidate]]:
        env = engine.env
        literal = _enclosing_literal(engine, completion or root.descendant_for_byte_range(start_byte, start_byte))
        groups: List[List[Candidate]] = []
        this_done = False
        scope = scopes.scope_at(start_byte)
        while scope is not None:
            if scope.kind == FUNCTION:
                groups.append([(b.name, b.type) for b in scope.locals()])
                params = [(b.name, b.type) for b in scope.params()]
                if not this_done and scope.node.type != 'arrow_function':
                    this_type = literal
                    if this_type is None and scope.function_type is not None:
                        this_type = scope.function_type.this_type
                    if this_type is not None:
                        params.append(('this', this_type))
                        this_done = True
                groups.append(params)
            elif scope.kind == CATCH:
                groups.append([(name, b.type) for name, b in scope.bindings.items()])
            else:
                if literal is not None and not this_done:
                    groups.append([('this', literal)])
                groups.append([(name, b.type) for name, b in env.globals.items()]
                              + [('this', env.global_object)])
                for proto in env.proto_chain(env.global_object):
                    if isinstance(proto, ObjectType):
                        groups.append([(name, b.type) for name, b in proto.properties.items()])
            scope = scope.parent
        return groups

    async def global_types(self, editor_context) -> List[Proposal]:
        """User-visible global bindings of a file with their inferred types."""
        text = await editor_context.get_text()
        tree = await self.ast_manager.get_ast(text)
        root = tree.root_node
        source = text.encode('utf-8')
        env = await self.build_environment(editor_context, root, source)
        scopes = ScopeBuilder(env).build(root, source)
        InferenceEngine(env, scopes, source).run(root)
        depth = self.config.display_depth
        return [type_proposal(name, b.type, depth) for name, b in env.globals.items() if not b.is_builtin]


def _syntax_diagnostics(root: Node) -> List[Diagnostic]:
    error = first_syntax_error(root)
    if error is None:
        return []
    row, column = error.start_point
    if error.is_missing:
        message = f"Missing {error.type}"
    else:
        message = "Syntax error"
    return [Diagnostic(message, row + 1, column)]


def _comment_at(root: Node, byte: int, source: bytes) -> Optional[Node]:
    candidates = [root.descendant_for_byte_range(byte, byte)]
    if byte > 0:
        candidates.append(root.descendant_for_byte_range(byte - 1, byte - 1))
    for node in candidates:
        if node is None or node.type != 'comment':
            continue
        if node.start_byte < byte < node.end_byte:
            return node
        if byte == node.end_byte and not node_text(node, source).endswith('*/'):
            return node
    return None


def _member_receiver(root: Node, start_byte: int, end_byte: int) -> Optional[Node]:
    """Object node of the member expression whose property starts at ``start_byte``."""
    node = root.descendant_for_byte_range(start_byte, end_byte)
    while node is not None:
        if node.type == 'member_expression':
            prop = node.child_by_field_name('property')
            if prop is not None and prop.start_byte == start_byte:
                return node.child_by_field_name('object')
        node = node.parent
    return None


def _completion_node(root: Node, start_byte: int, end_byte: int) -> Optional[Node]:
    if end_byte <= start_byte:
        return None
    node = root.descendant_for_byte_range(start_byte, end_byte)
    if node is None or node.type not in _IDENTIFIER_KINDS:
        return None
    if (node.start_byte, node.end_byte) != (start_byte, end_byte):
        return None
    return node


def _is_property_value(node: Optional[Node]) -> bool:
    if node is None or node.parent is None or node.parent.type != 'pair':
        return False
    value = node.parent.child_by_field_name('value')
    return value is not None and value.id == node.id


def _enclosing_literal(engine: InferenceEngine, node: Optional[Node]) -> Optional[ObjectType]:
    current = node
    while current is not None:
        if current.type in FUNCTION_KINDS and current.type != 'arrow_function':
            return None
        if current.type == 'object':
            return engine.literals.get(current.id)
        current = current.parent
    return None


def _constructors(group: List[Candidate]) -> List[Candidate]:
    found: List[Candidate] = []
    for name, t in group:
        if isinstance(member_type(t), ObjectType):
            found.extend(constructor_paths(name, t))
    return found


def _documented_function(comment: Node, source: bytes) -> Optional[Tuple[Optional[str], List[str]]]:
    """Name and parameter names of the function a doc comment precedes."""
    target = comment.next_sibling
    while target is not None and target.type == 'comment':
        target = target.next_sibling
    if target is None:
        return None

    name: Optional[str] = None
    fn: Optional[Node] = None
    if target.type in ('function_declaration', 'generator_function_declaration', 'method_definition'):
        fn = target
        name_node = target.child_by_field_name('name')
        name = node_text(name_node, source) if name_node is not None else None
    elif target.type == 'pair':
        value = target.child_by_field_name('value')
        key = target.child_by_field_name('key')
        if value is not None and unwrap(value).type in FUNCTION_KINDS:
            fn = unwrap(value)
            own = fn.child_by_field_name('name')
            name = node_text(own if own is not None else key, source)
    elif target.type == 'expression_statement' and target.named_child_count:
        expr = target.named_children[0]
        if expr.type == 'assignment_expression':
            right = expr.child_by_field_name('right')
            if right is not None and unwrap(right).type in FUNCTION_KINDS:
                fn = unwrap(right)
                name = node_text(expr.child_by_field_name('left'), source)
    elif target.type in ('variable_declaration', 'lexical_declaration'):
        for declarator in target.named_children:
            value = declarator.child_by_field_name('value')
            if value is not None and unwrap(value).type in FUNCTION_KINDS:
                fn = unwrap(value)
                name = node_text(declarator.child_by_field_name('name'), source)
                break

    if fn is None:
        return None
    params = [n for p in parameter_nodes(fn) for n, _ in pattern_names(p, source)]
    return name, params


def jsdoc_proposals(comment: Node, source: bytes, text: str, offset: int, prefix: str) -> List[Proposal]:
    """Proposals inside a ``/** */`` comment: tag names, the function name, parameter names."""
    line = text[text.rfind('\n', 0, offset) + 1:offset]
    if prefix.startswith('@'):
        if not _TAG_CONTEXT_RE.search(line):
            return []
        typed = prefix[1:]
        return [
            Proposal(f"@{tag}", description, tag[len(typed):], JSDOC)
            for tag, description in JSDOC_TAGS.items()
            if tag.startswith(typed)
        ]

    context = _NAME_CONTEXT_RE.search(line)
    if context is None:
        return []
    documented = _documented_function(comment, source)
    if documented is None:
        return []
    name, params = documented
    if context.group(1) == 'name':
        if not name or not name.startswith(prefix):
            return []
        return [Proposal(name, NAME_DESCRIPTION, name[len(prefix):], JSDOC)]
    return [Proposal(p, PARAM_DESCRIPTION, p[len(prefix):], JSDOC) for p in params if p.startswith(prefix)]
