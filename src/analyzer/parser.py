"""Tree-sitter parser for JavaScript sources, and the async AST provider."""
import logging
from pathlib import Path
from typing import Optional, Union

from tree_sitter import Language, Node, Parser, Tree
import tree_sitter_javascript as tsjavascript

from src.errors import ParseError

logger = logging.getLogger(__name__)

# Node kinds that introduce a function scope
FUNCTION_KINDS = frozenset({
    'function_declaration',
    'function_expression',
    'arrow_function',
    'generator_function',
    'generator_function_declaration',
    'method_definition',
})


class LanguageParser:
    """JavaScript parser using the tree-sitter v0.22+ API."""

    SUPPORTED_LANGUAGES = {
        '.js': 'javascript',
        '.jsx': 'javascript',
        '.mjs': 'javascript',
        '.cjs': 'javascript',
    }

    def __init__(self, language: str = 'javascript'):
        """Initialize parser for the given language.

        Args:
            language: Only 'javascript' is supported

        Raises:
            ValueError: If language is not supported
        """
        self.language = language
        self.parser = self._create_parser()

    def _create_parser(self) -> Parser:
        """Factory method using the Parser(Language(capsule)) API.

        Returns:
            Configured Parser instance

        Raises:
            ValueError: If language is not supported
        """
        if self.language != 'javascript':
            raise ValueError(f"Unsupported language: {self.language}")
        return Parser(Language(tsjavascript.language()))

    def parse_source(self, source: Union[str, bytes]) -> Tree:
        """Parse in-memory source.

        Args:
            source: JavaScript text, or its UTF-8 bytes

        Returns:
            Parsed Tree; syntax errors are left in the tree as ERROR nodes

        Raises:
            ParseError: If the text cannot be encoded or no program is produced
        """
        if isinstance(source, str):
            try:
                source = source.encode('utf-8')
            except UnicodeEncodeError as e:
                line, column = _position_of(source, e.start)
                raise ParseError(f"Source is not valid text: {e.reason}", line, column) from e

        tree = self.parser.parse(source)
        if tree is None or tree.root_node is None or tree.root_node.type != 'program':
            raise ParseError("Parser did not produce a program")
        return tree

    def parse_file(self, file_path: Union[str, Path]) -> Optional[Tree]:
        """Parse file and return tree-sitter Tree.

        Args:
            file_path: Path to source file to parse

        Returns:
            Parsed Tree object, or None if the file could not be read
        """
        file_path = Path(file_path)

        if not file_path.exists():
            return None

        try:
            with open(file_path, 'rb') as f:
                source_code = f.read()
        except IOError as e:
            logger.warning("Cannot read %s: %s", file_path, e)
            return None
        return self.parse_source(source_code)

    @classmethod
    def from_file_extension(cls, file_path: Union[str, Path]) -> Optional['LanguageParser']:
        """Create parser based on file extension.

        Args:
            file_path: Path to determine language from

        Returns:
            LanguageParser instance, or None if extension not supported
        """
        extension = Path(file_path).suffix.lower()

        language = cls.SUPPORTED_LANGUAGES.get(extension)
        if language:
            return cls(language)
        return None


class ASTManager:
    """Asynchronous AST provider.

    One parser is shared per manager; ``get_ast`` parses on demand and is the
    only point where a request suspends for its syntax tree.
    """

    def __init__(self, parser: Optional[LanguageParser] = None):
        self.parser = parser or LanguageParser('javascript')

    async def get_ast(self, text: str) -> Tree:
        return self.parser.parse_source(text)


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode('utf-8', errors='replace')


def first_syntax_error(root: Node) -> Optional[Node]:
    """Return the first ERROR or MISSING node in document order."""
    if not root.has_error:
        return None
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == 'ERROR' or node.is_missing:
            return node
        stack.extend(reversed([c for c in node.children if c.has_error or c.is_missing]))
    return None


def _position_of(text: str, index: int):
    before = text[:index]
    line = before.count('\n') + 1
    column = index - (before.rfind('\n') + 1)
    return line, column
