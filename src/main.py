"""jsassist CLI - JavaScript type inference and content assist from the terminal."""

import asyncio
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# Windows-safe Console wrapper
from src.utils.safe_console import SafeConsole
from src.utils.logger import configure_logging

from src.analyzer.parser import ASTManager, LanguageParser
from src.assist.content_assist import AssistResult, JSContentAssist
from src.assist.proposals import DIVIDER, HEADER, Proposal
from src.config import __version__, get_config
from src.errors import ImportMalformed
from src.indexes.importer import IndexImporter, load_builtin_index, load_index_file
from src.typesys.environment import TypeEnvironment

app = typer.Typer(
    name="jsassist",
    help="JavaScript type inference and content assist",
    add_completion=False
)
# Use SafeConsole for Windows Unicode compatibility
console = SafeConsole(force_terminal=True)

_PREFIX_RE = re.compile(r'[\w$@]*$')


class FileEditorContext:
    """Editor context backed by a file on disk and optional index files.

    Args:
        path: JavaScript source file
        indexes: Extra Tern index files, offered as contributed type definitions
    """

    def __init__(self, path: Path, indexes: Optional[List[Path]] = None):
        self.path = path
        self.text = path.read_text(encoding='utf-8')
        self.type_defs: Dict[str, Dict[str, Any]] = {}
        for index_path in indexes or []:
            self.type_defs[index_path.stem] = load_index_file(index_path)

    async def get_text(self) -> str:
        return self.text

    async def get_type_def(self, name: str) -> Optional[Dict[str, Any]]:
        return self.type_defs.get(name)


def _check_source(file: Path) -> Path:
    file = file.resolve()
    if not file.is_file():
        console.print(f"[bold red]Error:[/bold red] File does not exist: {escape(str(file))}")
        raise typer.Exit(1)
    if LanguageParser.from_file_extension(file) is None:
        console.print(f"[yellow]⚠ {escape(file.name)} has no JavaScript extension; parsing anyway[/yellow]")
    return file


def _open_context(file: Path, indexes: Optional[List[Path]]) -> FileEditorContext:
    try:
        return FileEditorContext(file, indexes)
    except ImportMalformed as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)
    except UnicodeDecodeError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(file))} is not UTF-8 text: {e.reason}")
        raise typer.Exit(1)


def _proposal_table(proposals: List[Proposal], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Proposal", style="cyan", no_wrap=True)
    table.add_column("Description", style="green")
    table.add_column("Inserts", style="dim")

    for proposal in proposals:
        if proposal.category == DIVIDER:
            table.add_section()
        elif proposal.category == HEADER:
            table.add_row(f"[bold yellow]{escape(proposal.display_text)}[/bold yellow]", "", "")
        else:
            insertion = proposal.insertion_text.replace('\n', '\\n').replace('\t', '\\t')
            table.add_row(escape(proposal.display_text), escape(proposal.description), escape(insertion))
    return table


def _print_diagnostics(result: AssistResult) -> None:
    for diagnostic in result.diagnostics:
        console.print(
            f"[yellow]⚠ line {diagnostic.line}, column {diagnostic.column}:[/yellow] "
            f"{escape(diagnostic.message)}"
        )


@app.command()
def assist(
    file: Path = typer.Argument(..., help="JavaScript file to complete in"),
    offset: Optional[int] = typer.Option(None, "--offset", "-o", help="Character offset of the cursor (default: end of file)"),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Text typed before the cursor (default: the identifier before it)"),
    browser: bool = typer.Option(False, "--browser", help="Assume the browser environment"),
    node: bool = typer.Option(False, "--node", help="Assume the Node.js environment"),
    amd: bool = typer.Option(False, "--amd", help="Assume the AMD environment"),
    global_names: Optional[List[str]] = typer.Option(None, "--global", "-g", help="Declare a global name (repeatable)"),
    keywords: bool = typer.Option(True, "--keywords/--no-keywords", help="Offer keyword proposals"),
    templates: bool = typer.Option(True, "--templates/--no-templates", help="Offer template proposals"),
    index: Optional[List[Path]] = typer.Option(None, "--index", "-i", help="Extra Tern index file (repeatable)"),
    as_json: bool = typer.Option(False, "--json", help="Print proposals and diagnostics as JSON"),
):
    """Compute content assist proposals at a cursor position."""
    file = _check_source(file)
    config = get_config()
    configure_logging(config.log_level_number)
    context = _open_context(file, index)

    if offset is None or offset > len(context.text):
        offset = len(context.text)
    if offset < 0:
        console.print(f"[bold red]Error:[/bold red] Offset must not be negative, got {offset}")
        raise typer.Exit(1)
    if prefix is None:
        prefix = _PREFIX_RE.search(context.text[:offset]).group(0)

    options = {name: True for name, enabled in (('browser', browser), ('node', node), ('amd', amd)) if enabled}
    lint_options = {"options": options, "global": list(global_names or [])}
    engine = JSContentAssist(ASTManager(), lint_options, config)
    params = {
        "offset": offset,
        "prefix": prefix,
        "keyword": keywords,
        "template": templates,
        "type_defs": {name: {"type": "tern"} for name in context.type_defs},
    }

    if as_json:
        result = asyncio.run(engine.compute_content_assist(context, params))
        typer.echo(json.dumps({
            "proposals": [p.as_dict() for p in result.proposals],
            "diagnostics": [vars(d) for d in result.diagnostics],
        }, indent=2))
        return

    with console.status(f"[bold blue]Analysing {escape(file.name)}…[/bold blue]"):
        result = asyncio.run(engine.compute_content_assist(context, params))

    _print_diagnostics(result)
    if not result.proposals:
        console.print(f"[dim]No proposals for prefix {escape(repr(prefix))} at offset {offset}[/dim]")
        return
    console.print(_proposal_table(result.proposals, f"Proposals at offset {offset}"))


@app.command()
def types(
    file: Path = typer.Argument(..., help="JavaScript file to analyse"),
    node: bool = typer.Option(False, "--node", help="Assume the Node.js environment"),
    browser: bool = typer.Option(False, "--browser", help="Assume the browser environment"),
):
    """List the global bindings a file defines with their inferred types."""
    file = _check_source(file)
    config = get_config()
    configure_logging(config.log_level_number)
    context = _open_context(file, None)

    options = {name: True for name, enabled in (('browser', browser), ('node', node)) if enabled}
    engine = JSContentAssist(ASTManager(), {"options": options}, config)
    proposals = asyncio.run(engine.global_types(context))

    if not proposals:
        console.print("[dim]No global bindings defined[/dim]")
        return
    console.print(_proposal_table(proposals, f"Globals in {file.name}"))


@app.command()
def index(
    file: Path = typer.Argument(..., help="Tern index (JSON) to validate"),
):
    """Validate a Tern index and summarise what it defines."""
    file = file.resolve()
    if not file.is_file():
        console.print(f"[bold red]Error:[/bold red] File does not exist: {escape(str(file))}")
        raise typer.Exit(1)
    try:
        data = load_index_file(file)
    except ImportMalformed as e:
        console.print(f"[bold red]✗[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    env = TypeEnvironment()
    importer = IndexImporter(env)
    importer.import_index(load_builtin_index('ecma5'))
    builtin_skipped = len(importer.skipped)
    name = importer.import_index(data)
    skipped = importer.skipped[builtin_skipped:]

    defines = data.get("!define")
    if not isinstance(defines, dict):
        defines = {}
    globals_ = [key for key in data if not key.startswith("!")]

    table = Table(title=f"Index {name or file.stem}", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Global bindings", str(len(globals_)))
    table.add_row("Defined types", str(len(defines)))
    table.add_row("Modules", str(sum(1 for key in defines if key[:1].islower())))
    table.add_row("Malformed entries", str(len(skipped)))
    console.print(table)

    if skipped:
        lines = "\n".join(f"• {escape(str(e))}" for e in skipped)
        console.print(Panel(lines, title="Malformed entries (typed as Object)", border_style="yellow"))
        raise typer.Exit(1)
    console.print(f"[green]✓ {escape(file.name)} is a valid index[/green]")


@app.command()
def version():
    """Show the jsassist version."""
    console.print(f"jsassist {__version__}")


@app.callback()
def main():
    """jsassist - JavaScript type inference and content assist."""
    pass


if __name__ == "__main__":
    app()
