"""Command-line interface for browsing and running prompts in a vault file."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from prompthub.config import LOG_LEVEL, PROMPTS_FILE
from prompthub.errors import PromptHubError
from prompthub.models import ExecutionContext, SearchQuery
from prompthub.router import PromptRouter
from prompthub.vault import InMemoryVault

console = Console()


def parse_inputs(pairs: list[str] | None, raw_json: str | None = None) -> dict[str, Any]:
    """Build an inputs dict from `--inputs-json` and repeated `--input key=value`.

    Values that parse as JSON (numbers, booleans, lists) are decoded; anything else stays a string.
    """
    inputs: dict[str, Any] = {}
    if raw_json:
        decoded = json.loads(raw_json)
        if not isinstance(decoded, dict):
            raise ValueError("--inputs-json must be a JSON object")
        inputs.update(decoded)
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got '{pair}'")
        try:
            inputs[key] = json.loads(value)
        except json.JSONDecodeError:
            inputs[key] = value
    return inputs


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def print_search_results(results):
    if not results:
        console.print("[yellow]No prompts found[/yellow]")
        return
    table = Table(title="Prompts")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Version")
    table.add_column("Name", style="bold")
    table.add_column("Author")
    table.add_column("Tags")
    table.add_column("Runs", justify="right")
    for p in results:
        table.add_row(p.id, p.version, p.name, p.author, ", ".join(p.tags), str(p.execution_count))
    console.print(table)


def print_json(title: str, payload: Any, style: str = "green"):
    console.print(Panel(Text(json.dumps(payload, indent=2, default=str)), title=title, border_style=style))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_search(router: PromptRouter, args) -> int:
    results = await router.search_prompts(
        SearchQuery(text=args.query, tags=args.tag, author=args.author, limit=args.limit)
    )
    print_search_results(results)
    return 0


async def cmd_info(router: PromptRouter, args) -> int:
    print_json(f"{args.prompt_id}", await router.get_prompt_info(args.prompt_id, args.version), "cyan")
    return 0


async def cmd_validate(router: PromptRouter, args) -> int:
    result = await router.validate_prompt_input(args.prompt_id, parse_inputs(args.input, args.inputs_json), args.version)
    if result.valid:
        console.print("[green]✓ Inputs are valid[/green]")
    for error in result.errors:
        console.print(f"[red]✗ {error}[/red]")
    for warning in result.warnings:
        console.print(f"[yellow]! {warning}[/yellow]")
    return 0 if result.valid else 1


async def cmd_run(router: PromptRouter, args) -> int:
    context = ExecutionContext(caller=args.caller, model_provider=args.provider)
    result = await router.execute_prompt(
        args.prompt_id, parse_inputs(args.input, args.inputs_json), context, args.version
    )
    if result.success:
        print_json(f"{args.prompt_id} ({result.execution_time}ms)", result.output)
        return 0
    print_json(f"{args.prompt_id} failed", result.error, "red")
    return 1


async def cmd_dag(router: PromptRouter, args) -> int:
    dag = json.loads(Path(args.dag_file).read_text())
    context = ExecutionContext(caller=args.caller, model_provider=args.provider)
    result = await router.execute_dag(dag, parse_inputs(args.input, args.inputs_json), context)

    table = Table(title=f"DAG ({result.total_execution_time}ms)")
    table.add_column("Node", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Time", justify="right")
    for node_id in result.execution_order:
        node_result = result.results[node_id]
        status = "[green]ok[/green]" if node_result.success else "[red]failed[/red]"
        table.add_row(node_id, status, f"{node_result.execution_time}ms")
    console.print(table)

    if not result.success:
        print_json(f"Failed at {result.error['nodeId']}", result.error["error"], "red")
        return 1
    last = result.execution_order[-1] if result.execution_order else None
    if last:
        print_json(f"Output of {last}", result.results[last].output)
    return 0


def cmd_serve(args) -> int:
    import uvicorn

    from prompthub.config import SERVER_HOST, SERVER_PORT

    uvicorn.run("prompthub.server:app", host=args.host or SERVER_HOST, port=args.port or SERVER_PORT)
    return 0


COMMANDS = {
    "search": cmd_search,
    "info": cmd_info,
    "validate": cmd_validate,
    "run": cmd_run,
    "dag": cmd_dag,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="prompthub", description="PromptHub prompt vault tools")
    parser.add_argument("--prompts", default=PROMPTS_FILE, help="Path to the prompts JSON file")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    search = sub.add_parser("search", help="Search prompts")
    search.add_argument("query", nargs="?", default="")
    search.add_argument("--tag", action="append")
    search.add_argument("--author")
    search.add_argument("--limit", type=int, default=10)

    info = sub.add_parser("info", help="Show a prompt's definition and metadata")
    info.add_argument("prompt_id")
    info.add_argument("--version")

    for name, help_text in (("validate", "Validate inputs for a prompt"), ("run", "Execute a prompt")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("prompt_id")
        p.add_argument("--version")
        p.add_argument("--input", "-i", action="append", help="key=value (repeatable)")
        p.add_argument("--inputs-json")

    run = sub.choices["run"]
    run.add_argument("--caller", default="cli")
    run.add_argument("--provider")

    dag = sub.add_parser("dag", help="Execute a DAG from a JSON file")
    dag.add_argument("dag_file")
    dag.add_argument("--input", "-i", action="append", help="key=value root input (repeatable)")
    dag.add_argument("--inputs-json")
    dag.add_argument("--caller", default="cli")
    dag.add_argument("--provider")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    if args.command == "serve":
        return cmd_serve(args)

    path = Path(args.prompts)
    if not path.exists():
        console.print(f"[red]Prompts file not found: {path}[/red]")
        return 2

    try:
        router = PromptRouter(InMemoryVault.from_file(path))
        return asyncio.run(COMMANDS[args.command](router, args))
    except PromptHubError as e:
        console.print(f"[red]{e.code.value}: {e.message}[/red]")
        return 1
    except (OSError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        return 2


if __name__ == "__main__":
    sys.exit(main())
