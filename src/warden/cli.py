"""
CLI entry point for Warden.

This module provides the Typer-based command-line interface for working
with YAML policy documents.

Commands:
    validate    Build a policy document and report definition errors
    rules       List the rules of a policy, optionally filtered
    authorize   Decide a single request against a policy

Check and hook functions are imported from the document's check_module
(or --check-module). Use --import-path to make project modules importable.

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to
    warden.policy for the actual work.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from warden import __version__
from warden.errors import WardenError
from warden.policy import Policy
from warden.schema import Decision, Rule, load_policy_document

# Initialize Typer app with metadata
app = typer.Typer(
    name="warden",
    help="Inspect and evaluate authorization policies.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich consoles for formatted output
console = Console()
err_console = Console(stderr=True)

EXIT_ALLOWED = 0
EXIT_DENIED = 1
EXIT_RULE_NOT_FOUND = 2
EXIT_ERROR = 3

PolicyPath = Annotated[
    Path,
    typer.Argument(
        help="Path to the policy YAML file.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
CheckModuleOption = Annotated[
    Optional[str],
    typer.Option(
        "--check-module",
        "-m",
        help="Dotted path of the check module. Overrides the document's check_module.",
    ),
]
ImportPathOption = Annotated[
    Optional[list[Path]],
    typer.Option(
        "--import-path",
        "-I",
        help="Directory to add to the import path (repeatable).",
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output in JSON format."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]warden[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Log level for warden's own log records (debug, info, warning, error).",
        ),
    ] = "warning",
) -> None:
    """
    Warden - authorization rules, hooks and redaction.
    """
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


# =============================================================================
# Helpers
# =============================================================================


def _load_policy(
    policy_path: Path,
    check_module: str | None,
    import_paths: list[Path] | None,
) -> Policy:
    for path in import_paths or []:
        resolved = str(path.resolve())
        if resolved not in sys.path:
            sys.path.insert(0, resolved)

    document = load_policy_document(policy_path)
    return Policy.from_document(document, check_module=check_module)


def _parse_pair(raw: str | None) -> Any:
    """Parse "name" into "name" and "name=value" into (name, value)."""
    if raw is None:
        return None
    if "=" not in raw:
        return raw
    key, _, value = raw.partition("=")
    return (key, yaml.safe_load(value))


def _parse_json(raw: str | None, label: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON for {label}: {e}"
        raise typer.BadParameter(msg) from e


def _format_group(group: tuple) -> str:
    text = " AND ".join(escape(str(check)) for check in group) or "()"
    return f"({text})" if len(group) > 1 else text


def _format_groups(groups: tuple) -> str:
    return " OR ".join(_format_group(group) for group in groups)


def _rule_to_dict(rule: Rule) -> dict[str, Any]:
    return {
        "name": rule.name,
        "object": rule.object,
        "action": rule.action,
        "description": rule.description,
        "allow": [[str(check) for check in group] for group in rule.allow],
        "deny": [[str(check) for check in group] for group in rule.deny],
        "pre_hooks": [str(hook) for hook in rule.pre_hooks],
        "metadata": [[key, value] for key, value in rule.metadata],
    }


def _output_json_error(error_type: str, message: str) -> None:
    print(json.dumps({"error": error_type, "message": message}, indent=2))


# =============================================================================
# Commands
# =============================================================================


@app.command()
def validate(
    policy_path: PolicyPath,
    check_module: CheckModuleOption = None,
    import_path: ImportPathOption = None,
    json_output: JsonOption = False,
) -> None:
    """Build a policy document and report definition errors."""
    try:
        policy = _load_policy(policy_path, check_module, import_path)
    except Exception as e:
        if json_output:
            error = e.to_dict() if isinstance(e, WardenError) else {"message": str(e)}
            print(json.dumps({"valid": False, "error": error}, indent=2, default=str))
        else:
            console.print(f"[red]Policy validation failed:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps({
            "valid": True,
            "policy": policy.name,
            "rules": policy.rule_names,
        }, indent=2))
    else:
        console.print(
            f"[green]✓[/green] Policy [cyan]{escape(policy.name)}[/cyan] is valid "
            f"({len(policy.rule_names)} rules)"
        )
    raise typer.Exit(code=0)


@app.command()
def rules(
    policy_path: PolicyPath,
    object_name: Annotated[
        Optional[str],
        typer.Option("--object", "-o", help="Only rules for this object."),
    ] = None,
    action: Annotated[
        Optional[str],
        typer.Option("--action", "-a", help="Only rules for this action."),
    ] = None,
    allow: Annotated[
        Optional[str],
        typer.Option("--allow", help="Allow check name, or NAME=ARG for an exact match."),
    ] = None,
    deny: Annotated[
        Optional[str],
        typer.Option("--deny", help="Deny check name, or NAME=ARG for an exact match."),
    ] = None,
    metadata: Annotated[
        Optional[str],
        typer.Option("--metadata", help="Metadata key, or KEY=VALUE for an exact match."),
    ] = None,
    check_module: CheckModuleOption = None,
    import_path: ImportPathOption = None,
    json_output: JsonOption = False,
) -> None:
    """List the rules of a policy, optionally filtered."""
    try:
        policy = _load_policy(policy_path, check_module, import_path)
        matched = policy.list_rules(
            object=object_name,
            action=action,
            allow=_parse_pair(allow),
            deny=_parse_pair(deny),
            metadata=_parse_pair(metadata),
        )
    except Exception as e:
        if json_output:
            _output_json_error("rules_error", str(e))
        else:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps({
            "policy": policy.name,
            "rules": [_rule_to_dict(rule) for rule in matched],
            "count": len(matched),
        }, indent=2, default=str))
        raise typer.Exit(code=0)

    if not matched:
        console.print("[dim]No matching rules.[/dim]")
        raise typer.Exit(code=0)

    table = Table(title=f"Rules of {escape(policy.name)} ({len(matched)})")
    table.add_column("Rule", style="cyan")
    table.add_column("Allow")
    table.add_column("Deny")
    table.add_column("Pre-hooks", style="dim")
    table.add_column("Metadata", style="dim")

    for rule in matched:
        table.add_row(
            escape(rule.name),
            _format_groups(rule.allow) or "[red]never[/red]",
            _format_groups(rule.deny),
            ", ".join(escape(str(hook)) for hook in rule.pre_hooks),
            ", ".join(escape(f"{key}={value}") for key, value in rule.metadata),
        )

    console.print(table)
    raise typer.Exit(code=0)


@app.command()
def authorize(
    policy_path: PolicyPath,
    rule_name: Annotated[
        str,
        typer.Argument(help="Rule name, {object}_{action}."),
    ],
    subject: Annotated[
        Optional[str],
        typer.Option("--subject", "-s", help="Subject as JSON."),
    ] = None,
    obj: Annotated[
        Optional[str],
        typer.Option("--object", "-o", help="Object as JSON."),
    ] = None,
    opt: Annotated[
        Optional[list[str]],
        typer.Option("--opt", help="Call-time option KEY=VALUE passed to pre-hooks (repeatable)."),
    ] = None,
    check_module: CheckModuleOption = None,
    import_path: ImportPathOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Decide a single request.

    Exit codes: 0 allowed, 1 denied, 2 rule not found, 3 error.
    """
    subject_value = _parse_json(subject, "--subject")
    object_value = _parse_json(obj, "--object")

    opts = {}
    for raw in opt or []:
        parsed = _parse_pair(raw)
        if not isinstance(parsed, tuple):
            raise typer.BadParameter(f"Expected KEY=VALUE, got {raw!r}", param_hint="--opt")
        opts[parsed[0]] = parsed[1]

    try:
        policy = _load_policy(policy_path, check_module, import_path)
        decision = policy.decide(rule_name, subject_value, object_value, opts)
    except Exception as e:
        if json_output:
            _output_json_error("authorize_error", str(e))
        else:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=EXIT_ERROR)

    if json_output:
        print(json.dumps({
            "rule": rule_name,
            "decision": decision.value,
            "allowed": decision is Decision.ALLOWED,
        }, indent=2))
    elif decision is Decision.ALLOWED:
        console.print(f"[green]✓ allowed[/green] {escape(rule_name)}")
    elif decision is Decision.DENIED:
        console.print(f"[red]✗ denied[/red] {escape(rule_name)}")
    else:
        console.print(f"[yellow]? rule not found[/yellow] {escape(rule_name)}")

    exit_codes = {
        Decision.ALLOWED: EXIT_ALLOWED,
        Decision.DENIED: EXIT_DENIED,
        Decision.RULE_NOT_FOUND: EXIT_RULE_NOT_FOUND,
    }
    raise typer.Exit(code=exit_codes[decision])


if __name__ == "__main__":
    app()
