"""Narrative Council — Entry Point.

Usage:
    # Register a content item from a JSON file
    python main.py add-content --input content.json

    # List stored content
    python main.py list-content

    # Run (or re-run) the Story Architect analysis
    python main.py analyze <content_id>

    # Generate and rank narratives (round 1, then round 2 with feedback)
    python main.py generate <content_id>
    python main.py generate <content_id> --stakeholder-file answers.json
    python main.py generate <content_id> --round 2 --feedback "Lean into the family angle"

    # Inspect a finished session
    python main.py show-session <session_id>

    # Check a narrative against the primary conflict
    python main.py alignment <content_id> --narrative "..."

    # One-line primary conflict, or an audience read on hand-written lines
    python main.py conflict <content_id>
    python main.py evaluate <content_id> "First narrative" "Second narrative"

    # List both councils
    python main.py personas
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

import config
from agents.content_analyzer import ContentAnalyzer, extract_primary_conflict, validate_conflict_alignment
from pipeline.audience_council import AudienceCouncil
from pipeline.demographics import top_and_bottom_performers
from pipeline.errors import NarrativeEngineError
from pipeline.llm import get_usage_summary
from pipeline.personas import get_persona_registry
from pipeline.scoring import score_stats
from pipeline.session_runner import NarrativeSessionRunner
from pipeline.storage import (
    create_content,
    get_content,
    get_session,
    init_db,
    list_candidates,
    list_contents,
    set_content_analysis,
)
from schemas.content import ContentCreate, StakeholderResponse

console = Console()


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL),
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _read_json(path_str: str):
    path = Path(path_str)
    if not path.exists():
        console.print(f"[red]Input file not found: {path}[/red]")
        sys.exit(1)
    return json.loads(path.read_text("utf-8"))


def _require_content(content_id: str):
    content = get_content(content_id)
    if content is None:
        console.print(f"[red]Content not found: {content_id}[/red]")
        sys.exit(1)
    return content


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def add_content_cmd(args: argparse.Namespace):
    try:
        data = ContentCreate.model_validate(_read_json(args.input))
    except ValidationError as exc:
        console.print(f"[red]Invalid content file:[/red]\n{exc}")
        sys.exit(1)
    item = create_content(data)
    console.print(f"[green]Created content[/green] {item.id} — {item.title}")


def list_content_cmd(args: argparse.Namespace):
    table = Table(title="Content")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Genre")
    table.add_column("Status")
    table.add_column("Stakeholder Q/A", justify="right")
    for item in list_contents(limit=args.limit):
        table.add_row(item.id, item.title, item.genre, item.status, str(len(item.stakeholder_responses)))
    console.print(table)


def analyze_cmd(args: argparse.Namespace):
    content = _require_content(args.content_id)
    analysis = ContentAnalyzer().analyze(content.to_info())
    set_content_analysis(content.id, analysis)

    table = Table(title="Conflicts")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Description")
    table.add_column("Total", justify="right")
    for conflict in sorted(analysis.conflicts_identified, key=lambda c: -c.scores.total):
        table.add_row(conflict.conflict_id, conflict.type, conflict.description, f"{conflict.scores.total:g}")
    console.print(table)
    console.print(
        Panel(
            f"[bold]{analysis.primary_conflict.statement}[/bold]\n\n"
            f"{analysis.primary_conflict.why_this_is_primary}",
            title=f"Primary conflict [{analysis.primary_conflict.conflict_id}]",
            border_style="magenta",
        )
    )


def generate_cmd(args: argparse.Namespace):
    _require_content(args.content_id)
    responses = None
    if args.stakeholder_file:
        try:
            responses = [StakeholderResponse.model_validate(r) for r in _read_json(args.stakeholder_file)]
        except ValidationError as exc:
            console.print(f"[red]Invalid stakeholder file:[/red]\n{exc}")
            sys.exit(1)

    runner = NarrativeSessionRunner(candidate_count=args.count)
    console.print(
        Panel(
            f"[bold magenta]ROUND {args.round} GENERATION[/bold magenta]\n"
            f"{runner.candidate_count} candidates: part 1 pure AI, part 2 with stakeholder input",
            border_style="bright_magenta",
        )
    )
    session = runner.generate(
        args.content_id,
        round_number=args.round,
        stakeholder_responses=responses,
        stakeholder_feedback=args.feedback,
    )
    if session.status == "failed":
        console.print(
            f"[red]Session {session.id} failed during {session.metadata.get('failed_phase')}: "
            f"{session.metadata.get('error')}[/red]"
        )
        sys.exit(1)
    _print_session(session.id)


def _print_session(session_id: str):
    session = get_session(session_id)
    if session is None:
        console.print(f"[red]Session not found: {session_id}[/red]")
        sys.exit(1)

    console.print(
        f"Session [cyan]{session.id}[/cyan]  round {session.round_number}  "
        f"status [bold]{session.status}[/bold]  progress {session.progress}%"
    )
    if session.status == "failed":
        console.print(f"[red]{session.metadata.get('error_type')}: {session.metadata.get('error')}[/red]")
        return

    table = Table(title="Ranked narratives")
    table.add_column("#", justify="right")
    table.add_column("Narrative")
    table.add_column("Part")
    table.add_column("Consensus")
    table.add_column("Prod", justify="right")
    table.add_column("Aud", justify="right")
    table.add_column("Overall", justify="right", style="bold")
    for c in list_candidates(session.id):
        table.add_row(
            str(c.rank),
            c.narrative_text,
            "1" if c.generation_type == "part1_pure_ai" else "2",
            c.consensus or "-",
            f"{c.production_avg:.1f}",
            f"{c.audience_avg:.2f}",
            f"{c.overall_score:.2f}",
        )
    console.print(table)

    usage = session.metadata.get("usage") or {}
    if usage:
        console.print(
            f"Tokens: {usage.get('total_input_tokens', 0)} in / {usage.get('total_output_tokens', 0)} out, "
            f"est. ${usage.get('total_cost', 0):.4f}"
        )


def show_session_cmd(args: argparse.Namespace):
    _print_session(args.session_id)
    if args.details:
        registry = get_persona_registry()
        for c in list_candidates(args.session_id):
            lines = [*c.insights]
            lines.extend(f"[yellow]{d.severity.upper()}[/yellow] {d.description}" for d in c.conflicts)
            stats = score_stats(c.audience_council)
            lines.append(f"Audience spread: {stats.min:g}-{stats.max:g} across {stats.count} personas")
            performers = top_and_bottom_performers(c.audience_council, registry)
            lines.append("Loved by: " + ", ".join(f"{e.persona} ({e.score:g})" for e in performers.top_performers))
            lines.append("Lukewarm: " + ", ".join(f"{e.persona} ({e.score:g})" for e in performers.bottom_performers))
            console.print(Panel("\n".join(lines) or "No insights", title=f"#{c.rank} {c.angle}", border_style="cyan"))


def alignment_cmd(args: argparse.Namespace):
    content = _require_content(args.content_id)
    if content.analysis is None:
        console.print("[red]Content has not been analysed yet; run `analyze` first[/red]")
        sys.exit(1)
    result = validate_conflict_alignment(args.narrative, content.analysis.primary_conflict.statement)
    colour = "green" if result.aligned else "red"
    console.print(f"[{colour}]Aligned: {result.aligned} ({result.score:g}/10)[/{colour}]")
    console.print(result.reasoning)


def conflict_cmd(args: argparse.Namespace):
    content = _require_content(args.content_id)
    statement = extract_primary_conflict(content.to_info())
    console.print(Panel(statement, title="Primary conflict", border_style="magenta"))


def evaluate_cmd(args: argparse.Namespace):
    content = _require_content(args.content_id)
    results = AudienceCouncil().batch_evaluate(args.narratives, content.to_info())
    registry = get_persona_registry()

    table = Table(title="Audience council")
    table.add_column("Persona")
    for idx in range(1, len(args.narratives) + 1):
        table.add_column(f"#{idx}", justify="right")
    for persona in registry.audience:
        table.add_row(persona.role_name, *(f"{r[persona.role_id].score:g}" for r in results))
    stats = [score_stats(r) for r in results]
    table.add_row("[bold]Average[/bold]", *(f"{s.average:.2f}" for s in stats))
    table.add_row("Spread", *(f"{s.min:g}-{s.max:g}" for s in stats))
    console.print(table)
    for idx, narrative in enumerate(args.narratives, start=1):
        console.print(f"#{idx} {narrative}")


def personas_cmd(args: argparse.Namespace):
    registry = get_persona_registry()
    production = Table(title="Production council")
    production.add_column("Role ID", style="cyan")
    production.add_column("Role")
    for p in registry.production:
        production.add_row(p.role_id, p.role_name)
    console.print(production)

    audience = Table(title="Audience council")
    audience.add_column("Role ID", style="cyan")
    audience.add_column("Persona")
    audience.add_column("Age", justify="right")
    audience.add_column("Gender")
    audience.add_column("Segment")
    for p in registry.audience:
        audience.add_row(p.role_id, p.role_name, str(p.profile.age), p.profile.gender, p.profile.segment)
    console.print(audience)


COMMANDS = {
    "add-content": add_content_cmd,
    "list-content": list_content_cmd,
    "analyze": analyze_cmd,
    "generate": generate_cmd,
    "show-session": show_session_cmd,
    "alignment": alignment_cmd,
    "conflict": conflict_cmd,
    "evaluate": evaluate_cmd,
    "personas": personas_cmd,
}


def main():
    parser = argparse.ArgumentParser(
        description="Narrative Council — marketing narrative generation and ranking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command")

    add = subparsers.add_parser("add-content", help="Register a content item from JSON")
    add.add_argument("--input", "-i", required=True, help="Path to content JSON file")

    lst = subparsers.add_parser("list-content", help="List stored content")
    lst.add_argument("--limit", type=int, default=50)

    an = subparsers.add_parser("analyze", help="Run the Story Architect analysis")
    an.add_argument("content_id")

    gen = subparsers.add_parser("generate", help="Run a generation session to completion")
    gen.add_argument("content_id")
    gen.add_argument("--round", type=int, default=1, choices=[1, 2])
    gen.add_argument("--feedback", help="Stakeholder feedback on round 1 (round 2 only)")
    gen.add_argument("--stakeholder-file", help="JSON list of {role, question, answer}")
    gen.add_argument("--count", type=int, default=None, help="Candidates per session")

    show = subparsers.add_parser("show-session", help="Show a session's ranked candidates")
    show.add_argument("session_id")
    show.add_argument("--details", action="store_true", help="Print insights and divergences")

    al = subparsers.add_parser("alignment", help="Check a narrative against the primary conflict")
    al.add_argument("content_id")
    al.add_argument("--narrative", "-n", required=True)

    cf = subparsers.add_parser("conflict", help="Extract the primary conflict in one sentence")
    cf.add_argument("content_id")

    ev = subparsers.add_parser("evaluate", help="Score narratives with the audience council (not stored)")
    ev.add_argument("content_id")
    ev.add_argument("narratives", nargs="+")

    subparsers.add_parser("personas", help="List production and audience councils")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging()
    init_db()

    try:
        COMMANDS[args.command](args)
    except NarrativeEngineError as exc:
        console.print(f"[red]{exc.kind}: {exc}[/red]")
        sys.exit(1)

    if args.command in {"analyze", "generate", "alignment", "conflict", "evaluate"}:
        summary = get_usage_summary()
        console.print(f"[dim]Estimated LLM cost this run: ${summary.get('total_cost', 0):.4f}[/dim]")


if __name__ == "__main__":
    main()
