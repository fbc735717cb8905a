"""Rich console output and markdown file save for negotiation sessions."""

import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from fishtank.models import CoachReport, JudgeReply, Session, Stage

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_STAGE_LABELS = {
    Stage.EVALUATION: "Evaluation",
    Stage.INITIAL_OFFERS: "Initial Offers",
    Stage.NEGOTIATION: "Negotiation",
    Stage.CLOSURE: "Closure",
}


def _money(amount: int) -> str:
    return f"${amount:,}"


def _judge_names(session: Session) -> dict[str, str]:
    return {j.id: j.name for j in session.judges}


def print_judges(session: Session, reply_threshold: int) -> None:
    """Print the judge table: conviction, status and any standing offer."""
    table = Table(title=f"Stage: {_STAGE_LABELS[session.stage]}", show_lines=False)
    table.add_column("Judge", style="bold")
    table.add_column("Conviction", justify="right")
    table.add_column("Status")
    table.add_column("Offer")
    for judge in session.judges:
        offer = session.judge_offers.get(judge.id)
        offer_str = f"{_money(offer.amount)} for {offer.equity:g}%" if offer else "-"
        if session.accepted_offer == judge.id:
            status = "[green]deal[/green]"
        elif judge.conviction < reply_threshold:
            status = "[red]out[/red]"
        else:
            status = "in"
        table.add_row(judge.name, str(judge.conviction), status, offer_str)
    console.print(table)


def print_replies(replies: list[JudgeReply]) -> None:
    if not replies:
        console.print(Text("The judges say nothing.", style="dim"))
        return
    for reply in replies:
        console.print(
            Panel(
                reply.text,
                title=f"[bold]{reply.judge.name}[/bold]",
                subtitle=f"conviction {reply.judge.conviction}",
                border_style="cyan",
            )
        )


def print_coach_report(report: CoachReport) -> None:
    console.print(Rule("[bold cyan]Transcript[/bold cyan]"))
    console.print(report.transcript.text or Text("(no speech detected)", style="dim"))

    console.print(Rule("[bold cyan]Pacing[/bold cyan]"))
    table = Table()
    table.add_column("From (s)", justify="right")
    table.add_column("WPM", justify="right")
    for point in report.pacing:
        table.add_row(f"{point.time:.1f}", f"{point.wpm:.0f}")
    console.print(table)
    console.print(Text(f"Average: {report.average_wpm:.0f} WPM", style="bold"))

    console.print(Rule("[bold cyan]Grammar[/bold cyan]"))
    if not report.grammar:
        console.print(Text("No grammar issues found.", style="green"))
    for issue in report.grammar:
        console.print(f"[red]{issue.original}[/red] -> [green]{issue.suggestion}[/green]")
        if issue.explanation:
            console.print(Text(f"  {issue.explanation}", style="dim"))


def render_markdown(session: Session) -> str:
    names = _judge_names(session)
    lines: list[str] = [
        f"# Fish Tank Session {session.id}",
        "",
        f"**Started:** {session.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Final stage:** {_STAGE_LABELS[session.stage]}",
        f"**Deal:** {names.get(session.accepted_offer or '', 'none')}",
        "",
        "## Judges",
        "",
    ]
    for judge in session.judges:
        offer = session.judge_offers.get(judge.id)
        offer_str = f"{_money(offer.amount)} for {offer.equity:g}%" if offer else "no offer"
        lines.append(f"- **{judge.name}**: conviction {judge.conviction}, {offer_str}")

    lines += ["", "## Transcript", ""]
    for entry in session.history:
        if entry.speaker == "judge":
            speaker = names.get(entry.judge_id, "Judge")
        elif entry.speaker == "ai_entrepreneur":
            speaker = "Entrepreneur (AI)"
        else:
            speaker = "Entrepreneur"
        lines.append(f"**{speaker}:** {entry.text}")
        lines.append("")
    return "\n".join(lines)


def save_to_file(session: Session, output_dir: Path) -> Path:
    """Save the session transcript as a markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_fishtank_{session.id[:8]}.md"
    filepath.write_text(render_markdown(session), encoding="utf-8")
    logger.info("Session saved to: %s", filepath)
    return filepath
