"""Click CLI -- loads config, builds the discussion, renders it live."""

import asyncio
import logging
import mimetypes
import sys
import threading
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from config.config_loader import AppConfig, build_participant, load_config
from roundtable.context import speaker_label
from roundtable.healthcheck import run_health_checks
from roundtable.models import USER_SPEAKER, Attachment, DiscussionConfig, Message, PacingConfig
from roundtable.scheduler import DISCUSSION_MODES, ConfigError, has_credential, validate_config
from roundtable.session import DebateSession

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

SPEAKER_STYLES: dict[str, str] = {
    "openai": "green",
    "anthropic": "magenta",
    "gemini": "blue",
    USER_SPEAKER: "yellow",
}

OBSERVER_HELP = (
    "Type a message and press Enter to interject. "
    "Commands: /pause, /resume, /stop. "
    "In manual pacing an empty line starts the next turn."
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def load_attachment(path: Path) -> Attachment:
    """Read a reference file and classify it as image, document or text."""
    mime_type, _ = mimetypes.guess_type(path.name)
    mime_type = mime_type or "application/octet-stream"
    if mime_type.startswith("image/"):
        kind = "image"
    elif mime_type == "application/pdf":
        kind = "document"
    elif mime_type.startswith("text/") or path.suffix.lower() in (".md", ".markdown"):
        kind = "text"
        mime_type = "text/plain"
    else:
        raise click.BadParameter(f"Unsupported reference file type: {path.name} ({mime_type})")
    return Attachment(kind=kind, mime_type=mime_type, data=path.read_bytes(), filename=path.name)


def _parse_roles(role_args: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated provider=persona options."""
    roles: dict[str, str] = {}
    for item in role_args:
        provider, sep, persona = item.partition("=")
        if not sep or not provider.strip() or not persona.strip():
            raise click.BadParameter(f"Expected provider=persona, got: {item}")
        roles[provider.strip()] = persona.strip()
    return roles


def _determine_participants(config: AppConfig, models_arg: str | None) -> list[str]:
    """Returns the ordered participant names. --models overrides the default."""
    if models_arg:
        names = [m.strip() for m in models_arg.split(",") if m.strip()]
    else:
        names = list(config.defaults.participants)
    unknown = [n for n in names if n not in config.models]
    if unknown:
        raise click.BadParameter(f"Unknown model(s): {', '.join(unknown)}")
    return names


def _build_discussion(
    config: AppConfig,
    topic: str,
    mode: str | None,
    models_arg: str | None,
    judge: str | None,
    rounds: int | None,
    delay: int | None,
    manual: bool,
    role_args: tuple[str, ...] = (),
    reference_paths: tuple[str, ...] = (),
    reference_text: str | None = None,
    language: str | None = None,
) -> DiscussionConfig:
    names = _determine_participants(config, models_arg)
    effective_rounds = rounds if rounds is not None else config.defaults.rounds
    if effective_rounds > config.defaults.max_rounds:
        raise click.BadParameter(f"--rounds cannot exceed {config.defaults.max_rounds}")

    effective_mode = mode or ("judged_debate" if judge else config.defaults.mode)
    pacing = PacingConfig(
        mode="manual" if manual else config.defaults.pacing.mode,
        auto_delay_seconds=delay if delay is not None else config.defaults.pacing.auto_delay_seconds,
    )
    return DiscussionConfig(
        topic=topic,
        mode=effective_mode,
        participants=[build_participant(config.models[n]) for n in names],
        max_rounds=effective_rounds,
        roles=_parse_roles(role_args),
        judge=judge,
        pacing=pacing,
        reference_text=reference_text or "",
        use_reference=bool(reference_text and reference_text.strip()),
        reference_files=[load_attachment(Path(p)) for p in reference_paths],
        language=language or config.defaults.language,
    )


def _print_message(message: Message) -> None:
    label = speaker_label(message.speaker)
    if message.kind == "judge_evaluation":
        label += " (Judge)"
    if message.persona:
        label += f" - {message.persona}"
    if message.error is not None:
        console.print(Panel(message.error, title=f"[bold]{label}[/bold] failed", border_style="red"))
        return
    console.print(
        Panel(
            Markdown(message.content),
            title=f"[bold]{label}[/bold]",
            subtitle=f"round {message.round}",
            border_style=SPEAKER_STYLES.get(message.speaker, "white"),
        )
    )


def handle_observer_line(session: DebateSession, line: str) -> None:
    """Apply one line typed by the observer to the session."""
    text = line.strip()
    command = text.lower()
    if command == "/pause":
        session.pause()
    elif command == "/resume":
        session.resume()
    elif command == "/stop":
        session.stop()
    elif not text:
        session.next_turn()
    elif session.intervene(text) is None:
        console.print("[dim]The discussion is not accepting messages right now.[/dim]")


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue) -> None:
    """Forward stdin lines to the event loop from a daemon thread."""

    def _read() -> None:
        try:
            for line in sys.stdin:
                loop.call_soon_threadsafe(lines.put_nowait, line)
        except RuntimeError:
            # Event loop already closed
            return

    threading.Thread(target=_read, name="observer-input", daemon=True).start()


async def _observe(session: DebateSession, lines: asyncio.Queue) -> None:
    while True:
        line = await lines.get()
        handle_observer_line(session, line)


async def _run_discussion(discussion: DiscussionConfig, config: AppConfig) -> list[Message]:
    session = DebateSession(prompts=config.prompts)
    lines: asyncio.Queue[str] = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), lines)
    session.start(discussion)
    observer = asyncio.create_task(_observe(session, lines))

    try:
        async for event in session.events():
            if event.kind == "message":
                _print_message(event.payload)
            elif event.kind == "loading" and event.payload:
                console.print(f"[dim]{speaker_label(event.payload)} is responding...[/dim]")
            elif event.kind == "countdown" and event.payload == -1:
                console.print("[cyan]Press Enter for the next turn.[/cyan]")
            elif event.kind == "status" and event.payload == "paused":
                console.print("[yellow]Discussion paused.[/yellow] Type /resume to continue.")
    except asyncio.CancelledError:
        session.stop()
        raise
    finally:
        observer.cancel()

    if session.state.status == "error":
        console.print("[bold red]The discussion stopped because of an unexpected error.[/bold red]")
    return session.messages


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(verbose: bool) -> None:
    """Roundtable -- turn-based discussions between GPT, Claude and Gemini.

    \b
    Examples:
      roundtable run "Is remote work here to stay?" --rounds 2
      roundtable run "Nuclear power" --mode role_assignment --role openai=pro --role gemini=con
      roundtable run "Tabs or spaces?" --judge anthropic --manual
      roundtable check
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)


def _load_or_exit() -> AppConfig:
    try:
        return load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


@main.command()
@click.argument("topic")
@click.option("--mode", type=click.Choice(DISCUSSION_MODES), default=None, help="Discussion mode (default: from config)")
@click.option("--models", default=None, help="Comma-separated participants in speaking order")
@click.option("--judge", default=None, help="Participant acting as judge (implies judged_debate)")
@click.option("--rounds", default=None, type=int, help="Number of rounds (default: from config)")
@click.option("--delay", default=None, type=click.IntRange(min=0), help="Seconds between turns")
@click.option("--manual", is_flag=True, help="Wait for Enter before each turn")
@click.option("--role", "role_args", multiple=True, help="Persona assignment as provider=persona")
@click.option("--reference-file", "reference_paths", multiple=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--reference-text", default=None, help="Reference text to ground the discussion")
@click.option("--language", default=None, help="Response language (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the API connectivity check")
def run(
    topic: str,
    mode: str | None,
    models: str | None,
    judge: str | None,
    rounds: int | None,
    delay: int | None,
    manual: bool,
    role_args: tuple[str, ...],
    reference_paths: tuple[str, ...],
    reference_text: str | None,
    language: str | None,
    skip_health_check: bool,
) -> None:
    """Run a discussion on TOPIC."""
    config = _load_or_exit()
    discussion = _build_discussion(
        config, topic, mode, models, judge, rounds, delay, manual,
        role_args, reference_paths, reference_text, language,
    )
    try:
        validate_config(discussion)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    ready = [p for p in discussion.participants if has_credential(p)]
    if not ready:
        console.print("[bold red]Error:[/bold red] No participant has an API key. Check .env.")
        sys.exit(1)
    for p in discussion.participants:
        if not has_credential(p):
            console.print(f"[yellow]{speaker_label(p.provider)} has no API key and will be skipped.[/yellow]")

    if not skip_health_check:
        results = asyncio.run(run_health_checks(ready))
        failed = {name: err for name, (ok, err) in results.items() if not ok}
        for name, err in sorted(failed.items()):
            console.print(f"  [red]FAIL[/red] {name}: {err.splitlines()[0][:120] if err else 'unknown error'}")
        if failed and not click.confirm("Continue anyway?", default=True):
            sys.exit(0)

    console.print(
        f"\n[bold cyan]Roundtable[/bold cyan] -- {discussion.mode}, {discussion.max_rounds} rounds, "
        f"{', '.join(speaker_label(p.provider) for p in discussion.participants)}"
    )
    console.print(f"Topic: [italic]{topic}[/italic]")
    console.print(f"[dim]{OBSERVER_HELP}[/dim]\n")

    try:
        asyncio.run(_run_discussion(discussion, config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Discussion stopped.[/yellow]")


@main.command()
def check() -> None:
    """Ping every configured provider that has an API key."""
    config = _load_or_exit()
    participants = [build_participant(config.models[n]) for n in sorted(config.available_providers)]
    if not participants:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    results = asyncio.run(run_health_checks(participants))
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")


@main.command()
def personas() -> None:
    """List the persona catalog usable with --role."""
    config = _load_or_exit()
    table = Table(title="Personas")
    table.add_column("Key")
    table.add_column("Label")
    table.add_column("Description")
    for key, persona in sorted(config.prompts.personas.items()):
        table.add_row(key, persona.label, persona.description)
    console.print(table)


if __name__ == "__main__":
    main()
