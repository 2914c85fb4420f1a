"""CLI commands for kalimat.

Commands:
- init-db: create the local SQLite schema
- issue-token: issue a bearer token for a local user
- serve: run the HTTP API
- send-notifications: run the daily notification batch
- leaderboard: print a leaderboard
- due: list a learner's due flashcards
- search: search ayahs with or without tashkeel
- play-words: run word-by-word playback of a verse through a logging sink
- play-phrase: play one word or phrase of a verse through a logging sink
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from kalimat.config.app_config import load_app_config
from kalimat.core import leaderboard as boards
from kalimat.core.auth import LocalTokenVerifier
from kalimat.core.notifications import send_daily_notifications
from kalimat.core.search import search_quran
from kalimat.core.srs import due_cards, prioritize, status_label
from kalimat.db.backends import open_backend
from kalimat.db.database import init_db as do_init_db
from kalimat.db.repository import EntityClient
from kalimat.errors import KalimatError
from kalimat.quran.client import QuranApiClient
from kalimat.quran.playback import PlaybackObserver, WordByWordPlayer, WordPhrasePlayer

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="kalimat",
    help="Quranic vocabulary learning service.",
    no_args_is_help=True,
)

console = Console()


def _client() -> EntityClient:
    """Elevated client on the configured store, or exit with the error."""
    config = load_app_config()
    try:
        if config.store.kind == "sqlite":
            do_init_db(Path(config.store.db_path))
        backend = open_backend(config.store, elevated=True)
    except KalimatError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    return EntityClient(backend, page_size=config.store.page_size)


def _truncate(text: str, max_len: int = 80) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


@app.command(name="init-db")
def init_db(
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Create the local database schema."""
    path = Path(db) if db else Path(load_app_config().store.db_path)
    created = do_init_db(path)
    console.print(f"[green]✓ Database ready[/green]  [dim]{created}[/dim]")


@app.command(name="issue-token")
def issue_token(
    email: str = typer.Argument(..., help="User email"),
    user_id: str | None = typer.Option(None, "--user-id", help="User id (default: email)"),
) -> None:
    """Issue a bearer token for a local user."""
    config = load_app_config()
    if config.store.kind != "sqlite":
        console.print("[yellow]⚠ Tokens are issued by the hosted auth service for this store[/yellow]")
        raise typer.Exit(code=1)
    path = do_init_db(Path(config.store.db_path))
    token = LocalTokenVerifier(path).issue(user_id or email, email)
    console.print(token)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    console.print(f"[cyan]Serving on http://{host}:{port}[/cyan]")
    uvicorn.run("kalimat.web.api:create_app", factory=True, host=host, port=port, reload=reload)


@app.command(name="send-notifications")
def send_notifications() -> None:
    """Run the daily notification batch."""
    client = _client()
    try:
        result = send_daily_notifications(client)
    except KalimatError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ {result['notificationsSent']} notifications sent[/green]")


@app.command()
def leaderboard(
    board: str = typer.Option("global", "--board", "-b", help="global | weekly"),
    limit: int = typer.Option(10, "--limit", "-n", help="Rows to show"),
) -> None:
    """Print the global or weekly leaderboard."""
    if board not in ("global", "weekly"):
        console.print(f"[red]✗ Unknown board: {board}[/red]")
        raise typer.Exit(code=1)

    result = boards.load_leaderboards(_client())
    entries = result[board][:limit]
    if not entries:
        console.print("[dim]No learners yet[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", width=4)
    table.add_column("Name", style="cyan")
    table.add_column("XP" if board == "global" else "Weekly XP", justify="right")
    table.add_column("Level", justify="center")
    for entry in entries:
        xp = entry.total_xp if board == "global" else entry.weekly_xp
        level = str(entry.level) if board == "global" else "-"
        table.add_row(str(entry.rank), entry.name, str(xp), level)
    console.print(table)


@app.command()
def due(
    email: str = typer.Argument(..., help="Learner email"),
) -> None:
    """List a learner's flashcards due for review."""
    client = _client()
    cards = prioritize(due_cards(client.FlashCard.filter(client.FlashCard.owned_by(email))))
    if not cards:
        console.print("[green]✓ Nothing to review[/green]")
        return

    words = {
        w["id"]: w
        for w in client.QuranicWord.filter({"id": {"$in": [c["word_id"] for c in cards]}})
    }
    table = Table(show_header=True, header_style="bold")
    table.add_column("Word", style="cyan")
    table.add_column("Meaning")
    table.add_column("Interval", justify="right")
    table.add_column("Status")
    for card in cards:
        word = words.get(card["word_id"]) or {}
        table.add_row(
            word.get("word") or str(card["word_id"]),
            _truncate(word.get("meaning") or ""),
            str(card.get("interval") or 0),
            status_label(card.get("interval")).label,
        )
    console.print(table)
    console.print(f"[dim]{len(cards)} due[/dim]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Text to find, with or without tashkeel"),
    surah: int | None = typer.Option(None, "--surah", "-s", help="Limit to one surah"),
) -> None:
    """Search ayahs."""
    results = search_quran(_client(), query, surah)
    for ayah in results:
        console.print(
            f"[cyan]{ayah.get('surah_number')}:{ayah.get('ayah_number')}[/cyan] {ayah.get('ayah_text')}"
        )
    console.print(f"[dim]{len(results)} result(s)[/dim]")


class LoggingSink:
    """Audio sink that records clips instead of playing them."""

    def __init__(self):
        self.played: list[str] = []

    async def play(self, url: str, rate: float = 1.0) -> None:
        self.played.append(url)
        logger.info("sink.play", url=url, rate=rate)

    def stop(self) -> None:
        logger.info("sink.stop")


class ConsoleObserver(PlaybackObserver):
    """Prints the highlighted word as playback advances."""

    def __init__(self):
        self.words: list[str] = []

    def started(self, items: list[str]) -> None:
        self.words = items
        console.print(" ".join(items))

    def word(self, index: int) -> None:
        console.print(f"  [cyan]{index + 1:>3}[/cyan] {self.words[index]}")


@app.command(name="play-words")
def play_words(
    surah: int = typer.Argument(..., help="Surah number"),
    ayah: int = typer.Argument(..., help="Ayah number"),
    gap_ms: int | None = typer.Option(None, "--gap-ms", help="Pause between words"),
) -> None:
    """Play a verse word by word through a logging sink."""
    config = load_app_config()
    playback = config.playback
    if gap_ms is not None:
        playback = replace(playback, word_gap_ms=gap_ms)

    player = WordByWordPlayer(
        QuranApiClient(config.quran_api),
        LoggingSink(),
        ConsoleObserver(),
        playback,
    )
    result = asyncio.run(player.play(surah, ayah))

    if result.status == "unavailable":
        console.print("[yellow]⚠ Word-by-word audio is not available for this verse[/yellow]")
        raise typer.Exit(code=1)
    if result.status == "failed":
        console.print(f"[red]✗ {result.error}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ {result.played} words played[/green], {result.skipped} skipped")


@app.command(name="play-phrase")
def play_phrase(
    surah: int = typer.Argument(..., help="Surah number"),
    ayah: int = typer.Argument(..., help="Ayah number"),
    phrase: str = typer.Argument(..., help="Word or phrase as written in the verse"),
) -> None:
    """Play the clips of one word or phrase of a verse through a logging sink."""
    config = load_app_config()
    sink = LoggingSink()
    player = WordPhrasePlayer(QuranApiClient(config.quran_api), sink, config=config.playback)
    try:
        result = asyncio.run(player.play(surah, ayah, phrase))
    except KalimatError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if result.status == "not_found":
        console.print(f"[yellow]⚠ '{phrase}' was not found in {surah}:{ayah}[/yellow]")
        raise typer.Exit(code=1)
    if result.status == "unavailable":
        console.print("[yellow]⚠ No audio for the matched words[/yellow]")
        raise typer.Exit(code=1)
    if result.status == "failed":
        console.print(f"[red]✗ {result.error}[/red]")
        raise typer.Exit(code=1)
    for url in sink.played:
        console.print(f"  [cyan]♪[/cyan] {url}")
    console.print(f"[green]✓ {result.played} clip(s) played[/green]")
