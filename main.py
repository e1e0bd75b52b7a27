"""ComicTrackr CLI entry point."""

from __future__ import annotations

import warnings
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.columns import Columns
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from trackr.config import DEFAULT_CONFIG_PATH, TrackrConfig, load_config, write_default_config
from trackr.database import create_sqlite_engine, init_db, reset_database
from trackr.errors import NotFoundError, PersistenceWarning, TrackrError
from trackr.images import ingest_cover_file
from trackr.logging_config import setup_logging
from trackr.models import ComicFields, ComicRecord, IssueState, LayoutPreference, WantAction
from trackr.query import collection_stats, filter_and_sort, reconcile_series
from trackr.series import load_reference
from trackr.storage import SqlStorage
from trackr.store import CollectionStore


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="ComicTrackr comic collection CLI")
console = Console()


def _ensure_config() -> TrackrConfig:
    try:
        return load_config(DEFAULT_CONFIG_PATH)
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: trackr init")
        raise typer.Exit(code=1)


def _open_store(config: TrackrConfig) -> CollectionStore:
    engine = create_sqlite_engine(config.database_path)
    init_db(engine)
    storage = SqlStorage(engine, quota_bytes=config.storage.quota_bytes)
    return CollectionStore.open(storage, max_cover_bytes=config.images.max_bytes)


@contextmanager
def _session() -> Iterator[CollectionStore]:
    """Open the store, report persistence warnings and turn errors into exit code 1."""
    config = _ensure_config()
    setup_logging(config.logging.level, config.log_path)
    store = _open_store(config)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", PersistenceWarning)
        try:
            yield store
            store.close()
        except NotFoundError as exc:
            typer.echo(f"[ERROR] {exc}. Run `trackr list` to see your collection.")
            raise typer.Exit(code=1)
        except TrackrError as exc:
            typer.echo(f"[ERROR] {exc}")
            raise typer.Exit(code=1)
    messages = [str(w.message) for w in caught if issubclass(w.category, PersistenceWarning)]
    for message in dict.fromkeys(messages):
        typer.echo(f"[WARN] {message}")


def _label(comic: ComicRecord) -> str:
    return f"{comic.title} #{comic.issue}"


def _fields_from_options(
    base: Optional[ComicRecord],
    title: Optional[str],
    issue: Optional[str],
    date: Optional[str],
    cost: Optional[str],
    artist: Optional[str],
    publisher: Optional[str],
    cover: Optional[Path],
    max_cover_bytes: int,
) -> ComicFields:
    def pick(value, current):
        return value if value is not None else current

    cover_image = ingest_cover_file(cover, max_bytes=max_cover_bytes) if cover else None
    return ComicFields(
        title=pick(title, base.title if base else ""),
        issue=pick(issue, base.issue if base else ""),
        release_date=pick(date, base.release_date if base else None),
        cost=pick(cost, str(base.cost) if base and base.cost is not None else None),
        artist=pick(artist, base.artist if base else None),
        publisher=pick(publisher, base.publisher if base else None),
        cover_image=cover_image,
    )


@app.command()
def init() -> None:
    """Create config.ini and the database with default settings."""
    config_path = write_default_config(DEFAULT_CONFIG_PATH)
    config = load_config(config_path)
    init_db(create_sqlite_engine(config.database_path))
    typer.echo(f"[OK] Config created at {config_path}")


@app.command()
def add(
    title: str = typer.Option(..., "--title", help="Series title"),
    issue: str = typer.Option(..., "--issue", help="Issue number or label"),
    date: Optional[str] = typer.Option(None, "--date", help="Release date"),
    cost: Optional[str] = typer.Option(None, "--cost", help="Price paid"),
    artist: Optional[str] = typer.Option(None, "--artist"),
    publisher: Optional[str] = typer.Option(None, "--publisher"),
    cover: Optional[Path] = typer.Option(None, "--cover", help="Cover image file (max 2MB)"),
) -> None:
    """Add an owned comic."""
    with _session() as store:
        fields = _fields_from_options(
            None, title, issue, date, cost, artist, publisher, cover, store.max_cover_bytes
        )
        was_wanted = store.is_wanted(fields.title, fields.issue)
        comic = store.add_comic(fields)
        if was_wanted:
            typer.echo(f"[OK] Added {_label(comic)} and removed it from your wishlist ({comic.id})")
        else:
            typer.echo(f"[OK] Added {_label(comic)} ({comic.id})")


@app.command()
def edit(
    comic_id: str = typer.Argument(..., help="Comic id"),
    title: Optional[str] = typer.Option(None, "--title"),
    issue: Optional[str] = typer.Option(None, "--issue"),
    date: Optional[str] = typer.Option(None, "--date"),
    cost: Optional[str] = typer.Option(None, "--cost"),
    artist: Optional[str] = typer.Option(None, "--artist"),
    publisher: Optional[str] = typer.Option(None, "--publisher"),
    cover: Optional[Path] = typer.Option(None, "--cover", help="Replace the cover image"),
) -> None:
    """Edit a comic. Options left out keep their current value."""
    with _session() as store:
        existing = store.get_comic(comic_id)
        fields = _fields_from_options(
            existing, title, issue, date, cost, artist, publisher, cover, store.max_cover_bytes
        )
        comic = store.update_comic(comic_id, fields)
        typer.echo(f"[OK] Updated {_label(comic)}")


@app.command()
def delete(
    comic_id: str = typer.Argument(..., help="Comic id"),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt"),
) -> None:
    """Delete a comic from the collection."""
    with _session() as store:
        comic = store.get_comic(comic_id)
        if not yes and not typer.confirm(f"Delete {_label(comic)}?"):
            typer.echo("[INFO] Nothing deleted")
            return
        store.delete_comic(comic_id)
        typer.echo(f"[OK] Deleted {_label(comic)}")


@app.command()
def read(comic_id: str = typer.Argument(..., help="Comic id")) -> None:
    """Toggle the read status of a comic."""
    with _session() as store:
        is_read = store.toggle_read(comic_id)
        typer.echo(f"[OK] Marked as {'Read' if is_read else 'Unread'}.")


@app.command()
def want(
    title: str = typer.Argument(..., help="Series title"),
    issue: str = typer.Argument(..., help="Issue number or label"),
) -> None:
    """Add an issue to the wishlist, or remove it if already wanted."""
    with _session() as store:
        action = store.toggle_want(title, issue)
        if action is WantAction.ADDED:
            typer.echo(f"[OK] Added {title} #{issue} to wishlist.")
        elif action is WantAction.REMOVED:
            typer.echo(f"[OK] Removed {title} #{issue} from wishlist.")
        else:
            typer.echo(f"[INFO] You already own {title} #{issue}.")


@app.command("list")
def list_comics(query: str = typer.Argument("", help="Filter by title, issue or publisher")) -> None:
    """List the collection in the saved layout."""
    with _session() as store:
        comics = filter_and_sort(store.comics, query)
        if not comics:
            if query:
                typer.echo(f'No comics found matching "{query}".')
            else:
                typer.echo("Your collection is empty. Add some comics!")
            return

        if store.layout is LayoutPreference.GRID:
            panels = [
                Panel(f"[bold]{escape(c.title)}[/bold]\n#{escape(c.issue)}", subtitle=c.id, width=28)
                for c in comics
            ]
            console.print(Columns(panels))
        else:
            for comic in comics:
                marker = "x" if comic.status.read else " "
                publisher = f"  ({comic.publisher})" if comic.publisher else ""
                typer.echo(f"[{marker}] {_label(comic)}{publisher}  {comic.id}")


@app.command()
def show(comic_id: str = typer.Argument(..., help="Comic id")) -> None:
    """Show the details of a comic."""
    with _session() as store:
        comic = store.get_comic(comic_id)
        typer.echo(_label(comic))
        typer.echo(f"  Release date: {comic.release_date or 'N/A'}")
        typer.echo(f"  Cost: {comic.cost if comic.cost is not None else 'N/A'}")
        typer.echo(f"  Artist: {comic.artist or 'N/A'}")
        typer.echo(f"  Publisher: {comic.publisher or 'N/A'}")
        typer.echo(f"  Cover: {'yes' if comic.cover_image else 'no'}")
        typer.echo(f"  Status: Owned, {'Read' if comic.status.read else 'Unread'}")


@app.command()
def series(title: str = typer.Argument(..., help="Series title")) -> None:
    """Show owned, wanted and missing issues of a series."""
    with _session() as store:
        config = _ensure_config()
        reference = load_reference(config.series_reference_path)
        views = reconcile_series(title, reference.lookup(title), store.comics, store.wants)
        if not views:
            typer.echo(f'No issues found for "{title}". Add owned or wanted issues first.')
            return
        for view in views:
            if view.state is IssueState.OWNED:
                typer.echo(f"  #{view.issue:<6} Owned   {view.comic_id}")
            elif view.state is IssueState.WANTED:
                typer.echo(f"  #{view.issue:<6} Wanted")
            else:
                typer.echo(f"  #{view.issue:<6} -")


@app.command()
def layout(
    value: Optional[LayoutPreference] = typer.Argument(None, help="grid or list"),
) -> None:
    """Show or set the collection layout."""
    with _session() as store:
        if value is None:
            typer.echo(store.layout.value)
            return
        store.set_layout(value)
        typer.echo(f"[OK] Layout set to {value.value}")


@app.command()
def stats() -> None:
    """Show collection statistics."""
    with _session() as store:
        summary = collection_stats(store.comics, store.wants)

    typer.echo("Collection Statistics:")
    typer.echo(f"  Total comics: {summary.total_comics}")
    typer.echo(f"  Series: {summary.series}")
    typer.echo(f"  Read / unread: {summary.read} / {summary.unread}")
    typer.echo(f"  Wishlist: {summary.wants}")
    typer.echo(f"  Total cost: {summary.total_cost:.2f}")


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm destructive reset"),
) -> None:
    """Delete all comics, wants and preferences."""
    if not confirm:
        typer.echo("[ERROR] This will delete your whole collection. Use --confirm.")
        raise typer.Exit(code=1)

    config = _ensure_config()
    reset_database(config.database_path)
    typer.echo("[INFO] Collection reset.")


if __name__ == "__main__":
    app()
