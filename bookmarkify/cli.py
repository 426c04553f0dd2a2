#!/usr/bin/env python3
"""
Bookmarkify command-line interface.

A thin presentation layer over the bookmark store: every command calls one
store or query operation and renders the result.
"""
import sys
import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from bookmarkify.config import init_config, get_config
from bookmarkify.constants import ALL_CATEGORIES
from bookmarkify.models import Bookmark
from bookmarkify.snapshot import bookmark_to_record, export_file, import_file
from bookmarkify.store import get_store

logger = logging.getLogger(__name__)


console = Console()


def setup_logging(level: str) -> None:
    """Configure root logging; records go to stderr."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s: %(message)s",
    )


def format_bookmark(bookmark: Bookmark, format: str = "plain") -> str:
    """Format a bookmark for single-line output."""
    if format == "json":
        return json.dumps(bookmark_to_record(bookmark), ensure_ascii=False)
    elif format == "urls":
        return bookmark.url
    else:  # plain
        tags = " ".join(f"#{t}" for t in bookmark.tags)
        star = "★" if bookmark.favorite else ""
        return f"[{bookmark.id}] {star} {bookmark.title} ({bookmark.category})\n    {bookmark.url}\n    {tags}"


def output_bookmarks(bookmarks: List[Bookmark], format: str = "table"):
    """Output bookmarks in the specified format."""
    config = get_config()

    if format == "table":
        table = Table(title=f"{len(bookmarks)} bookmark{'s' if len(bookmarks) != 1 else ''}")
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="green")
        table.add_column("URL", style="blue")
        table.add_column("Category", style="magenta")
        table.add_column("Tags", style="yellow")
        table.add_column("★", style="red")

        for bookmark in bookmarks:
            table.add_row(
                str(bookmark.id),
                bookmark.title[:50],
                bookmark.url[:50],
                bookmark.category,
                ", ".join(bookmark.tags)[:30],
                "★" if bookmark.favorite else ""
            )

        console.print(table)
    elif format == "json":
        data = [bookmark_to_record(b) for b in bookmarks]
        print(json.dumps(data, indent=2 if config.export_pretty else None, ensure_ascii=False))
    else:
        for b in bookmarks:
            print(format_bookmark(b, format))


def output_details(bookmark: Bookmark):
    """Show every field of one bookmark."""
    details = Table(show_header=False, box=None)
    details.add_column("Field", style="cyan bold")
    details.add_column("Value", style="white")

    details.add_row("ID", str(bookmark.id))
    details.add_row("Title", bookmark.title)
    details.add_row("URL", bookmark.url)
    details.add_row("Category", bookmark.category)
    details.add_row("Tags", ", ".join(bookmark.tags) or "(none)")
    details.add_row("Description", bookmark.description or "(none)")
    details.add_row("Favorite", "★ Yes" if bookmark.favorite else "No")
    details.add_row("Created", bookmark.created_at.strftime("%Y-%m-%d %H:%M:%S") if bookmark.created_at else "(unknown)")
    details.add_row("Favicon", bookmark.favicon_url or "(none)")

    console.print(details)


def cmd_add(args):
    """Add a bookmark."""
    store = get_store()
    bookmark = store.add(
        title=args.title,
        url=args.url,
        category=args.category,
        tags=args.tags or "",
        description=args.description or "",
    )
    if args.quiet:
        print(bookmark.id)
    else:
        console.print(f"[green]Added bookmark {bookmark.id}: {bookmark.title}[/green]")


def cmd_list(args):
    """List bookmarks, optionally filtered."""
    store = get_store()
    bookmarks = store.view(
        search_term=args.search or "",
        selected_category=args.category or ALL_CATEGORIES,
        favorites_only=args.favorites,
    )
    if args.limit:
        bookmarks = bookmarks[:args.limit]

    if not bookmarks and args.output == "table":
        if args.search or args.favorites or args.category:
            console.print("[yellow]No bookmarks found. Try adjusting your filters or search term.[/yellow]")
        else:
            console.print("[yellow]No bookmarks found. Start by adding your first bookmark.[/yellow]")
        return

    output_bookmarks(bookmarks, args.output)


def cmd_show(args):
    """Show a single bookmark."""
    store = get_store()
    bookmark = store.get(args.id)
    if not bookmark:
        console.print(f"[red]Bookmark not found: {args.id}[/red]")
        sys.exit(1)

    if args.output == "json":
        print(format_bookmark(bookmark, "json"))
    else:
        output_details(bookmark)


def cmd_edit(args):
    """Update a bookmark."""
    store = get_store()

    updates = {}
    for field_name in ("title", "url", "category", "tags", "description"):
        value = getattr(args, field_name)
        if value is not None:
            updates[field_name] = value

    if not updates:
        console.print("[yellow]Nothing to update[/yellow]")
        return

    bookmark = store.update(args.id, **updates)
    if not args.quiet:
        console.print(f"[green]Updated bookmark {bookmark.id}[/green]")


def cmd_rm(args):
    """Delete bookmarks."""
    store = get_store()
    for bookmark_id in args.ids:
        store.remove(bookmark_id)
        if not args.quiet:
            console.print(f"[green]Removed bookmark {bookmark_id}[/green]")


def cmd_star(args):
    """Toggle the favorite flag."""
    store = get_store()
    bookmark = store.toggle_favorite(args.id)
    if not args.quiet:
        state = "★ Favorited" if bookmark.favorite else "Unfavorited"
        console.print(f"[green]{state} bookmark {bookmark.id}[/green]")


def cmd_category(args):
    """Manage categories."""
    store = get_store()

    if args.category_command == "list":
        if args.output == "json":
            print(json.dumps(store.categories, ensure_ascii=False))
            return
        counts = {}
        for b in store.bookmarks:
            counts[b.category] = counts.get(b.category, 0) + 1
        table = Table(title="Categories")
        table.add_column("Name", style="magenta")
        table.add_column("Bookmarks", style="cyan", justify="right")
        for name in store.categories:
            table.add_row(name, str(counts.get(name, 0)))
        console.print(table)

    elif args.category_command == "add":
        store.add_category(args.name)
        if not args.quiet:
            console.print(f"[green]Added category {args.name.strip()}[/green]")

    elif args.category_command == "rm":
        if store.remove_category(args.name):
            if not args.quiet:
                console.print(f"[green]Removed category {args.name}[/green]")
        else:
            console.print(f"[yellow]Category not removed: {args.name} (default or not present)[/yellow]")


def cmd_export(args):
    """Export all bookmarks and categories as a snapshot."""
    store = get_store()
    config = get_config()

    if args.file == "-":
        print(store.export_snapshot())
        return

    path = export_file(store.bookmarks, store.categories, args.file, pretty=config.export_pretty)
    if not args.quiet:
        console.print(f"[green]Exported {len(store.bookmarks)} bookmarks to {path}[/green]")


def cmd_import(args):
    """Replace all bookmarks and categories with a snapshot's contents."""
    store = get_store()

    snapshot = import_file(Path(args.file))

    if not args.yes:
        question = (
            f"Replace {len(store.bookmarks)} bookmarks and {len(store.categories)} categories "
            f"with {len(snapshot.bookmarks)} bookmarks and {len(snapshot.categories)} categories?"
        )
        if not Confirm.ask(question, console=console):
            console.print("[yellow]Import cancelled[/yellow]")
            return

    store.replace_all(snapshot.bookmarks, snapshot.categories)
    if not args.quiet:
        console.print(f"[green]Imported {len(snapshot.bookmarks)} bookmarks from {args.file}[/green]")


def cmd_stats(args):
    """Show collection statistics."""
    store = get_store()
    stats = store.stats()

    if args.output == "json":
        print(json.dumps(asdict(stats)))
        return

    console.print("[bold]Statistics[/bold]")
    console.print(f"  Total bookmarks: {stats.total_bookmarks}")
    console.print(f"  Favorite bookmarks: {stats.favorite_bookmarks}")
    console.print(f"  Categories: {stats.categories}")


def cmd_config(args):
    """Show the effective configuration."""
    config = get_config()
    data = asdict(config)

    if args.output == "json":
        print(json.dumps(data, indent=2))
        return

    table = Table(title="Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")
    for key, value in data.items():
        table.add_row(key, ", ".join(value) if isinstance(value, list) else str(value))
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bookmarkify",
        description="Bookmarkify: a personal bookmark organizer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bookmarkify add "Go Docs" https://go.dev --category "Dev Tools" --tags "lang,docs"
  bookmarkify list --search go --favorites
  bookmarkify edit 1700000000000 --tags "lang, reference"
  bookmarkify star 1700000000000
  bookmarkify category add Work
  bookmarkify export ~/backups/
  bookmarkify import bookmarks_2024-05-01.json --yes

Configuration:
  Config file: ~/.config/bookmarkify/config.toml or ./bookmarkify.toml
  Environment: BOOKMARKIFY_STORAGE, BOOKMARKIFY_DATABASE, BOOKMARKIFY_DATA_DIR
        """
    )

    # Global options
    parser.add_argument("--storage", choices=["sqlite", "json", "memory"], help="Storage backend")
    parser.add_argument("--db", help="Database file for the sqlite backend")
    parser.add_argument("--data-dir", help="Directory for the json backend")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("-o", "--output", choices=["table", "json", "plain", "urls"],
                        help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    # add
    add_parser = subparsers.add_parser("add", help="Add a bookmark")
    add_parser.add_argument("title", help="Bookmark title")
    add_parser.add_argument("url", help="URL to bookmark")
    add_parser.add_argument("--category", "-c", help="Category (default: General)")
    add_parser.add_argument("--tags", "-t", help="Comma-separated tags")
    add_parser.add_argument("--description", "-d", help="Description")
    add_parser.set_defaults(func=cmd_add)

    # list
    list_parser = subparsers.add_parser("list", help="List bookmarks")
    list_parser.add_argument("--search", "-s", help="Search title, URL and tags")
    list_parser.add_argument("--category", "-c", help="Only this category")
    list_parser.add_argument("--favorites", "-f", action="store_true", help="Only favorites")
    list_parser.add_argument("--limit", type=int, help="Maximum results")
    list_parser.set_defaults(func=cmd_list)

    # show
    show_parser = subparsers.add_parser("show", help="Show one bookmark")
    show_parser.add_argument("id", type=int, help="Bookmark ID")
    show_parser.set_defaults(func=cmd_show)

    # edit
    edit_parser = subparsers.add_parser("edit", help="Update a bookmark")
    edit_parser.add_argument("id", type=int, help="Bookmark ID")
    edit_parser.add_argument("--title", help="New title")
    edit_parser.add_argument("--url", help="New URL")
    edit_parser.add_argument("--category", "-c", help="New category")
    edit_parser.add_argument("--tags", "-t", help="Replacement comma-separated tags")
    edit_parser.add_argument("--description", "-d", help="New description")
    edit_parser.set_defaults(func=cmd_edit)

    # rm
    rm_parser = subparsers.add_parser("rm", help="Delete bookmarks")
    rm_parser.add_argument("ids", type=int, nargs="+", help="Bookmark IDs")
    rm_parser.set_defaults(func=cmd_rm)

    # star
    star_parser = subparsers.add_parser("star", help="Toggle favorite")
    star_parser.add_argument("id", type=int, help="Bookmark ID")
    star_parser.set_defaults(func=cmd_star)

    # category
    category_parser = subparsers.add_parser("category", help="Category management")
    category_subparsers = category_parser.add_subparsers(dest="category_command", required=True)
    category_subparsers.add_parser("list", help="List categories")
    cat_add = category_subparsers.add_parser("add", help="Add a category")
    cat_add.add_argument("name", help="Category name")
    cat_rm = category_subparsers.add_parser("rm", help="Remove a category (bookmarks keep it)")
    cat_rm.add_argument("name", help="Category name")
    category_parser.set_defaults(func=cmd_category)

    # export
    export_parser = subparsers.add_parser("export", help="Export a snapshot")
    export_parser.add_argument("file", nargs="?",
                               help="Output file or directory ('-' for stdout, default: dated file here)")
    export_parser.set_defaults(func=cmd_export)

    # import
    import_parser = subparsers.add_parser("import", help="Replace everything with a snapshot")
    import_parser.add_argument("file", help="Snapshot file")
    import_parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    import_parser.set_defaults(func=cmd_import)

    # stats
    stats_parser = subparsers.add_parser("stats", help="Collection statistics")
    stats_parser.set_defaults(func=cmd_stats)

    # config
    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Initialize configuration with CLI overrides
    config_args = {
        "storage": args.storage,
        "data_dir": args.data_dir,
    }
    if args.config:
        config_args["config_file"] = Path(args.config)

    config = init_config(database=args.db, **config_args)
    setup_logging(config.log_level)

    if not config.color_output:
        console.no_color = True

    if not args.output:
        args.output = config.output_format

    # Execute command
    try:
        get_store(reload=True)
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
