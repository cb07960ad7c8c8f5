"""Command line interface for btmeta.

Inspects ``.torrent`` files: metainfo summary, piece map, raw value tree and
a canonical round-trip check.
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from btmeta.config.config import get_config, init_config
from btmeta.core.bencode import decode, format_value
from btmeta.core.torrent import (
    MultiFileInfo,
    Torrent,
    decode_torrent,
    encode_torrent,
    info_hash_hex,
    load_torrent,
)
from btmeta.models import LogLevel
from btmeta.piece.piece_map import MappedPiece, build_piece_map, segments_for_piece
from btmeta.utils.exceptions import BTMetaError
from btmeta.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _format_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.2f} {unit}"
        size /= 1024
    return f"{num_bytes} B"  # pragma: no cover


def _fail(console: Console, error: Exception) -> None:
    """Print an error line and abort the command."""
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    raise click.ClickException(str(error)) from error


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: info, -vv: debug)",
)
@click.pass_context
def cli(ctx, config, verbose):
    """btmeta - BitTorrent metainfo toolkit."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbosity"] = verbose

    try:
        config_manager = init_config(config)
    except BTMetaError as e:
        _fail(Console(stderr=True), e)

    if verbose:
        level = LogLevel.DEBUG if verbose > 1 else LogLevel.INFO
        observability = config_manager.config.observability.model_copy(
            update={"log_level": level},
        )
        setup_logging(observability)


@cli.command()
@click.argument("torrent_file", type=click.Path(exists=True, dir_okay=False))
def info(torrent_file: str) -> None:
    """Show a summary of a torrent file."""
    console = Console()
    try:
        torrent = load_torrent(torrent_file)
    except BTMetaError as e:
        _fail(console, e)

    console.print(_summary_table(torrent))
    if isinstance(torrent.info, MultiFileInfo):
        console.print(_files_table(torrent.info))


def _summary_table(torrent: Torrent) -> Table:
    table = Table(title="Torrent", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    info = torrent.info
    table.add_row("Name", escape(info.name))
    table.add_row("Info hash", info_hash_hex(info))
    table.add_row("Type", "multi-file" if isinstance(info, MultiFileInfo) else "single file")
    table.add_row("Announce", escape(torrent.announce))
    if torrent.announce_list:
        tiers = "\n".join(", ".join(tier) for tier in torrent.announce_list)
        table.add_row("Announce list", escape(tiers))
    table.add_row("Files", str(len(info.files)))
    table.add_row("Total size", _format_size(info.total_length))
    table.add_row("Piece length", _format_size(info.piece_length))
    table.add_row("Pieces", str(info.num_pieces))
    table.add_row("Private", "yes" if info.is_private else "no")
    if torrent.comment is not None:
        table.add_row("Comment", escape(torrent.comment))
    if torrent.created_by is not None:
        table.add_row("Created by", escape(torrent.created_by))
    if torrent.creation_date is not None:
        table.add_row("Creation date", _format_timestamp(torrent.creation_date))
    return table


def _format_timestamp(timestamp: int) -> str:
    try:
        created = datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)
    except (OverflowError, OSError, ValueError):
        # Outside the platform time range
        return str(timestamp)
    return created.isoformat()


def _files_table(info: MultiFileInfo) -> Table:
    table = Table(title=f"Files in {escape(info.dir_name)}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Path", style="cyan")
    table.add_column("Size", justify="right", style="green")
    for index, file_info in enumerate(info.files):
        table.add_row(str(index), escape(file_info.full_path), _format_size(file_info.length))
    return table


@cli.command()
@click.argument("torrent_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--index", "-i", type=int, help="Show only this piece")
def pieces(torrent_file: str, index: int | None) -> None:
    """Show which file ranges make up each piece."""
    console = Console()
    try:
        torrent = load_torrent(torrent_file)
        if index is None:
            mapped = list(build_piece_map(torrent.info).values())
        else:
            mapped = [segments_for_piece(torrent.info, index)]
    except BTMetaError as e:
        _fail(console, e)

    console.print(_pieces_table(mapped))


def _pieces_table(mapped: list[MappedPiece]) -> Table:
    table = Table(title="Piece map")
    table.add_column("Piece", justify="right", style="cyan")
    table.add_column("Hash", style="dim")
    table.add_column("File")
    table.add_column("Offset", justify="right")
    table.add_column("Length", justify="right", style="green")
    for piece in mapped:
        for position, segment in enumerate(piece.segments):
            first = position == 0
            table.add_row(
                str(piece.index) if first else "",
                piece.hash.hex() if first else "",
                escape("/".join(segment.path)),
                str(segment.byte_offset),
                str(segment.length),
            )
    return table


@cli.command()
@click.argument("torrent_file", type=click.Path(exists=True, dir_okay=False))
def dump(torrent_file: str) -> None:
    """Print the raw bencode value tree of a file."""
    console = Console()
    try:
        value = decode(
            Path(torrent_file).read_bytes(),
            strict=get_config().bencode.strict_integers,
        )
        rendered = format_value(value)
    except (OSError, BTMetaError) as e:
        _fail(console, e)

    click.echo(rendered)


@cli.command()
@click.argument("torrent_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def check(ctx, torrent_file: str) -> None:
    """Check that a torrent file re-encodes to identical bytes.

    Exits with status 1 when the canonical encoding differs, e.g. because
    the file carries keys btmeta does not model or is not sorted.
    """
    console = Console()
    try:
        original = Path(torrent_file).read_bytes()
        torrent = decode_torrent(original, strict=get_config().bencode.strict_integers)
        encoded = encode_torrent(torrent)
    except (OSError, BTMetaError) as e:
        _fail(console, e)

    if encoded == original:
        console.print(f"[green]Round trip OK ({len(original)} bytes)[/green]")
        return

    mismatch = next(
        (
            offset
            for offset, (left, right) in enumerate(zip(original, encoded))
            if left != right
        ),
        min(len(original), len(encoded)),
    )
    logger.debug("Round trip of %s differs at byte %d", torrent_file, mismatch)
    console.print(
        f"[yellow]Round trip differs at byte {mismatch} "
        f"(original {len(original)} bytes, re-encoded {len(encoded)} bytes)[/yellow]",
    )
    ctx.exit(1)


def main() -> None:
    """Entry point for the ``btmeta`` console script."""
    cli(obj={})


if __name__ == "__main__":  # pragma: no cover
    main()
