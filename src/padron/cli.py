"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/padron/cli.py`.
Interfaz de línea de comandos del motor del padrón.

Componentes detectados:
  - main
  - sync
  - search
  - filter
  - clear_cache
  - dedup

======================== ENGLISH ========================
File: `src/padron/cli.py`.
Command line interface of the registry engine.

Detected components:
  - main
  - sync
  - search
  - filter
  - clear_cache
  - dedup
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable, Optional

import typer

from .config import PadronSettings, load_settings
from .filters import FilterKind
from .logging import setup_logging
from .models import Record
from .search import SearchMode
from .session import RegistrySession, build_cache_store

app = typer.Typer(help="Padron Engine CLI")

_state: dict = {}


def _settings() -> PadronSettings:
    return _state["settings"]


def _format(record: Record) -> str:
    name = " ".join(part for part in (record.name, record.surname) if part)
    return " | ".join(
        [
            record.identity_number or "-",
            name or record.name_localized or "-",
            record.phone or "-",
            record.list_part_number or "-",
        ]
    )


def _echo_records(records: Iterable[Record], limit: int) -> None:
    for index, record in enumerate(records):
        if index >= limit:
            break
        typer.echo(_format(record))


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file."),
) -> None:
    """Interfaz de línea de comandos del padrón.

    English: Registry command line interface.
    """
    try:
        settings = load_settings(config)
    except (ValueError, FileNotFoundError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    setup_logging(settings.log_level, settings.log_dir)
    _state["settings"] = settings


@app.command()
def sync() -> None:
    """Sincroniza el padrón (caché primero). / Sync the registry (cache first)."""

    async def _run():
        async with RegistrySession.from_settings(_settings()) as session:
            return await session.wait_synced()

    snapshot = asyncio.run(_run())
    source = "cache" if snapshot.from_cache else "network"
    typer.echo(
        f"status={snapshot.status.value} records={len(snapshot.records)} "
        f"reported_total={snapshot.reported_total} source={source} "
        f"pages_failed={snapshot.pages_failed}"
    )
    if snapshot.error_message:
        typer.echo(snapshot.error_message, err=True)
        raise typer.Exit(code=1)


@app.command()
def search(
    query: str = typer.Argument(..., help="Name, identity number or phone."),
    mode: SearchMode = typer.Option(SearchMode.ALL, "--mode", "-m"),
    limit: int = typer.Option(20, "--limit", "-n", min=1),
) -> None:
    """Busca en el padrón local con respaldo remoto. / Search with remote fallback."""

    async def _run():
        async with RegistrySession.from_settings(_settings()) as session:
            await session.wait_synced()
            await session.search_now(query, mode)
            return session.state

    state = asyncio.run(_run())
    typer.echo(f"results={len(state.search_results)}")
    _echo_records(state.search_results, limit)
    if state.suggestions:
        typer.echo("suggestions:")
        _echo_records(state.suggestions, limit)


@app.command("filter")
def filter_command(
    kind: FilterKind = typer.Argument(..., help="booth, surname or address."),
    value: str = typer.Argument(...),
    limit: int = typer.Option(20, "--limit", "-n", min=1),
) -> None:
    """Filtra por mesa, apellido o dirección. / Filter by booth, surname or address."""

    async def _run():
        async with RegistrySession.from_settings(_settings()) as session:
            await session.wait_synced()
            return session.set_filter(kind, value)

    results = asyncio.run(_run())
    typer.echo(f"results={len(results)}")
    _echo_records(results, limit)


@app.command("clear-cache")
def clear_cache() -> None:
    """Borra la caché local. / Clear the local cache."""
    store = build_cache_store(_settings())
    store.clear()
    store.kv.close()
    typer.echo("cache cleared")


@app.command()
def dedup() -> None:
    """Deduplica la caché local. / Deduplicate the local cache."""

    async def _run():
        async with RegistrySession.from_settings(_settings()) as session:
            await session.wait_synced()
            return session.dedup_now(), len(session.state.records)

    removed, remaining = asyncio.run(_run())
    typer.echo(f"removed={removed} records={remaining}")


if __name__ == "__main__":
    app()
