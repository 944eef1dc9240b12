"""CLI for the SalesBinder document cache (sync, status, analytics)."""

import json
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from salesbinder_cache.api import SalesBinderApi
from salesbinder_cache.config import (
    CacheSettings,
    load_account,
    load_preferences,
    resolve_cache_path,
)
from salesbinder_cache.core import reports
from salesbinder_cache.core.auto_update import ensure_fresh
from salesbinder_cache.core.database.store import DocumentStore
from salesbinder_cache.core.indexer import DocumentIndexer
from salesbinder_cache.exceptions import SalesBinderCacheError
from salesbinder_cache.logging_config import configure_logging
from salesbinder_cache.models.sync import SyncOptions

app = typer.Typer(help="SalesBinder document cache: sync documents and run sales analytics.")
cache_app = typer.Typer(help="Manage the local document cache.")
analytics_app = typer.Typer(help="Sales analytics from cached documents.")
app.add_typer(cache_app, name="cache")
app.add_typer(analytics_app, name="analytics")

RefreshOption = Annotated[
    bool, typer.Option("--refresh", help="Force a full cache refresh before the query")
]
CachedOption = Annotated[
    bool, typer.Option("--cached", help="Use the cache without checking freshness")
]
ItemArgument = Annotated[str, typer.Argument(help="SalesBinder item ID")]


@dataclass
class _Context:
    account: str | None = None
    cache_dir: Path | None = None


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    account: Annotated[
        str | None,
        typer.Option("--account", "-a", help="Account name from the config file"),
    ] = None,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Directory holding cache databases"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose)
    ctx.obj = _Context(account=account, cache_dir=cache_dir)


def _echo_json(data: dict[str, Any]) -> None:
    typer.echo(json.dumps(data, indent=2))


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn package errors into a logged message and exit code 1."""
    try:
        yield
    except SalesBinderCacheError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e


@contextmanager
def _open_indexer(ctx: typer.Context) -> Iterator[tuple[DocumentStore, DocumentIndexer]]:
    """Open the account's cache and an indexer wired to the live API."""
    opts: _Context = ctx.obj
    account = load_account(opts.account)
    settings = CacheSettings.resolve(load_preferences())
    store = DocumentStore.for_account(account.name, opts.cache_dir)
    try:
        indexer = DocumentIndexer(SalesBinderApi(account), store, account.name, settings)
        yield store, indexer
    finally:
        store.close()


def _format_timestamp(ts: int | None) -> str | None:
    if not ts:
        return None
    return datetime.fromtimestamp(ts, tz=UTC).isoformat()


# --- cache ---


@cache_app.command("sync")
def cache_sync(
    ctx: typer.Context,
    full: bool = typer.Option(False, "--full", help="Discard sync state and fetch everything"),
) -> None:
    """Sync documents from SalesBinder into the local cache."""
    with _handle_errors(), _open_indexer(ctx) as (_store, indexer):
        result = indexer.sync(SyncOptions(full=full))
        _echo_json(
            {
                "type": result.type.value,
                "documents_processed": result.documents_processed,
                "line_items_processed": result.line_items_processed,
                "documents_skipped": result.documents_skipped,
                "documents_deleted": result.documents_deleted,
                "duration": result.duration,
            }
        )


@cache_app.command("status")
def cache_status(ctx: typer.Context) -> None:
    """Show cache location, counts and freshness."""
    with _handle_errors(), _open_indexer(ctx) as (store, indexer):
        state = store.get_cache_state()
        _echo_json(
            {
                "account": indexer.account,
                "path": str(store.path),
                "synced": state is not None,
                "last_sync": _format_timestamp(state.last_sync_at if state else None),
                "last_full_sync": _format_timestamp(state.last_full_sync_at if state else None),
                "document_count": store.document_count(),
                "line_item_count": store.line_item_count(),
                "stale": indexer.is_stale(),
                "stale_after_seconds": indexer.settings.stale_seconds,
            }
        )


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Delete the cache database for the account."""
    opts: _Context = ctx.obj
    with _handle_errors():
        name = opts.account or load_account().name
        db_path = resolve_cache_path(name, opts.cache_dir)
        removed = []
        for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
            if path.exists():
                path.unlink()
                removed.append(str(path))
        if removed:
            logger.info("Removed cache for account {!r}", name)
        else:
            logger.info("No cache found for account {!r}", name)
        _echo_json({"account": name, "removed": removed})


# --- analytics ---


def _run_report(
    ctx: typer.Context,
    *,
    refresh: bool,
    cached: bool,
    build: Callable[[DocumentStore, DocumentIndexer, date], dict[str, Any]],
) -> None:
    with _handle_errors(), _open_indexer(ctx) as (store, indexer):
        ensure_fresh(store, indexer, indexer.account, force=refresh, cached_only=cached)
        _echo_json(build(store, indexer, date.today()))


def _parse_months(value: str) -> tuple[int, ...]:
    try:
        months = tuple(int(part) for part in value.split(",") if part.strip())
    except ValueError as e:
        msg = f"Invalid --months value {value!r}; expected e.g. 3,6,12"
        raise typer.BadParameter(msg) from e
    if not months or any(m <= 0 for m in months):
        msg = f"Invalid --months value {value!r}; months must be positive"
        raise typer.BadParameter(msg)
    return months


@analytics_app.command("item-sales")
def item_sales(
    ctx: typer.Context,
    item_id: ItemArgument,
    months: str = typer.Option("3,6,12", "--months", "-m", help="Comma-separated periods"),
    refresh: RefreshOption = False,
    cached: CachedOption = False,
) -> None:
    """Units sold and revenue over trailing periods."""
    periods = _parse_months(months)
    _run_report(
        ctx,
        refresh=refresh,
        cached=cached,
        build=lambda store, indexer, today: reports.item_sales_report(
            store, item_id, today=today, months=periods, stale=indexer.is_stale()
        ),
    )


@analytics_app.command()
def trends(
    ctx: typer.Context,
    item_id: ItemArgument,
    refresh: RefreshOption = False,
    cached: CachedOption = False,
) -> None:
    """Quarterly sales trend over the last 12 months."""
    _run_report(
        ctx,
        refresh=refresh,
        cached=cached,
        build=lambda store, _indexer, today: reports.trends_report(store, item_id, today=today),
    )


@analytics_app.command()
def pricing(
    ctx: typer.Context,
    item_id: ItemArgument,
    refresh: RefreshOption = False,
    cached: CachedOption = False,
) -> None:
    """Price distribution and discounting."""
    _run_report(
        ctx,
        refresh=refresh,
        cached=cached,
        build=lambda store, _indexer, today: reports.pricing_report(store, item_id, today=today),
    )


@analytics_app.command()
def customers(
    ctx: typer.Context,
    item_id: ItemArgument,
    top: int = typer.Option(10, "--top", "-n", help="Number of customers to list"),
    refresh: RefreshOption = False,
    cached: CachedOption = False,
) -> None:
    """Top customers and revenue concentration."""
    _run_report(
        ctx,
        refresh=refresh,
        cached=cached,
        build=lambda store, _indexer, today: reports.customers_report(
            store, item_id, today=today, top=top
        ),
    )


@analytics_app.command()
def forecast(
    ctx: typer.Context,
    item_id: ItemArgument,
    unit_price: Annotated[
        float,
        typer.Option("--unit-price", help="Price used when there is no sales history"),
    ] = 0.0,
    refresh: RefreshOption = False,
    cached: CachedOption = False,
) -> None:
    """Three-month demand forecast."""
    _run_report(
        ctx,
        refresh=refresh,
        cached=cached,
        build=lambda store, _indexer, today: reports.forecast_report(
            store, item_id, today=today, unit_price=unit_price
        ),
    )


@analytics_app.command()
def patterns(
    ctx: typer.Context,
    item_id: ItemArgument,
    refresh: RefreshOption = False,
    cached: CachedOption = False,
) -> None:
    """Order sizes, frequency and estimate conversion."""
    _run_report(
        ctx,
        refresh=refresh,
        cached=cached,
        build=lambda store, _indexer, today: reports.patterns_report(store, item_id, today=today),
    )


@analytics_app.command()
def inventory(
    ctx: typer.Context,
    item_id: ItemArgument,
    stock: Annotated[float, typer.Option("--stock", "-s", help="Units currently in stock")],
    unit_cost: Annotated[
        float | None,
        typer.Option("--unit-cost", help="Cost per unit, to value excess stock"),
    ] = None,
    refresh: RefreshOption = False,
    cached: CachedOption = False,
) -> None:
    """Stock health and reorder recommendation."""
    _run_report(
        ctx,
        refresh=refresh,
        cached=cached,
        build=lambda store, _indexer, today: reports.inventory_report(
            store, item_id, today=today, current_stock=stock, unit_cost=unit_cost
        ),
    )
