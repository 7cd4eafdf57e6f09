"""
CLI commands for managing and querying a VectoDB store directory.

Key Commands:
    add: Append vectors from an fvecs file under sequential ids
    build: Rebuild the approximate index when enough vectors are unindexed
    search: Nearest-neighbor search for every query in an fvecs file
    status: Store size, index coverage and snapshot information
    clear: Delete the vector log and index snapshots

Every command accepts the store options --work-dir, --dim, --metric,
--index-key and --query-params. Missing values come from a --config
file (YAML or JSON) and then from the application settings.

Example Usage:
    # Load the SIFT1M base set and index it
    $ vectodb store add sift_base.fvecs --work-dir ./sift --index-key IVF4096,PQ32
    $ vectodb store build --work-dir ./sift --index-key IVF4096,PQ32 --threshold 0

    # Query it
    $ vectodb store search sift_query.fvecs --work-dir ./sift --limit 10
"""

from typing import Any, Dict, Optional

import numpy as np
import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vectodb.core.config.settings import settings
from vectodb.core.config.validation import ConfigValidator
from vectodb.core.exceptions.custom_exceptions import VectoDBError
from vectodb.core.logging.logger import get_logger
from vectodb.db import VectoDB, clear_work_dir
from vectodb.io.fvecs import read_fvecs
from vectodb.storage.snapshot import find_latest_snapshot

app = typer.Typer(help="Manage and query a vector store directory")
console = Console()
logger = get_logger(__name__)

WORK_DIR_OPTION = typer.Option(None, "--work-dir", "-w", help="Store directory.")
DIM_OPTION = typer.Option(None, "--dim", "-d", help="Vector dimension.")
METRIC_OPTION = typer.Option(None, "--metric", "-m", help="Metric: L2 or IP.")
INDEX_KEY_OPTION = typer.Option(
    None, "--index-key", "-k", help="FAISS index factory key ('Flat' = exact)."
)
QUERY_PARAMS_OPTION = typer.Option(
    None, "--query-params", help="FAISS ParameterSpace string, e.g. 'nprobe=16'."
)
CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="YAML or JSON file with store options."
)


def _store_options(
    config_file: Optional[str], **cli_values: Any
) -> Dict[str, Any]:
    """Merge CLI values over the config file; settings fill the rest later."""
    options: Dict[str, Any] = {}
    if config_file:
        options.update(ConfigValidator.load_config(config_file))
    for key, value in cli_values.items():
        if value is not None:
            options[key] = value
    return options


def _open_db(options: Dict[str, Any]) -> VectoDB:
    return VectoDB(
        options.get("work_dir") or settings.WORK_DIR,
        options.get("dim") or settings.VECTOR_DIMENSION,
        metric=options.get("metric"),
        index_key=options.get("index_key"),
        query_params=options.get("query_params"),
    )


def _fail(message: str) -> None:
    rprint(f"[bold red]{message}[/bold red]")
    raise typer.Exit(1)


@app.command()
def add(
    vectors_file: str = typer.Argument(..., help="fvecs file with the vectors."),
    start_id: Optional[int] = typer.Option(
        None, "--start-id", help="First id; defaults to the current store size."
    ),
    batch_size: int = typer.Option(10000, help="Vectors appended per batch."),
    work_dir: Optional[str] = WORK_DIR_OPTION,
    dim: Optional[int] = DIM_OPTION,
    metric: Optional[str] = METRIC_OPTION,
    index_key: Optional[str] = INDEX_KEY_OPTION,
    query_params: Optional[str] = QUERY_PARAMS_OPTION,
    config_file: Optional[str] = CONFIG_OPTION,
):
    """Append vectors from an fvecs file under sequential ids."""
    try:
        with console.status("[bold blue]Loading vectors..."):
            vectors = read_fvecs(vectors_file)
        options = _store_options(
            config_file,
            work_dir=work_dir,
            dim=dim,
            metric=metric,
            index_key=index_key,
            query_params=query_params,
        )
        if not options.get("dim") and vectors.size:
            options["dim"] = vectors.shape[1]

        with _open_db(options) as db:
            first = db.get_total() if start_id is None else start_id
            n = vectors.shape[0]
            with console.status(f"[bold yellow]Appending {n:,} vectors...") as status:
                for offset in range(0, n, batch_size):
                    stop = min(offset + batch_size, n)
                    ids = np.arange(first + offset, first + stop, dtype=np.int64)
                    db.add_with_ids(vectors[offset:stop], ids)
                    status.update(f"[bold yellow]Appended {stop:,}/{n:,} vectors...")
            total = db.get_total()
    except VectoDBError as e:
        _fail(f"Failed to add vectors: {e}")

    rprint(
        f"[bold green]Added {n:,} vectors (ids {first}..{first + n - 1}); "
        f"store now holds {total:,}[/bold green]"
    )


@app.command()
def build(
    threshold: Optional[int] = typer.Option(
        None,
        "--threshold",
        "-t",
        help="Rebuild only when more vectors than this are unindexed.",
    ),
    work_dir: Optional[str] = WORK_DIR_OPTION,
    dim: Optional[int] = DIM_OPTION,
    metric: Optional[str] = METRIC_OPTION,
    index_key: Optional[str] = INDEX_KEY_OPTION,
    query_params: Optional[str] = QUERY_PARAMS_OPTION,
    config_file: Optional[str] = CONFIG_OPTION,
):
    """Rebuild and activate the approximate index if warranted."""
    try:
        options = _store_options(
            config_file,
            work_dir=work_dir,
            dim=dim,
            metric=metric,
            index_key=index_key,
            query_params=query_params,
        )
        with _open_db(options) as db:
            with console.status("[bold yellow]Building index..."):
                activated = db.update_index(threshold)
            metrics = db.get_metrics()
    except VectoDBError as e:
        _fail(f"Failed to build index: {e}")

    if activated:
        rprint("[bold green]Index rebuilt and activated.[/bold green]")
    else:
        rprint("[bold yellow]Nothing to do: index is up to date.[/bold yellow]")
    _display_metrics(metrics)


@app.command()
def search(
    queries_file: str = typer.Argument(..., help="fvecs file with the queries."),
    limit: int = typer.Option(20, help="Maximum number of rows to display."),
    distance_threshold: Optional[float] = typer.Option(
        None, "--distance-threshold", help="Report worse results as misses."
    ),
    work_dir: Optional[str] = WORK_DIR_OPTION,
    dim: Optional[int] = DIM_OPTION,
    metric: Optional[str] = METRIC_OPTION,
    index_key: Optional[str] = INDEX_KEY_OPTION,
    query_params: Optional[str] = QUERY_PARAMS_OPTION,
    config_file: Optional[str] = CONFIG_OPTION,
):
    """Find the nearest stored vector for every query."""
    try:
        queries = read_fvecs(queries_file)
        options = _store_options(
            config_file,
            work_dir=work_dir,
            dim=dim,
            metric=metric,
            index_key=index_key,
            query_params=query_params,
        )
        if not options.get("dim") and queries.size:
            options["dim"] = queries.shape[1]

        with _open_db(options) as db:
            with console.status("[bold yellow]Searching vector store..."):
                distances, ids = db.search(queries, distance_threshold)
    except VectoDBError as e:
        _fail(f"Search failed: {e}")

    found = int((ids >= 0).sum())
    rprint(
        f"\n[bold green]{found} of {len(ids)} queries matched a stored vector"
        "[/bold green]"
    )

    table = Table(
        title=f"Top {min(limit, len(ids))} Search Results",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Query", style="cyan")
    table.add_column("Id", style="green")
    table.add_column("Distance", style="magenta")
    for i in range(min(limit, len(ids))):
        hit = ids[i] >= 0
        table.add_row(
            str(i),
            str(ids[i]) if hit else "-",
            f"{distances[i]:.4f}" if hit else "-",
        )
    console.print(table)


@app.command()
def status(
    work_dir: Optional[str] = WORK_DIR_OPTION,
    dim: Optional[int] = DIM_OPTION,
    metric: Optional[str] = METRIC_OPTION,
    index_key: Optional[str] = INDEX_KEY_OPTION,
    query_params: Optional[str] = QUERY_PARAMS_OPTION,
    config_file: Optional[str] = CONFIG_OPTION,
):
    """Show store size, index coverage and snapshot file."""
    try:
        options = _store_options(
            config_file,
            work_dir=work_dir,
            dim=dim,
            metric=metric,
            index_key=index_key,
            query_params=query_params,
        )
        with _open_db(options) as db:
            metrics = db.get_metrics()
            _, snapshot_file = find_latest_snapshot(db.work_dir, db.index_key)
    except VectoDBError as e:
        _fail(f"Failed to open store: {e}")

    store = metrics["store"]
    table = Table(title="Vector Store Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Work dir", store["work_dir"])
    table.add_row("Dimension", str(store["dim"]))
    table.add_row("Metric", store["metric"])
    table.add_row("Index key", store["index_key"])
    table.add_row("State", store["state"])
    table.add_row("Total vectors", f"{store['total']:,}")
    table.add_row("Indexed", f"{store['indexed']:,}")
    table.add_row("Unindexed", f"{store['unindexed']:,}")
    table.add_row("Training size", f"{store['training_size']:,}")
    table.add_row("Snapshot file", snapshot_file.name if snapshot_file else "-")
    console.print(table)


@app.command()
def clear(
    work_dir: Optional[str] = WORK_DIR_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
):
    """Delete the vector log and all index snapshots."""
    target = work_dir or settings.WORK_DIR
    if not yes:
        typer.confirm(
            f"Delete the vector log and index snapshots in {target}?", abort=True
        )
    try:
        removed = clear_work_dir(target)
    except VectoDBError as e:
        _fail(f"Failed to clear {target}: {e}")
    rprint(f"[bold green]Removed {removed} file(s) from {target}[/bold green]")


def _display_metrics(metrics: dict) -> None:
    """Display metrics in a formatted way."""
    store = metrics.get("store", {})
    console.print(
        Panel(
            f"State: {store.get('state', 'N/A')}\n"
            f"Total: {store.get('total', 0):,} vectors\n"
            f"Indexed: {store.get('indexed', 0):,}\n"
            f"Unindexed: {store.get('unindexed', 0):,}\n"
            f"Training size: {store.get('training_size', 0):,}",
            title="Vector Store Info",
            border_style="blue",
        )
    )

    activity = metrics.get("activity") or {}
    if activity:
        console.print(
            Panel(
                f"Builds: {activity.get('builds', 0)}\n"
                f"Reuses: {activity.get('reuses', 0)}\n"
                f"No-ops: {activity.get('noops', 0)}\n"
                f"Avg build time: {activity.get('avg_build_time', 0):.2f}s",
                title="Build Metrics",
                border_style="green",
            )
        )
