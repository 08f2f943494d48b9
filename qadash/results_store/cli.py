"""CLI entry point for the QA results store."""

import asyncio
import json
import logging
import os
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel, ValidationError

from qadash.results_store.analytics import (
    GROUP_KEYS,
    aggregate,
    aggregate_by,
    daily_trends,
)
from qadash.results_store.config_loader import load_storage_settings
from qadash.results_store.errors import (
    InitializationError,
    StorageReadError,
    StorageWriteError,
)
from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.provider_config import StorageSettings
from qadash.results_store.models.test_result import TestResultRecord
from qadash.results_store.service import StorageService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)
logger = logging.getLogger(__name__)

app = typer.Typer()


def _load_settings(config: Path | None) -> StorageSettings:
    if config is None:
        return StorageSettings.from_env(os.environ)
    return load_storage_settings(config)


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    return value


def _echo_json(value: Any) -> None:
    typer.echo(json.dumps(_dump(value), indent=2))


def _run(
    ctx: typer.Context, operation: Callable[[StorageService], Awaitable[Any]]
) -> Any:
    """Open the storage service and run one operation against it."""

    async def runner() -> Any:
        service = StorageService(ctx.obj["settings"])
        await service.initialize()

        provider = ctx.obj["provider"]
        if provider and not await service.switch_provider(provider):
            raise InitializationError(f"Could not switch to provider {provider}")

        logger.info(f"Using storage provider: {service.provider_name}")
        return await operation(service)

    try:
        return asyncio.run(runner())
    except StorageWriteError as e:
        logger.error(f"Write failed: {e}")
        typer.echo(f"Error: failed to store test result, please retry: {e}", err=True)
        raise typer.Exit(code=1)
    except StorageReadError as e:
        logger.error(f"Read failed: {e}")
        typer.echo(f"Error: results are temporarily unavailable: {e}", err=True)
        raise typer.Exit(code=1)
    except InitializationError as e:
        logger.error(f"Storage initialization failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _criteria(
    start_date: datetime | None,
    end_date: datetime | None,
    status: str | None,
    team_member: str | None,
    project: str | None,
    search: str | None,
) -> FilterCriteria:
    return FilterCriteria(
        start_date=start_date,
        end_date=end_date,
        status=status,
        team_member=team_member,
        project=project,
        search_term=search,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, help="YAML storage settings file"),  # noqa: B008
    provider: str | None = typer.Option(
        None, help="Provider to switch to (google-drive, onedrive, local)"
    ),
) -> None:
    """Store and query QA test results."""
    try:
        settings = _load_settings(config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load settings: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    ctx.obj = {"settings": settings, "provider": provider}


@app.command()
def info(ctx: typer.Context) -> None:
    """Show the active storage provider."""

    async def operation(service: StorageService) -> Any:
        return service.get_provider_info()

    _echo_json(_run(ctx, operation))


@app.command()
def store(
    ctx: typer.Context,
    result_file: Path = typer.Argument(..., help="JSON file with one or more results"),  # noqa: B008
) -> None:
    """Upload test results from a JSON file."""
    try:
        data = json.loads(result_file.read_text())
    except (OSError, json.JSONDecodeError) as e:
        typer.echo(f"Error: cannot read {result_file}: {e}", err=True)
        raise typer.Exit(code=1)

    items = data if isinstance(data, list) else [data]
    try:
        records = [TestResultRecord.model_validate(item) for item in items]
    except ValidationError as e:
        typer.echo(f"Error: invalid test result: {e}", err=True)
        raise typer.Exit(code=1)

    async def operation(service: StorageService) -> Any:
        return [await service.store_test_result(record) for record in records]

    _echo_json(_run(ctx, operation))


@app.command()
def results(
    ctx: typer.Context,
    start_date: datetime | None = typer.Option(None, help="Inclusive lower bound"),
    end_date: datetime | None = typer.Option(None, help="Inclusive upper bound"),
    status: str | None = typer.Option(None, help="Exact status"),
    team_member: str | None = typer.Option(None, help="Exact team member name"),
    project: str | None = typer.Option(None, help="Exact project name"),
    search: str | None = typer.Option(None, help="Free-text search"),
) -> None:
    """List stored results, newest first."""
    criteria = _criteria(start_date, end_date, status, team_member, project, search)

    async def operation(service: StorageService) -> Any:
        return await service.get_test_results(criteria)

    _echo_json(_run(ctx, operation))


@app.command()
def search(
    ctx: typer.Context,
    term: str = typer.Argument(..., help="Text to look for"),
) -> None:
    """Search results by test name, team member or project."""

    async def operation(service: StorageService) -> Any:
        return await service.search_test_results(term)

    _echo_json(_run(ctx, operation))


@app.command()
def analytics(
    ctx: typer.Context,
    start_date: datetime | None = typer.Option(None, help="Inclusive lower bound"),
    end_date: datetime | None = typer.Option(None, help="Inclusive upper bound"),
    status: str | None = typer.Option(None, help="Exact status"),
    team_member: str | None = typer.Option(None, help="Exact team member name"),
    project: str | None = typer.Option(None, help="Exact project name"),
    group_by: str | None = typer.Option(
        None, help="Also summarize per team_member, project or framework"
    ),
    trends: bool = typer.Option(False, help="Also include per-day status counts"),
) -> None:
    """Show summary statistics for stored results."""
    if group_by is not None and group_by not in GROUP_KEYS:
        typer.echo(
            f"Error: --group-by must be one of: {', '.join(GROUP_KEYS)}", err=True
        )
        raise typer.Exit(code=1)

    criteria = _criteria(start_date, end_date, status, team_member, project, None)

    async def operation(service: StorageService) -> Any:
        if group_by is None and not trends:
            return {"summary": await service.get_analytics(criteria)}

        records = await service.get_test_results(criteria)
        output: dict[str, Any] = {"summary": aggregate(records)}
        if group_by is not None:
            output["groups"] = aggregate_by(records, group_by)
        if trends:
            output["trends"] = daily_trends(records)
        return output

    _echo_json(_run(ctx, operation))


@app.command()
def cleanup(
    ctx: typer.Context,
    days: int = typer.Option(90, min=0, help="Keep results from the last N days"),
) -> None:
    """Delete results older than the retention period."""

    async def operation(service: StorageService) -> Any:
        return {"deleted": await service.cleanup_old_results(days)}

    _echo_json(_run(ctx, operation))


@app.command("storage-info")
def storage_info(ctx: typer.Context) -> None:
    """Show size and object count of the results container."""

    async def operation(service: StorageService) -> Any:
        return await service.get_storage_info()

    _echo_json(_run(ctx, operation))


if __name__ == "__main__":  # pragma: no cover
    app()
