"""Entry-point for the course catalog."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from course_catalog.bootstrap import initialize_app
from course_catalog.logging_utils import build_handlers, configure_logging
from course_catalog.services.catalog import Catalog
from course_catalog.services.errors import CatalogError
from course_catalog.services.roles import Role
from course_catalog.services.storage import ActorRecord
from course_catalog.services.uploads import UploadedFile
from course_catalog.ui.console import ConsoleUI
from course_catalog.ui.modern import ModernUI
from course_catalog.web import create_app


LOGGER = logging.getLogger("course_catalog.cli")


cli = typer.Typer(add_completion=False, help="Course catalog management commands")


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def _prepare_logging(storage_root: Path) -> None:
    configure_logging(handlers=build_handlers(storage_root))


def _open_catalog() -> Catalog:
    config = initialize_app()
    _prepare_logging(config.storage_root)
    return Catalog(config)


def _require_actor(catalog: Catalog, actor_id: int) -> ActorRecord:
    actor = catalog.repository.get_actor(actor_id)
    if actor is None:
        raise typer.BadParameter(f"Actor {actor_id} does not exist.", param_hint="--actor-id")
    return actor


def _fail(error: CatalogError) -> typer.Exit:
    typer.echo(f"Error ({error.kind}): {error}", err=True)
    return typer.Exit(code=1)


def _normalize_root_path(root_path: Optional[str]) -> str:
    if root_path is None:
        return ""
    normalized = root_path.strip().rstrip("/")
    if normalized and not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized


class UIStyle(str, Enum):
    MODERN = "modern"
    CONSOLE = "console"


@cli.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Launch the web server when no explicit command is provided."""

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve, host=DEFAULT_HOST, port=DEFAULT_PORT, root_path=None)


@cli.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, help="Host interface for the web server"),
    port: int = typer.Option(DEFAULT_PORT, help="Port for the web server"),
    root_path: Optional[str] = typer.Option(
        None,
        help="Prefix the application expects when mounted behind a proxy",
        envvar="COURSE_CATALOG_ROOT_PATH",
    ),
) -> None:
    """Run the HTTP API."""

    catalog = _open_catalog()
    normalized_root = _normalize_root_path(root_path)
    app = create_app(catalog, root_path=normalized_root)

    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        root_path=normalized_root,
    )
    server = uvicorn.Server(server_config)
    app.state.server = server
    LOGGER.info("Serving course catalog on %s:%s", host, port)
    server.run()


@cli.command()
def overview(
    style: UIStyle = typer.Option(
        UIStyle.MODERN,
        "--style",
        "-s",
        help="Select the overview presentation style.",
        show_default=True,
    ),
) -> None:
    """Render the folder tree using the chosen UI style."""

    catalog = _open_catalog()
    if style is UIStyle.MODERN:
        ui = ModernUI(catalog)
    else:
        ui = ConsoleUI(catalog)
    ui.run()


@cli.command("add-actor")
def add_actor(
    name: str = typer.Argument(..., help="Display name of the actor"),
    role: Role = typer.Option(Role.STUDENT, help="Role granted to the actor"),
) -> None:
    """Register an actor that can be referenced as uploader."""

    catalog = _open_catalog()
    actor_id = catalog.repository.add_actor(name.strip(), role.value)
    typer.echo(f"Actor {actor_id} registered as {role.value}.")


@cli.command()
def group(
    name: str = typer.Argument(..., help="Unique group name"),
    leader_id: Optional[int] = typer.Option(None, help="Actor leading the group"),
    mentor_id: Optional[int] = typer.Option(None, help="Actor mentoring the group"),
) -> None:
    """Create a group, or update its leader/mentor when options are given."""

    catalog = _open_catalog()
    attributes = {"name": name}
    if leader_id is not None:
        attributes["leader_id"] = leader_id
    if mentor_id is not None:
        attributes["mentor_id"] = mentor_id
    try:
        if len(attributes) > 1:
            record = catalog.groups.upsert(attributes)
        else:
            record = catalog.groups.get_or_create(name)
    except CatalogError as error:
        raise _fail(error) from error
    typer.echo(f"Group {record.id}: {record.name} (leader={record.leader_id}, mentor={record.mentor_id})")


@cli.command("create-folder")
def create_folder(
    name: str = typer.Argument(..., help="Folder name"),
    actor_id: int = typer.Option(..., "--actor-id", help="Actor creating the folder"),
    parent: Optional[int] = typer.Option(None, help="Parent folder id"),
    description: str = typer.Option("", help="Folder description"),
) -> None:
    """Create a material folder."""

    catalog = _open_catalog()
    actor = _require_actor(catalog, actor_id)
    try:
        record = catalog.folders.create_folder(
            actor, {"name": name, "description": description}, parent
        )
    except CatalogError as error:
        raise _fail(error) from error
    typer.echo(f"Folder {record.id} created.")


@cli.command("upload-material")
def upload_material(
    path: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
        help="File to upload",
    ),
    actor_id: int = typer.Option(..., "--actor-id", help="Actor uploading the file"),
    title: Optional[str] = typer.Option(None, help="Title; defaults to the file name"),
    folder: Optional[int] = typer.Option(None, help="Destination folder id"),
    description: str = typer.Option("", help="Material description"),
) -> None:
    """Upload a material file into a folder."""

    catalog = _open_catalog()
    actor = _require_actor(catalog, actor_id)
    try:
        with path.open("rb") as handle:
            record = catalog.uploads.upload_material(
                actor,
                {"title": title or path.stem, "description": description},
                folder,
                blob=UploadedFile(filename=path.name, data=handle),
            )
    except CatalogError as error:
        raise _fail(error) from error
    typer.echo(f"Material {record.id} stored at {record.file}.")


if __name__ == "__main__":
    cli()
