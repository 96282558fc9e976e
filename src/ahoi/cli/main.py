"""Ahoi CLI - Main entry point."""

from typing import Annotated

import typer

import ahoi
from ahoi.cli.context import CLIContext, configure_logging

app = typer.Typer(
    name="ahoi",
    help="Ahoi API - dynamic structures with an automatic REST API",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="AHOI_DATABASE_URL",
            help="Database URL (PostgreSQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option("--echo", "-e", help="Echo SQL statements to console"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON (machine-readable)"),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", envvar="AHOI_LOG_LEVEL", help="Logging level"),
    ] = None,
) -> None:
    """Initialize CLI context with global options."""
    configure_logging(log_level or "WARNING")
    ctx.obj = CLIContext(database_url=database, echo=echo, json_output=json_output)


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"Ahoi API v{ahoi.__version__}")


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port")] = 8000,
) -> None:
    """Serve the REST API with uvicorn."""
    import uvicorn

    from ahoi.api import create_app

    cli_ctx: CLIContext = ctx.obj
    service = cli_ctx.get_ahoi()
    configure_logging(service.settings.log_level)
    try:
        uvicorn.run(create_app(service), host=host, port=port, log_level=service.settings.log_level.lower())
    finally:
        cli_ctx.close()


from ahoi.cli.commands import admin, schema, users, webhooks  # noqa: E402

app.add_typer(schema.app, name="schema")
app.add_typer(webhooks.app, name="webhooks")
app.add_typer(users.app, name="users")
app.add_typer(admin.app, name="admin")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
