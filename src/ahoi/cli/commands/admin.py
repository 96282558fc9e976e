"""Admin and utility commands."""

from typing import Annotated

import typer

import ahoi
from ahoi.cli.context import CLIContext
from ahoi.cli.output import OutputFormatter

app = typer.Typer(help="Database administration")


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the metadata tables if they do not exist yet."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        service = cli_ctx.get_ahoi()
        formatter.print_success(
            "Database initialized",
            {"database": service.connection.url, "version": ahoi.__version__},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command()
def uninstall(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", help="Confirm dropping every Ahoi table")] = False,
) -> None:
    """Drop every data table and all metadata tables.

    Examples:

        ahoi admin uninstall --yes
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    if not yes:
        formatter.print_error(Exception("Refusing to uninstall without --yes."))
        raise typer.Exit(code=1)

    try:
        dropped = cli_ctx.get_ahoi().schema.uninstall()
        formatter.print_success("Ahoi tables dropped", {"data_tables": len(dropped)})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
