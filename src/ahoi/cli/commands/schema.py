"""Structure and field management commands."""

from typing import Annotated

import typer

from ahoi.cli.context import CLIContext
from ahoi.cli.output import OutputFormatter
from ahoi.cli.parsing import parse_field_spec, read_json_file

app = typer.Typer(help="Manage structures and their fields")


@app.command("list")
def schema_list(ctx: typer.Context) -> None:
    """List all structures."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        ahoi = cli_ctx.get_ahoi()
        structures = ahoi.schema.list_structures()

        if cli_ctx.json_output:
            formatter.print_data([s.model_dump(mode="json") for s in structures])
        else:
            table_data = [
                {
                    "Slug": s.slug,
                    "Name": s.name,
                    "Fields": len(s.fields),
                    "Table": s.table_name,
                }
                for s in structures
            ]
            formatter.print_table(
                f"Structures ({len(structures)} total)",
                table_data,
                ["Slug", "Name", "Fields", "Table"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("describe")
def schema_describe(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Structure slug")],
) -> None:
    """Show a structure, its fields and its record count."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        formatter.print_structure_info(cli_ctx.get_ahoi().schema.describe_structure(slug))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("create")
def schema_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Display name (e.g., Movies)")],
    slug: Annotated[str, typer.Argument(help="URL slug (e.g., movies)")],
    fields: Annotated[
        list[str] | None,
        typer.Option(
            "--field",
            "-f",
            help="Field spec: slug:type[:required][:default=value]. Can be repeated.",
        ),
    ] = None,
    from_file: Annotated[
        str | None,
        typer.Option("--from-file", help="Load fields (and description) from a JSON file"),
    ] = None,
    description: Annotated[
        str | None,
        typer.Option("--description", help="Structure description"),
    ] = None,
) -> None:
    """Create a structure and its table.

    Examples:

        ahoi schema create Movies movies -f "title:TEXT_SHORT:required" -f "year:NUMBER_INT"

        ahoi schema create Movies movies --from-file movies.json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        parsed_fields = []
        if from_file:
            schema_data = read_json_file(from_file)
            description = schema_data.get("description", description)
            parsed_fields = schema_data.get("fields", [])
        elif fields:
            parsed_fields = [parse_field_spec(spec) for spec in fields]

        structure = cli_ctx.get_ahoi().create_structure(name, slug, description=description, fields=parsed_fields)
        formatter.print_success(
            f"Structure '{structure.slug}' created",
            {"slug": structure.slug, "table": structure.table_name, "fields": len(structure.fields)},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("drop")
def schema_drop(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Structure slug")],
    force: Annotated[bool, typer.Option("--force", help="Skip confirmation prompt")] = False,
) -> None:
    """Drop a structure, its table and all of its records."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    if not force and not cli_ctx.json_output:
        if not typer.confirm(f"Drop structure '{slug}' and all of its records?"):
            typer.echo("Cancelled.")
            raise typer.Exit(code=0)

    try:
        cli_ctx.get_ahoi().schema.delete_structure(slug)
        formatter.print_success(f"Structure '{slug}' dropped")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("add-field")
def schema_add_field(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Structure slug")],
    field_spec: Annotated[str, typer.Argument(help="Field spec: slug:type[:required][:default=value]")],
    name: Annotated[str | None, typer.Option("--name", help="Display name")] = None,
) -> None:
    """Add a column to a structure.

    Examples:

        ahoi schema add-field movies "rating:NUMBER_DECIMAL"

        ahoi schema add-field movies "watched:BOOLEAN:required:default=false"
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        spec = parse_field_spec(field_spec)
        field = cli_ctx.get_ahoi().add_field(
            slug,
            name or spec["name"],
            spec["slug"],
            spec["type"],
            is_required=spec["is_required"],
            default_value=spec["default_value"],
        )
        formatter.print_success(
            f"Field '{field.slug}' added to '{slug}'",
            {"type": field.type, "required": field.is_required},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("drop-field")
def schema_drop_field(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Structure slug")],
    field_slug: Annotated[str, typer.Argument(help="Field slug")],
    force: Annotated[bool, typer.Option("--force", help="Skip confirmation prompt")] = False,
) -> None:
    """Drop a column and its data."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    if not force and not cli_ctx.json_output:
        if not typer.confirm(f"Drop field '{field_slug}' from '{slug}'? Its data is lost."):
            typer.echo("Cancelled.")
            raise typer.Exit(code=0)

    try:
        cli_ctx.get_ahoi().schema.drop_field(slug, field_slug)
        formatter.print_success(f"Field '{field_slug}' dropped from '{slug}'")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
