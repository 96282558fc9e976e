"""User account commands for operators."""

from typing import Annotated

import typer

from ahoi.cli.context import CLIContext
from ahoi.cli.output import OutputFormatter

app = typer.Typer(help="Manage API users")


@app.command("create")
def users_create(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="Login name")],
    email: Annotated[str, typer.Argument(help="Email address")],
    password: Annotated[
        str,
        typer.Option("--password", "-p", prompt=True, hide_input=True, help="Password"),
    ],
    role: Annotated[str, typer.Option("--role", "-r", help="Role to assign")] = "subscriber",
) -> None:
    """Create a user with any known role (including administrator).

    Examples:

        ahoi users create admin admin@example.com --role administrator
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        user = cli_ctx.get_ahoi().identity.register(username, email, password, role=role, trusted=True)
        formatter.print_success(f"User '{user.user_login}' created", {"id": user.ID, "roles": user.roles})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("list")
def users_list(ctx: typer.Context) -> None:
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        users = cli_ctx.get_ahoi().identity.list_users()
        formatter.print_table(
            f"Users ({len(users)} total)",
            [{**u.model_dump(), "roles": ", ".join(u.roles)} for u in users],
            ["ID", "user_login", "user_email", "roles"],
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("grant")
def users_grant(
    ctx: typer.Context,
    user_id: Annotated[int, typer.Argument(help="User id")],
    capability: Annotated[str, typer.Argument(help="Capability, e.g. create_movies")],
) -> None:
    """Grant one extra capability to a user."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        user = cli_ctx.get_ahoi().identity.grant_capability(user_id, capability)
        formatter.print_success(f"Granted '{capability}' to {user.user_login}")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("revoke")
def users_revoke(
    ctx: typer.Context,
    user_id: Annotated[int, typer.Argument(help="User id")],
    capability: Annotated[str, typer.Argument(help="Capability to remove")],
) -> None:
    """Remove an extra capability (role capabilities are unaffected)."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        user = cli_ctx.get_ahoi().identity.revoke_capability(user_id, capability)
        formatter.print_success(f"Revoked '{capability}' from {user.user_login}")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
