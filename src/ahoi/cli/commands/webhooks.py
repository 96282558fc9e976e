"""Webhook subscription commands."""

from typing import Annotated

import typer

from ahoi.cli.context import CLIContext
from ahoi.cli.output import OutputFormatter
from ahoi.core.types import SubscriptionStatus

app = typer.Typer(help="Manage webhook subscriptions")


@app.command("list")
def webhooks_list(
    ctx: typer.Context,
    structure: Annotated[str | None, typer.Option("--structure", "-s", help="Only this structure")] = None,
) -> None:
    """List subscriptions."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        subscriptions = cli_ctx.get_ahoi().subscriptions.list_subscriptions(structure)
        formatter.print_table(
            f"Webhooks ({len(subscriptions)} total)",
            [s.model_dump(mode="json") for s in subscriptions],
            ["id", "event_name", "structure_slug", "target_url", "status"],
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("add")
def webhooks_add(
    ctx: typer.Context,
    event_name: Annotated[str, typer.Argument(help="Event, e.g. item.created or item.created:movies")],
    target_url: Annotated[str, typer.Argument(help="http(s) URL receiving the POST")],
    structure: Annotated[
        str | None,
        typer.Option("--structure", "-s", help="Limit to one structure (default: all)"),
    ] = None,
    inactive: Annotated[bool, typer.Option("--inactive", help="Create disabled")] = False,
) -> None:
    """Subscribe a URL to an event."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        subscription = cli_ctx.get_ahoi().subscriptions.add(
            target_url,
            event_name,
            structure_slug=structure,
            status=SubscriptionStatus.INACTIVE if inactive else SubscriptionStatus.ACTIVE,
        )
        formatter.print_success(
            f"Webhook {subscription.id} added",
            {"event": subscription.event_name, "status": subscription.status},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


def _set_status(ctx: typer.Context, subscription_id: int, status: SubscriptionStatus) -> None:
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        cli_ctx.get_ahoi().subscriptions.set_status(subscription_id, status)
        formatter.print_success(f"Webhook {subscription_id} is now {status}")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("enable")
def webhooks_enable(
    ctx: typer.Context,
    subscription_id: Annotated[int, typer.Argument(help="Subscription id")],
) -> None:
    """Start delivering to a subscription."""
    _set_status(ctx, subscription_id, SubscriptionStatus.ACTIVE)


@app.command("disable")
def webhooks_disable(
    ctx: typer.Context,
    subscription_id: Annotated[int, typer.Argument(help="Subscription id")],
) -> None:
    """Stop delivering to a subscription without removing it."""
    _set_status(ctx, subscription_id, SubscriptionStatus.INACTIVE)


@app.command("remove")
def webhooks_remove(
    ctx: typer.Context,
    subscription_id: Annotated[int, typer.Argument(help="Subscription id")],
) -> None:
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        cli_ctx.get_ahoi().subscriptions.remove(subscription_id)
        formatter.print_success(f"Webhook {subscription_id} removed")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
