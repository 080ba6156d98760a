"""CLI entry point for the UCP connector."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, TypeVar, cast

import click

from ucp_connector.auth.models import CreatedAPIKey, Permission, StatusFilter
from ucp_connector.config import ConnectorConfig
from ucp_connector.connector import Connector, build_connector

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

T = TypeVar("T")


def _connector(ctx: click.Context) -> Connector:
    """Build components on first use so ``--help`` never touches storage."""
    if ctx.obj.get("connector") is None:
        try:
            ctx.obj["connector"] = build_connector(ctx.obj["config"])
        except RuntimeError as e:
            raise click.ClickException(str(e)) from e
    connector: Connector = ctx.obj["connector"]
    return connector


def _run(
    connector: Connector, func: Callable[[Connector], Coroutine[Any, Any, T]]
) -> T:
    """Run an async operation and release the connector's HTTP client."""

    async def runner() -> T:
        try:
            return await func(connector)
        finally:
            await connector.close()

    return asyncio.run(runner())


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """UCP connector - signed webhooks and API keys for agent commerce."""
    config = ConnectorConfig()
    if debug:
        config = config.model_copy(update={"debug_logging": True})

    if config.debug_logging:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        logging.getLogger("ucp_connector").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# API keys
# =============================================================================


@cli.group()
def keys() -> None:
    """Manage API keys."""


@keys.command("create")
@click.option("--description", "-d", default="", help="Key description")
@click.option(
    "--permission",
    "-p",
    "permissions",
    multiple=True,
    type=click.Choice([p.value for p in Permission]),
    help="Permission tier (repeatable, default: read)",
)
@click.option("--owner", default=None, help="Owning user reference")
@click.pass_context
def keys_create(
    ctx: click.Context,
    description: str,
    permissions: tuple[str, ...],
    owner: str | None,
) -> None:
    """Create an API key and print its secret once."""
    service = _connector(ctx).keys
    result = service.generate_api_key(
        description=description,
        permissions=list(permissions) or None,
        owner=owner,
    )
    if result.error is not None:
        raise click.ClickException(f"{result.error.error}: {result.error.message}")

    created = cast(CreatedAPIKey, result.value)
    click.echo(f"Key ID:      {created.key_id}")
    click.echo(f"Secret:      {created.secret}")
    click.echo(f"Permissions: {', '.join(p.value for p in created.permissions)}")
    click.echo(f"API key:     {created.credential}")
    click.echo()
    click.secho(
        "Store this secret securely. It will not be shown again.", fg="yellow"
    )


@keys.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in StatusFilter]),
    default=StatusFilter.ACTIVE.value,
    show_default=True,
)
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--per-page", type=int, default=20, show_default=True)
@click.pass_context
def keys_list(ctx: click.Context, status: str, page: int, per_page: int) -> None:
    """List API keys, newest first."""
    result = _connector(ctx).keys.list_api_keys(status=status, page=page, per_page=per_page)

    if not result.keys:
        click.echo("No API keys found.")
        return

    for key in result.keys:
        perms = ",".join(p.value for p in key.permissions)
        last_used = key.last_used_at or "never"
        click.echo(
            f"{key.key_id}  {key.status.value:<8} {perms:<16} "
            f"last used: {last_used}  {key.description}"
        )
    click.echo(f"Page {result.page}/{max(result.total_pages, 1)} ({result.total} total)")


@keys.command("revoke")
@click.argument("key_id")
@click.pass_context
def keys_revoke(ctx: click.Context, key_id: str) -> None:
    """Revoke an API key."""
    result = _connector(ctx).keys.revoke_api_key(key_id)
    if result.error is not None:
        raise click.ClickException(f"{result.error.error}: {result.error.message}")
    click.echo(f"Revoked {key_id}")


@keys.command("delete")
@click.argument("key_id")
@click.confirmation_option(prompt="Permanently delete this API key?")
@click.pass_context
def keys_delete(ctx: click.Context, key_id: str) -> None:
    """Delete an API key permanently."""
    result = _connector(ctx).keys.delete_api_key(key_id)
    if result.error is not None:
        raise click.ClickException(f"{result.error.error}: {result.error.message}")
    click.echo(f"Deleted {key_id}")


# =============================================================================
# Webhooks
# =============================================================================


@cli.group()
def webhooks() -> None:
    """Deliver and re-drive webhooks."""


@webhooks.command("retry")
@click.pass_context
def webhooks_retry(ctx: click.Context) -> None:
    """Re-drive failed deliveries once (suitable for cron)."""
    connector = _connector(ctx)
    results = _run(connector, lambda c: c.sender.retry_failed_webhooks())

    success_count = sum(1 for r in results if r.success)
    dropped_count = sum(1 for r in results if r.dropped)
    for r in results:
        state = "delivered" if r.success else ("dropped" if r.dropped else "failed")
        detail = f" ({r.error})" if r.error else ""
        click.echo(f"{r.delivery_id}  {r.event_type:<22} {state}{detail}")
    click.echo(
        f"Retried {len(results)} webhook(s): {success_count} succeeded, "
        f"{len(results) - success_count} failed, {dropped_count} dropped"
    )


@webhooks.command("test")
@click.pass_context
def webhooks_test(ctx: click.Context) -> None:
    """Send a test webhook to the configured URL."""
    connector = _connector(ctx)
    if not connector.config.webhook.destination:
        raise click.ClickException("Please configure a webhook URL first (UCP_WEBHOOK_URL).")

    result = _run(connector, lambda c: c.emitter.send_test())
    if result.error is not None:
        raise click.ClickException(f"{result.error.error}: {result.error.message}")
    click.echo("Test webhook sent successfully!")


@webhooks.command("failed")
@click.pass_context
def webhooks_failed(ctx: click.Context) -> None:
    """Show failed deliveries waiting for re-drive."""
    records = _connector(ctx).failed_queue.list()
    if not records:
        click.echo("No failed webhooks.")
        return
    for record in records:
        click.echo(
            f"{record.delivery_id}  {record.event_type:<22} "
            f"failed_at={record.failed_at}  {record.error}"
        )
    click.echo(f"{len(records)} failed webhook(s)")


# =============================================================================
# Signing key
# =============================================================================


@cli.group("signing-key")
def signing_key() -> None:
    """Inspect and rotate the webhook signing key."""


@signing_key.command("show")
@click.option("--reveal", is_flag=True, help="Print the raw key")
@click.pass_context
def signing_key_show(ctx: click.Context, reveal: bool) -> None:
    """Show the active signing key ID."""
    signing = _connector(ctx).signing
    key = signing.get_key()
    click.echo(f"Key ID:     {signing.key_id()}")
    click.echo(f"Created at: {signing.created_at()}")
    if reveal:
        click.echo(f"Key:        {key}")


@signing_key.command("rotate")
@click.confirmation_option(
    prompt="Rotating invalidates the current key immediately. Continue?"
)
@click.pass_context
def signing_key_rotate(ctx: click.Context) -> None:
    """Replace the signing key."""
    signing = _connector(ctx).signing
    key = signing.rotate()
    click.echo(f"New key ID: {signing.key_id()}")
    click.echo(f"Key:        {key}")


# =============================================================================
# Server
# =============================================================================


@cli.command()
@click.option("--host", default=None, help="Bind host (default: UCP_HOST)")
@click.option("--port", type=int, default=None, help="Bind port (default: UCP_PORT)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the REST server."""
    import uvicorn

    from ucp_connector.server import create_app

    config: ConnectorConfig = ctx.obj["config"]
    app = create_app(connector=_connector(ctx))
    uvicorn.run(app, host=host or config.host, port=port or config.port)


if __name__ == "__main__":
    cli()
