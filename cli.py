"""
CLI tool for local development of the WebSocket push channel.

Provides commands for minting access tokens accepted by the WebSocket
endpoint and for viewing the effective connection settings.
"""

import time

import typer
from jwcrypto import jwt
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adminws.auth import get_signing_key
from adminws.schemas.user import UserContext
from adminws.settings import app_settings

typer_app = typer.Typer(
    name="adminws-cli",
    help="Admin panel WebSocket CLI - mint dev tokens and inspect settings",
    add_completion=False,
)
console = Console()


def issue_token(claims: dict) -> str:
    """Sign claims with the configured HS256 secret."""
    token = jwt.JWT(header={"alg": app_settings.JWT_ALGORITHM}, claims=claims)
    token.make_signed_token(get_signing_key())
    return token.serialize()


@typer_app.command(name="token")
def token(
    user_id: int = typer.Option(1, help="Admin panel user id"),
    member_id: int | None = typer.Option(
        None, help="Member id (issues a member token instead of an admin one)"
    ),
    username: str = typer.Option("dev", help="user_name claim"),
    ttl: int = typer.Option(3600, help="Token lifetime in seconds"),
    host: str = typer.Option("localhost:8889", help="Host for the example URL"),
):
    """
    Mint an access token for local WebSocket testing.

    Example:
        python cli.py token --user-id 7
        python cli.py token --member-id 10
    """
    claims = {
        "user_id": user_id,
        "user_name": username,
        "exp": int(time.time()) + ttl,
    }
    if member_id is not None:
        claims["member_id"] = member_id

    access_token = issue_token(claims)
    identity = UserContext(**claims).websocket_key

    console.print(
        Panel.fit(
            f"[bold]Identity:[/bold] {identity}\n\n{access_token}",
            title="Access token",
            border_style="green",
        )
    )
    console.print("\nConnect with subprotocols [cyan]Bearer, <token>[/cyan] or:")
    console.print(
        f"  ws://{host}/websocket/ws?Authorization=Bearer%20{access_token}"
    )


@typer_app.command(name="ws-settings")
def ws_settings():
    """
    Display the effective WebSocket connection settings.

    Example:
        python cli.py ws-settings
    """
    table = Table("Setting", "Value", title="WebSocket settings")

    for name in (
        "ADMIN_IDENTITY_PREFIX",
        "MEMBER_IDENTITY_PREFIX",
        "WS_SEND_QUEUE_SIZE",
        "WS_ENQUEUE_TIMEOUT_SECONDS",
        "WS_IDLE_TIMEOUT_SECONDS",
        "WS_PING_INTERVAL_SECONDS",
        "WS_WRITE_TIMEOUT_SECONDS",
    ):
        table.add_row(name, str(getattr(app_settings, name)))

    console.print(table)


if __name__ == "__main__":
    typer_app()
