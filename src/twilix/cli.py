"""twilix CLI - Signatures, access tokens and quick API calls."""

import asyncio
import sys
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, ParamSpec, TypeVar
from urllib.parse import urlsplit

import click
from pydantic import SecretStr
from rich.console import Console
from rich.table import Table

from twilix.client.models import CreateMessageOptions
from twilix.client.rest import CircuitBreakerOpen, TwilioApiError, TwilioClient, TwilioClientError
from twilix.common.settings import Settings
from twilix.security.signature import EncodingError, MalformedBody, SignatureCodec, collect_fields
from twilix.tokens import DEFAULT_TTL, AccessToken, ChatGrant

console = Console()

P = ParamSpec("P")
R = TypeVar("R")


def async_command(f: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, R]:
    """Decorator to run async commands."""

    @wraps(f)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def _parse_params(pairs: tuple[str, ...]) -> dict[str, list[str]]:
    """Collect repeated ``key=value`` options into a multi-valued mapping."""
    params: dict[str, list[str]] = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--param")
        key, value = pair.split("=", 1)
        params.setdefault(key, []).append(value)
    return params


def _signed_fields(url: str, pairs: tuple[str, ...]) -> dict[str, list[str]]:
    """POST fields from the options followed by the fields of the URL query."""
    fields = _parse_params(pairs)
    for name, values in collect_fields(urlsplit(url).query).items():
        fields.setdefault(name, []).extend(values)
    return fields


def _codec(ctx: click.Context) -> SignatureCodec:
    settings: Settings = ctx.obj["settings"]
    if not settings.auth_token.get_secret_value():
        console.print("[red]Auth token required (--auth-token or TWILIX_AUTH_TOKEN)[/red]")
        sys.exit(1)
    return SignatureCodec(settings.auth_token, header_name=settings.signature_header)


@click.group()
@click.option("--account-sid", default=None, help="Account SID (defaults to TWILIX_ACCOUNT_SID)")
@click.option("--auth-token", default=None, help="Auth token (defaults to TWILIX_AUTH_TOKEN)")
@click.pass_context
def cli(ctx: click.Context, account_sid: str | None, auth_token: str | None) -> None:
    """twilix CLI - Sign and verify webhooks, mint tokens, send messages."""
    overrides: dict[str, Any] = {}
    if account_sid:
        overrides["account_sid"] = account_sid
    if auth_token:
        overrides["auth_token"] = SecretStr(auth_token)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = Settings(**overrides)


# === Webhook Signatures ===


@cli.command("sign")
@click.option("--url", required=True, help="Full URL Twilio requests, query string included")
@click.option("--param", "-p", multiple=True, help="POST field as key=value (repeatable)")
@click.pass_context
def sign(ctx: click.Context, url: str, param: tuple[str, ...]) -> None:
    """Compute the X-Twilio-Signature for a request."""
    codec = _codec(ctx)
    try:
        signature = codec.compute(url, _signed_fields(url, param))
    except (EncodingError, MalformedBody) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)
    click.echo(signature)


@cli.command("verify")
@click.option("--url", required=True, help="Full URL Twilio requested, query string included")
@click.option("--param", "-p", multiple=True, help="POST field as key=value (repeatable)")
@click.option("--signature", required=True, help="Value of the X-Twilio-Signature header")
@click.pass_context
def verify(ctx: click.Context, url: str, param: tuple[str, ...], signature: str) -> None:
    """Check a signature; exits non-zero when it does not match."""
    codec = _codec(ctx)
    try:
        valid = codec.validate(url, _signed_fields(url, param), signature)
    except (EncodingError, MalformedBody) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if valid:
        console.print("[green]✓ Signature valid[/green]")
        return
    console.print("[red]✗ Signature invalid[/red]")
    sys.exit(1)


# === Access Tokens ===


@cli.command("token")
@click.option("--signing-key-sid", required=True, help="API key SID (SK...)")
@click.option("--secret", required=True, help="API key secret")
@click.option("--identity", default=None, help="End-user identity")
@click.option("--ttl", default=DEFAULT_TTL, show_default=True, type=int, help="Lifetime in seconds")
@click.option("--chat-service-sid", default=None, help="Add a chat grant for this service")
@click.option("--chat", is_flag=True, help="Add a chat grant without a service SID")
@click.pass_context
def token(
    ctx: click.Context,
    signing_key_sid: str,
    secret: str,
    identity: str | None,
    ttl: int,
    chat_service_sid: str | None,
    chat: bool,
) -> None:
    """Mint an access token for client SDKs."""
    settings: Settings = ctx.obj["settings"]
    if not settings.account_sid:
        console.print("[red]Account SID required (--account-sid or TWILIX_ACCOUNT_SID)[/red]")
        sys.exit(1)

    access_token = AccessToken(
        account_sid=settings.account_sid,
        signing_key_sid=signing_key_sid,
        secret=secret,
        identity=identity,
        ttl=ttl,
    )
    if chat or chat_service_sid:
        access_token.add_grant(ChatGrant(service_sid=chat_service_sid))

    click.echo(access_token.to_jwt())


# === Messages ===


@cli.command("send-sms")
@click.option("--to", "to", required=True, help="Destination number (E.164)")
@click.option("--body", required=True, help="Message text")
@click.option("--from", "from_", default=None, help="Sender number")
@click.option("--messaging-service-sid", default=None, help="Send through a messaging service")
@click.pass_context
@async_command
async def send_sms(
    ctx: click.Context,
    to: str,
    body: str,
    from_: str | None,
    messaging_service_sid: str | None,
) -> None:
    """Send an SMS message."""
    if not from_ and not messaging_service_sid:
        console.print("[red]Either --from or --messaging-service-sid is required[/red]")
        sys.exit(1)

    settings: Settings = ctx.obj["settings"]
    options = CreateMessageOptions(from_=from_, messaging_service_sid=messaging_service_sid)

    try:
        async with TwilioClient(settings) as client:
            message = await client.create_message(to, body, options)
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)
    except TwilioApiError as exc:
        console.print(f"[red]Twilio error {exc.code}: {exc}[/red]")
        if exc.more_info:
            console.print(f"  {exc.more_info}")
        sys.exit(1)
    except (TwilioClientError, CircuitBreakerOpen) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    table = Table(title="Message")
    table.add_column("SID", style="cyan")
    table.add_column("To", style="green")
    table.add_column("Status", style="magenta")
    table.add_column("Direction")
    table.add_row(message.sid, message.to, message.status.value, message.direction.value)
    console.print(table)


def main() -> None:
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
