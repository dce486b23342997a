"""linear-notify command line interface.

``serve`` runs the daemon; every other command talks to a running daemon
through its local control API.
"""

from __future__ import annotations

import asyncio
import webbrowser

import click
import httpx

from linear_notify.config import MAX_POLLING_INTERVAL, MIN_POLLING_INTERVAL, get_settings


def run_async(coro):
    """Run an async function in a new event loop."""
    return asyncio.run(coro)


def _control_url() -> str:
    settings = get_settings()
    return f"http://{settings.control_host}:{settings.control_port}"


async def _call(method: str, path: str, json: dict | None = None) -> httpx.Response | None:
    """Send one request to the daemon. Prints the error and returns None on failure."""
    url = _control_url()
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            resp = await client.request(method, f"{url}{path}", json=json)
    except httpx.RequestError as e:
        click.echo(f"Error connecting to linear-notify at {url}: {e}")
        return None
    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        click.echo(f"Error: {resp.status_code}: {detail}")
        return None
    return resp


@click.group()
def cli():
    """Desktop notifications for Linear."""
    pass


# --- Daemon ---


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to CONTROL_HOST)")
@click.option("--port", default=None, type=int, help="Bind port (defaults to CONTROL_PORT)")
def serve(host, port):
    """Run the polling daemon and its control API."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "linear_notify.main:app",
        host=host or settings.control_host,
        port=port or settings.control_port,
        log_level="debug" if settings.debug_logging else "info",
    )


# --- Polling ---


@cli.command()
def status():
    """Show whether polling is active and authenticated."""
    resp = run_async(_call("GET", "/status"))
    if resp is None:
        raise SystemExit(1)
    data = resp.json()
    click.echo(f"Polling:       {'active' if data['is_polling'] else 'stopped'}")
    click.echo(f"Authenticated: {'yes' if data['is_authenticated'] else 'no'}")
    click.echo(f"Interval:      {data['polling_interval']}s")
    click.echo(f"Seen:          {data['seen_count']}")


@cli.command()
def poll():
    """Check for new notifications right now."""
    resp = run_async(_call("POST", "/poll"))
    if resp is None:
        raise SystemExit(1)
    click.echo(f"Dispatched {resp.json()['dispatched']} notification(s).")


@cli.command()
def reset():
    """Forget which notifications were already shown."""
    if run_async(_call("POST", "/reset")) is None:
        raise SystemExit(1)
    click.echo("Seen notifications cleared.")


@cli.command("set-interval")
@click.argument(
    "seconds",
    type=click.IntRange(MIN_POLLING_INTERVAL, MAX_POLLING_INTERVAL),
)
def set_interval(seconds):
    """Set the polling interval in seconds."""
    resp = run_async(_call("PUT", "/settings/polling-interval", json={"seconds": seconds}))
    if resp is None:
        raise SystemExit(1)
    click.echo(f"Polling interval set to {resp.json()['seconds']}s.")


@cli.command("test-connection")
def test_connection():
    """Verify the stored credential against the Linear API."""
    resp = run_async(_call("POST", "/connection/test"))
    if resp is None:
        raise SystemExit(1)
    if resp.json()["connected"]:
        click.echo("Connected to Linear.")
    else:
        click.echo("Could not connect to Linear. Check your credentials.")
        raise SystemExit(1)


# --- Authentication ---


@cli.command()
@click.option("--no-browser", is_flag=True, help="Print the URL instead of opening it")
def login(no_browser):
    """Authorize with Linear via OAuth."""
    resp = run_async(_call("GET", "/oauth/start"))
    if resp is None:
        raise SystemExit(1)
    url = resp.json()["authorization_url"]
    if no_browser or not webbrowser.open(url):
        click.echo("Open this URL to authorize linear-notify:")
    else:
        click.echo("Opened your browser to authorize linear-notify:")
    click.echo(f"  {url}")


@cli.command()
def logout():
    """Remove stored Linear credentials."""
    if run_async(_call("POST", "/oauth/logout")) is None:
        raise SystemExit(1)
    click.echo("Logged out.")


if __name__ == "__main__":
    cli()
