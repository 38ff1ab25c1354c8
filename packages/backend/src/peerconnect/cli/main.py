"""PeerConnect CLI — talk to a PeerConnect server from the terminal.

Usage:
    peerconnect login alice@example.com        # Prompts for password, stores tokens
    peerconnect topics                         # Topic catalogue
    peerconnect groups [--mine]                # Browse groups
    peerconnect join <group-id>                # Join a group
    peerconnect notifications [--unread]       # Inbox
    peerconnect chat <group-id>                # Live group chat (stdin → room)
    peerconnect serve                          # Run the API server
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from pathlib import Path
from typing import Optional

import click
import httpx

from peerconnect import __version__
from peerconnect.config import settings

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def _api_url() -> str:
    return os.environ.get("PEERCONNECT_API_URL", settings.api_url).rstrip("/")


def _credentials_path() -> Path:
    default = Path.home() / ".peerconnect" / "credentials.json"
    return Path(os.environ.get("PEERCONNECT_CREDENTIALS_FILE", default))


def _load_credentials() -> dict:
    path = _credentials_path()
    if not path.exists():
        return {}
    return json.loads(path.read_text())


def _save_credentials(data: dict) -> None:
    path = _credentials_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    path.chmod(0o600)


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the PeerConnect backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _token() -> str:
    token = _load_credentials().get("accessToken")
    if not token:
        click.secho("Not logged in. Run: peerconnect login <email>", fg="red", err=True)
        sys.exit(1)
    return token


def _check(r: httpx.Response) -> None:
    """Exit with the server's error message on a non-2xx response."""
    if r.is_success:
        return
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error ({r.status_code}): {detail}", fg="red", err=True)
    sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="peerconnect")
def main():
    """PeerConnect — peer-support groups, meetings and chat."""


@main.command()
@click.argument("email")
@click.password_option(confirmation_prompt=False)
def login(email: str, password: str):
    """Log in and store the access/refresh tokens locally."""
    _run(_login_impl(email, password))


async def _login_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/auth/login", json={"email": email, "password": password})
        _check(r)
        body = r.json()
    _save_credentials({
        "email": body["email"],
        "userId": body["id"],
        "accessToken": body["accessToken"],
        "refreshToken": body["refreshToken"],
        "expiresIn": body["expiresIn"],
    })
    click.secho(f"Logged in as {body['firstName']} {body['lastName']} ({body['role']})", fg="green")


@main.command()
def topics():
    """List the topic catalogue."""
    _run(_topics_impl())


async def _topics_impl():
    async with _client() as c:
        r = await c.get("/api/topics")
        _check(r)
    _print_table(r.json(), [("ID", "id", 36), ("Name", "name", 24), ("Description", "description", 40)])


@main.command()
@click.option("--mine", is_flag=True, help="Only groups you belong to")
@click.option("--topic-id", help="Filter by topic UUID")
def groups(mine: bool, topic_id: Optional[str]):
    """Browse active groups."""
    _run(_groups_impl(mine, topic_id))


async def _groups_impl(mine: bool, topic_id: Optional[str]):
    path = "/api/groups/mine" if mine else "/api/groups"
    params = {"topicId": topic_id} if topic_id and not mine else None
    async with _client(_token()) as c:
        r = await c.get(path, params=params)
        _check(r)
    rows = [
        {**g, "members": f"{g['memberCount']}/{g['maxMembers']}"} for g in r.json()
    ]
    _print_table(rows, [("ID", "id", 36), ("Name", "name", 30), ("Members", "members", 9)])


@main.command()
@click.argument("group_id")
def join(group_id: str):
    """Join a group."""
    _run(_join_impl(group_id))


async def _join_impl(group_id: str):
    async with _client(_token()) as c:
        r = await c.post(f"/api/groups/{group_id}/join")
        _check(r)
    click.secho("Joined group.", fg="green")


@main.command()
@click.option("--unread", is_flag=True, help="Only show unread notifications")
@click.option("--limit", "-l", default=20, help="Max results")
def notifications(unread: bool, limit: int):
    """Show your notifications."""
    _run(_notifications_impl(unread, limit))


async def _notifications_impl(unread: bool, limit: int):
    async with _client(_token()) as c:
        r = await c.get("/api/notifications", params={"limit": limit})
        _check(r)
        items = r.json()["notifications"]
    if unread:
        items = [n for n in items if not n["isRead"]]
    if not items:
        click.echo("(none)")
        return
    for n in items:
        marker = click.style("●", fg="cyan") if not n["isRead"] else " "
        click.echo(f"{marker} [{n['type']}] {n['title']}: {n['message']}")


@main.command()
@click.argument("group_id")
def chat(group_id: str):
    """Live chat in a group. Each stdin line is sent; Ctrl-D quits."""
    _run(_chat_impl(group_id))


async def _chat_impl(group_id: str):
    from peerconnect.client.websocket import ChatSocket

    token = _token()
    socket = ChatSocket(token_provider=lambda: _load_credentials().get("accessToken"))

    def on_message(message):
        data = message.data or {}
        if message.type == "chat_message" and data.get("groupId") == group_id:
            sender = data.get("sender", {})
            click.echo(f"{sender.get('firstName', '?')}: {data.get('content')}")
        elif message.type == "typing_indicator" and data.get("groupId") == group_id:
            if data.get("isTyping"):
                click.secho(f"{data.get('userName')} is typing...", dim=True)

    socket.messages.subscribe(on_message)
    socket.errors.subscribe(lambda e: click.secho(e, fg="red", err=True))
    socket.connection_status.subscribe(
        lambda up: click.secho("connected" if up else "disconnected", fg="green" if up else "yellow")
    )
    socket.connect(token)

    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            if line.strip():
                await socket.send_message({"groupId": group_id, "content": line.strip()})
    finally:
        await socket.disconnect()


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "peerconnect.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


if __name__ == "__main__":
    main()
