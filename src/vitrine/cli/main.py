"""Vitrine CLI — browse and manage the catalog from a terminal.

Usage:
    vitrine serve                                # Run the API (uvicorn)
    vitrine token                                # Mint a development JWT
    vitrine products -c eletronicos -s amazon    # List products
    vitrine show 3f2a...                         # One product as JSON
    vitrine delete 3f2a...                       # Delete (needs VITRINE_TOKEN)
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

from vitrine import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("VITRINE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Vitrine backend."""
    headers = {}
    token = os.environ.get("VITRINE_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


def _fail(resp: httpx.Response) -> None:
    try:
        detail = resp.json().get("detail")
    except ValueError:
        detail = resp.text
    click.secho(f"Error {resp.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="vitrine")
def main():
    """Vitrine — product catalog backend."""


# ---------------------------------------------------------------------------
# vitrine serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: VITRINE_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: VITRINE_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from vitrine.config import settings

    uvicorn.run(
        "vitrine.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# vitrine token
# ---------------------------------------------------------------------------


@main.command()
@click.option("--subject", "-s", default="admin", help="Token subject")
@click.option("--minutes", "-m", type=int, default=None, help="Lifetime in minutes")
def token(subject: str, minutes: Optional[int]):
    """Print a signed access token (uses VITRINE_JWT_SECRET)."""
    from vitrine.auth.jwt import create_access_token

    click.echo(create_access_token(subject, expires_minutes=minutes))


# ---------------------------------------------------------------------------
# vitrine products
# ---------------------------------------------------------------------------


@main.command()
@click.option("--category", "-c", default=None, help="Category filter")
@click.option("--store", "-s", default=None, help="Store filter")
@click.option("--search", "-q", default="", help="Search in name/description")
@click.option("--page", type=int, default=1)
@click.option("--page-size", type=int, default=12)
def products(category, store, search, page, page_size):
    """List products."""
    asyncio.run(_products_impl(category, store, search, page, page_size))


async def _products_impl(category, store, search, page, page_size):
    params = {"page": page, "pageSize": page_size}
    if category:
        params["category"] = category
    if store:
        params["store"] = store
    if search:
        params["search"] = search

    async with _client() as c:
        r = await c.get("/api/v1/products", params=params)
        if r.status_code != 200:
            _fail(r)
        body = r.json()

    items = body["data"]
    if not items:
        click.echo("No products found.")
        return

    click.secho(f"Products {len(items)} of {body['total']}:", bold=True)
    click.echo()
    for p in items:
        click.echo(
            f"  {p['id'][:8]}  {p['name'][:40]:40s}  "
            f"R$ {p['price']:>10.2f}  {p['category']:12s}  {p['store']}"
        )


# ---------------------------------------------------------------------------
# vitrine show / delete
# ---------------------------------------------------------------------------


@main.command()
@click.argument("product_id")
def show(product_id: str):
    """Show one product as JSON."""
    asyncio.run(_show_impl(product_id))


async def _show_impl(product_id: str):
    async with _client() as c:
        r = await c.get(f"/api/v1/products/{product_id}")
        if r.status_code != 200:
            _fail(r)
        click.echo(_pretty_json(r.json()))


@main.command()
@click.argument("product_id")
@click.confirmation_option(prompt="Delete this product?")
def delete(product_id: str):
    """Delete a product (connected storefronts update immediately)."""
    asyncio.run(_delete_impl(product_id))


async def _delete_impl(product_id: str):
    async with _client() as c:
        r = await c.delete(f"/api/v1/products/{product_id}")
        if r.status_code != 200:
            _fail(r)
    click.secho(f"Deleted {product_id}", fg="green")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
