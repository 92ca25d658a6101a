from __future__ import annotations

import anyio
from mcp.server.fastmcp import FastMCP

from pathlib import Path

from spendlog.database import list_categories, list_transactions, monthly_summary

server = FastMCP(name="Spendlog", instructions="Read-only access to Spendlog transactions")


def _require_db(db_path: str) -> None:
    if not Path(db_path).exists():
        raise FileNotFoundError(f"Database not found: {db_path}")


@server.tool(
    name="get_transactions",
    description="List one month of a user's transactions, newest first",
)
async def get_transactions(
    db_path: str,
    user_id: str,
    year: int | None = None,
    month: int | None = None,
    search: str | None = None,
) -> list[dict]:
    """Return the month's transactions for ``user_id`` from ``db_path``.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    user_id:
        Owner of the transactions.
    year, month:
        Month to list; the current month when either is omitted.
    search:
        Optional case-insensitive text matched against item name or notes.
    """
    _require_db(db_path)

    def _run() -> list[dict]:
        return list_transactions(db_path, user_id, year=year, month=month, search=search)

    return await anyio.to_thread.run_sync(_run)


@server.tool(
    name="get_monthly_summary",
    description="Income, expense and net totals for a month, with per-category totals",
)
async def get_monthly_summary(
    db_path: str,
    user_id: str,
    year: int | None = None,
    month: int | None = None,
) -> dict:
    _require_db(db_path)

    def _run() -> dict:
        return monthly_summary(db_path, user_id, year=year, month=month)

    return await anyio.to_thread.run_sync(_run)


@server.tool(
    name="get_categories",
    description="List a user's item or payment categories",
)
async def get_categories(db_path: str, user_id: str, kind: str = "item") -> list[dict]:
    if kind not in ("item", "payment"):
        raise ValueError(f"kind must be 'item' or 'payment', got {kind!r}")
    _require_db(db_path)

    def _run() -> list[dict]:
        return list_categories(db_path, kind, user_id)

    return await anyio.to_thread.run_sync(_run)


def main() -> None:
    server.run()


if __name__ == "__main__":
    main()
