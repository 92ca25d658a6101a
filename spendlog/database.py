import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List

from spendlog.core.models import CategoryKind, Transaction
from spendlog.errors import ConflictError, NotFoundError, StoreError, ValidationError
from spendlog.utils import format_year_month, like_pattern, resolve_year_month

logger = logging.getLogger(__name__)

# kind -> (category table, referencing column on transactions)
_CATEGORY_TABLES: Dict[str, tuple[str, str]] = {
    "item": ("item_categories", "item_category_id"),
    "payment": ("payment_categories", "payment_category_id"),
}

_SCHEMA = """
CREATE TABLE IF NOT EXISTS item_categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS payment_categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS transactions (
    transaction_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    transaction_date TEXT NOT NULL,
    item_name TEXT NOT NULL,
    amount REAL NOT NULL,
    item_category_id INTEGER NOT NULL
        REFERENCES item_categories(id) ON DELETE RESTRICT,
    payment_category_id INTEGER NOT NULL
        REFERENCES payment_categories(id) ON DELETE RESTRICT,
    notes TEXT
);
CREATE INDEX IF NOT EXISTS idx_transactions_user_date
    ON transactions (user_id, transaction_date);
"""

_VIEW_QUERY = """
SELECT
    t.transaction_id,
    t.transaction_date,
    t.item_name,
    ic.name AS item_category,
    pc.name AS payment_category,
    t.amount,
    t.notes,
    t.item_category_id,
    t.payment_category_id
FROM transactions t
LEFT JOIN item_categories ic ON t.item_category_id = ic.id
LEFT JOIN payment_categories pc ON t.payment_category_id = pc.id
"""


def _init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(_SCHEMA)


def _casefold(value):
    # SQLite's LOWER() only folds ASCII
    return value.casefold() if isinstance(value, str) else value


@contextmanager
def _connect(db_path: str, timeout: float = 5.0) -> Iterator[sqlite3.Connection]:
    """Open a connection with the schema in place and wrap it in one transaction.

    Integrity errors escaping the block become ``ConflictError``; any other
    ``sqlite3.Error`` becomes ``StoreError``.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        conn = sqlite3.connect(path, timeout=timeout)
    except sqlite3.Error as exc:
        raise StoreError(str(exc)) from exc
    conn.row_factory = sqlite3.Row
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        _init_db(conn)
        with conn:
            yield conn
    except sqlite3.IntegrityError as exc:
        logger.warning("Integrity error on %s: %s", db_path, exc)
        raise ConflictError(str(exc)) from exc
    except sqlite3.Error as exc:
        logger.exception("Query failed on %s", db_path)
        raise StoreError(str(exc)) from exc
    finally:
        conn.close()


def init_db(db_path: str) -> None:
    """Create the tables and indexes if they do not exist yet."""
    with _connect(db_path):
        pass


def _category_table(kind: str) -> tuple[str, str]:
    try:
        return _CATEGORY_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown category kind '{kind}'") from None


def _row_to_view(row: sqlite3.Row) -> Dict[str, object]:
    view = dict(row)
    view["amount"] = float(view["amount"])
    return view


def _fetch_view(conn: sqlite3.Connection, user_id: str, transaction_id: int) -> Dict[str, object] | None:
    row = conn.execute(
        _VIEW_QUERY + " WHERE t.transaction_id = ? AND t.user_id = ?",
        (transaction_id, user_id),
    ).fetchone()
    return _row_to_view(row) if row else None


def _ensure_category(conn: sqlite3.Connection, kind: CategoryKind, user_id: str, category_id: int) -> None:
    table, _ = _category_table(kind)
    row = conn.execute(
        f"SELECT 1 FROM {table} WHERE id = ? AND user_id = ?",
        (category_id, user_id),
    ).fetchone()
    if row is None:
        raise ValidationError(f"Unknown {kind} category: {category_id}")


def _transaction_params(tx: Transaction) -> tuple:
    item_name = tx.item_name.strip()
    if not item_name:
        raise ValidationError("item_name is required")
    notes = tx.notes.strip() if tx.notes else None
    return (
        tx.date.isoformat(),
        item_name,
        float(tx.amount),
        tx.item_category_id,
        tx.payment_category_id,
        notes or None,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_transactions(
    db_path: str,
    user_id: str,
    year: int | None = None,
    month: int | None = None,
    search: str | None = None,
    item_category_ids: Iterable[int] | None = None,
) -> List[Dict[str, object]]:
    """Return one month of a user's transactions joined with category names.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    user_id:
        Owner of the rows; other users' rows are never returned.
    year, month:
        The month to list. The current month is used unless both are given.
    search:
        Optional case-insensitive substring matched against item name or notes.
        Surrounding whitespace is trimmed; a blank term applies no filter.
    item_category_ids:
        Optional set of item category ids; empty means no restriction.

    Rows are ordered newest first: by date, then by id for same-day entries.
    """
    year, month = resolve_year_month(year, month)
    conditions = ["t.user_id = ?", "strftime('%Y-%m', t.transaction_date) = ?"]
    params: list[object] = [user_id, format_year_month(year, month)]

    term = search.strip() if search else ""
    if term:
        conditions.append(
            "(casefold(t.item_name) LIKE ? ESCAPE '\\' OR casefold(t.notes) LIKE ? ESCAPE '\\')"
        )
        pattern = like_pattern(term)
        params.extend([pattern, pattern])

    category_ids = sorted(set(item_category_ids or []))
    if category_ids:
        placeholders = ", ".join("?" for _ in category_ids)
        conditions.append(f"t.item_category_id IN ({placeholders})")
        params.extend(category_ids)

    query = (
        _VIEW_QUERY
        + " WHERE "
        + " AND ".join(conditions)
        + " ORDER BY t.transaction_date DESC, t.transaction_id DESC"
    )
    with _connect(db_path) as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_view(row) for row in rows]


def get_transaction(db_path: str, user_id: str, transaction_id: int) -> Dict[str, object]:
    with _connect(db_path) as conn:
        view = _fetch_view(conn, user_id, transaction_id)
    if view is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return view


def monthly_summary(
    db_path: str,
    user_id: str,
    year: int | None = None,
    month: int | None = None,
) -> Dict[str, object]:
    """Income, expense and net totals for a month, with per-item-category totals.

    Negative amounts count as income and positive amounts as expense.
    """
    year, month = resolve_year_month(year, month)
    year_month = format_year_month(year, month)
    where = "WHERE t.user_id = ? AND strftime('%Y-%m', t.transaction_date) = ?"
    params = [user_id, year_month]

    with _connect(db_path) as conn:
        totals = conn.execute(
            f"""
            SELECT COALESCE(SUM(CASE WHEN amount < 0 THEN -amount ELSE 0 END), 0.0),
                   COALESCE(SUM(CASE WHEN amount > 0 THEN amount ELSE 0 END), 0.0),
                   COUNT(*)
            FROM transactions t
            {where}
            """,
            params,
        ).fetchone()
        category_rows = conn.execute(
            f"""
            SELECT t.item_category_id, ic.name, SUM(t.amount) AS total, COUNT(*)
            FROM transactions t
            LEFT JOIN item_categories ic ON t.item_category_id = ic.id
            {where}
            GROUP BY t.item_category_id, ic.name
            ORDER BY total DESC, t.item_category_id
            """,
            params,
        ).fetchall()

    income = float(totals[0] or 0.0)
    expense = float(totals[1] or 0.0)
    return {
        "year_month": year_month,
        "income": income,
        "expense": expense,
        "net": income - expense,
        "transactions": int(totals[2] or 0),
        "categories": [
            {
                "item_category_id": row[0],
                "item_category": row[1],
                "total": float(row[2] or 0.0),
                "transactions": int(row[3]),
            }
            for row in category_rows
        ],
    }


def list_categories(db_path: str, kind: CategoryKind, user_id: str) -> List[Dict[str, object]]:
    table, _ = _category_table(kind)
    with _connect(db_path) as conn:
        rows = conn.execute(
            f"SELECT id, name FROM {table} WHERE user_id = ? ORDER BY name, id",
            (user_id,),
        ).fetchall()
    return [dict(row) for row in rows]


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_transaction(db_path: str, user_id: str, tx: Transaction) -> Dict[str, object]:
    """Insert ``tx`` for ``user_id`` and return the stored row with category names.

    Both categories must exist and belong to the same user.
    """
    params = _transaction_params(tx)
    with _connect(db_path) as conn:
        _ensure_category(conn, "item", user_id, tx.item_category_id)
        _ensure_category(conn, "payment", user_id, tx.payment_category_id)
        cur = conn.execute(
            """
            INSERT INTO transactions
            (user_id, transaction_date, item_name, amount,
             item_category_id, payment_category_id, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (user_id, *params),
        )
        view = _fetch_view(conn, user_id, cur.lastrowid)
    logger.info("Created transaction %s for user %s", view["transaction_id"], user_id)
    return view


def update_transaction(
    db_path: str,
    user_id: str,
    transaction_id: int,
    tx: Transaction,
) -> Dict[str, object]:
    """Overwrite a user's transaction in place.

    A transaction owned by someone else is reported as missing, before the
    category references are looked at.
    """
    params = _transaction_params(tx)
    with _connect(db_path) as conn:
        exists = conn.execute(
            "SELECT 1 FROM transactions WHERE transaction_id = ? AND user_id = ?",
            (transaction_id, user_id),
        ).fetchone()
        if exists is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        _ensure_category(conn, "item", user_id, tx.item_category_id)
        _ensure_category(conn, "payment", user_id, tx.payment_category_id)
        conn.execute(
            """
            UPDATE transactions
            SET transaction_date = ?, item_name = ?, amount = ?,
                item_category_id = ?, payment_category_id = ?, notes = ?
            WHERE transaction_id = ? AND user_id = ?
            """,
            (*params, transaction_id, user_id),
        )
        view = _fetch_view(conn, user_id, transaction_id)
    logger.info("Updated transaction %s for user %s", transaction_id, user_id)
    return view


def delete_transaction(db_path: str, user_id: str, transaction_id: int) -> None:
    with _connect(db_path) as conn:
        cur = conn.execute(
            "DELETE FROM transactions WHERE transaction_id = ? AND user_id = ?",
            (transaction_id, user_id),
        )
        deleted = cur.rowcount
    if deleted == 0:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    logger.info("Deleted transaction %s for user %s", transaction_id, user_id)


def _clean_name(name: str | None) -> str:
    clean = (name or "").strip()
    if not clean:
        raise ValidationError("Category name is required")
    return clean


def create_category(db_path: str, kind: CategoryKind, user_id: str, name: str) -> Dict[str, object]:
    table, _ = _category_table(kind)
    clean = _clean_name(name)
    with _connect(db_path) as conn:
        cur = conn.execute(
            f"INSERT INTO {table} (user_id, name) VALUES (?, ?)",
            (user_id, clean),
        )
        category_id = cur.lastrowid
    logger.info("Created %s category %s for user %s", kind, category_id, user_id)
    return {"id": category_id, "name": clean}


def rename_category(
    db_path: str,
    kind: CategoryKind,
    user_id: str,
    category_id: int,
    name: str,
) -> Dict[str, object]:
    table, _ = _category_table(kind)
    clean = _clean_name(name)
    with _connect(db_path) as conn:
        cur = conn.execute(
            f"UPDATE {table} SET name = ? WHERE id = ? AND user_id = ?",
            (clean, category_id, user_id),
        )
        updated = cur.rowcount
    if updated == 0:
        raise NotFoundError(f"{kind.capitalize()} category {category_id} not found")
    return {"id": category_id, "name": clean}


def delete_category(db_path: str, kind: CategoryKind, user_id: str, category_id: int) -> None:
    """Delete a category unless one of the user's transactions still uses it.

    The usage check and the delete are one statement, so a transaction
    created concurrently cannot slip in between them.
    """
    table, column = _category_table(kind)
    with _connect(db_path) as conn:
        cur = conn.execute(
            f"""
            DELETE FROM {table}
            WHERE id = ? AND user_id = ?
              AND NOT EXISTS (
                  SELECT 1 FROM transactions
                  WHERE {column} = ? AND user_id = ?
              )
            """,
            (category_id, user_id, category_id, user_id),
        )
        if cur.rowcount == 0:
            exists = conn.execute(
                f"SELECT 1 FROM {table} WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            ).fetchone()
            if exists:
                raise ConflictError(
                    "Cannot delete category: it is currently in use by one or more transactions."
                )
            raise NotFoundError(f"{kind.capitalize()} category {category_id} not found")
    logger.info("Deleted %s category %s for user %s", kind, category_id, user_id)
