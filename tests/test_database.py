from datetime import date

import pytest

from spendlog.core.models import Transaction
from spendlog.database import (
    create_category,
    create_transaction,
    delete_category,
    delete_transaction,
    get_transaction,
    list_categories,
    list_transactions,
    monthly_summary,
    rename_category,
    update_transaction,
)
from spendlog.errors import ConflictError, NotFoundError, StoreError, ValidationError


def _seed(db_path, user_id="alice"):
    db = str(db_path)
    food = create_category(db, "item", user_id, "Food")
    salary = create_category(db, "item", user_id, "Salary")
    cash = create_category(db, "payment", user_id, "Cash")
    card = create_category(db, "payment", user_id, "Card")
    txs = [
        Transaction(date(2025, 1, 3), "Coffee Break", 120, food["id"], cash["id"]),
        Transaction(date(2025, 1, 10), "Lunch", 250, food["id"], card["id"], notes="with team"),
        Transaction(date(2025, 1, 25), "January pay", -50000, salary["id"], card["id"]),
        Transaction(date(2025, 2, 1), "Groceries", 900, food["id"], card["id"], notes="weekly BREAK restock"),
    ]
    created = [create_transaction(db, user_id, tx) for tx in txs]
    return {
        "food": food,
        "salary": salary,
        "cash": cash,
        "card": card,
        "transactions": created,
    }


def test_create_transaction_returns_category_names(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)

    row = seeded["transactions"][0]
    assert row["transaction_date"] == "2025-01-03"
    assert row["item_name"] == "Coffee Break"
    assert row["amount"] == 120.0
    assert row["item_category"] == "Food"
    assert row["payment_category"] == "Cash"
    assert row["item_category_id"] == seeded["food"]["id"]
    assert row["notes"] is None


def test_create_then_list_round_trip_trims_names(tmp_path):
    db_path = str(tmp_path / "spend.db")
    food = create_category(db_path, "item", "alice", "  Food  ")
    cash = create_category(db_path, "payment", "alice", "Cash")
    assert food["name"] == "Food"

    created = create_transaction(
        db_path,
        "alice",
        Transaction(date(2025, 3, 7), "  Bus ticket ", 32.5, food["id"], cash["id"], notes=" commute "),
    )

    rows = list_transactions(db_path, "alice", year=2025, month=3)
    assert rows == [created]
    assert rows[0]["item_name"] == "Bus ticket"
    assert rows[0]["notes"] == "commute"
    assert rows[0]["amount"] == 32.5


def test_list_transactions_scopes_to_month_and_user(tmp_path):
    db_path = str(tmp_path / "spend.db")
    _seed(db_path, "alice")
    _seed(db_path, "bob")

    january = list_transactions(db_path, "alice", year=2025, month=1)
    assert [tx["item_name"] for tx in january] == ["January pay", "Lunch", "Coffee Break"]
    assert all(tx["transaction_date"].startswith("2025-01") for tx in january)

    alice_ids = {tx["transaction_id"] for tx in january}
    bob_ids = {tx["transaction_id"] for tx in list_transactions(db_path, "bob", year=2025, month=1)}
    assert alice_ids.isdisjoint(bob_ids)

    assert list_transactions(db_path, "carol", year=2025, month=1) == []


def test_list_transactions_defaults_to_current_month(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)
    today = date.today()
    create_transaction(
        db_path,
        "alice",
        Transaction(today, "Today", 1, seeded["food"]["id"], seeded["cash"]["id"]),
    )

    rows = list_transactions(db_path, "alice")
    assert [tx["item_name"] for tx in rows] == ["Today"]

    # A lone year or month is ignored in favour of the current month.
    assert list_transactions(db_path, "alice", year=2025) == rows


def test_search_is_case_insensitive_on_name_or_notes(tmp_path):
    db_path = str(tmp_path / "spend.db")
    _seed(db_path)

    hits = list_transactions(db_path, "alice", year=2025, month=1, search="break")
    assert [tx["item_name"] for tx in hits] == ["Coffee Break"]

    by_note = list_transactions(db_path, "alice", year=2025, month=1, search="TEAM")
    assert [tx["item_name"] for tx in by_note] == ["Lunch"]

    february = list_transactions(db_path, "alice", year=2025, month=2, search="break")
    assert [tx["item_name"] for tx in february] == ["Groceries"]

    assert list_transactions(db_path, "alice", year=2025, month=1, search="xyz") == []
    assert len(list_transactions(db_path, "alice", year=2025, month=1, search="   ")) == 3


def test_search_treats_like_wildcards_literally(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)
    create_transaction(
        db_path,
        "alice",
        Transaction(date(2025, 1, 4), "100% juice", 60, seeded["food"]["id"], seeded["cash"]["id"]),
    )

    assert [tx["item_name"] for tx in list_transactions(db_path, "alice", year=2025, month=1, search="0%")] == [
        "100% juice"
    ]
    assert list_transactions(db_path, "alice", year=2025, month=1, search="_") == []


def test_search_folds_non_ascii_case(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)
    create_transaction(
        db_path,
        "alice",
        Transaction(date(2025, 1, 5), "CAFÉ LATTE", 180, seeded["food"]["id"], seeded["cash"]["id"]),
    )

    hits = list_transactions(db_path, "alice", year=2025, month=1, search="café")
    assert [tx["item_name"] for tx in hits] == ["CAFÉ LATTE"]


def test_same_day_transactions_sort_by_id_descending(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)
    food, cash = seeded["food"]["id"], seeded["cash"]["id"]

    # Seed created ids 1-4; ids 5 and 7 land on the same day, 6 on another.
    fifth = create_transaction(db_path, "alice", Transaction(date(2025, 4, 9), "Tea", 40, food, cash))
    create_transaction(db_path, "alice", Transaction(date(2025, 4, 2), "Bread", 55, food, cash))
    seventh = create_transaction(db_path, "alice", Transaction(date(2025, 4, 9), "Cake", 80, food, cash))
    assert (fifth["transaction_id"], seventh["transaction_id"]) == (5, 7)

    rows = list_transactions(db_path, "alice", year=2025, month=4)
    assert [tx["transaction_id"] for tx in rows] == [7, 5, 6]


def test_item_category_filter(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)

    food_only = list_transactions(
        db_path, "alice", year=2025, month=1, item_category_ids=[seeded["food"]["id"]]
    )
    assert {tx["item_category"] for tx in food_only} == {"Food"}
    assert len(food_only) == 2

    both = list_transactions(
        db_path,
        "alice",
        year=2025,
        month=1,
        item_category_ids=[seeded["food"]["id"], seeded["salary"]["id"]],
    )
    assert len(both) == 3
    assert len(list_transactions(db_path, "alice", year=2025, month=1, item_category_ids=[])) == 3


def test_create_transaction_rejects_foreign_or_unknown_category(tmp_path):
    db_path = str(tmp_path / "spend.db")
    alice = _seed(db_path, "alice")
    bob = _seed(db_path, "bob")

    with pytest.raises(ValidationError, match="item category"):
        create_transaction(
            db_path,
            "alice",
            Transaction(date(2025, 1, 1), "Snack", 10, bob["food"]["id"], alice["cash"]["id"]),
        )
    with pytest.raises(ValidationError, match="payment category"):
        create_transaction(
            db_path,
            "alice",
            Transaction(date(2025, 1, 1), "Snack", 10, alice["food"]["id"], 999),
        )
    with pytest.raises(ValidationError, match="item_name"):
        create_transaction(
            db_path,
            "alice",
            Transaction(date(2025, 1, 1), "   ", 10, alice["food"]["id"], alice["cash"]["id"]),
        )


def test_update_transaction(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)
    lunch = seeded["transactions"][1]

    updated = update_transaction(
        db_path,
        "alice",
        lunch["transaction_id"],
        Transaction(date(2025, 1, 11), "Dinner", 300, seeded["food"]["id"], seeded["cash"]["id"]),
    )
    assert updated["transaction_id"] == lunch["transaction_id"]
    assert updated["item_name"] == "Dinner"
    assert updated["payment_category"] == "Cash"
    assert updated["notes"] is None
    assert get_transaction(db_path, "alice", lunch["transaction_id"]) == updated


def test_other_users_transactions_are_not_found(tmp_path):
    db_path = str(tmp_path / "spend.db")
    alice = _seed(db_path, "alice")
    bob = _seed(db_path, "bob")
    target = alice["transactions"][0]["transaction_id"]

    with pytest.raises(NotFoundError):
        update_transaction(
            db_path,
            "bob",
            target,
            Transaction(date(2025, 1, 3), "Hijack", 1, bob["food"]["id"], bob["cash"]["id"]),
        )
    # Even with the owner's category ids the answer is NotFound, not a validation error.
    with pytest.raises(NotFoundError):
        update_transaction(
            db_path,
            "bob",
            target,
            Transaction(date(2025, 1, 3), "Hijack", 1, alice["food"]["id"], alice["cash"]["id"]),
        )
    with pytest.raises(NotFoundError):
        delete_transaction(db_path, "bob", target)
    with pytest.raises(NotFoundError):
        get_transaction(db_path, "bob", target)

    assert get_transaction(db_path, "alice", target)["item_name"] == "Coffee Break"


def test_delete_transaction(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)
    target = seeded["transactions"][0]["transaction_id"]

    delete_transaction(db_path, "alice", target)
    assert target not in {tx["transaction_id"] for tx in list_transactions(db_path, "alice", year=2025, month=1)}

    with pytest.raises(NotFoundError):
        delete_transaction(db_path, "alice", target)


def test_delete_category_in_use_conflicts(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)

    with pytest.raises(ConflictError, match="in use"):
        delete_category(db_path, "item", "alice", seeded["food"]["id"])
    with pytest.raises(ConflictError):
        delete_category(db_path, "payment", "alice", seeded["card"]["id"])

    assert seeded["food"] in list_categories(db_path, "item", "alice")


def test_delete_unreferenced_category(tmp_path):
    db_path = str(tmp_path / "spend.db")
    _seed(db_path)
    unused = create_category(db_path, "payment", "alice", "Voucher")

    delete_category(db_path, "payment", "alice", unused["id"])
    assert unused not in list_categories(db_path, "payment", "alice")

    with pytest.raises(NotFoundError):
        delete_category(db_path, "payment", "alice", unused["id"])


def test_category_becomes_deletable_once_unused(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)
    salary_tx = seeded["transactions"][2]

    delete_transaction(db_path, "alice", salary_tx["transaction_id"])
    delete_category(db_path, "item", "alice", seeded["salary"]["id"])
    assert [c["name"] for c in list_categories(db_path, "item", "alice")] == ["Food"]


def test_other_users_categories_are_not_found(tmp_path):
    db_path = str(tmp_path / "spend.db")
    alice = _seed(db_path, "alice")
    unused = create_category(db_path, "item", "alice", "Books")

    with pytest.raises(NotFoundError):
        rename_category(db_path, "item", "bob", alice["food"]["id"], "Mine")
    with pytest.raises(NotFoundError):
        delete_category(db_path, "item", "bob", unused["id"])
    assert list_categories(db_path, "item", "bob") == []


def test_category_names_are_trimmed_and_required(tmp_path):
    db_path = str(tmp_path / "spend.db")
    seeded = _seed(db_path)

    renamed = rename_category(db_path, "item", "alice", seeded["food"]["id"], "  Meals ")
    assert renamed == {"id": seeded["food"]["id"], "name": "Meals"}
    assert list_transactions(db_path, "alice", year=2025, month=1)[-1]["item_category"] == "Meals"

    with pytest.raises(ValidationError):
        create_category(db_path, "item", "alice", "   ")
    with pytest.raises(ValidationError):
        rename_category(db_path, "item", "alice", seeded["food"]["id"], "")
    with pytest.raises(ValueError):
        list_categories(db_path, "merchant", "alice")


def test_list_categories_sorted_by_name(tmp_path):
    db_path = str(tmp_path / "spend.db")
    for name in ["Rent", "food", "Books"]:
        create_category(db_path, "item", "alice", name)

    assert [c["name"] for c in list_categories(db_path, "item", "alice")] == ["Books", "Rent", "food"]


def test_monthly_summary(tmp_path):
    db_path = str(tmp_path / "spend.db")
    _seed(db_path)

    summary = monthly_summary(db_path, "alice", year=2025, month=1)
    assert summary["year_month"] == "2025-01"
    assert summary["income"] == 50000.0
    assert summary["expense"] == 370.0
    assert summary["net"] == 49630.0
    assert summary["transactions"] == 3
    assert [row["item_category"] for row in summary["categories"]] == ["Food", "Salary"]
    assert summary["categories"][0]["total"] == 370.0
    assert summary["categories"][0]["transactions"] == 2

    empty = monthly_summary(db_path, "alice", year=2024, month=12)
    assert empty["transactions"] == 0
    assert empty["net"] == 0.0
    assert empty["categories"] == []


def test_invalid_month_is_rejected(tmp_path):
    db_path = str(tmp_path / "spend.db")

    with pytest.raises(ValidationError, match="month"):
        list_transactions(db_path, "alice", year=2025, month=13)


def test_unreadable_database_raises_store_error(tmp_path):
    db_file = tmp_path / "spend.db"
    db_file.write_bytes(b"not a sqlite database" * 100)

    with pytest.raises(StoreError, match="not a database"):
        list_categories(str(db_file), "item", "alice")
