"""
Tests for the TransactionStore: persistence, mutations, derived values.

Storage is the in-memory backend unless a test needs real files.
"""

import json

import pytest
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from finanz.analytics import BudgetLevel, BudgetPeriod, ReserveStatus
from finanz.audit import AuditLogger
from finanz.config import Settings, StorageSettings
from finanz.models.audit import AuditEventType
from finanz.models.category import DEFAULT_CATEGORIES, Category, CategoryError
from finanz.models.receipt import ParsedReceipt
from finanz.models.transaction import FilterPeriod, Transaction, TransactionType, UserMode
from finanz.services.storage import (
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    NotFoundError,
    StorageError,
)
from finanz.store import StoreChange, TransactionStore


# Friday
NOW = datetime(2024, 3, 15, 14, 30)


def make_store(storage: Optional[KeyValueStore] = None) -> TransactionStore:
    return TransactionStore(
        storage if storage is not None else InMemoryStore(),
        settings=Settings(),
        audit_logger=AuditLogger(history_size=100),
        clock=lambda: NOW,
    )


def expense(amount, when=NOW, category="Groceries", **extra) -> Transaction:
    return Transaction(
        amount=Decimal(amount),
        category=category,
        type=TransactionType.EXPENSE,
        date=when,
        **extra,
    )


def income(amount, when=NOW, category="Salary", **extra) -> Transaction:
    return Transaction(
        amount=Decimal(amount),
        category=category,
        type=TransactionType.INCOME,
        date=when,
        **extra,
    )


def event_types(store: TransactionStore) -> list[AuditEventType]:
    return [e.event_type for e in store.audit_logger.recent_events(100)]


class FailingStore(InMemoryStore):
    """Storage whose reads and/or writes always fail."""

    def __init__(self, fail_reads=False, fail_writes=True, initial=None):
        super().__init__(initial)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def read(self, key):
        if self.fail_reads:
            raise StorageError("device locked")
        return super().read(key)

    def write(self, key, data):
        if self.fail_writes:
            raise StorageError("disk full")
        super().write(key, data)


class TestLoad:
    """Tests for restoring snapshots."""

    def test_empty_storage_gives_defaults(self):
        """Test a first launch starts from defaults."""
        store = make_store()
        store.load()
        assert store.transactions == []
        assert store.categories.all_categories() == list(DEFAULT_CATEGORIES)
        assert store.user_mode is UserMode.BASIC
        assert store.budget.monthly == Decimal("2000")
        assert store.budget.weekly == Decimal("500")
        assert AuditEventType.SNAPSHOT_LOADED in event_types(store)

    def test_round_trip(self):
        """Test everything written is read back by a new store."""
        storage = InMemoryStore()
        store = make_store(storage)
        food = store.add_category(Category(name="Food", emoji="🍎"))
        first = store.add_transaction(expense("45.50", category_id=food.id, category="Food"))
        second = store.add_transaction(
            income("121", vat_rate=Decimal("0.21"), note="Invoice 7")
        )
        store.save_user_mode(UserMode.ZZP)
        store.save_budget(monthly=Decimal("1800"), weekly=Decimal("450"))

        reloaded = make_store(storage)
        reloaded.load()

        assert reloaded.transactions == [first, second]
        assert reloaded.categories.custom == [food]
        assert reloaded.user_mode is UserMode.ZZP
        assert reloaded.budget.monthly == Decimal("1800")
        assert reloaded.budget.weekly == Decimal("450")

    def test_vat_split_survives_round_trip(self):
        """Test stored VAT values are not recomputed on load."""
        storage = InMemoryStore()
        store = make_store(storage)
        original = store.add_transaction(expense("45.50", vat_rate=Decimal("0.21")))

        reloaded = make_store(storage)
        reloaded.load()
        loaded = reloaded.transactions[0]

        assert loaded.amount_excl_vat == original.amount_excl_vat
        assert loaded.vat_amount == original.vat_amount
        assert loaded.amount_excl_vat + loaded.vat_amount == Decimal("45.50")

    def test_corrupt_key_keeps_default(self):
        """Test one unreadable key does not affect the others."""
        storage = InMemoryStore({
            "transactions": b"{not json",
            "userMode": b'"zzp"',
            "weeklyBudget": b'"-10"',
        })
        store = make_store(storage)
        store.load()

        assert store.transactions == []
        assert store.user_mode is UserMode.ZZP
        assert store.budget.weekly == Decimal("500")
        assert event_types(store).count(AuditEventType.SNAPSHOT_LOAD_FAILED) == 2

    def test_wrong_shape_keeps_default(self):
        """Test a blob of the wrong JSON type is ignored."""
        storage = InMemoryStore({
            "transactions": b'{"amount": 1}',
            "userMode": b"42",
            "customCategories": b'"Food"',
        })
        store = make_store(storage)
        store.load()
        assert store.transactions == []
        assert store.user_mode is UserMode.BASIC
        assert store.categories.custom == []

    def test_malformed_entry_is_skipped(self):
        """Test a single bad entry does not drop the whole list."""
        good = expense("10").model_dump(mode="json")
        bad = dict(good, id=str(uuid4()), amount="-3")
        storage = InMemoryStore({"transactions": json.dumps([good, bad]).encode()})
        store = make_store(storage)
        store.load()
        assert [str(t.id) for t in store.transactions] == [good["id"]]

    def test_out_of_range_entries_are_skipped(self):
        """Test infinite amounts and unrepresentable dates drop only their row."""
        good = expense("10").model_dump(mode="json")
        rows = [
            dict(
                good, id=str(uuid4()), amount="Infinity", vat_rate="0.21",
                amount_excl_vat=None, vat_amount=None,
            ),
            dict(good, id=str(uuid4()), amount="sNaN"),
            dict(good, id=str(uuid4()), date=1e300),
            good,
        ]
        storage = InMemoryStore({"transactions": json.dumps(rows).encode()})
        store = make_store(storage)
        store.load()
        assert [str(t.id) for t in store.transactions] == [good["id"]]

    def test_unreadable_storage_never_raises(self):
        """Test the store stays usable when every read fails."""
        store = make_store(FailingStore(fail_reads=True, fail_writes=False))
        store.load()
        assert store.transactions == []
        assert event_types(store).count(AuditEventType.SNAPSHOT_LOAD_FAILED) == 5
        store.add_transaction(expense("5"))
        assert store.total_expense() == Decimal("5")

    def test_legacy_mobile_snapshot(self):
        """Test data written by the mobile app loads."""
        legacy = [
            {
                "id": str(uuid4()),
                "amount": 121.0,
                "category": "Salary",
                "type": "Ingreso",
                "note": "Factuur",
                "date": 732196800,
                "btwRate": 0.21,
                "amountExclBTW": 100.0,
                "btwAmount": 21.0,
            },
            {
                "id": str(uuid4()),
                "amount": 45.5,
                "category": "Groceries",
                "type": "Gasto",
                "note": None,
                "date": 732283200,
            },
        ]
        storage = InMemoryStore({
            "transactions": json.dumps(legacy).encode(),
            "userMode": json.dumps("ZZP / Autónomo").encode(),
            "monthlyBudget": b"1500",
            "customCategories": json.dumps([
                {"id": str(uuid4()), "name": "Eten", "emoji": "🍞", "parentID": None},
            ]).encode(),
        })
        store = make_store(storage)
        store.load()

        assert len(store.transactions) == 2
        assert store.total_income() == Decimal("121")
        assert store.user_mode is UserMode.ZZP
        assert store.budget.monthly == Decimal("1500")
        assert store.vat_summary().collected == Decimal("21")
        assert store.categories.custom[0].name == "Eten"

    def test_load_notifies(self):
        """Test subscribers hear about a load."""
        store = make_store()
        changes = []
        store.subscribe(changes.append)
        store.load()
        assert changes == [StoreChange.LOADED]


class TestTransactions:
    """Tests for transaction mutations."""

    def test_add_persists_snapshot(self):
        """Test each add writes the full list."""
        storage = InMemoryStore()
        store = make_store(storage)
        store.add_transaction(expense("1"))
        store.add_transaction(expense("2"))
        saved = json.loads(storage.read("transactions"))
        assert [entry["amount"] for entry in saved] == ["1", "2"]
        assert storage.write_counts["transactions"] == 2

    def test_add_duplicate_id_rejected(self):
        """Test the same transaction cannot be added twice."""
        store = make_store()
        tx = store.add_transaction(expense("1"))
        with pytest.raises(ValueError, match="already exists"):
            store.add_transaction(tx)

    def test_update_replaces_by_id(self):
        """Test an edited copy replaces the original in place."""
        store = make_store()
        first = store.add_transaction(expense("10"))
        store.add_transaction(expense("20"))
        edited = first.with_changes(amount=Decimal("12"), note="corrected")

        store.update_transaction(edited)

        assert store.transactions[0] == edited
        assert store.get_transaction(first.id).note == "corrected"
        assert len(store.transactions) == 2

    def test_update_unknown_raises(self):
        """Test updating a missing transaction fails loudly."""
        store = make_store()
        with pytest.raises(NotFoundError):
            store.update_transaction(expense("10"))

    def test_delete(self):
        """Test delete by id."""
        store = make_store()
        tx = store.add_transaction(expense("10"))
        assert store.delete_transaction(tx.id) is True
        assert store.transactions == []
        assert store.delete_transaction(tx.id) is False

    def test_write_failure_is_not_fatal(self):
        """Test a failed write keeps the in-memory change and is logged."""
        store = make_store(FailingStore(fail_writes=True))
        store.add_transaction(expense("10"))
        assert len(store.transactions) == 1
        assert AuditEventType.SNAPSHOT_SAVE_FAILED in event_types(store)

    def test_mutations_are_audited(self):
        """Test add, update and delete produce audit events."""
        store = make_store()
        tx = store.add_transaction(expense("10"))
        store.update_transaction(tx.with_changes(note="x"))
        store.delete_transaction(tx.id)
        assert event_types(store)[:3] == [
            AuditEventType.TRANSACTION_DELETED,
            AuditEventType.TRANSACTION_UPDATED,
            AuditEventType.TRANSACTION_ADDED,
        ]


class TestCategories:
    """Tests for category mutations through the store."""

    def test_rename_updates_referencing_transactions(self):
        """Test a rename reaches transactions linked by id only."""
        storage = InMemoryStore()
        store = make_store(storage)
        food = store.add_category(Category(name="Food"))
        linked = store.add_transaction(expense("10", category="Food", category_id=food.id))
        legacy = store.add_transaction(expense("20", category="Food"))

        store.update_category(food.model_copy(update={"name": "Eten"}))

        assert store.get_transaction(linked.id).category == "Eten"
        assert store.get_transaction(legacy.id).category == "Food"

        reloaded = make_store(storage)
        reloaded.load()
        assert reloaded.get_transaction(linked.id).category == "Eten"
        assert reloaded.categories.custom[0].name == "Eten"

    def test_emoji_change_leaves_transactions_alone(self):
        """Test a non-rename update does not rewrite transactions."""
        storage = InMemoryStore()
        store = make_store(storage)
        food = store.add_category(Category(name="Food"))
        store.add_transaction(expense("10", category="Food", category_id=food.id))
        changes = []
        store.subscribe(changes.append)

        store.update_category(food.model_copy(update={"emoji": "🥦"}))

        assert changes == [StoreChange.CATEGORIES]
        assert storage.write_counts["transactions"] == 1

    def test_delete_cascades_and_persists(self):
        """Test subcategories go with their parent."""
        storage = InMemoryStore()
        store = make_store(storage)
        food = store.add_category(Category(name="Food"))
        store.add_category(Category(name="Fruit", parent_id=food.id))
        travel = store.add_category(Category(name="Travel"))

        removed = store.delete_category(food.id)

        assert [c.name for c in removed] == ["Food", "Fruit"]
        reloaded = make_store(storage)
        reloaded.load()
        assert reloaded.categories.custom == [travel]

        event = store.audit_logger.recent_events()[0]
        assert event.event_type == AuditEventType.CATEGORY_DELETED
        assert event.details["subcategories_removed"] == ["Fruit"]

    def test_delete_unknown_category(self):
        """Test deleting a missing category changes nothing."""
        store = make_store()
        assert store.delete_category(uuid4()) == []

    def test_invalid_category_not_persisted(self):
        """Test rule violations raise before anything is written."""
        storage = InMemoryStore()
        store = make_store(storage)
        with pytest.raises(CategoryError):
            store.add_category(Category(name="Orphan", parent_id=uuid4()))
        assert storage.read("customCategories") is None

    def test_subcategory_of_default_category(self):
        """Test the first custom category may hang under a default one."""
        storage = InMemoryStore()
        store = make_store(storage)
        groceries = DEFAULT_CATEGORIES[0]

        fruit = store.add_category(Category(name="Fruit", parent_id=groceries.id))

        reloaded = make_store(storage)
        reloaded.load()
        assert reloaded.categories.custom == [groceries, fruit]


class TestSubscriptions:
    """Tests for change notifications."""

    def test_each_mutation_notifies(self):
        """Test subscribers receive the kind of change."""
        store = make_store()
        changes = []
        store.subscribe(changes.append)

        tx = store.add_transaction(expense("10"))
        store.delete_transaction(tx.id)
        store.add_category(Category(name="Food"))
        store.save_user_mode(UserMode.ZZP)
        store.save_budget(weekly=Decimal("100"))

        assert changes == [
            StoreChange.TRANSACTIONS,
            StoreChange.TRANSACTIONS,
            StoreChange.CATEGORIES,
            StoreChange.USER_MODE,
            StoreChange.BUDGET,
        ]

    def test_unsubscribe(self):
        """Test an unsubscribed listener is no longer called."""
        store = make_store()
        changes = []
        unsubscribe = store.subscribe(changes.append)
        unsubscribe()
        unsubscribe()
        store.add_transaction(expense("10"))
        assert changes == []

    def test_failed_mutation_does_not_notify(self):
        """Test nothing is announced when a mutation is rejected."""
        store = make_store()
        changes = []
        store.subscribe(changes.append)
        with pytest.raises(NotFoundError):
            store.update_transaction(expense("1"))
        assert changes == []

    def test_listener_error_reaches_caller_after_save(self):
        """Test a failing listener propagates once the change is persisted."""
        storage = InMemoryStore()
        store = make_store(storage)
        later = []

        def broken(change):
            raise RuntimeError("listener failed")

        store.subscribe(broken)
        store.subscribe(later.append)

        with pytest.raises(RuntimeError, match="listener failed"):
            store.add_transaction(expense("10"))

        assert storage.write_counts["transactions"] == 1
        assert later == []


class TestSettings:
    """Tests for user mode and budget settings."""

    def test_save_budget_keeps_omitted_limit(self):
        """Test updating one limit leaves the other."""
        storage = InMemoryStore()
        store = make_store(storage)
        store.save_budget(weekly=Decimal("300"))
        assert store.budget.monthly == Decimal("2000")
        assert store.budget.weekly == Decimal("300")

        reloaded = make_store(storage)
        reloaded.load()
        assert reloaded.budget.weekly == Decimal("300")

    def test_negative_budget_rejected(self):
        """Test a negative limit is invalid."""
        store = make_store()
        with pytest.raises(ValueError):
            store.save_budget(monthly=Decimal("-1"))
        assert store.budget.monthly == Decimal("2000")

    def test_user_mode_accepts_raw_value(self):
        """Test the mode can be given as its stored value."""
        store = make_store()
        store.save_user_mode("zzp")
        assert store.user_mode is UserMode.ZZP


class TestDerivedValues:
    """Tests for totals, budget and VAT through the store."""

    @pytest.fixture
    def store(self):
        store = make_store()
        store.add_transaction(income("2000", datetime(2024, 3, 1, 9, 0)))
        store.add_transaction(expense("100", datetime(2024, 2, 20)))
        store.add_transaction(expense("60", datetime(2024, 3, 12), category="Transport"))
        store.add_transaction(expense("40", datetime(2024, 3, 14)))
        return store

    def test_filtered_newest_first(self, store):
        """Test the filtered list is sorted by date descending."""
        week = store.filtered(FilterPeriod.WEEK)
        assert [t.amount for t in week] == [Decimal("40"), Decimal("60")]
        assert len(store.filtered()) == 4

    def test_totals(self, store):
        """Test totals per period."""
        assert store.total_income() == Decimal("2000")
        assert store.total_expense() == Decimal("200")
        assert store.total_balance() == Decimal("1800")
        assert store.total_expense(FilterPeriod.MONTH) == Decimal("100")

    def test_category_breakdown(self, store):
        """Test expense totals by category."""
        assert store.category_breakdown(FilterPeriod.MONTH) == {
            "Transport": Decimal("60"),
            "Groceries": Decimal("40"),
        }

    def test_budget_status(self, store):
        """Test weekly and monthly budget against current spending."""
        weekly = store.budget_status(BudgetPeriod.WEEKLY)
        assert weekly.spent == Decimal("100")
        assert weekly.remaining == Decimal("400")
        assert weekly.days_remaining == 3
        assert weekly.level is BudgetLevel.OK

        monthly = store.budget_status(BudgetPeriod.MONTHLY)
        assert monthly.limit == Decimal("2000")
        assert monthly.days_remaining == 17

    def test_vat_tools_need_zzp_mode(self, store):
        """Test VAT values are only offered in ZZP mode."""
        assert store.vat_summary() is None
        assert store.vat_reserve_plan(Decimal("0")) is None
        store.save_user_mode(UserMode.ZZP)
        assert store.vat_summary() is not None

    def test_vat_deadline(self, store):
        """Test the next deadline from the store clock."""
        assert store.next_vat_deadline() == date(2024, 4, 30)
        assert store.days_until_vat_deadline() == 46

    def test_vat_reserve_plan_uses_reporting_quarter(self):
        """Test only the quarter being filed counts towards the VAT owed."""
        store = make_store()
        store.save_user_mode(UserMode.ZZP)
        store.add_transaction(income("121", datetime(2024, 2, 1), vat_rate=Decimal("0.21")))
        store.add_transaction(expense("10.90", datetime(2024, 1, 15), vat_rate=Decimal("0.09")))
        store.add_transaction(income("242", datetime(2023, 12, 1), vat_rate=Decimal("0.21")))

        plan = store.vat_reserve_plan(Decimal("10.05"))

        assert plan.owed == Decimal("20.10")
        assert plan.shortage == Decimal("10.05")
        assert plan.progress == 0.5
        assert plan.status is ReserveStatus.BEHIND


class TestReceiptDraft:
    """Tests for pre-filling a transaction from a scan."""

    def test_draft_from_receipt(self):
        """Test detected values pre-fill the draft."""
        store = make_store()
        parsed = ParsedReceipt(
            amount=Decimal("7.77"),
            merchant="SUPERMARKT",
            suggested_category="Groceries",
            vat_rate=Decimal("0.09"),
        )
        draft = store.draft_from_receipt(parsed)

        groceries = store.categories.find_by_name("Groceries")
        assert draft["amount"] == Decimal("7.77")
        assert draft["category"] == "Groceries"
        assert draft["category_id"] == groceries.id
        assert draft["note"] == "SUPERMARKT"
        assert draft["date"] == NOW
        assert draft["type"] is TransactionType.EXPENSE
        assert "vat_rate" not in draft

        tx = Transaction(**draft)
        assert tx.amount == Decimal("7.77")

    def test_draft_includes_rate_in_zzp_mode(self):
        """Test the detected rate is proposed for ZZP users."""
        store = make_store()
        store.save_user_mode(UserMode.ZZP)
        draft = store.draft_from_receipt(ParsedReceipt(vat_rate=Decimal("0.21")))
        assert draft["vat_rate"] == Decimal("0.21")

    def test_missing_amount_stays_unset(self):
        """Test an undetected amount is not invented."""
        store = make_store()
        draft = store.draft_from_receipt(ParsedReceipt(suggested_category="Unknown"))
        assert "amount" not in draft
        assert "category" not in draft
        assert draft["note"] == ""


class TestExport:
    """Tests for CSV export through the store."""

    def test_export_csv(self):
        """Test the export contains every transaction and is audited."""
        store = make_store()
        store.add_transaction(expense("45.50", datetime(2024, 3, 1)))
        store.add_transaction(income("100", datetime(2024, 3, 2)))

        text = store.export_csv()

        lines = text.splitlines()
        assert lines[0].startswith("Date,Category,Type,Amount")
        assert lines[1].startswith("2024-03-02,Salary,Income,100.00")
        assert lines[2].startswith("2024-03-01,Groceries,Expense,45.50")
        event = store.audit_logger.recent_events()[0]
        assert event.event_type == AuditEventType.CSV_EXPORTED
        assert event.details["row_count"] == 2


class TestFileBackedStore:
    """Tests for the store on real snapshot files."""

    def test_persists_across_instances(self, tmp_path):
        """Test data survives a restart on disk."""
        settings = StorageSettings(data_dir=tmp_path, write_attempts=1)
        store = make_store(JsonFileStore(settings=settings))
        tx = store.add_transaction(expense("45.50", note="Markt, fruit"))
        store.save_user_mode(UserMode.ZZP)

        assert (tmp_path / "transactions.json").exists()

        reloaded = make_store(JsonFileStore(settings=settings))
        reloaded.load()
        assert reloaded.transactions == [tx]
        assert reloaded.user_mode is UserMode.ZZP
