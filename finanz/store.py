"""
Transaction Store

The single source of truth for the app's data: transactions, custom
categories, the user mode and the budget limits.

Flow for every mutation:
1. Validate and apply the change in memory
2. Persist the full snapshot of the touched collection
3. Audit the change
4. Notify subscribers

Persistence never raises out of the store. A snapshot that cannot be read
leaves the in-memory default in place; a snapshot that cannot be written is
logged and the in-memory state stays authoritative until the next write.

Derived numbers (totals, budget, VAT) are always computed from the current
list on demand and never cached.
"""

import threading
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

from finanz.analytics import (
    BudgetPeriod,
    BudgetStatus,
    VatReservePlan,
    VatSummary,
    budget_status,
    category_breakdown,
    days_until_deadline,
    filter_between,
    filter_by_period,
    net_balance,
    next_vat_deadline,
    reporting_quarter,
    total_expense,
    total_income,
    vat_reserve_plan,
    vat_summary,
)
from finanz.audit import AuditLogger
from finanz.config import Settings, get_settings
from finanz.export import transactions_to_csv
from finanz.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finanz.models.category import Category, CategoryBook
from finanz.models.receipt import ParsedReceipt
from finanz.models.transaction import (
    BudgetSettings,
    FilterPeriod,
    Transaction,
    TransactionType,
    UserMode,
)
from finanz.services.storage import snapshots
from finanz.services.storage.interface import (
    CATEGORIES_KEY,
    MONTHLY_BUDGET_KEY,
    TRANSACTIONS_KEY,
    USER_MODE_KEY,
    WEEKLY_BUDGET_KEY,
    KeyValueStore,
    NotFoundError,
    StorageError,
)


Clock = Callable[[], datetime]
Listener = Callable[["StoreChange"], None]


class StoreChange(str, Enum):
    """What changed, as passed to subscribers."""
    LOADED = "loaded"
    TRANSACTIONS = "transactions"
    CATEGORIES = "categories"
    USER_MODE = "user_mode"
    BUDGET = "budget"


class TransactionStore:
    """
    In-memory collections backed by snapshot storage.

    Mutations are expected from a single thread (the UI loop); the internal
    lock only keeps a background reader from seeing a half-applied change.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings()
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock or datetime.now
        self._week_start = self._settings.app.week_start

        defaults = self._settings.budget
        self._transactions: list[Transaction] = []
        self._categories = CategoryBook()
        self._user_mode = UserMode.BASIC
        self._budget = BudgetSettings(monthly=defaults.monthly, weekly=defaults.weekly)

        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def transactions(self) -> list[Transaction]:
        with self._lock:
            return list(self._transactions)

    @property
    def categories(self) -> CategoryBook:
        return self._categories

    @property
    def user_mode(self) -> UserMode:
        return self._user_mode

    @property
    def budget(self) -> BudgetSettings:
        return self._budget

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        with self._lock:
            for transaction in self._transactions:
                if transaction.id == transaction_id:
                    return transaction
        return None

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Listeners run synchronously, in registration order, after the change
        has been persisted. An exception raised by a listener propagates to
        the caller of the mutation and the remaining listeners are skipped.

        Returns a function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: StoreChange) -> None:
        for listener in list(self._listeners):
            listener(change)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _audit(self, event: AuditEvent) -> None:
        self._audit_logger.log(event)

    def _read(self, key: str, decode: Callable[[bytes], Any]) -> Any:
        """Read and decode one key; None when absent or unusable."""
        try:
            data = self._storage.read(key)
            if data is None:
                return None
            return decode(data)
        except StorageError as e:
            self._audit(AuditEventBuilder.snapshot_load_failed(key, str(e)))
            return None

    def _write(self, key: str, data: bytes) -> bool:
        try:
            self._storage.write(key, data)
            return True
        except StorageError as e:
            self._audit(AuditEventBuilder.snapshot_save_failed(key, str(e)))
            return False

    def _save_transactions(self) -> None:
        self._write(TRANSACTIONS_KEY, snapshots.encode_transactions(self._transactions))

    def _save_categories(self) -> None:
        self._write(CATEGORIES_KEY, snapshots.encode_categories(self._categories.custom))

    def load(self) -> None:
        """
        Restore every collection from storage.

        Each key is read independently; a missing or corrupt key keeps its
        default without affecting the others.
        """
        with self._lock:
            transactions = self._read(TRANSACTIONS_KEY, snapshots.decode_transactions)
            if transactions is not None:
                self._transactions = transactions

            categories = self._read(CATEGORIES_KEY, snapshots.decode_categories)
            if categories is not None:
                self._categories = CategoryBook(categories)

            mode = self._read(USER_MODE_KEY, snapshots.decode_user_mode)
            if mode is not None:
                self._user_mode = mode

            monthly = self._read(MONTHLY_BUDGET_KEY, snapshots.decode_amount)
            weekly = self._read(WEEKLY_BUDGET_KEY, snapshots.decode_amount)
            self._budget = BudgetSettings(
                monthly=monthly if monthly is not None else self._budget.monthly,
                weekly=weekly if weekly is not None else self._budget.weekly,
            )

        self._audit(AuditEventBuilder.snapshot_loaded({
            "transactions": len(self._transactions),
            "custom_categories": len(self._categories.custom),
        }))
        self._notify(StoreChange.LOADED)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def add_transaction(self, transaction: Transaction) -> Transaction:
        with self._lock:
            if self.get_transaction(transaction.id) is not None:
                raise ValueError(f"Transaction already exists: {transaction.id}")
            self._transactions.append(transaction)
            self._save_transactions()

        self._audit(AuditEventBuilder.transaction_added(
            transaction.id, transaction.type.value, str(transaction.amount),
        ))
        self._notify(StoreChange.TRANSACTIONS)
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace the stored transaction with the same id.

        Raises:
            NotFoundError: If no transaction has that id
        """
        with self._lock:
            for index, existing in enumerate(self._transactions):
                if existing.id == transaction.id:
                    self._transactions[index] = transaction
                    break
            else:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            self._save_transactions()

        self._audit(AuditEventBuilder.transaction_updated(transaction.id))
        self._notify(StoreChange.TRANSACTIONS)
        return transaction

    def delete_transaction(self, transaction_id: UUID) -> bool:
        """Remove a transaction. Returns False if the id is unknown."""
        with self._lock:
            remaining = [t for t in self._transactions if t.id != transaction_id]
            if len(remaining) == len(self._transactions):
                return False
            self._transactions = remaining
            self._save_transactions()

        self._audit(AuditEventBuilder.transaction_deleted(transaction_id))
        self._notify(StoreChange.TRANSACTIONS)
        return True

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    def add_category(self, category: Category) -> Category:
        with self._lock:
            self._categories.add(category)
            self._save_categories()

        self._audit(AuditEventBuilder.category_changed(
            AuditEventType.CATEGORY_ADDED, category.id, category.name,
        ))
        self._notify(StoreChange.CATEGORIES)
        return category

    def update_category(self, category: Category) -> Category:
        """
        Replace a custom category.

        A rename is carried over to every transaction that references the
        category by id.
        """
        with self._lock:
            previous = self._categories.get(category.id)
            self._categories.update(category)
            self._save_categories()

            renamed = previous is not None and previous.name != category.name
            if renamed:
                self._transactions = [
                    t.with_changes(category=category.name)
                    if t.category_id == category.id else t
                    for t in self._transactions
                ]
                self._save_transactions()

        self._audit(AuditEventBuilder.category_changed(
            AuditEventType.CATEGORY_UPDATED, category.id, category.name,
        ))
        self._notify(StoreChange.CATEGORIES)
        if renamed:
            self._notify(StoreChange.TRANSACTIONS)
        return category

    def delete_category(self, category_id: UUID) -> list[Category]:
        """
        Delete a custom category together with its subcategories.

        Transactions keep the category name they were saved with.
        """
        with self._lock:
            removed = self._categories.delete(category_id)
            if not removed:
                return []
            self._save_categories()

        root = next((c for c in removed if c.id == category_id), removed[0])
        cascaded = [c.name for c in removed if c.id != category_id]
        self._audit(AuditEventBuilder.category_changed(
            AuditEventType.CATEGORY_DELETED, category_id, root.name, cascaded,
        ))
        self._notify(StoreChange.CATEGORIES)
        return removed

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def save_user_mode(self, mode: UserMode) -> None:
        with self._lock:
            self._user_mode = UserMode(mode)
            self._write(USER_MODE_KEY, snapshots.encode_user_mode(self._user_mode))

        self._audit(AuditEventBuilder.user_mode_changed(self._user_mode.value))
        self._notify(StoreChange.USER_MODE)

    def save_budget(
        self,
        monthly: Optional[Decimal] = None,
        weekly: Optional[Decimal] = None,
    ) -> BudgetSettings:
        """Update one or both limits; omitted limits are kept."""
        with self._lock:
            budget = BudgetSettings(
                monthly=monthly if monthly is not None else self._budget.monthly,
                weekly=weekly if weekly is not None else self._budget.weekly,
            )
            self._budget = budget
            self._write(MONTHLY_BUDGET_KEY, snapshots.encode_amount(budget.monthly))
            self._write(WEEKLY_BUDGET_KEY, snapshots.encode_amount(budget.weekly))

        self._audit(AuditEventBuilder.budget_updated(
            str(budget.monthly), str(budget.weekly),
        ))
        self._notify(StoreChange.BUDGET)
        return budget

    # =========================================================================
    # DERIVED VALUES
    # =========================================================================

    def filtered(self, period: FilterPeriod = FilterPeriod.ALL) -> list[Transaction]:
        """Transactions in a period, newest first."""
        selected = filter_by_period(self.transactions, period, self._clock(), self._week_start)
        return sorted(selected, key=lambda t: t.date, reverse=True)

    def total_income(self, period: FilterPeriod = FilterPeriod.ALL) -> Decimal:
        return total_income(self.transactions, period, self._clock(), self._week_start)

    def total_expense(self, period: FilterPeriod = FilterPeriod.ALL) -> Decimal:
        return total_expense(self.transactions, period, self._clock(), self._week_start)

    def total_balance(self, period: FilterPeriod = FilterPeriod.ALL) -> Decimal:
        return net_balance(self.transactions, period, self._clock(), self._week_start)

    def category_breakdown(self, period: FilterPeriod = FilterPeriod.ALL) -> dict[str, Decimal]:
        return category_breakdown(self.transactions, period, self._clock(), self._week_start)

    def budget_status(self, budget_period: BudgetPeriod) -> BudgetStatus:
        """Spending against the weekly or monthly limit."""
        limit = (
            self._budget.weekly
            if budget_period is BudgetPeriod.WEEKLY
            else self._budget.monthly
        )
        spent = self.total_expense(budget_period.filter_period)
        return budget_status(limit, spent, budget_period, self._clock(), self._week_start)

    def vat_summary(self, period: FilterPeriod = FilterPeriod.ALL) -> Optional[VatSummary]:
        """VAT totals; None unless the user mode has VAT tools."""
        if not self._user_mode.has_vat_tools:
            return None
        return vat_summary(self.transactions, period, self._clock(), self._week_start)

    def next_vat_deadline(self) -> date:
        return next_vat_deadline(self._clock())

    def days_until_vat_deadline(self) -> int:
        return days_until_deadline(self._clock())

    def vat_reserve_plan(self, reserved: Decimal) -> Optional[VatReservePlan]:
        """
        Compare money set aside with the VAT due at the next filing.

        The amount owed is the net VAT of the quarter that the next
        deadline files. None unless the user mode has VAT tools.
        """
        if not self._user_mode.has_vat_tools:
            return None
        now = self._clock()
        deadline = next_vat_deadline(now)
        first_day, last_day = reporting_quarter(deadline)
        quarter = filter_between(self.transactions, first_day, last_day)
        owed = max(Decimal("0"), vat_summary(quarter).net)
        return vat_reserve_plan(owed, reserved, days_until_deadline(now, deadline))

    # =========================================================================
    # RECEIPTS AND EXPORT
    # =========================================================================

    def draft_from_receipt(
        self,
        parsed: ParsedReceipt,
        transaction_type: TransactionType = TransactionType.EXPENSE,
    ) -> dict[str, Any]:
        """
        Pre-fill the fields of a new transaction from a receipt scan.

        Only detected values are filled in; the user completes and confirms
        the draft before a Transaction is built from it. The VAT rate is
        only proposed when the user mode has VAT tools.
        """
        draft: dict[str, Any] = {
            "type": transaction_type,
            "date": parsed.date or self._clock(),
            "note": parsed.merchant or "",
        }
        if parsed.amount is not None:
            draft["amount"] = parsed.amount

        if parsed.suggested_category:
            category = self._categories.find_by_name(parsed.suggested_category)
            if category is not None:
                draft["category"] = category.name
                draft["category_id"] = category.id

        if parsed.vat_rate is not None and self._user_mode.has_vat_tools:
            draft["vat_rate"] = parsed.vat_rate
        return draft

    def export_csv(self) -> str:
        transactions = self.transactions
        text = transactions_to_csv(transactions)
        self._audit(AuditEventBuilder.csv_exported(len(transactions)))
        return text
