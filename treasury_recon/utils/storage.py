"""
Key-value persistence for small JSON structures (cash on hand, period config).

Loading never raises to the caller: missing, corrupt or ill-shaped data is
replaced by documented defaults and a warning is logged.
"""

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

import structlog
from pydantic import BaseModel, Field, TypeAdapter, ValidationError as PydanticValidationError, model_validator

from ..config import get_settings
from ..exceptions import ValidationError
from ..models import CashOnHandSource

logger = structlog.get_logger()

CASH_ON_HAND_KEY = "cashOnHandData"
PERIOD_KEY = "reconciliationPeriod"


class KeyValueStore(Protocol):
    """Load/save of JSON-serializable values under fixed string keys."""

    def load(self, key: str) -> Optional[Any]:
        ...

    def save(self, key: str, value: Any) -> None:
        ...


class MemoryStore:
    """In-process store, mostly for tests and previews."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)


class JsonFileStore:
    """One <key>.json file per key under a directory."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory or get_settings().data_dir)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(self._path(key), "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)


class ReconciliationPeriod(BaseModel):
    """Start and end date of the current reconciliation period."""
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date precedes start_date")
        return self


class CashOnHand(BaseModel):
    """Cash-on-hand balances for one account over a period (amounts in cents)."""
    account_code: str
    account_name: str
    starting_balance_cents: int = 0
    ending_balance_cents: int = 0
    start_date: date
    end_date: date
    last_updated: datetime = Field(default_factory=datetime.utcnow)
    source: CashOnHandSource = CashOnHandSource.MANUAL_ENTRY

    @property
    def net_change_cents(self) -> int:
        return self.ending_balance_cents - self.starting_balance_cents


_cash_list = TypeAdapter(List[CashOnHand])

DEFAULT_PERIOD = ReconciliationPeriod(start_date=date(2024, 4, 1), end_date=date(2024, 4, 7))


def default_cash_on_hand() -> List[CashOnHand]:
    """Documented fallback when nothing valid has been saved yet."""
    now = datetime.utcnow()
    return [
        CashOnHand(
            account_code="P2026",
            account_name="Primary Campaign Account",
            starting_balance_cents=4575000,
            ending_balance_cents=4725000,
            start_date=DEFAULT_PERIOD.start_date,
            end_date=DEFAULT_PERIOD.end_date,
            last_updated=now,
            source=CashOnHandSource.PREVIOUS_SESSION,
        ),
        CashOnHand(
            account_code="G2026",
            account_name="General Fund Account",
            starting_balance_cents=1250000,
            ending_balance_cents=1400000,
            start_date=DEFAULT_PERIOD.start_date,
            end_date=DEFAULT_PERIOD.end_date,
            last_updated=now,
            source=CashOnHandSource.PREVIOUS_SESSION,
        ),
    ]


def _load_or_default(store: KeyValueStore, key: str, parse: Callable[[Any], Any], default: Callable[[], Any]):
    try:
        raw = store.load(key)
    except (OSError, ValueError) as e:
        logger.warning("Failed to read saved data, using defaults", key=key, error=str(e))
        return default()

    if raw is None:
        return default()

    try:
        return parse(raw)
    except PydanticValidationError as e:
        logger.warning("Saved data is malformed, using defaults", key=key, errors=e.error_count())
        return default()


class CashOnHandBook:
    """Per-account cash-on-hand records plus the reconciliation period."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.accounts: List[CashOnHand] = _load_or_default(
            store, CASH_ON_HAND_KEY, _cash_list.validate_python, default_cash_on_hand,
        )
        self.period: ReconciliationPeriod = _load_or_default(
            store, PERIOD_KEY, ReconciliationPeriod.model_validate, lambda: DEFAULT_PERIOD,
        )

    def get(self, account_code: str) -> Optional[CashOnHand]:
        for account in self.accounts:
            if account.account_code == account_code:
                return account
        return None

    def update_account(self, account_code: str, **changes: Any) -> CashOnHand:
        """Update an account's record, creating it over the current period if new."""
        existing = self.get(account_code)
        changes.setdefault("last_updated", datetime.utcnow())

        try:
            if existing is not None:
                updated = CashOnHand.model_validate({**existing.model_dump(), **changes})
            else:
                updated = CashOnHand.model_validate({
                    "account_code": account_code,
                    "account_name": f"Account {account_code}",
                    "start_date": self.period.start_date,
                    "end_date": self.period.end_date,
                    "source": CashOnHandSource.MANUAL_ENTRY,
                    **changes,
                })
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid cash on hand update for {account_code}: {e}")

        if existing is not None:
            self.accounts = [updated if a.account_code == account_code else a for a in self.accounts]
        else:
            self.accounts = [*self.accounts, updated]

        self._save_accounts()
        logger.info("Cash on hand updated", account_code=account_code)
        return updated

    def update_period(self, start_date: date, end_date: date) -> ReconciliationPeriod:
        """Set the period and move every account record onto it."""
        try:
            period = ReconciliationPeriod(start_date=start_date, end_date=end_date)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid reconciliation period: {e}")

        now = datetime.utcnow()
        self.period = period
        self.accounts = [
            a.model_copy(update={"start_date": start_date, "end_date": end_date, "last_updated": now})
            for a in self.accounts
        ]
        self.store.save(PERIOD_KEY, period.model_dump(mode="json"))
        self._save_accounts()
        logger.info("Reconciliation period updated", start=str(start_date), end=str(end_date))
        return period

    def _save_accounts(self) -> None:
        self.store.save(CASH_ON_HAND_KEY, [a.model_dump(mode="json") for a in self.accounts])
