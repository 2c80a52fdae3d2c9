"""
models.py

Record types consumed and produced by the flow projector.

Input records keep their dates as "YYYY-MM-DD" strings, the same shape the
dashboard exports. Dates are parsed by the projector so that one malformed
record can be skipped without rejecting the whole snapshot. `from_dict` /
`to_dict` accept and emit the dashboard's camelCase JSON keys.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional

import numpy as np

from cashflow.calendar_utils import DateLike, next_business_day, parse_date, to_local_ymd
from cashflow.errors import ValidationError

INCOME = "income"
EXPENSE = "expense"
DIRECTIONS = (INCOME, EXPENSE)

WEEKLY = "weekly"
MONTHLY = "monthly"

FIXED = "fixed"
SPECIAL = "special"

GRANULARITIES = ("daily", "weekly", "monthly")

_ASSET_CATEGORIES = {"bank": "bank", "banka": "bank", "fund": "fund", "fon": "fund"}
_WEEKDAY_ABBR = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
ORDINAL_NAMES = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", 5: "last"}


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins; lets snake_case and legacy camelCase coexist."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def finite_amount(value: Any, record_id: str = "") -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Record {record_id!r}: amount {value!r} is not a number")
    if not np.isfinite(amount):
        raise ValidationError(f"Record {record_id!r}: amount {value!r} is not finite")
    return amount


def check_direction(direction: str, record_id: str = "") -> str:
    if direction not in DIRECTIONS:
        raise ValidationError(f"Record {record_id!r}: unknown direction {direction!r}")
    return direction


@dataclass
class Asset:
    id: str
    category: str
    name: str
    subtype: str
    currency: str
    amount: float
    included: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        raw_cat = str(_pick(data, "category", "type", default="bank"))
        category = _ASSET_CATEGORIES.get(raw_cat.lower())
        if category is None:
            raise ValidationError(f"Asset {data.get('id')!r}: unknown category {raw_cat!r}")
        return cls(
            id=str(data["id"]),
            category=category,
            name=str(_pick(data, "name", default="")),
            subtype=str(_pick(data, "subtype", "subType", default="")),
            currency=str(_pick(data, "currency", default="TL")),
            amount=float(_pick(data, "amount", default=0.0)),
            included=bool(_pick(data, "included", default=True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.category,
            "name": self.name,
            "subType": self.subtype,
            "currency": self.currency,
            "amount": self.amount,
            "included": self.included,
        }


def toggle_asset(assets: List[Asset], asset_id: str) -> List[Asset]:
    """Return a new asset list with one asset's inclusion flag flipped."""
    return [replace(a, included=not a.included) if a.id == asset_id else a for a in assets]


def effective_check_date(due_date: DateLike, valor: int = 0) -> dt.date:
    """Collection date of a check: due date plus valor days, rolled to a business day."""
    return next_business_day(parse_date(due_date) + dt.timedelta(days=int(valor)))


@dataclass
class Check:
    id: str
    due_date: str
    valor: int
    effective_date: str
    amount: float
    description: str = "Customer check"

    @classmethod
    def create(
        cls,
        check_id: str,
        due_date: DateLike,
        amount: float,
        description: str = "",
        valor: int = 0,
    ) -> "Check":
        """Build a check, deriving and storing its effective date once."""
        valor = int(valor)
        if valor < 0:
            raise ValidationError(f"Check {check_id!r}: valor must not be negative")
        return cls(
            id=str(check_id),
            due_date=to_local_ymd(parse_date(due_date)),
            valor=valor,
            effective_date=to_local_ymd(effective_check_date(due_date, valor)),
            amount=finite_amount(amount, check_id),
            description=description or "Customer check",
        )

    def with_changes(self, **changes: Any) -> "Check":
        """Edit a check; the effective date is re-derived from the new fields."""
        fields = {
            "due_date": self.due_date,
            "amount": self.amount,
            "description": self.description,
            "valor": self.valor,
        }
        fields.update(changes)
        return Check.create(self.id, **fields)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Check":
        check_id = str(data["id"])
        due = _pick(data, "due_date", "dueDateStr")
        if not due:
            raise ValidationError(f"Check {check_id!r}: missing due date")
        valor = int(_pick(data, "valor", default=0))
        if valor < 0:
            raise ValidationError(f"Check {check_id!r}: valor must not be negative")
        due_date = parse_date(due)

        # A stored effective date is kept only if it is a business day on or after the due date
        effective = _pick(data, "effective_date", "effectiveDateStr")
        if effective:
            effective_date = parse_date(effective)
            if effective_date < due_date or effective_date.isoweekday() > 5:
                raise ValidationError(
                    f"Check {check_id!r}: effective date {effective} is not a business day on or after {due}"
                )
        else:
            effective_date = effective_check_date(due_date, valor)
        return cls(
            id=check_id,
            due_date=to_local_ymd(due_date),
            valor=valor,
            effective_date=to_local_ymd(effective_date),
            amount=float(_pick(data, "amount", default=0.0)),
            description=str(_pick(data, "description", "desc", default="Customer check")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "dueDateStr": self.due_date,
            "valor": self.valor,
            "effectiveDateStr": self.effective_date,
            "amount": self.amount,
            "desc": self.description,
        }


@dataclass
class RecurringRule:
    id: str
    direction: str
    start_date: str
    amount: float
    description: str
    frequency: str
    currency: str = "TL"
    weekdays: List[int] = field(default_factory=list)
    month_type: Optional[str] = None
    fixed_day: Optional[int] = None
    special_ordinal: Optional[int] = None
    special_weekday: Optional[int] = None

    def validate(self) -> None:
        if not self.start_date:
            raise ValidationError(f"Rule {self.id!r}: missing start date")
        check_direction(self.direction, self.id)
        finite_amount(self.amount, self.id)

        if self.frequency == WEEKLY:
            bad = [d for d in self.weekdays if d not in range(1, 8)]
            if bad:
                raise ValidationError(f"Rule {self.id!r}: weekdays out of range {bad}")
        elif self.frequency == MONTHLY:
            if self.month_type == FIXED:
                if self.fixed_day is not None and not 1 <= self.fixed_day <= 31:
                    raise ValidationError(f"Rule {self.id!r}: fixed day {self.fixed_day} out of range")
            elif self.month_type == SPECIAL:
                if self.special_ordinal is not None and self.special_ordinal not in range(1, 6):
                    raise ValidationError(f"Rule {self.id!r}: ordinal {self.special_ordinal} out of range")
                # Special rules are defined for Monday..Friday only.
                if self.special_weekday is not None and self.special_weekday not in range(1, 6):
                    raise ValidationError(f"Rule {self.id!r}: weekday {self.special_weekday} out of range")
            else:
                raise ValidationError(f"Rule {self.id!r}: unknown month type {self.month_type!r}")
        else:
            raise ValidationError(f"Rule {self.id!r}: unknown frequency {self.frequency!r}")

    def describe(self) -> str:
        if self.frequency == WEEKLY:
            days = ", ".join(_WEEKDAY_ABBR[d - 1] for d in sorted(self.weekdays)) or "-"
            return f"every week on {days}"
        if self.month_type == FIXED:
            return f"day {self.fixed_day} of every month"
        ordinal = ORDINAL_NAMES.get(self.special_ordinal or 1, "?")
        weekday = WEEKDAY_NAMES[(self.special_weekday or 1) - 1]
        return f"{ordinal} {weekday} of every month"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecurringRule":
        return cls(
            id=str(data["id"]),
            direction=str(_pick(data, "direction", "type", default=EXPENSE)),
            start_date=str(_pick(data, "start_date", "startDate", default="")),
            amount=float(_pick(data, "amount", default=0.0)),
            description=str(_pick(data, "description", "desc", default="")),
            frequency=str(_pick(data, "frequency", "freq", default=MONTHLY)),
            currency=str(_pick(data, "currency", default="TL")),
            weekdays=[int(d) for d in _pick(data, "weekdays", "weekDays", default=[])],
            month_type=_pick(data, "month_type", "monthType"),
            fixed_day=_optional_int(_pick(data, "fixed_day", "fixedDay")),
            special_ordinal=_optional_int(_pick(data, "special_ordinal", "specialOrd")),
            special_weekday=_optional_int(_pick(data, "special_weekday", "specialDay")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.direction,
            "startDate": self.start_date,
            "amount": self.amount,
            "desc": self.description,
            "freq": self.frequency,
            "currency": self.currency,
            "weekDays": list(self.weekdays),
            "monthType": self.month_type,
            "fixedDay": self.fixed_day,
            "specialOrd": None if self.special_ordinal is None else str(self.special_ordinal),
            "specialDay": None if self.special_weekday is None else str(self.special_weekday),
        }


@dataclass
class Transaction:
    id: str
    direction: str
    date: str
    amount: float
    description: str
    currency: str = "TL"
    source: Optional[str] = None
    source_tab: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            id=str(data["id"]),
            direction=str(_pick(data, "direction", "type", default=EXPENSE)),
            date=str(_pick(data, "date", default="")),
            amount=float(_pick(data, "amount", default=0.0)),
            description=str(_pick(data, "description", "desc", default="")),
            currency=str(_pick(data, "currency", default="TL")),
            source=_pick(data, "source"),
            source_tab=_pick(data, "source_tab", "sourceTab"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "type": self.direction,
            "date": self.date,
            "amount": self.amount,
            "desc": self.description,
            "currency": self.currency,
        }
        if self.source is not None:
            out["source"] = self.source
        if self.source_tab is not None:
            out["sourceTab"] = self.source_tab
        return out


@dataclass
class CustomTab:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomTab":
        return cls(id=str(data["id"]), name=str(data.get("name", "")))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FlowPeriod:
    start: dt.date
    end: dt.date
    label: str
    incomes: float = 0.0
    expenses: float = 0.0
    balance: float = 0.0
    details: Dict[str, float] = field(default_factory=dict)

    @property
    def net(self) -> float:
        return self.incomes - self.expenses
