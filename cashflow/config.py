"""
config.py

YAML-backed settings for the cash-flow engine and dashboard.

Lookup order for the file:
1) the CASHFLOW_CONFIG environment variable
2) the path passed to Settings.from_yaml (default "config.yaml")
3) config.yaml at the project root

A missing file or a missing key falls back to the defaults below.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from cashflow.errors import ConfigurationError

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass
class SpreadsheetImportConfig:
    term_days: int = 60
    customer_column: str = "F"
    date_column: str = "I"
    amount_column: str = "Y"
    apply_special_schedule: bool = False
    unknown_customer: str = "Unknown"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"
    file: Optional[str] = None
    enabled: bool = True


@dataclass
class Settings:
    local_currency: str = "TL"
    currencies: List[str] = field(default_factory=lambda: ["TL", "EUR", "USD"])
    default_rates: Dict[str, float] = field(default_factory=lambda: {"EUR": 36.5, "USD": 34.0})
    check_prefix: str = "CHECK: "
    default_granularity: str = "daily"
    spreadsheet_import: SpreadsheetImportConfig = field(default_factory=SpreadsheetImportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        defaults = cls()
        imp = data.get("spreadsheet_import") or {}
        log = data.get("logging") or {}

        settings = cls(
            local_currency=str(data.get("local_currency", defaults.local_currency)),
            currencies=[str(c) for c in data.get("currencies", defaults.currencies)],
            default_rates={str(k): float(v) for k, v in (data.get("default_rates") or defaults.default_rates).items()},
            check_prefix=str(data.get("check_prefix", defaults.check_prefix)),
            default_granularity=str(data.get("default_granularity", defaults.default_granularity)),
            spreadsheet_import=SpreadsheetImportConfig(
                term_days=int(imp.get("term_days", 60)),
                customer_column=str(imp.get("customer_column", "F")),
                date_column=str(imp.get("date_column", "I")),
                amount_column=str(imp.get("amount_column", "Y")),
                apply_special_schedule=bool(imp.get("apply_special_schedule", False)),
                unknown_customer=str(imp.get("unknown_customer", "Unknown")),
            ),
            logging=LoggingConfig(
                level=str(log.get("level", "INFO")),
                format=str(log.get("format", "text")),
                file=log.get("file"),
                enabled=bool(log.get("enabled", True)),
            ),
        )

        if settings.local_currency not in settings.currencies:
            raise ConfigurationError(
                f"local_currency {settings.local_currency!r} is not in currencies {settings.currencies}"
            )
        if settings.default_granularity not in ("daily", "weekly", "monthly"):
            raise ConfigurationError(f"Unknown default_granularity {settings.default_granularity!r}")
        return settings

    @classmethod
    def from_yaml(cls, config_path: str = "config.yaml") -> "Settings":
        env_cfg = os.getenv("CASHFLOW_CONFIG")
        cfg_path = Path(env_cfg).expanduser() if env_cfg else Path(config_path)
        if not cfg_path.exists():
            candidate = PROJECT_ROOT / cfg_path.name
            if not candidate.exists():
                return cls()
            cfg_path = candidate

        with open(cfg_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{cfg_path} must contain a mapping at the top level")
        return cls.from_dict(data)

    def foreign_currencies(self) -> List[str]:
        return [c for c in self.currencies if c != self.local_currency]
