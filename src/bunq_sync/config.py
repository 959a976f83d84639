"""
Configuration management (SSOT).

This module defines ALL configuration for the bunq synchronization worker.
All config keys are defined here; no other module should invent config keys
or read the environment on its own.

Key invariants:
- The bunq API key is a secret and is only passed explicitly to the services
- Loading configuration never touches the network
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_BASE_URL = "https://api.bunq.com/v1"
DEFAULT_DATE_FROM = "2024-01-01"

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class BunqConfig:
    """bunq API configuration.

    The locale, region and geolocation values are sent on every request
    because the provider requires them; they carry no business meaning.
    """

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    device_description: str = "BudgetFlow"
    permitted_ips: list[str] = field(default_factory=lambda: ["*"])
    timeout_seconds: int = 30
    language: str = "nl_NL"
    region: str = "nl_NL"
    geolocation: str = "0 0 0 0 000"
    user_agent: str = "bunq-sync/0.1"


@dataclass
class SyncConfig:
    """Payment paging settings."""

    # Payments requested per page
    page_size: int = 200
    # Absolute bound on payments fetched per account per run
    max_items: int = 5000
    # Historical floor used when a caller gives no date_from
    default_date_from: str = DEFAULT_DATE_FROM


@dataclass
class CategoryConfig:
    """Default category inference.

    Each preferred value is a (category name, subcategory name) pair that is
    tried before the type-based fallback.
    """

    expense_preferred: tuple[str, str] = ("Overig", "Overig")
    income_preferred: tuple[str, str] = ("Inkomsten", "Overig")


@dataclass
class Config:
    """Application configuration (SSOT)."""

    bunq: BunqConfig = field(default_factory=BunqConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    categories: CategoryConfig = field(default_factory=CategoryConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.bunq.api_key:
            errors.append("bunq.api_key is required (or set BUNQ_API_KEY)")
        if not self.bunq.base_url:
            errors.append("bunq.base_url is required")
        if self.sync.page_size < 1:
            errors.append("sync.page_size must be positive")
        if self.sync.max_items < self.sync.page_size:
            errors.append("sync.max_items must be >= sync.page_size")
        if not DATE_RE.match(self.sync.default_date_from or ""):
            errors.append("sync.default_date_from must be YYYY-MM-DD")

        return errors


def _pair(value, default: tuple[str, str]) -> tuple[str, str]:
    if not value:
        return default
    if isinstance(value, dict):
        return (str(value.get("category", "")), str(value.get("subcategory", "")))
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return (str(value[0]), str(value[1]))
    raise ConfigValidationError(
        f"Category preference must be a [category, subcategory] pair, got: {value!r}"
    )


def load_config(config_path: Path | str | None = None) -> Config:
    """
    Load configuration from YAML file.

    A missing file yields defaults. Environment variables override config
    values:
    - BUNQ_API_KEY
    - BUNQ_BASE_URL
    - BUNQ_DEVICE_DESCRIPTION
    - BUNQ_SYNC_DATE_FROM
    - BUNQ_SYNC_MAX_ITEMS
    - STATE_DB_PATH
    """
    data: dict = {}
    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}

    bunq_data = data.get("bunq", {}) or {}
    bunq = BunqConfig(
        api_key=os.environ.get("BUNQ_API_KEY", bunq_data.get("api_key", "")),
        base_url=os.environ.get("BUNQ_BASE_URL", bunq_data.get("base_url", DEFAULT_BASE_URL)),
        device_description=os.environ.get(
            "BUNQ_DEVICE_DESCRIPTION", bunq_data.get("device_description", "BudgetFlow")
        ),
        permitted_ips=list(bunq_data.get("permitted_ips", ["*"])),
        timeout_seconds=int(bunq_data.get("timeout_seconds", 30)),
        language=bunq_data.get("language", "nl_NL"),
        region=bunq_data.get("region", "nl_NL"),
        geolocation=bunq_data.get("geolocation", "0 0 0 0 000"),
    )

    sync_data = data.get("sync", {}) or {}
    max_items = sync_data.get("max_items", 5000)
    max_items_env = os.environ.get("BUNQ_SYNC_MAX_ITEMS", "")
    if max_items_env:
        try:
            max_items = int(max_items_env)
        except ValueError as e:
            raise ConfigValidationError(
                f"BUNQ_SYNC_MAX_ITEMS must be an integer, got: {max_items_env!r}"
            ) from e

    sync = SyncConfig(
        page_size=int(sync_data.get("page_size", 200)),
        max_items=int(max_items),
        default_date_from=str(
            os.environ.get(
                "BUNQ_SYNC_DATE_FROM", sync_data.get("default_date_from", DEFAULT_DATE_FROM)
            )
        ),
    )

    category_data = data.get("categories", {}) or {}
    categories = CategoryConfig(
        expense_preferred=_pair(category_data.get("expense_preferred"), ("Overig", "Overig")),
        income_preferred=_pair(category_data.get("income_preferred"), ("Inkomsten", "Overig")),
    )

    state_db = os.environ.get("STATE_DB_PATH", data.get("state_db_path", "data/state.db"))

    return Config(
        bunq=bunq,
        sync=sync,
        categories=categories,
        state_db_path=Path(state_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# bunq synchronization worker configuration
#
# The API key may also be supplied via BUNQ_API_KEY, which takes precedence.

bunq:
  api_key: ""                              # Long-lived bunq API key (secret)
  base_url: "https://api.bunq.com/v1"
  device_description: "BudgetFlow"        # Shown in the bunq app device list
  permitted_ips: ["*"]                     # "*" = unrestricted
  timeout_seconds: 30

sync:
  page_size: 200                           # Payments per page
  max_items: 5000                          # Safety bound per account per run
  default_date_from: "2024-01-01"          # Floor when no date_from is given

# Default subcategories for imported payments: [category, subcategory]
categories:
  expense_preferred: ["Overig", "Overig"]
  income_preferred: ["Inkomsten", "Overig"]

# State database path
state_db_path: "data/state.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
