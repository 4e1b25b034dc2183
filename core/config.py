"""Application configuration.

Settings come from the process environment, optionally seeded from a ``.env``
file at the repository root. A ``ConfigLoader`` owns the loaded ``AppConfig``
for the lifetime the caller chooses; call ``refresh()`` after changing the
environment to pick up new values.
"""

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field

from core.models import MonthValue, PriceTable, SizeCategory
from core.observability import get_logger

logger = get_logger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ENV_PATH = REPO_ROOT / ".env"

TIER_KEYS = ("1_8", "9_13", "14_plus")

# field name -> environment variable
ENV_VARS: Dict[str, str] = {
    "spreadsheet_id": "SPREADSHEET_ID",
    "order_history_sheet": "ORDER_HISTORY_SHEET",
    "menu_sheet": "MENU_SHEET",
    "snapshot_sheet": "SNAPSHOT_SHEET",
    "order_card_folder_id": "ORDER_CARD_FOLDER_ID",
    "google_token_file": "GOOGLE_TOKEN_FILE",
    "snapshot_backend": "SNAPSHOT_BACKEND",
    "snapshot_db_path": "SNAPSHOT_DB_PATH",
    "artifacts_dir": "ARTIFACTS_DIR",
    "openai_api_key": "OPENAI_API_KEY",
    "llm_model": "LLM_MODEL",
    "menu_prompt": "MENU_PROMPT",
    "invoice_prompt": "INVOICE_PROMPT",
    "gmail_query_menu": "GMAIL_QUERY_MENU",
    "gmail_query_invoice": "GMAIL_QUERY_INVOICE",
    "store_name": "STORE_NAME",
    "slack_bot_token": "SLACK_BOT_TOKEN",
    "slack_channel_id": "SLACK_CHANNEL_ID",
    "vendor_email": "VENDOR_EMAIL",
    "sender_name": "SENDER_NAME",
    "general_affairs_name": "GENERAL_AFFAIRS_NAME",
    "general_affairs_email": "GENERAL_AFFAIRS_EMAIL",
    "price_1_8": "PRICE_1_8",
    "price_9_13": "PRICE_9_13",
    "price_14_plus": "PRICE_14_PLUS",
    "size_pricing_from": "SIZE_PRICING_FROM",
    "log_level": "LOG_LEVEL",
    "log_json": "LOG_JSON",
}
for _tier in TIER_KEYS:
    for _size in SizeCategory:
        ENV_VARS[f"size_price_{_tier}_{_size.value}"] = f"SIZE_PRICE_{_tier.upper()}_{_size.value.upper()}"


class AppConfig(BaseModel):
    """Every setting the jobs read. Unset optional values stay None."""

    # Spreadsheets / storage
    spreadsheet_id: Optional[str] = None
    order_history_sheet: str = "OrderHistory"
    menu_sheet: str = "Menu"
    snapshot_sheet: str = "OrderSnapshots"
    order_card_folder_id: Optional[str] = None
    google_token_file: str = "token.json"
    snapshot_backend: str = Field("sheet", description="sheet or sqlite")
    snapshot_db_path: str = "bento.db"
    artifacts_dir: str = "artifacts"

    # LLM extraction
    openai_api_key: Optional[str] = None
    llm_model: str = "gpt-4o"
    menu_prompt: Optional[str] = None
    invoice_prompt: Optional[str] = None

    # Mail
    gmail_query_menu: Optional[str] = None
    gmail_query_invoice: Optional[str] = None
    store_name: Optional[str] = None
    vendor_email: Optional[str] = None
    sender_name: Optional[str] = None
    general_affairs_name: Optional[str] = None
    general_affairs_email: Optional[str] = None

    # Chat
    slack_bot_token: Optional[str] = None
    slack_channel_id: Optional[str] = None

    # Pricing
    price_1_8: Optional[int] = None
    price_9_13: Optional[int] = None
    price_14_plus: Optional[int] = None
    size_price_1_8_large: Optional[int] = None
    size_price_1_8_regular: Optional[int] = None
    size_price_1_8_small: Optional[int] = None
    size_price_9_13_large: Optional[int] = None
    size_price_9_13_regular: Optional[int] = None
    size_price_9_13_small: Optional[int] = None
    size_price_14_plus_large: Optional[int] = None
    size_price_14_plus_regular: Optional[int] = None
    size_price_14_plus_small: Optional[int] = None
    size_pricing_from: Optional[MonthValue] = Field(None, description="First YYYY/MM billed per size")

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, Optional[str]]) -> "AppConfig":
        """Build from an environment-style mapping, ignoring blank values."""
        data = {}
        for field_name, env_name in ENV_VARS.items():
            raw = values.get(env_name)
            if raw is None or str(raw).strip() == "":
                continue
            data[field_name] = str(raw).strip()
        return cls.model_validate(data)

    def missing(self, *field_names: str) -> List[str]:
        """Return the environment names of required settings that are unset."""
        return [
            ENV_VARS.get(name, name)
            for name in field_names
            if getattr(self, name, None) in (None, "")
        ]

    def flat_price_table(self) -> Optional[PriceTable]:
        prices = [self.price_1_8, self.price_9_13, self.price_14_plus]
        if any(p is None for p in prices):
            return None
        return PriceTable.flat(prices)

    def size_price_table(self) -> Optional[PriceTable]:
        tiers = []
        for tier in TIER_KEYS:
            size_map = {
                size: getattr(self, f"size_price_{tier}_{size.value}")
                for size in SizeCategory
            }
            if any(v is None for v in size_map.values()):
                return None
            tiers.append(size_map)
        return PriceTable.by_size(tiers)

    def price_table_for(self, target_month: str) -> Optional[PriceTable]:
        """Pick the per-size table from size_pricing_from onwards, the flat table before."""
        if self.size_pricing_from and target_month >= self.size_pricing_from:
            table = self.size_price_table()
            if table is not None:
                return table
            logger.warning(
                f"Per-size pricing applies from {self.size_pricing_from} but is incomplete; "
                "falling back to flat prices"
            )
        return self.flat_price_table()


class ConfigLoader:
    """Loads AppConfig once per lifetime of the loader; refresh() reloads."""

    def __init__(self, env_path: Optional[Path] = DEFAULT_ENV_PATH, environ: Optional[Mapping[str, str]] = None):
        self.env_path = Path(env_path) if env_path else None
        self._environ = environ
        self._config: Optional[AppConfig] = None

    def _read_values(self) -> Dict[str, Optional[str]]:
        values: Dict[str, Optional[str]] = {}
        if self.env_path and self.env_path.exists():
            values.update(dotenv_values(self.env_path))
        values.update(os.environ if self._environ is None else self._environ)
        return values

    def get(self) -> AppConfig:
        if self._config is None:
            self._config = AppConfig.from_mapping(self._read_values())
            logger.debug("Configuration loaded")
        return self._config

    def refresh(self) -> AppConfig:
        logger.info("Refreshing configuration")
        self._config = None
        return self.get()
