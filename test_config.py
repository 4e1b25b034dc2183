"""
Configuration tests: environment mapping, .env files, price tables.
"""

import tempfile
from pathlib import Path

import pytest


FLAT_PRICES = {"PRICE_1_8": "700", "PRICE_9_13": "680", "PRICE_14_PLUS": "650"}


def size_prices():
    values = {}
    for tier, base in (("1_8", 800), ("9_13", 780), ("14_PLUS", 750)):
        values[f"SIZE_PRICE_{tier}_LARGE"] = str(base)
        values[f"SIZE_PRICE_{tier}_REGULAR"] = str(base - 100)
        values[f"SIZE_PRICE_{tier}_SMALL"] = str(base - 150)
    return values


class TestAppConfig:
    """AppConfig.from_mapping."""

    def test_defaults(self):
        from core.config import AppConfig
        config = AppConfig.from_mapping({})
        assert config.order_history_sheet == "OrderHistory"
        assert config.snapshot_backend == "sheet"
        assert config.llm_model == "gpt-4o"
        assert config.spreadsheet_id is None

    def test_blank_values_ignored(self):
        from core.config import AppConfig
        config = AppConfig.from_mapping({"SPREADSHEET_ID": "  ", "VENDOR_EMAIL": "shop@example.com"})
        assert config.spreadsheet_id is None
        assert config.vendor_email == "shop@example.com"

    def test_missing_reports_env_names(self):
        from core.config import AppConfig
        config = AppConfig.from_mapping({"SPREADSHEET_ID": "sheet-1"})
        assert config.missing("spreadsheet_id", "vendor_email", "openai_api_key") == [
            "VENDOR_EMAIL", "OPENAI_API_KEY",
        ]

    def test_flat_price_table(self):
        from core.config import AppConfig
        table = AppConfig.from_mapping(FLAT_PRICES).price_table_for("2025/12")
        assert table is not None
        assert [t.unit_price for t in table.tiers] == [700, 680, 650]

    def test_incomplete_flat_prices(self):
        from core.config import AppConfig
        config = AppConfig.from_mapping({"PRICE_1_8": "700"})
        assert config.price_table_for("2025/12") is None

    def test_size_pricing_from_month(self):
        """Months before SIZE_PRICING_FROM use the flat table."""
        from core.config import AppConfig
        config = AppConfig.from_mapping({**FLAT_PRICES, **size_prices(), "SIZE_PRICING_FROM": "2026/01"})
        assert not config.price_table_for("2025/12").is_size_based
        assert config.price_table_for("2026/01").is_size_based
        assert config.price_table_for("2026/02").is_size_based

    @pytest.mark.parametrize("written", ["2026/1", "2026-01", "2026.1", "2026年1月"])
    def test_size_pricing_from_normalized(self, written):
        from core.config import AppConfig
        config = AppConfig.from_mapping({**FLAT_PRICES, **size_prices(), "SIZE_PRICING_FROM": written})
        assert config.size_pricing_from == "2026/01"
        assert not config.price_table_for("2025/12").is_size_based
        assert config.price_table_for("2026/01").is_size_based
        assert config.price_table_for("2026/10").is_size_based

    def test_incomplete_size_prices_fall_back(self):
        from core.config import AppConfig
        config = AppConfig.from_mapping({
            **FLAT_PRICES, "SIZE_PRICING_FROM": "2026/01", "SIZE_PRICE_1_8_LARGE": "800",
        })
        assert not config.price_table_for("2026/01").is_size_based


class TestConfigLoader:
    """ConfigLoader caches until refresh()."""

    def test_env_file_overridden_by_environ(self):
        from core.config import ConfigLoader
        with tempfile.TemporaryDirectory() as tmp:
            env_path = Path(tmp) / ".env"
            env_path.write_text("STORE_NAME=Bento Shop\nVENDOR_EMAIL=file@example.com\n", encoding="utf-8")
            loader = ConfigLoader(env_path, environ={"VENDOR_EMAIL": "env@example.com"})
            config = loader.get()
        assert config.store_name == "Bento Shop"
        assert config.vendor_email == "env@example.com"

    def test_cached_until_refresh(self):
        from core.config import ConfigLoader
        environ = {"STORE_NAME": "A"}
        loader = ConfigLoader(None, environ=environ)
        assert loader.get().store_name == "A"

        environ["STORE_NAME"] = "B"
        assert loader.get().store_name == "A"
        assert loader.refresh().store_name == "B"

    def test_missing_env_file(self):
        from core.config import ConfigLoader
        loader = ConfigLoader(Path("/nonexistent/.env"), environ={})
        assert loader.get().store_name is None

    def test_invalid_price_raises(self):
        from core.config import ConfigLoader
        from pydantic import ValidationError
        loader = ConfigLoader(None, environ={"PRICE_1_8": "cheap"})
        with pytest.raises(ValidationError):
            loader.get()


class TestRunJobConfiguration:
    """The job runner refuses to start on unusable configuration."""

    def test_invalid_setting_returns_2(self, monkeypatch, tmp_path, caplog):
        import logging
        from scripts.run_job import main

        monkeypatch.setenv("PRICE_1_8", "680円")
        with caplog.at_level(logging.ERROR, logger="scripts.run_job"):
            code = main(["invoices", "--env-file", str(tmp_path / "missing.env")])

        assert code == 2
        errors = [r.getMessage() for r in caplog.records if r.name == "scripts.run_job"]
        assert errors and "invalid configuration" in errors[0]
        assert "price_1_8" in errors[0]

    def test_invalid_setting_from_env_file(self, monkeypatch, tmp_path):
        from scripts.run_job import main

        monkeypatch.delenv("SIZE_PRICING_FROM", raising=False)
        env_path = tmp_path / ".env"
        env_path.write_text("SIZE_PRICING_FROM=sometime\n", encoding="utf-8")
        assert main(["menus", "--no-mail", "--env-file", str(env_path)]) == 2
