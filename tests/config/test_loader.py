"""
Tests for configuration loading (dairy_config).
"""

from decimal import Decimal

import pytest
import yaml

from dairy_config import CONFIG_ENV_VAR, get_active_config
from dairy_config.loader import compute_checksum, parse_config, parse_rule
from dairy_config.schema import RateSeriesDef

MINIMAL = {
    "config_id": "TEST",
    "rate_card": {
        "rules": [
            {"milk_type": "cow", "price_per_litre": "40", "fat_min": 4, "fat_max": 4.5},
        ],
    },
}


class TestParse:

    def test_rule_values_are_exact_decimals(self):
        rule = parse_rule({"milk_type": "cow", "price_per_litre": 40.1, "fat_min": 4.1})
        assert rule.milk_type == "COW"
        assert rule.price_per_litre == Decimal("40.1")
        assert rule.fat_min == Decimal("4.1")
        assert rule.fat_max is None

    def test_missing_price_raises(self):
        with pytest.raises(KeyError):
            parse_rule({"milk_type": "COW"})

    def test_boolean_price_rejected(self):
        with pytest.raises(ValueError):
            parse_rule({"milk_type": "COW", "price_per_litre": True})

    def test_missing_config_id_raises(self):
        with pytest.raises(KeyError):
            parse_config({"version": 1})

    def test_defaults(self):
        config = parse_config(MINIMAL)
        assert config.version == 1
        assert config.settings.currency == "INR"
        assert config.database.url.startswith("sqlite")
        assert len(config.rate_card.all_rules()) == 1

    def test_checksum_is_stable(self):
        assert compute_checksum(MINIMAL) == compute_checksum(dict(MINIMAL))
        assert compute_checksum(MINIMAL) != compute_checksum({**MINIMAL, "version": 2})


class TestSeries:

    def test_expand(self):
        series = RateSeriesDef(
            milk_type="BUFFALO",
            fat_from=Decimal("6"),
            fat_to=Decimal("7.2"),
            step=Decimal("0.5"),
            base_rate=Decimal("30"),
            per_fat=Decimal("4"),
        )
        rules = series.expand()
        assert [(r.fat_min, r.fat_max) for r in rules] == [
            (Decimal("6"), Decimal("6.5")),
            (Decimal("6.5"), Decimal("7.0")),
            (Decimal("7.0"), Decimal("7.2")),
        ]
        # 30 + 7.1 * 4
        assert rules[-1].price_per_litre == Decimal("58.40")

    def test_non_positive_step_rejected(self):
        with pytest.raises(ValueError):
            RateSeriesDef("COW", Decimal("1"), Decimal("2"), Decimal("0"), Decimal("1"), Decimal("1"))


class TestActiveConfig:

    def test_packaged_default(self, monkeypatch, captured_logs):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = get_active_config()

        assert config.config_id == "DAIRY-DEFAULT"
        cow = [r for r in config.rate_card.all_rules() if r.milk_type == "COW"]
        assert len(cow) == 20
        band = next(r for r in cow if r.fat_min == Decimal("4.0"))
        assert band.price_per_litre == Decimal("35.63")

        trace = [r for r in captured_logs if r["message"] == "DAIRY_CONFIG_TRACE"]
        assert trace[0]["checksum"] == config.checksum

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump(MINIMAL))
        assert get_active_config(path).config_id == "TEST"

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text(yaml.safe_dump({**MINIMAL, "config_id": "FROM-ENV"}))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert get_active_config().config_id == "FROM-ENV"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")
