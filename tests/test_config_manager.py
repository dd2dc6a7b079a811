"""Tests for configuration loading and validation."""
import yaml

from practice_metrics.utils.config_manager import ConfigManager


def test_defaults_without_file():
    config = ConfigManager()

    assert config.get("api.base_url") == "https://app.clio.com/api/v4"
    assert config.get("pagination.per_page") == 200
    assert config.get("missing.key", "fallback") == "fallback"
    assert config.validate()["is_valid"]


def test_yaml_overrides_merge_with_defaults(tmp_path):
    path = tmp_path / "dashboard.yml"
    path.write_text(yaml.safe_dump({
        "api": {"timeout_seconds": 10},
        "source_mode": "collections",
        "inference": {"attorney_preferences": [["partner"]]},
    }))

    config = ConfigManager(path)

    assert config.get("api.timeout_seconds") == 10
    assert config.get("api.max_retries") == 3
    assert config.get("source_mode") == "collections"
    assert config.get("inference.attorney_preferences") == [["partner"]]
    assert config.get("inference.sample_rows") == 10


def test_malformed_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "broken.yml"
    path.write_text("- just\n- a list\n")

    config = ConfigManager(path)

    assert config.get("source_mode") == "reports"


def test_validate_reports_bad_values():
    config = ConfigManager()
    config.set("source_mode", "scrape")
    config.set("pagination.per_page", 0)
    config.set("log_level", "chatty")

    result = config.validate()

    assert not result["is_valid"]
    assert any("source_mode" in issue for issue in result["issues"])
    assert any("pagination.per_page" in issue for issue in result["issues"])
    assert result["warnings"]
    assert config.get("log_level") == "INFO"


def test_defaults_are_not_shared_between_instances():
    first = ConfigManager()
    first.get("inference.revenue_include").append("bogus")

    assert "bogus" not in ConfigManager().get("inference.revenue_include")


def test_save_round_trip(tmp_path):
    config = ConfigManager()
    config.set("zero_data_policy", "sample")
    path = tmp_path / "saved" / "config.yml"

    config.save(path)

    assert ConfigManager(path).get("zero_data_policy") == "sample"
