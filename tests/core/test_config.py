from __future__ import annotations

import pytest

from preserve_utils.core import config as core_config


def test_load_toml_reports_missing_and_invalid(tmp_path):
    broken = tmp_path / "broken.toml"
    broken.write_text("[paths\n", encoding="utf-8")

    with pytest.raises(core_config.TomlConfigError, match="not found"):
        core_config.load_toml(tmp_path / "absent.toml")
    with pytest.raises(core_config.TomlConfigError, match="Invalid TOML"):
        core_config.load_toml(broken)


def test_parse_toml_names_source_in_errors():
    assert core_config.parse_toml("a = 1") == {"a": 1}
    with pytest.raises(core_config.TomlConfigError, match="settings.toml"):
        core_config.parse_toml("a = ", source="settings.toml")


def test_merge_defaults_merges_tables_and_rejects_unknown_keys():
    base = {"execution": {"max_workers": 4, "verify": False}, "name": "x"}

    core_config.merge_defaults(base, {"execution": {"verify": True}})

    assert base["execution"] == {"max_workers": 4, "verify": True}
    assert base["name"] == "x"
    with pytest.raises(core_config.TomlConfigError, match="execution.retries"):
        core_config.merge_defaults(base, {"execution": {"retries": 2}})
    with pytest.raises(core_config.TomlConfigError, match="Expected table"):
        core_config.merge_defaults(base, {"execution": 3})


def test_write_toml_template_respects_overwrite(tmp_path):
    target = tmp_path / "nested" / "convert.toml"

    core_config.write_toml_template(target, template="a = 1\n")

    assert target.read_text(encoding="utf-8") == "a = 1\n"
    with pytest.raises(core_config.TomlConfigError, match="already exists"):
        core_config.write_toml_template(target, template="a = 2\n")
    core_config.write_toml_template(target, template="a = 2\n", overwrite=True)
    assert target.read_text(encoding="utf-8") == "a = 2\n"
