from __future__ import annotations

import json

from core.config import Settings, load_config, save_config
from core.m3u import AttributeMap


def test_missing_file_gives_defaults(tmp_path):
    settings = load_config(tmp_path / "absent.json")
    assert settings == Settings()
    assert settings.attribute_map() == AttributeMap()


def test_invalid_json_gives_defaults(tmp_path):
    p = tmp_path / "config.json"
    p.write_text("{not json", encoding="utf-8")
    assert load_config(p) == Settings()


def test_partial_config_and_attribute_override(tmp_path):
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"timeout": 5, "unknown": 1, "attributes": {"group": ["category"]}}), encoding="utf-8")
    settings = load_config(p)
    assert settings.timeout == 5
    amap = settings.attribute_map()
    assert amap.group == ("category",)
    assert amap.cover == ("tvg-logo", "logo")


def test_save_then_load(tmp_path):
    p = tmp_path / "nested" / "config.json"
    settings = Settings(db_path="x.db", max_workers=2)
    save_config(settings, p)
    assert load_config(p) == settings


def _write(tmp_path, data):
    p = tmp_path / "config.json"
    p.write_text(json.dumps(data), encoding="utf-8")
    return p


def test_attributes_not_an_object_keeps_defaults(tmp_path):
    settings = load_config(_write(tmp_path, {"attributes": ["group-title"], "timeout": 7}))
    assert settings.attribute_map() == AttributeMap()
    assert settings.timeout == 7


def test_attribute_names_of_wrong_type_keep_defaults(tmp_path):
    settings = load_config(_write(tmp_path, {"attributes": {"group": 3}}))
    assert settings.attribute_map() == AttributeMap()


def test_attribute_name_as_string(tmp_path):
    settings = load_config(_write(tmp_path, {"attributes": {"group": "category"}}))
    assert settings.attribute_map().group == ("category",)


def test_wrong_typed_numbers_keep_defaults(tmp_path, caplog):
    settings = load_config(_write(tmp_path, {"max_workers": "x", "timeout": -1, "db_path": 12}))
    assert settings.max_workers == Settings().max_workers
    assert settings.timeout == Settings().timeout
    assert settings.db_path == Settings().db_path
    assert "max_workers" in caplog.text


def test_numeric_strings_are_coerced(tmp_path):
    settings = load_config(_write(tmp_path, {"max_workers": "2", "timeout": "3.5"}))
    assert settings.max_workers == 2
    assert settings.timeout == 3.5


def test_boolean_is_not_a_number(tmp_path):
    assert load_config(_write(tmp_path, {"max_workers": True})).max_workers == Settings().max_workers
