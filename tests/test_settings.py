import pytest

from canlink.settings import NestedSettings, NoSettings, SettingsMap


@pytest.fixture
def nested():
    return NestedSettings({"param": 1, "segment": {"param": 2}})


def test_nested_top_level(nested):
    assert nested.get("param", int) == 1
    assert nested.get_optional("param", 0) == 1
    assert nested.get("param2", int) is None
    assert nested.get_optional("param2", 0) == 0


def test_nested_segment(nested):
    assert nested.get("segment/param", int) == 2
    assert nested.get_optional("segment/param", 0) == 2
    assert nested.get("segment/param2", int) is None
    assert nested.get_optional("segment/param2", 0) == 0
    assert nested.get("segment2/param", int) is None
    assert nested.get_optional("segment2/param", 0) == 0


def test_nested_does_not_descend_into_scalars():
    settings = NestedSettings({"a": 5})
    assert settings.get("a/b", int) is None


def test_no_settings_gives_defaults():
    settings = NoSettings()
    assert settings.get_optional("trace", False) is False
    assert settings.get("trace", bool) is None


def test_map_bool_round_trip():
    m = SettingsMap()
    m.set("error_mask/CAN_ERR_LOSTARB", False)
    m.set("trace", True)
    assert m.get_optional("error_mask/CAN_ERR_LOSTARB", True) is False
    assert m.get_optional("trace", False) is True
    assert m.get("trace", str) == "1"


def test_map_numbers_round_trip():
    m = SettingsMap()
    m.set("count", 42)
    m.set("ratio", 0.25)
    assert m.get("count", int) == 42
    assert m.get_optional("ratio", 1.0) == 0.25


def test_bad_conversion_raises():
    m = SettingsMap()
    m.set("name", "abc")
    with pytest.raises(ValueError):
        m.get("name", int)
    with pytest.raises(ValueError):
        m.get_optional("name", False)