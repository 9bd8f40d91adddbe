from __future__ import annotations

import json

import pytest

from credfacts.core.config.lookup import ConfigPolicyLookup, Setting
from credfacts.core.config.manager import ConfigManager
from credfacts.core.errors import ConfigError
from credfacts.core.policy.models import ForceSetupPolicy, PasswordRule

from .helpers.config_builders import build_credfacts_config_v1, build_password_section, build_update_profile_section


def _write(tmp_path, obj):
    p = tmp_path / "credfacts.json"
    p.write_text(obj if isinstance(obj, str) else json.dumps(obj), encoding="utf-8")
    return str(p)


def test_missing_file_uses_defaults(tmp_path):
    cfg = ConfigManager(path=str(tmp_path / "nope.json")).load()
    assert cfg.password.expire_pre_time_seconds == 5 * 24 * 3600
    assert cfg.password.expire_warn_time_seconds == 0
    assert "default" in cfg.password.policies
    assert cfg.otp.enabled is False


def test_load_is_cached(tmp_path):
    cm = ConfigManager(path=_write(tmp_path, build_credfacts_config_v1()))
    assert cm.load() is cm.get()


def test_corrupt_json_is_config_error(tmp_path):
    cm = ConfigManager(path=_write(tmp_path, "{not json"))
    with pytest.raises(ConfigError) as ei:
        cm.load()
    assert ei.value.context["error"].startswith("corrupt_json")


def test_non_object_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        ConfigManager(path=_write(tmp_path, "[1, 2]")).load()


def test_unknown_keys_are_rejected(tmp_path):
    cm = ConfigManager(path=_write(tmp_path, build_credfacts_config_v1(surprise=True)))
    with pytest.raises(ConfigError) as ei:
        cm.load()
    assert any("surprise" in e for e in ei.value.context["errors"])


def test_negative_window_is_rejected():
    with pytest.raises(ConfigError):
        ConfigManager.validate({"password": {"expire_pre_time_seconds": -1}})


def test_default_policy_is_always_present():
    cfg = ConfigManager.validate({"password": {"policies": {"strict": {"rules": {"minimum_length": 12}}}}})
    assert set(cfg.password.policies) == {"default", "strict"}


def test_lookup_reads_settings():
    raw = build_credfacts_config_v1(
        password=build_password_section(pre=100, warn=200, rules={"minimum_length": 8}),
        otp={"enabled": True, "force_setup": "FORCE"},
        update_profile=build_update_profile_section(form=[{"name": "mail"}]),
    )
    lookup = ConfigPolicyLookup(ConfigManager.validate(raw))
    assert lookup.read_setting(Setting.PASSWORD_EXPIRE_PRE_TIME) == 100
    assert lookup.read_setting("password.expire.warn_time") == 200
    assert lookup.read_setting(Setting.PASSWORD_POLICY_RULES) == {PasswordRule.MINIMUM_LENGTH: 8}
    assert lookup.read_setting(Setting.OTP_FORCE_SETUP) == ForceSetupPolicy.FORCE
    assert lookup.read_setting(Setting.UPDATE_PROFILE_IDS) == ["profile1"]
    assert lookup.read_setting(Setting.UPDATE_PROFILE_FORCE_SETUP, "profile1") is True
    assert [f.name for f in lookup.read_setting(Setting.UPDATE_PROFILE_FORM, "profile1")] == ["mail"]
    assert lookup.read_setting(Setting.LDAP_USERNAME_ATTRIBUTE, "default") == "cn"


def test_lookup_rejects_unknown_setting_and_scope():
    lookup = ConfigPolicyLookup(ConfigManager.validate({}))
    with pytest.raises(ConfigError):
        lookup.read_setting("no.such.setting")
    with pytest.raises(ConfigError) as ei:
        lookup.read_setting(Setting.LDAP_EMAIL_ATTRIBUTE, "corp")
    assert ei.value.context["section"] == "ldap"
