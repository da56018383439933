"""Tests for git_deployer.settings module."""

import stat

import pytest

from git_deployer.settings import (
    DEFAULT_ENVIRONMENT_MAPPINGS,
    Settings,
    SettingsError,
    SettingsStore,
    UnknownEnvironmentError,
    settings_from_dict,
)


class TestSettings:
    def test_default_mappings(self):
        s = Settings()
        assert s.environment_mappings == {
            "dev-test": "develop",
            "test": "release/test",
            "preprod": "release/candidate",
            "prod": "master",
        }
        assert s.recent_commit_days == 7

    def test_defaults_not_shared(self):
        a = Settings()
        a.environment_mappings["extra"] = "x"
        assert "extra" not in Settings().environment_mappings
        assert "extra" not in DEFAULT_ENVIRONMENT_MAPPINGS

    def test_mappings_keep_order(self):
        s = Settings(environment_mappings={"b": "two", "a": "one"})
        assert [m.name for m in s.mappings()] == ["b", "a"]

    def test_mapping_lookup(self):
        m = Settings().mapping("prod")
        assert m.branch == "master"

    def test_unknown_environment(self):
        with pytest.raises(UnknownEnvironmentError) as exc_info:
            Settings().mapping("staging")
        assert exc_info.value.name == "staging"
        assert str(exc_info.value) == "Unknown environment: staging"
        assert isinstance(exc_info.value, SettingsError)


class TestSettingsFromDict:
    def test_missing_keys_use_defaults(self):
        s = settings_from_dict({})
        assert s.repository_url == ""
        assert s.environment_mappings == DEFAULT_ENVIRONMENT_MAPPINGS

    def test_explicit_values(self):
        s = settings_from_dict(
            {
                "access_token": "tok",
                "repository_url": "https://github.com/acme/shop.git",
                "environment_mappings": {"qa": "develop"},
                "recent_commit_days": 14,
            }
        )
        assert s.access_token == "tok"
        assert s.environment_mappings == {"qa": "develop"}
        assert s.recent_commit_days == 14

    def test_bad_mappings(self):
        with pytest.raises(SettingsError):
            settings_from_dict({"environment_mappings": ["prod"]})

    def test_bad_days(self):
        with pytest.raises(SettingsError):
            settings_from_dict({"recent_commit_days": "soon"})


class TestSettingsStore:
    def test_missing_file_gives_defaults(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.yaml")
        assert store.load() == Settings()

    def test_save_and_load(self, tmp_path):
        store = SettingsStore(tmp_path / "nested" / "settings.yaml")
        settings = Settings(
            access_token="ghp_abc",
            repository_url="https://github.com/acme/shop.git",
            environment_mappings={"qa": "develop", "live": "main"},
        )
        store.save(settings)
        assert store.load() == settings

    def test_saved_file_is_private(self, tmp_path):
        path = tmp_path / "settings.yaml"
        SettingsStore(path).save(Settings(access_token="secret"))
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(": bad: yaml: [")
        with pytest.raises(SettingsError):
            SettingsStore(path).load()

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(SettingsError):
            SettingsStore(path).load()

    def test_update_environment_mapping(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.yaml")
        store.update_environment_mapping("staging", "release/staging")
        assert store.load().mapping("staging").branch == "release/staging"

    def test_remove_environment_mapping(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.yaml")
        assert store.remove_environment_mapping("prod") is True
        assert "prod" not in store.load().environment_mappings
        assert store.remove_environment_mapping("prod") is False
