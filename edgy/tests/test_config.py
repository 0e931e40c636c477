"""Unit tests for environment and YAML-driven settings."""

from edgy.core.config import Settings, load_settings


class TestLoadSettings:

    def test_defaults(self, monkeypatch):
        for name in ("EDGY_SCREENS_PER_BATCH", "EDGY_CONFIG", "ANTHROPIC_API_KEY", "GEMINI_API_KEY"):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()

        assert settings.screens_per_batch == 4
        assert settings.max_concurrent_batches == 3
        assert settings.cache_max_entries == 200
        assert settings.credential_for("claude") is None

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("EDGY_SCREENS_PER_BATCH", "2")
        monkeypatch.setenv("EDGY_LLM_TIMEOUT", "30")
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        monkeypatch.setenv("EDGY_CORS_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.delenv("EDGY_CONFIG", raising=False)

        settings = load_settings()

        assert settings.screens_per_batch == 2
        assert settings.llm_timeout == 30.0
        assert settings.credential_for("gemini") == "g-key"
        assert settings.cors_origins == ["http://a.test", "http://b.test"]

    def test_bad_number_falls_back(self, monkeypatch):
        monkeypatch.setenv("EDGY_CACHE_MAX_ENTRIES", "lots")
        monkeypatch.delenv("EDGY_CONFIG", raising=False)

        assert load_settings().cache_max_entries == 200

    def test_yaml_overrides(self, monkeypatch, tmp_path):
        config = tmp_path / "edgy.yaml"
        config.write_text("max_concurrent_batches: 1\nunknown_key: true\n")
        monkeypatch.setenv("EDGY_CONFIG", str(config))

        settings = load_settings()

        assert settings.max_concurrent_batches == 1
        assert not hasattr(settings, "unknown_key")

    def test_missing_yaml_ignored(self, monkeypatch, tmp_path):
        monkeypatch.setenv("EDGY_CONFIG", str(tmp_path / "absent.yaml"))
        monkeypatch.delenv("EDGY_SCREENS_PER_BATCH", raising=False)

        assert load_settings().screens_per_batch == Settings().screens_per_batch
