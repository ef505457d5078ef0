"""Tests for application settings."""

from icd_encoder.core.config import Settings


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_fields(self):
        """Test settings hold only values the encoder reads."""
        assert set(Settings.model_fields) == {
            "icd_data_path",
            "max_output_codes",
            "min_candidate_score",
            "index_fallback_limit",
        }

    def test_defaults(self, monkeypatch):
        """Test default output limits."""
        monkeypatch.delenv("MAX_OUTPUT_CODES", raising=False)
        settings = Settings(_env_file=None)
        assert settings.max_output_codes == 15
        assert settings.min_candidate_score == 3.0
        assert settings.index_fallback_limit == 5

    def test_environment_override(self, monkeypatch):
        """Test environment variables override defaults, case-insensitively."""
        monkeypatch.setenv("max_output_codes", "5")
        monkeypatch.setenv("ICD_DATA_PATH", "/tmp/catalog.json")
        settings = Settings(_env_file=None)
        assert settings.max_output_codes == 5
        assert settings.icd_data_path == "/tmp/catalog.json"
