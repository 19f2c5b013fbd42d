"""Tests for loader options and process configuration."""

import pytest
from pydantic import ValidationError

from dbfixtures.core import config as config_module
from dbfixtures.core.config import FixturesConfig, load_config
from dbfixtures.models.options import LoaderOptions, ParamStyle


class TestLoaderOptions:
    """Test LoaderOptions validation."""

    def test_defaults(self):
        """Test safe defaults."""
        options = LoaderOptions()

        assert options.skip_test_database_check is False
        assert options.skip_cleanup_fixture_tables is False
        assert options.skip_table_checksum_computation is False
        assert options.skip_reset_sequences is False
        assert options.reset_sequences_to == 10000
        assert options.param_style is None
        assert options.location is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("$", ParamStyle.DOLLAR),
            ("?", ParamStyle.QUESTION),
            ("at_sign", ParamStyle.AT_SIGN),
            ("format", ParamStyle.FORMAT),
            (ParamStyle.COLON, ParamStyle.COLON),
        ],
    )
    def test_param_style_values_and_names(self, value, expected):
        """Test param styles accept enum values, names and members."""
        assert LoaderOptions(param_style=value).param_style is expected

    def test_unknown_param_style(self):
        """Test unsupported styles are rejected."""
        with pytest.raises(ValidationError, match="Unsupported param style"):
            LoaderOptions(param_style="pyformat")

    def test_reset_value_must_be_positive(self):
        """Test the sequence floor must be at least one."""
        with pytest.raises(ValidationError):
            LoaderOptions(reset_sequences_to=0)

    def test_constraint_modes_exclusive(self):
        """Test alter and drop constraint modes cannot be combined."""
        with pytest.raises(ValidationError, match="mutually exclusive"):
            LoaderOptions(use_alter_constraint=True, use_drop_constraint=True)

    def test_location(self):
        """Test IANA zone names are accepted."""
        assert LoaderOptions(location="America/Sao_Paulo").location == "America/Sao_Paulo"

    def test_unknown_location(self):
        """Test unknown zones are rejected."""
        with pytest.raises(ValidationError, match="Unknown time zone"):
            LoaderOptions(location="Mars/Olympus_Mons")

    def test_extra_fields_forbidden(self):
        """Test misspelled options fail loudly."""
        with pytest.raises(ValidationError):
            LoaderOptions(skip_test_db_check=True)


class TestParamStyle:
    """Test placeholder rendering."""

    @pytest.mark.parametrize(
        "style,expected",
        [
            (ParamStyle.DOLLAR, "$3"),
            (ParamStyle.QUESTION, "?"),
            (ParamStyle.AT_SIGN, "@p3"),
            (ParamStyle.FORMAT, "%s"),
            (ParamStyle.COLON, ":3"),
        ],
    )
    def test_placeholder(self, style, expected):
        """Test the third placeholder of each style."""
        assert style.placeholder(3) == expected

    @pytest.mark.parametrize(
        "paramstyle,expected",
        [
            ("qmark", ParamStyle.QUESTION),
            ("format", ParamStyle.FORMAT),
            ("pyformat", ParamStyle.FORMAT),
            ("numeric", ParamStyle.COLON),
            ("named", ParamStyle.COLON),
            ("numeric_dollar", ParamStyle.DOLLAR),
            (None, None),
            ("unknown", None),
        ],
    )
    def test_from_dbapi(self, paramstyle, expected):
        """Test DB-API paramstyle detection."""
        assert ParamStyle.from_dbapi(paramstyle) is expected


class TestFixturesConfig:
    """Test environment-backed configuration."""

    def test_defaults(self, monkeypatch):
        """Test defaults without environment variables."""
        for key in ("DBFIXTURES_LOG_LEVEL", "DBFIXTURES_LOG_FORMAT", "DBFIXTURES_RESET_SEQUENCES_TO"):
            monkeypatch.delenv(key, raising=False)

        config = load_config()

        assert config.as_dict() == {"log_level": "INFO", "log_format": "text", "reset_sequences_to": 10000}

    def test_environment_overrides(self, monkeypatch):
        """Test values are read from the environment."""
        monkeypatch.setenv("DBFIXTURES_LOG_LEVEL", "debug")
        monkeypatch.setenv("DBFIXTURES_LOG_FORMAT", "json")
        monkeypatch.setenv("DBFIXTURES_RESET_SEQUENCES_TO", "500")

        config = FixturesConfig()

        assert config.log_level == "DEBUG"
        assert config.log_format == "json"
        assert config.reset_sequences_to == 500

    def test_non_numeric_reset_value_falls_back(self, monkeypatch):
        """Test unparsable integers use the default."""
        monkeypatch.setenv("DBFIXTURES_RESET_SEQUENCES_TO", "lots")

        assert FixturesConfig().reset_sequences_to == 10000

    @pytest.mark.parametrize(
        "key,value,message",
        [
            ("DBFIXTURES_LOG_LEVEL", "LOUD", "Invalid DBFIXTURES_LOG_LEVEL"),
            ("DBFIXTURES_LOG_FORMAT", "xml", "Invalid DBFIXTURES_LOG_FORMAT"),
            ("DBFIXTURES_RESET_SEQUENCES_TO", "0", "must be >= 1"),
        ],
    )
    def test_invalid_values(self, monkeypatch, key, value, message):
        """Test invalid environment values are rejected."""
        monkeypatch.setenv(key, value)

        with pytest.raises(ValueError, match=message):
            FixturesConfig()

    def test_reset_default_comes_from_config(self, monkeypatch):
        """Test LoaderOptions reads its default floor from the process config."""
        monkeypatch.setattr(config_module.config, "reset_sequences_to", 777)

        assert LoaderOptions().reset_sequences_to == 777
