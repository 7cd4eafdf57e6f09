"""
Unit tests for settings, construction parameter validation and exceptions
"""

import json

import pytest

from vectodb.core.config.settings import Settings
from vectodb.core.config.validation import ConfigValidator, VectoDBConfig
from vectodb.core.exceptions.custom_exceptions import (
    ConfigurationError,
    CorruptStoreError,
    DimensionMismatchError,
    StorageError,
    ValidationError,
    VectoDBError,
)
from vectodb.storage.approx_index import IndexVariant, MetricType


class TestSettings:
    """Test settings defaults and validators"""

    def test_defaults(self):
        settings = Settings()
        assert settings.INDEX_KEY == "Flat"
        assert settings.MAX_TRAIN == 160000
        assert settings.EXHAUST_THRESHOLD == 1000

    def test_metric_is_normalized(self):
        assert Settings(METRIC="ip").METRIC == "IP"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            Settings(LOG_LEVEL="LOUD")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SEARCH_WIDTH", "7")
        assert Settings().SEARCH_WIDTH == 7


class TestConfigValidator:
    """Test construction parameter validation"""

    def test_integer_metric_selectors(self):
        assert VectoDBConfig(work_dir="x", dim=4, metric=0).metric == "IP"
        assert VectoDBConfig(work_dir="x", dim=4, metric=1).metric == "L2"

    def test_validation_error_is_wrapped(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigValidator.validate_config({"work_dir": "x", "dim": -1})
        assert exc_info.value.error_code == "CONFIG_VALIDATION_ERROR"

    def test_overrides_win_over_settings(self, test_settings):
        config = ConfigValidator.from_settings(
            {"dim": 16, "index_key": None}, app_settings=test_settings
        )
        assert config.dim == 16
        assert config.index_key == test_settings.INDEX_KEY
        assert config.work_dir == test_settings.WORK_DIR

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "store.yaml"
        path.write_text("work_dir: /data/db\ndim: 96\nindex_key: IVF64,Flat\n")
        config = ConfigValidator.validate_file(str(path))
        assert config.dim == 96
        assert config.index_key == "IVF64,Flat"

    def test_load_json(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({"work_dir": "/data/db", "dim": 3, "metric": "ip"}))
        assert ConfigValidator.validate_file(str(path)).metric == "IP"

    def test_missing_and_unsupported_files(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigValidator.load_config(str(tmp_path / "absent.yaml"))
        path = tmp_path / "store.toml"
        path.write_text("dim = 3")
        with pytest.raises(ConfigurationError):
            ConfigValidator.load_config(str(path))


class TestMetricAndVariant:
    """Test metric parsing and index variant selection"""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("L2", MetricType.L2),
            ("ip", MetricType.INNER_PRODUCT),
            (0, MetricType.INNER_PRODUCT),
            (1, MetricType.L2),
            (MetricType.L2, MetricType.L2),
        ],
    )
    def test_parse(self, value, expected):
        assert MetricType.parse(value) is expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ConfigurationError):
            MetricType.parse("cosine")

    def test_comparisons(self):
        assert MetricType.L2.is_better(1.0, 2.0)
        assert not MetricType.L2.is_better(2.0, 2.0)
        assert MetricType.INNER_PRODUCT.is_better(2.0, 1.0)
        assert MetricType.INNER_PRODUCT.within(0.5, 0.5)

    def test_variant_for_key(self):
        assert IndexVariant.for_key("Flat") is IndexVariant.EXACT
        assert IndexVariant.for_key("IVF4096,PQ32") is IndexVariant.TRAINED


class TestExceptions:
    """Test the exception hierarchy"""

    def test_hierarchy(self):
        assert issubclass(DimensionMismatchError, ValidationError)
        assert issubclass(CorruptStoreError, StorageError)
        assert issubclass(StorageError, VectoDBError)

    def test_error_code_defaults_to_class_name(self):
        error = CorruptStoreError("bad log", details={"file_size": 3})
        assert error.error_code == "CorruptStoreError"
        assert error.details == {"file_size": 3}
        assert str(error) == "bad log"
