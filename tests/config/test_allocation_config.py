"""
Tests for stock_config: YAML loading, validation and policy resolution.
"""

import logging
from pathlib import Path

import pytest
import yaml

from stock_config import CONFIG_ENV_VAR, get_active_config
from stock_config.loader import compute_checksum, parse_config, parse_field_policy
from stock_config.schema import FieldPolicy
from stock_kernel.domain.values import SerialNumberManagementMode

MINIMAL = """
version: 1
workflows:
  only:
    storage_key: mobile-only
    transaction_type: miscellaneousIssue
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "allocation.yaml"
    path.write_text(text)
    return path


class TestPackagedDefaults:
    """The packaged defaults.yaml."""

    def test_workflows_and_storage_keys(self, active_config):
        keys = {name: w.storage_key for name, w in active_config.workflows.items()}

        assert keys == {
            "miscellaneous_issue": "mobile-miscellaneousIssue",
            "lpn_linking": "mobile-lpnLinking",
            "location_reorder": "mobile-locationReorder",
        }

    def test_checksum_is_deterministic(self):
        assert get_active_config().checksum == get_active_config().checksum

    def test_unknown_workflow(self, active_config):
        with pytest.raises(KeyError):
            active_config.workflow("nope")

    def test_trace_emitted(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "STOCK_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["checksum"] == config.checksum
        assert "miscellaneous_issue" in traces[-1]["workflows"]


class TestLoading:
    """Path resolution and failure modes."""

    def test_explicit_path(self, tmp_path):
        config = get_active_config(_write(tmp_path, MINIMAL))

        assert list(config.workflows) == ["only"]
        assert config.logging_level == "INFO"

    def test_environment_variable(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(_write(tmp_path, MINIMAL)))

        assert list(get_active_config().workflows) == ["only"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        with pytest.raises(yaml.YAMLError):
            get_active_config(_write(tmp_path, "version: [1\n"))

    def test_missing_required_key(self, tmp_path):
        with pytest.raises(KeyError):
            get_active_config(_write(tmp_path, "version: 1\n"))

    def test_missing_storage_key(self):
        with pytest.raises(KeyError):
            parse_config({"version": 1, "workflows": {"w": {"transaction_type": "x"}}})


class TestValidation:
    """Value validation in parse_config."""

    def _data(self, **overrides):
        data = yaml.safe_load(MINIMAL)
        data.update(overrides)
        return data

    def test_bad_version(self):
        with pytest.raises(ValueError):
            parse_config(self._data(version=0))

    def test_bad_logging_level(self):
        with pytest.raises(ValueError):
            parse_config(self._data(logging={"level": "LOUD"}))

    def test_logging_level_normalised(self):
        assert parse_config(self._data(logging={"level": "debug"})).logging_level == "DEBUG"

    def test_duplicate_storage_keys(self):
        data = self._data(workflows={
            "a": {"storage_key": "k", "transaction_type": "t"},
            "b": {"storage_key": "k", "transaction_type": "t"},
        })

        with pytest.raises(ValueError):
            parse_config(data)

    def test_empty_workflows(self):
        with pytest.raises(ValueError):
            parse_config(self._data(workflows={}))

    def test_non_boolean_flag(self):
        with pytest.raises(ValueError):
            parse_field_policy({"check_local_overlap": "yes"})

    def test_unknown_flag(self):
        with pytest.raises(ValueError):
            parse_field_policy({"check_everything": True})

    def test_checksum_tracks_content(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestFieldPolicy:
    """FieldPolicy.resolve against serial management modes."""

    def test_serial_required_for_tracked_modes(self):
        policy = FieldPolicy()

        assert policy.resolve(SerialNumberManagementMode.RECEIVED_ISSUED).serial_number_required
        assert policy.resolve(
            SerialNumberManagementMode.GLOBAL_RECEIVED_ISSUED
        ).serial_number_required
        assert not policy.resolve(SerialNumberManagementMode.NOT_MANAGED).serial_number_required

    def test_range_tracking_only_for_global(self):
        policy = FieldPolicy()

        assert policy.resolve(
            SerialNumberManagementMode.GLOBAL_RECEIVED_ISSUED
        ).serial_range_tracking
        assert not policy.resolve(
            SerialNumberManagementMode.RECEIVED_ISSUED
        ).serial_range_tracking

    def test_override(self):
        policy = FieldPolicy(require_serial_number=False)

        resolved = policy.resolve(SerialNumberManagementMode.GLOBAL_RECEIVED_ISSUED)

        assert not resolved.serial_number_required
        assert resolved.serial_range_tracking

    def test_flags_carried(self, active_config):
        reorder = active_config.workflow("location_reorder").field_policy

        resolved = reorder.resolve("globalReceivedIssued")

        assert resolved.check_external_sequence is False
        assert resolved.check_local_overlap is True
