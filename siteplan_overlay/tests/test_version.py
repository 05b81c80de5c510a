import pytest

from siteplan_overlay import __version__
from siteplan_overlay.version import DEV_MODE_ENV_VAR, is_dev_build


@pytest.fixture(autouse=True)
def _clear_dev_env(monkeypatch):
    monkeypatch.delenv(DEV_MODE_ENV_VAR, raising=False)


def test_package_exposes_version():
    assert __version__


def test_dev_suffix_enables_dev_mode():
    assert is_dev_build("0.4.0-dev")
    assert not is_dev_build("0.4.0")


@pytest.mark.parametrize("value, expected", [("1", True), ("on", True), ("0", False), ("off", False)])
def test_env_override_wins(monkeypatch, value, expected):
    monkeypatch.setenv(DEV_MODE_ENV_VAR, value)
    assert is_dev_build("0.4.0-dev" if not expected else "0.4.0") is expected


def test_unrecognised_env_value_falls_back_to_version(monkeypatch):
    monkeypatch.setenv(DEV_MODE_ENV_VAR, "maybe")
    assert is_dev_build("1.0.0-dev")
