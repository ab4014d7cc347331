"""
Tests for environment-driven configuration.
"""

import importlib.util
import os

import pytest

from config import TestConfig, validate_config

CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'config.py')


def load_config_module():
    """Fresh copy of config.py so class attributes are re-read from the environment."""
    spec = importlib.util.spec_from_file_location('config_under_test', CONFIG_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestDatabaseUri:

    def test_read_from_its_own_key(self, monkeypatch):
        monkeypatch.setenv('SQLALCHEMY_DATABASE_URI', 'sqlite:////tmp/schedules-a.db')
        monkeypatch.setenv('DATABASE_URL', 'sqlite:////tmp/schedules-b.db')
        assert load_config_module().Config.SQLALCHEMY_DATABASE_URI == 'sqlite:////tmp/schedules-a.db'

    def test_database_url_fallback(self, monkeypatch):
        monkeypatch.delenv('SQLALCHEMY_DATABASE_URI', raising=False)
        monkeypatch.setenv('DATABASE_URL', 'sqlite:////tmp/schedules-b.db')
        assert load_config_module().Config.SQLALCHEMY_DATABASE_URI == 'sqlite:////tmp/schedules-b.db'

    def test_local_sqlite_default(self, monkeypatch):
        monkeypatch.delenv('SQLALCHEMY_DATABASE_URI', raising=False)
        monkeypatch.delenv('DATABASE_URL', raising=False)
        module = load_config_module()
        assert module.Config.SQLALCHEMY_DATABASE_URI.endswith('schedules.db')


class TestValidateConfig:

    def test_test_config_is_valid(self):
        assert validate_config(TestConfig) == []

    def test_credit_range_inverted(self):
        class Inverted(TestConfig):
            MIN_CREDITS = 18
            MAX_CREDITS = 12

        issues = validate_config(Inverted)
        assert len(issues) == 1
        assert 'MIN_CREDITS' in issues[0]

    @pytest.mark.parametrize('backend', ['mongo', ''])
    def test_unknown_backend(self, backend):
        class Unknown(TestConfig):
            DATA_BACKEND = backend

        assert any('Unknown DATA_BACKEND' in issue for issue in validate_config(Unknown))
