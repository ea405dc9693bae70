"""Unit tests for the Gunicorn server configuration."""

import runpy
from pathlib import Path

import pytest

GUNICORN_CONF = Path(__file__).resolve().parents[2] / 'gunicorn.conf.py'


@pytest.fixture
def gunicorn_settings():
    return runpy.run_path(str(GUNICORN_CONF))


@pytest.mark.unit
class TestGunicornConfig:

    def test_single_threaded_worker_process(self, gunicorn_settings):
        assert gunicorn_settings['workers'] == 1
        assert gunicorn_settings['worker_class'] == 'gthread'

    def test_worker_is_never_recycled(self, gunicorn_settings):
        assert gunicorn_settings.get('max_requests', 0) == 0
