import importlib.util
from pathlib import Path

import pytest

from fakes import make_settings

CONF_PATH = Path(__file__).resolve().parents[2] / "server" / "gunicorn.conf.py"


def load_conf(monkeypatch, **env):
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    found = importlib.util.spec_from_file_location("gunicorn_conf", CONF_PATH)
    module = importlib.util.module_from_spec(found)
    found.loader.exec_module(module)
    return module


def test_bind_and_log_level_follow_settings(monkeypatch):
    conf = load_conf(monkeypatch, HOST="127.0.0.1", PORT="4010", LOG_LEVEL="DEBUG")

    assert conf.bind == "127.0.0.1:4010"
    assert conf.loglevel == "debug"
    assert conf.worker_class == "uvicorn.workers.UvicornWorker"


def test_timeout_outlasts_collaborator_calls(monkeypatch):
    conf = load_conf(monkeypatch, GUNICORN_TIMEOUT="1", STORE_TIMEOUT="20", CACHE_TIMEOUT="5")

    assert conf.timeout >= 25


@pytest.mark.parametrize("redis_enabled,workers,expected", [
    (False, 4, 1),
    (True, 4, 4),
    (True, 1, 9),
])
def test_worker_count(monkeypatch, redis_enabled, workers, expected):
    conf = load_conf(monkeypatch)
    settings = make_settings(redis_enabled=redis_enabled, workers=workers)

    assert conf.worker_count(settings, cpu_count=4) == expected
