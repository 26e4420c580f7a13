"""
Shared fixtures.

  • settings      — Settings rooted in a temporary data directory
  • rng           — seeded random.Random for the spin resolver
  • inline_spawn  — runs "background" event-log writes synchronously
  • app_bundle    — (app, socketio) built from the above
  • client        — Flask test client
  • viewer        — Socket.IO test client with its connect push drained
"""

import os
import random
import sys

import pytest

# Ensure the project root is on the path so the flat modules resolve.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app import create_app  # noqa: E402
from config import Settings  # noqa: E402


def _inline(target, *args, **kwargs):
    target(*args, **kwargs)


@pytest.fixture
def inline_spawn():
    return _inline


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=str(tmp_path / "data"))


@pytest.fixture
def make_app(rng, inline_spawn):
    def _factory(settings):
        return create_app(settings, rng=rng, spawn=inline_spawn)
    return _factory


@pytest.fixture
def app_bundle(make_app, settings):
    return make_app(settings)


@pytest.fixture
def app(app_bundle):
    app, _ = app_bundle
    app.testing = True
    return app


@pytest.fixture
def socketio(app_bundle):
    return app_bundle[1]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def viewer(app, socketio):
    sio = socketio.test_client(app)
    sio.get_received()
    yield sio
    if sio.is_connected():
        sio.disconnect()
