"""Shared fixtures: temp-dir settings, a wired app and image payloads."""

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from photoreg.config import Settings
from photoreg.database import create_db_engine, init_db, make_session_factory
from photoreg.main import create_app
from photoreg.photo_store import PhotoDirectory
from photoreg.registration import RegistrationWorkflow


def image_bytes(width=640, height=480, extension=".png", color=(40, 120, 200)):
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:] = color
    ok, buf = cv2.imencode(extension, img)
    assert ok
    return buf.tobytes()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DB_URL=f"sqlite:///{tmp_path / 'test.db'}",
        PHOTO_DIR=str(tmp_path / "images"),
        UPLOAD_TMP_DIR=str(tmp_path / "uploads"),
    )


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def photos(settings):
    return PhotoDirectory(settings.PHOTO_DIR, settings.UPLOAD_TMP_DIR)


@pytest.fixture
def workflow(session_factory, photos):
    return RegistrationWorkflow(session_factory, photos, clock=lambda: 1700000000.5)


@pytest.fixture
def make_upload(photos):
    def _make(filename="me.png", data=None):
        if data is None:
            data = image_bytes(extension=filename[filename.rfind("."):])
        return photos.stage_upload(filename, data)
    return _make


@pytest.fixture
def app(settings):
    app = create_app(settings)
    yield app
    app.state.engine.dispose()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
