"""Shared test fixtures."""
import pytest


def testing_config(**overrides):
    """TestingConfig as a plain dict, with overrides applied."""
    from src.config import TestingConfig

    config = {
        key: getattr(TestingConfig, key)
        for key in dir(TestingConfig)
        if key.isupper()
    }
    config.update(overrides)
    return config


@pytest.fixture
def app():
    """Application bound to a fresh in-memory database."""
    from src.app import create_app
    from src.extensions import db

    app = create_app(testing_config())

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    from src.extensions import db

    return db.session


@pytest.fixture
def make_app():
    """Factory for applications built from TestingConfig plus overrides."""
    from src.app import create_app

    def _make_app(**overrides):
        return create_app(testing_config(**overrides))

    return _make_app
