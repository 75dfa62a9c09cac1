import pytest

import mutate

from policy import MutationPolicy


@pytest.fixture()
def policy():
    return MutationPolicy()


@pytest.fixture()
def app():
    app = mutate.create_app(TESTING=True)
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()
