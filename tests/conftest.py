import dataclasses
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from posledger.core.config import load_settings
from posledger.main import create_app
from posledger.services.events import get_event_publisher


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture
def settings():
    return dataclasses.replace(
        load_settings(),
        database_url="sqlite://",
        database_echo=False,
        auto_create_schema=True,
        secret_key="test-secret-key-that-is-long-enough-for-hs256",
        sale_tax_rate=Decimal("0.07"),
        invoice_due_days=30,
        estimate_number_start=1001,
        default_page_size=20,
        max_page_size=100,
        change_log_page_size=100,
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def publisher(app):
    recording = RecordingPublisher()
    app.dependency_overrides[get_event_publisher] = lambda: recording
    yield recording
    app.dependency_overrides.pop(get_event_publisher, None)


@pytest.fixture
def db(client):
    session = client.app.state.database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_product(client):
    def _make(**overrides):
        body = {"sku": "SKU-1", "name": "Widget", "inputCost": "2.50", "stock": 10}
        body.update(overrides)
        response = client.post("/products", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    return _make
