"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

from datetime import datetime, timezone
from typing import Iterator

import httpx
import pytest
from flask import Flask

from agentic_restock.agent.protocol import OrderProtocolClient
from agentic_restock.agent.settlement import SimulatedSettlement
from agentic_restock.kernel.settings import AgentSettings, SupplierSettings
from agentic_restock.kernel.time import TestTimeProvider
from agentic_restock.supplier.server import create_supplier_app
from agentic_restock.supplier.service import SupplierService
from tests.helpers import SUPPLIER_ADDRESS


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 10:00:00 UTC (mid-morning, well outside the
    17:00-24:00 surge window, so quotes are at the base price)
    """
    return TestTimeProvider(datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def supplier_settings() -> SupplierSettings:
    """Default supplier settings with a non-zero settlement address"""
    return SupplierSettings(settlement_address=SUPPLIER_ADDRESS)


@pytest.fixture
def agent_settings() -> AgentSettings:
    """Default agent settings (no advisory, no signing key)"""
    return AgentSettings()


@pytest.fixture
def supplier_service(
    supplier_settings: SupplierSettings, test_time: TestTimeProvider
) -> SupplierService:
    """Supplier service with an empty ledger and a frozen clock"""
    return SupplierService(settings=supplier_settings, time_provider=test_time)


@pytest.fixture
def supplier_app(supplier_service: SupplierService) -> Flask:
    """Supplier Flask application"""
    app = create_supplier_app(supplier_service)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def flask_client(supplier_app: Flask):
    """Flask test client"""
    with supplier_app.test_client() as client:
        yield client


@pytest.fixture
def supplier_http(supplier_app: Flask) -> Iterator[httpx.Client]:
    """
    httpx client wired straight into the supplier WSGI app

    Lets the agent speak real HTTP to the supplier without opening a socket.
    """
    client = httpx.Client(
        transport=httpx.WSGITransport(app=supplier_app), base_url="http://supplier"
    )
    yield client
    client.close()


@pytest.fixture
def settlement() -> SimulatedSettlement:
    """Settlement that records payments instead of broadcasting them"""
    return SimulatedSettlement()


@pytest.fixture
def protocol_client(
    supplier_http: httpx.Client, settlement: SimulatedSettlement
) -> OrderProtocolClient:
    """Order protocol client talking to the in-process supplier"""
    return OrderProtocolClient(supplier_http, settlement)
