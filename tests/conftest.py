import os

import pytest

from agents.inventory import InventoryAgent, ProductRecord
from app import create_app, DATA_PATH
from services.reorder_service import ReorderService
from services.settings_service import ReplenishmentPolicy
from services.table_gateway import InMemoryTableGateway


@pytest.fixture
def policy():
    return ReplenishmentPolicy(analysis_delay_seconds=0)


@pytest.fixture
def reorder_service(policy):
    return ReorderService(policy)


@pytest.fixture
def sample_records():
    agent = InventoryAgent(data_path=DATA_PATH)
    agent.load_data()
    return agent.list_records()


@pytest.fixture
def make_record():
    def _make(code="P-1", current_stock=0, safety_stock=0, average_daily_usage=0.0,
              unit_price=100.0, supplier="Acme"):
        return ProductRecord(
            code=code,
            name=f"Product {code}",
            current_stock=current_stock,
            safety_stock=safety_stock,
            average_daily_usage=average_daily_usage,
            unit_price=unit_price,
            supplier=supplier,
        )
    return _make


@pytest.fixture
def gateway():
    return InMemoryTableGateway()


@pytest.fixture
def app(tmp_path, gateway):
    app = create_app(test_config={
        "TESTING": True,
        "BACKEND_URL": None,
        "TABLE_GATEWAY": gateway,
        "COMPANY_SETTINGS_PATH": os.path.join(tmp_path, "company_settings.json"),
        "ACTIVITY_LOG_PATH": os.path.join(tmp_path, "activity_log.csv"),
        "REORDER_ANALYSIS_DELAY_SECONDS": 0,
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
