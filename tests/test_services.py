import io
import json
import os

import pandas as pd
import pytest
import requests

from agents.inventory import ProductRecord
from services.category_service import CategoryService
from services.export_service import MalformedImportError, read_tracking_sheet
from services.outbound_service import OutboundService, OutboundValidationError
from services.procurement_service import (
    ProcurementService,
    PurchaseValidationError,
    next_document_number,
)
from services.product_service import ProductService, record_from_row
from services.profile_service import ProfileService
from services.settings_service import (
    CompanySettingsStore,
    ReplenishmentPolicy,
    SettingsValidationError,
)
from services.table_gateway import BackendError, InMemoryTableGateway, RestTableGateway


# --------------------------------------------------
# REST gateway
# --------------------------------------------------

class FakeSession(requests.Session):

    def __init__(self, status=200, body=b"[]", error=None):
        super().__init__()
        self.status = status
        self.body = body
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        resp = requests.models.Response()
        resp.status_code = self.status
        resp._content = self.body
        resp.url = url
        return resp


def test_rest_select_builds_postgrest_query():
    session = FakeSession(body=json.dumps([{"id": "1", "code": "A"}]).encode())
    gateway = RestTableGateway("https://example.test/", "key", session=session)

    rows = gateway.select("products", filters={"code": "A"}, order="name", descending=True)

    assert rows == [{"id": "1", "code": "A"}]
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://example.test/rest/v1/products"
    assert kwargs["params"] == {"select": "*", "code": "eq.A", "order": "name.desc"}
    assert session.headers["apikey"] == "key"
    assert session.headers["Authorization"] == "Bearer key"


def test_rest_http_error_keeps_raw_message():
    session = FakeSession(status=409, body=b'{"message":"duplicate key value"}')
    gateway = RestTableGateway("https://example.test", "key", session=session)

    with pytest.raises(BackendError, match="duplicate key value"):
        gateway.insert("categories", [{"code": "A", "name": "a"}])


def test_rest_network_error():
    session = FakeSession(error=requests.ConnectionError("network down"))
    gateway = RestTableGateway("https://example.test", "key", session=session)

    with pytest.raises(BackendError, match="network down"):
        gateway.select("products")
    assert len(session.calls) == 1


def test_rest_update_missing_row():
    gateway = RestTableGateway("https://example.test", "key", session=FakeSession(body=b"[]"))
    with pytest.raises(BackendError):
        gateway.update("products", "missing", {"stock": 1})


# --------------------------------------------------
# In-memory gateway
# --------------------------------------------------

def test_in_memory_crud(gateway):
    created = gateway.insert("categories", [{"code": "B", "name": "b"}, {"code": "A", "name": "a"}])
    assert all(r["id"] for r in created)

    assert [r["code"] for r in gateway.select("categories", order="code")] == ["A", "B"]
    assert gateway.select("categories", filters={"code": "B"})[0]["name"] == "b"

    updated = gateway.update("categories", created[0]["id"], {"name": "bee"})
    assert updated["name"] == "bee"

    gateway.delete("categories", created[0]["id"])
    assert len(gateway.select("categories")) == 1
    with pytest.raises(BackendError):
        gateway.delete("categories", created[0]["id"])


# --------------------------------------------------
# Entity services
# --------------------------------------------------

def test_product_row_mapping():
    record = record_from_row({"code": "P1", "name": "Mask", "stock": 12, "price": 900, "category": "medical"})

    assert record.current_stock == 12
    assert record.unit_price == 900.0
    assert record.safety_stock == 0
    assert record.supplier == ""


def test_product_service_round_trip(gateway):
    service = ProductService(gateway)
    row = service.create(ProductRecord(code="P1", name="Mask", current_stock=5, safety_stock=10,
                                       average_daily_usage=1, unit_price=100, supplier="Acme"))

    assert service.list_records()[0].safety_stock == 10
    assert service.update_stock(row["id"], 40)["stock"] == 40
    with pytest.raises(ValueError):
        service.update_stock(row["id"], -1)
    with pytest.raises(KeyError):
        service.find_by_code("missing")


def test_category_service(gateway):
    service = CategoryService(gateway)
    service.create_category("MED", "Medical")

    with pytest.raises(ValueError):
        service.create_category("MED", "Duplicate")
    with pytest.raises(ValueError):
        service.create_category("", "No code")
    assert [c["code"] for c in service.list_categories()] == ["MED"]


def test_category_update_and_delete(gateway):
    service = CategoryService(gateway)
    med = service.create_category("MED", "Medical")
    sup = service.create_category("SUP", "Supplies")

    assert service.update_category(med["id"], {"description": "Masks", "id": "ignored"})["description"] == "Masks"
    assert service.update_category(med["id"], {"code": "MED"})["code"] == "MED"
    with pytest.raises(ValueError, match="already exists"):
        service.update_category(sup["id"], {"code": "MED"})
    with pytest.raises(KeyError):
        service.update_category("missing", {"name": "x"})

    service.delete_category(sup["id"])
    with pytest.raises(KeyError):
        service.delete_category(sup["id"])
    assert [c["code"] for c in service.list_categories()] == ["MED"]


def test_document_numbers_increase():
    first = next_document_number("PUR")
    second = next_document_number("PUR")
    assert first.startswith("PUR-")
    assert int(second.split("-")[1]) > int(first.split("-")[1])


def test_create_purchase(gateway):
    service = ProcurementService(gateway)
    purchase = service.create_purchase("SUP-1", [
        {"product_code": "A", "product_name": "a", "quantity": 3, "unit_price": 100},
        {"product_code": "B", "product_name": "b", "quantity": 2, "unit_price": 50},
    ])

    assert purchase["purchase_number"].startswith("PUR-")
    assert purchase["total_amount"] == 400
    assert [i["subtotal"] for i in purchase["items"]] == [300, 100]
    assert len(service.list_items(purchase["id"])) == 2
    assert service.list_purchases(status_filter="completed")[0]["id"] == purchase["id"]


def test_purchase_validation(gateway):
    service = ProcurementService(gateway)
    with pytest.raises(PurchaseValidationError):
        service.create_purchase("", [{"quantity": 1, "unit_price": 1}])
    with pytest.raises(PurchaseValidationError):
        service.create_purchase("SUP-1", [])
    with pytest.raises(PurchaseValidationError):
        service.create_purchase("SUP-1", [{"product_name": "a", "quantity": 0, "unit_price": 1}])


def _stocked_product(gateway, stock=10):
    return gateway.insert("products", [{"code": "P1", "name": "Mask", "stock": stock, "price": 100}])[0]


def test_outbound_status_follows_tracking_number(gateway):
    product = _stocked_product(gateway)
    service = OutboundService(gateway)
    item = {"product_id": product["id"], "product_name": "Mask", "quantity": 2, "unit_price": 100}

    shipped = service.create_outbound("C1", [item], customer_name="Seoul Clinic", tracking_number="TRK-1")
    pending = service.create_outbound("C1", [item], customer_name="Seoul Clinic")

    assert shipped["status"] == "in_transit"
    assert pending["status"] == "preparing"
    assert shipped["outbound_number"].startswith("OUT-")
    assert shipped["total_amount"] == 200
    assert len(service.list_outbounds(search="seoul")) == 2


def test_outbound_rejects_insufficient_stock(gateway):
    product = _stocked_product(gateway, stock=1)
    service = OutboundService(gateway)

    with pytest.raises(OutboundValidationError, match="Insufficient stock"):
        service.create_outbound("C1", [{"product_id": product["id"], "product_name": "Mask",
                                        "quantity": 2, "unit_price": 100}])
    with pytest.raises(OutboundValidationError):
        service.create_outbound("", [])


def test_tracking_import_from_csv(gateway):
    product = _stocked_product(gateway)
    service = OutboundService(gateway)
    outbound = service.create_outbound("C1", [{"product_id": product["id"], "product_name": "Mask",
                                               "quantity": 1, "unit_price": 100}])

    sheet = f"outbound_number,tracking_number\n{outbound['outbound_number']},TRK-9\nOUT-404,TRK-0\n,\n"
    df = read_tracking_sheet(io.BytesIO(sheet.encode("utf-8-sig")), "tracking.csv")
    result = service.apply_tracking_numbers(df)

    assert result == {"updated": [outbound["outbound_number"]], "unmatched": ["OUT-404"]}
    stored = gateway.select("outbound_orders")[0]
    assert stored["tracking_number"] == "TRK-9"
    assert stored["status"] == "in_transit"


def test_tracking_import_from_xlsx():
    buf = io.BytesIO()
    pd.DataFrame([{"Outbound_Number": "OUT-1", "Tracking_Number": "TRK-1"}]).to_excel(buf, index=False)
    buf.seek(0)

    df = read_tracking_sheet(buf, "tracking.xlsx")
    assert df.to_dict(orient="records") == [{"outbound_number": "OUT-1", "tracking_number": "TRK-1"}]


def test_tracking_import_rejects_unexpected_layout():
    with pytest.raises(MalformedImportError, match="tracking_number"):
        read_tracking_sheet(io.BytesIO(b"outbound_number,carrier\nOUT-1,ups\n"), "t.csv")
    with pytest.raises(MalformedImportError):
        read_tracking_sheet(io.BytesIO(b"whatever"), "t.txt")
    with pytest.raises(MalformedImportError):
        read_tracking_sheet(io.BytesIO(b"not a workbook"), "t.xlsx")


def test_profile_service_validates_business_number(gateway):
    row = gateway.insert("company_profiles", [{
        "user_id": "u1", "company_name": "LogiBot", "business_number": "123-45-67890",
        "phone": "02-1234-5678",
    }])[0]
    service = ProfileService(gateway)

    assert service.get_by_user("u1")["id"] == row["id"]
    assert service.get_by_user("nobody") is None
    with pytest.raises(SettingsValidationError):
        service.update_profile(row["id"], {"business_number": "12345"})
    assert service.update_profile(row["id"], {"ceo_name": "Kim"})["ceo_name"] == "Kim"


# --------------------------------------------------
# Settings
# --------------------------------------------------

def test_policy_from_mapping():
    policy = ReplenishmentPolicy.from_mapping({
        "REORDER_BUFFER_MULTIPLIER": "2",
        "REORDER_COVERAGE_DAYS": 14,
        "UNRELATED": 1,
    })
    assert policy.buffer_multiplier == 2.0
    assert policy.coverage_days == 14
    assert policy.high_priority_days == 7


def test_policy_accepts_whole_number_strings():
    policy = ReplenishmentPolicy.from_mapping({
        "REORDER_HIGH_PRIORITY_DAYS": "7.0",
        "REORDER_COVERAGE_DAYS": 14.0,
        "REORDER_ANALYSIS_DELAY_SECONDS": "0",
    })
    assert policy.high_priority_days == 7
    assert isinstance(policy.high_priority_days, int)
    assert policy.coverage_days == 14
    assert policy.analysis_delay_seconds == 0.0


def test_policy_rejects_unusable_config_values():
    with pytest.raises(SettingsValidationError, match="REORDER_HIGH_PRIORITY_DAYS"):
        ReplenishmentPolicy.from_mapping({"REORDER_HIGH_PRIORITY_DAYS": "7.5"})
    with pytest.raises(SettingsValidationError, match="REORDER_BUFFER_MULTIPLIER"):
        ReplenishmentPolicy.from_mapping({"REORDER_BUFFER_MULTIPLIER": "lots"})


def test_policy_rejects_inverted_thresholds():
    with pytest.raises(ValueError):
        ReplenishmentPolicy(high_priority_days=20, medium_priority_days=14)


def test_company_settings_defaults_and_save(tmp_path):
    path = os.path.join(tmp_path, "settings", "company.json")
    store = CompanySettingsStore(path)

    assert store.load()["company_name"] == "LogiBot"

    store.save({"company_name": "Hanbit Medical", "phone": "031-123-4567"})
    assert CompanySettingsStore(path).load()["company_name"] == "Hanbit Medical"


def test_company_settings_validation(tmp_path):
    store = CompanySettingsStore(os.path.join(tmp_path, "company.json"))
    store.load()

    with pytest.raises(SettingsValidationError):
        store.save({"business_number": "1234567890"})
    with pytest.raises(SettingsValidationError):
        store.save({"fax": "fax me"})
    with pytest.raises(SettingsValidationError):
        store.save({"theme": "dark"})
    assert store.get()["business_number"] == "123-45-67890"


def test_company_settings_reload_picks_up_external_change(tmp_path):
    path = os.path.join(tmp_path, "company.json")
    store = CompanySettingsStore(path)
    store.save({"company_name": "Before"})

    with open(path, "w", encoding="utf-8") as f:
        json.dump({"company_name": "After", "business_number": "123-45-67890"}, f)

    assert store.get()["company_name"] == "Before"
    assert store.reload()["company_name"] == "After"
