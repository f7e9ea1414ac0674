import pytest

from app.api.deps import get_stock_change_hook
from app.main import app
from app.models.audit_log import AuditAction, AuditLog
from app.models.product import Product
from app.services.stock_scheduler import get_stock_monitor

NEW_PRODUCT = {
    "sku": "pan-40",
    "brand": "Pan",
    "generic": "Pantoprazole",
    "form": "tab",
    "strength": "40mg",
    "schedule": "H",
    "gst_percent": "12",
    "mrp": "155.00",
    "stock": 30,
    "min_stock": 10,
}


@pytest.fixture
def resets():
    calls = []
    app.dependency_overrides[get_stock_change_hook] = lambda: calls.append
    return calls


def test_create_product(client, auth_headers, pharmacist, db):
    resp = client.post("/products", json=NEW_PRODUCT, headers=auth_headers(pharmacist))

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["sku"] == "PAN-40"
    assert body["form"] == "TAB"
    assert body["display_name"] == "Pan 40mg TAB"
    assert body["is_low_stock"] is False
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.PRODUCT_CREATED).count() == 1


def test_duplicate_sku_conflicts(client, auth_headers, pharmacist):
    client.post("/products", json=NEW_PRODUCT, headers=auth_headers(pharmacist))
    resp = client.post("/products", json=NEW_PRODUCT, headers=auth_headers(pharmacist))
    assert resp.status_code == 409


def test_invalid_gst_slab_rejected(client, auth_headers, pharmacist):
    resp = client.post("/products", json={**NEW_PRODUCT, "gst_percent": "7"}, headers=auth_headers(pharmacist))
    assert resp.status_code == 422


def test_staff_cannot_edit_catalog(client, auth_headers, staff, dolo):
    assert client.post("/products", json=NEW_PRODUCT, headers=auth_headers(staff)).status_code == 403
    assert client.patch(f"/products/{dolo.id}/stock", json={"quantity": 1, "operation": "add"},
                        headers=auth_headers(staff)).status_code == 403


def test_stock_adjustment_resets_alert_state(client, auth_headers, pharmacist, dolo, resets):
    resp = client.patch(f"/products/{dolo.id}/stock", json={"quantity": 20, "operation": "add"},
                        headers=auth_headers(pharmacist))

    assert resp.status_code == 200
    assert resp.json()["stock"] == 25
    assert resets == [dolo.id]


def test_subtracting_below_zero_is_rejected(client, auth_headers, pharmacist, dolo, resets, db):
    resp = client.patch(f"/products/{dolo.id}/stock", json={"quantity": 6, "operation": "subtract"},
                        headers=auth_headers(pharmacist))

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Insufficient stock"
    assert resets == []
    db.refresh(dolo)
    assert dolo.stock == 5


def test_update_resets_alert_state_and_audits(client, auth_headers, pharmacist, dolo, resets, db):
    resp = client.put(f"/products/{dolo.id}", json={"min_stock": 3}, headers=auth_headers(pharmacist))

    assert resp.status_code == 200
    assert resp.json()["is_low_stock"] is False
    assert resets == [dolo.id]
    audit = db.query(AuditLog).filter(AuditLog.action == AuditAction.PRODUCT_UPDATED).one()
    assert audit.details["changes"] == {"min_stock": 3}


def test_update_clears_entries_in_the_live_monitor(client, auth_headers, pharmacist, dolo):
    monitor = get_stock_monitor()
    monitor.notified.clear()
    monitor.notified.mark((dolo.id, 5))
    monitor.notified.mark((dolo.id + 1000, 5))

    client.patch(f"/products/{dolo.id}/stock", json={"quantity": 1, "operation": "add"},
                 headers=auth_headers(pharmacist))

    assert (dolo.id, 5) not in monitor.notified
    assert (dolo.id + 1000, 5) in monitor.notified
    monitor.notified.clear()


def test_low_stock_listing_and_filters(client, auth_headers, staff, dolo, db):
    db.add(Product(sku="EMPTY", brand="Azithral", generic="Azithromycin", form="TAB", strength="500mg",
                   mrp=119, stock=0, min_stock=15))
    db.add(Product(sku="FULL", brand="Telma", generic="Telmisartan", form="TAB", strength="40mg",
                   mrp=223, stock=45, min_stock=20, schedule="H"))
    db.commit()

    low = client.get("/products/alerts/low-stock", headers=auth_headers(staff)).json()
    assert [p["sku"] for p in low] == ["EMPTY", "DOLO-650MG-TAB"]

    flagged = client.get("/products", params={"lowStock": "true"}, headers=auth_headers(staff)).json()
    assert {p["sku"] for p in flagged} == {"EMPTY", "DOLO-650MG-TAB"}

    searched = client.get("/products", params={"search": "telmi"}, headers=auth_headers(staff)).json()
    assert [p["sku"] for p in searched] == ["FULL"]


def test_delete_is_soft_and_manager_only(client, auth_headers, pharmacist, admin, dolo, db):
    assert client.delete(f"/products/{dolo.id}", headers=auth_headers(pharmacist)).status_code == 403

    resp = client.delete(f"/products/{dolo.id}", headers=auth_headers(admin))
    assert resp.status_code == 200
    db.refresh(dolo)
    assert dolo.is_active is False
    assert client.get("/products", headers=auth_headers(admin)).json() == []


def test_unknown_product_is_404(client, auth_headers, staff):
    assert client.get("/products/424242", headers=auth_headers(staff)).status_code == 404
