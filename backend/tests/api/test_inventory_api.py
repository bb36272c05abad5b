"""
Tests for the inventory read endpoints and the application shell
"""
from decimal import Decimal

from tests.factories import create_test_inventory, create_test_product


class TestApplicationShell:
    """Root, health and error envelope"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_not_found_envelope(self, client):
        response = client.get("/api/v1/inventory/999")
        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "NOT_FOUND"
        assert data["details"]["resource"] == "Inventory"
        assert "timestamp" in data


class TestInventoryEndpoints:

    def test_get_inventory(self, client, db_session):
        inv = create_test_inventory(db_session, on_hand=150, allocated=25)
        db_session.commit()

        response = client.get(f"/api/v1/inventory/{inv.id}")

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["quantity_on_hand"]) == Decimal("150")
        assert Decimal(data["quantity_available"]) == Decimal("125")

    def test_low_stock(self, client, db_session):
        low = create_test_product(db_session, reorder_point=Decimal("10"), reorder_quantity=Decimal("50"))
        fine = create_test_product(db_session, reorder_point=Decimal("10"))
        create_test_inventory(db_session, low, on_hand=8, allocated=2)
        create_test_inventory(db_session, fine, on_hand=40)
        db_session.commit()

        response = client.get("/api/v1/inventory/low-stock")

        assert response.status_code == 200
        items = response.json()
        assert [i["sku"] for i in items] == [low.sku]
        assert Decimal(items[0]["shortfall"]) == Decimal("4")

    def test_delete_unused_record(self, client, db_session):
        inv = create_test_inventory(db_session, on_hand=0)
        db_session.commit()

        response = client.delete(f"/api/v1/inventory/{inv.id}")

        assert response.status_code == 204
        assert client.get(f"/api/v1/inventory/{inv.id}").status_code == 404

    def test_delete_record_with_history_rejected(self, client, db_session):
        inv = create_test_inventory(db_session, on_hand=10)
        db_session.commit()
        client.post("/api/v1/adjustments/", json={"lines": [
            {"inventory_id": inv.id, "reason_code": "damaged", "adjustment_quantity": "-1"},
        ]})

        response = client.delete(f"/api/v1/inventory/{inv.id}")

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_STATE"

    def test_error_envelope_documented(self, client):
        schema = client.get("/openapi.json").json()

        assert "ErrorResponse" in schema["components"]["schemas"]
        not_found = schema["paths"]["/api/v1/inventory/{inventory_id}"]["get"]["responses"]["404"]
        assert not_found["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
