"""
Tests for the invoice endpoints
"""
from decimal import Decimal

from tests.factories import create_test_sales_order


class TestInvoiceLifecycle:
    """Create, read, update, void and delete through the API"""

    def test_two_invoices_against_one_line(self, client, db_session, user_headers):
        so = create_test_sales_order(db_session, lines=[{"quantity": 50, "unit_price": 3}])
        line_id = so.lines[0].id
        db_session.commit()

        first = client.post("/api/v1/invoices/", headers=user_headers, json={
            "sales_order_id": so.id,
            "lines": [{"sales_order_line_id": line_id, "quantity": "30"}],
        })
        second = client.post("/api/v1/invoices/", headers=user_headers, json={
            "sales_order_id": so.id,
            "lines": [{"sales_order_line_id": line_id, "quantity": "20"}],
        })

        assert first.status_code == 201
        assert first.json()["invoice_sequence"] == 1
        assert first.json()["is_partial_invoice"] is True
        assert first.json()["is_final_invoice"] is False
        assert Decimal(first.json()["subtotal"]) == Decimal("90")

        assert second.status_code == 201
        assert second.json()["invoice_sequence"] == 2
        assert second.json()["is_final_invoice"] is True

        status = client.get(f"/api/v1/invoices/sales-orders/{so.id}/status").json()
        assert status["status"] == "INVOICED"
        assert status["next_invoice_sequence"] == 3
        assert Decimal(status["lines"][0]["qty_remaining"]) == Decimal("0")
        assert status["lines"][0]["fulfillment_status"] == "complete"

    def test_over_invoicing_rejected(self, client, db_session):
        so = create_test_sales_order(db_session, lines=[{"quantity": 5}])
        db_session.commit()

        response = client.post("/api/v1/invoices/", json={
            "sales_order_id": so.id,
            "lines": [{"sales_order_line_id": so.lines[0].id, "quantity": "6"}],
        })

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_update_then_void(self, client, db_session):
        so = create_test_sales_order(db_session, lines=[{"quantity": 10}])
        line_id = so.lines[0].id
        db_session.commit()
        invoice = client.post("/api/v1/invoices/", json={
            "sales_order_id": so.id,
            "lines": [{"sales_order_line_id": line_id, "quantity": "4"}],
        }).json()

        updated = client.put(f"/api/v1/invoices/{invoice['id']}", json={
            "lines": [{"sales_order_line_id": line_id, "quantity": "10"}],
        })
        assert updated.status_code == 200
        assert updated.json()["invoice_sequence"] == 1
        assert updated.json()["is_final_invoice"] is True

        voided = client.post(f"/api/v1/invoices/{invoice['id']}/void")
        assert voided.status_code == 200
        assert voided.json()["status"] == "VOID"

        status = client.get(f"/api/v1/invoices/sales-orders/{so.id}/status").json()
        assert Decimal(status["lines"][0]["qty_invoiced"]) == Decimal("0")

        edit_void = client.put(f"/api/v1/invoices/{invoice['id']}", json={
            "lines": [{"sales_order_line_id": line_id, "quantity": "1"}],
        })
        assert edit_void.status_code == 400

    def test_only_latest_invoice_deletable(self, client, db_session):
        so = create_test_sales_order(db_session, lines=[{"quantity": 10}])
        line_id = so.lines[0].id
        db_session.commit()
        ids = [
            client.post("/api/v1/invoices/", json={
                "sales_order_id": so.id,
                "lines": [{"sales_order_line_id": line_id, "quantity": "3"}],
            }).json()["id"]
            for _ in range(2)
        ]

        blocked = client.delete(f"/api/v1/invoices/{ids[0]}")
        allowed = client.delete(f"/api/v1/invoices/{ids[1]}")

        assert blocked.status_code == 400
        assert blocked.json()["details"]["latest_sequence"] == 2
        assert allowed.status_code == 204
        assert client.get(f"/api/v1/invoices/{ids[1]}").status_code == 404
        assert client.get(f"/api/v1/invoices/sales-orders/{so.id}/status").json()["next_invoice_sequence"] == 2


class TestInvoiceQuantityScale:

    def test_sub_scale_quantity_rejected(self, client, db_session):
        so = create_test_sales_order(db_session, lines=[{"quantity": 5}])
        db_session.commit()

        response = client.post("/api/v1/invoices/", json={
            "sales_order_id": so.id,
            "lines": [{"sales_order_line_id": so.lines[0].id, "quantity": "0.00001"}],
        })

        assert response.status_code == 422
        assert client.get(f"/api/v1/invoices/sales-orders/{so.id}/status").json()["invoice_count"] == 0
