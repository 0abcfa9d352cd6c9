# Overview: Pytest coverage for the JSON API.

"""
API Tests

Drive the blueprints through the Flask test client. Service behaviour is
covered in the service tests; these check routing, status codes and the
shape of the JSON returned.
"""

import pytest


def _sale_payload(product, quantity=5, number="R-1", **extra):
    payload = {
        "document_type": "SALE",
        "document_number": number,
        "source_location": "X",
        "customer": {"name": "Alice"},
        "lines": [{"product_id": product.id, "quantity": quantity, "unit_price_cents": 100}],
    }
    payload.update(extra)
    return payload


class TestSystemRoutes:
    def test_health(self, client, db_session):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json["status"] == "healthy"
        assert "X" in response.json["locations"]


class TestProductRoutes:
    def test_create_list_and_get(self, client, db_session):
        response = client.post("/api/products", json={
            "sku": "ts-1", "name": "Tee", "price_cents": 900, "stocks": {"X": 4},
        })
        assert response.status_code == 201
        product_id = response.json["id"]
        assert response.json["stocks"] == {"X": 4}

        listed = client.get("/api/products?q=tee")
        assert listed.json["count"] == 1

        fetched = client.get(f"/api/products/{product_id}")
        assert fetched.json["sku"] == "TS-1"

    def test_create_rejects_unknown_location(self, client, db_session):
        response = client.post("/api/products", json={"name": "Tee", "stocks": {"Mars": 1}})

        assert response.status_code == 400

    def test_patch_and_delete(self, client, db_session, product_a):
        response = client.patch(f"/api/products/{product_a.id}", json={"price_cents": 150})
        assert response.status_code == 200
        assert response.json["price_cents"] == 150

        assert client.delete(f"/api/products/{product_a.id}").status_code == 200
        assert client.get(f"/api/products/{product_a.id}").status_code == 404

    def test_adjust(self, client, db_session, product_a):
        response = client.post(f"/api/products/{product_a.id}/adjust", json={"location": "X", "delta": -4, "note": "damaged"})

        assert response.status_code == 201
        assert response.json["quantity"] == 6
        assert response.json["movement"]["kind"] == "ADJUST"

    @pytest.mark.parametrize("body", [
        {"location": "Global", "delta": 1},
        {"location": "X", "delta": 0},
        {"location": "X", "delta": "1.5"},
    ])
    def test_adjust_rejects_bad_input(self, client, db_session, product_a, body):
        assert client.post(f"/api/products/{product_a.id}/adjust", json=body).status_code == 400

    def test_adjust_unknown_product(self, client, db_session):
        response = client.post("/api/products/9999/adjust", json={"location": "X", "delta": 1})

        assert response.status_code == 404


class TestDocumentRoutes:
    def test_issue_edit_and_get(self, client, db_session, product_a):
        created = client.post("/api/documents", json=_sale_payload(product_a, 5))
        assert created.status_code == 201
        doc_id = created.json["document"]["id"]
        assert created.json["document"]["total_cents"] == 500
        assert created.json["vat"]["vat_cents"] + created.json["vat"]["net_cents"] == 500

        edited = client.put(f"/api/documents/{doc_id}", json=_sale_payload(product_a, 3))
        assert edited.status_code == 200
        assert edited.json["created"] is False
        assert edited.json["purged_movements"] == 1

        fetched = client.get(f"/api/documents/{doc_id}")
        assert [m["quantity_delta"] for m in fetched.json["movements"]] == [-3]

        product = client.get(f"/api/products/{product_a.id}")
        assert product.json["stocks"]["X"] == 7

    def test_duplicate_number_is_409(self, client, db_session, product_a):
        client.post("/api/documents", json=_sale_payload(product_a, 1, number="R-7"))
        refund = _sale_payload(product_a, 1, number="r-7", document_type="REFUND")

        response = client.post("/api/documents", json=refund)

        assert response.status_code == 409
        assert client.get(f"/api/products/{product_a.id}").json["stocks"]["X"] == 9

    def test_invalid_draft_is_400(self, client, db_session, product_a):
        payload = _sale_payload(product_a, 1, document_type="TRANSFER")

        response = client.post("/api/documents", json=payload)

        assert response.status_code == 400
        assert "destination" in response.json["error"]

    def test_edit_unknown_document_is_404(self, client, db_session, product_a):
        assert client.put("/api/documents/missing", json=_sale_payload(product_a)).status_code == 404

    def test_cancel(self, client, db_session, product_a):
        doc_id = client.post("/api/documents", json=_sale_payload(product_a, 5)).json["document"]["id"]

        response = client.post(f"/api/documents/{doc_id}/cancel", json={"reason": "void"})
        assert response.status_code == 200
        assert response.json["status"] == "CANCELLED"
        assert client.post(f"/api/documents/{doc_id}/cancel").status_code == 409
        assert client.post("/api/documents/nope/cancel").status_code == 404

    def test_skipped_lines_are_reported(self, client, db_session, product_a):
        payload = _sale_payload(product_a, 1)
        payload["lines"].append({"product_id": 777, "sku": "GONE", "quantity": 1})

        response = client.post("/api/documents", json=payload)

        assert response.status_code == 201
        assert [l["sku"] for l in response.json["skipped_lines"]] == ["GONE"]

    def test_list_documents(self, client, db_session, product_a):
        client.post("/api/documents", json=_sale_payload(product_a, 1, number="R-1"))
        client.post("/api/documents", json=_sale_payload(product_a, 1, number="R-2"))

        response = client.get("/api/documents?type=SALE")

        assert response.json["count"] == 2
        assert "lines" not in response.json["items"][0]


class TestLedgerAndReports:
    def test_movements_filtering(self, client, db_session, product_a):
        client.post("/api/documents", json=_sale_payload(product_a, 2, number="R-55"))

        response = client.get("/api/movements?q=r-55")
        assert response.status_code == 200
        assert [m["quantity_delta"] for m in response.json["items"]] == [-2]

        assert client.get("/api/movements?from=not-a-date").status_code == 400

    def test_customers(self, client, db_session, product_a):
        client.post("/api/documents", json=_sale_payload(product_a, 2))

        response = client.get("/api/customers")

        assert response.json["items"][0]["name"] == "Alice"
        assert response.json["items"][0]["lifetime_spend_cents"] == 200

    def test_import(self, client, db_session, product_a):
        response = client.post("/api/imports", json={
            "mode": "SHOP_RESTOCK",
            "location": "Y",
            "rows": [{"sku": "PROD-A-001", "quantity": 6}, {"name": "Fresh Item", "quantity": 2}],
        })

        assert response.status_code == 201
        assert response.json["updated"] == [product_a.id]
        assert len(response.json["created"]) == 1

    def test_import_rejects_bad_rows(self, client, db_session):
        response = client.post("/api/imports", json={"mode": "SHOP_RESTOCK", "location": "Y", "rows": [{"quantity": 1}]})

        assert response.status_code == 400

    def test_reports(self, client, db_session, product_a, product_b):
        client.post("/api/documents", json=_sale_payload(product_a, 12))

        summary = client.get("/api/reports/locations/Global").json
        assert summary["total_units"] == 18
        assert summary["low_stock_count"] == 1

        negative = client.get("/api/reports/negative-stock").json
        assert [(r["sku"], r["quantity"]) for r in negative["items"]] == [("PROD-A-001", -2)]

        low = client.get("/api/reports/low-stock?location=X").json
        assert [r["sku"] for r in low["items"]] == ["PROD-A-001"]

        pending = client.get("/api/reports/pending-documents").json
        assert pending["count"] == 1

        assert client.get("/api/reports/locations/Mars").status_code == 404
