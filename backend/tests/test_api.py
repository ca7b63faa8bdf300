from decimal import Decimal

import pytest

STOREKEEPER_CLAIMS = {
    "sub": "f0e1d2c3-9999-8888-7777-666655554444",
    "cognito:username": "storekeeper",
    "email": "store@example.com",
    "cognito:groups": ["store"],
}


def _create_material(client, **overrides):
    payload = {"name": "Cement OPC 53", "item_code": "CEM-53", "unit": "bags", "reorder_point": "20"}
    payload.update(overrides)
    response = client.post("/materials/", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


class TestProjectsApi:

    def test_create_and_fetch_project(self, client):
        response = client.post("/projects/", json={"name": "Lakeview Residency", "code": "LV-01"})
        assert response.status_code == 200
        project_id = response.json()["id"]

        fetched = client.get(f"/projects/{project_id}")
        assert fetched.json()["name"] == "Lakeview Residency"
        assert fetched.json()["status"] == "Active"

    def test_duplicate_code(self, client):
        client.post("/projects/", json={"name": "A", "code": "DUP"})
        response = client.post("/projects/", json={"name": "B", "code": "DUP"})
        assert response.status_code == 400

    def test_missing_project(self, client):
        assert client.get("/projects/999").status_code == 404


class TestMaterialsApi:

    def test_create_with_opening_stock(self, client):
        material = _create_material(client, opening_stock="120")

        assert Decimal(material["stock_qty"]) == Decimal("120")
        history = client.get(f"/inventory/history/{material['id']}").json()
        assert history["history"][0]["transaction_type"] == "ADJUSTMENT"
        assert history["history"][0]["performed_by"]["username"] == "site.admin"

    def test_stock_cannot_be_patched(self, client):
        material = _create_material(client, opening_stock="10")

        response = client.patch(f"/materials/{material['id']}", json={"stock_qty": "999", "supplier": "JK Cement"})

        assert response.status_code == 200
        assert Decimal(response.json()["stock_qty"]) == Decimal("10")
        assert response.json()["supplier"] == "JK Cement"

    def test_null_for_required_field_is_422(self, client):
        material = _create_material(client)

        response = client.patch(f"/materials/{material['id']}", json={"name": None})

        assert response.status_code == 422
        assert client.get(f"/materials/{material['id']}").json()["name"] == "Cement OPC 53"

    def test_delete_and_audit_trail(self, client):
        material = _create_material(client)

        assert client.delete(f"/materials/{material['id']}").status_code == 200
        assert client.get(f"/materials/{material['id']}").status_code == 404
        audit = client.get(f"/materials/{material['id']}/audit").json()
        assert [entry["action"] for entry in audit] == ["DELETE", "INSERT"]

    def test_duplicate_item_code(self, client):
        _create_material(client)
        response = client.post("/materials/", json={"name": "Cement again", "item_code": "CEM-53"})
        assert response.status_code == 400


class TestInventoryApi:

    def test_issue_and_paginated_history(self, client):
        project = client.post("/projects/", json={"name": "Metro Line 4"}).json()
        material = _create_material(client, opening_stock="100")

        for quantity in ("10", "5"):
            response = client.post(
                "/inventory/issue",
                json={"material_id": material["id"], "project_id": project["id"], "quantity": quantity},
            )
            assert response.status_code == 200, response.text

        body = response.json()
        assert Decimal(body["material"]["stock_qty"]) == Decimal("85")
        assert Decimal(body["entry"]["quantity_change"]) == Decimal("-5")

        page = client.get(f"/inventory/history/{material['id']}", params={"page": 1, "limit": 1}).json()
        assert page["pagination"] == {"totalItems": 3, "totalPages": 3, "currentPage": 1, "itemsPerPage": 1}
        assert Decimal(page["history"][0]["quantity_after"]) == Decimal("85")

        project_page = client.get(f"/inventory/history/project/{project['id']}").json()
        assert project_page["pagination"]["totalItems"] == 2

    def test_insufficient_stock_is_400(self, client):
        project = client.post("/projects/", json={"name": "Metro Line 4"}).json()
        material = _create_material(client, opening_stock="70")

        response = client.post(
            "/inventory/issue",
            json={"material_id": material["id"], "project_id": project["id"], "quantity": "100"},
        )

        assert response.status_code == 400
        assert "Available: 70" in response.json()["detail"]
        assert "Requested: 100" in response.json()["detail"]

    def test_unknown_material_is_404(self, client):
        response = client.post("/inventory/restock", json={"material_id": 9999, "quantity": "5"})
        assert response.status_code == 404

    def test_non_positive_quantity_is_422(self, client):
        response = client.post("/inventory/issue", json={"material_id": 1, "project_id": 1, "quantity": "0"})
        assert response.status_code == 422

    def test_quantity_finer_than_stored_scale_is_422(self, client):
        response = client.post("/inventory/issue", json={"material_id": 1, "project_id": 1, "quantity": "0.0004"})
        assert response.status_code == 422

    def test_reverse_twice_is_400(self, client):
        project = client.post("/projects/", json={"name": "Metro Line 4"}).json()
        material = _create_material(client, opening_stock="30")
        issued = client.post(
            "/inventory/issue",
            json={"material_id": material["id"], "project_id": project["id"], "quantity": "3"},
        ).json()

        first = client.post(f"/inventory/issue/{issued['entry']['id']}/reverse", json={"reason": "Duplicate slip"})
        second = client.post(f"/inventory/issue/{issued['entry']['id']}/reverse")

        assert first.status_code == 200
        assert Decimal(first.json()["material"]["stock_qty"]) == Decimal("30")
        assert second.status_code == 400
        assert client.post("/inventory/issue/9999/reverse").status_code == 404

    def test_stock_levels_and_low_stock_alerts(self, client):
        low = _create_material(client, name="Steel 8mm", item_code="ST-8", opening_stock="5", reorder_point="10")
        _create_material(client, name="Steel 10mm", item_code="ST-10", opening_stock="50", reorder_point="10")

        alerts = client.get("/inventory/low-stock-alerts").json()
        assert [a["id"] for a in alerts] == [low["id"]]

        client.post("/inventory/restock", json={"material_id": low["id"], "quantity": "10", "supplier": "Tata Steel"})

        assert client.get("/inventory/low-stock-alerts").json() == []
        levels = client.get("/inventory/stock-levels").json()
        assert [level["name"] for level in levels] == ["Steel 10mm", "Steel 8mm"]
        restocks = client.get("/inventory/restock/history", params={"material_id": low["id"]}).json()
        assert restocks["pagination"]["totalItems"] == 1

    def test_transfer_and_consumption(self, client):
        site_a = client.post("/projects/", json={"name": "Site A"}).json()
        site_b = client.post("/projects/", json={"name": "Site B"}).json()
        material = _create_material(client, opening_stock="60", cost_per_unit="10.00")

        transfer = client.post(
            "/inventory/transfer",
            json={
                "material_id": material["id"],
                "from_project_id": site_a["id"],
                "to_project_id": site_b["id"],
                "quantity": "4",
            },
        )
        assert transfer.status_code == 200
        assert len(transfer.json()["entries"]) == 2

        client.post(
            "/inventory/issue",
            json={"material_id": material["id"], "project_id": site_b["id"], "quantity": "12"},
        )
        client.post(
            "/inventory/return",
            json={"project_id": site_b["id"], "lines": [{"material_id": material["id"], "quantity": "2"}]},
        )

        report = client.get("/inventory/consumptions/calculate", params={"project_id": site_b["id"]}).json()
        assert Decimal(report["consumptions"][0]["consumed_quantity"]) == Decimal("10")
        assert Decimal(report["summary"]["total_cost"]) == Decimal("100")

    def test_bulk_restock_partial_success(self, client):
        material = _create_material(client)

        response = client.post(
            "/inventory/restock/bulk",
            json={"restocks": [{"material_id": material["id"], "quantity": "8"}, {"material_id": 9999, "quantity": "1"}]},
        )

        body = response.json()
        assert response.status_code == 200
        assert len(body["results"]) == 1
        assert body["errors"][0]["material_id"] == 9999

    def test_settlement(self, client):
        material = _create_material(client, opening_stock="40")

        response = client.post("/inventory/settlement", json={"material_id": material["id"], "counted_quantity": "38"})

        assert response.status_code == 200
        assert Decimal(response.json()["entry"]["quantity_change"]) == Decimal("-2")


class TestPermissions:

    @pytest.fixture
    def claims(self):
        return dict(STOREKEEPER_CLAIMS)

    def test_settlement_requires_admin(self, client):
        response = client.post("/inventory/settlement", json={"material_id": 1, "counted_quantity": "1"})
        assert response.status_code == 403

    def test_delete_requires_admin(self, client):
        assert client.delete("/materials/1").status_code == 403

    def test_storekeeper_can_issue(self, client):
        material = _create_material(client, opening_stock="5")
        project = client.post("/projects/", json={"name": "Site C"}).json()

        response = client.post(
            "/inventory/issue",
            json={"material_id": material["id"], "project_id": project["id"], "quantity": "1"},
        )
        assert response.status_code == 200
        assert response.json()["entry"]["performed_by"]["username"] == "storekeeper"
