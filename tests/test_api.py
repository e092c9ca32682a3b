# tests/test_api.py


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_list_estimates(client):
    response = client.post("/api/v1/projects/1/estimates", json={"cost_item_id": 100, "quantity": 3})
    assert response.status_code == 201
    created = response.json()
    assert created["line_total"] == "405.00"
    assert created["unit_cost_override"] is None

    response = client.get("/api/v1/projects/1/estimates")
    assert response.status_code == 200
    body = response.json()
    assert body["estimate_count"] == 1
    assert body["estimates"][0]["id"] == created["id"]
    totals = body["totals"]
    assert totals["subtotal"] == "405.00"
    assert totals["contingency_amount"] == "40.50"
    assert totals["grand_total"] == "445.50"
    assert totals["cost_per_floor_area"] == "8.91"
    assert totals["categories"][0]["category_name"] == "Substructure"


def test_create_validation(client):
    assert client.post("/api/v1/projects/1/estimates",
                       json={"cost_item_id": 100, "quantity": 0}).status_code == 422
    assert client.post("/api/v1/projects/1/estimates",
                       json={"cost_item_id": 100, "quantity": 1, "unit_cost_override": -1}).status_code == 422
    assert client.post("/api/v1/projects/1/estimates",
                       json={"cost_item_id": 100, "quantity": 1, "notes": "x" * 501}).status_code == 422
    assert client.post("/api/v1/projects/1/estimates",
                       json={"cost_item_id": 999, "quantity": 1}).status_code == 404
    assert client.post("/api/v1/projects/404/estimates",
                       json={"cost_item_id": 100, "quantity": 1}).status_code == 404


def test_update_and_clear_override(client):
    line_id = client.post("/api/v1/projects/1/estimates",
                          json={"cost_item_id": 100, "quantity": 3, "unit_cost_override": 50}).json()["id"]

    response = client.put(f"/api/v1/projects/1/estimates/{line_id}", json={"quantity": 2})
    assert response.status_code == 200
    assert response.json()["unit_cost_override"] == "50.00"
    assert response.json()["line_total"] == "165.00"

    response = client.put(f"/api/v1/projects/1/estimates/{line_id}", json={"unit_cost_override": None})
    assert response.json()["unit_cost_override"] is None
    assert response.json()["line_total"] == "270.00"


def test_get_and_delete_estimate(client):
    line_id = client.post("/api/v1/projects/1/estimates",
                          json={"cost_item_id": 200, "quantity": 1, "notes": "Hall"}).json()["id"]

    response = client.get(f"/api/v1/projects/1/estimates/{line_id}")
    assert response.status_code == 200
    assert response.json()["notes"] == "Hall"

    assert client.delete(f"/api/v1/projects/1/estimates/{line_id}").json()["success"] is True
    assert client.get(f"/api/v1/projects/1/estimates/{line_id}").status_code == 404
    assert client.delete(f"/api/v1/projects/1/estimates/{line_id}").status_code == 404


def test_estimate_summary_reports_skipped_lines(client, store):
    client.post("/api/v1/projects/1/estimates", json={"cost_item_id": 100, "quantity": 3})
    store.add_line_item(1, 999, 1)

    body = client.get("/api/v1/projects/1/estimate-summary").json()

    assert body["project_name"] == "Community Hall"
    assert body["estimate"]["grand_total"] == "445.50"
    assert body["skipped_lines"][0]["cost_item_id"] == 999


def test_unknown_project(client):
    assert client.get("/api/v1/projects/404/estimate-summary").status_code == 404
    assert client.get("/api/v1/projects/404/variance").status_code == 404


def test_actuals_and_variance(client):
    line_id = client.post("/api/v1/projects/1/estimates",
                          json={"cost_item_id": 100, "quantity": 3}).json()["id"]

    response = client.post("/api/v1/projects/1/actuals", json={
        "cost_item_id": 100,
        "estimate_line_item_id": line_id,
        "actual_quantity": 3,
        "actual_cost": "450",
        "variance_reason": "Concrete price rise",
        "completed_date": "2026-08-01",
    })
    assert response.status_code == 201
    actual_id = response.json()["id"]
    assert response.json()["actual_cost"] == "450.00"

    assert len(client.get("/api/v1/projects/1/actuals").json()) == 1

    body = client.get("/api/v1/projects/1/variance").json()
    assert body["lines"][0]["variance"] == "45.00"
    assert body["lines"][0]["status"] == "over"
    assert body["actual"]["grand_total"] == "495.00"
    assert body["variance"] == "49.50"
    assert body["status"] == "over"
    assert body["completion_date"] == "2026-08-01"

    response = client.put(f"/api/v1/projects/1/actuals/{actual_id}", json={"actual_cost": "405"})
    assert response.json()["actual_cost"] == "405.00"
    assert client.get("/api/v1/projects/1/variance").json()["status"] == "on-target"

    assert client.delete(f"/api/v1/projects/1/actuals/{actual_id}").status_code == 200
    assert client.get("/api/v1/projects/1/actuals").json() == []


def test_variance_without_actuals(client):
    client.post("/api/v1/projects/1/estimates", json={"cost_item_id": 200, "quantity": 2})

    line = client.get("/api/v1/projects/1/variance").json()["lines"][0]

    assert line["estimated"] == "25.00"
    assert line["actual"] is None
    assert line["variance"] is None
    assert line["status"] is None


def test_actual_validation(client):
    response = client.post("/api/v1/projects/1/actuals", json={
        "cost_item_id": 100, "actual_quantity": 1, "actual_cost": -5, "completed_date": "2026-08-01",
    })
    assert response.status_code == 422


def test_report_exports(client):
    client.post("/api/v1/projects/1/estimates", json={"cost_item_id": 100, "quantity": 3})

    response = client.get("/api/v1/projects/1/report.csv")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "Community Hall_report.csv" in response.headers["content-disposition"]
    assert '"Grand Total","445.50"' in response.text

    response = client.get("/api/v1/projects/1/report.json", params={"notes": "Draft"})
    assert response.json()["estimated_costs"]["grand_total"] == "445.50"
    assert response.json()["notes"] == "Draft"

    response = client.get("/api/v1/projects/1/report.pdf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_write_succeeds_when_totals_cannot_be_computed(client, store):
    store._update("projects", 1, {"contingency_percentage": "-5"})

    response = client.post("/api/v1/projects/1/estimates", json={"cost_item_id": 100, "quantity": "3"})
    assert response.status_code == 201
    assert response.json()["line_total"] is None
    assert len(store.list_line_items(1)) == 1

    line_id = response.json()["id"]
    response = client.put(f"/api/v1/projects/1/estimates/{line_id}", json={"quantity": "4"})
    assert response.status_code == 200
    assert response.json()["quantity"] == "4"
    assert response.json()["line_total"] is None

    assert client.get("/api/v1/projects/1/estimates").json()["totals"] is None


class ListCountingStore:
    def __init__(self, store):
        self.store = store
        self.line_reads = 0

    def __getattr__(self, name):
        return getattr(self.store, name)

    def list_line_items(self, project_id):
        self.line_reads += 1
        return self.store.list_line_items(project_id)


def test_report_reads_line_items_once(client, store):
    from api.main import app, get_store

    store.add_line_item(1, 100, 3)
    store.add_line_item(1, 999, 1)
    counting = ListCountingStore(store)
    app.dependency_overrides[get_store] = lambda: counting

    body = client.get("/api/v1/projects/1/report.json").json()

    assert counting.line_reads == 1
    assert body["estimated_costs"]["grand_total"] == "445.50"
    assert len(body["line_items"]) == 1
