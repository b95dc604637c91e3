from kasir.routers.settings import DEFAULT_STORE_NAME


def test_expense_defaults_and_listing_order(client, auth):
    first = client.post(
        "/expenses/",
        json={"category": "Listrik", "cost": 350000, "date": "2024-05-01"},
        headers=auth,
    )
    assert first.status_code == 200
    data = first.json()["data"]
    assert data["description"] == ""
    assert data["notes"] == ""

    client.post(
        "/expenses/",
        json={"category": "Ongkir", "description": "JNE", "cost": 25000, "date": "2024-05-03", "notes": "retur"},
        headers=auth,
    )
    rows = client.get("/expenses/", headers=auth).json()["data"]
    assert [r["category"] for r in rows] == ["Ongkir", "Listrik"]
    assert rows[0]["date"] == "2024-05-03"


def test_expense_validation(client, auth):
    resp = client.post("/expenses/", json={"category": "Listrik", "cost": 1000, "date": "kemarin"}, headers=auth)
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid value for date")

    resp = client.post("/expenses/", json={"category": "Listrik"}, headers=auth)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing required fields: cost, date"


def test_expense_update_and_delete(client, auth):
    created = client.post(
        "/expenses/",
        json={"category": "Sewa", "cost": 1500000, "date": "2024-04-01"},
        headers=auth,
    ).json()["data"]

    resp = client.put("/expenses/", json={"id": created["id"], "cost": 1750000}, headers=auth)
    assert resp.status_code == 200
    assert resp.json()["data"]["cost"] == 1750000
    assert resp.json()["data"]["category"] == "Sewa"

    assert client.put("/expenses/", json={"id": "missing", "cost": 1}, headers=auth).status_code == 404
    assert client.request("DELETE", "/expenses/", json={"id": created["id"]}, headers=auth).status_code == 200
    assert client.request("DELETE", "/expenses/", json={"id": created["id"]}, headers=auth).status_code == 404


def test_settings_created_on_first_read(client, auth):
    resp = client.get("/settings/", headers=auth)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["id"] == 1
    assert data["store_name"] == DEFAULT_STORE_NAME
    assert data["store_logo"] is None


def test_settings_partial_update(client, auth):
    resp = client.put("/settings/", json={"store_name": "Toko Kertas Makmur"}, headers=auth)
    assert resp.status_code == 200
    assert resp.json()["data"]["store_name"] == "Toko Kertas Makmur"

    client.put("/settings/", json={"store_logo": "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg"}, headers=auth)
    data = client.get("/settings/", headers=auth).json()["data"]
    assert data["store_name"] == "Toko Kertas Makmur"
    assert data["store_logo"].startswith("data:image/png")

    empty = client.put("/settings/", json={}, headers=auth)
    assert empty.status_code == 400
