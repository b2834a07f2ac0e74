from conftest import auth_header


def test_list_locations_sorted(client, db, location):
    r = client.get("/locations")
    assert r.status_code == 200, r.text
    assert [x["name"] for x in r.json()["data"]["locations"]] == ["Jakarta"]


def test_create_location_admin_only(client, admin_token, contributor_token):
    r = client.post("/locations", json={"name": "Bandung"}, headers=auth_header(contributor_token))
    assert r.status_code == 401

    r = client.post("/locations", json={"name": " Bandung "}, headers=auth_header(admin_token))
    assert r.status_code == 201, r.text
    assert r.json()["data"]["name"] == "Bandung"

    r = client.post("/locations", json={"name": "bandung"}, headers=auth_header(admin_token))
    assert r.status_code == 409
