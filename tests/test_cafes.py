import json

from conftest import auth_header, cafe_payload

from cafehoppr.core.config import settings


def _create(client, token, payload):
    r = client.post("/cafes", json=payload, headers=auth_header(token))
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_create_then_fetch_returns_submitted_values(client, contributor_token, location):
    payload = cafe_payload(location.location_id)
    created = _create(client, contributor_token, payload)
    assert created["review_id"]

    r = client.get(f"/cafes/{created['cafe_id']}")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    cafe = body["data"]

    for field in ("name", "cafe_photo", "cafe_location_link", "opening_hour", "closing_hour", "contributor_name"):
        assert cafe[field] == payload[field]
    assert cafe["operational_days"] == ["MON", "TUE", "WED"]
    assert cafe["location"]["name"] == "Jakarta"
    assert cafe["status"] == "approved"

    review = cafe["reviews"][0]
    assert review["review"] == "Fast wifi, plenty of sockets"
    assert review["created_by"] == "Budi"
    assert review["price"] == 8
    assert review["wifi"] == 6
    assert cafe["avg_rating"] == 7.0
    assert cafe["reviews_count"] == 1


def test_create_requires_write_token(client, location):
    r = client.post("/cafes", json=cafe_payload(location.location_id))
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_create_rejects_bad_map_link(client, contributor_token):
    r = client.post(
        "/cafes",
        json=cafe_payload(cafe_location_link="not a url"),
        headers=auth_header(contributor_token),
    )
    assert r.status_code == 422
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Validation error"


def test_create_rejects_opening_after_closing(client, contributor_token):
    r = client.post(
        "/cafes",
        json=cafe_payload(opening_hour="19:00", closing_hour="08:00"),
        headers=auth_header(contributor_token),
    )
    assert r.status_code == 422


def test_create_rejects_unknown_location(client, contributor_token):
    r = client.post(
        "/cafes",
        json=cafe_payload("no-such-location"),
        headers=auth_header(contributor_token),
    )
    assert r.status_code == 422
    assert r.json()["message"] == "Unknown location_id"


def test_caller_supplied_id_is_kept_and_duplicates_conflict(client, contributor_token):
    payload = cafe_payload(cafe_id="my-own-id")
    created = _create(client, contributor_token, payload)
    assert created["cafe_id"] == "my-own-id"

    r = client.post("/cafes", json=payload, headers=auth_header(contributor_token))
    assert r.status_code == 409


def test_days_accept_postgres_literal_and_csv(client, contributor_token):
    created = _create(client, contributor_token, cafe_payload(operational_days="{FRI,MON}"))
    cafe = client.get(f"/cafes/{created['cafe_id']}").json()["data"]
    assert cafe["operational_days"] == ["MON", "FRI"]

    created = _create(client, contributor_token, cafe_payload(name="Other", operational_days="sat, sun"))
    cafe = client.get(f"/cafes/{created['cafe_id']}").json()["data"]
    assert cafe["operational_days"] == ["SAT", "SUN"]


def test_get_unknown_cafe_404_envelope(client):
    r = client.get("/cafes/missing")
    assert r.status_code == 404
    assert r.json() == {"success": False, "data": None, "message": "Cafe not found"}


def test_list_search_matches_name_and_review_text(client, contributor_token):
    _create(client, contributor_token, cafe_payload(name="Blue Door"))
    _create(
        client,
        contributor_token,
        cafe_payload(name="Red Roof", review={"review": "Quiet corner with a BLUE sofa", "price": 5}),
    )
    _create(client, contributor_token, cafe_payload(name="Green Leaf", review=None))

    r = client.get("/cafes", params={"q": "blue"})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    names = sorted(c["name"] for c in data["cafes"])
    assert names == ["Blue Door", "Red Roof"]
    assert data["filters_applied"]["q"] == "blue"


def test_list_sort_and_pagination(client, contributor_token):
    _create(client, contributor_token, cafe_payload(name="Bravo", review={"price": 4}))
    _create(client, contributor_token, cafe_payload(name="alpha", review={"price": 9}))
    _create(client, contributor_token, cafe_payload(name="Charlie", review={"price": 6}))

    r = client.get("/cafes", params={"sort": "rating_desc"})
    assert [c["name"] for c in r.json()["data"]["cafes"]] == ["alpha", "Charlie", "Bravo"]

    r = client.get("/cafes", params={"sort": "rating_asc"})
    assert [c["name"] for c in r.json()["data"]["cafes"]] == ["Bravo", "Charlie", "alpha"]

    r = client.get("/cafes", params={"sort": "name_asc"})
    assert [c["name"] for c in r.json()["data"]["cafes"]] == ["alpha", "Bravo", "Charlie"]

    r = client.get("/cafes", params={"sort": "name_desc", "per_page": 2, "page": 2})
    data = r.json()["data"]
    assert [c["name"] for c in data["cafes"]] == ["alpha"]
    assert data["pagination"] == {
        "current_page": 2,
        "per_page": 2,
        "total_count": 3,
        "total_pages": 2,
        "has_next_page": False,
        "has_prev_page": True,
    }


def test_list_rejects_unknown_sort(client):
    r = client.get("/cafes", params={"sort": "random"})
    assert r.status_code == 422


def test_list_filters_by_location(client, contributor_token, location):
    _create(client, contributor_token, cafe_payload(location.location_id, name="In Jakarta"))
    _create(client, contributor_token, cafe_payload(name="Nowhere"))

    r = client.get("/cafes", params={"location_id": location.location_id})
    assert [c["name"] for c in r.json()["data"]["cafes"]] == ["In Jakarta"]


def test_pending_cafes_hidden_from_public(client, admin_token):
    created = _create(client, admin_token, cafe_payload(status="pending"))

    assert client.get("/cafes").json()["data"]["cafes"] == []
    assert client.get(f"/cafes/{created['cafe_id']}").status_code == 404

    r = client.get("/cafes", params={"status": "pending"})
    assert [c["cafe_id"] for c in r.json()["data"]["cafes"]] == [created["cafe_id"]]


def test_contributor_cannot_choose_status(client, contributor_token):
    created = _create(client, contributor_token, cafe_payload(status="rejected"))
    assert client.get(f"/cafes/{created['cafe_id']}").json()["data"]["status"] == "approved"


def test_update_is_partial_and_updates_latest_review(client, contributor_token):
    created = _create(client, contributor_token, cafe_payload())
    cafe_id = created["cafe_id"]

    r = client.put(
        f"/cafes/{cafe_id}",
        json={"name": "Renamed", "review": {"review": "Even better now", "seat_comfort": 10}},
        headers=auth_header(contributor_token),
    )
    assert r.status_code == 200, r.text
    cafe = r.json()["data"]
    assert cafe["name"] == "Renamed"
    assert cafe["cafe_location_link"] == "https://maps.google.com/?q=Kopi+Kenangan"
    assert cafe["operational_days"] == ["MON", "TUE", "WED"]
    assert len(cafe["reviews"]) == 1
    review = cafe["reviews"][0]
    assert review["review"] == "Even better now"
    assert review["price"] == 8
    assert review["seat_comfort"] == 10
    assert cafe["avg_rating"] == 8.0


def test_update_checks_hours_against_stored_values(client, contributor_token):
    created = _create(client, contributor_token, cafe_payload())
    r = client.put(
        f"/cafes/{created['cafe_id']}",
        json={"opening_hour": "20:00"},
        headers=auth_header(contributor_token),
    )
    assert r.status_code == 422
    assert "opening_hour" in r.json()["message"]


def test_update_unknown_cafe_404(client, contributor_token):
    r = client.put("/cafes/missing", json={"name": "X"}, headers=auth_header(contributor_token))
    assert r.status_code == 404


def test_multipart_create_stores_photos(client, contributor_token):
    payload = cafe_payload(cafe_photo=None)
    files = [
        ("photos", ("front.png", b"\x89PNG fake", "image/png")),
        ("photos", ("inside.jpg", b"\xff\xd8 fake", "image/jpeg")),
    ]
    r = client.post(
        "/cafes",
        data={"payload": json.dumps(payload)},
        files=files,
        headers=auth_header(contributor_token),
    )
    assert r.status_code == 201, r.text
    cafe_id = r.json()["data"]["cafe_id"]

    photos = client.get(f"/cafes/{cafe_id}").json()["data"]["photos"]
    assert [p["is_primary"] for p in photos] == [True, False]
    assert all(p["photo_url"].startswith(f"/uploads/cafes/{cafe_id}/") for p in photos)

    served = client.get(photos[0]["photo_url"])
    assert served.status_code == 200
    assert served.content == b"\x89PNG fake"


def test_multipart_rejects_non_images_before_creating(client, contributor_token):
    r = client.post(
        "/cafes",
        data={"payload": json.dumps(cafe_payload())},
        files=[("photos", ("notes.txt", b"hello", "text/plain"))],
        headers=auth_header(contributor_token),
    )
    assert r.status_code == 422
    assert client.get("/cafes").json()["data"]["cafes"] == []


def test_delete_requires_admin(client, contributor_token, admin_token):
    created = _create(client, contributor_token, cafe_payload())
    cafe_id = created["cafe_id"]

    r = client.delete(f"/cafes/{cafe_id}", headers=auth_header(contributor_token))
    assert r.status_code == 401

    r = client.delete(f"/cafes/{cafe_id}", headers=auth_header(admin_token))
    assert r.status_code == 204
    assert client.get(f"/cafes/{cafe_id}").status_code == 404


def test_delete_disabled_answers_501(client, contributor_token, admin_token, monkeypatch):
    created = _create(client, contributor_token, cafe_payload())
    monkeypatch.setattr(settings, "allow_cafe_delete", False)

    r = client.delete(f"/cafes/{created['cafe_id']}", headers=auth_header(admin_token))
    assert r.status_code == 501
    assert r.json()["success"] is False
    assert client.get(f"/cafes/{created['cafe_id']}").status_code == 200
