import json

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from conftest import ADMIN_EMAIL, ADMIN_HOBBY, ADMIN_PASSWORD, cafe_payload

from cafehoppr.client.api import ApiBackend
from cafehoppr.client.base import Attachment, AuthError, BackendError, CafeQuery, NotImplementedBackendError
from cafehoppr.client.factory import get_backend
from cafehoppr.client.sql import SqlBackend
from cafehoppr.core.config import ConfigurationError, Settings, settings
from cafehoppr.schemas.cafes import CafeCreate, CafeUpdate
from cafehoppr.schemas.reviews import ReviewCreate


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body
        self.content = b"" if body is None else json.dumps(body).encode()
        self.text = self.content.decode()

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.sent = []

    def request(self, **kwargs):
        self.sent.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _api(*responses):
    session = FakeSession(*responses)
    return ApiBackend("http://api.test/", session=session), session


# --- ApiBackend ---

def test_api_unwraps_envelope():
    api, session = _api(
        FakeResponse(200, {"success": True, "data": {"locations": [{"location_id": "l1", "name": "Jakarta"}]}})
    )
    locations = api.list_locations()
    assert [loc.name for loc in locations] == ["Jakarta"]
    assert session.sent[0]["url"] == "http://api.test/locations"
    assert session.sent[0]["method"] == "GET"


def test_api_list_cafes_drops_empty_params():
    body = {
        "success": True,
        "data": {
            "cafes": [],
            "pagination": {
                "current_page": 1,
                "per_page": 20,
                "total_count": 0,
                "total_pages": 1,
                "has_next_page": False,
                "has_prev_page": False,
            },
        },
    }
    api, session = _api(FakeResponse(200, body))

    data = api.list_cafes(CafeQuery(q="", sort="name_asc"))
    assert data.cafes == []
    params = session.sent[0]["params"]
    assert "q" not in params
    assert "location_id" not in params
    assert params["sort"] == "name_asc"


def test_api_missing_cafe_is_none():
    api, _ = _api(FakeResponse(404, {"success": False, "data": None, "message": "Cafe not found"}))
    assert api.get_cafe("nope") is None


def test_api_error_statuses_map_to_error_types():
    api, _ = _api(
        FakeResponse(501, {"success": False, "message": "Deleting cafes is disabled"}),
        FakeResponse(401, {"success": False, "message": "Not authenticated"}),
        FakeResponse(500, {"success": False, "message": "boom"}),
    )
    with pytest.raises(NotImplementedBackendError):
        api.delete_cafe("c1", token="t")
    with pytest.raises(AuthError):
        api.delete_cafe("c1", token="t")
    with pytest.raises(BackendError) as exc:
        api.delete_cafe("c1", token="t")
    assert exc.value.message == "boom"


def test_api_success_false_on_200_is_an_error():
    api, _ = _api(FakeResponse(200, {"success": False, "message": "nope"}))
    with pytest.raises(BackendError) as exc:
        api.list_contributors()
    assert exc.value.message == "nope"


def test_api_transport_failure_is_503():
    api, _ = _api(requests.ConnectionError("refused"))
    with pytest.raises(BackendError) as exc:
        api.list_locations()
    assert exc.value.status_code == 503


def test_api_sends_bearer_token_and_json():
    api, session = _api(FakeResponse(201, {"success": True, "data": {"cafe_id": "c1", "review_id": None}}))
    created = api.create_cafe(CafeCreate.model_validate(cafe_payload()), token="tok")
    assert created.cafe_id == "c1"
    sent = session.sent[0]
    assert sent["headers"]["Authorization"] == "Bearer tok"
    assert sent["json"]["operational_days"] == ["MON", "TUE", "WED"]
    assert sent["json"]["opening_hour"] == "08:00:00"
    assert sent["files"] is None


def test_api_photos_go_multipart(tmp_path):
    photo = tmp_path / "front.png"
    photo.write_bytes(b"png")
    api, session = _api(FakeResponse(200, {"success": True, "data": {}}))

    api.update_cafe(
        "c1",
        CafeUpdate(name="New"),
        token="tok",
        photos=[Attachment(filename="front.png", path=photo, content_type="image/png")],
    )
    sent = session.sent[0]
    assert sent["method"] == "PUT"
    assert sent["json"] is None
    assert json.loads(sent["data"]["payload"]) == {"name": "New"}
    assert sent["data"]["replace_photos"] == "true"
    assert sent["files"][0][0] == "photos"
    assert sent["files"][0][1][0] == "front.png"


def test_api_validate_token_unknown_is_none():
    api, _ = _api(FakeResponse(404, {"success": False, "message": "Invalid or expired token"}))
    assert api.validate_token("bogus") is None


def test_api_login_returns_token():
    api, session = _api(FakeResponse(200, {"success": True, "data": {"access_token": "jwt", "kind": "admin"}}))
    assert api.login("a@example.com", "pw", "climbing") == "jwt"
    assert session.sent[0]["json"]["hobby_answer"] == "climbing"


# --- Factory ---

def test_factory_picks_backend():
    api = get_backend(Settings(backend="api", api_base_url="http://api.test"))
    assert isinstance(api, ApiBackend)
    assert isinstance(get_backend(Settings(backend="sql")), SqlBackend)


def test_factory_requires_settings():
    with pytest.raises(ConfigurationError):
        get_backend(Settings(backend="api", api_base_url=None))
    with pytest.raises(ConfigurationError):
        get_backend(Settings(backend="carrier-pigeon"))


# --- SqlBackend ---

@pytest.fixture()
def sql(clean_db):
    return SqlBackend()


def test_sql_round_trip(sql, location):
    token = sql.verify_access_code("let-me-in")
    created = sql.create_cafe(CafeCreate.model_validate(cafe_payload(location.location_id)), token=token)

    cafe = sql.get_cafe(created.cafe_id)
    assert cafe.name == "Kopi Kenangan"
    assert cafe.location.name == "Jakarta"
    assert cafe.avg_rating == 7.0

    listed = sql.list_cafes()
    assert [c.cafe_id for c in listed.cafes] == [created.cafe_id]
    assert listed.pagination.total_count == 1

    sql.create_review(ReviewCreate(cafe_id=created.cafe_id, review="Loud", noise=2, created_by="Sari"), token=token)
    assert [r.created_by for r in sql.list_reviews(created.cafe_id)] == ["Sari", "Budi"]
    assert sql.list_contributors() == ["Budi", "Sari"]


def test_sql_rejects_wrong_access_code(sql):
    with pytest.raises(AuthError):
        sql.verify_access_code("nope")


def test_sql_writes_need_a_token(sql):
    with pytest.raises(AuthError):
        sql.create_cafe(CafeCreate.model_validate(cafe_payload()))


def test_sql_maps_validation_errors(sql):
    token = sql.verify_access_code("let-me-in")
    with pytest.raises(BackendError) as exc:
        sql.create_cafe(CafeCreate.model_validate(cafe_payload("missing")), token=token)
    assert exc.value.status_code == 422


def test_sql_admin_operations(sql, admin_user):
    token = sql.login(ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_HOBBY)
    assert sql.get_access_code(token=token) == "let-me-in"

    sql.update_access_code(" rotated ", token=token)
    assert sql.get_access_code(token=token) == "rotated"

    loc = sql.create_location("Bandung", token=token)
    assert loc.name == "Bandung"
    with pytest.raises(BackendError) as exc:
        sql.create_location("bandung", token=token)
    assert exc.value.status_code == 409

    with pytest.raises(AuthError):
        sql.login(ADMIN_EMAIL, "wrong", ADMIN_HOBBY)


def test_sql_delete_disabled(sql, admin_user, monkeypatch):
    token = sql.login(ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_HOBBY)
    writer = sql.verify_access_code("let-me-in")
    created = sql.create_cafe(CafeCreate.model_validate(cafe_payload()), token=writer)

    monkeypatch.setattr(settings, "allow_cafe_delete", False)
    with pytest.raises(NotImplementedBackendError):
        sql.delete_cafe(created.cafe_id, token=token)

    monkeypatch.setattr(settings, "allow_cafe_delete", True)
    sql.delete_cafe(created.cafe_id, token=token)
    assert sql.get_cafe(created.cafe_id) is None


def test_api_malformed_create_response_fails_the_submit(tmp_path):
    from cafehoppr.web.flow import FlowState, SubmissionFlow
    from cafehoppr.web.forms import DraftStore

    api, _ = _api(
        FakeResponse(201, {"success": True, "data": {}}),
        FakeResponse(201, {"success": True, "data": {"cafe_id": "c1"}}),
    )
    store = DraftStore(staging_dir=tmp_path)
    store.update(
        name="Kopi",
        review="Nice",
        contributor_name="Budi",
        location_id="loc-1",
        cafe_location_link="https://maps.google.com/?q=Kopi",
        cafe_photo="https://img.example.com/kopi.jpg",
        operational_days=["MON"],
        opening_hour="08:00",
        closing_hour="18:00",
        price=7,
        seat_comfort=6,
        wifi=8,
        electricity_socket=5,
    )
    flow = SubmissionFlow(store)
    flow.next()

    def persist(draft):
        return api.create_cafe(CafeCreate.model_validate(cafe_payload()), token="tok")

    result = flow.submit(persist)
    assert result.state == FlowState.FAILURE
    assert result.errors == ["Unexpected response from the API"]
    assert not store.submitting

    result = flow.submit(persist)
    assert result.state == FlowState.SUCCESS
    assert result.value.cafe_id == "c1"


def test_api_missing_staged_photo_is_a_backend_error(tmp_path):
    api, session = _api()
    gone = Attachment(filename="front.png", path=tmp_path / "gone.png", content_type="image/png")
    with pytest.raises(BackendError) as exc:
        api.create_cafe(CafeCreate.model_validate(cafe_payload()), token="tok", photos=[gone])
    assert exc.value.status_code == 422
    assert session.sent == []


def _unreachable_db(tmp_path):
    engine = create_engine(f"sqlite:///{(tmp_path / 'missing' / 'cafes.db').as_posix()}")
    return sessionmaker(bind=engine, autoflush=False, future=True)


def test_sql_database_outage_is_a_backend_error(tmp_path):
    sql = SqlBackend(session_factory=_unreachable_db(tmp_path))
    with pytest.raises(BackendError) as exc:
        sql.list_cafes()
    assert exc.value.status_code == 503
    with pytest.raises(BackendError):
        sql.get_cafe("c1")


def test_sql_missing_staged_photo_is_a_backend_error(sql, tmp_path):
    token = sql.verify_access_code("let-me-in")
    gone = Attachment(filename="front.png", path=tmp_path / "gone.png", content_type="image/png")
    with pytest.raises(BackendError) as exc:
        sql.create_cafe(CafeCreate.model_validate(cafe_payload()), token=token, photos=[gone])
    assert exc.value.status_code == 422
    assert sql.list_cafes().cafes == []
