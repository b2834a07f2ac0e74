import io

import pytest

from cafehoppr.web.forms import (
    CAFE_DRAFT_DEFAULTS,
    DraftRegistry,
    DraftStore,
    UnknownFieldError,
    validate_basic_info,
    validate_details,
    validate_review_info,
)


@pytest.fixture()
def staging(tmp_path):
    return tmp_path / "staging"


@pytest.fixture()
def store(staging):
    return DraftStore(staging_dir=staging)


def _valid_basic(**overrides):
    draft = dict(CAFE_DRAFT_DEFAULTS)
    draft.update(
        name="Kopi",
        review="Nice",
        contributor_name="Budi",
        location_id="loc-1",
        cafe_location_link="https://maps.google.com/?q=Kopi",
        cafe_photo="https://img.example.com/kopi.jpg",
        operational_days=["MON"],
        opening_hour="08:00",
        closing_hour="18:00",
    )
    draft.update(overrides)
    return draft


def test_update_merges_fields(store):
    store.update(name="X")
    store.update(review="Y")
    draft = store.get()
    assert draft["name"] == "X"
    assert draft["review"] == "Y"


def test_update_rejects_unknown_fields(store):
    with pytest.raises(UnknownFieldError):
        store.update(nmae="typo")
    assert store.get()["name"] == ""


def test_get_returns_a_copy(store):
    store.get()["operational_days"].append("MON")
    assert store.get()["operational_days"] == []


def test_reset_restores_defaults_and_first_page(store):
    store.update(name="X", price=9, operational_days=["MON"])
    store.set_page(2)
    store.reset()
    assert store.get() == CAFE_DRAFT_DEFAULTS
    assert store.current_page == 1


def test_only_two_pages(store):
    store.set_page(2)
    assert store.current_page == 2
    with pytest.raises(ValueError):
        store.set_page(3)


def test_submit_guard(store):
    assert store.begin_submit() is True
    assert store.begin_submit() is False
    store.end_submit()
    assert store.begin_submit() is True


def test_staged_files_replaced_and_released(store):
    first = store.stage_attachments([("a.png", io.BytesIO(b"one"), "image/png")])
    assert first[0].path.read_bytes() == b"one"

    second = store.stage_attachments([("b.jpg", io.BytesIO(b"two"), "image/jpeg")])
    assert not first[0].path.exists()
    assert [a.filename for a in store.attachments] == ["b.jpg"]

    store.reset()
    assert not second[0].path.exists()
    assert store.attachments == []


def test_staging_rejects_non_images(store):
    with pytest.raises(ValueError):
        store.stage_attachments([("notes.txt", io.BytesIO(b"x"), "text/plain")])


def test_registry_open_is_fresh_per_key(staging):
    session = {}
    registry = DraftRegistry(session, staging_dir=staging)

    add = registry.open("add")
    add.update(name="Half typed")

    edit = registry.open("edit:cafe-1", {"name": "Existing", "bogus": "ignored"})
    assert edit.get()["name"] == "Existing"
    assert registry.get("add").get()["name"] == "Half typed"

    reopened = registry.open("add")
    assert reopened.get()["name"] == ""


def test_registry_persists_between_lookups(staging):
    session = {}
    registry = DraftRegistry(session, staging_dir=staging)
    registry.open("review:cafe-1").update(review="Good coffee")
    registry.get("review:cafe-1").set_page(2)

    again = DraftRegistry(session, staging_dir=staging).get("review:cafe-1")
    assert again.get()["review"] == "Good coffee"
    assert again.current_page == 2


def test_registry_discard_releases_files(staging):
    session = {}
    registry = DraftRegistry(session, staging_dir=staging)
    store = registry.open("add")
    staged = store.stage_attachments([("a.png", io.BytesIO(b"x"), "image/png")])

    registry.discard("add")
    assert registry.get("add") is None
    assert not staged[0].path.exists()
    assert registry.keys() == []


def test_basic_info_valid():
    assert validate_basic_info(_valid_basic()) == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "  "},
        {"review": ""},
        {"contributor_name": ""},
        {"location_id": ""},
        {"cafe_location_link": "maps google"},
        {"cafe_location_link": ""},
        {"cafe_photo": "ftp://img"},
        {"cafe_photo": ""},
        {"operational_days": []},
        {"opening_hour": ""},
        {"opening_hour": "18:00", "closing_hour": "08:00"},
        {"opening_hour": "08:00", "closing_hour": "08:00"},
    ],
)
def test_basic_info_blocked(overrides):
    assert validate_basic_info(_valid_basic(**overrides))


def test_basic_info_photo_from_upload_or_existing():
    assert validate_basic_info(_valid_basic(cafe_photo=""), attachments=1) == []
    assert validate_basic_info(_valid_basic(cafe_photo="", existing_photos=["/uploads/x.png"])) == []


def test_review_info_only_needs_author_and_text():
    assert validate_review_info({"contributor_name": "Sari", "review": "ok"}) == []
    assert len(validate_review_info({"contributor_name": "", "review": ""})) == 2


def test_details_require_core_ratings():
    draft = dict(CAFE_DRAFT_DEFAULTS, price=5, seat_comfort=5, wifi=5)
    errors = validate_details(draft)
    assert errors == ["Electricity socket rating is required"]

    draft["electricity_socket"] = 1
    assert validate_details(draft) == []

    draft["noise"] = 11
    assert validate_details(draft)
