import pytest

from cafehoppr.client.base import BackendError
from cafehoppr.web.flow import FlowMode, FlowState, SubmissionFlow
from cafehoppr.web.forms import CAFE_DRAFT_DEFAULTS, DraftStore

BASIC_INFO = {
    "name": "Kopi",
    "review": "Nice",
    "contributor_name": "Budi",
    "location_id": "loc-1",
    "cafe_location_link": "https://maps.google.com/?q=Kopi",
    "cafe_photo": "https://img.example.com/kopi.jpg",
    "operational_days": ["MON", "TUE"],
    "opening_hour": "08:00",
    "closing_hour": "18:00",
}

RATINGS = {"price": 7, "seat_comfort": 6, "wifi": 8, "electricity_socket": 5}


@pytest.fixture()
def store(tmp_path):
    return DraftStore(staging_dir=tmp_path)


def test_next_blocked_until_page_one_is_valid(store):
    flow = SubmissionFlow(store)
    result = flow.next()
    assert result.state == FlowState.BASIC_INFO
    assert not result.ok
    assert flow.state == FlowState.BASIC_INFO

    store.update(**BASIC_INFO)
    result = flow.next()
    assert result.ok
    assert flow.state == FlowState.DETAILS


def test_back_keeps_entered_data(store):
    flow = SubmissionFlow(store)
    store.update(**BASIC_INFO)
    flow.next()
    store.update(price=9)

    flow.back()
    assert flow.state == FlowState.BASIC_INFO
    assert store.get()["price"] == 9
    assert store.get()["name"] == "Kopi"


def test_review_mode_only_needs_author_and_text(store):
    flow = SubmissionFlow(store, FlowMode.review)
    store.update(contributor_name="Sari", review="Cozy")
    assert flow.next().ok


def test_submit_requires_core_ratings(store):
    flow = SubmissionFlow(store)
    store.update(**BASIC_INFO)
    flow.next()

    calls = []
    result = flow.submit(calls.append)
    assert result.state == FlowState.DETAILS
    assert calls == []


def test_submit_bypassing_page_one_sends_back(store):
    store.update(**RATINGS)
    store.set_page(2)
    result = SubmissionFlow(store).submit(lambda draft: None)
    assert result.state == FlowState.BASIC_INFO
    assert store.current_page == 1


def test_submit_success_resets_draft(store):
    flow = SubmissionFlow(store)
    store.update(**BASIC_INFO, **RATINGS)
    flow.next()

    seen = []

    def persist(draft):
        seen.append(draft)
        return "cafe-1"

    result = flow.submit(persist)
    assert result.state == FlowState.SUCCESS
    assert result.value == "cafe-1"
    assert seen[0]["name"] == "Kopi"
    assert store.get() == CAFE_DRAFT_DEFAULTS
    assert store.current_page == 1
    assert not store.submitting


def test_submit_failure_keeps_draft_on_details(store):
    flow = SubmissionFlow(store)
    store.update(**BASIC_INFO, **RATINGS)
    flow.next()

    def persist(draft):
        raise BackendError(500, "Server exploded")

    result = flow.submit(persist)
    assert result.state == FlowState.FAILURE
    assert result.errors == ["Server exploded"]
    assert flow.state == FlowState.DETAILS
    assert store.get()["name"] == "Kopi"
    assert not store.submitting


def test_second_submit_refused_while_in_flight(store):
    flow = SubmissionFlow(store)
    store.update(**BASIC_INFO, **RATINGS)
    flow.next()
    store.begin_submit()

    calls = []
    result = flow.submit(calls.append)
    assert result.state == FlowState.SUBMITTING
    assert calls == []


def test_unexpected_error_does_not_lock_the_draft(store):
    flow = SubmissionFlow(store)
    store.update(**BASIC_INFO, **RATINGS)
    flow.next()

    def explode(draft):
        raise RuntimeError("disk on fire")

    with pytest.raises(RuntimeError):
        flow.submit(explode)
    assert not store.submitting
    assert flow.state == FlowState.DETAILS

    result = flow.submit(lambda draft: "cafe-1")
    assert result.state == FlowState.SUCCESS
