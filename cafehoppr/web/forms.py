from __future__ import annotations

import copy
import json
import logging
import shutil
import uuid
from collections.abc import Callable, Iterable, MutableMapping
from pathlib import Path
from typing import Any, BinaryIO

from cafehoppr.client.base import Attachment
from cafehoppr.models.enums import RATING_FIELDS, RATING_MAX, REQUIRED_RATING_FIELDS
from cafehoppr.schemas.cafes import is_valid_url
from cafehoppr.services.schedule import parse_hour, parse_operational_days
from cafehoppr.services.uploads import ALLOWED_EXTENSIONS

logger = logging.getLogger(__name__)

PAGE_BASIC_INFO = 1
PAGE_DETAILS = 2
PAGES = (PAGE_BASIC_INFO, PAGE_DETAILS)

CAFE_DRAFT_DEFAULTS: dict[str, Any] = {
    "name": "",
    "cafe_photo": "",
    "cafe_location_link": "",
    "location_id": "",
    "operational_days": [],
    "opening_hour": "",
    "closing_hour": "",
    "contributor_name": "",
    "review": "",
    # Edit flow: photos the cafe already has, so page 1 does not demand a new one.
    "existing_photos": [],
    **{field: 0 for field in RATING_FIELDS},
}

REQUIRED_LABELS = {
    "name": "Cafe name",
    "review": "Review",
    "contributor_name": "Your name",
    "price": "Price",
    "seat_comfort": "Seat comfort",
    "wifi": "Wi-Fi",
    "electricity_socket": "Electricity socket",
}


class UnknownFieldError(ValueError):
    pass


class DraftStore:
    """One in-progress cafe/review submission.

    Holds the form fields, the page cursor, staged photo files and a
    ``submitting`` flag. ``on_change`` is called after every mutation so the
    owner can persist the new state.
    """

    def __init__(
        self,
        state: dict[str, Any] | None = None,
        *,
        staging_dir: str | Path,
        on_change: Callable[[dict[str, Any]], None] | None = None,
    ):
        self._staging_root = Path(staging_dir)
        self._on_change = on_change
        self._state = state if state is not None else self.fresh_state()

    @staticmethod
    def fresh_state(prefill: dict[str, Any] | None = None, *, draft_id: str | None = None) -> dict[str, Any]:
        fields = copy.deepcopy(CAFE_DRAFT_DEFAULTS)
        for key, value in (prefill or {}).items():
            if key in fields and value is not None:
                fields[key] = value
        return {
            "draft_id": draft_id or uuid.uuid4().hex,
            "fields": fields,
            "current_page": PAGE_BASIC_INFO,
            "attachments": [],
            "submitting": False,
        }

    def save(self) -> None:
        if self._on_change is not None:
            self._on_change(self._state)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._state)

    @property
    def draft_id(self) -> str:
        return self._state["draft_id"]

    def get(self) -> dict[str, Any]:
        """Current field values (a copy)."""
        return copy.deepcopy(self._state["fields"])

    def update(self, **partial: Any) -> None:
        unknown = set(partial) - set(CAFE_DRAFT_DEFAULTS)
        if unknown:
            raise UnknownFieldError(f"Unknown draft field(s): {', '.join(sorted(unknown))}")
        self._state["fields"].update(partial)
        self.save()

    def reset(self, prefill: dict[str, Any] | None = None) -> None:
        self.release_attachments()
        self._state = self.fresh_state(prefill, draft_id=self.draft_id)
        self.save()

    @property
    def current_page(self) -> int:
        return self._state["current_page"]

    def set_page(self, page: int) -> None:
        if page not in PAGES:
            raise ValueError(f"Page must be one of {PAGES}, got {page}")
        self._state["current_page"] = page
        self.save()

    # --- Submission guard ---
    @property
    def submitting(self) -> bool:
        return bool(self._state.get("submitting"))

    def begin_submit(self) -> bool:
        """Mark the draft as in flight; False when a submission is already running."""
        if self.submitting:
            return False
        self._state["submitting"] = True
        self.save()
        return True

    def end_submit(self) -> None:
        self._state["submitting"] = False
        self.save()

    # --- Staged attachments ---
    @property
    def staging_path(self) -> Path:
        return self._staging_root / self.draft_id

    @property
    def attachments(self) -> list[Attachment]:
        return [
            Attachment(filename=a["filename"], path=Path(a["path"]), content_type=a["content_type"])
            for a in self._state["attachments"]
        ]

    def stage_attachments(self, files: Iterable[tuple[str, BinaryIO, str | None]]) -> list[Attachment]:
        """Replace the staged photos with ``files`` (filename, stream, content type).

        Files already staged are deleted first.
        """
        self.release_attachments()
        target = self.staging_path
        staged = []
        for filename, stream, content_type in files:
            if not filename:
                continue
            ext = Path(filename).suffix.lower()
            if ext not in ALLOWED_EXTENSIONS:
                raise ValueError(f"Unsupported photo type: {filename!r}")
            target.mkdir(parents=True, exist_ok=True)
            path = target / f"{uuid.uuid4().hex}{ext}"
            with path.open("wb") as fh:
                shutil.copyfileobj(stream, fh)
            staged.append(
                {"filename": filename, "path": str(path), "content_type": content_type or "application/octet-stream"}
            )
        self._state["attachments"] = staged
        self.save()
        return self.attachments

    def release_attachments(self) -> None:
        if self._state.get("attachments"):
            logger.debug("Releasing %s staged file(s) of draft %s", len(self._state["attachments"]), self.draft_id)
        self._state["attachments"] = []
        shutil.rmtree(self.staging_path, ignore_errors=True)
        self.save()


class DraftRegistry:
    """Drafts keyed by modal identity.

    Keys look like ``"add"``, ``"edit:<cafe_id>"``, ``"review:<cafe_id>"`` or
    ``"token:<token>"``. The session-like mapping only holds ``key -> draft_id``;
    draft state is kept as JSON next to its staged files, which keeps the
    cookie small. ``open`` always starts from a fresh draft.
    """

    SESSION_KEY = "drafts"

    def __init__(self, session: MutableMapping[str, Any], *, staging_dir: str | Path):
        self.session = session
        self.staging_dir = Path(staging_dir)

    def _ids(self) -> dict[str, str]:
        return self.session.setdefault(self.SESSION_KEY, {})

    def _touch_session(self) -> None:
        # Flask sessions only notice top-level assignments.
        if hasattr(self.session, "modified"):
            self.session.modified = True

    def _state_file(self, draft_id: str) -> Path:
        return self.staging_dir / f"{draft_id}.json"

    def _saver(self, draft_id: str) -> Callable[[dict[str, Any]], None]:
        def save(state: dict[str, Any]) -> None:
            self.staging_dir.mkdir(parents=True, exist_ok=True)
            self._state_file(draft_id).write_text(json.dumps(state), encoding="utf-8")

        return save

    def open(self, key: str, prefill: dict[str, Any] | None = None) -> DraftStore:
        self.discard(key)
        draft_id = uuid.uuid4().hex
        state = DraftStore.fresh_state(prefill, draft_id=draft_id)
        store = DraftStore(state, staging_dir=self.staging_dir, on_change=self._saver(draft_id))
        store.save()
        self._ids()[key] = draft_id
        self._touch_session()
        return store

    def get(self, key: str) -> DraftStore | None:
        draft_id = self._ids().get(key)
        if draft_id is None:
            return None
        try:
            state = json.loads(self._state_file(draft_id).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Draft %s for %r is gone", draft_id, key)
            self._ids().pop(key, None)
            self._touch_session()
            return None
        return DraftStore(state, staging_dir=self.staging_dir, on_change=self._saver(draft_id))

    def discard(self, key: str) -> None:
        draft_id = self._ids().pop(key, None)
        if draft_id is None:
            return
        self._touch_session()
        shutil.rmtree(self.staging_dir / draft_id, ignore_errors=True)
        self._state_file(draft_id).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        return list(self._ids())


# --- Validation ---

def _blank(value: Any) -> bool:
    return not str(value or "").strip()


def validate_basic_info(
    draft: dict[str, Any],
    *,
    attachments: int = 0,
    require_photo: bool = True,
) -> list[str]:
    """Check page 1 of the cafe form; return human-readable problems (empty when ok)."""
    errors: list[str] = []
    for field in ("name", "review", "contributor_name"):
        if _blank(draft.get(field)):
            errors.append(f"{REQUIRED_LABELS[field]} is required")

    if _blank(draft.get("location_id")):
        errors.append("Please select a location")

    link = str(draft.get("cafe_location_link") or "").strip()
    if not link:
        errors.append("Map link is required")
    elif not is_valid_url(link):
        errors.append("Map link must be a valid URL")

    photo = str(draft.get("cafe_photo") or "").strip()
    if photo and not is_valid_url(photo):
        errors.append("Photo URL must be a valid URL")
    elif require_photo and not photo and attachments == 0 and not draft.get("existing_photos"):
        errors.append("Add a photo URL or upload at least one photo")

    if not parse_operational_days(draft.get("operational_days")):
        errors.append("Select at least one operational day")

    opening = parse_hour(draft.get("opening_hour"))
    closing = parse_hour(draft.get("closing_hour"))
    if opening is None or closing is None:
        errors.append("Opening and closing hours are required")
    elif opening >= closing:
        errors.append("Opening hour must be earlier than closing hour")
    return errors


def validate_review_info(draft: dict[str, Any]) -> list[str]:
    """Page 1 of the add-review form: only who and what."""
    return [
        f"{REQUIRED_LABELS[field]} is required"
        for field in ("contributor_name", "review")
        if _blank(draft.get(field))
    ]


def validate_details(draft: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    for field in RATING_FIELDS:
        value = draft.get(field) or 0
        if not 0 <= int(value) <= RATING_MAX:
            errors.append(f"{field} must be between 0 and {RATING_MAX}")
    for field in REQUIRED_RATING_FIELDS:
        if int(draft.get(field) or 0) <= 0:
            errors.append(f"{REQUIRED_LABELS[field]} rating is required")
    return errors


def parse_rating(value: Any) -> int:
    try:
        return int(str(value).strip() or 0)
    except ValueError:
        return 0
