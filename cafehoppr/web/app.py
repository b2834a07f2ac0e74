from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from flask import (
    Flask,
    abort,
    current_app,
    flash,
    g,
    redirect,
    render_template,
    request,
    send_from_directory,
    session,
    url_for,
)
from pydantic import ValidationError

from cafehoppr.client.base import (
    AuthError,
    BackendError,
    CafeBackend,
    CafeQuery,
    NotImplementedBackendError,
)
from cafehoppr.client.factory import get_backend
from cafehoppr.client.fixtures import sample_cafes, sample_locations
from cafehoppr.core.config import settings
from cafehoppr.core.logging_config import configure_logging
from cafehoppr.models.enums import RATING_FIELDS, TokenType
from cafehoppr.schemas.cafes import CafeCreate, CafeResponse, CafeUpdate
from cafehoppr.schemas.reviews import ReviewCreate
from cafehoppr.web.config import Config
from cafehoppr.web.flow import FlowMode, FlowState, SubmissionFlow
from cafehoppr.web.forms import DraftRegistry, DraftStore, parse_rating
from cafehoppr.web.presenters import SORT_LABELS, register_presenters

logger = logging.getLogger(__name__)

ADMIN_TOKEN = "admin_token"
WRITE_TOKEN = "write_token"

BASIC_TEXT_FIELDS = ("name", "cafe_photo", "cafe_location_link", "location_id", "opening_hour", "closing_hour")


def _backend() -> CafeBackend:
    return current_app.extensions["cafehoppr_backend"]


def _registry() -> DraftRegistry:
    return DraftRegistry(session, staging_dir=current_app.config["STAGING_DIR"])


def _write_token() -> str | None:
    return session.get(ADMIN_TOKEN) or session.get(WRITE_TOKEN)


def _require_access():
    if _write_token() or not settings.require_write_token:
        return None
    flash("Enter the access code to contribute.", "warning")
    return redirect(url_for("access", next=request.full_path))


def _require_admin():
    if not session.get(ADMIN_TOKEN):
        flash("Please sign in as admin.", "warning")
        return redirect(url_for("auth"))
    return None


def _build(model, data: dict[str, Any]):
    """Validate form data into an API payload; problems surface as a 422 BackendError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise BackendError(422, f"Invalid form data: {problems}") from e


def _ratings(draft: dict[str, Any]) -> dict[str, int]:
    return {field: int(draft.get(field) or 0) for field in RATING_FIELDS}


def _cafe_fields(draft: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": draft["name"],
        "cafe_photo": draft["cafe_photo"] or None,
        "cafe_location_link": draft["cafe_location_link"],
        "operational_days": draft["operational_days"],
        "opening_hour": draft["opening_hour"] or None,
        "closing_hour": draft["closing_hour"] or None,
        "location_id": draft["location_id"] or None,
        "contributor_name": draft["contributor_name"],
    }


def _review_fields(draft: dict[str, Any]) -> dict[str, Any]:
    return {"review": draft["review"], "created_by": draft["contributor_name"], **_ratings(draft)}


def cafe_prefill(cafe: CafeResponse) -> dict[str, Any]:
    """Draft values for editing ``cafe``, taking the review fields from its latest review."""
    prefill = {
        "name": cafe.name,
        "cafe_photo": cafe.cafe_photo or "",
        "cafe_location_link": cafe.cafe_location_link,
        "location_id": cafe.location_id or "",
        "operational_days": [d.value for d in cafe.operational_days],
        "opening_hour": cafe.opening_hour or "",
        "closing_hour": cafe.closing_hour or "",
    }
    if cafe.contributor_name:
        prefill["contributor_name"] = cafe.contributor_name
    prefill["existing_photos"] = [p.photo_url for p in cafe.photos]
    if cafe.reviews:
        latest = cafe.reviews[0]
        prefill["review"] = latest.review
        prefill["contributor_name"] = latest.created_by or prefill.get("contributor_name", "")
        prefill.update({field: getattr(latest, field) for field in RATING_FIELDS})
    return prefill


def _read_basic_info(store: DraftStore, mode: FlowMode) -> None:
    form = request.form
    changes: dict[str, Any] = {
        "contributor_name": form.get("contributor_name", "").strip(),
        "review": form.get("review", "").strip(),
    }
    if mode != FlowMode.review:
        changes.update({f: form.get(f, "").strip() for f in BASIC_TEXT_FIELDS})
        changes["operational_days"] = form.getlist("operational_days")
    store.update(**changes)

    files = [f for f in request.files.getlist("photos") if f and f.filename]
    if files:
        try:
            store.stage_attachments((f.filename, f.stream, f.mimetype) for f in files)
        except ValueError as e:
            flash(str(e), "danger")


def _read_details(store: DraftStore) -> None:
    changes = {field: parse_rating(request.form[field]) for field in RATING_FIELDS if field in request.form}
    if changes:
        store.update(**changes)


def _locations() -> list:
    try:
        return _backend().list_locations()
    except BackendError as e:
        logger.warning("Cannot load locations: %s", e.message)
        if current_app.config["SHOW_SAMPLE_ON_ERROR"]:
            return sample_locations()
        flash(f"Could not load locations: {e.message}", "danger")
        return []


def run_wizard(
    key: str,
    mode: FlowMode,
    *,
    title: str,
    prefill: Callable[[], dict[str, Any]],
    persist: Callable[[DraftStore, dict[str, Any]], Any],
    on_success: Callable[[Any], str],
    cancel_url: str,
    context: dict[str, Any] | None = None,
):
    """Drive one add/edit/review form: GET opens a fresh draft, POST runs a step."""
    registry = _registry()
    if request.method == "GET":
        store = registry.open(key, prefill())
    else:
        store = registry.get(key)
        if store is None:
            flash("This form has expired. Please start again.", "warning")
            return redirect(request.full_path)

        flow = SubmissionFlow(store, mode)
        action = request.form.get("action", "next")
        if action == "cancel":
            registry.discard(key)
            return redirect(cancel_url)
        if action == "back":
            _read_details(store)
            flow.back()
        elif action == "next":
            _read_basic_info(store, mode)
            for error in flow.next().errors:
                flash(error, "danger")
        elif action == "submit":
            _read_details(store)
            result = flow.submit(lambda draft: persist(store, draft))
            if result.state == FlowState.SUCCESS:
                registry.discard(key)
                return redirect(on_success(result.value))
            for error in result.errors:
                flash(error, "danger")
        else:
            abort(400)

    return render_template(
        "cafe_form.html",
        title=title,
        mode=mode.value,
        page=store.current_page,
        draft=store.get(),
        attachments=[a.filename for a in store.attachments],
        locations=_locations() if mode != FlowMode.review else [],
        cancel_url=cancel_url,
        **(context or {}),
    )


def create_app(backend: CafeBackend | None = None, config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    configure_logging(log_dir=settings.log_dir, level=settings.log_level, filename="web.log")
    app.extensions["cafehoppr_backend"] = backend or get_backend(settings)

    photo_base = app.config["API_BASE_URL"] if app.config["BACKEND"] == "api" else None
    register_presenters(app, photo_base_url=photo_base)

    @app.before_request
    def load_roles() -> None:
        g.is_admin = bool(session.get(ADMIN_TOKEN))
        g.can_write = bool(_write_token()) or not settings.require_write_token

    @app.get("/")
    def index():
        query = CafeQuery(
            q=request.args.get("q", "").strip() or None,
            location_id=request.args.get("location_id") or None,
            sort=request.args.get("sort", "newest"),
            page=max(1, request.args.get("page", 1, type=int) or 1),
        )
        if query.sort not in SORT_LABELS:
            query.sort = "newest"

        cafes, pagination = [], None
        try:
            data = _backend().list_cafes(query)
            cafes, pagination = data.cafes, data.pagination
        except BackendError as e:
            logger.warning("Cannot load cafes: %s", e.message)
            if app.config["SHOW_SAMPLE_ON_ERROR"]:
                flash("Cafes are unavailable right now; showing sample data.", "warning")
                cafes = sample_cafes()
            else:
                flash(f"Could not load cafes: {e.message}", "danger")

        return render_template(
            "index.html",
            cafes=cafes,
            pagination=pagination,
            locations=_locations(),
            query=query,
        )

    @app.get("/cafes/<cafe_id>")
    def cafe_detail(cafe_id: str):
        try:
            cafe = _backend().get_cafe(cafe_id)
        except BackendError as e:
            logger.warning("Cannot load cafe %s: %s", cafe_id, e.message)
            cafe = None
            if app.config["SHOW_SAMPLE_ON_ERROR"]:
                cafe = next((c for c in sample_cafes() if c.cafe_id == cafe_id), None)
            if cafe is None:
                flash(f"Could not load cafe: {e.message}", "danger")
                return redirect(url_for("index"))
        if cafe is None:
            flash("Cafe not found", "warning")
            return redirect(url_for("index"))
        return render_template("cafe_detail.html", cafe=cafe)

    # --- Add / edit / review ---

    @app.route("/cafes/new", methods=["GET", "POST"])
    def cafe_new():
        r = _require_access()
        if r: return r

        def persist(store: DraftStore, draft: dict[str, Any]):
            payload = _build(CafeCreate, {**_cafe_fields(draft), "review": _review_fields(draft)})
            return _backend().create_cafe(payload, token=_write_token(), photos=store.attachments)

        def done(created) -> str:
            flash("Cafe added successfully!", "success")
            return url_for("index")

        return run_wizard(
            "add",
            FlowMode.add,
            title="Add Cafe",
            prefill=dict,
            persist=persist,
            on_success=done,
            cancel_url=url_for("index"),
        )

    def _load_cafe_or_redirect(cafe_id: str):
        try:
            cafe = _backend().get_cafe(cafe_id)
        except BackendError as e:
            flash(f"Could not load cafe: {e.message}", "danger")
            return None, redirect(url_for("index"))
        if cafe is None:
            flash("Cafe not found", "warning")
            return None, redirect(url_for("index"))
        return cafe, None

    @app.route("/cafes/<cafe_id>/edit", methods=["GET", "POST"])
    def cafe_edit(cafe_id: str):
        r = _require_access()
        if r: return r
        cafe, r = _load_cafe_or_redirect(cafe_id)
        if r: return r

        def persist(store: DraftStore, draft: dict[str, Any]):
            payload = _build(CafeUpdate, {**_cafe_fields(draft), "review": _review_fields(draft)})
            _backend().update_cafe(cafe_id, payload, token=_write_token(), photos=store.attachments)
            return cafe_id

        def done(_) -> str:
            flash("Cafe updated successfully!", "success")
            return url_for("cafe_detail", cafe_id=cafe_id)

        return run_wizard(
            f"edit:{cafe_id}",
            FlowMode.edit,
            title=f"Edit {cafe.name}",
            prefill=lambda: cafe_prefill(cafe),
            persist=persist,
            on_success=done,
            cancel_url=url_for("cafe_detail", cafe_id=cafe_id),
        )

    @app.route("/cafes/<cafe_id>/reviews/new", methods=["GET", "POST"])
    def review_new(cafe_id: str):
        r = _require_access()
        if r: return r
        cafe, r = _load_cafe_or_redirect(cafe_id)
        if r: return r

        def persist(store: DraftStore, draft: dict[str, Any]):
            payload = _build(ReviewCreate, {"cafe_id": cafe_id, **_review_fields(draft)})
            return _backend().create_review(payload, token=_write_token())

        def done(_) -> str:
            flash("Review added successfully!", "success")
            return url_for("cafe_detail", cafe_id=cafe_id)

        return run_wizard(
            f"review:{cafe_id}",
            FlowMode.review,
            title=f"Review {cafe.name}",
            prefill=dict,
            persist=persist,
            on_success=done,
            cancel_url=url_for("cafe_detail", cafe_id=cafe_id),
            context={"cafe": cafe},
        )

    @app.route("/cafes/<cafe_id>/delete", methods=["GET", "POST"])
    def cafe_delete(cafe_id: str):
        r = _require_admin()
        if r: return r
        cafe, r = _load_cafe_or_redirect(cafe_id)
        if r: return r

        if request.method == "POST":
            try:
                _backend().delete_cafe(cafe_id, token=session.get(ADMIN_TOKEN))
            except NotImplementedBackendError:
                flash("Deleting cafes is not implemented.", "warning")
                return redirect(url_for("cafe_detail", cafe_id=cafe_id))
            except AuthError as e:
                session.pop(ADMIN_TOKEN, None)
                flash(f"Admin session expired: {e.message}", "danger")
                return redirect(url_for("auth"))
            except BackendError as e:
                flash(f"Error deleting cafe. Please try again. ({e.message})", "danger")
                return redirect(url_for("cafe_detail", cafe_id=cafe_id))
            logger.info("Cafe %s deleted from web", cafe_id)
            flash("Cafe deleted successfully!", "success")
            return redirect(url_for("index"))
        return render_template("cafe_delete.html", cafe=cafe)

    # --- Token-gated upsert ---

    @app.route("/upsert", methods=["GET", "POST"])
    def upsert():
        token = (request.args.get("token") or "").strip()
        validation = None
        if token:
            try:
                validation = _backend().validate_token(token)
            except BackendError as e:
                logger.warning("Token validation failed: %s", e.message)
        if validation is None or not validation.is_valid:
            message = "Missing token" if not token else "Invalid or expired token"
            flash(message, "danger")
            return render_template("upsert_error.html", message=message), 404

        key = f"token:{token}"
        cafe_id = validation.cafe_id
        success_url = url_for("cafe_detail", cafe_id=cafe_id) if cafe_id else url_for("index")

        if validation.type == TokenType.add_cafe:
            def persist(store: DraftStore, draft: dict[str, Any]):
                payload = _build(CafeCreate, {**_cafe_fields(draft), "review": _review_fields(draft)})
                return _backend().create_cafe(payload, token=token, photos=store.attachments)

            mode, title, prefill = FlowMode.add, "Add Cafe", dict
        elif validation.type == TokenType.edit_cafe:
            def persist(store: DraftStore, draft: dict[str, Any]):
                payload = _build(CafeUpdate, {**_cafe_fields(draft), "review": _review_fields(draft)})
                _backend().update_cafe(cafe_id, payload, token=token, photos=store.attachments)

            mode, title = FlowMode.edit, "Edit Cafe"
            prefill = (lambda: validation.cafe.model_dump(mode="json")) if validation.cafe else dict
        else:
            def persist(store: DraftStore, draft: dict[str, Any]):
                payload = _build(ReviewCreate, {"cafe_id": cafe_id, **_review_fields(draft)})
                return _backend().create_review(payload, token=token)

            mode, title, prefill = FlowMode.review, "Add Review", dict

        def done(_) -> str:
            flash("Thanks! Your submission was saved.", "success")
            return success_url

        return run_wizard(
            key,
            mode,
            title=title,
            prefill=prefill,
            persist=persist,
            on_success=done,
            cancel_url=url_for("index"),
            context={"cafe": validation.cafe, "token": token},
        )

    # --- Access code, admin auth ---

    @app.route("/access", methods=["GET", "POST"])
    def access():
        next_url = request.values.get("next") or url_for("index")
        if not next_url.startswith("/"):
            next_url = url_for("index")
        if request.method == "POST":
            code = request.form.get("code", "").strip()
            if not code:
                flash("Please enter the access code", "warning")
                return render_template("access.html", next_url=next_url)
            try:
                session[WRITE_TOKEN] = _backend().verify_access_code(code)
            except AuthError:
                flash("Access denied! Incorrect code.", "danger")
                return render_template("access.html", next_url=next_url)
            except BackendError as e:
                flash(f"Error verifying code: {e.message}", "danger")
                return render_template("access.html", next_url=next_url)
            flash("Access granted!", "success")
            return redirect(next_url)
        return render_template("access.html", next_url=next_url)

    @app.route("/auth", methods=["GET", "POST"])
    def auth():
        if request.method == "POST":
            email = request.form.get("email", "").strip()
            password = request.form.get("password", "")
            hobby = request.form.get("hobby_answer", "").strip()
            try:
                session[ADMIN_TOKEN] = _backend().login(email, password, hobby or None)
            except BackendError as e:
                flash(e.message, "danger")
                return render_template("auth.html", email=email)
            flash("Welcome back, admin!", "success")
            return redirect(url_for("admin"))
        return render_template("auth.html", email="")

    @app.get("/logout")
    def logout():
        session.pop(ADMIN_TOKEN, None)
        session.pop(WRITE_TOKEN, None)
        registry = _registry()
        for key in registry.keys():
            registry.discard(key)
        flash("Signed out.", "info")
        return redirect(url_for("index"))

    @app.route("/admin", methods=["GET", "POST"])
    def admin():
        r = _require_admin()
        if r: return r
        token = session.get(ADMIN_TOKEN)

        try:
            if request.method == "POST":
                new_code = request.form.get("new_code", "").strip()
                if not new_code:
                    flash("Please enter a new access code", "warning")
                else:
                    _backend().update_access_code(new_code, token=token)
                    flash("Access code updated successfully!", "success")
                    return redirect(url_for("admin"))
            current_code = _backend().get_access_code(token=token)
        except AuthError as e:
            session.pop(ADMIN_TOKEN, None)
            flash(f"Admin session expired: {e.message}", "danger")
            return redirect(url_for("auth"))
        except BackendError as e:
            flash(f"Error updating access code: {e.message}", "danger")
            current_code = ""
        return render_template("admin.html", current_code=current_code)

    if app.config["BACKEND"] == "sql":
        @app.get("/uploads/<path:filename>")
        def uploads(filename: str):
            return send_from_directory(app.config["UPLOAD_DIR"], filename)

    return app


if __name__ == "__main__":
    create_app().run(host="127.0.0.1", port=5000, debug=True)
