from __future__ import annotations

import json
import logging
from contextlib import ExitStack
from typing import Any, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from cafehoppr.client.base import (
    Attachment,
    AuthError,
    BackendError,
    CafeBackend,
    CafeQuery,
    error_for_status,
)
from cafehoppr.schemas.cafes import CafeCreate, CafeCreated, CafeListData, CafeResponse, CafeUpdate
from cafehoppr.schemas.common import ContributorList
from cafehoppr.schemas.locations import LocationListData, LocationResponse
from cafehoppr.schemas.reviews import ReviewCreate, ReviewListData, ReviewResponse, ReviewUpdate
from cafehoppr.schemas.tokens import TokenValidation

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ApiBackend(CafeBackend):
    """HTTP/JSON client for the Cafe Hoppr API.

    Unwraps the ``{"success", "data", "message"}`` envelope and raises
    BackendError for transport failures and non-2xx answers.
    """

    def __init__(self, base_url: str, *, timeout: int = 20, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, token: str | None) -> dict[str, str]:
        h = {"Accept": "application/json"}
        if token:
            h["Authorization"] = f"Bearer {token}"
        return h

    def request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: dict | None = None,
        json_body: Any = None,
        data: dict | None = None,
        files: list | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method=method.upper(),
                url=url,
                headers=self._headers(token),
                params=params,
                json=json_body,
                data=data,
                files=files,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method.upper(), path, e)
            raise BackendError(503, f"Backend unreachable: {e.__class__.__name__}") from e

        if resp.status_code == 204 or not resp.content:
            if resp.status_code >= 400:
                raise error_for_status(resp.status_code, f"HTTP {resp.status_code}")
            return None

        try:
            payload = resp.json()
        except ValueError:
            payload = resp.text

        if resp.status_code >= 400 or (isinstance(payload, dict) and payload.get("success") is False):
            msg = None
            if isinstance(payload, dict):
                msg = payload.get("message") or payload.get("detail")
            raise error_for_status(resp.status_code, msg or f"HTTP {resp.status_code}", payload)

        if isinstance(payload, dict) and "success" in payload:
            return payload.get("data")
        return payload

    @staticmethod
    def _parse(model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning("Unexpected %s payload from API: %s error(s)", model.__name__, e.error_count())
            raise BackendError(502, "Unexpected response from the API") from e

    def _get_or_none(self, path: str, **kwargs: Any) -> Any:
        try:
            return self.request("GET", path, **kwargs)
        except BackendError as e:
            if e.status_code == 404:
                return None
            raise

    def _write_with_photos(
        self, method: str, path: str, body: dict, *, token: str | None, photos: list[Attachment] | None, extra: dict | None = None
    ) -> Any:
        if not photos:
            return self.request(method, path, token=token, json_body=body)
        with ExitStack() as stack:
            files = [
                ("photos", (p.filename, stack.enter_context(p.open()), p.content_type))
                for p in photos
            ]
            form = {"payload": json.dumps(body)}
            form.update(extra or {})
            return self.request(method, path, token=token, data=form, files=files)

    # --- Cafes ---
    def list_cafes(self, query: CafeQuery | None = None) -> CafeListData:
        query = query or CafeQuery()
        params = {
            "q": query.q,
            "location_id": query.location_id,
            "sort": query.sort,
            "status": query.status,
            "page": query.page,
            "per_page": query.per_page,
            **query.extra,
        }
        data = self.request("GET", "/cafes", params={k: v for k, v in params.items() if v not in (None, "")})
        return self._parse(CafeListData, data)

    def get_cafe(self, cafe_id: str) -> CafeResponse | None:
        data = self._get_or_none(f"/cafes/{cafe_id}")
        return self._parse(CafeResponse, data) if data else None

    def create_cafe(
        self, payload: CafeCreate, *, token: str | None = None, photos: list[Attachment] | None = None
    ) -> CafeCreated:
        body = payload.model_dump(mode="json", exclude_none=True)
        data = self._write_with_photos("POST", "/cafes", body, token=token, photos=photos)
        return self._parse(CafeCreated, data)

    def update_cafe(
        self,
        cafe_id: str,
        payload: CafeUpdate,
        *,
        token: str | None = None,
        photos: list[Attachment] | None = None,
    ) -> None:
        body = payload.model_dump(mode="json", exclude_unset=True)
        self._write_with_photos(
            "PUT", f"/cafes/{cafe_id}", body, token=token, photos=photos, extra={"replace_photos": "true"}
        )

    def delete_cafe(self, cafe_id: str, *, token: str | None = None) -> None:
        self.request("DELETE", f"/cafes/{cafe_id}", token=token)

    # --- Reviews ---
    def list_reviews(self, cafe_id: str) -> list[ReviewResponse]:
        data = self.request("GET", f"/cafes/{cafe_id}/reviews") or {}
        return self._parse(ReviewListData, data).reviews

    def create_review(self, payload: ReviewCreate, *, token: str | None = None) -> ReviewResponse:
        data = self.request("POST", "/reviews", token=token, json_body=payload.model_dump(mode="json"))
        return self._parse(ReviewResponse, data)

    def update_review(self, review_id: str, payload: ReviewUpdate, *, token: str | None = None) -> None:
        self.request("PUT", f"/reviews/{review_id}", token=token, json_body=payload.model_dump(mode="json", exclude_unset=True))

    def list_contributors(self) -> list[str]:
        data = self.request("GET", "/contributors") or {}
        return self._parse(ContributorList, data).contributors

    # --- Locations ---
    def list_locations(self) -> list[LocationResponse]:
        data = self.request("GET", "/locations") or {}
        return self._parse(LocationListData, data).locations

    def create_location(self, name: str, *, token: str | None = None) -> LocationResponse:
        data = self.request("POST", "/locations", token=token, json_body={"name": name})
        return self._parse(LocationResponse, data)

    # --- Access ---
    def validate_token(self, token: str) -> TokenValidation | None:
        try:
            data = self.request("POST", "/tokens/validate", json_body={"token": token})
        except BackendError as e:
            if e.status_code in (404, 422):
                return None
            raise
        return self._parse(TokenValidation, data) if data else None

    def verify_access_code(self, code: str) -> str:
        data = self.request("POST", "/access-code/verify", json_body={"code": code}) or {}
        return data.get("access_token") or ""

    def login(self, email: str, password: str, hobby_answer: str | None = None) -> str:
        body = {"email": email, "password": password}
        if hobby_answer:
            body["hobby_answer"] = hobby_answer
        data = self.request("POST", "/auth/login", json_body=body) or {}
        token = data.get("access_token")
        if not token:
            raise AuthError(401, "No access token in login response")
        return token

    def get_access_code(self, *, token: str | None = None) -> str:
        data = self.request("GET", "/admin/access-code", token=token) or {}
        return data.get("code", "")

    def update_access_code(self, new_code: str, *, token: str | None = None) -> None:
        self.request("PUT", "/admin/access-code", token=token, json_body={"new_code": new_code})
