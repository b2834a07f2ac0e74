from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cafehoppr.client.base import BackendError
from cafehoppr.web.forms import (
    PAGE_BASIC_INFO,
    PAGE_DETAILS,
    DraftStore,
    validate_basic_info,
    validate_details,
    validate_review_info,
)

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    BASIC_INFO = "basic_info"
    DETAILS = "details"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILURE = "failure"


class FlowMode(str, Enum):
    add = "add"
    edit = "edit"
    review = "review"


@dataclass
class StepResult:
    state: FlowState
    errors: list[str] = field(default_factory=list)
    value: Any = None

    @property
    def ok(self) -> bool:
        return not self.errors


class SubmissionFlow:
    """Two-page wizard over a DraftStore.

    BASIC_INFO -> DETAILS -> SUBMITTING -> SUCCESS | FAILURE. Going back from
    DETAILS never loses data, and a failed submit leaves the draft on DETAILS.
    """

    def __init__(self, store: DraftStore, mode: FlowMode = FlowMode.add):
        self.store = store
        self.mode = mode

    @property
    def state(self) -> FlowState:
        if self.store.submitting:
            return FlowState.SUBMITTING
        if self.store.current_page == PAGE_DETAILS:
            return FlowState.DETAILS
        return FlowState.BASIC_INFO

    def basic_info_errors(self) -> list[str]:
        draft = self.store.get()
        if self.mode == FlowMode.review:
            return validate_review_info(draft)
        return validate_basic_info(draft, attachments=len(self.store.attachments))

    def next(self) -> StepResult:
        errors = self.basic_info_errors()
        if errors:
            return StepResult(FlowState.BASIC_INFO, errors)
        self.store.set_page(PAGE_DETAILS)
        return StepResult(FlowState.DETAILS)

    def back(self) -> StepResult:
        self.store.set_page(PAGE_BASIC_INFO)
        return StepResult(FlowState.BASIC_INFO)

    def submit(self, persist: Callable[[dict[str, Any]], Any]) -> StepResult:
        """Run ``persist(draft)`` once the details pass validation.

        On success the draft is reset and the persist result returned; on
        BackendError the draft stays intact on page 2.
        """
        if self.state == FlowState.SUBMITTING:
            return StepResult(FlowState.SUBMITTING, ["This form is already being submitted"])

        # Page 1 may have been bypassed by posting straight to submit.
        errors = self.basic_info_errors()
        if errors:
            self.store.set_page(PAGE_BASIC_INFO)
            return StepResult(FlowState.BASIC_INFO, errors)

        draft = self.store.get()
        errors = validate_details(draft)
        if errors:
            self.store.set_page(PAGE_DETAILS)
            return StepResult(FlowState.DETAILS, errors)

        self.store.set_page(PAGE_DETAILS)
        if not self.store.begin_submit():
            return StepResult(FlowState.SUBMITTING, ["This form is already being submitted"])
        try:
            value = persist(draft)
        except BackendError as e:
            logger.warning("Submit failed (%s): %s", self.mode.value, e.message)
            return StepResult(FlowState.FAILURE, [e.message])
        finally:
            # Cleared on every exit so an unexpected error never locks the draft.
            self.store.end_submit()

        self.store.reset()
        return StepResult(FlowState.SUCCESS, value=value)
