"""Stateful response session wrapping the evaluation engine.

A session holds one respondent's answers against one template. Every answer
change recomputes the visibility snapshot, applies the values proposed by
fired ``setValue`` rules as a single batch, recomputes once more and stops
there: chained ``setValue`` rules resolve one link per answer change. The
session then re-homes the current section if it became hidden and updates the
completion percentage.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from formlogic.answers import is_empty
from formlogic.completion import completion, section_complete
from formlogic.errors import MissingField, NavigationError, PersistenceError, ValidationError
from formlogic.navigation import END, NEXT, NavigationResult, initial_section, next_section, resolve_current
from formlogic.template_model import Template
from formlogic.visibility import VisibilitySnapshot, compute_snapshot

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"


class ResponsePersistence(Protocol):
    """Collaborator storing drafts and submissions."""

    def persist_response(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class SessionEvent:
    """Change notification sent to subscribed collaborators."""

    kind: str
    session_id: str
    payload: Dict[str, Any] = field(default_factory=dict)

    ANSWER_CHANGED = "answer_changed"
    SECTION_CHANGED = "section_changed"
    SAVED = "saved"
    SUBMITTED = "submitted"


SessionListener = Callable[[SessionEvent], None]


@dataclass(frozen=True)
class MutationResult:
    """Outcome of :meth:`ResponseSession.set_answer`."""

    accepted: bool
    field_id: str
    applied_values: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None

    SUBMITTED = "submitted"
    UNKNOWN_FIELD = "unknown_field"
    NOT_ANSWERABLE = "not_answerable"


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of :meth:`ResponseSession.submit`."""

    ok: bool
    ack: Any = None
    validation: Optional[ValidationError] = None
    reason: Optional[str] = None

    ALREADY_SUBMITTED = "already_submitted"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ResponseSession:
    """One respondent's in-progress (``draft``) or final (``submitted``) response."""

    def __init__(
        self,
        template: Template,
        *,
        answers: Optional[Mapping[str, Any]] = None,
        current_section_id: Optional[str] = None,
        session_id: Optional[str] = None,
        persistence: Optional[ResponsePersistence] = None,
        status: SessionStatus = SessionStatus.DRAFT,
        submitter_info: Optional[Dict[str, Any]] = None,
        public: bool = False,
        revision: int = 0,
        updated_at: Optional[str] = None,
        submitted_at: Optional[str] = None,
        clock: Callable[[], str] = _utc_now,
    ) -> None:
        self.template = template
        self.session_id = session_id or uuid.uuid4().hex
        self.persistence = persistence
        self.status = SessionStatus(status)
        self.submitter_info = dict(submitter_info) if submitter_info else None
        self.public = public
        self.revision = revision
        self.submitted_at = submitted_at
        self.dirty = False
        self.no_content = False
        self.diagnostics: Counter = Counter()

        self._clock = clock
        self.updated_at = updated_at or clock()
        self._listeners: List[SessionListener] = []
        self._reported_references: set = set()

        self.answers: Dict[str, Any] = {
            key: value for key, value in (answers or {}).items() if not is_empty(value)
        }
        self.snapshot: VisibilitySnapshot = VisibilitySnapshot()
        self.completion_percentage = 0
        self._recompute(apply_pending=not self.submitted)

        self.current_section_id: Optional[str] = None
        if current_section_id is not None:
            landing = resolve_current(self.snapshot, template, current_section_id)
        else:
            landing = initial_section(self.snapshot, template)
        self._land(landing)

    @classmethod
    def resume(
        cls,
        template: Template,
        payload: Mapping[str, Any],
        **kwargs: Any,
    ) -> "ResponseSession":
        """Rebuild a session from a persisted draft or submission payload."""

        answers = payload.get("responses", payload.get("answers"))
        status = payload.get("status") or SessionStatus.DRAFT.value
        submitter_info = payload.get("submitterInfo")
        revision = payload.get("revision")
        return cls(
            template,
            answers=answers if isinstance(answers, Mapping) else {},
            current_section_id=payload.get("currentSection") or None,
            session_id=payload.get("id") or None,
            # Anything past draft (submitted, reviewed, approved ...) is terminal.
            status=SessionStatus.DRAFT if status == SessionStatus.DRAFT.value else SessionStatus.SUBMITTED,
            submitter_info=submitter_info if isinstance(submitter_info, Mapping) else None,
            public=bool(payload.get("isPublicSubmission")),
            revision=revision if isinstance(revision, int) else 0,
            updated_at=payload.get("updatedAt") or None,
            submitted_at=payload.get("submittedAt") or None,
            **kwargs,
        )

    @property
    def submitted(self) -> bool:
        return self.status is SessionStatus.SUBMITTED

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener`` for change events and return an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_answer(self, field_id: str, value: Any) -> MutationResult:
        """Record an answer and recompute visibility, navigation and completion."""

        if self.submitted:
            return MutationResult(False, field_id, reason=MutationResult.SUBMITTED)
        target = self.template.fields_by_id.get(field_id)
        if target is None:
            logger.warning("Rejecting answer for unknown field %s", field_id)
            return MutationResult(False, field_id, reason=MutationResult.UNKNOWN_FIELD)
        if not target.answerable:
            return MutationResult(False, field_id, reason=MutationResult.NOT_ANSWERABLE)

        if is_empty(value):
            self.answers.pop(field_id, None)
        else:
            self.answers[field_id] = value
        applied = self._recompute(apply_pending=True)

        previous_section = self.current_section_id
        self._land(resolve_current(self.snapshot, self.template, self.current_section_id))
        if self.template.section_of_field.get(field_id) == self.current_section_id:
            self._auto_advance()

        self.dirty = True
        self._touch()
        self._notify(
            SessionEvent.ANSWER_CHANGED,
            {"fieldId": field_id, "value": value, "appliedValues": dict(applied)},
        )
        if self.current_section_id != previous_section:
            self._notify(SessionEvent.SECTION_CHANGED, {"sectionId": self.current_section_id})
        return MutationResult(True, field_id, applied_values=applied)

    def navigate(self, direction: str = NEXT) -> NavigationResult:
        """Move to the next/previous section or jump to a section id."""

        if self.submitted:
            return NavigationResult(
                self.current_section_id or END,
                error=NavigationError(NavigationError.SUBMITTED),
            )

        result = next_section(self.snapshot, self.template, self.current_section_id, direction)
        if result.error is not None:
            logger.info("Navigation %r from %s refused: %s", direction, self.current_section_id, result.error.reason)
            return result

        self.no_content = result.no_content
        if not result.at_end and result.section_id != self.current_section_id:
            self.current_section_id = result.section_id
            self.dirty = True
            self._touch()
            self._notify(SessionEvent.SECTION_CHANGED, {"sectionId": result.section_id})
        return result

    def validate(self) -> Optional[ValidationError]:
        """Return every visible, required field that is still empty."""

        missing = [
            MissingField(item.id, item.label, section.id)
            for section, item in self.template.iter_fields()
            if self.snapshot.is_field_visible(item.id)
            and self.snapshot.is_field_required(item.id)
            and is_empty(self.answers.get(item.id))
        ]
        if not missing:
            return None
        return ValidationError(tuple(missing))

    def save(self) -> Any:
        """Persist the current answers as a draft.

        Errors raised by the persistence collaborator propagate unchanged and
        leave the session untouched (still dirty).
        """

        if self.submitted:
            logger.info("Session %s is submitted, nothing to save", self.session_id)
            return None
        ack = self._persist(self.to_payload(SessionStatus.DRAFT))
        self.dirty = False
        self._notify(SessionEvent.SAVED, {"revision": self.revision})
        return ack

    def submit(self) -> SubmitResult:
        """Validate and persist the response as final."""

        if self.submitted:
            return SubmitResult(False, reason=SubmitResult.ALREADY_SUBMITTED)

        problems = self.validate()
        if problems is not None:
            return SubmitResult(False, validation=problems)

        submitted_at = self._clock()
        ack = self._persist(self.to_payload(SessionStatus.SUBMITTED, submitted_at=submitted_at))
        self.status = SessionStatus.SUBMITTED
        self.submitted_at = submitted_at
        self.dirty = False
        self._notify(SessionEvent.SUBMITTED, {"submittedAt": submitted_at})
        return SubmitResult(True, ack=ack)

    def visible_answers(self) -> Dict[str, Any]:
        """Answers of currently visible fields only."""

        return {
            key: value
            for key, value in self.answers.items()
            if self.snapshot.is_field_visible(key)
        }

    def to_payload(self, status: Optional[SessionStatus] = None, *, submitted_at: Optional[str] = None) -> Dict[str, Any]:
        """Return the JSON-serialisable state handed to persistence."""

        status = SessionStatus(status or self.status)
        responses = self.visible_answers() if status is SessionStatus.SUBMITTED else dict(self.answers)
        payload: Dict[str, Any] = {
            "id": self.session_id,
            "templateId": self.template.id,
            "templateVersion": self.template.version,
            "status": status.value,
            "responses": responses,
            "currentSection": self.current_section_id,
            "completionPercentage": self.completion_percentage,
            "updatedAt": self.updated_at,
            "revision": self.revision,
            "isPublicSubmission": self.public,
        }
        submitted_at = submitted_at or self.submitted_at
        if status is SessionStatus.SUBMITTED and submitted_at:
            payload["submittedAt"] = submitted_at
        if self.submitter_info:
            payload["submitterInfo"] = dict(self.submitter_info)
        return payload

    def _persist(self, payload: Dict[str, Any]) -> Any:
        if self.persistence is None:
            raise PersistenceError("No persistence collaborator configured for this session.")
        return self.persistence.persist_response(payload)

    def _recompute(self, *, apply_pending: bool) -> Dict[str, Any]:
        """Recompute the snapshot, applying proposed values at most once."""

        snapshot = compute_snapshot(self.template, self.answers)
        applied: Dict[str, Any] = {}
        if apply_pending:
            applied = {
                key: value
                for key, value in snapshot.pending_value_sets.items()
                if self._would_change(key, value)
            }
            if applied:
                for key, value in applied.items():
                    if is_empty(value):
                        self.answers.pop(key, None)
                    else:
                        self.answers[key] = value
                snapshot = compute_snapshot(self.template, self.answers)
                leftover = sorted(
                    key
                    for key, value in snapshot.pending_value_sets.items()
                    if self._would_change(key, value)
                )
                if leftover:
                    logger.info("setValue chain stopped after one pass; still pending: %s", leftover)

        self.snapshot = snapshot
        self._record_invalid_references(snapshot)
        self.completion_percentage = completion(snapshot, self.template, self.answers)
        return applied

    def _would_change(self, field_id: str, value: Any) -> bool:
        if is_empty(value):
            return field_id in self.answers
        return self.answers.get(field_id) != value

    def _record_invalid_references(self, snapshot: VisibilitySnapshot) -> None:
        for reference in snapshot.invalid_references:
            self.diagnostics[reference] += 1
            if reference not in self._reported_references:
                self._reported_references.add(reference)
                logger.warning(
                    "Rule %s on %s references unknown field %s; the condition is treated as false",
                    reference.rule_id,
                    reference.owner_id,
                    reference.field_id,
                )

    def _land(self, result: NavigationResult) -> None:
        self.no_content = result.no_content
        if not result.at_end:
            self.current_section_id = result.section_id

    def _auto_advance(self) -> None:
        if not self.template.navigation.auto_advance or self.current_section_id is None:
            return
        section = self.template.sections_by_id.get(self.current_section_id)
        if section is None or not section_complete(self.snapshot, section, self.answers):
            return
        result = next_section(self.snapshot, self.template, self.current_section_id, NEXT)
        if result.ok and not result.at_end:
            self.current_section_id = result.section_id

    def _touch(self) -> None:
        self.revision += 1
        self.updated_at = self._clock()

    def _notify(self, kind: str, payload: Dict[str, Any]) -> None:
        if not self._listeners:
            return
        event = SessionEvent(kind, self.session_id, payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Session listener failed while handling %s", kind)


__all__ = [
    "MutationResult",
    "ResponsePersistence",
    "ResponseSession",
    "SessionEvent",
    "SessionListener",
    "SessionStatus",
    "SubmitResult",
]
