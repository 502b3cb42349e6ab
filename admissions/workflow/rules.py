"""Transition rules for the ministerial admission review pipeline.

Everything in this module is pure: it inspects an application snapshot and
returns the field patch a transition must write, without touching the
database, the SMS gateway or the request context.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from .errors import InvalidRoleForState, MissingRequiredField


class Status(StrEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    LOCAL_SCREENING = "local_screening"
    ASSOCIATION_APPROVED = "association_approved"
    VP_REVIEW = "vp_review"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    APPROVED = "approved"
    REJECTED = "rejected"


class Role(StrEnum):
    LOCAL_OFFICER = "local_officer"
    ASSOCIATION_HEAD = "association_head"
    VP_OFFICE = "vp_office"
    SUPER_ADMIN = "super_admin"


class Action(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"
    FORCE = "force"


class Stage(StrEnum):
    LOCAL = "local"
    ASSOCIATION = "association"
    VP = "vp"


# Forward order of the pipeline. ``rejected`` sits outside it.
PIPELINE = (
    Status.DRAFT,
    Status.SUBMITTED,
    Status.LOCAL_SCREENING,
    Status.ASSOCIATION_APPROVED,
    Status.VP_REVIEW,
    Status.INTERVIEW_SCHEDULED,
    Status.APPROVED,
)

TERMINAL_STATUSES = frozenset({Status.APPROVED, Status.REJECTED})


@dataclass(frozen=True)
class Rule:
    stage: Stage
    next_status: Status
    # False only for the final vp sign-off, which writes no stage fields.
    records_review: bool = True


# (role, current status, action) -> rule
TRANSITIONS = {
    (Role.LOCAL_OFFICER, Status.SUBMITTED, Action.APPROVE): Rule(Stage.LOCAL, Status.LOCAL_SCREENING),
    (Role.LOCAL_OFFICER, Status.SUBMITTED, Action.REJECT): Rule(Stage.LOCAL, Status.REJECTED),
    (Role.ASSOCIATION_HEAD, Status.LOCAL_SCREENING, Action.APPROVE): Rule(
        Stage.ASSOCIATION, Status.ASSOCIATION_APPROVED
    ),
    (Role.ASSOCIATION_HEAD, Status.LOCAL_SCREENING, Action.REJECT): Rule(Stage.ASSOCIATION, Status.REJECTED),
    (Role.VP_OFFICE, Status.ASSOCIATION_APPROVED, Action.APPROVE): Rule(Stage.VP, Status.VP_REVIEW),
    (Role.VP_OFFICE, Status.ASSOCIATION_APPROVED, Action.REJECT): Rule(Stage.VP, Status.REJECTED),
    (Role.VP_OFFICE, Status.VP_REVIEW, Action.APPROVE): Rule(Stage.VP, Status.APPROVED, records_review=False),
    (Role.VP_OFFICE, Status.VP_REVIEW, Action.REJECT): Rule(Stage.VP, Status.REJECTED, records_review=False),
}


@dataclass(frozen=True)
class ReviewPayload:
    """Data a reviewer may attach to an approve or reject decision."""

    notes: str | None = None
    reason: str | None = None
    sector: str | None = None


@dataclass(frozen=True)
class ForcePayload:
    """Correction issued by a super admin to move an application forward."""

    target_status: str
    notes: str | None = None
    reason: str | None = None
    interview_date: str | None = None
    interview_location: str | None = None


@dataclass(frozen=True)
class TransitionPatch:
    expected_status: Status
    fields: dict = field(default_factory=dict)

    @property
    def new_status(self):
        return Status(self.fields["status"])


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _coerce(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidRoleForState(f"Unknown {enum_cls.__name__.lower()} '{value}'.") from None


def stage_fields(stage):
    """Return the (reviewer, timestamp, notes) column names for a stage."""
    stage = Stage(stage)
    return (f"{stage}_reviewed_by", f"{stage}_reviewed_at", f"{stage}_notes")


def is_terminal(status):
    return Status(status) in TERMINAL_STATUSES


def _rule_for(role, status, action):
    if role is Role.SUPER_ADMIN:
        # Super admins act on behalf of whichever stage owns the current status.
        for (_, rule_status, rule_action), rule in TRANSITIONS.items():
            if rule_status is status and rule_action is action:
                return rule
        return None
    return TRANSITIONS.get((role, status, action))


def allowed_actions(status, role):
    """Actions ``role`` may take on an application currently in ``status``."""
    status = Status(status)
    role = Role(role)
    if status in TERMINAL_STATUSES:
        return []
    actions = [action for action in (Action.APPROVE, Action.REJECT) if _rule_for(role, status, action)]
    if role is Role.SUPER_ADMIN and status is not Status.DRAFT:
        actions.append(Action.FORCE)
    return actions


def evaluate_transition(application, actor_role, action, payload=None, actor_id=None, now=None):
    """Decide whether ``actor_role`` may apply ``action`` to ``application``.

    ``application`` only needs ``status`` and ``sector`` attributes. Returns a
    :class:`TransitionPatch` holding the status the application must still be
    in when the patch is written and the fields to write. Raises
    :class:`InvalidRoleForState` or :class:`MissingRequiredField`.
    """
    role = _coerce(Role, actor_role)
    action = _coerce(Action, action)
    current = Status(application.status)
    now = now or datetime.now(UTC)

    if current in TERMINAL_STATUSES:
        raise InvalidRoleForState(
            f"Application is {current} and can no longer change.", status=str(current), role=str(role)
        )

    if action is Action.FORCE:
        return _evaluate_force(current, role, payload)

    payload = payload or ReviewPayload()
    if not isinstance(payload, ReviewPayload):
        raise TypeError("approve and reject decisions take a ReviewPayload")

    rule = _rule_for(role, current, action)
    if rule is None:
        raise InvalidRoleForState(
            f"A {role} cannot {action} an application that is {current}.",
            status=str(current),
            role=str(role),
        )

    reviewer_col, reviewed_at_col, notes_col = stage_fields(rule.stage)
    fields = {"status": str(rule.next_status)}

    if action is Action.REJECT:
        reason = _clean(payload.reason)
        if reason is None:
            raise MissingRequiredField("reason", "A rejection reason is required.")
        fields["rejection_reason"] = reason
        if rule.records_review:
            fields[reviewer_col] = actor_id
            fields[reviewed_at_col] = now
            notes = _clean(payload.notes)
            if notes:
                fields[notes_col] = notes
        return TransitionPatch(current, fields)

    if rule.records_review:
        fields[reviewer_col] = actor_id
        fields[reviewed_at_col] = now
        fields[notes_col] = _clean(payload.notes)

    if rule.stage is Stage.VP and rule.next_status is Status.VP_REVIEW:
        sector = _clean(payload.sector) or _clean(getattr(application, "sector", None))
        if sector is None:
            raise MissingRequiredField("sector", "A sector must be assigned before vp approval.")
        fields["sector"] = sector

    return TransitionPatch(current, fields)


def _evaluate_force(current, role, payload):
    if role is not Role.SUPER_ADMIN:
        raise InvalidRoleForState(f"Only a super admin may force a transition, not a {role}.", role=str(role))
    if current is Status.DRAFT:
        raise InvalidRoleForState("A draft must be submitted by the applicant before it can be moved.")
    if not isinstance(payload, ForcePayload):
        raise MissingRequiredField("target_status", "A forced transition needs a target status.")

    target = _coerce(Status, payload.target_status)
    if target is current:
        raise InvalidRoleForState(f"Application is already {current}.", status=str(current))
    if target is not Status.REJECTED and PIPELINE.index(target) < PIPELINE.index(current):
        raise InvalidRoleForState(
            f"Cannot move an application back from {current} to {target}.", status=str(current)
        )

    fields = {"status": str(target)}
    notes = _clean(payload.notes)
    if notes:
        fields["admin_notes"] = notes

    if target is Status.REJECTED:
        reason = _clean(payload.reason)
        if reason is None:
            raise MissingRequiredField("reason", "A rejection reason is required.")
        fields["rejection_reason"] = reason
    elif target is Status.INTERVIEW_SCHEDULED:
        interview_date = _clean(payload.interview_date)
        interview_location = _clean(payload.interview_location)
        if interview_date is None:
            raise MissingRequiredField("interview_date")
        if interview_location is None:
            raise MissingRequiredField("interview_location")
        fields["interview_date"] = interview_date
        fields["interview_location"] = interview_location

    return TransitionPatch(current, fields)

