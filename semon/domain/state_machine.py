from __future__ import annotations

from enum import StrEnum


class AssignmentStatus(StrEnum):
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


ASSIGNMENT_ALLOWED_TRANSITIONS: dict[AssignmentStatus, set[AssignmentStatus]] = {
    AssignmentStatus.ACTIVE: {AssignmentStatus.ENDED},
    AssignmentStatus.ENDED: set(),
}


def can_transition_assignment(source: AssignmentStatus, target: AssignmentStatus) -> bool:
    return target in ASSIGNMENT_ALLOWED_TRANSITIONS.get(source, set())


class VisionStatus(StrEnum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"


VISION_ALLOWED_TRANSITIONS: dict[VisionStatus, set[VisionStatus]] = {
    VisionStatus.DRAFT: {VisionStatus.APPROVED},
    VisionStatus.APPROVED: set(),
}


def can_transition_vision(source: VisionStatus, target: VisionStatus) -> bool:
    return target in VISION_ALLOWED_TRANSITIONS.get(source, set())


class OkrStatus(StrEnum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REVIEWED = "REVIEWED"


OKR_ALLOWED_TRANSITIONS: dict[OkrStatus, set[OkrStatus]] = {
    OkrStatus.DRAFT: {OkrStatus.SUBMITTED},
    OkrStatus.SUBMITTED: {OkrStatus.APPROVED, OkrStatus.REVIEWED},
    OkrStatus.APPROVED: set(),
    OkrStatus.REVIEWED: set(),
}


def can_transition_okr(source: OkrStatus, target: OkrStatus) -> bool:
    return target in OKR_ALLOWED_TRANSITIONS.get(source, set())
