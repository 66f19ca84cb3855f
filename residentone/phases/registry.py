"""
Phase Registry — the fixed design-production sequence for a room.

    DESIGN_CONCEPT → THREE_D → CLIENT_APPROVAL ─┬─▶ DRAWINGS
                                                └─▶ FFE

CLIENT_APPROVAL is the single branch point: its completion releases both
DRAWINGS and FFE in parallel. FFE is terminal.

Everything here is a pure lookup. Identifiers coming from storage or the
wire go through ``canonical_phase`` exactly once, which also folds the
legacy ``RENDERING`` identifier onto ``THREE_D``.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from residentone.core.exceptions import ValidationError


class PhaseKind(str, Enum):
    DESIGN_CONCEPT = "DESIGN_CONCEPT"
    THREE_D = "THREE_D"
    CLIENT_APPROVAL = "CLIENT_APPROVAL"
    DRAWINGS = "DRAWINGS"
    FFE = "FFE"


PHASE_SEQUENCE: tuple[PhaseKind, ...] = (
    PhaseKind.DESIGN_CONCEPT,
    PhaseKind.THREE_D,
    PhaseKind.CLIENT_APPROVAL,
    PhaseKind.DRAWINGS,
    PhaseKind.FFE,
)

# Phases whose completion fans out instead of following PHASE_SEQUENCE.
BRANCH_SUCCESSORS: dict[PhaseKind, tuple[PhaseKind, ...]] = {
    PhaseKind.CLIENT_APPROVAL: (PhaseKind.DRAWINGS, PhaseKind.FFE),
}

PHASE_ALIASES: dict[str, PhaseKind] = {
    "RENDERING": PhaseKind.THREE_D,
}

_DISPLAY_NAMES = {
    PhaseKind.DESIGN_CONCEPT: "Design Concept",
    PhaseKind.THREE_D: "3D Rendering",
    PhaseKind.CLIENT_APPROVAL: "Client Approval",
    PhaseKind.DRAWINGS: "Drawings",
    PhaseKind.FFE: "FFE",
}

_DESCRIPTIONS = {
    PhaseKind.DESIGN_CONCEPT: "Create mood boards, material selections, and design concepts",
    PhaseKind.THREE_D: "Generate photorealistic 3D visualizations and renderings",
    PhaseKind.CLIENT_APPROVAL: "Client review and approval process with presentation materials",
    PhaseKind.DRAWINGS: "Create detailed technical drawings and construction specifications",
    PhaseKind.FFE: "Furniture, fixtures, and equipment sourcing with detailed specifications",
}

# Advisory only: assignment is open to every team member.
_SUGGESTED_ROLES = {
    PhaseKind.DESIGN_CONCEPT: "designer",
    PhaseKind.THREE_D: "renderer",
    PhaseKind.CLIENT_APPROVAL: None,
    PhaseKind.DRAWINGS: "drafter",
    PhaseKind.FFE: "ffe",
}


class PhaseSequenceInfo(NamedTuple):
    phase: PhaseKind
    previous: PhaseKind | None
    next: PhaseKind | None
    is_first: bool
    is_last: bool
    order: int


def canonical_phase(identifier) -> PhaseKind:
    """Resolve any accepted phase identifier to its ``PhaseKind``.

    Accepts a ``PhaseKind``, a current identifier in any case
    (``"three_d"``), or a legacy alias (``"RENDERING"``).

    Raises:
        ValidationError: identifier is empty or unknown.
    """
    if isinstance(identifier, PhaseKind):
        return identifier
    key = str(identifier or "").strip().upper()
    if key in PHASE_ALIASES:
        return PHASE_ALIASES[key]
    try:
        return PhaseKind(key)
    except ValueError:
        raise ValidationError(
            f"Unknown phase '{identifier}'",
            details={"phase": identifier, "valid_phases": [p.value for p in PHASE_SEQUENCE]},
        ) from None


def next_of(phase) -> tuple[PhaseKind, ...]:
    """Phases released by completing ``phase``.

    One successor for ordinary phases, (DRAWINGS, FFE) for CLIENT_APPROVAL,
    and an empty tuple for the terminal phase.
    """
    kind = canonical_phase(phase)
    if kind in BRANCH_SUCCESSORS:
        return BRANCH_SUCCESSORS[kind]
    idx = PHASE_SEQUENCE.index(kind)
    if idx == len(PHASE_SEQUENCE) - 1:
        return ()
    return (PHASE_SEQUENCE[idx + 1],)


def prerequisites_of(phase) -> tuple[PhaseKind, ...]:
    """Phases that must complete before ``phase`` is ready.

    A phase released by a branch point depends on that branch point only:
    DRAWINGS and FFE both wait on CLIENT_APPROVAL, not on each other.
    """
    kind = canonical_phase(phase)
    branch_sources = tuple(p for p, targets in BRANCH_SUCCESSORS.items() if kind in targets)
    if branch_sources:
        return branch_sources
    return tuple(p for p in PHASE_SEQUENCE if kind in next_of(p))


def sequence_info(phase) -> PhaseSequenceInfo:
    """Position of ``phase`` in the linear sequence."""
    kind = canonical_phase(phase)
    idx = PHASE_SEQUENCE.index(kind)
    last = len(PHASE_SEQUENCE) - 1
    return PhaseSequenceInfo(
        phase=kind,
        previous=PHASE_SEQUENCE[idx - 1] if idx > 0 else None,
        next=PHASE_SEQUENCE[idx + 1] if idx < last else None,
        is_first=idx == 0,
        is_last=idx == last,
        order=idx + 1,
    )


def display_name(phase) -> str:
    return _DISPLAY_NAMES[canonical_phase(phase)]


def description(phase) -> str:
    return _DESCRIPTIONS[canonical_phase(phase)]


def suggested_role(phase) -> str | None:
    return _SUGGESTED_ROLES[canonical_phase(phase)]


def transition_summary(completed, next_phases, room_name: str, project_name: str) -> str:
    """One-line summary of a completion, for logs and in-app notifications."""
    summary = f"{display_name(completed)} completed for {room_name} in {project_name}."
    names = [display_name(p) for p in next_phases]
    if names:
        plural = "s" if len(names) > 1 else ""
        summary += f" Next phase{plural}: {', '.join(names)}."
    else:
        summary += " This was the final phase."
    return summary
