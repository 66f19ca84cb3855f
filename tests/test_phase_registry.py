"""
Phase Registry lookups.

    DESIGN_CONCEPT → THREE_D → CLIENT_APPROVAL ─┬─▶ DRAWINGS
                                                └─▶ FFE
"""

import pytest

from residentone.core.exceptions import ValidationError
from residentone.phases.registry import (
    PHASE_SEQUENCE,
    PhaseKind,
    canonical_phase,
    display_name,
    next_of,
    prerequisites_of,
    sequence_info,
    suggested_role,
    transition_summary,
)


class TestNextOf:

    @pytest.mark.parametrize("phase,expected", [
        (PhaseKind.DESIGN_CONCEPT, PhaseKind.THREE_D),
        (PhaseKind.THREE_D, PhaseKind.CLIENT_APPROVAL),
        (PhaseKind.DRAWINGS, PhaseKind.FFE),
    ])
    def test_linear_phase_has_exactly_one_successor(self, phase, expected):
        assert next_of(phase) == (expected,)

    def test_client_approval_releases_drawings_and_ffe(self):
        assert set(next_of(PhaseKind.CLIENT_APPROVAL)) == {PhaseKind.DRAWINGS, PhaseKind.FFE}
        assert len(next_of(PhaseKind.CLIENT_APPROVAL)) == 2

    def test_terminal_phase_has_no_successor(self):
        assert next_of(PhaseKind.FFE) == ()

    def test_legacy_rendering_resolves_like_three_d(self):
        assert next_of("RENDERING") == next_of("THREE_D") == (PhaseKind.CLIENT_APPROVAL,)

    def test_accepts_lowercase_identifiers(self):
        assert next_of("design_concept") == (PhaseKind.THREE_D,)


class TestCanonicalPhase:

    def test_alias_folds_onto_three_d(self):
        assert canonical_phase("RENDERING") is PhaseKind.THREE_D
        assert canonical_phase("rendering") is PhaseKind.THREE_D

    def test_kind_passes_through(self):
        assert canonical_phase(PhaseKind.FFE) is PhaseKind.FFE

    @pytest.mark.parametrize("bad", ["SKETCH", "", None])
    def test_unknown_identifier_raises(self, bad):
        with pytest.raises(ValidationError) as exc:
            canonical_phase(bad)
        assert "valid_phases" in exc.value.details


class TestSequenceHelpers:

    def test_prerequisites_of_linear_phases(self):
        assert prerequisites_of(PhaseKind.DESIGN_CONCEPT) == ()
        assert prerequisites_of(PhaseKind.THREE_D) == (PhaseKind.DESIGN_CONCEPT,)
        assert prerequisites_of("RENDERING") == (PhaseKind.DESIGN_CONCEPT,)
        assert prerequisites_of(PhaseKind.CLIENT_APPROVAL) == (PhaseKind.THREE_D,)

    def test_branch_phases_depend_only_on_client_approval(self):
        assert prerequisites_of(PhaseKind.DRAWINGS) == (PhaseKind.CLIENT_APPROVAL,)
        assert prerequisites_of(PhaseKind.FFE) == (PhaseKind.CLIENT_APPROVAL,)
        # FFE follows DRAWINGS in next_of but does not wait on it
        assert next_of(PhaseKind.DRAWINGS) == (PhaseKind.FFE,)
        assert PhaseKind.DRAWINGS not in prerequisites_of(PhaseKind.FFE)

    def test_every_prerequisite_releases_its_phase(self):
        for phase in PHASE_SEQUENCE:
            for prereq in prerequisites_of(phase):
                assert phase in next_of(prereq)

    def test_sequence_info_positions(self):
        first = sequence_info(PhaseKind.DESIGN_CONCEPT)
        assert first.is_first and not first.is_last
        assert first.previous is None and first.order == 1

        last = sequence_info("FFE")
        assert last.is_last and last.next is None
        assert last.previous is PhaseKind.DRAWINGS and last.order == 5

    def test_display_names_and_roles(self):
        assert display_name("RENDERING") == "3D Rendering"
        assert suggested_role(PhaseKind.CLIENT_APPROVAL) is None
        assert suggested_role(PhaseKind.DRAWINGS) == "drafter"

    def test_transition_summary_lists_both_branches(self):
        text = transition_summary(
            PhaseKind.CLIENT_APPROVAL, next_of(PhaseKind.CLIENT_APPROVAL),
            "Kitchen", "Smith Residence",
        )
        assert text == (
            "Client Approval completed for Kitchen in Smith Residence. "
            "Next phases: Drawings, FFE."
        )

    def test_transition_summary_final_phase(self):
        text = transition_summary(PhaseKind.FFE, (), "Kitchen", "Smith Residence")
        assert text.endswith("This was the final phase.")
