"""Tests for the pipeline transition table."""

import pytest

from career_pipeline.core.errors import TransitionError
from career_pipeline.core.models import PostingStatus
from career_pipeline.core.transitions import (
    STATUS_EDGES,
    TRANSITIONS,
    accepted_statuses,
    Outcome,
    Stage,
    is_status_change_allowed,
    status_for,
    successors,
    to_mermaid,
    transition_for,
)


class TestTransitionTable:
    """The state machine encoded as data."""

    def test_linear_chain(self):
        """Each stage's success outcome feeds the next stage's queue."""
        assert transition_for(Stage.SCOUT, Outcome.DISCOVERED).next_stage is Stage.NORMALIZE
        assert transition_for(Stage.NORMALIZE, Outcome.NORMALIZED).next_stage is Stage.FIT_SCORE
        assert transition_for(Stage.FIT_SCORE, Outcome.SHORTLISTED).next_stage is Stage.MATERIALS
        assert transition_for(Stage.MATERIALS, Outcome.DRAFTED).next_stage is Stage.COMPLIANCE

    def test_terminal_outcomes(self):
        assert transition_for(Stage.FIT_SCORE, Outcome.ARCHIVED).terminal
        assert transition_for(Stage.COMPLIANCE, Outcome.PASSED).terminal
        assert transition_for(Stage.COMPLIANCE, Outcome.FAILED).terminal

    def test_every_posting_stage_tolerates_missing_records(self):
        for stage in (Stage.NORMALIZE, Stage.FIT_SCORE, Stage.MATERIALS, Stage.COMPLIANCE):
            transition = transition_for(stage, Outcome.MISSING)
            assert transition.terminal
            assert transition.status is None

    def test_statuses_per_outcome(self):
        assert status_for(Stage.FIT_SCORE, Outcome.SHORTLISTED) is PostingStatus.SHORTLISTED
        assert status_for(Stage.FIT_SCORE, Outcome.ARCHIVED) is PostingStatus.ARCHIVED
        assert status_for(Stage.MATERIALS, Outcome.DRAFTED) is PostingStatus.DRAFTING
        assert status_for(Stage.COMPLIANCE, Outcome.PASSED) is PostingStatus.READY_FOR_REVIEW
        assert status_for(Stage.COMPLIANCE, Outcome.FAILED) is PostingStatus.DRAFTING

    def test_unknown_outcome_raises(self):
        with pytest.raises(TransitionError):
            transition_for(Stage.SCOUT, Outcome.ARCHIVED)

    def test_status_for_outcome_without_status_raises(self):
        with pytest.raises(TransitionError):
            status_for(Stage.NORMALIZE, Outcome.NORMALIZED)

    def test_queue_names(self):
        assert [stage.value for stage in Stage] == [
            "scout", "normalize", "fit-score", "materials", "compliance"
        ]

    def test_successors(self):
        assert successors(Stage.FIT_SCORE) == [Stage.MATERIALS]
        assert successors(Stage.COMPLIANCE) == []


class TestStatusEdges:
    """Status moves forward only, plus the compliance-failure back-edge."""

    def test_forward_edges_allowed(self):
        assert is_status_change_allowed(PostingStatus.DISCOVERED, PostingStatus.SHORTLISTED)
        assert is_status_change_allowed(PostingStatus.SHORTLISTED, PostingStatus.DRAFTING)
        assert is_status_change_allowed(PostingStatus.DRAFTING, PostingStatus.READY_FOR_REVIEW)

    def test_drafting_reentry_allowed(self):
        assert is_status_change_allowed(PostingStatus.DRAFTING, PostingStatus.DRAFTING)

    def test_backward_edges_rejected(self):
        assert not is_status_change_allowed(PostingStatus.ARCHIVED, PostingStatus.SHORTLISTED)
        assert not is_status_change_allowed(PostingStatus.READY_FOR_REVIEW, PostingStatus.DRAFTING)
        assert not is_status_change_allowed(PostingStatus.SHORTLISTED, PostingStatus.DISCOVERED)

    def test_accepted_statuses_for_each_write(self):
        assert accepted_statuses(PostingStatus.SHORTLISTED) == {
            PostingStatus.DISCOVERED, PostingStatus.SHORTLISTED
        }
        assert accepted_statuses(PostingStatus.ARCHIVED) == {
            PostingStatus.DISCOVERED, PostingStatus.ARCHIVED
        }
        assert accepted_statuses(PostingStatus.DRAFTING) == {
            PostingStatus.SHORTLISTED, PostingStatus.DRAFTING
        }
        assert accepted_statuses(PostingStatus.READY_FOR_REVIEW) == {
            PostingStatus.DRAFTING, PostingStatus.READY_FOR_REVIEW
        }

    def test_no_write_reopens_a_reviewed_posting(self):
        for status in PostingStatus:
            if status is not PostingStatus.READY_FOR_REVIEW:
                assert PostingStatus.READY_FOR_REVIEW not in accepted_statuses(status)

    def test_stale_outcomes_are_terminal_without_status(self):
        for stage in (Stage.FIT_SCORE, Stage.MATERIALS, Stage.COMPLIANCE):
            transition = transition_for(stage, Outcome.STALE)
            assert transition.terminal
            assert transition.status is None

    def test_table_statuses_are_reachable(self):
        """Every status the table persists is the target of some edge or the initial status."""
        targets = {new for _, new in STATUS_EDGES} | {PostingStatus.DISCOVERED}
        for transition in TRANSITIONS.values():
            if transition.status is not None:
                assert transition.status in targets


class TestMermaid:
    def test_renders_every_edge(self):
        diagram = to_mermaid()

        assert diagram.startswith("flowchart LR")
        assert "scheduler([scheduler]) --> scout" in diagram
        assert 'fit_score -- "shortlisted / Shortlisted" --> materials' in diagram
        assert 'compliance -- "failed / Drafting" --> done' in diagram
        assert len(diagram.splitlines()) == len(TRANSITIONS) + 2
