"""
Tests for the order state machine graph (production_kernel.domain.transitions).

Pure tests, no database.  The property tests enumerate every (current,
requested) pair and arbitrary replay paths.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from production_kernel.domain.transitions import (
    INITIAL_STATUS,
    LEGAL_TRANSITIONS,
    is_legal,
    is_legal_path,
    legal_successors,
    validate_transition,
)
from production_kernel.domain.values import OrderStatus, parse_status
from production_kernel.exceptions import InvalidTransitionError

LEGAL_EDGES = {
    (OrderStatus.QUEUED, OrderStatus.IN_PROGRESS),
    (OrderStatus.IN_PROGRESS, OrderStatus.FINISHED),
}

statuses = st.sampled_from(list(OrderStatus))


class TestTransitionGraph:

    def test_graph_covers_every_status(self):
        assert set(LEGAL_TRANSITIONS) == set(OrderStatus)

    def test_orders_start_queued(self):
        assert INITIAL_STATUS == OrderStatus.QUEUED
        assert is_legal(None, OrderStatus.QUEUED)
        assert not is_legal(None, OrderStatus.IN_PROGRESS)

    def test_finished_is_terminal(self):
        assert legal_successors(OrderStatus.FINISHED) == ()

    def test_graph_is_read_only(self):
        with pytest.raises(TypeError):
            LEGAL_TRANSITIONS[OrderStatus.FINISHED] = (OrderStatus.QUEUED,)

    @given(current=statuses, requested=statuses)
    def test_only_forward_single_steps_are_legal(self, current, requested):
        assert is_legal(current, requested) == ((current, requested) in LEGAL_EDGES)

    @given(current=statuses, requested=statuses)
    def test_validate_agrees_with_is_legal(self, current, requested):
        if (current, requested) in LEGAL_EDGES:
            validate_transition("P1001", current, requested)
        else:
            with pytest.raises(InvalidTransitionError) as exc_info:
                validate_transition("P1001", current, requested)
            assert exc_info.value.current_status == current.value
            assert exc_info.value.requested_status == requested.value


class TestInvalidTransitionError:

    def test_skip_reports_allowed_successors(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition("P1001", OrderStatus.QUEUED, OrderStatus.FINISHED)

        exc = exc_info.value
        assert exc.order_id == "P1001"
        assert exc.allowed == ("in_progress",)
        assert exc.code == "INVALID_TRANSITION"

    def test_self_loop_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            validate_transition("P1001", OrderStatus.IN_PROGRESS, OrderStatus.IN_PROGRESS)

    def test_nothing_leaves_finished(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition("P1001", OrderStatus.FINISHED, OrderStatus.QUEUED)
        assert exc_info.value.allowed == ()


class TestReplayPaths:

    def test_full_lifecycle_is_legal(self):
        assert is_legal_path([
            (None, OrderStatus.QUEUED),
            (OrderStatus.QUEUED, OrderStatus.IN_PROGRESS),
            (OrderStatus.IN_PROGRESS, OrderStatus.FINISHED),
        ])

    def test_path_must_start_with_creation(self):
        assert not is_legal_path([(OrderStatus.QUEUED, OrderStatus.IN_PROGRESS)])

    def test_path_must_be_contiguous(self):
        assert not is_legal_path([
            (None, OrderStatus.QUEUED),
            (OrderStatus.IN_PROGRESS, OrderStatus.FINISHED),
        ])

    @given(st.lists(st.tuples(st.none() | statuses, statuses), max_size=6))
    def test_legal_paths_never_move_backwards(self, steps):
        order = [OrderStatus.QUEUED, OrderStatus.IN_PROGRESS, OrderStatus.FINISHED]
        if is_legal_path(steps):
            reached = [new for _, new in steps]
            assert reached == order[: len(reached)]


class TestParseStatus:

    def test_accepts_values_and_members(self):
        assert parse_status("in_progress") is OrderStatus.IN_PROGRESS
        assert parse_status(OrderStatus.FINISHED) is OrderStatus.FINISHED

    def test_unknown_status_is_value_error(self):
        with pytest.raises(ValueError, match="Unknown order status"):
            parse_status("shipped")
