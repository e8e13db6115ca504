from datetime import date, datetime

import pytest

from synctodo.errors import ValidationError
from synctodo.filters import (
    FilterCriteria,
    apply_filters,
    collect_tags,
    due_label,
    due_labels,
    sort_tasks,
    summarize,
)

from fakes import make_task

TODAY = date(2024, 6, 1)


@pytest.fixture()
def snapshot():
    return [
        make_task("Buy milk", order=0, tags=["shopping"]),
        make_task("Write report", order=1, tags=["work"], completed=True),
        make_task("Buy stamps", order=2, tags=["shopping", "errands"], completed=True),
        make_task("Call mom", order=3),
    ]


def titles(tasks):
    return [t.title for t in tasks]


class TestApplyFilters:
    def test_status(self, snapshot):
        assert titles(apply_filters(snapshot, FilterCriteria(status="active"))) == ["Buy milk", "Call mom"]
        assert titles(apply_filters(snapshot, FilterCriteria(status="completed"))) == ["Write report", "Buy stamps"]
        assert apply_filters(snapshot, FilterCriteria()) == snapshot

    def test_search_is_trimmed_and_case_insensitive(self, snapshot):
        view = apply_filters(snapshot, FilterCriteria(search="  BUY "))
        assert titles(view) == ["Buy milk", "Buy stamps"]

    def test_blank_search_passes_everything(self, snapshot):
        assert apply_filters(snapshot, FilterCriteria(search="   ")) == snapshot

    def test_tag_is_exact(self, snapshot):
        assert titles(apply_filters(snapshot, FilterCriteria(tag="shopping"))) == ["Buy milk", "Buy stamps"]
        assert apply_filters(snapshot, FilterCriteria(tag="shop")) == []

    def test_predicates_commute(self, snapshot):
        active = FilterCriteria(status="active")
        shopping = FilterCriteria(tag="shopping")
        combined = FilterCriteria(status="active", tag="shopping")
        assert (
            apply_filters(apply_filters(snapshot, active), shopping)
            == apply_filters(apply_filters(snapshot, shopping), active)
            == apply_filters(snapshot, combined)
        )

    def test_snapshot_untouched(self, snapshot):
        before = list(snapshot)
        apply_filters(snapshot, FilterCriteria(status="completed", search="buy"))
        assert snapshot == before

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError) as ei:
            FilterCriteria(status="archived")
        assert ei.value.field == "status"


class TestSortAndSummary:
    def test_order_then_newest_first(self):
        older = make_task("older", order=1, created_at=datetime(2024, 1, 1))
        newer = make_task("newer", order=1, created_at=datetime(2024, 1, 2))
        first = make_task("first", order=0, created_at=datetime(2023, 1, 1))
        assert titles(sort_tasks([older, first, newer])) == ["first", "newer", "older"]

    def test_collect_tags_sorted_unique(self, snapshot):
        assert collect_tags(snapshot) == ["errands", "shopping", "work"]

    def test_summarize(self, snapshot):
        s = summarize(snapshot)
        assert (s.total, s.active, s.completed) == (4, 2, 2)


class TestDueLabel:
    def test_labels(self):
        assert due_label(make_task("x", due_at=date(2024, 5, 31)), TODAY) == "overdue"
        assert due_label(make_task("x", due_at=TODAY), TODAY) == "today"
        assert due_label(make_task("x", due_at=date(2024, 6, 2)), TODAY) == "tomorrow"
        assert due_label(make_task("x", due_at=date(2024, 6, 9)), TODAY) is None
        assert due_label(make_task("x"), TODAY) is None

    def test_completed_is_never_overdue(self):
        assert due_label(make_task("x", due_at=date(2024, 5, 1), completed=True), TODAY) is None

    def test_due_labels_skip_unlabeled(self):
        late = make_task("late", due_at=date(2024, 5, 20))
        soon = make_task("soon", due_at=date(2024, 6, 2))
        plain = make_task("plain")
        assert due_labels([late, soon, plain], TODAY) == {late.id: "overdue", soon.id: "tomorrow"}
