import pytest

from learnpath.crud import user_progress_crud
from learnpath.models.enums import CompletionStatus
from learnpath.services.content_tree import ContentTree, ProgressFacts, SectionNode, load_content_tree
from learnpath.services.progress_aggregator import (
    ProgressAggregator, completion_percentage, status_for_percentage, refresh_course_progress
)


def test_percentage_counts_chapters_and_quiz_bearing_sections(example_tree):
    facts = ProgressFacts(
        completed_chapter_ids=frozenset({11, 12, 13, 21}),
        attempted_quiz_ids=frozenset({101}),
    )
    status = ProgressAggregator(example_tree, facts).course_status()

    assert status.total_items == 6
    assert status.completed_items == 5
    assert status.percentage == 83
    assert status.status == CompletionStatus.IN_PROGRESS


def test_course_status_thresholds(example_tree):
    nothing = ProgressAggregator(example_tree, ProgressFacts()).course_status()
    assert (nothing.percentage, nothing.status) == (0, CompletionStatus.NOT_STARTED)

    everything = ProgressAggregator(example_tree, ProgressFacts(
        completed_chapter_ids=frozenset({11, 12, 13, 21, 22}),
        attempted_quiz_ids=frozenset({101}),
    )).course_status()
    assert (everything.percentage, everything.status) == (100, CompletionStatus.COMPLETED)


def test_section_with_unattempted_quiz_is_not_complete(example_tree):
    facts = ProgressFacts(completed_chapter_ids=frozenset({11, 12, 13}))
    section = ProgressAggregator(example_tree, facts).section_status(10)

    assert section.completed_chapters == 3
    assert section.total_chapters == 3
    assert section.has_quiz is True
    assert section.quiz_completed is False
    assert section.is_complete is False

    attempted = ProgressAggregator(example_tree, facts.with_quiz(101)).section_status(10)
    assert attempted.quiz_completed is True
    assert attempted.is_complete is True


def test_section_without_quiz_completes_on_chapters(example_tree):
    facts = ProgressFacts(completed_chapter_ids=frozenset({21, 22}))
    assert ProgressAggregator(example_tree, facts).section_status(20).is_complete is True


def test_section_without_chapters_is_never_complete(example_tree):
    section = ProgressAggregator(example_tree, ProgressFacts()).section_status(30)
    assert section.total_items == 0
    assert section.is_complete is False


def test_empty_course_is_zero_percent():
    tree = ContentTree(course_id=9, title="Empty", sections=(SectionNode(id=1, title="Nothing", order_index=0),))
    status = ProgressAggregator(tree, ProgressFacts()).course_status()
    assert status.total_items == 0
    assert status.percentage == 0
    assert status.status == CompletionStatus.NOT_STARTED


@pytest.mark.parametrize("completed,total,expected", [
    (0, 0, 0),
    (0, 6, 0),
    (5, 6, 83),
    (1, 8, 13),
    (1, 3, 33),
    (2, 3, 67),
    (6, 6, 100),
])
def test_completion_percentage_rounds_half_up(completed, total, expected):
    assert completion_percentage(completed, total) == expected


def test_status_for_percentage():
    assert status_for_percentage(0) == CompletionStatus.NOT_STARTED
    assert status_for_percentage(1) == CompletionStatus.IN_PROGRESS
    assert status_for_percentage(99) == CompletionStatus.IN_PROGRESS
    assert status_for_percentage(100) == CompletionStatus.COMPLETED


def test_chapter_completion_is_read_from_the_table_of_its_kind(db, seeded):
    # Chapter 11 is a video; a text_progress row for it does not count
    user_progress_crud.upsert_chapter_completion(db, seeded.learner_id, 11, 10, 1, kind="text")
    user_progress_crud.upsert_chapter_completion(db, seeded.learner_id, 12, 10, 1, kind="text")

    tree = load_content_tree(db, seeded.course_id)
    status = refresh_course_progress(db, seeded.learner_id, tree)

    assert status.completed_items == 1
    assert status.percentage == 17


def test_refresh_overwrites_the_cached_aggregate(db, seeded):
    tree = load_content_tree(db, seeded.course_id)
    user_progress_crud.upsert_course_progress(
        db, seeded.learner_id, seeded.course_id, completed_items=4, total_items=6,
        percentage=67, status=CompletionStatus.IN_PROGRESS,
    )

    refresh_course_progress(db, seeded.learner_id, tree)

    stored = user_progress_crud.get_course_progress(db, seeded.learner_id, seeded.course_id)
    assert stored.completed_items == 0
    assert stored.completion_percentage == 0
    assert stored.total_items == 6


def test_completed_at_is_set_once(db, seeded):
    first = user_progress_crud.upsert_course_progress(
        db, seeded.learner_id, seeded.course_id, 6, 6, 100, CompletionStatus.COMPLETED
    )
    completed_at = first.completed_at
    assert completed_at is not None

    again = user_progress_crud.upsert_course_progress(
        db, seeded.learner_id, seeded.course_id, 6, 6, 100, CompletionStatus.COMPLETED, touch_access=True
    )
    assert again.completed_at == completed_at
    assert again.last_accessed_at is not None


def test_completed_status_never_reverts(db, seeded):
    user_progress_crud.upsert_course_progress(
        db, seeded.learner_id, seeded.course_id, 6, 6, 100, CompletionStatus.COMPLETED
    )
    stored = user_progress_crud.upsert_course_progress(
        db, seeded.learner_id, seeded.course_id, 3, 6, 50, CompletionStatus.IN_PROGRESS
    )

    assert stored.completion_status == CompletionStatus.COMPLETED
    assert stored.completion_percentage == 50
    assert stored.completed_at is not None


def test_in_progress_row_has_no_completed_at(db, seeded):
    stored = user_progress_crud.upsert_course_progress(
        db, seeded.learner_id, seeded.course_id, 3, 6, 50, CompletionStatus.IN_PROGRESS
    )
    assert stored.completion_status == CompletionStatus.IN_PROGRESS
    assert stored.completed_at is None
