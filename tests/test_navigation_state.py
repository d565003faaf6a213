import asyncio

import pytest

from learnpath.core.exceptions import QuizFetchError
from learnpath.models.enums import ViewKind
from learnpath.services.content_tree import ContentTree, ProgressFacts
from learnpath.services.navigation_state import (
    NavigationDescriptor, NavigationSession, NavState, derive_state, encode_state, reconcile_with_tree,
    QUIZ_ERROR, QUIZ_LOADED, QUIZ_LOADING, WELCOME
)


@pytest.mark.parametrize("state", [
    WELCOME,
    NavState(ViewKind.SECTION_OVERVIEW, 10, None, False),
    NavState(ViewKind.CHAPTER, 10, 12, False),
    NavState(ViewKind.QUIZ, 10, None, True),
])
def test_descriptor_round_trip(state):
    assert derive_state(encode_state(state)) == state


def test_quiz_flag_wins_over_chapter():
    state = derive_state(NavigationDescriptor(section=10, chapter=12, quiz=True))
    assert state == NavState(ViewKind.QUIZ, 10, None, True)
    assert encode_state(state).to_query() == {"section": 10, "quiz": 1}


def test_chapter_without_section_is_welcome():
    assert derive_state(NavigationDescriptor(chapter=12)) == WELCOME


def test_descriptor_from_query_ignores_invalid_values():
    descriptor = NavigationDescriptor.from_query({"section": "abc", "chapter": "-3", "quiz": "yes"})
    assert descriptor == NavigationDescriptor()

    parsed = NavigationDescriptor.from_query({"section": "10", "chapter": " 12 ", "quiz": "1"})
    assert parsed == NavigationDescriptor(section=10, chapter=12, quiz=True)
    assert parsed.to_query() == {"section": 10, "chapter": 12, "quiz": 1}


def test_reconcile_unknown_section_falls_back_to_first_section(example_tree):
    state = reconcile_with_tree(derive_state(NavigationDescriptor(section=999)), example_tree)
    assert state == NavState(ViewKind.SECTION_OVERVIEW, 10, None, False)


def test_reconcile_unknown_chapter_falls_back_to_section_overview(example_tree):
    unknown = reconcile_with_tree(derive_state(NavigationDescriptor(section=20, chapter=999)), example_tree)
    assert unknown == NavState(ViewKind.SECTION_OVERVIEW, 20, None, False)

    # Chapter 11 exists but belongs to section 10
    misplaced = reconcile_with_tree(derive_state(NavigationDescriptor(section=20, chapter=11)), example_tree)
    assert misplaced == NavState(ViewKind.SECTION_OVERVIEW, 20, None, False)


def test_reconcile_quiz_on_section_without_quiz(example_tree):
    state = reconcile_with_tree(derive_state(NavigationDescriptor(section=20, quiz=True)), example_tree)
    assert state == NavState(ViewKind.SECTION_OVERVIEW, 20, None, False)


def test_reconcile_keeps_valid_states(example_tree):
    for descriptor in (
        NavigationDescriptor(),
        NavigationDescriptor(section=10),
        NavigationDescriptor(section=10, chapter=13),
        NavigationDescriptor(section=10, quiz=True),
    ):
        state = derive_state(descriptor)
        assert reconcile_with_tree(state, example_tree) == state


def test_history_navigation_replaces_the_whole_state(example_tree):
    session = NavigationSession.from_descriptor(example_tree, NavigationDescriptor(section=10, chapter=12))
    assert session.state == NavState(ViewKind.CHAPTER, 10, 12, False)

    session.on_history_navigation(NavigationDescriptor(section=20))
    assert session.state == NavState(ViewKind.SECTION_OVERVIEW, 20, None, False)

    session.on_history_navigation(NavigationDescriptor())
    assert session.state == WELCOME

    # Same descriptor twice gives the same state
    session.on_history_navigation(NavigationDescriptor(section=10, chapter=12))
    first = session.state
    session.on_history_navigation(NavigationDescriptor(section=10, chapter=12))
    assert session.state == first


async def test_select_quiz_renders_loading_before_fetch_completes(example_tree):
    release = asyncio.Event()

    async def fetch_quiz(section_id):
        await release.wait()
        return {"section_id": section_id, "questions": []}

    session = NavigationSession(tree=example_tree, fetch_quiz=fetch_quiz)
    state = session.select_quiz(10)

    assert state.view == ViewKind.QUIZ
    assert session.quiz_status == QUIZ_LOADING

    release.set()
    await asyncio.gather(*session.pending_tasks)
    assert session.quiz_status == QUIZ_LOADED
    assert session.quiz_payload == {"section_id": 10, "questions": []}


async def test_quiz_fetch_error_is_local_to_quiz_view(example_tree):
    async def fetch_quiz(section_id):
        raise QuizFetchError(section_id, "service down")

    session = NavigationSession(tree=example_tree, fetch_quiz=fetch_quiz)
    session.select_quiz(10)
    await asyncio.gather(*session.pending_tasks)

    assert session.quiz_status == QUIZ_ERROR
    assert session.quiz_error == "service down"

    session.select_chapter(20, 21)
    assert session.state == NavState(ViewKind.CHAPTER, 20, 21, False)
    assert session.quiz_error is None


async def test_stale_quiz_payload_is_discarded(example_tree):
    release = asyncio.Event()

    async def fetch_quiz(section_id):
        await release.wait()
        return {"section_id": section_id}

    session = NavigationSession(tree=example_tree, fetch_quiz=fetch_quiz)
    session.select_quiz(10)
    session.select_section(20)
    release.set()
    await asyncio.gather(*session.pending_tasks)

    assert session.state.view == ViewKind.SECTION_OVERVIEW
    assert session.quiz_payload is None


async def test_go_next_moves_without_waiting_for_the_progress_write(example_tree):
    recorded = []

    def record_chapter(chapter_id):
        recorded.append(chapter_id)

    session = NavigationSession.from_descriptor(
        example_tree, NavigationDescriptor(section=10, chapter=13), record_chapter=record_chapter,
    )
    target = await session.go_next()

    assert target.kind == "item"
    assert session.state == NavState(ViewKind.QUIZ, 10, None, True)
    assert 13 in session.facts.completed_chapter_ids
    assert recorded == []

    await asyncio.gather(*session.pending_tasks)
    assert recorded == [13]


async def test_go_next_survives_a_failing_progress_write(example_tree):
    def record_chapter(chapter_id):
        raise RuntimeError("store unavailable")

    session = NavigationSession.from_descriptor(
        example_tree, NavigationDescriptor(section=10, chapter=11), record_chapter=record_chapter,
    )
    target = await session.go_next()
    await asyncio.gather(*session.pending_tasks)

    assert target.kind == "item"
    assert session.state == NavState(ViewKind.CHAPTER, 10, 12, False)
    assert session.last_warning is not None


async def test_go_next_from_welcome_opens_first_item(example_tree):
    session = NavigationSession(tree=example_tree)
    await session.go_next()
    assert session.state == NavState(ViewKind.CHAPTER, 10, 11, False)


async def test_finish_requires_confirmation(example_tree):
    completed = []

    async def decline():
        return False

    session = NavigationSession.from_descriptor(
        example_tree, NavigationDescriptor(section=20, chapter=22),
        confirm_finish=decline, complete_course=lambda: completed.append(True),
    )
    target = await session.go_next()

    assert target.kind == "stay"
    assert completed == []
    assert session.exited is False


async def test_confirmed_finish_completes_course_and_exits(example_tree):
    completed = []

    async def accept():
        return True

    session = NavigationSession.from_descriptor(
        example_tree, NavigationDescriptor(section=20, chapter=22),
        confirm_finish=accept, complete_course=lambda: completed.append(True),
        exit_path="/courses/1/complete",
    )
    target = await session.go_next()
    await asyncio.gather(*session.pending_tasks)

    assert target.kind == "exit"
    assert target.path == "/courses/1/complete"
    assert completed == [True]
    assert session.exited is True


async def test_gated_quiz_blocks_finish(example_tree):
    # Only section A, so its quiz is the final item
    single = ContentTree(course_id=1, title=example_tree.title, sections=(example_tree.sections[0],))

    session = NavigationSession.from_descriptor(single, NavigationDescriptor(section=10, quiz=True))
    target = await session.go_next()
    assert target.kind == "stay"
    assert target.warning == "Complete Quiz First"

    session.mark_quiz_attempted(101)
    finished = await session.go_next()
    assert finished.kind == "exit"


def test_session_starts_from_empty_facts(example_tree):
    session = NavigationSession(tree=example_tree)
    assert session.facts == ProgressFacts()
