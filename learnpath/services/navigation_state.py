"""Navigation state derived from the deep-link descriptor.

The descriptor ({section, chapter, quiz}) is the only state that survives a reload, so every
transition goes descriptor -> derive_state -> reconcile_with_tree and replaces the whole
NavState at once. NavigationSession is the explicit context object a client session passes
to its handlers.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Set
import logging

from learnpath.core.exceptions import QuizFetchError
from learnpath.models.enums import ItemKind, ViewKind
from learnpath.services.content_tree import ContentTree, ProgressFacts
from learnpath.services.navigation import NavigationResolver, NextAction, NextActionKind, NavItem
from learnpath.services.progress_aggregator import ProgressAggregator

logger = logging.getLogger(__name__)


def _parse_id(value: Any) -> Optional[int]:
    """Positive integer ids only; anything else is treated as absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class NavigationDescriptor:
    section: Optional[int] = None
    chapter: Optional[int] = None
    quiz: bool = False

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> "NavigationDescriptor":
        quiz = params.get("quiz")
        return cls(
            section=_parse_id(params.get("section")),
            chapter=_parse_id(params.get("chapter")),
            quiz=quiz is not None and not isinstance(quiz, bool) and str(quiz).strip() == "1",
        )

    def to_query(self) -> Dict[str, int]:
        query = {}
        if self.section is not None:
            query["section"] = self.section
        if self.chapter is not None:
            query["chapter"] = self.chapter
        if self.quiz:
            query["quiz"] = 1
        return query


@dataclass(frozen=True)
class NavState:
    view: ViewKind = ViewKind.WELCOME
    active_section_id: Optional[int] = None
    active_chapter_id: Optional[int] = None
    is_quiz: bool = False

    @property
    def item_kind(self) -> Optional[ItemKind]:
        if self.view == ViewKind.CHAPTER:
            return ItemKind.CHAPTER
        if self.view == ViewKind.QUIZ:
            return ItemKind.QUIZ
        return None


WELCOME = NavState()


def derive_state(descriptor: NavigationDescriptor) -> NavState:
    """Pure reducer from descriptor to state. The quiz flag wins over a chapter id."""
    if descriptor.section is None:
        return WELCOME
    if descriptor.quiz:
        return NavState(ViewKind.QUIZ, descriptor.section, None, True)
    if descriptor.chapter is not None:
        return NavState(ViewKind.CHAPTER, descriptor.section, descriptor.chapter, False)
    return NavState(ViewKind.SECTION_OVERVIEW, descriptor.section, None, False)


def encode_state(state: NavState) -> NavigationDescriptor:
    if state.view == ViewKind.WELCOME:
        return NavigationDescriptor()
    if state.view == ViewKind.QUIZ:
        return NavigationDescriptor(section=state.active_section_id, quiz=True)
    if state.view == ViewKind.CHAPTER:
        return NavigationDescriptor(section=state.active_section_id, chapter=state.active_chapter_id)
    return NavigationDescriptor(section=state.active_section_id)


def section_overview(section_id: int) -> NavState:
    return NavState(ViewKind.SECTION_OVERVIEW, section_id, None, False)


def state_for_item(item: NavItem) -> NavState:
    if item.is_quiz:
        return NavState(ViewKind.QUIZ, item.section_id, None, True)
    return NavState(ViewKind.CHAPTER, item.section_id, item.chapter_id, False)


def reconcile_with_tree(state: NavState, tree: ContentTree) -> NavState:
    """
    Replaces ids that do not resolve in the tree with the default state:
    an unknown section falls back to the first section (Welcome for an empty course),
    an unknown chapter or a missing quiz falls back to its section's overview.
    """
    if state.view == ViewKind.WELCOME:
        return state

    section = tree.get_section(state.active_section_id)
    if section is None:
        logger.info(f"Section {state.active_section_id} not in course {tree.course_id}; using default state.")
        return section_overview(tree.sections[0].id) if tree.sections else WELCOME

    if state.view == ViewKind.QUIZ and not section.has_quiz:
        logger.info(f"Section {section.id} has no quiz; showing its overview.")
        return section_overview(section.id)

    if state.view == ViewKind.CHAPTER:
        chapter = tree.get_chapter(state.active_chapter_id)
        if chapter is None or chapter.section_id != section.id:
            logger.info(f"Chapter {state.active_chapter_id} not in section {section.id}; showing its overview.")
            return section_overview(section.id)

    return state


@dataclass(frozen=True)
class NavigationTarget:
    """Where the caller should go after an action."""
    kind: str  # 'item', 'finish' (ask for confirmation), 'stay' or 'exit'
    descriptor: Optional[NavigationDescriptor] = None
    path: Optional[str] = None
    progress_saved: bool = True
    warning: Optional[str] = None


QUIZ_IDLE = "idle"
QUIZ_LOADING = "loading"
QUIZ_LOADED = "loaded"
QUIZ_ERROR = "error"


@dataclass
class NavigationSession:
    """
    Live navigation context for one learner in one course.

    Collaborators:
      fetch_quiz(section_id)       async quiz content fetch
      record_chapter(chapter_id)   blocking progress write, run off the event loop
      confirm_finish()             async yes/no confirmation before finishing
      complete_course()            blocking course completion write
    """
    tree: ContentTree
    facts: ProgressFacts = field(default_factory=ProgressFacts)
    fetch_quiz: Optional[Callable[[int], Awaitable[Any]]] = None
    record_chapter: Optional[Callable[[int], Any]] = None
    confirm_finish: Optional[Callable[[], Awaitable[bool]]] = None
    complete_course: Optional[Callable[[], Any]] = None
    exit_path: Optional[str] = None

    state: NavState = WELCOME
    quiz_status: str = QUIZ_IDLE
    quiz_payload: Any = None
    quiz_error: Optional[str] = None
    exited: bool = False
    last_warning: Optional[str] = None
    pending_tasks: Set[asyncio.Task] = field(default_factory=set, repr=False)
    _fetch_generation: int = field(default=0, repr=False)

    @classmethod
    def from_descriptor(cls, tree: ContentTree, descriptor: NavigationDescriptor, **kwargs) -> "NavigationSession":
        session = cls(tree=tree, **kwargs)
        session.on_history_navigation(descriptor)
        return session

    @property
    def descriptor(self) -> NavigationDescriptor:
        return encode_state(self.state)

    def resolver(self) -> NavigationResolver:
        return NavigationResolver(self.tree, ProgressAggregator(self.tree, self.facts))

    def next_action(self) -> Optional[NextAction]:
        resolver = self.resolver()
        index = resolver.locate(self.state.item_kind, self.state.active_section_id, self.state.active_chapter_id)
        return resolver.resolve_next(index, self.state.active_section_id)

    # --- transitions ---

    def _apply(self, state: NavState) -> NavState:
        # State is replaced first; quiz fields follow without any await in between
        reconciled = reconcile_with_tree(state, self.tree)
        self.state = reconciled
        if reconciled.view != ViewKind.QUIZ:
            self._fetch_generation += 1
            self.quiz_status, self.quiz_payload, self.quiz_error = QUIZ_IDLE, None, None
        return reconciled

    def select_section(self, section_id: int) -> NavState:
        return self._apply(derive_state(NavigationDescriptor(section=section_id)))

    def select_chapter(self, section_id: int, chapter_id: int) -> NavState:
        return self._apply(derive_state(NavigationDescriptor(section=section_id, chapter=chapter_id)))

    def select_quiz(self, section_id: int) -> NavState:
        """Switches to the quiz view immediately; the quiz content loads in the background."""
        state = self._apply(derive_state(NavigationDescriptor(section=section_id, quiz=True)))
        if state.view == ViewKind.QUIZ:
            self._start_quiz_fetch(section_id)
        return state

    def on_history_navigation(self, descriptor: NavigationDescriptor) -> NavState:
        """Back/forward: rebuild everything from the descriptor at the new location."""
        state = self._apply(derive_state(descriptor))
        if state.view == ViewKind.QUIZ:
            self._start_quiz_fetch(state.active_section_id)
        return state

    def _start_quiz_fetch(self, section_id: int) -> None:
        self._fetch_generation += 1
        generation = self._fetch_generation
        self.quiz_status, self.quiz_payload, self.quiz_error = QUIZ_LOADING, None, None
        if self.fetch_quiz is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop; quiz for section {section_id} will not be fetched.")
            return
        self._track(loop.create_task(self._fetch_quiz(section_id, generation)))

    async def _fetch_quiz(self, section_id: int, generation: int) -> None:
        try:
            payload = await self.fetch_quiz(section_id)
        except QuizFetchError as e:
            if generation == self._fetch_generation:
                self.quiz_status, self.quiz_error = QUIZ_ERROR, e.reason
            logger.warning(f"Quiz fetch failed for section {section_id}: {e.reason}")
            return
        if generation != self._fetch_generation:
            logger.debug(f"Discarding stale quiz payload for section {section_id}.")
            return
        self.quiz_status, self.quiz_payload = QUIZ_LOADED, payload

    def _track(self, task: asyncio.Task) -> None:
        self.pending_tasks.add(task)
        task.add_done_callback(self.pending_tasks.discard)

    def _record_progress(self, chapter_id: int) -> None:
        """Fire-and-forget chapter write. Failures are logged and surfaced as a soft warning."""
        self.facts = self.facts.with_chapter(chapter_id)
        if self.record_chapter is None:
            return

        async def _write():
            try:
                await asyncio.to_thread(self.record_chapter, chapter_id)
            except Exception as e:
                self.last_warning = "Your progress could not be saved. It will be retried later."
                logger.warning(f"Background progress write for chapter {chapter_id} failed: {e}", exc_info=True)

        self._track(asyncio.get_running_loop().create_task(_write()))

    async def go_next(self) -> NavigationTarget:
        action = self.next_action()
        if action is None:
            return NavigationTarget(kind="stay", descriptor=self.descriptor)

        if self.state.view == ViewKind.CHAPTER:
            self._record_progress(self.state.active_chapter_id)

        if action.action == NextActionKind.GO_TO:
            target = action.target
            if target.is_quiz:
                self.select_quiz(target.section_id)
            else:
                self.select_chapter(target.section_id, target.chapter_id)
            return NavigationTarget(kind="item", descriptor=self.descriptor, warning=self.last_warning)

        if not action.enabled:
            return NavigationTarget(kind="stay", descriptor=self.descriptor, warning=action.label)

        confirmed = await self.confirm_finish() if self.confirm_finish is not None else True
        if not confirmed:
            return NavigationTarget(kind="stay", descriptor=self.descriptor)

        progress_saved = True
        if self.complete_course is not None:
            try:
                await asyncio.to_thread(self.complete_course)
            except Exception as e:
                progress_saved = False
                self.last_warning = "Course completion could not be saved. Please try again later."
                logger.error(f"Course completion failed for course {self.tree.course_id}: {e}", exc_info=True)
        self.exited = True
        return NavigationTarget(kind="exit", path=self.exit_path, progress_saved=progress_saved,
                                warning=self.last_warning if not progress_saved else None)

    def mark_quiz_attempted(self, quiz_id: int) -> None:
        self.facts = self.facts.with_quiz(quiz_id)
