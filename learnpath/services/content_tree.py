"""Immutable per-request view of a course's content and a learner's raw completion facts.

The tree is loaded once and never mutated. Progress is kept outside the tree and looked
up by id, so nothing in here points back at a parent node.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from learnpath.core.exceptions import ContentNotFoundError
from learnpath.crud import course_crud, user_progress_crud
from learnpath.models.enums import ContentKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChapterNode:
    id: int
    section_id: int
    title: str
    content_kind: ContentKind
    order_index: int


@dataclass(frozen=True)
class SectionNode:
    id: int
    title: str
    order_index: int
    chapters: Tuple[ChapterNode, ...] = ()
    quiz_id: Optional[int] = None

    @property
    def has_quiz(self) -> bool:
        return self.quiz_id is not None


@dataclass(frozen=True)
class ContentTree:
    course_id: int
    title: str
    sections: Tuple[SectionNode, ...] = ()
    _sections_by_id: Dict[int, SectionNode] = field(default_factory=dict, repr=False, compare=False)
    _chapters_by_id: Dict[int, ChapterNode] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        # Frozen dataclass: indexes are filled through object.__setattr__
        object.__setattr__(self, "_sections_by_id", {s.id: s for s in self.sections})
        object.__setattr__(
            self, "_chapters_by_id", {c.id: c for s in self.sections for c in s.chapters}
        )

    def get_section(self, section_id: Optional[int]) -> Optional[SectionNode]:
        return self._sections_by_id.get(section_id)

    def get_chapter(self, chapter_id: Optional[int]) -> Optional[ChapterNode]:
        return self._chapters_by_id.get(chapter_id)

    @property
    def chapters(self) -> Tuple[ChapterNode, ...]:
        return tuple(c for s in self.sections for c in s.chapters)

    @property
    def quiz_ids(self) -> Tuple[int, ...]:
        return tuple(s.quiz_id for s in self.sections if s.has_quiz)


@dataclass(frozen=True)
class ProgressFacts:
    """Raw completion facts of one learner for one course."""
    completed_chapter_ids: FrozenSet[int] = frozenset()
    attempted_quiz_ids: FrozenSet[int] = frozenset()

    def with_chapter(self, chapter_id: int) -> "ProgressFacts":
        return ProgressFacts(self.completed_chapter_ids | {chapter_id}, self.attempted_quiz_ids)

    def with_quiz(self, quiz_id: int) -> "ProgressFacts":
        return ProgressFacts(self.completed_chapter_ids, self.attempted_quiz_ids | {quiz_id})


def _effective_order(node) -> Tuple[int, int]:
    return (node.order_index or 0, node.id)


def load_content_tree(db: Session, course_id: int) -> ContentTree:
    """Builds the ContentTree for a course. Raises ContentNotFoundError if the course does not exist."""
    course = course_crud.get_course(db, course_id)
    if not course:
        raise ContentNotFoundError("course", course_id)

    sections = []
    for section in sorted(course_crud.get_sections(db, course_id), key=_effective_order):
        chapters = tuple(
            ChapterNode(
                id=chapter.id,
                section_id=section.id,
                title=chapter.title,
                content_kind=ContentKind(chapter.content_type),
                order_index=chapter.order_index or 0,
            )
            for chapter in sorted(section.chapters, key=_effective_order)
        )
        sections.append(SectionNode(
            id=section.id,
            title=section.title,
            order_index=section.order_index or 0,
            chapters=chapters,
            quiz_id=section.quiz.id if section.quiz else None,
        ))

    logger.debug(f"Loaded content tree for course {course_id}: {len(sections)} sections")
    return ContentTree(course_id=course.id, title=course.title, sections=tuple(sections))


def load_progress_facts(db: Session, learner_id: int, tree: ContentTree) -> ProgressFacts:
    """
    Reads completion facts for every item of the tree.
    A chapter only counts when it is completed in the progress table matching its content kind.
    """
    completed_by_table = {
        model: user_progress_crud.get_completed_chapter_ids(db, learner_id, tree.course_id, kind)
        for kind, model in (
            (ContentKind.VIDEO, user_progress_crud.progress_model_for(ContentKind.VIDEO)),
            (ContentKind.TEXT, user_progress_crud.progress_model_for(ContentKind.TEXT)),
        )
    }
    completed = frozenset(
        chapter.id for chapter in tree.chapters
        if chapter.id in completed_by_table[user_progress_crud.progress_model_for(chapter.content_kind)]
    )
    attempted = frozenset(user_progress_crud.get_attempted_quiz_ids(db, learner_id, tree.quiz_ids))
    return ProgressFacts(completed_chapter_ids=completed, attempted_quiz_ids=attempted)
