"""Linearization of a ContentTree and "what is next" resolution.

Items are small value objects (kind plus ids), never references into the tree.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import enum
import logging

from learnpath.models.enums import ItemKind
from learnpath.services.content_tree import ContentTree
from learnpath.services.progress_aggregator import ProgressAggregator

logger = logging.getLogger(__name__)

MAX_LABEL_TITLE_LENGTH = 30


@dataclass(frozen=True)
class NavItem:
    kind: ItemKind
    section_id: int
    title: str
    section_title: str
    chapter_id: Optional[int] = None
    quiz_id: Optional[int] = None

    @property
    def is_quiz(self) -> bool:
        return self.kind == ItemKind.QUIZ


class NextActionKind(str, enum.Enum):
    GO_TO = "go_to"
    FINISH_COURSE = "finish_course"


@dataclass(frozen=True)
class NextAction:
    action: NextActionKind
    label: str
    enabled: bool = True
    target: Optional[NavItem] = None

    @classmethod
    def go_to(cls, target: NavItem, label: str) -> "NextAction":
        return cls(action=NextActionKind.GO_TO, label=label, target=target)

    @classmethod
    def finish_course(cls, enabled: bool = True) -> "NextAction":
        label = "Finish Module" if enabled else "Complete Quiz First"
        return cls(action=NextActionKind.FINISH_COURSE, label=label, enabled=enabled)


def linearize(tree: ContentTree) -> Tuple[NavItem, ...]:
    """
    Flattens the tree into navigation order: sections in effective order, each contributing
    its chapters in effective order followed by its quiz, if any.
    """
    items = []
    for section in tree.sections:
        for chapter in section.chapters:
            items.append(NavItem(
                kind=ItemKind.CHAPTER,
                section_id=section.id,
                chapter_id=chapter.id,
                title=chapter.title,
                section_title=section.title,
            ))
        if section.has_quiz:
            items.append(NavItem(
                kind=ItemKind.QUIZ,
                section_id=section.id,
                quiz_id=section.quiz_id,
                title=f"{section.title} Quiz",
                section_title=section.title,
            ))
    return tuple(items)


def locate(
    items: Sequence[NavItem],
    current_kind: Optional[ItemKind],
    current_section_id: Optional[int],
    current_chapter_id: Optional[int] = None,
) -> Optional[int]:
    """Index of the currently viewed item, or None when nothing (or nothing navigable) is selected."""
    if current_kind is None:
        return None
    for index, item in enumerate(items):
        if current_kind == ItemKind.CHAPTER and item.kind == ItemKind.CHAPTER:
            if item.chapter_id == current_chapter_id:
                return index
        elif current_kind == ItemKind.QUIZ and item.kind == ItemKind.QUIZ:
            if item.section_id == current_section_id:
                return index
    return None


def truncate_title(title: str, max_length: int = MAX_LABEL_TITLE_LENGTH) -> str:
    if len(title) > max_length:
        return title[:max_length] + "..."
    return title


def label_for(current: Optional[NavItem], target: NavItem) -> str:
    if target.is_quiz:
        return "Next Quiz"
    if current is not None and target.section_id != current.section_id:
        return f"Next Section: {target.section_title}"
    return f"Next: {truncate_title(target.title)}"


class NavigationResolver:
    """Resolves the next action for a learner over one course."""

    def __init__(self, tree: ContentTree, aggregator: ProgressAggregator, gate_quizzes: bool = True):
        self.tree = tree
        self.aggregator = aggregator
        # Off when the learner's facts could not be read
        self.gate_quizzes = gate_quizzes
        self.items = linearize(tree)

    @property
    def has_content(self) -> bool:
        return bool(self.items)

    def locate(self, current_kind: Optional[ItemKind], current_section_id: Optional[int],
               current_chapter_id: Optional[int] = None) -> Optional[int]:
        return locate(self.items, current_kind, current_section_id, current_chapter_id)

    def item_at(self, index: Optional[int]) -> Optional[NavItem]:
        if index is None or not 0 <= index < len(self.items):
            return None
        return self.items[index]

    def first_item_of_section(self, section_id: Optional[int]) -> Optional[NavItem]:
        for item in self.items:
            if item.section_id == section_id:
                return item
        return None

    def _is_in_last_section(self, item: NavItem) -> bool:
        return bool(self.tree.sections) and self.tree.sections[-1].id == item.section_id

    def resolve_next(self, index: Optional[int], section_id: Optional[int] = None) -> Optional[NextAction]:
        """
        Next action from the item at `index`.

        With no current item the learner is sent to the first item of `section_id` when that
        section has items, otherwise to the first item of the course. An empty course has no
        next action.
        """
        if not self.items:
            return None

        current = self.item_at(index)
        if current is None:
            target = self.first_item_of_section(section_id) or self.items[0]
            return NextAction.go_to(target, label_for(None, target))

        is_last_item = index == len(self.items) - 1
        if is_last_item or (current.is_quiz and self._is_in_last_section(current)):
            # Only gate: an unattempted quiz cannot finish the course
            quiz_pending = (
                self.gate_quizzes and current.is_quiz and not self.aggregator.quiz_completed(current.quiz_id)
            )
            if quiz_pending:
                logger.debug(f"Finish of course {self.tree.course_id} held until quiz {current.quiz_id} is attempted.")
            return NextAction.finish_course(enabled=not quiz_pending)

        target = self.items[index + 1]
        return NextAction.go_to(target, label_for(current, target))
