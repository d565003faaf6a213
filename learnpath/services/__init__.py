# This package contains the progress and navigation engine.

from . import content_tree
from . import progress_aggregator
from . import navigation
from . import navigation_state
from . import completion_recorder
from . import course_view
from . import quiz_client

__all__ = [
    "content_tree",
    "progress_aggregator",
    "navigation",
    "navigation_state",
    "completion_recorder",
    "course_view",
    "quiz_client",
]
