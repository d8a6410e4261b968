"""
Comment Mapper

Converts validated model suggestions into review comments anchored to
`{path, line}` in the post-change file.
"""

import logging
import math
from typing import List, Optional

from ..models.pr_diff import FileChange, Hunk
from ..models.review import ReviewComment, ReviewSuggestion


logger = logging.getLogger(__name__)


def coerce_line_number(value: str) -> Optional[int]:
    """
    Convert a model-reported line number to an int.

    Returns:
        A positive int, or None if the value is not a whole positive number
    """
    text = str(value).strip()
    try:
        number = int(text)
    except ValueError:
        try:
            as_float = float(text)
        except ValueError:
            return None
        if not math.isfinite(as_float) or not as_float.is_integer():
            return None
        number = int(as_float)

    return number if number > 0 else None


class CommentMapper:
    """
    Maps suggestions for one fragment onto review comments.

    Invalid suggestions are dropped individually; siblings are unaffected.
    """

    def __init__(self, validate_line_numbers: bool = True):
        """
        Initialize comment mapper.

        Args:
            validate_line_numbers: Drop suggestions whose line is not an
                added or context line of the hunk
        """
        self.validate_line_numbers = validate_line_numbers

    def map_suggestions(
        self,
        file_change: FileChange,
        hunk: Hunk,
        suggestions: List[ReviewSuggestion]
    ) -> List[ReviewComment]:
        """
        Build review comments for a fragment.

        Args:
            file_change: File the hunk belongs to
            hunk: Reviewed hunk
            suggestions: Validated model output

        Returns:
            Review comments (empty if none survive)
        """
        if not suggestions:
            return []

        if not file_change.path:
            logger.debug(f"Dropping {len(suggestions)} suggestions for file without target path")
            return []

        allowed_lines = hunk.commentable_lines() if self.validate_line_numbers else None

        comments = []
        for suggestion in suggestions:
            line = coerce_line_number(suggestion.line_number)
            if line is None:
                logger.debug(f"Dropping suggestion with invalid line number {suggestion.line_number!r}")
                continue

            if allowed_lines is not None and line not in allowed_lines:
                logger.debug(f"Dropping suggestion for line {line} outside {file_change.path} {hunk.header}")
                continue

            if not suggestion.review_comment.strip():
                logger.debug(f"Dropping empty suggestion for {file_change.path}:{line}")
                continue

            comments.append(ReviewComment(path=file_change.path, line=line, body=suggestion.review_comment))

        dropped = len(suggestions) - len(comments)
        if dropped:
            logger.info(f"Dropped {dropped} of {len(suggestions)} suggestions for {file_change.path}")

        return comments
