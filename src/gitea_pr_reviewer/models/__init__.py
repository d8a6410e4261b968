"""
Data Models

Gitea PR Reviewer 시스템의 핵심 데이터 모델들
"""

from .pr_diff import LineKind, LineChange, Hunk, FileChange, PullRequestContext
from .review import ReviewSuggestion, ReviewResponse, ReviewComment, ReviewResult
from .event import PullRequestEvent, load_event

__all__ = [
    "LineKind",
    "LineChange",
    "Hunk",
    "FileChange",
    "PullRequestContext",
    "ReviewSuggestion",
    "ReviewResponse",
    "ReviewComment",
    "ReviewResult",
    "PullRequestEvent",
    "load_event",
]
