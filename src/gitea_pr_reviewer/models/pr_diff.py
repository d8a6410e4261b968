"""
PR Diff Data Models

Pull Request diff 관련 데이터 모델들
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set


class LineKind(str, Enum):
    """diff 라인 종류"""
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"

    @property
    def prefix(self) -> str:
        return {"context": " ", "added": "+", "removed": "-"}[self.value]


@dataclass
class LineChange:
    """hunk 안의 개별 라인"""
    kind: LineKind
    content: str
    new_line_number: Optional[int] = None
    old_line_number: Optional[int] = None

    def __post_init__(self):
        """데이터 검증"""
        if self.kind in (LineKind.ADDED, LineKind.CONTEXT) and self.new_line_number is None:
            raise ValueError(f"{self.kind.value} line requires new_line_number")
        if self.kind == LineKind.REMOVED and self.old_line_number is None:
            raise ValueError("removed line requires old_line_number")

    @property
    def display_line_number(self) -> int:
        """프롬프트에 표시할 라인 번호 (삭제된 라인은 변경 전 번호)"""
        if self.kind == LineKind.REMOVED:
            return self.old_line_number
        return self.new_line_number


@dataclass
class Hunk:
    """연속된 diff 영역 하나"""
    header: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    section: str = ""
    changes: List[LineChange] = field(default_factory=list)

    def __post_init__(self):
        """데이터 검증"""
        if self.old_start < 0 or self.new_start < 0:
            raise ValueError("Line numbers must be non-negative")
        if self.old_lines < 0 or self.new_lines < 0:
            raise ValueError("Line counts must be non-negative")

    def commentable_lines(self) -> Set[int]:
        """변경 후 파일 기준으로 코멘트를 달 수 있는 라인 번호"""
        return {
            change.new_line_number
            for change in self.changes
            if change.kind in (LineKind.ADDED, LineKind.CONTEXT)
        }

    @property
    def added_lines(self) -> List[LineChange]:
        return [c for c in self.changes if c.kind == LineKind.ADDED]

    @property
    def removed_lines(self) -> List[LineChange]:
        return [c for c in self.changes if c.kind == LineKind.REMOVED]


@dataclass
class FileChange:
    """파일 변경사항"""
    path: Optional[str]
    old_path: Optional[str] = None
    is_deleted: bool = False
    is_new: bool = False
    is_binary: bool = False
    hunks: List[Hunk] = field(default_factory=list)

    def __post_init__(self):
        """데이터 검증"""
        if self.is_deleted and self.is_new:
            raise ValueError("A file cannot be both added and deleted")

    @property
    def display_path(self) -> str:
        """로그용 경로"""
        return self.path or self.old_path or "<unknown>"

    @property
    def additions(self) -> int:
        return sum(len(h.added_lines) for h in self.hunks)

    @property
    def deletions(self) -> int:
        return sum(len(h.removed_lines) for h in self.hunks)


@dataclass(frozen=True)
class PullRequestContext:
    """리뷰 대상 Pull Request 메타데이터"""
    owner: str
    repo: str
    pull_number: int
    title: str = ""
    description: str = ""

    def __post_init__(self):
        """데이터 검증"""
        if self.pull_number <= 0:
            raise ValueError("PR number must be positive")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"
