"""
Review Data Models

코드 리뷰 관련 데이터 모델들
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, validator

from .pr_diff import PullRequestContext


# Pydantic models for LLM response validation
class ReviewSuggestion(BaseModel):
    """LLM이 반환한 개별 리뷰 제안 (신뢰하지 않는 입력)"""
    line_number: str = Field(alias="lineNumber")
    review_comment: str = Field(alias="reviewComment")

    class Config:
        populate_by_name = True

    @validator('line_number', pre=True)
    def validate_line_number(cls, v):
        # bool is an int subclass; reject it before the numeric branch
        if isinstance(v, bool):
            raise ValueError('lineNumber must be a number or a string')
        if isinstance(v, (int, float)):
            return str(v)
        return v


class ReviewResponse(BaseModel):
    """LLM 응답 전체 형식"""
    reviews: List[ReviewSuggestion]


@dataclass
class ReviewComment:
    """PR에 게시할 라인 코멘트"""
    path: str
    line: int
    body: str

    def __post_init__(self):
        """데이터 검증"""
        if not self.path:
            raise ValueError("Comment path cannot be empty")

        if self.line <= 0:
            raise ValueError("Line number must be positive")

        if not self.body.strip():
            raise ValueError("Comment body cannot be empty")

    def to_dict(self) -> Dict:
        return {'path': self.path, 'line': self.line, 'body': self.body}


@dataclass
class ReviewResult:
    """전체 리뷰 실행 결과"""
    status: str
    comments: List[ReviewComment] = field(default_factory=list)
    pr_context: Optional[PullRequestContext] = None
    fragments_total: int = 0
    fragments_failed: int = 0
    posted: Optional[bool] = None

    def __post_init__(self):
        """데이터 검증"""
        valid_statuses = {'skipped', 'no_diff', 'no_comments', 'commented'}
        if self.status not in valid_statuses:
            raise ValueError(f"Invalid status: {self.status}")

        if self.fragments_failed > self.fragments_total:
            raise ValueError("Failed fragments cannot exceed total fragments")

    @property
    def total_comments(self) -> int:
        return len(self.comments)

    @property
    def is_partial(self) -> bool:
        """일부 fragment 리뷰가 실패했는지 여부"""
        return self.fragments_failed > 0

    def comments_by_file(self) -> Dict[str, List[ReviewComment]]:
        grouped: Dict[str, List[ReviewComment]] = {}
        for comment in self.comments:
            grouped.setdefault(comment.path, []).append(comment)
        return grouped
