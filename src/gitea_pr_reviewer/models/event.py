"""
CI Event Models

CI가 전달하는 pull request 이벤트 페이로드 모델
"""

import json
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, validator


class RepositoryOwner(BaseModel):
    login: str


class Repository(BaseModel):
    name: str
    owner: RepositoryOwner


class PullRequestEvent(BaseModel):
    """pull request 이벤트 (opened / synchronized / ...)"""
    action: str = ""
    number: Optional[int] = None
    repository: Optional[Repository] = None
    before: Optional[str] = None
    after: Optional[str] = None

    @validator('number')
    def validate_number(cls, v):
        if v is not None and v <= 0:
            raise ValueError('PR number must be positive')
        return v

    @property
    def owner(self) -> Optional[str]:
        return self.repository.owner.login if self.repository else None

    @property
    def repo(self) -> Optional[str]:
        return self.repository.name if self.repository else None

    def require_pull_request(self) -> None:
        """리뷰에 필요한 필드가 있는지 확인"""
        if self.number is None or self.repository is None:
            raise ValueError(
                f"Event '{self.action}' is missing 'number' or 'repository'"
            )


def load_event(path: Union[str, Path]) -> PullRequestEvent:
    """이벤트 JSON 파일 로드"""
    event_file = Path(path)
    if not event_file.exists():
        raise FileNotFoundError(f"Event file not found: {path}")

    with open(event_file, 'r', encoding='utf-8') as f:
        payload = json.load(f)

    return PullRequestEvent.parse_obj(payload)
