"""
Gitea AI PR Reviewer

Pull request 이벤트마다 diff를 언어 모델로 리뷰하는 Gitea Actions 용 리뷰어
"""

__version__ = "1.0.0"

from .orchestrator import ReviewOrchestrator

__all__ = ["ReviewOrchestrator"]
