"""
Comment Sinks

Destinations for the final batch of review comments.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from ..gitea.client import GiteaClient, GiteaAPIError
from ..models.pr_diff import PullRequestContext
from ..models.review import ReviewComment


logger = logging.getLogger(__name__)


class CommentSink(ABC):
    """Accepts a batch of review comments for a pull request."""

    @abstractmethod
    def submit_comments(self, pr_context: PullRequestContext, comments: List[ReviewComment]) -> bool:
        """
        Submit comments.

        Returns:
            True if the batch was accepted
        """


class LoggingCommentSink(CommentSink):
    """Logs the batch without contacting the host (dry run)."""

    def submit_comments(self, pr_context: PullRequestContext, comments: List[ReviewComment]) -> bool:
        logger.info(f"Dry run: {len(comments)} review comments for {pr_context.full_name}#{pr_context.pull_number}")
        for comment in comments:
            logger.info(f"{comment.path}:{comment.line}: {comment.body}")
        return True


class GiteaReviewSink(CommentSink):
    """Posts the batch as one pull request review on Gitea."""

    def __init__(self, client: GiteaClient):
        self.client = client

    def submit_comments(self, pr_context: PullRequestContext, comments: List[ReviewComment]) -> bool:
        try:
            self.client.create_review(
                pr_context.owner,
                pr_context.repo,
                pr_context.pull_number,
                comments,
            )
        except GiteaAPIError as e:
            logger.error(f"Failed to post review for {pr_context.full_name}#{pr_context.pull_number}: {e}")
            return False

        return True
