"""
Review Orchestrator

Main interface that drives the complete review process from the
pull request event to the batch of line-anchored review comments.
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import AppConfig
from .gitea.client import GiteaClient, GiteaAPIError
from .gitea.local import LocalGitClient, GitDiffError
from .gitea.parser import UnifiedDiffParser
from .llm.gateway import ReviewGateway
from .llm.prompts import PromptBuilder
from .models.event import PullRequestEvent
from .models.pr_diff import FileChange, Hunk, PullRequestContext
from .models.review import ReviewComment, ReviewResult
from .review.mapper import CommentMapper
from .review.sink import CommentSink


logger = logging.getLogger(__name__)

ACTION_OPENED = "opened"
ACTIONS_SYNCHRONIZED = ("synchronized", "synchronize")


@dataclass
class FragmentOutcome:
    """Result of reviewing one (file, hunk) fragment."""
    comments: List[ReviewComment] = field(default_factory=list)
    failed: bool = False


class ReviewOrchestrator:
    """
    Orchestrates the review of one pull request event.

    1. Acquire the diff (full PR diff on open, incremental on synchronize)
    2. Parse it into files and hunks
    3. Prompt -> model -> comment mapping per fragment, with bounded concurrency
    4. Hand the aggregated comments to the sink
    """

    def __init__(
        self,
        config: AppConfig,
        gitea_client: GiteaClient,
        git_client: LocalGitClient,
        gateway: ReviewGateway,
        sink: CommentSink,
        parser: Optional[UnifiedDiffParser] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        mapper: Optional[CommentMapper] = None,
    ):
        self.config = config
        self.gitea_client = gitea_client
        self.git_client = git_client
        self.gateway = gateway
        self.sink = sink
        self.parser = parser or UnifiedDiffParser()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.mapper = mapper or CommentMapper(
            validate_line_numbers=config.review.validate_line_numbers
        )

    async def run(self, event: PullRequestEvent) -> ReviewResult:
        """
        Review the pull request referenced by an event.

        Args:
            event: CI event payload

        Returns:
            ReviewResult describing what happened
        """
        if event.action != ACTION_OPENED and event.action not in ACTIONS_SYNCHRONIZED:
            logger.info(f"Unsupported event action: {event.action!r}, nothing to do")
            return ReviewResult(status='skipped')

        event.require_pull_request()
        pr_context = self.fetch_pr_context(event)

        diff = self.acquire_diff(event, pr_context)
        if not diff or not diff.strip():
            logger.info("No diff found")
            return ReviewResult(status='no_diff', pr_context=pr_context)

        files = self.parser.parse(diff)
        fragments = self.select_fragments(files)
        logger.info(
            f"Reviewing {len(fragments)} fragments from {len(files)} files "
            f"(+{sum(f.additions for f in files)}/-{sum(f.deletions for f in files)})"
        )

        outcomes = await asyncio.wait_for(
            self.review_fragments(fragments, pr_context),
            timeout=self.config.review.run_timeout_seconds,
        )

        comments = [comment for outcome in outcomes for comment in outcome.comments]
        failed = sum(1 for outcome in outcomes if outcome.failed)
        if failed:
            logger.warning(f"{failed} of {len(fragments)} fragments could not be reviewed")

        if not comments:
            logger.info("No review comments generated")
            return ReviewResult(
                status='no_comments',
                pr_context=pr_context,
                fragments_total=len(fragments),
                fragments_failed=failed,
            )

        posted = self.sink.submit_comments(pr_context, comments)
        logger.info(f"Submitted {len(comments)} review comments (accepted={posted})")

        return ReviewResult(
            status='commented',
            comments=comments,
            pr_context=pr_context,
            fragments_total=len(fragments),
            fragments_failed=failed,
            posted=posted,
        )

    def fetch_pr_context(self, event: PullRequestEvent) -> PullRequestContext:
        """Fetch pull request title and description."""
        pr_data = self.gitea_client.get_pull_request(event.owner, event.repo, event.number)

        return PullRequestContext(
            owner=event.owner,
            repo=event.repo,
            pull_number=event.number,
            title=pr_data.get('title') or "",
            description=pr_data.get('body') or "",
        )

    def acquire_diff(self, event: PullRequestEvent, pr_context: PullRequestContext) -> Optional[str]:
        """
        Get the diff to review for the event.

        Returns:
            Diff text, or None if it could not be acquired
        """
        if event.action == ACTION_OPENED:
            try:
                return self.gitea_client.get_pull_request_diff(
                    pr_context.owner, pr_context.repo, pr_context.pull_number
                )
            except GiteaAPIError as e:
                logger.warning(f"Failed to fetch diff for {pr_context.full_name}#{pr_context.pull_number}: {e}")
                return None

        if not event.before or not event.after:
            logger.warning("Synchronized event without 'before'/'after' commits")
            return None

        try:
            return self.git_client.diff(event.before, event.after)
        except GitDiffError as e:
            logger.warning(f"Error getting diff with git: {e}")
            return None

    def select_fragments(self, files: List[FileChange]) -> List[Tuple[FileChange, Hunk]]:
        """Pick the (file, hunk) pairs to review."""
        for file_change in files:
            if file_change.is_deleted:
                logger.debug(f"Skipping deleted file {file_change.display_path}")
            elif file_change.is_binary:
                logger.debug(f"Skipping binary file {file_change.display_path}")

        fragments = []
        for file_change, hunk in self.parser.split_fragments(files):
            if self._is_excluded(file_change.path):
                logger.debug(f"Skipping excluded file {file_change.path}")
                continue
            fragments.append((file_change, hunk))

        return fragments

    def _is_excluded(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.config.review.exclude_patterns)

    async def review_fragments(
        self,
        fragments: List[Tuple[FileChange, Hunk]],
        pr_context: PullRequestContext
    ) -> List[FragmentOutcome]:
        """
        Review fragments concurrently.

        A slot is held until the worker thread finishes, even when the
        fragment has already been given up on after its timeout. Worker
        threads cannot be interrupted, so a model call that hangs is bounded
        by the client timeout (LLM_TIMEOUT).

        Returns:
            One outcome per fragment, in input order
        """
        semaphore = asyncio.Semaphore(self.config.review.max_concurrency)
        timeout = self.config.review.fragment_timeout_seconds

        def release_slot(worker: asyncio.Future) -> None:
            semaphore.release()
            if not worker.cancelled() and worker.exception() is not None:
                logger.debug(f"Fragment review worker raised: {worker.exception()}")

        async def review_one(file_change: FileChange, hunk: Hunk) -> FragmentOutcome:
            await semaphore.acquire()
            worker = asyncio.ensure_future(
                asyncio.to_thread(self.review_fragment, file_change, hunk, pr_context)
            )
            worker.add_done_callback(release_slot)

            try:
                return await asyncio.wait_for(asyncio.shield(worker), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Review of {file_change.path} {hunk.header} timed out after {timeout}s")
                return FragmentOutcome(failed=True)

        return await asyncio.gather(*(review_one(f, h) for f, h in fragments))

    def review_fragment(
        self,
        file_change: FileChange,
        hunk: Hunk,
        pr_context: PullRequestContext
    ) -> FragmentOutcome:
        """Prompt -> model -> comments for a single fragment."""
        prompt = self.prompt_builder.build_review_prompt(file_change, hunk, pr_context)
        suggestions = self.gateway.request_review(prompt)

        if suggestions is None:
            logger.warning(f"No usable model response for {file_change.path} {hunk.header}")
            return FragmentOutcome(failed=True)

        return FragmentOutcome(comments=self.mapper.map_suggestions(file_change, hunk, suggestions))
