"""
Command Line Entry Point

Runs one review for the pull request event delivered by the CI runner.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import AppConfig, setup_logging
from .gitea.client import GiteaClient
from .gitea.local import LocalGitClient
from .llm.gateway import ReviewGateway
from .models.event import load_event
from .orchestrator import ReviewOrchestrator
from .review.sink import CommentSink, GiteaReviewSink, LoggingCommentSink


logger = logging.getLogger(__name__)


def build_orchestrator(config: AppConfig) -> ReviewOrchestrator:
    """Wire the real collaborators from configuration."""
    gitea_client = GiteaClient(
        token=config.gitea.token,
        base_url=config.gitea.api_base_url,
        timeout_seconds=config.gitea.timeout_seconds,
    )

    sink: CommentSink
    if config.review.post_comments:
        sink = GiteaReviewSink(gitea_client)
    else:
        sink = LoggingCommentSink()

    return ReviewOrchestrator(
        config=config,
        gitea_client=gitea_client,
        git_client=LocalGitClient(config.workspace),
        gateway=ReviewGateway(config.llm),
        sink=sink,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Review a Gitea pull request with a language model.")
    parser.add_argument("--event-path", help="CI event payload (defaults to $GITHUB_EVENT_PATH)")
    parser.add_argument("--config", help="YAML configuration file (defaults to environment variables)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run a review.

    Returns:
        0 when the run finished (including no-op runs), 1 on any failure
    """
    args = parse_args(argv)

    try:
        config = AppConfig.from_yaml(args.config) if args.config else AppConfig.from_env()
        setup_logging(config.logging, debug=config.debug)
        config.validate()
        logger.debug(f"Configuration: {config.to_dict()}")

        event_path = args.event_path or config.event_path
        if not event_path:
            raise ValueError("No event path given (set GITHUB_EVENT_PATH or --event-path)")

        event = load_event(event_path)
        logger.info(f"Received event action={event.action!r} number={event.number}")

        result = asyncio.run(build_orchestrator(config).run(event))
    except Exception:
        logger.exception("Review run failed")
        return 1

    logger.info(
        f"Review finished: status={result.status}, comments={result.total_comments}, "
        f"failed fragments={result.fragments_failed}/{result.fragments_total}"
    )
    for path, comments in result.comments_by_file().items():
        logger.info(f"  {path}: {len(comments)} comments")
    if result.is_partial:
        logger.warning("Review is partial: some fragments could not be reviewed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
