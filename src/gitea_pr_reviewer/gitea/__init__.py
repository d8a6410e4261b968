"""
Gitea Integration Layer

This module provides Gitea API integration for PR metadata and diff
retrieval, local git diffs, and unified diff parsing.
"""

from .client import GiteaClient, GiteaAPIError
from .local import LocalGitClient, GitDiffError
from .parser import UnifiedDiffParser, MalformedDiffError

__all__ = [
    'GiteaClient',
    'GiteaAPIError',
    'LocalGitClient',
    'GitDiffError',
    'UnifiedDiffParser',
    'MalformedDiffError',
]
