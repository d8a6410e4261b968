"""
Review Comment Layer

This module maps model suggestions onto line-anchored review comments
and delivers the final batch to a comment sink.
"""

from .mapper import CommentMapper
from .sink import CommentSink, LoggingCommentSink, GiteaReviewSink

__all__ = ['CommentMapper', 'CommentSink', 'LoggingCommentSink', 'GiteaReviewSink']
