"""
LLM Review Engine

This module provides prompt construction and the gateway to the
language model that turns prompts into validated review suggestions.
"""

from .prompts import PromptBuilder
from .gateway import ReviewGateway

__all__ = ['PromptBuilder', 'ReviewGateway']
