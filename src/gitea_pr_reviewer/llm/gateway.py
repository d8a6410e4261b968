"""
Review Gateway

Sends review prompts to the OpenAI-compatible completion endpoint and
validates the JSON response into review suggestions.
"""

import json
import logging
import re
from typing import List, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from ..config import LLMConfig
from ..models.review import ReviewResponse, ReviewSuggestion


logger = logging.getLogger(__name__)


class ReviewGateway:
    """
    Requests a critique for one prompt and validates the result.

    Any failure (provider, transport, malformed output) yields None so a
    single bad fragment never aborts the whole run.
    """

    def __init__(self, config: LLMConfig, client: Optional[OpenAI] = None):
        """
        Initialize review gateway.

        Args:
            config: Model selection and sampling configuration
            client: Optional preconfigured OpenAI client
        """
        self.config = config
        self.client = client or OpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
        )
        self.code_fence_pattern = re.compile(r'^```[a-zA-Z]*\s*\n?(.*?)\n?```$', re.DOTALL)

    def request_review(self, prompt: str) -> Optional[List[ReviewSuggestion]]:
        """
        Get review suggestions for a prompt.

        Args:
            prompt: Complete review instruction

        Returns:
            Validated suggestions (possibly empty) or None if no usable response
        """
        try:
            content = self._complete(prompt)
        except OpenAIError as e:
            logger.error(f"Completion request failed: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error during completion request: {e}")
            return None

        return self.parse_response(content)

    def _complete(self, prompt: str) -> str:
        """Send exactly one completion request and return its text."""
        params = self.config.sampling_params()
        if self.config.json_mode:
            params['response_format'] = {'type': 'json_object'}

        response = self.client.chat.completions.create(
            messages=[{'role': 'system', 'content': prompt}],
            **params,
        )

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def parse_response(self, content: str) -> Optional[List[ReviewSuggestion]]:
        """
        Validate raw model output.

        Args:
            content: Raw completion text

        Returns:
            Suggestions, or None on any shape mismatch
        """
        text = (content or "").strip() or "{}"

        fence_match = self.code_fence_pattern.match(text)
        if fence_match:
            text = fence_match.group(1).strip()

        try:
            data = json.loads(text)
        except (ValueError, RecursionError) as e:
            logger.warning(f"Model response is not valid JSON: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Model response is not a JSON object: {type(data).__name__}")
            return None

        try:
            parsed = ReviewResponse.parse_obj(data)
        except ValidationError as e:
            logger.warning(f"Model response failed validation: {e.error_count()} errors")
            return None

        logger.debug(f"Model returned {len(parsed.reviews)} suggestions")
        return parsed.reviews
