"""
Prompt Builder

Builds the review instruction for one diff fragment (file + hunk)
in the context of the pull request title and description.
"""

import logging

from ..models.pr_diff import FileChange, Hunk, PullRequestContext


logger = logging.getLogger(__name__)


REVIEW_INSTRUCTIONS = """Your task is to review pull requests. Instructions:
- Provide the response in following JSON format:  {"reviews": [{"lineNumber":  <line_number>, "reviewComment": "<review comment>"}]}
- Do not give positive comments or compliments.
- Provide comments and suggestions ONLY if there is something to improve, otherwise "reviews" should be an empty array.
- Write the comment in Markdown format.
- Use the given description only for the overall context and only comment the code.
- IMPORTANT: NEVER suggest adding comments to the code."""

FRAGMENT_TEMPLATE = """Review the following code diff in the file "{path}" and take the pull request title and description into account when writing the response.

Pull request title: {title}
Pull request description:

---
{description}
---

Git diff to review:

```diff
{diff}
```
"""


class PromptBuilder:
    """
    Builds review prompts for the language model.

    Output depends only on its inputs, so identical fragments always
    produce byte-identical prompts.
    """

    def build_review_prompt(
        self,
        file_change: FileChange,
        hunk: Hunk,
        pr_context: PullRequestContext
    ) -> str:
        """
        Build the prompt for a single fragment.

        Args:
            file_change: File the hunk belongs to
            hunk: Hunk to review
            pr_context: Pull request title/description

        Returns:
            Complete prompt string
        """
        logger.debug(f"Building review prompt for {file_change.display_path} {hunk.header}")

        fragment = FRAGMENT_TEMPLATE.format(
            path=file_change.path,
            title=pr_context.title,
            description=pr_context.description,
            diff=self.format_hunk(hunk),
        )

        return f"{REVIEW_INSTRUCTIONS}\n\n{fragment}"

    def format_hunk(self, hunk: Hunk) -> str:
        """Render a hunk header followed by numbered diff lines."""
        lines = [hunk.header]
        for change in hunk.changes:
            lines.append(f"{change.display_line_number} {change.kind.prefix}{change.content}")
        return "\n".join(lines)
