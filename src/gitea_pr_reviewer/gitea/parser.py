"""
Unified Diff Parser

Parses raw unified diff text (as served by the Gitea `.diff` endpoint or
produced by `git diff`) into structured file changes, hunks and line changes
with old/new line numbers.
"""

import re
import logging
from typing import List, Optional, Tuple

from ..models.pr_diff import FileChange, Hunk, LineChange, LineKind


logger = logging.getLogger(__name__)

DEV_NULL = '/dev/null'


class MalformedDiffError(ValueError):
    """Raised when text is not a syntactically valid unified diff."""
    def __init__(self, message: str, line_number: Optional[int] = None):
        if line_number is not None:
            message = f"{message} (diff line {line_number})"
        super().__init__(message)
        self.line_number = line_number


class UnifiedDiffParser:
    """
    Parser for unified diff text.

    Handles both git-style diffs (``diff --git`` with extended headers) and
    plain unified diffs (``---``/``+++`` file headers only).
    """

    def __init__(self):
        """Initialize unified diff parser."""
        self.hunk_header_pattern = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$')
        self.git_header_pattern = re.compile(r'^diff --git a/(.*) b/(.*)$')
        self.binary_file_pattern = re.compile(r'^(Binary files? .* differ|GIT binary patch)')

    def parse(self, diff_text: str) -> List[FileChange]:
        """
        Parse diff text into file changes.

        Args:
            diff_text: Raw unified diff

        Returns:
            File changes in diff order (empty for an empty diff)

        Raises:
            MalformedDiffError: If the text is not a unified diff
        """
        if not diff_text or not diff_text.strip():
            return []

        files: List[FileChange] = []
        current_file: Optional[FileChange] = None
        current_hunk: Optional[Hunk] = None
        seen_old_header = False
        old_line = new_line = 0
        old_remaining = new_remaining = 0

        lines = diff_text.split('\n')
        # The final newline terminates the last line, it does not open a new one
        if lines and lines[-1] == '':
            lines.pop()

        for index, raw_line in enumerate(lines, 1):
            line = raw_line[:-1] if raw_line.endswith('\r') else raw_line

            # Hunk body: the header's line counts decide where it ends
            if current_hunk is not None and (old_remaining > 0 or new_remaining > 0):
                if line.startswith('\\'):
                    continue

                # Tools that strip trailing whitespace turn " " into ""
                prefix, content = (line[0], line[1:]) if line else (' ', '')

                if prefix == '+':
                    if new_remaining == 0:
                        raise MalformedDiffError("Hunk has more added lines than declared", index)
                    current_hunk.changes.append(
                        LineChange(LineKind.ADDED, content, new_line_number=new_line)
                    )
                    new_line += 1
                    new_remaining -= 1
                elif prefix == '-':
                    if old_remaining == 0:
                        raise MalformedDiffError("Hunk has more removed lines than declared", index)
                    current_hunk.changes.append(
                        LineChange(LineKind.REMOVED, content, old_line_number=old_line)
                    )
                    old_line += 1
                    old_remaining -= 1
                elif prefix == ' ':
                    if old_remaining == 0 or new_remaining == 0:
                        raise MalformedDiffError("Hunk has more context lines than declared", index)
                    current_hunk.changes.append(
                        LineChange(
                            LineKind.CONTEXT,
                            content,
                            new_line_number=new_line,
                            old_line_number=old_line,
                        )
                    )
                    old_line += 1
                    new_line += 1
                    old_remaining -= 1
                    new_remaining -= 1
                else:
                    raise MalformedDiffError(f"Unexpected line in hunk body: {line!r}", index)
                continue

            if line.startswith('diff --git '):
                current_file = self._start_git_file(line)
                files.append(current_file)
                current_hunk = None
                seen_old_header = False
                continue

            if line.startswith('--- ') and (current_file is None or seen_old_header or current_file.hunks):
                # Plain unified diff: a new file section starts without a git header
                current_file = FileChange(path=None)
                files.append(current_file)
                current_hunk = None
                seen_old_header = False

            if line.startswith('--- '):
                old_path = self._clean_path(line[4:], 'a/')
                if old_path is None:
                    current_file.is_new = True
                    current_file.old_path = None
                else:
                    current_file.old_path = old_path
                seen_old_header = True
                continue

            if line.startswith('+++ '):
                if current_file is None:
                    raise MalformedDiffError("File header '+++' without preceding '---'", index)
                new_path = self._clean_path(line[4:], 'b/')
                if new_path is None:
                    current_file.is_deleted = True
                current_file.path = new_path
                continue

            if line.startswith('@@'):
                if current_file is None:
                    raise MalformedDiffError("Hunk header before any file header", index)
                current_hunk = self._start_hunk(line, index)
                current_file.hunks.append(current_hunk)
                old_line, new_line = current_hunk.old_start, current_hunk.new_start
                old_remaining, new_remaining = current_hunk.old_lines, current_hunk.new_lines
                continue

            if current_file is None:
                # Preamble before the first file (e.g. a commit message)
                continue

            if current_hunk is not None and line[:1] in ('+', '-', ' ') and line.strip():
                raise MalformedDiffError("Hunk body exceeds the line counts in its header", index)

            self._apply_extended_header(current_file, line)

        if current_hunk is not None and (old_remaining > 0 or new_remaining > 0):
            raise MalformedDiffError(
                f"Truncated hunk '{current_hunk.header}' in {current_file.display_path}"
            )

        if not files:
            raise MalformedDiffError("No file headers found in diff text")

        logger.debug(f"Parsed diff: {len(files)} files, {sum(len(f.hunks) for f in files)} hunks")
        return files

    def _start_git_file(self, line: str) -> FileChange:
        """Create a file change from a ``diff --git`` header."""
        match = self.git_header_pattern.match(line)
        if match:
            old_path, new_path = match.group(1), match.group(2)
        else:
            # --no-prefix output
            parts = line[len('diff --git '):].split(' ', 1)
            old_path = parts[0]
            new_path = parts[1] if len(parts) > 1 else parts[0]

        return FileChange(path=new_path, old_path=old_path)

    def _start_hunk(self, line: str, index: int) -> Hunk:
        """Create a hunk from an ``@@`` header."""
        match = self.hunk_header_pattern.match(line)
        if not match:
            raise MalformedDiffError(f"Invalid hunk header: {line!r}", index)

        return Hunk(
            header=line,
            old_start=int(match.group(1)),
            old_lines=int(match.group(2)) if match.group(2) is not None else 1,
            new_start=int(match.group(3)),
            new_lines=int(match.group(4)) if match.group(4) is not None else 1,
            section=match.group(5).strip(),
        )

    def _apply_extended_header(self, file_change: FileChange, line: str) -> None:
        """Apply git extended header lines (mode, rename, binary)."""
        if line.startswith('new file mode'):
            file_change.is_new = True
        elif line.startswith('deleted file mode'):
            file_change.is_deleted = True
            file_change.path = None
        elif line.startswith(('rename from ', 'copy from ')):
            file_change.old_path = line.split(' ', 2)[2]
        elif line.startswith(('rename to ', 'copy to ')):
            file_change.path = line.split(' ', 2)[2]
        elif self.binary_file_pattern.match(line):
            file_change.is_binary = True

    def _clean_path(self, raw: str, prefix: str) -> Optional[str]:
        """
        Normalize a path from a ``---``/``+++`` header.

        Returns:
            The path without its ``a/``/``b/`` prefix, or None for /dev/null
        """
        path = raw.split('\t', 1)[0].strip()
        if len(path) >= 2 and path.startswith('"') and path.endswith('"'):
            path = path[1:-1]

        if path == DEV_NULL:
            return None

        if path.startswith(prefix):
            path = path[len(prefix):]

        return path

    def split_fragments(self, files: List[FileChange]) -> List[Tuple[FileChange, Hunk]]:
        """
        Flatten file changes into (file, hunk) review fragments.

        Deleted and binary files produce no fragments.
        """
        fragments = []
        for file_change in files:
            if file_change.is_deleted or file_change.is_binary or file_change.path is None:
                continue
            for hunk in file_change.hunks:
                fragments.append((file_change, hunk))
        return fragments
