"""
End-to-End Integration Tests

Tests the complete review flow from the CI event to the batch of
review comments, with the Gitea API, git and the model replaced by fakes.
"""

import json
import logging
import threading
import time
from types import SimpleNamespace
from unittest.mock import Mock

import httpx
import openai
import pytest

from gitea_pr_reviewer import cli
from gitea_pr_reviewer.config import AppConfig, GiteaConfig, LLMConfig, LoggingConfig, ReviewConfig
from gitea_pr_reviewer.gitea.client import GiteaAPIError
from gitea_pr_reviewer.gitea.local import GitDiffError
from gitea_pr_reviewer.gitea.parser import MalformedDiffError
from gitea_pr_reviewer.llm.gateway import ReviewGateway
from gitea_pr_reviewer.models.event import PullRequestEvent
from gitea_pr_reviewer.models.review import ReviewComment, ReviewResult
from gitea_pr_reviewer.orchestrator import ReviewOrchestrator
from gitea_pr_reviewer.review.sink import CommentSink


ADDED_FILE_DIFF = """diff --git a/src/greeting.py b/src/greeting.py
new file mode 100644
--- /dev/null
+++ b/src/greeting.py
@@ -0,0 +1,3 @@
+def greet(n):
+    x = "Hello, " + n
+    return x
"""

TWO_FILE_DIFF = ADDED_FILE_DIFF + """diff --git a/src/math_utils.py b/src/math_utils.py
--- a/src/math_utils.py
+++ b/src/math_utils.py
@@ -1,2 +1,2 @@
 def double(v):
-    return v + v
+    return v * 2
"""

DELETED_FILE_DIFF = """diff --git a/src/legacy.py b/src/legacy.py
deleted file mode 100644
--- a/src/legacy.py
+++ /dev/null
@@ -1,2 +0,0 @@
-import os
-print(os.name)
"""

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class RecordingSink(CommentSink):
    def __init__(self):
        self.batches = []

    def submit_comments(self, pr_context, comments):
        self.batches.append((pr_context, list(comments)))
        return True


def make_config(**review_overrides):
    return AppConfig(
        gitea=GiteaConfig(token="t", api_base_url="https://gitea.example.com/api/v1"),
        llm=LLMConfig(api_key="k", model="gpt-4"),
        review=ReviewConfig(**review_overrides),
        logging=LoggingConfig(),
    )


def make_event(action="opened", **extra):
    payload = {
        "action": action,
        "number": 17,
        "repository": {"name": "shop", "owner": {"login": "acme"}},
    }
    payload.update(extra)
    return PullRequestEvent.parse_obj(payload)


class TestEndToEndFlow:
    """Test complete end-to-end review flow."""

    def setup_method(self):
        self.gitea_client = Mock()
        self.gitea_client.get_pull_request.return_value = {"title": "Add greeting", "body": "Greets users."}
        self.gitea_client.get_pull_request_diff.return_value = ADDED_FILE_DIFF
        self.git_client = Mock()
        self.llm_client = Mock()
        self.sink = RecordingSink()

    def build(self, config=None):
        config = config or make_config()
        return ReviewOrchestrator(
            config=config,
            gitea_client=self.gitea_client,
            git_client=self.git_client,
            gateway=ReviewGateway(config.llm, client=self.llm_client),
            sink=self.sink,
        )

    @pytest.mark.asyncio
    async def test_scenario_a_single_comment(self):
        self.llm_client.chat.completions.create.return_value = completion(
            '{"reviews":[{"lineNumber":"2","reviewComment":"Consider renaming this variable."}]}'
        )

        result = await self.build().run(make_event())

        assert result.status == "commented"
        assert [(c.path, c.line, c.body) for c in result.comments] == [
            ("src/greeting.py", 2, "Consider renaming this variable.")
        ]
        assert result.posted is True
        assert len(self.sink.batches) == 1
        context, batch = self.sink.batches[0]
        assert context.title == "Add greeting"
        assert batch == result.comments

        prompt = self.llm_client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "Pull request title: Add greeting" in prompt
        assert "2 +    x = \"Hello, \" + n" in prompt

    @pytest.mark.asyncio
    async def test_scenario_b_empty_reviews(self):
        self.llm_client.chat.completions.create.return_value = completion('{"reviews":[]}')

        result = await self.build().run(make_event())

        assert result.status == "no_comments"
        assert result.comments == []
        assert result.fragments_total == 1
        assert result.fragments_failed == 0
        assert self.sink.batches == []

    @pytest.mark.asyncio
    async def test_scenario_c_unsupported_action(self):
        result = await self.build().run(make_event("closed"))

        assert result.status == "skipped"
        assert result.comments == []
        self.gitea_client.get_pull_request.assert_not_called()
        self.gitea_client.get_pull_request_diff.assert_not_called()
        self.git_client.diff.assert_not_called()
        self.llm_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_scenario_d_transport_error_is_fragment_local(self):
        def respond(**kwargs):
            if "src/greeting.py" in kwargs["messages"][0]["content"]:
                raise openai.APIConnectionError(request=REQUEST)
            return completion('{"reviews":[{"lineNumber":2,"reviewComment":"Good use of `*`? Prefer clarity."}]}')

        self.gitea_client.get_pull_request_diff.return_value = TWO_FILE_DIFF
        self.llm_client.chat.completions.create.side_effect = respond

        result = await self.build().run(make_event())

        assert result.status == "commented"
        assert result.fragments_total == 2
        assert result.fragments_failed == 1
        assert [(c.path, c.line) for c in result.comments] == [("src/math_utils.py", 2)]

    @pytest.mark.asyncio
    async def test_deleted_file_is_never_reviewed(self):
        self.gitea_client.get_pull_request_diff.return_value = DELETED_FILE_DIFF
        self.llm_client.chat.completions.create.return_value = completion(
            '{"reviews":[{"lineNumber":"1","reviewComment":"Why delete this?"}]}'
        )

        result = await self.build().run(make_event())

        assert result.status == "no_comments"
        assert result.fragments_total == 0
        self.llm_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_hallucinated_line_is_dropped(self):
        self.llm_client.chat.completions.create.return_value = completion(
            '{"reviews":[{"lineNumber":"40","reviewComment":"Off by one."},'
            '{"lineNumber":"3","reviewComment":"Return directly."}]}'
        )

        result = await self.build().run(make_event())

        assert [c.line for c in result.comments] == [3]

    @pytest.mark.asyncio
    async def test_comments_keep_diff_order(self):
        self.gitea_client.get_pull_request_diff.return_value = TWO_FILE_DIFF
        self.llm_client.chat.completions.create.side_effect = [
            completion('{"reviews":[{"lineNumber":1,"reviewComment":"first"}]}'),
            completion('{"reviews":[{"lineNumber":2,"reviewComment":"second"}]}'),
        ]

        result = await self.build(make_config(max_concurrency=1)).run(make_event())

        assert [c.path for c in result.comments] == ["src/greeting.py", "src/math_utils.py"]

    @pytest.mark.asyncio
    async def test_excluded_files_are_skipped(self):
        self.gitea_client.get_pull_request_diff.return_value = TWO_FILE_DIFF
        self.llm_client.chat.completions.create.return_value = completion('{"reviews":[]}')

        result = await self.build(make_config(exclude_patterns=["src/greeting.*"])).run(make_event())

        assert result.fragments_total == 1
        prompt = self.llm_client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "src/math_utils.py" in prompt

    @pytest.mark.asyncio
    async def test_synchronized_uses_local_git_diff(self):
        self.git_client.diff.return_value = ADDED_FILE_DIFF
        self.llm_client.chat.completions.create.return_value = completion('{"reviews":[]}')

        result = await self.build().run(make_event("synchronized", before="aaa111", after="bbb222"))

        assert result.status == "no_comments"
        self.git_client.diff.assert_called_once_with("aaa111", "bbb222")
        self.gitea_client.get_pull_request_diff.assert_not_called()

    @pytest.mark.asyncio
    async def test_synchronized_git_failure_ends_run(self):
        self.git_client.diff.side_effect = GitDiffError("bad revision")

        result = await self.build().run(make_event("synchronized", before="aaa111", after="bbb222"))

        assert result.status == "no_diff"
        self.llm_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_synchronized_without_commits_ends_run(self):
        result = await self.build().run(make_event("synchronized"))

        assert result.status == "no_diff"
        self.git_client.diff.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("diff_result", [GiteaAPIError("not found", status_code=404), ""])
    async def test_diff_acquisition_failure_ends_run(self, diff_result):
        if isinstance(diff_result, Exception):
            self.gitea_client.get_pull_request_diff.side_effect = diff_result
        else:
            self.gitea_client.get_pull_request_diff.return_value = diff_result

        result = await self.build().run(make_event())

        assert result.status == "no_diff"
        assert self.sink.batches == []
        self.llm_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_diff_propagates(self):
        self.gitea_client.get_pull_request_diff.return_value = "<html>Not Found</html>"

        with pytest.raises(MalformedDiffError):
            await self.build().run(make_event())

    @pytest.mark.asyncio
    async def test_slow_fragment_times_out(self):
        orchestrator = self.build(make_config(fragment_timeout_seconds=0.05))

        def slow_review(file_change, hunk, pr_context):
            time.sleep(0.5)

        orchestrator.review_fragment = slow_review

        result = await orchestrator.run(make_event())

        assert result.status == "no_comments"
        assert result.fragments_failed == 1

    @pytest.mark.asyncio
    async def test_timed_out_fragments_keep_their_concurrency_slot(self):
        self.gitea_client.get_pull_request_diff.return_value = "".join(
            ADDED_FILE_DIFF.replace("greeting", f"greeting_{i}") for i in range(6)
        )
        orchestrator = self.build(make_config(max_concurrency=1, fragment_timeout_seconds=0.05))
        lock = threading.Lock()
        active = []
        peak = []

        def slow_review(file_change, hunk, pr_context):
            with lock:
                active.append(file_change.path)
                peak.append(len(active))
            time.sleep(0.2)
            with lock:
                active.remove(file_change.path)

        orchestrator.review_fragment = slow_review

        result = await orchestrator.run(make_event())

        assert result.fragments_total == 6
        assert result.fragments_failed == 6
        assert len(peak) == 6
        assert max(peak) == 1


class TestCommandLine:
    """Test the process entry point."""

    def test_unsupported_event_exits_zero(self, tmp_path, monkeypatch):
        event_file = tmp_path / "event.json"
        event_file.write_text(json.dumps({"action": "closed"}), encoding="utf-8")
        config = make_config()
        monkeypatch.setattr(cli.AppConfig, "from_env", classmethod(lambda cls: config))

        assert cli.main(["--event-path", str(event_file)]) == 0

    def test_invalid_config_exits_nonzero(self, tmp_path, monkeypatch):
        event_file = tmp_path / "event.json"
        event_file.write_text(json.dumps({"action": "opened"}), encoding="utf-8")
        config = make_config()
        config.gitea.token = None
        monkeypatch.setattr(cli.AppConfig, "from_env", classmethod(lambda cls: config))

        assert cli.main(["--event-path", str(event_file)]) == 1

    def test_uncaught_failure_exits_nonzero(self, tmp_path, monkeypatch):
        event_file = tmp_path / "event.json"
        event_file.write_text(json.dumps({
            "action": "opened",
            "number": 3,
            "repository": {"name": "shop", "owner": {"login": "acme"}},
        }), encoding="utf-8")
        config = make_config()
        monkeypatch.setattr(cli.AppConfig, "from_env", classmethod(lambda cls: config))
        monkeypatch.setattr(cli, "build_orchestrator", lambda cfg: _FailingOrchestrator())

        assert cli.main(["--event-path", str(event_file)]) == 1

    def test_invalid_log_level_reports_validation_error(self, tmp_path, monkeypatch, caplog):
        event_file = tmp_path / "event.json"
        event_file.write_text(json.dumps({"action": "closed"}), encoding="utf-8")
        config = make_config()
        config.logging.level = "LOUD"
        monkeypatch.setattr(cli.AppConfig, "from_env", classmethod(lambda cls: config))

        assert cli.main(["--event-path", str(event_file)]) == 1

        failure = [r for r in caplog.records if r.exc_info]
        assert isinstance(failure[0].exc_info[1], ValueError)
        assert "Invalid log level: LOUD" in str(failure[0].exc_info[1])

    def test_partial_review_is_reported(self, tmp_path, monkeypatch, caplog):
        event_file = tmp_path / "event.json"
        event_file.write_text(json.dumps({
            "action": "opened",
            "number": 3,
            "repository": {"name": "shop", "owner": {"login": "acme"}},
        }), encoding="utf-8")
        config = make_config()
        monkeypatch.setattr(cli.AppConfig, "from_env", classmethod(lambda cls: config))
        monkeypatch.setattr(cli, "build_orchestrator", lambda cfg: _PartialOrchestrator())
        caplog.set_level(logging.INFO)

        assert cli.main(["--event-path", str(event_file)]) == 0

        assert "a.py: 2 comments" in caplog.text
        assert "Review is partial" in caplog.text


class _PartialOrchestrator:
    async def run(self, event):
        return ReviewResult(
            status="commented",
            comments=[ReviewComment("a.py", 1, "One."), ReviewComment("a.py", 4, "Two.")],
            fragments_total=3,
            fragments_failed=1,
            posted=True,
        )


class _FailingOrchestrator:
    async def run(self, event):
        raise GiteaAPIError("PR lookup failed", status_code=500)
