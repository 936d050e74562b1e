"""Tests for context file rendering."""

from unittest.mock import MagicMock

from ghagent_core.config import UserConfig
from ghagent_core.context import render_issue_context, render_pr_diff, write_context
from ghagent_core.events import EventContext
from ghagent_core.modes import detect_mode


def _label(name):
    label = MagicMock()
    label.name = name
    return label


def _issue():
    issue = MagicMock()
    issue.number = 7
    issue.title = "Crash on start"
    issue.state = "open"
    issue.body = "It crashes."
    issue.user.login = "alice"
    issue.labels = [_label("bug")]
    return issue


def _file(name, patch="@@ -1 +1 @@\n-a\n+b"):
    f = MagicMock()
    f.filename = name
    f.status = "modified"
    f.additions = 1
    f.deletions = 1
    f.patch = patch
    return f


def test_render_issue_context():
    text = render_issue_context(_issue(), ["first", "second"])
    assert text.startswith("# Issue #7: Crash on start")
    assert "- Labels: bug" in text
    assert "### Comment 2\n\nsecond" in text


def test_render_issue_context_truncates_long_comments():
    text = render_issue_context(_issue(), ["x" * 5000])
    assert "[comment truncated]" in text


def test_render_pr_diff_binary_file():
    text = render_pr_diff([_file("logo.png", patch=None), _file("main.py")])
    assert "_No textual diff (binary or too large)._" in text
    assert "```diff" in text


def test_render_pr_diff_respects_total_budget():
    files = [_file(f"f{i}.py", patch="+" * 20_000) for i in range(4)]
    text = render_pr_diff(files)
    assert text.count("```diff") == 3
    assert "_Diff omitted: context size limit reached._" in text


def test_write_context_for_issue(tmp_path):
    platform = MagicMock()
    platform.list_comment_bodies.return_value = ["hello"]
    platform.get_issue.return_value = _issue()
    agent = detect_mode(EventContext(event_name="issues", repo="o/r", number=7), UserConfig())

    path = write_context(platform, agent, 7, tmp_path)
    assert path == tmp_path / ".github-agent-data" / "issue-context.md"
    assert "Crash on start" in path.read_text()
    platform.get_pull.assert_not_called()


def test_write_context_for_pull_request(tmp_path):
    platform = MagicMock()
    platform.list_comment_bodies.return_value = []
    pull = platform.get_pull.return_value
    pull.number, pull.title, pull.body, pull.state, pull.draft = 4, "Add x", "", "open", True
    pull.user.login = "bob"
    pull.base.ref, pull.head.ref = "main", "feature-x"
    platform.list_pull_files.return_value = [_file("x.py")]
    event = EventContext(event_name="pull_request", repo="o/r", number=4, is_pull_request=True)
    agent = detect_mode(event, UserConfig())

    text = write_context(platform, agent, 4, tmp_path).read_text()
    assert "Base: `main` <- Head: `feature-x`" in text
    assert "(draft)" in text
    assert "x.py" in text


def test_write_context_without_number(tmp_path):
    agent = detect_mode(EventContext(event_name="issues", repo="o/r"), UserConfig())
    assert write_context(MagicMock(), agent, None, tmp_path) is None
