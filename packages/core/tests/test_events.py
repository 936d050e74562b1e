"""Tests for event parsing and the self-comment guard."""

import json

from ghagent_core.events import EventContext, should_process
from ghagent_core.markers import with_markers


def comment_payload(body, pr=False):
    issue = {"number": 4, "title": "Crash on start"}
    if pr:
        issue["pull_request"] = {"url": "https://api.github.com/repos/o/r/pulls/4"}
    return {
        "action": "created",
        "issue": issue,
        "comment": {"body": body, "user": {"login": "alice", "type": "User"}},
        "sender": {"login": "alice", "type": "User"},
        "repository": {"full_name": "o/r"},
    }


class TestFromPayload:
    def test_issue_comment(self):
        event = EventContext.from_payload("issue_comment", comment_payload("hi"))
        assert event.repo == "o/r"
        assert event.number == 4
        assert event.comment_body == "hi"
        assert event.actor == "alice"
        assert event.title == "Crash on start"
        assert not event.is_pull_request

    def test_comment_on_pull_request(self):
        event = EventContext.from_payload("issue_comment", comment_payload("hi", pr=True))
        assert event.is_pull_request

    def test_pull_request_event(self):
        payload = {"action": "opened", "pull_request": {"number": 9, "title": "Add x"}, "sender": {"login": "bob"}}
        event = EventContext.from_payload("pull_request", payload, repo="o/r")
        assert event.number == 9
        assert event.is_pull_request
        assert event.comment_body is None

    def test_from_file(self, tmp_path):
        path = tmp_path / "event.json"
        path.write_text(json.dumps(comment_payload("hi")))
        assert EventContext.from_file("issue_comment", str(path)).number == 4


class TestShouldProcess:
    def test_non_comment_event(self):
        assert should_process(EventContext(event_name="issues", repo="o/r", number=1))

    def test_human_comment(self):
        assert should_process(EventContext(event_name="issue_comment", repo="o/r", comment_body="please fix"))

    def test_agent_comment_skipped(self):
        body = with_markers("Here is my answer", "issue-chatter", 1)
        assert not should_process(EventContext(event_name="issue_comment", repo="o/r", comment_body=body))

    def test_agent_comment_with_trigger_processed(self):
        body = with_markers("@coder implement it", "issue-chatter", 1, trigger=True)
        assert should_process(EventContext(event_name="issue_comment", repo="o/r", comment_body=body))
