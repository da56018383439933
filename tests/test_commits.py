"""Tests for git_deployer.commits module."""

import asyncio
from pathlib import Path

from git_deployer.commits import (
    CommitReporter,
    parse_commit_log,
    parse_commit_record,
    pull_request_url,
)
from git_deployer.git import FIELD_SEP, LOG_FORMAT, RECORD_SEP, GitRepository
from git_deployer.models import Commit, EnvironmentMapping

HEAD = "a" * 40
DEPLOYED = "b" * 40


def record(full_hash, message, author="Ada", timestamp="2026-03-01T10:00:00+01:00"):
    return FIELD_SEP.join([full_hash, full_hash[:7], message, author, timestamp]) + RECORD_SEP


def make_commit(message):
    return Commit(
        full_hash=HEAD,
        short_hash=HEAD[:7],
        message=message,
        author="Ada",
        timestamp="2026-03-01T10:00:00+01:00",
    )


class TestParseCommitLog:
    def test_parses_records_in_order(self):
        output = record("1" * 40, "Second") + "\n" + record("2" * 40, "First") + "\n"
        commits = parse_commit_log(output)
        assert [c.message for c in commits] == ["Second", "First"]
        assert commits[0].full_hash == "1" * 40
        assert commits[0].short_hash == "1" * 7
        assert commits[0].author == "Ada"
        assert commits[0].timestamp == "2026-03-01T10:00:00+01:00"
        assert commits[0].deployed is False

    def test_message_with_pipes_and_colons(self):
        commits = parse_commit_log(record("1" * 40, "fix: a | b | c"))
        assert commits[0].message == "fix: a | b | c"

    def test_crlf_line_endings(self):
        output = record("1" * 40, "One") + "\r\n" + record("2" * 40, "Two") + "\r\n"
        commits = parse_commit_log(output)
        assert [c.full_hash for c in commits] == ["1" * 40, "2" * 40]

    def test_empty_output(self):
        assert parse_commit_log("") == []
        assert parse_commit_log("\n\n") == []

    def test_malformed_record_becomes_placeholder(self):
        output = "garbage without separators" + RECORD_SEP + record("1" * 40, "Good")
        commits = parse_commit_log(output)
        assert len(commits) == 2
        assert commits[0].full_hash == "unknown"
        assert "parse error" in commits[0].message
        assert commits[1].message == "Good"

    def test_deployed_flag(self):
        commits = parse_commit_log(record("1" * 40, "Shipped"), deployed=True)
        assert commits[0].deployed is True

    def test_record_missing_hash_is_placeholder(self):
        commit = parse_commit_record(FIELD_SEP.join(["", "", "msg", "a", "t"]))
        assert commit.short_hash == "unknown"


class TestPullRequestUrl:
    def test_merge_commit(self):
        commit = make_commit("Merge pull request #42 from acme/feature")
        assert commit.pull_request_number == 42
        assert (
            pull_request_url(commit, "https://github.com/acme/shop.git")
            == "https://github.com/acme/shop/pull/42"
        )

    def test_scp_url(self):
        commit = make_commit("Merge pull request #7 from acme/fix")
        assert (
            pull_request_url(commit, "git@github.com:acme/shop.git")
            == "https://github.com/acme/shop/pull/7"
        )

    def test_plain_commit(self):
        assert pull_request_url(make_commit("Fix typo"), "https://github.com/acme/shop") is None

    def test_non_github_remote(self):
        commit = make_commit("Merge pull request #3 from acme/x")
        assert pull_request_url(commit, "https://gitlab.com/acme/shop.git") is None


def make_reporter(queue):
    return CommitReporter(GitRepository(queue, Path("/repo")))


class TestCommitReporter:
    def test_never_deployed_returns_empty(self, scripted_queue):
        scripted_queue.on("tag", "--list", "prod")
        commits = asyncio.run(
            make_reporter(scripted_queue).commits_between(EnvironmentMapping("prod", "master"))
        )
        assert commits == []
        assert scripted_queue.called("log") == []

    def test_range_from_tag_to_remote_branch(self, scripted_queue):
        scripted_queue.environment("prod", "master", HEAD, deployed=DEPLOYED, behind=2)
        log_args = (
            "log",
            f"--format={LOG_FORMAT}",
            f"{DEPLOYED}..refs/remotes/origin/master",
            "--",
        )
        scripted_queue.on(*log_args, stdout=record("1" * 40, "New") + record("2" * 40, "Older"))

        commits = asyncio.run(
            make_reporter(scripted_queue).commits_between(EnvironmentMapping("prod", "master"))
        )

        assert [c.message for c in commits] == ["New", "Older"]
        assert scripted_queue.calls[0] == ("fetch", "--all", "--tags", "--force")
        assert log_args in scripted_queue.calls

    def test_ahead_lists_commits_only_on_tag(self, scripted_queue):
        scripted_queue.environment("prod", "master", HEAD, deployed=DEPLOYED, ahead=1)
        log_args = (
            "log",
            f"--format={LOG_FORMAT}",
            f"refs/remotes/origin/master..{DEPLOYED}",
            "--",
        )
        scripted_queue.on(*log_args, stdout=record(DEPLOYED, "Reverted on branch"))

        commits = asyncio.run(
            make_reporter(scripted_queue).commits_between(
                EnvironmentMapping("prod", "master"), ahead=True
            )
        )

        assert [c.full_hash for c in commits] == [DEPLOYED]
        assert commits[0].deployed is True
        assert log_args in scripted_queue.calls

    def test_up_to_date_returns_empty(self, scripted_queue):
        scripted_queue.environment("prod", "master", HEAD, deployed=HEAD)
        commits = asyncio.run(
            make_reporter(scripted_queue).commits_between(EnvironmentMapping("prod", "master"))
        )
        assert commits == []

    def test_recent_deployed_commits(self, scripted_queue):
        scripted_queue.environment("prod", "master", HEAD, deployed=DEPLOYED)
        log_args = ("log", f"--format={LOG_FORMAT}", "--since=7.days", DEPLOYED, "--")
        scripted_queue.on(*log_args, stdout=record(DEPLOYED, "Shipped"))

        commits = asyncio.run(
            make_reporter(scripted_queue).recent_deployed_commits(
                EnvironmentMapping("prod", "master"), 7
            )
        )

        assert len(commits) == 1
        assert commits[0].deployed is True
        assert commits[0].full_hash == DEPLOYED
