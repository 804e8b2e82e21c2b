"""
Tests for turning raw model output into commit message candidates.

Run with:
    pytest tests/test_candidates.py -v
"""

import pytest

from aicommit.errors import ErrorKind, ProviderError
from aicommit.providers.candidates import (
    dedupe, extract_candidates, parse_response, score_message, select_best, validate_commit_message,
)


class TestParseResponse:

    @pytest.mark.parametrize("raw, expected", [
        pytest.param("1. feat: add login", ["feat: add login"], id="numbered"),
        pytest.param("2) fix: handle null", ["fix: handle null"], id="paren-numbered"),
        pytest.param("- docs: update readme", ["docs: update readme"], id="bullet"),
        pytest.param("[Option 1] feat(cli): add flag", ["feat(cli): add flag"], id="option-label"),
        pytest.param('"chore: bump deps"', ["chore: bump deps"], id="quoted"),
        pytest.param("`fix(api): handle timeout`", ["fix(api): handle timeout"], id="backticks"),
        pytest.param("```\nfeat: one\n```", ["feat: one"], id="fence"),
        pytest.param("\n\n  \n", [], id="blank"),
    ])
    def test_cleans_lines(self, raw, expected):
        assert parse_response(raw) == expected

    @pytest.mark.parametrize("content", [None, 42, {"text": "feat: x"}])
    def test_non_string_is_malformed(self, content):
        with pytest.raises(ProviderError) as exc_info:
            parse_response(content, "Ollama")
        assert exc_info.value.kind == ErrorKind.MALFORMED_RESPONSE
        assert "Ollama" in str(exc_info.value)


class TestValidateCommitMessage:

    @pytest.mark.parametrize("message", [
        "feat: add login endpoint",
        "fix(api): handle null response",
        "feat(api)!: drop v1 routes",
        "refactor!: rename config keys",
        "revert: undo cache change",
    ])
    def test_valid_conventional(self, message):
        assert validate_commit_message(message) == (True, "")

    @pytest.mark.parametrize("message, reason", [
        ("", "Empty"),
        ("   ", "Empty"),
        ("feat: x", "too short"),
        ("feat: " + "a" * 250, "longer than"),
        ("feat: first\nsecond line", "multiple lines"),
        ("* feat: bullet left in", "special character"),
        ("Add login endpoint", "conventional"),
        ("feature: add login", "conventional"),
        ("feat:missing space", "conventional"),
    ])
    def test_invalid(self, message, reason):
        valid, why = validate_commit_message(message)
        assert valid is False
        assert reason.lower() in why.lower()

    def test_plain_subject_allowed_when_not_conventional(self):
        assert validate_commit_message("Add login endpoint", conventional=False)[0] is True

    def test_custom_max_length(self):
        assert validate_commit_message("feat: add the login page", max_length=15)[0] is False


class TestExtractCandidates:

    def test_keeps_valid_in_order_without_duplicates(self):
        content = (
            "Here are some commit messages:\n"
            "1. feat(auth): add login endpoint\n"
            "2. fix(auth): validate token expiry\n"
            "3. feat(auth): add login endpoint\n"
            "4. nonsense\n"
        )
        assert extract_candidates(content) == [
            "feat(auth): add login endpoint",
            "fix(auth): validate token expiry",
        ]

    def test_limit(self):
        content = "feat: add first thing\nfeat: add second thing\nfeat: add third thing"
        assert extract_candidates(content, limit=2) == ["feat: add first thing", "feat: add second thing"]

    def test_empty_content_gives_no_candidates(self):
        assert extract_candidates("") == []

    def test_max_length_filters_long_subjects(self):
        long_subject = "feat(api): " + "expand pagination " * 5
        content = f"{long_subject.strip()}\nfeat(api): add cursor pagination"

        assert extract_candidates(content, max_length=50) == ["feat(api): add cursor pagination"]
        assert len(extract_candidates(content)) == 2

    def test_dedupe_keeps_first_occurrence(self):
        assert dedupe(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


class TestSelectBest:

    @pytest.mark.parametrize("message, score", [
        ("feat(api): add cursor pagination", 15),
        ("Add cursor pagination to the API", 5),
        ("feat: add x", 12),
        ("Fix typo x", 2),
        ("Rework " + "pagination " * 14, 0),
    ])
    def test_score(self, message, score):
        assert score_message(message) == score

    def test_conventional_ranked_first(self):
        messages = ["Add cursor pagination to the API", "feat(api): add cursor pagination"]
        assert select_best(messages, 2) == ["feat(api): add cursor pagination", "Add cursor pagination to the API"]

    def test_capped_at_count(self):
        messages = [f"feat(api): add endpoint number {i}" for i in range(6)]
        assert select_best(messages, 3) == messages[:3]

    def test_ties_keep_order_and_duplicates_collapse(self):
        messages = ["fix(db): close idle connections", "feat(db): add pool size", "fix(db): close idle connections"]
        assert select_best(messages, 5) == ["fix(db): close idle connections", "feat(db): add pool size"]
