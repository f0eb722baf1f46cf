"""tests/test_classifier.py

Unit tests for the relevance classifier (service_director/classifier.py).
"""

from __future__ import annotations

import json

import httpx
import pytest

from service_director.classifier import (
    RelevanceClassifier,
    build_classifier_instruction,
    parse_scores,
)
from service_director.errors import ClassificationError
from service_director.models import RelevanceScore


class TestClassify:
    """End-to-end classify() against a mocked text model."""

    def test_returns_scores_in_model_order(self, make_llm) -> None:
        llm = make_llm(
            [
                '[{"service": "Weather", "applicability": 10},'
                ' {"service": "Ticketing", "applicability": 95}]'
            ]
        )
        classifier = RelevanceClassifier(llm, ["Ticketing", "Weather"])

        scores = classifier.classify("find me a concert")

        assert scores == [
            RelevanceScore("Weather", 10),
            RelevanceScore("Ticketing", 95),
        ]

    def test_does_not_filter_low_scores(self, make_llm) -> None:
        llm = make_llm(['[{"service": "Ticketing", "applicability": 0}]'])
        scores = RelevanceClassifier(llm, ["Ticketing"]).classify("hello")
        assert scores == [RelevanceScore("Ticketing", 0)]

    def test_instruction_lists_backends(self, make_llm) -> None:
        llm = make_llm(["[]"])
        RelevanceClassifier(llm, ["Ticketing", "Weather"]).classify("concert tonight")

        body = json.loads(llm.requests[0].content)
        system = body["messages"][0]["content"]
        assert '"Ticketing"' in system and '"Weather"' in system
        assert body["messages"][-1] == {"role": "user", "content": "concert tonight"}
        assert body["max_tokens"] == 300
        assert body["temperature"] == 0.5

    def test_remote_failure_becomes_classification_error(self, make_llm) -> None:
        llm = make_llm(lambda request: httpx.Response(500))
        with pytest.raises(ClassificationError):
            RelevanceClassifier(llm, ["Ticketing"]).classify("concert")

    def test_malformed_answer_becomes_classification_error(self, make_llm) -> None:
        llm = make_llm(["Ticketing looks good!"])
        with pytest.raises(ClassificationError):
            RelevanceClassifier(llm, ["Ticketing"]).classify("concert")


class TestParseScores:
    """Strict parsing rules."""

    def test_fenced_json(self) -> None:
        raw = '```json\n[{"service": "Ticketing", "applicability": 92}]\n```'
        assert parse_scores(raw) == [RelevanceScore("Ticketing", 92)]

    def test_name_alias_and_string_score(self) -> None:
        raw = '[{"name": " Ticketing ", "applicability": "95"}]'
        assert parse_scores(raw) == [RelevanceScore("Ticketing", 95)]

    def test_integral_float_accepted(self) -> None:
        assert parse_scores('[{"service": "A", "applicability": 90.0}]') == [
            RelevanceScore("A", 90)
        ]

    def test_empty_list(self) -> None:
        assert parse_scores("[]") == []

    @pytest.mark.parametrize(
        "raw",
        [
            '{"service": "A", "applicability": 90}',
            '[{"service": "A", "applicability": 101}]',
            '[{"service": "A", "applicability": -1}]',
            '[{"service": "A", "applicability": 90.5}]',
            '[{"service": "A", "applicability": "high"}]',
            '[{"service": "A", "applicability": true}]',
            '[{"service": "A"}]',
            '[{"applicability": 90}]',
            '[{"service": "", "applicability": 90}]',
            '["A"]',
            "not json",
        ],
    )
    def test_any_bad_entry_fails_whole_call(self, raw: str) -> None:
        with pytest.raises(ClassificationError):
            parse_scores(raw)

    def test_one_bad_entry_among_good_ones_fails(self) -> None:
        raw = (
            '[{"service": "A", "applicability": 95},'
            ' {"service": "B", "applicability": "n/a"}]'
        )
        with pytest.raises(ClassificationError):
            parse_scores(raw)


def test_instruction_mentions_schema() -> None:
    text = build_classifier_instruction(["Ticketing"])
    assert '"applicability"' in text
    assert "0" in text and "100" in text
