"""Tests for TaskClassifier.

Tests cover:
- Category detection and confidence
- Empty and unmatched messages
- Lexicographic tie-break between equally scored categories
- Complexity buckets per category family
- Tool-need detection and token estimate
- Word-boundary matching of short keywords
"""

from __future__ import annotations

import pytest

from provider_router.routing.classifier import (
    Complexity,
    TaskCategory,
    TaskClassification,
    TaskClassifier,
    estimate_tokens,
    neutral_classification,
)


# ------------------------------------------------------------------ #
# Category and confidence
# ------------------------------------------------------------------ #


def test_code_generation_request(classifier: TaskClassifier):
    """A plain 'write a function' request is code generation, never low complexity."""
    result = classifier.classify("write a function to reverse a string")

    assert result.type == TaskCategory.CODE_GENERATION
    assert result.confidence == 1.0
    assert result.complexity == Complexity.MEDIUM
    assert result.requires_tools is False
    assert result.estimated_tokens == 9


def test_empty_message_is_neutral(classifier: TaskClassifier):
    result = classifier.classify("")

    assert result.type == TaskCategory.GENERAL_CONVERSATION
    assert result.confidence == 0.3
    assert result.complexity == Complexity.LOW
    assert result.estimated_tokens == 0


def test_unmatched_message_gets_low_confidence(classifier: TaskClassifier):
    result = classifier.classify("this is nothing special")

    assert result.type == TaskCategory.GENERAL_CONVERSATION
    assert result.confidence == 0.3


def test_greeting_matches_general_conversation(classifier: TaskClassifier):
    result = classifier.classify("hello there")

    assert result.type == TaskCategory.GENERAL_CONVERSATION
    assert result.confidence == 1.0


def test_confidence_is_share_of_matches(classifier: TaskClassifier):
    """Two translation patterns and nothing else -> full confidence."""
    result = classifier.classify("translate this into spanish")

    assert result.type == TaskCategory.TRANSLATION
    assert result.confidence == 1.0
    assert classifier.score("translate this into spanish")[TaskCategory.TRANSLATION] == 2


def test_tie_goes_to_smallest_category_value(classifier: TaskClassifier):
    """'summarize' (summarization) and 'dataset' (data-analysis) score one each."""
    scores = classifier.score("summarize the dataset")
    assert scores[TaskCategory.SUMMARIZATION] == scores[TaskCategory.DATA_ANALYSIS] == 1

    result = classifier.classify("summarize the dataset")

    assert result.type == TaskCategory.DATA_ANALYSIS
    assert result.confidence == 0.5


def test_classify_is_pure(classifier: TaskClassifier):
    message = "Why does my python code throw an exception? Please debug it."

    assert classifier.classify(message) == classifier.classify(message)
    assert TaskClassifier().classify(message) == classifier.classify(message)


# ------------------------------------------------------------------ #
# Word boundaries
# ------------------------------------------------------------------ #


def test_hi_inside_word_is_not_a_greeting(classifier: TaskClassifier):
    scores = classifier.score("this thing")
    assert scores[TaskCategory.GENERAL_CONVERSATION] == 0


def test_go_verb_is_not_a_language(classifier: TaskClassifier):
    result = classifier.classify("let's go to the park")

    assert result.type == TaskCategory.GENERAL_CONVERSATION
    assert result.confidence == 0.3


def test_golang_is_a_language(classifier: TaskClassifier):
    assert classifier.score("golang channels")[TaskCategory.CODE_GENERATION] == 1


# ------------------------------------------------------------------ #
# Complexity
# ------------------------------------------------------------------ #


def test_long_code_task_is_high(classifier: TaskClassifier):
    result = classifier.classify("write a function " + "z" * 600)

    assert result.type == TaskCategory.CODE_GENERATION
    assert result.complexity == Complexity.HIGH


@pytest.mark.parametrize(
    ("padding", "expected"),
    [
        (0, Complexity.LOW),
        (120, Complexity.MEDIUM),
        (320, Complexity.HIGH),
    ],
)
def test_creative_complexity_buckets(classifier: TaskClassifier, padding: int, expected: Complexity):
    result = classifier.classify("write a story about a dragon " + "z" * padding)

    assert result.type == TaskCategory.CREATIVE_WRITING
    assert result.complexity == expected


@pytest.mark.parametrize(
    ("length", "expected"),
    [
        (150, Complexity.LOW),
        (151, Complexity.MEDIUM),
        (400, Complexity.MEDIUM),
        (401, Complexity.HIGH),
    ],
)
def test_other_task_complexity_thresholds(length: int, expected: Complexity):
    message = "z" * length
    assert TaskClassifier.estimate_complexity(message, TaskCategory.TRANSLATION) == expected


def test_code_task_never_low():
    assert TaskClassifier.estimate_complexity("", TaskCategory.CODE_REVIEW) == Complexity.MEDIUM


# ------------------------------------------------------------------ #
# Tools, tokens, helpers
# ------------------------------------------------------------------ #


def test_weather_question_requires_tools(classifier: TaskClassifier):
    assert classifier.classify("what is the weather today").requires_tools is True


def test_plain_question_needs_no_tools(classifier: TaskClassifier):
    assert classifier.classify("tell me about rome").requires_tools is False


@pytest.mark.parametrize(("text", "tokens"), [("", 0), ("a", 1), ("abcd", 1), ("abcde", 2)])
def test_estimate_tokens_rounds_up(text: str, tokens: int):
    assert estimate_tokens(text) == tokens


def test_neutral_classification():
    result = neutral_classification("12345678")

    assert result.type == TaskCategory.GENERAL_CONVERSATION
    assert result.confidence == 0.3
    assert result.requires_tools is False
    assert result.estimated_tokens == 2


def test_describe_every_category():
    assert TaskClassifier.describe(TaskCategory.CODE_GENERATION) == "Writing code"
    for category in TaskCategory:
        assert TaskClassifier.describe(category)


def test_classification_rejects_out_of_range_confidence():
    with pytest.raises(ValueError):
        TaskClassification(
            type=TaskCategory.RESEARCH,
            confidence=1.5,
            complexity=Complexity.LOW,
            requires_tools=False,
            estimated_tokens=0,
        )
