"""
Tests for the keyword sentiment heuristic
"""

import pytest

from clubhub.schemas.feedback import SentimentClass
from clubhub.services.sentiment import POSITIVE_WORDS, analyze_sentiment


def test_two_positive_words():
    result = analyze_sentiment("This was a great and wonderful event")
    assert result.classification == SentimentClass.positive
    assert result.score == pytest.approx(0.2)
    assert result.confidence == pytest.approx(0.2)


def test_negative_words_in_improvements():
    result = analyze_sentiment("The talk covered the basics", "Audio was poor and the second half was boring")
    assert result.classification == SentimentClass.negative
    assert result.score == pytest.approx(-0.2)
    assert result.confidence == pytest.approx(0.2)


def test_balanced_text_is_neutral():
    result = analyze_sentiment("Great speakers but a terrible venue")
    assert result.classification == SentimentClass.neutral
    assert result.score == 0.0
    assert result.confidence == 0.0


def test_no_keywords_is_neutral():
    result = analyze_sentiment("We assembled a line-following robot", None)
    assert result.classification == SentimentClass.neutral
    assert result.score == 0.0


def test_keywords_match_as_substrings_and_count_once():
    # "loved" contains "love"; repeating "great" still counts once
    result = analyze_sentiment("Loved it, great great GREAT")
    assert result.score == pytest.approx(0.2)


def test_case_insensitive():
    assert analyze_sentiment("EXCELLENT session").classification == SentimentClass.positive


def test_score_is_capped():
    text = " ".join(POSITIVE_WORDS) + " extra text"
    result = analyze_sentiment(text)
    assert result.score == pytest.approx(1.0)
    assert result.confidence == pytest.approx(1.0)


def test_adding_positive_word_never_lowers_score():
    base = "The session ran on time and covered sensors"
    before = analyze_sentiment(base).score
    for word in POSITIVE_WORDS:
        assert analyze_sentiment(f"{base} {word}").score >= before
