from __future__ import annotations

from feedback_engine.issue_extraction import GENERIC_ISSUE_PHRASE, KeywordIssueExtractor, describe_issues


def test_wifi_and_breakfast_are_named() -> None:
    issues = KeywordIssueExtractor().extract("The WiFi kept dropping and breakfast was cold.")
    assert issues == ["WiFi connectivity", "breakfast service"]


def test_matching_is_case_insensitive_and_ordered_by_table() -> None:
    issues = KeywordIssueExtractor().extract("LOUD music all night, and the shower had no PRESSURE")
    assert issues == ["water pressure", "noise levels"]


def test_keywords_match_whole_words_only() -> None:
    extractor = KeywordIssueExtractor()
    assert extractor.extract("Sat poolside all day") == []
    assert extractor.extract("The desk was well staffed and we were pooling rides") == []
    assert extractor.extract("Both pools were closed") == ["pool facilities"]
    assert extractor.extract("Spotless and quiet") == []


def test_room_service_is_not_also_staff_service() -> None:
    extractor = KeywordIssueExtractor()
    assert extractor.extract("Room service was slow") == ["room service timing"]
    assert extractor.extract("Room service was slow and the service at reception was rude") == [
        "room service timing",
        "staff service",
    ]


def test_plural_and_longer_forms_of_keywords_match() -> None:
    extractor = KeywordIssueExtractor()
    assert extractor.extract("The air conditioner rattled") == ["air conditioning"]
    assert extractor.extract("No cleaning for three days, two noisy neighbours") == [
        "room cleanliness",
        "noise levels",
    ]


def test_custom_table_replaces_default() -> None:
    extractor = KeywordIssueExtractor([("elevator", ("lift", "elevator"))])
    assert extractor.extract("The lift was broken and WiFi slow") == ["elevator"]


def test_describe_issues_falls_back_to_generic_phrase() -> None:
    assert describe_issues([]) == GENERIC_ISSUE_PHRASE
    assert describe_issues(["parking facilities"]) == "parking facilities"
    assert describe_issues(["a", "b", "c"]) == "a, b and c"
