from __future__ import annotations

import math

from backend.learning.usecases.dashboard import NO_DATA_SUMMARY, compare_children_summary, normalize_children


AMA = {"id": "s-1", "name": "Ama", "wordsLearned": 10, "hoursLearned": 2.5, "weeklyProgress": 80, "totalSessions": 5, "recentWords": ["brave"]}
KOFI = {"id": "s-2", "name": "Kofi", "wordsLearned": 2, "hoursLearned": 0, "weeklyProgress": 10, "totalSessions": 0, "recentWords": []}


def test_empty_input_returns_no_data_message():
    assert compare_children_summary([]) == NO_DATA_SUMMARY


def test_normalize_children_fills_defaults():
    children = normalize_children([{"name": "  ", "wordsLearned": math.nan, "hoursLearned": True, "recentWords": ["a", " ", 3]}, "junk"])

    assert children[0].name == "Unknown Learner"
    assert children[0].id == "child-0"
    assert children[0].wordsLearned == 0
    assert children[0].hoursLearned == 0
    assert children[0].recentWords == ["a"]
    assert children[1].id == "child-1"


def test_two_children_summary_sections():
    summary = compare_children_summary([AMA, KOFI])
    lines = summary.split("\n")

    assert lines[0] == "**Moe compared 2 learners.**"
    assert "- **Vocabulary leader:** Ama with 10 words logged." in lines
    assert "- **Study-time leader:** Ama at 2.5 hours total." in lines
    assert "- **Average pace:** 6 words, 1.3 hours, and 45% weekly streaks." in lines
    assert "- **Vocabulary gap:** Ama is ahead of Kofi by 8 words." in lines
    assert "- **Practice gap:** Ama has 2.5 hours more study time than Kofi." in lines
    assert "### Where Support Is Needed" in lines
    assert any(line.startswith("- Vocabulary boost needed for Kofi.") for line in lines)
    assert any(line.startswith("- Weekly streaks are under 25% for Kofi.") for line in lines)
    assert any(line.startswith("- Missing study time: Kofi barely logged") for line in lines)
    assert "- Ama is on track, use their progress to motivate siblings." in lines
    assert lines[-3:] == [
        "- Schedule a 15-minute family study block to help everyone log fresh progress.",
        "- Rotate Moe's Word Bank missions so each learner practices pronunciation and spelling.",
        "- Revisit goals in the parent dashboard next week to see how the gaps close.",
    ]


def test_single_child_has_no_gap_lines_and_singular_wording():
    summary = compare_children_summary([{"name": "Ama", "wordsLearned": 1, "hoursLearned": 1, "weeklyProgress": 50, "totalSessions": 2}])

    assert summary.startswith("**Moe compared 1 learner.**")
    assert "with 1 word logged." in summary
    assert "at 1 hour total." in summary
    assert "gap:**" not in summary
    assert "### Where Support Is Needed" not in summary


def test_recent_words_win_for_child_below_average():
    kofi = dict(KOFI, recentWords=["sun", "moon", "star", "sky"])

    summary = compare_children_summary([AMA, kofi])

    assert "- Kofi added 4 new words: sun, moon, star." in summary
