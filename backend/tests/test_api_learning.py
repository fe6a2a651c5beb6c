"""
Learning API: reading log, vocabulary and word bank, including who may write
for which learner.
"""
from __future__ import annotations

import pytest

from backend.learning.dictionary import build_entry
from backend.tests.utils.api import client, login_as
from backend.web import wiring


pytestmark = pytest.mark.anyio("asyncio")


class _StubDictionary:
    async def lookup(self, word: str):
        if word != "brave":
            return None
        return build_entry(word, [{"word": "brave", "meanings": [{"definitions": [{"definition": "Ready to face danger."}]}]}])


@pytest.fixture
def learner() -> dict:
    repo = wiring.get_accounts_repo()
    repo.create_guardian_profile(guardian_id="g1", full_name="Fatmata", email="f@example.org")
    repo.create_guardian_profile(guardian_id="g2", full_name="Mohamed", email="m@example.org")
    wiring.set_dictionary(_StubDictionary())
    return repo.insert_learner(name="Aminata", age=10, grade_level="Primary 5", parent_id="g1", auth_user_id="auth-s1")


def _as_learner(c, learner: dict) -> None:
    login_as(c, sub=learner["auth_user_id"], roles=["student"], name=learner["name"], learner_id=learner["id"])


async def test_learner_logs_reading_session(learner):
    async with client() as c:
        _as_learner(c, learner)
        r = await c.post(
            "/api/reading/log-session",
            json={"studentId": learner["id"], "title": "Market Day", "durationMinutes": 6.6, "comprehensionScore": 120},
        )
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True}
    repo = wiring.get_learning_repo()
    assert repo.reading_activities[0]["duration_minutes"] == 7
    assert repo.reading_activities[0]["comprehension_score"] == 100
    assert repo.study_sessions[0]["subject"] == "Reading"


async def test_owning_guardian_may_log_for_child(learner):
    async with client() as c:
        login_as(c, sub="g1", roles=["parent"])
        r = await c.post("/api/reading/log-session", json={"studentId": learner["id"], "title": "Market Day"})
    assert r.status_code == 200


@pytest.mark.parametrize(
    "sub, roles, learner_id",
    [("g2", ["parent"], None), ("auth-other", ["student"], "s-other")],
)
async def test_other_callers_are_forbidden(learner, sub, roles, learner_id):
    async with client() as c:
        login_as(c, sub=sub, roles=roles, learner_id=learner_id)
        r = await c.post("/api/reading/log-session", json={"studentId": learner["id"], "title": "Market Day"})
    assert r.status_code == 403
    assert wiring.get_learning_repo().reading_activities == []


async def test_reading_log_validation(learner):
    async with client() as c:
        _as_learner(c, learner)
        missing_student = await c.post("/api/reading/log-session", json={"title": "Market Day"})
        missing_title = await c.post("/api/reading/log-session", json={"studentId": learner["id"]})
    assert missing_student.status_code == 400
    assert missing_student.json()["detail"] == "invalid_student_id"
    assert missing_title.status_code == 400
    assert missing_title.json()["detail"] == "invalid_title"


@pytest.mark.parametrize(
    "path, method",
    [("/api/reading/log-session", "post"), ("/api/learn-word", "post"), ("/api/learn-word", "patch"), ("/api/word-bank", "post")],
)
async def test_malformed_student_id_is_rejected_before_lookup(learner, monkeypatch, path, method):
    def unexpected(*args, **kwargs):
        raise AssertionError("repo must not be queried")

    monkeypatch.setattr(wiring.get_accounts_repo(), "get_learner_owned", unexpected)
    async with client() as c:
        login_as(c, sub="g1", roles=["parent"])
        r = await c.request(method.upper(), path, json={"studentId": "not-a-uuid", "title": "Market Day", "word": "brave"})
    assert r.status_code == 400
    assert r.json() == {"error": "bad_request", "detail": "invalid_uuid"}
    assert wiring.get_learning_repo().reading_activities == []


async def test_learn_word_then_mark_mastered(learner):
    async with client() as c:
        _as_learner(c, learner)
        learned = await c.post("/api/learn-word", json={"studentId": learner["id"], "word": " Brave "})
        assert learned.status_code == 200, learned.text
        details = learned.json()["wordDetails"]
        assert details["word"] == "brave"
        assert details["definition"] == "Ready to face danger."
        assert details["timesReviewed"] == 1
        assert details["alreadyMastered"] is False

        outcome = await c.patch("/api/learn-word", json={"studentId": learner["id"], "word": "brave", "outcome": "mastered"})
    assert outcome.status_code == 200
    row = wiring.get_learning_repo().words[(learner["id"], "brave")]
    assert row["mastered"] is True
    assert row["times_reviewed"] == 2


async def test_learn_unknown_word_is_not_found(learner):
    async with client() as c:
        _as_learner(c, learner)
        r = await c.post("/api/learn-word", json={"studentId": learner["id"], "word": "zzyzx"})
    assert r.status_code == 404
    assert r.json()["error"] == "word_not_found"
    assert "dictionary" in r.json()["detail"]


async def test_outcome_for_unsaved_word_is_not_found(learner):
    async with client() as c:
        _as_learner(c, learner)
        r = await c.patch("/api/learn-word", json={"studentId": learner["id"], "word": "brave", "outcome": "mastered"})
        bad = await c.patch("/api/learn-word", json={"studentId": learner["id"], "word": "brave"})
    assert r.status_code == 404
    assert bad.status_code == 400
    assert bad.json()["detail"] == "invalid_input"


async def test_word_bank_logs_practice(learner):
    async with client() as c:
        _as_learner(c, learner)
        r = await c.post("/api/word-bank", json={"studentId": learner["id"], "word": "Mango", "markMastered": True})
        blank = await c.post("/api/word-bank", json={"studentId": learner["id"], "word": "  "})
    assert r.status_code == 200
    assert blank.status_code == 400
    repo = wiring.get_learning_repo()
    assert repo.words[(learner["id"], "mango")]["mastered"] is True
    assert repo.word_sessions[0]["payload"] == {"source": "pronunciation_tab"}
    assert [s["subject"] for s in repo.study_sessions] == ["Vocabulary"]


async def test_cross_site_write_is_rejected(learner):
    async with client() as c:
        _as_learner(c, learner)
        r = await c.post(
            "/api/word-bank",
            json={"studentId": learner["id"], "word": "mango"},
            headers={"Referer": "https://evil.example/page"},
        )
    assert r.status_code == 403
    assert r.json()["detail"] == "csrf_violation"
