from __future__ import annotations

import pytest

from backend.identity_access.domain import (
    ALLOWED_ROLES,
    derive_login_key,
    normalize_learner_name,
)


def test_login_key_for_ama_lovely():
    assert derive_login_key("g1", "Ama Lovely") == "g1+amalovely@miticha.internal"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Aminata", "aminata"),
        ("  Mary  Jane ", "maryjane"),
        ("Abu\tBakarr\nKoroma", "abubakarrkoroma"),
    ],
)
def test_normalize_learner_name(raw, expected):
    assert normalize_learner_name(raw) == expected


def test_login_key_domain_override(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CHILD_LOGIN_DOMAIN", "Kids.Example")
    assert derive_login_key("g1", "Ama") == "g1+ama@kids.example"


def test_explicit_domain_wins():
    assert derive_login_key("g1", "Ama", domain="school.test") == "g1+ama@school.test"


@pytest.mark.parametrize("guardian, name", [("", "Ama"), ("g1", "   "), ("g1", "")])
def test_login_key_rejects_empty_parts(guardian, name):
    with pytest.raises(ValueError):
        derive_login_key(guardian, name)


def test_allowed_roles_are_immutable():
    assert ALLOWED_ROLES == {"parent", "student"}
    assert isinstance(ALLOWED_ROLES, frozenset)
