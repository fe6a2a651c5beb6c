"""
Managed-account provisioner behavior with in-memory collaborators.

Covers the linked lifecycle (identity + learner row), ownership denial,
partial updates and guardian resolution.
"""
from __future__ import annotations

import pytest

from backend.accounts.repo import InMemoryAccountsRepo, RepoError
from backend.identity_access.provisioner import (
    LearnerUpdate,
    ManagedAccountProvisioner,
    ProvisionErrorKind,
)
from backend.tests.utils.fakes import FakeIdentityAdmin


GUARDIAN = "g1"
OTHER_GUARDIAN = "g2"


@pytest.fixture
def repo() -> InMemoryAccountsRepo:
    r = InMemoryAccountsRepo()
    r.create_guardian_profile(guardian_id=GUARDIAN, full_name="Fatmata Kamara", email="fatmata@example.org")
    r.create_guardian_profile(guardian_id=OTHER_GUARDIAN, full_name="Mohamed Sesay", email="mohamed@example.org")
    return r


@pytest.fixture
def identity(repo: InMemoryAccountsRepo) -> FakeIdentityAdmin:
    return FakeIdentityAdmin(repo)


@pytest.fixture
def provisioner(identity: FakeIdentityAdmin, repo: InMemoryAccountsRepo) -> ManagedAccountProvisioner:
    return ManagedAccountProvisioner(identity=identity, repo=repo)


def _create(provisioner: ManagedAccountProvisioner, guardian: str = GUARDIAN, name: str = "Aminata"):
    return provisioner.create(guardian, name=name, age=10, grade="Primary 5", password="pass123")


def test_create_links_identity_and_row(provisioner, identity, repo):
    result = _create(provisioner)

    assert result.ok and result.error is None
    learner = result.value
    assert learner["name"] == "Aminata"
    assert learner["age"] == 10
    assert learner["grade_level"] == "Primary 5"
    assert learner["parent_id"] == GUARDIAN
    assert learner["is_managed"] is True
    assert learner["auth_user_id"]
    assert list(identity.identities) == [learner["auth_user_id"]]
    assert list(repo.learners) == [learner["id"]]


def test_create_uses_confirmed_identity_with_login_key_and_metadata(provisioner, identity):
    result = provisioner.create(GUARDIAN, name="Ama Lovely", age=9, grade="Primary 4", password="1234")

    ident = identity.identities[result.value["auth_user_id"]]
    assert ident["login_key"] == "g1+amalovely@miticha.internal"
    assert ident["confirmed"] is True
    assert ident["metadata"] == {"name": "Ama Lovely", "is_student": True, "managed_by": GUARDIAN}


def test_aminata_scenario_delete_then_reset_is_not_found(provisioner, identity, repo):
    created = _create(provisioner)
    learner_id = created.value["id"]

    deleted = provisioner.delete(GUARDIAN, learner_id)
    assert deleted.ok
    assert identity.identities == {}
    assert repo.learners == {}

    reset = provisioner.reset_password(GUARDIAN, learner_id, "newpass")
    assert not reset.ok
    assert reset.error.kind is ProvisionErrorKind.LEARNER_NOT_FOUND_OR_UNAUTHORIZED


def test_duplicate_name_for_same_guardian_is_identity_failure(provisioner, identity, repo):
    assert _create(provisioner).ok

    again = _create(provisioner, name="  aminata ")

    assert again.error.kind is ProvisionErrorKind.IDENTITY_CREATION_FAILED
    assert again.error.detail == "identity_conflict"
    assert len(identity.identities) == 1
    assert len(repo.learners) == 1


def test_same_name_under_different_guardians_is_allowed(provisioner, identity):
    assert _create(provisioner, GUARDIAN).ok
    assert _create(provisioner, OTHER_GUARDIAN).ok
    assert len(identity.identities) == 2


def test_unauthenticated_caller(provisioner, identity, repo):
    result = _create(provisioner, guardian=None)

    assert result.error.kind is ProvisionErrorKind.NOT_AUTHENTICATED
    assert identity.calls == []
    assert repo.learners == {}


def test_missing_guardian_profile(provisioner, identity):
    result = _create(provisioner, guardian="ghost")

    assert result.error.kind is ProvisionErrorKind.GUARDIAN_PROFILE_MISSING
    assert identity.calls == []


def test_guardian_lookup_failure_maps_to_profile_missing(identity, repo, monkeypatch):
    def boom(guardian_id):
        raise RepoError("db_error")

    monkeypatch.setattr(repo, "get_guardian_profile", boom)
    provisioner = ManagedAccountProvisioner(identity=identity, repo=repo)

    result = provisioner.list_learners(GUARDIAN)

    assert result.error.kind is ProvisionErrorKind.GUARDIAN_PROFILE_MISSING


def test_foreign_learner_is_indistinguishable_from_missing(provisioner, identity, repo):
    learner = _create(provisioner, OTHER_GUARDIAN).value
    before_identities = {k: dict(v) for k, v in identity.identities.items()}
    before_row = repo.get_learner_owned(learner["id"], OTHER_GUARDIAN)

    reset = provisioner.reset_password(GUARDIAN, learner["id"], "hacked")
    delete = provisioner.delete(GUARDIAN, learner["id"])
    update = provisioner.update(GUARDIAN, learner["id"], LearnerUpdate(age=12))
    missing = provisioner.reset_password(GUARDIAN, "no-such-learner", "x")

    assert reset.error.kind is ProvisionErrorKind.LEARNER_NOT_FOUND_OR_UNAUTHORIZED
    assert delete.error.kind is ProvisionErrorKind.LEARNER_NOT_FOUND_OR_UNAUTHORIZED
    assert missing.error == reset.error
    assert update.error.kind is ProvisionErrorKind.UPDATE_FAILED
    assert identity.identities == before_identities
    assert repo.get_learner_owned(learner["id"], OTHER_GUARDIAN) == before_row


def test_update_only_changes_supplied_fields(provisioner, repo):
    learner = _create(provisioner).value

    result = provisioner.update(GUARDIAN, learner["id"], LearnerUpdate(age=11))

    assert result.ok
    row = repo.get_learner_owned(learner["id"], GUARDIAN)
    assert row["age"] == 11
    assert row["name"] == "Aminata"
    assert row["grade_level"] == "Primary 5"
    assert row["auth_user_id"] == learner["auth_user_id"]
    assert row["is_managed"] is True


def test_update_does_not_touch_identity(provisioner, identity):
    learner = _create(provisioner).value
    before = dict(identity.identities[learner["auth_user_id"]])

    provisioner.update(GUARDIAN, learner["id"], LearnerUpdate(name="Aminata Bangura", grade="Primary 6"))

    assert identity.identities[learner["auth_user_id"]] == before


def test_empty_update_is_noop_success(provisioner, repo):
    learner = _create(provisioner).value

    result = provisioner.update(GUARDIAN, learner["id"], LearnerUpdate())

    assert result.ok and result.value is None
    assert repo.get_learner_owned(learner["id"], GUARDIAN)["updated_at"] == learner["updated_at"]


def test_update_store_failure(provisioner, repo, monkeypatch):
    learner = _create(provisioner).value

    def boom(*args, **kwargs):
        raise RepoError("check_violation")

    monkeypatch.setattr(repo, "update_learner_owned", boom)
    result = provisioner.update(GUARDIAN, learner["id"], LearnerUpdate(age=200))

    assert result.error.kind is ProvisionErrorKind.UPDATE_FAILED
    assert result.error.detail == "check_violation"


def test_reset_password_updates_credential(provisioner, identity):
    learner = _create(provisioner).value

    result = provisioner.reset_password(GUARDIAN, learner["id"], "4321")

    assert result.ok
    assert identity.identities[learner["auth_user_id"]]["password"] == "4321"


def test_reset_password_identity_failure(provisioner, identity):
    learner = _create(provisioner).value
    identity.fail_on = {"update_credential"}

    result = provisioner.reset_password(GUARDIAN, learner["id"], "4321")

    assert result.error.kind is ProvisionErrorKind.CREDENTIAL_UPDATE_FAILED


def test_delete_identity_failure_keeps_both_records(provisioner, identity, repo):
    learner = _create(provisioner).value
    identity.fail_on = {"delete_identity"}

    result = provisioner.delete(GUARDIAN, learner["id"])

    assert result.error.kind is ProvisionErrorKind.IDENTITY_DELETION_FAILED
    assert learner["auth_user_id"] in identity.identities
    assert repo.get_learner_owned(learner["id"], GUARDIAN) is not None


def test_list_learners_only_returns_own(provisioner):
    _create(provisioner, GUARDIAN, "Aminata")
    _create(provisioner, GUARDIAN, "Kadiatu")
    _create(provisioner, OTHER_GUARDIAN, "Ibrahim")

    result = provisioner.list_learners(GUARDIAN)

    assert result.ok
    assert sorted(r["name"] for r in result.value) == ["Aminata", "Kadiatu"]


def test_no_exception_escapes_on_identity_create_failure(provisioner, identity, repo):
    identity.fail_on = {"create_identity"}

    result = _create(provisioner)

    assert result.error.kind is ProvisionErrorKind.IDENTITY_CREATION_FAILED
    assert repo.learners == {}
