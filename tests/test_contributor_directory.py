"""Tests for the contributor directory."""

from datetime import datetime, timezone

import pytest

from guildhall.directory.contributors import ContributorDirectory, ContributorProfile
from guildhall.errors import AlreadyRegistered, InvalidParameter


def _now() -> datetime:
    return datetime(2026, 3, 2, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def directory() -> ContributorDirectory:
    return ContributorDirectory({})


class TestRegistration:
    def test_fresh_profile(self, directory: ContributorDirectory) -> None:
        profile = directory.register("carol", now=_now())
        assert profile == ContributorProfile(1, 0, False)
        assert directory.is_registered("carol")
        assert directory.registered_utc("carol") == _now()
        assert directory.count == 1

    def test_configured_defaults(self) -> None:
        directory = ContributorDirectory(
            {"default_reputation_level": 2, "initial_reputation_points": 5}
        )
        profile = directory.register("carol")
        assert profile.reputation_level == 2
        assert profile.reputation_points == 5

    def test_duplicate_rejected(self, directory: ContributorDirectory) -> None:
        directory.register("carol")
        with pytest.raises(AlreadyRegistered):
            directory.register("carol")
        assert directory.roster() == ["carol"]

    def test_blank_rejected(self, directory: ContributorDirectory) -> None:
        with pytest.raises(InvalidParameter):
            directory.register("  ")

    def test_roster_in_registration_order(self, directory: ContributorDirectory) -> None:
        for identity in ("zed", "amy", "bob"):
            directory.register(identity)
        assert directory.roster() == ["zed", "amy", "bob"]

    def test_unregistered_gets_default_level(self, directory: ContributorDirectory) -> None:
        assert directory.get("stranger") is None
        assert directory.reputation_level("stranger") == 1
        assert not directory.is_banned("stranger")

    def test_unregister_latest(self, directory: ContributorDirectory) -> None:
        directory.register("amy")
        directory.register("bob")
        directory.unregister_latest("bob")
        assert directory.roster() == ["amy"]
        assert not directory.is_registered("bob")
        with pytest.raises(ValueError):
            directory.unregister_latest("bob")


class TestProfileChanges:
    def test_increase_reputation_resets_points(
        self, directory: ContributorDirectory,
    ) -> None:
        directory.register("carol")
        directory.set_profile("carol", ContributorProfile(1, 40, False))
        previous = directory.increase_reputation("carol", 2)
        assert previous.reputation_points == 40
        assert directory.get("carol") == ContributorProfile(3, 0, False)

    @pytest.mark.parametrize("levels", [0, -1, True, 1.5])
    def test_increase_rejects_bad_levels(
        self, directory: ContributorDirectory, levels,
    ) -> None:
        directory.register("carol")
        with pytest.raises(InvalidParameter):
            directory.increase_reputation("carol", levels)
        assert directory.reputation_level("carol") == 1

    def test_increase_unknown_rejected(self, directory: ContributorDirectory) -> None:
        with pytest.raises(InvalidParameter):
            directory.increase_reputation("stranger", 1)

    def test_set_profile_returns_previous(self, directory: ContributorDirectory) -> None:
        directory.register("carol")
        previous = directory.set_profile("carol", ContributorProfile(4, 10, False))
        assert previous == ContributorProfile()
        assert directory.reputation_level("carol") == 4

    @pytest.mark.parametrize(
        "profile",
        [
            ContributorProfile(0, 0, False),
            ContributorProfile(1, -1, False),
            ContributorProfile(True, 0, False),
        ],
    )
    def test_set_profile_validates(
        self, directory: ContributorDirectory, profile: ContributorProfile,
    ) -> None:
        directory.register("carol")
        with pytest.raises(InvalidParameter):
            directory.set_profile("carol", profile)
        assert directory.get("carol") == ContributorProfile()

    def test_set_banned(self, directory: ContributorDirectory) -> None:
        directory.register("carol")
        previous = directory.set_banned("carol", True)
        assert not previous.is_banned
        assert directory.is_banned("carol")
        assert directory.banned_count == 1
        directory.set_banned("carol", False)
        assert directory.banned_count == 0

    def test_restore_profile(self, directory: ContributorDirectory) -> None:
        directory.register("carol")
        previous = directory.set_banned("carol", True)
        directory.restore_profile("carol", previous)
        assert not directory.is_banned("carol")


class TestRecords:
    def test_round_trip(self, directory: ContributorDirectory) -> None:
        directory.register("amy", now=_now())
        directory.register("bob", now=_now())
        directory.increase_reputation("bob", 2)
        directory.set_banned("amy", True)

        restored = ContributorDirectory.from_records({}, directory.to_records())
        assert restored.roster() == ["amy", "bob"]
        assert restored.is_banned("amy")
        assert restored.reputation_level("bob") == 3
        assert restored.registered_utc("amy") == _now()
