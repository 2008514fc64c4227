"""Tests for latest-version selection against registry tag lists."""

import pytest

from image_version import VersionedImage
from scheme import UpdateMode
from selector import DEFAULT_DENYLIST, NoMatchingVersionError, select_latest
from tests.conftest import TAG_LISTS


class TestSelectLatest:

    def test_highest_major(self):
        reference = VersionedImage("image", "1.0.0")
        latest = select_latest(reference, ["1.0.0", "3.0.0", "2.0.0"], UpdateMode.MAJOR)
        assert str(latest) == "image:3.0.0"

    def test_keeps_reference_name(self):
        reference = VersionedImage("traefik/traefik", "v2.9.6")
        latest = select_latest(reference, TAG_LISTS["traefik/traefik"])
        assert latest.name == "traefik/traefik"
        assert latest.version == "v3.0.0"

    def test_numeric_not_lexicographic(self):
        reference = VersionedImage("image", "3.2.0")
        latest = select_latest(reference, ["3.9.0", "3.10.0", "3.2.0"])
        assert latest.version == "3.10.0"

    def test_minor_major_mismatch(self):
        reference = VersionedImage("image", "1.0.0")
        with pytest.raises(NoMatchingVersionError) as exc:
            select_latest(reference, ["2.0.0"], UpdateMode.MINOR)
        assert "image:1.0.0" in str(exc.value)
        assert exc.value.reference is reference

    def test_suffix_mismatch(self):
        reference = VersionedImage("image", "1.0.0-suffix")
        with pytest.raises(NoMatchingVersionError):
            select_latest(reference, ["2.0.0-nomatch"], UpdateMode.MAJOR)

    def test_empty_candidates(self):
        with pytest.raises(NoMatchingVersionError):
            select_latest(VersionedImage("image", "1.0.0"), [])

    def test_latest_always_denied(self):
        """Even a match-all reference never selects 'latest'."""
        reference = VersionedImage("image")
        with pytest.raises(NoMatchingVersionError):
            select_latest(reference, ["latest"])
        assert "latest" in DEFAULT_DENYLIST

    def test_custom_denylist(self):
        reference = VersionedImage("image", "1.0.0")
        latest = select_latest(reference, ["1.0.0", "2.0.0", "9.9.9"],
                               denylist=DEFAULT_DENYLIST | {"9.9.9"})
        assert latest.version == "2.0.0"

    def test_tie_takes_later_candidate(self):
        """1.2.3 and v1.2.3 compare equal; the later one in input order wins."""
        reference = VersionedImage("image")
        latest = select_latest(reference, ["v1.2.3", "1.2.3", "1.0.0"])
        assert latest.version == "1.2.3"

    def test_already_latest_is_idempotent(self):
        reference = VersionedImage("image", "3.0.0")
        latest = select_latest(reference, ["1.0.0", "3.0.0", "2.0.0"])
        assert reference.same_version(latest)
        assert latest == reference


class TestSelectFromInventory:
    """Realistic tag lists from tests.conftest."""

    @pytest.mark.parametrize("name,version,mode,expected", [
        ("nginx", "1.24.0", UpdateMode.MAJOR, "1.25.3"),
        ("nginx", "1.24.0-alpine", UpdateMode.MAJOR, "1.25.3-alpine"),
        ("nginx", "1.24", UpdateMode.MAJOR, "1.25"),
        ("nginx", "1.24.0", UpdateMode.PATCH, "1.24.0"),
        ("mariadb", "10.5.13-jammy", UpdateMode.MAJOR, "11.2.2-jammy"),
        ("mariadb", "10.5.13-jammy", UpdateMode.MINOR, "10.6.16-jammy"),
        ("mariadb", "10.5.13-jammy", UpdateMode.PATCH, "10.5.22-jammy"),
        ("mariadb", "10.5.13-focal", UpdateMode.MAJOR, "10.5.22-focal"),
        ("postgres", "15", UpdateMode.MAJOR, "16"),
        ("postgres", "15-alpine", UpdateMode.PATCH, "16-alpine"),
        ("postgres", "15.5", UpdateMode.MAJOR, "16.1"),
        ("traefik/traefik", "v2.9.6", UpdateMode.MINOR, "v2.11.0"),
        ("traefik/traefik", "v2.9.6", UpdateMode.PATCH, "v2.9.10"),
        ("traefik/traefik", "v2", UpdateMode.MAJOR, "v3"),
        ("linuxserver/sonarr", "3.0.10-ls200", UpdateMode.MAJOR, "3.0.10-ls200"),
    ])
    def test_select(self, name, version, mode, expected):
        reference = VersionedImage(name, version)
        tags = TAG_LISTS[reference.normalized_name]
        assert select_latest(reference, tags, mode).version == expected
