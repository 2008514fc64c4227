"""Pick the latest registry tag that fits a reference version."""

import logging
from typing import AbstractSet, Iterable

from image_version import VersionedImage
from scheme import UpdateMode, build_scheme, matches

logger = logging.getLogger(__name__)

# Floating tags that never count as a version
DEFAULT_DENYLIST = frozenset({"latest"})


class NoMatchingVersionError(LookupError):
    """No registry tag fits the reference version."""

    def __init__(self, reference: VersionedImage):
        self.reference = reference
        super().__init__(f"could not find a valid version for '{reference}'")


def select_latest(reference: VersionedImage, candidates: Iterable[str],
                  mode: UpdateMode = UpdateMode.MAJOR,
                  denylist: AbstractSet[str] = DEFAULT_DENYLIST) -> VersionedImage:
    """
    Select the highest candidate tag matching the reference's scheme.

    Args:
        reference: Image currently in use
        candidates: Tag names available in the registry, in any order
        mode: How far the version may move
        denylist: Tags that are never selected

    Returns:
        New image with the reference's name and the selected version

    Raises:
        NoMatchingVersionError: if no candidate survives filtering
    """
    scheme = build_scheme(reference, mode)
    versions = [
        reference.with_version(tag)
        for tag in candidates
        if tag not in denylist and matches(scheme, tag)
    ]
    logger.debug(f"{len(versions)} tags match {reference} ({mode.value})")

    if not versions:
        raise NoMatchingVersionError(reference)

    # Stable sort; on a tie the candidate seen last wins
    versions.sort(key=lambda image: image.sort_key)
    return versions[-1]
