"""Version scheme matching.

A reference version such as ``v1.4`` or ``10.5.13-jammy`` defines which
registry tags count as the same kind of version: same number of dotted
segments, same leading marker, same suffix, and (depending on the update
mode) the same major or major.minor prefix.
"""

import re
from dataclasses import dataclass
from enum import Enum

from image_version import VersionedImage, version_suffix


class UpdateMode(Enum):
    """How far a version may drift when looking for an update."""
    MAJOR = 'major'
    MINOR = 'minor'
    PATCH = 'patch'


class SchemeFamily(Enum):
    """Structural shape of a version string.

    Declaration order is classification order: 3-segment patterns also
    match 2- and 1-segment strings textually, so the most specific family
    has to be tried first.
    """
    DIGITS_3 = (r'^[0-9]+\.[0-9]+\.[0-9]+.*$', False, 3)
    DIGITS_2 = (r'^[0-9]+\.[0-9]+.*$', False, 2)
    DIGITS_1 = (r'^[0-9]+.*$', False, 1)
    MARKER_3 = (r'^[A-Za-z][0-9]+\.[0-9]+\.[0-9]+.*$', True, 3)
    MARKER_2 = (r'^[A-Za-z][0-9]+\.[0-9]+.*$', True, 2)
    MARKER_1 = (r'^[A-Za-z][0-9]+.*$', True, 1)
    ANY = (None, False, 0)

    def __init__(self, pattern, uses_marker, segments):
        self.regex = re.compile(pattern) if pattern else None
        self.uses_marker = uses_marker
        self.segments = segments


def classify(version: str) -> SchemeFamily:
    """Return the first (most specific) family whose pattern matches."""
    for family in SchemeFamily:
        if family.regex is None or family.regex.match(version):
            return family
    return SchemeFamily.ANY


@dataclass(frozen=True)
class MatchScheme:
    """What a candidate tag must look like to replace a reference version.

    A candidate starts with ``marker`` followed by ``prefix``; a non-empty
    numeric ``prefix`` has to end on a number boundary so that ``1`` does
    not match ``10.0.0``.
    """
    family: SchemeFamily
    suffix: str = ''
    marker: str = ''
    prefix: str = ''


def build_scheme(reference: VersionedImage, mode: UpdateMode) -> MatchScheme:
    family = classify(reference.version)
    if family is SchemeFamily.ANY:
        return MatchScheme(family)

    prefix = ''
    # Single segment versions only carry a major number; minor and patch
    # modes cannot narrow them any further than the suffix.
    if family.segments > 1:
        if mode is UpdateMode.MINOR:
            prefix = str(reference.major)
        elif mode is UpdateMode.PATCH:
            prefix = f"{reference.major}.{reference.minor}"

    return MatchScheme(family, reference.suffix, reference.marker, prefix)


def matches(scheme: MatchScheme, candidate: str) -> bool:
    """Check a candidate tag against a scheme."""
    if scheme.family is SchemeFamily.ANY:
        return True
    if classify(candidate) is not scheme.family:
        return False
    # Exact comparison; 'alpine' must not match 'alpine3.18'
    if version_suffix(candidate) != scheme.suffix:
        return False

    head = scheme.marker + scheme.prefix
    if not candidate.startswith(head):
        return False
    if scheme.prefix:
        return not candidate[len(head):len(head) + 1].isdigit()
    return True
