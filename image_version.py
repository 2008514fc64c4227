"""Image references and version parsing.

Parses image references like ``nginx:1.21.6-alpine`` into a name and a
comparable version.  Version parsing is lenient: any string parses, with
missing or non-numeric components treated as 0.
"""

import re
from dataclasses import dataclass, field, replace
from typing import NamedTuple, Optional, Tuple

DEFAULT_NAMESPACE = "library"

# A marker is one letter directly followed by a digit: 'v1.2.3' but not 'version1'
_MARKER_RE = re.compile(r'^([A-Za-z])(?=[0-9])')
_NUMERIC_RE = re.compile(r'^[0-9]+$')
_MAX_DIGITS = 4300


class InvalidNameError(ValueError):
    """Image reference without a name."""


class ParsedVersion(NamedTuple):
    major: int
    minor: int
    patch: int
    suffix: str
    uses_marker: bool
    marker: str


def _to_int(segment: str) -> int:
    # Digit runs past the default int/str conversion limit count as 0
    if len(segment) > _MAX_DIGITS or not _NUMERIC_RE.match(segment):
        return 0
    try:
        return int(segment)
    except ValueError:
        return 0


def parse_version(raw: str) -> ParsedVersion:
    """Parse a version string into its components.

    Never fails.  ``'v2.0'`` gives ``(2, 0, 0, '', True, 'v')``,
    ``'1.2.3-rc'`` gives ``(1, 2, 3, 'rc', False, '')`` and the empty
    string gives all zeros.
    """
    marker = ''
    remainder = raw
    marker_match = _MARKER_RE.match(raw)
    if marker_match:
        marker = marker_match.group(1)
        remainder = raw[1:]

    numeric, _, suffix = remainder.partition('-')
    segments = numeric.split('.')
    major = _to_int(segments[0])
    minor = _to_int(segments[1]) if len(segments) > 1 else 0
    patch = _to_int(segments[2]) if len(segments) > 2 else 0

    return ParsedVersion(major, minor, patch, suffix, bool(marker), marker)


def version_suffix(raw: str) -> str:
    """Text after the first '-' of a version string, empty if there is none."""
    return raw.partition('-')[2]


def normalize_name(name: str) -> str:
    """Qualify bare Docker Hub names with the default namespace.

    ``nginx`` becomes ``library/nginx``; ``some/image`` and ``''`` are
    returned unchanged.
    """
    if name and '/' not in name:
        return f"{DEFAULT_NAMESPACE}/{name}"
    return name


def split_reference(reference: str) -> Tuple[str, str]:
    """Split an image reference into (name, version).

    The tag separator is the last ':' after the last '/', so a registry
    port (``localhost:5000/app``) stays part of the name.
    """
    last_slash = reference.rfind('/')
    last_colon = reference.rfind(':')
    if last_colon > last_slash:
        return reference[:last_colon], reference[last_colon + 1:]
    return reference, ''


@dataclass(frozen=True)
class VersionedImage:
    """An image name with a parsed version.

    Instances are immutable; use :meth:`with_version` to derive the image
    for an update result.
    """
    name: str
    version: str = ''
    major: int = field(init=False, default=0)
    minor: int = field(init=False, default=0)
    patch: int = field(init=False, default=0)
    suffix: str = field(init=False, default='')
    uses_marker: bool = field(init=False, default=False)
    marker: str = field(init=False, default='')

    def __post_init__(self):
        if not self.name:
            raise InvalidNameError("image name can not be empty")
        parsed = parse_version(self.version)
        # frozen dataclass: populate derived fields through object.__setattr__
        for key, value in parsed._asdict().items():
            object.__setattr__(self, key, value)

    @classmethod
    def from_reference(cls, reference: str) -> 'VersionedImage':
        name, version = split_reference(reference)
        return cls(name, version)

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)

    @property
    def sort_key(self) -> Tuple[int, int, int, str]:
        return (self.major, self.minor, self.patch, self.suffix)

    def with_version(self, version: str) -> 'VersionedImage':
        return replace(self, version=version)

    def same_version(self, other: Optional['VersionedImage']) -> bool:
        return other is not None and self.version == other.version

    def same_major(self, other: Optional['VersionedImage']) -> bool:
        return other is not None and self.major == other.major

    def same_minor(self, other: Optional['VersionedImage']) -> bool:
        return self.same_major(other) and self.minor == other.minor

    def same_patch(self, other: Optional['VersionedImage']) -> bool:
        return self.same_minor(other) and self.patch == other.patch

    def __str__(self) -> str:
        if self.version:
            return f"{self.name}:{self.version}"
        return self.name


def compare_versions(a: Optional[VersionedImage], b: Optional[VersionedImage]) -> int:
    """Order two images by (major, minor, patch, suffix).

    Returns -1, 0 or 1.  A missing image sorts after any present one so it
    is never picked as the latest.
    """
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    if a.sort_key < b.sort_key:
        return -1
    if a.sort_key > b.sort_key:
        return 1
    return 0
