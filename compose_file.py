"""Docker Compose file handling.

Loads a compose file with ruamel.yaml in round-trip mode so comments,
quoting and key order survive a rewrite, and exposes one :class:`Service`
per service that declares an ``image``.

Per-service behavior is controlled by annotations in comments on the
``image`` key, either on the lines directly above it or inline::

    services:
      db:
        # vum:minor vum:warnMinor
        image: mariadb:10.5.13-jammy
      proxy:
        image: traefik:v2.9.6  # vum:ignore
"""

import io
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, List, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from ruamel.yaml.scalarstring import ScalarString

from image_version import VersionedImage

logger = logging.getLogger(__name__)

ANNOTATION_PREFIX = "vum:"
IMAGE_KEY = "image"
_INLINE_COMMENT_RE = re.compile(r'\s#(.*)$')


class ComposeFileError(ValueError):
    """Compose file that can not be parsed or lacks a services section."""


@dataclass
class ServiceOptions:
    """Flags parsed from ``vum:`` annotations."""
    ignore: bool = False
    only_minor: bool = False
    only_patch: bool = False
    warn_major: bool = False
    warn_minor: bool = False
    warn_patch: bool = False
    warn_all: bool = False


def contains_option(comment: str, option: str) -> bool:
    return f"{ANNOTATION_PREFIX}{option}" in comment


def parse_service_options(head_comment: str = '', line_comment: str = '') -> ServiceOptions:
    """Build options from the head and inline comments of an image key."""
    comment = head_comment + line_comment
    return ServiceOptions(
        ignore=contains_option(comment, "ignore"),
        only_minor=contains_option(comment, "minor"),
        only_patch=contains_option(comment, "patch"),
        warn_major=contains_option(comment, "warnMajor"),
        warn_minor=contains_option(comment, "warnMinor"),
        warn_patch=contains_option(comment, "warnPatch"),
        warn_all=contains_option(comment, "warnAll"),
    )


@dataclass
class Service:
    """A compose service whose image version can be updated.

    ``latest`` is only set by the updater.  Each service is written by a
    single update task, so no locking is involved.
    """
    name: str
    current: VersionedImage
    options: ServiceOptions = field(default_factory=ServiceOptions)
    latest: Optional[VersionedImage] = None
    node: Optional[dict] = field(default=None, repr=False)

    def set_image(self, image: VersionedImage) -> None:
        """Write an image reference back into the YAML document."""
        self.latest = image
        if self.node is None:
            return
        value = str(image)
        old = self.node.get(IMAGE_KEY)
        if isinstance(old, ScalarString):
            # keep quoting style
            value = type(old)(value)
        self.node[IMAGE_KEY] = value


def _new_yaml() -> YAML:
    yaml = YAML()
    yaml.preserve_quotes = True
    yaml.width = 4096
    yaml.indent(mapping=2, sequence=4, offset=2)
    return yaml


def _head_comment(lines: List[str], key_line: int) -> str:
    """Comment lines directly above a key, top to bottom."""
    comment = []
    idx = key_line - 1
    while idx >= 0 and lines[idx].strip().startswith('#'):
        comment.insert(0, lines[idx].strip())
        idx -= 1
    return '\n'.join(comment)


def _line_comment(lines: List[str], key_line: int) -> str:
    if key_line >= len(lines):
        return ''
    match = _INLINE_COMMENT_RE.search(lines[key_line])
    return f"#{match.group(1)}" if match else ''


class ComposeDocument:
    """A parsed compose file and its updatable services."""

    def __init__(self, text: str, path: Optional[Path] = None):
        self.path = path
        self._yaml = _new_yaml()
        # CRLF input would otherwise gain blank lines between comment lines
        text = text.replace('\r\n', '\n')

        try:
            self.data = self._yaml.load(text)
        except YAMLError as e:
            raise ComposeFileError(f"could not parse YAML: {e}") from e

        if not isinstance(self.data, dict):
            raise ComposeFileError("invalid YAML content")
        services = self.data.get('services')
        if not isinstance(services, dict):
            raise ComposeFileError("no key 'services' found in YAML")

        self.services = self._read_services(services, text.split('\n'))

    @classmethod
    def load(cls, path) -> 'ComposeDocument':
        if not path:
            raise ComposeFileError("file must be set")
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            return cls(f.read(), path)

    @classmethod
    def from_string(cls, text: str) -> 'ComposeDocument':
        return cls(text)

    def _read_services(self, services: dict, lines: List[str]) -> List[Service]:
        result = []
        for name, node in services.items():
            if not isinstance(node, dict):
                raise ComposeFileError(f"service '{name}' is not a mapping")
            if IMAGE_KEY not in node:
                logger.debug(f"Service {name} has no image, skipping")
                continue

            raw = node[IMAGE_KEY]
            if not isinstance(raw, str):
                raise ComposeFileError(f"image of service '{name}' is not a string")

            head, inline = '', ''
            line_col = getattr(node, 'lc', None)
            # an image inherited through a merge key has no position of its own
            if line_col is not None and IMAGE_KEY in (line_col.data or {}):
                key_line = line_col.key(IMAGE_KEY)[0]
                head = _head_comment(lines, key_line)
                inline = _line_comment(lines, key_line)

            result.append(Service(
                name=str(name),
                current=VersionedImage.from_reference(str(raw)),
                options=parse_service_options(head, inline),
                node=node,
            ))
        return result

    def dump(self, stream: IO[str]) -> None:
        self._yaml.dump(self.data, stream)

    def to_string(self) -> str:
        buf = io.StringIO()
        self.dump(buf)
        return buf.getvalue()

    def write(self, path=None) -> None:
        """Write the document, atomically replacing the target file."""
        target = Path(path) if path else self.path
        if target is None:
            raise ComposeFileError("no original file given")

        temp_file = target.with_suffix(target.suffix + '.tmp')
        with open(temp_file, 'w', encoding='utf-8') as f:
            self.dump(f)
        if target.exists():
            shutil.copymode(target, temp_file)
        temp_file.replace(target)
