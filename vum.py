#!/usr/bin/env python3
"""
Version Update Manager for Docker Compose files

This script scans a Docker Compose file for service images, looks up the
available tags in the registry and rewrites each image to the highest tag
that keeps the current version format, preserving comments and formatting.

Annotations in comments on the ``image`` key tune the behavior per service:
  vum:ignore     ignores the image for updates
  vum:minor      only updates within the current major version
  vum:patch      only updates within the current minor version
  vum:warnMajor  warns if the major version has changed
  vum:warnMinor  warns if the minor version has changed (including major changes)
  vum:warnPatch  warns if the patch version has changed (including major and minor changes)
  vum:warnAll    warns if the version string has changed in any way (including suffix)
"""

__version__ = "1.0.0"

import argparse
import json
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema

from compose_file import ComposeDocument, ComposeFileError, Service, ServiceOptions
from image_version import InvalidNameError
from registry_api import HubRegistryClient, RegistryLookupError
from scheme import UpdateMode
from selector import DEFAULT_DENYLIST, NoMatchingVersionError, select_latest

# Constants
DEFAULT_COMPOSE_FILE = "docker-compose.yml"
DEFAULT_MAX_WORKERS = 10

# Errors that end the update of a single service
UPDATE_ERRORS = (RegistryLookupError, NoMatchingVersionError, InvalidNameError)

# Configuration schema
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "registry": {
            "type": "object",
            "properties": {
                "url": {"type": "string"},
                "user": {"type": "string"},
                "password": {"type": "string"},
                "max_tags": {"type": "integer", "minimum": 1}
            }
        },
        "denylist": {
            "type": "array",
            "items": {"type": "string"}
        },
        "max_workers": {"type": "integer", "minimum": 1}
    }
}


@dataclass
class ServiceChange:
    """Version drift of one service after an update run."""
    service: Service
    version_changed: bool = False
    major_changed: bool = False
    minor_changed: bool = False
    patch_changed: bool = False
    needs_attention: bool = False


def update_mode_for(options: ServiceOptions) -> UpdateMode:
    """Pick the update mode for a service; patch wins over minor."""
    if options.only_patch:
        return UpdateMode.PATCH
    if options.only_minor:
        return UpdateMode.MINOR
    return UpdateMode.MAJOR


def compute_changes(services: List[Service]) -> List[ServiceChange]:
    """Compare current and latest image of every service.

    Services that were ignored or never resolved report no changes.
    """
    changes = []
    for service in services:
        change = ServiceChange(service)
        current, latest = service.current, service.latest
        if not service.options.ignore and latest is not None:
            change.version_changed = not current.same_version(latest)
            change.major_changed = not current.same_major(latest)
            change.minor_changed = not current.same_minor(latest)
            change.patch_changed = not current.same_patch(latest)

            opts = service.options
            change.needs_attention = (
                opts.warn_all and change.version_changed or
                opts.warn_major and change.major_changed or
                opts.warn_minor and change.minor_changed or
                opts.warn_patch and change.patch_changed
            )
        changes.append(change)
    return changes


def format_summary(changes: List[ServiceChange]) -> List[str]:
    """Render summary lines with aligned ``current => latest`` columns."""
    changed = [c for c in changes if c.version_changed]
    if not changed:
        return ["No version changes"]

    pad = max(len(str(c.service.current)) for c in changed)
    lines = ["Changed versions:"]
    lines += [f"  {str(c.service.current):<{pad}} => {c.service.latest}" for c in changed]

    warnings = [c for c in changes if c.needs_attention]
    if warnings:
        pad = max(len(str(c.service.current)) for c in warnings)
        lines += ["", "Warnings (requires attention):"]
        lines += [f"  {str(c.service.current):<{pad}} => {c.service.latest}" for c in warnings]
    return lines


class ComposeVersionUpdater:
    def __init__(self, compose_file: str, config_file: Optional[str] = None,
                 log_level: str = "INFO", registry=None):
        """
        Initialize the Compose Version Updater.

        Args:
            compose_file: Path to the Docker Compose file
            config_file: Optional path to JSON configuration file
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            registry: Tag lookup with a ``get_tag_names(name)`` method;
                defaults to a Docker Hub client built from the config
        """
        self.compose_file = Path(compose_file)
        self.config_file = Path(config_file) if config_file else None

        # Setup logging
        self.logger = self._setup_logging(log_level)

        self.config = self._load_config()
        self.denylist = DEFAULT_DENYLIST | set(self.config.get('denylist', []))
        self.max_workers = self.config.get('max_workers', DEFAULT_MAX_WORKERS)
        self.registry = registry or self._build_registry()
        self.document = self._load_document()

    def _setup_logging(self, level: str) -> logging.Logger:
        """Setup logging configuration."""
        logger = logging.getLogger('vum')
        logger.setLevel(getattr(logging, level.upper()))
        logger.propagate = False

        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        return logger

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate configuration from JSON file."""
        if self.config_file is None:
            return {}
        try:
            with open(self.config_file, 'r') as f:
                config = json.load(f)

            # Validate against schema
            jsonschema.validate(config, CONFIG_SCHEMA)
            return config

        except FileNotFoundError:
            self.logger.error(f"Config file {self.config_file} not found")
            raise
        except json.JSONDecodeError as e:
            self.logger.error(f"Error parsing config file: {e}")
            raise
        except jsonschema.ValidationError as e:
            self.logger.error(f"Configuration validation failed: {e.message}")
            raise

    def _build_registry(self) -> HubRegistryClient:
        """Create the registry client; environment variables override the config."""
        reg_config = self.config.get('registry', {})
        return HubRegistryClient(
            url=os.environ.get('REGISTRY_URL') or reg_config.get('url'),
            user=os.environ.get('REGISTRY_USER') or reg_config.get('user'),
            password=os.environ.get('REGISTRY_PASSWORD') or reg_config.get('password'),
            max_tags=reg_config.get('max_tags', 500),
        )

    def _load_document(self) -> ComposeDocument:
        try:
            return ComposeDocument.load(self.compose_file)
        except FileNotFoundError:
            self.logger.error(f"Compose file {self.compose_file} not found")
            raise
        except (ComposeFileError, InvalidNameError) as e:
            self.logger.error(f"Invalid compose file {self.compose_file}: {e}")
            raise

    @property
    def services(self) -> List[Service]:
        return self.document.services

    def _update_service(self, service: Service) -> None:
        """Resolve and apply the latest version for one service."""
        mode = update_mode_for(service.options)
        image_name = service.current.normalized_name
        self.logger.debug(f"Checking {service.name} ({service.current}, {mode.value} updates)...")

        tags = self.registry.get_tag_names(image_name)
        latest = select_latest(service.current, tags, mode, self.denylist)

        if service.current.same_version(latest):
            service.latest = latest
            self.logger.debug(f"{service.name} is up to date")
        else:
            service.set_image(latest)
            self.logger.info(f"UPDATE: {service.name}: {service.current} -> {latest}")

    def update_versions(self) -> List[Service]:
        """Update all services concurrently.

        Every service is processed even if others fail; the first error
        observed is raised once all tasks are done.  Updates that succeeded
        stay applied.

        Returns:
            The services that were checked (ignored services excluded)
        """
        services = []
        for service in self.services:
            if service.options.ignore:
                self.logger.info(f"Ignoring {service.name}")
            else:
                services.append(service)
        if not services:
            return []

        first_error = None
        max_workers = min(self.max_workers, len(services))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self._update_service, s): s for s in services}

            for future in as_completed(futures):
                service = futures[future]
                try:
                    future.result()
                except UPDATE_ERRORS as e:
                    self.logger.error(f"Could not update {service.name}: {e}")
                    if first_error is None:
                        first_error = e

        if first_error is not None:
            raise first_error
        return services

    def log_summary(self) -> List[ServiceChange]:
        changes = compute_changes(self.services)
        for line in format_summary(changes):
            self.logger.info(line)
        return changes

    def write_output(self, output: str = "") -> None:
        """
        Write the document.

        Args:
            output: '' writes back to the compose file, '-' writes to stdout,
                anything else is a target path
        """
        if output == "-":
            self.document.dump(sys.stdout)
        elif output:
            self.document.write(output)
            self.logger.info(f"Wrote {output}")
        else:
            self.document.write(self.compose_file)
            self.logger.info(f"Wrote {self.compose_file}")


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description='Image version updater for Docker Compose',
        epilog=__doc__.split('\n\n', 2)[-1],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '-f', '--file',
        default=os.environ.get('COMPOSE_FILE', DEFAULT_COMPOSE_FILE),
        help=f'Compose file (env: COMPOSE_FILE, default: {DEFAULT_COMPOSE_FILE})'
    )
    parser.add_argument(
        '-o', '--out',
        default=os.environ.get('OUTPUT_FILE', ''),
        help='Output file; defaults to the input file, "-" writes to stdout (env: OUTPUT_FILE)'
    )
    parser.add_argument(
        '--config',
        default=os.environ.get('CONFIG_FILE'),
        help='Path to configuration JSON file (env: CONFIG_FILE)'
    )
    parser.add_argument(
        '--format-only',
        action='store_true',
        help='Rewrite the file the way an update would, without changing versions'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        default=os.environ.get('DRY_RUN', '').lower() == 'true',
        help='Show what would change without writing any file (env: DRY_RUN)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=os.environ.get('LOG_LEVEL', 'INFO'),
        help='Logging level (env: LOG_LEVEL, default: INFO)'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    args = parser.parse_args(argv)

    try:
        updater = ComposeVersionUpdater(args.file, args.config, args.log_level)

        if not args.format_only:
            updater.update_versions()
            updater.log_summary()

        if args.dry_run:
            updater.logger.info("[DRY RUN] Not writing any file")
        else:
            updater.write_output(args.out)

    except Exception as e:
        logging.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
