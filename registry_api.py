"""Docker Hub tag lookup over the Hub HTTP API.

Lists the tag names of a repository via
``/v2/repositories/<namespace>/<repo>/tags/``, following pagination up to a
configurable limit.
"""

import logging
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://hub.docker.com"
REQUEST_TIMEOUT = 30
PAGE_SIZE = 100  # Hub maximum
DEFAULT_MAX_TAGS = 500


class RegistryLookupError(Exception):
    """Error while listing tags from the registry."""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"Registry error {status}: {message}" if status else message)


class HubRegistryClient:
    """Client for the Docker Hub tag listing API."""

    def __init__(self, url: Optional[str] = None, user: Optional[str] = None,
                 password: Optional[str] = None, max_tags: int = DEFAULT_MAX_TAGS):
        self.url = (url or DEFAULT_REGISTRY_URL).rstrip('/')
        self.max_tags = max_tags
        self._auth = (user, password) if user and password else None
        self._headers = {'Accept': 'application/json'}

    def _get_page(self, url: str) -> dict:
        try:
            response = requests.get(url, headers=self._headers, auth=self._auth,
                                    timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise RegistryLookupError(0, f"registry request failed: {e}") from e

        if response.status_code != 200:
            raise RegistryLookupError(
                response.status_code,
                f"registry http error: {response.status_code} {response.reason}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise RegistryLookupError(0, f"invalid registry response: {e}") from e

    def get_tag_names(self, image_name: str) -> List[str]:
        """
        Get tag names for a repository, most recently updated first.

        Args:
            image_name: Normalized repository name (e.g. 'library/nginx')

        Returns:
            List of tag names, possibly empty

        Raises:
            RegistryLookupError: on transport errors, non-200 responses or
                unparseable bodies
        """
        url = (f"{self.url}/v2/repositories/{image_name}/tags/"
               f"?ordering=last_updated&page=1&page_size={PAGE_SIZE}")

        tags: List[str] = []
        while url and len(tags) < self.max_tags:
            data = self._get_page(url)
            for result in data.get('results') or []:
                name = result.get('name')
                if name:
                    tags.append(name)
            url = data.get('next')

        logger.debug(f"Fetched {len(tags)} tags for {image_name}")
        return tags[:self.max_tags]
