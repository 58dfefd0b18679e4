"""Media library operations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from strapiq.client import StrapiClient

logger = logging.getLogger(__name__)

UPLOAD_FILES_PATH = "upload/files"


class Uploads:
    """Manage files in Strapi's upload plugin.

    Uploading happens together with entry creation, see
    :meth:`strapiq.collection.CollectionQuery.post_files`.
    """

    def __init__(self, client: StrapiClient) -> None:
        self._client = client

    def delete(self, file_id: Any) -> httpx.Response:
        """Delete uploaded file *file_id* from the media library.

        Raises:
            NotFoundError: If the file does not exist.
            PermissionDeniedError: If the token may not delete files.
        """
        logger.debug("Deleting uploaded file %s", file_id)
        return self._client.delete(f"{UPLOAD_FILES_PATH}/{file_id}")
