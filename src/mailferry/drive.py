"""Drive storage: folder lookup, duplicate lookup and file creation."""

from __future__ import annotations

import io
import logging
from typing import Any, Iterator, Protocol

from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from mailferry.exceptions import FolderNotFoundError
from mailferry.mailbox import Attachment

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class File(Protocol):
    """A stored file."""

    def set_name(self, name: str) -> None: ...


class Folder(Protocol):
    """A storage container files can be created in."""

    def get_files_by_name(self, name: str) -> Iterator[File]: ...

    def create_file(self, blob: Attachment) -> File: ...


class Storage(Protocol):
    """Storage service addressed by folder id."""

    def get_folder_by_id(self, folder_id: str) -> Folder: ...


def _quote(value: str) -> str:
    """Quote a string literal for a Drive search query."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class DriveFile:
    """A file stored in Google Drive."""

    def __init__(self, service: Any, file_id: str, name: str):
        self._service = service
        self.id = file_id
        self.name = name

    def set_name(self, name: str) -> None:
        self._service.files().update(
            fileId=self.id,
            body={"name": name},
            supportsAllDrives=True,
        ).execute()
        self.name = name

    def __repr__(self) -> str:
        return f"DriveFile(id={self.id!r}, name={self.name!r})"


class DriveFolder:
    """A Google Drive folder."""

    def __init__(self, service: Any, folder_id: str, name: str):
        self._service = service
        self.id = folder_id
        self.name = name

    def get_files_by_name(self, name: str) -> Iterator[DriveFile]:
        """Iterate over non-trashed files in this folder with exactly this name."""
        query = (
            f"name = {_quote(name)} and {_quote(self.id)} in parents and trashed = false"
        )
        page_token: str | None = None

        while True:
            response = (
                self._service.files()
                .list(
                    q=query,
                    fields="nextPageToken, files(id, name)",
                    pageToken=page_token,
                    supportsAllDrives=True,
                    includeItemsFromAllDrives=True,
                )
                .execute()
            )
            for item in response.get("files", []):
                yield DriveFile(self._service, item["id"], item["name"])

            page_token = response.get("nextPageToken")
            if not page_token:
                return

    def create_file(self, blob: Attachment) -> DriveFile:
        """Upload an attachment's content as a new file in this folder."""
        media = MediaIoBaseUpload(
            io.BytesIO(blob.get_bytes()),
            mimetype=blob.content_type or "application/octet-stream",
            resumable=True,
        )
        created = (
            self._service.files()
            .create(
                body={"name": blob.name, "parents": [self.id]},
                media_body=media,
                fields="id, name",
                supportsAllDrives=True,
            )
            .execute()
        )
        logger.debug(f"Created Drive file {created['id']} in folder {self.id}")
        return DriveFile(self._service, created["id"], created.get("name", blob.name))

    def __repr__(self) -> str:
        return f"DriveFolder(id={self.id!r}, name={self.name!r})"


class DriveStorage:
    """Storage backed by the Google Drive v3 API."""

    def __init__(self, service: Any):
        """Initialize with an authorized Drive service resource."""
        self.service = service

    def get_folder_by_id(self, folder_id: str) -> DriveFolder:
        """Resolve a folder id.

        Raises:
            FolderNotFoundError: If the id is unknown, inaccessible, trashed
                or not a folder
        """
        try:
            item = (
                self.service.files()
                .get(
                    fileId=folder_id,
                    fields="id, name, mimeType, trashed",
                    supportsAllDrives=True,
                )
                .execute()
            )
        except HttpError as e:
            status = getattr(e.resp, "status", None)
            raise FolderNotFoundError(folder_id, f"HTTP {status}") from e

        if item.get("mimeType") != FOLDER_MIME_TYPE:
            raise FolderNotFoundError(folder_id, "not a folder")
        if item.get("trashed"):
            raise FolderNotFoundError(folder_id, "trashed")

        return DriveFolder(self.service, item["id"], item.get("name", ""))
