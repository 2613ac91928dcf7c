"""Tests for the Google Drive storage adapter."""

from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from fakes import FakeAttachment
from mailferry.drive import FOLDER_MIME_TYPE, DriveFolder, DriveStorage
from mailferry.exceptions import FolderNotFoundError


def http_error(status: int) -> HttpError:
    resp = MagicMock()
    resp.status = status
    resp.reason = "error"
    return HttpError(resp, b"{}")


class TestDriveStorage:
    """Tests for DriveStorage."""

    @pytest.fixture
    def service(self):
        return MagicMock()

    def test_resolves_folder(self, service):
        service.files().get().execute.return_value = {
            "id": "f1",
            "name": "Invoices",
            "mimeType": FOLDER_MIME_TYPE,
            "trashed": False,
        }

        folder = DriveStorage(service).get_folder_by_id("f1")

        assert folder.id == "f1"
        assert folder.name == "Invoices"

    def test_unknown_folder(self, service):
        service.files().get().execute.side_effect = http_error(404)

        with pytest.raises(FolderNotFoundError):
            DriveStorage(service).get_folder_by_id("missing")

    def test_file_is_not_a_folder(self, service):
        service.files().get().execute.return_value = {
            "id": "f1",
            "name": "report.pdf",
            "mimeType": "application/pdf",
        }

        with pytest.raises(FolderNotFoundError):
            DriveStorage(service).get_folder_by_id("f1")

    def test_trashed_folder(self, service):
        service.files().get().execute.return_value = {
            "id": "f1",
            "name": "Old",
            "mimeType": FOLDER_MIME_TYPE,
            "trashed": True,
        }

        with pytest.raises(FolderNotFoundError):
            DriveStorage(service).get_folder_by_id("f1")


class TestDriveFolder:
    """Tests for DriveFolder."""

    @pytest.fixture
    def service(self):
        return MagicMock()

    def test_files_by_name_query(self, service):
        files_api = service.files()
        files_api.list().execute.return_value = {"files": [{"id": "x1", "name": "it's.pdf"}]}

        found = list(DriveFolder(service, "f1", "Invoices").get_files_by_name("it's.pdf"))

        assert [f.id for f in found] == ["x1"]
        query = files_api.list.call_args.kwargs["q"]
        assert query == "name = 'it\\'s.pdf' and 'f1' in parents and trashed = false"

    def test_files_by_name_empty(self, service):
        service.files().list().execute.return_value = {"files": []}
        assert list(DriveFolder(service, "f1", "Invoices").get_files_by_name("a.pdf")) == []

    def test_create_then_rename(self, service):
        files_api = service.files()
        files_api.create().execute.return_value = {"id": "new", "name": "invoice.pdf"}

        created = DriveFolder(service, "f1", "Invoices").create_file(FakeAttachment("invoice.pdf", b"%PDF"))
        created.set_name("2024-03-05_invoice.pdf")

        create_kwargs = files_api.create.call_args.kwargs
        assert create_kwargs["body"] == {"name": "invoice.pdf", "parents": ["f1"]}
        files_api.update.assert_called_with(
            fileId="new", body={"name": "2024-03-05_invoice.pdf"}, supportsAllDrives=True
        )
        assert created.name == "2024-03-05_invoice.pdf"

    def test_upload_is_resumable(self, service):
        # Multipart uploads are limited to 5 MB, attachments can be larger
        files_api = service.files()
        files_api.create().execute.return_value = {"id": "new", "name": "scan.pdf"}

        DriveFolder(service, "f1", "Invoices").create_file(FakeAttachment("scan.pdf", b"x" * 1024))

        media = files_api.create.call_args.kwargs["media_body"]
        assert media.resumable() is True
        assert media.mimetype() == "application/pdf"
        assert media.size() == 1024
