"""
HTTP tests for the API routes.

Each test drives the FastAPI app through TestClient with the recording
in-memory Drive, so responses and the exact Drive calls behind them can
both be checked.
"""

import base64
import json

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from drive_gateway import __main__ as cli
from drive_gateway.core.errors import ConfigurationError
from drive_gateway.main import create_app

from tests.conftest import make_settings
from tests.fakes import ROOT_FOLDER_ID, BrokenDriveClient, RecordingDriveClient

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<</Root 1 0 R>>\n%%EOF"


def upload(client: TestClient, content: bytes = PDF_BYTES, name: str = "giao-an.pdf", **form):
    return client.post(
        "/api/upload",
        files={"file": (name, content, "application/pdf")},
        data=form,
    )


class TestHealth:
    """Liveness and readiness."""

    def test_health_returns_ok(self, client):
        """Liveness never touches Drive."""
        response = client.get("/_health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"ok": True}

    def test_ready_when_root_folder_is_reachable(self, client, drive):
        """Readiness fetches the root folder from Drive."""
        response = client.get("/_health/ready")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "ready"
        assert body["mock_mode"] is True
        assert body["checks"] == [{"name": "root_folder", "status": "ok", "error": None}]
        assert drive.call_names() == ["get_metadata"]

    def test_not_ready_when_root_folder_is_missing(self):
        """A root folder Drive cannot find takes the instance out of rotation."""
        drive = RecordingDriveClient(root_folder_id="some-other-root")

        with TestClient(create_app(settings=make_settings(), drive=drive)) as client:
            response = client.get("/_health/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        body = response.json()
        assert body["status"] == "not_ready"
        assert body["checks"][0]["name"] == "root_folder"
        assert body["checks"][0]["status"] == "error"
        assert ROOT_FOLDER_ID in body["checks"][0]["error"]


class TestCategories:
    """GET /api/categories"""

    def test_lists_seeded_categories_in_order(self, client, drive):
        """Seeded categories are listed without calling Drive."""
        response = client.get("/api/categories")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == [
            {"name": "Năm 1", "folderId": None},
            {"name": "Năm 2", "folderId": None},
        ]
        assert drive.calls == []

    def test_provisioned_category_shows_folder_id(self, client):
        """After an upload the category carries its folder id."""
        uploaded = upload(client, category="Năm 2").json()

        categories = {c["name"]: c["folderId"] for c in client.get("/api/categories").json()}

        assert categories["Năm 2"] is not None
        folder_files = client.get("/api/list", params={"folderId": categories["Năm 2"]}).json()["files"]
        assert [f["id"] for f in folder_files] == [uploaded["file"]["id"]]


class TestUpload:
    """POST /api/upload"""

    def test_first_upload_provisions_then_second_reuses(self, client, drive):
        """The folder is created once; later uploads only create files."""
        first = upload(client, category="Năm 1", uploader="thầy Minh")

        assert first.status_code == status.HTTP_200_OK
        body = first.json()
        assert body["ok"] is True
        assert body["category"] == "Năm 1"
        assert body["uploader"] == "thầy Minh"
        assert body["file"]["name"] == "giao-an.pdf"
        assert body["file"]["mimeType"] == "application/pdf"
        assert body["file"]["size"] == str(len(PDF_BYTES))
        assert body["file"]["webViewLink"]
        assert drive.call_names() == ["find_folder", "create_folder", "create_file"]

        drive.calls.clear()
        second = upload(client, category="Năm 1", name="bai-hat.pdf")

        assert second.status_code == status.HTTP_200_OK
        assert drive.call_names() == ["create_file"]

    def test_uploaded_file_omits_fields_drive_did_not_return(self, client):
        """The upload response carries only the fields requested from Drive."""
        file_body = upload(client, category="Năm 1").json()["file"]

        assert set(file_body) == {"id", "name", "mimeType", "size", "webViewLink"}

    def test_missing_category_goes_to_uncategorized(self, client, drive):
        """No category means the Uncategorized folder."""
        response = upload(client)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["category"] == "Uncategorized"
        assert response.json()["uploader"] == ""
        assert drive.calls[0] == ("find_folder", ("Uncategorized", ROOT_FOLDER_ID))

    def test_missing_file_is_a_400_without_drive_calls(self, client, drive):
        """A form without a file part is rejected."""
        response = client.post("/api/upload", data={"category": "Năm 1"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "No file uploaded"}
        assert drive.calls == []

    def test_empty_file_is_a_400_without_drive_calls(self, client, drive):
        """A zero-byte file is treated as no file at all."""
        response = client.post(
            "/api/upload",
            files={"file": ("empty.txt", b"", "text/plain")},
            data={"category": "Năm 1"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "No file uploaded"}
        assert drive.calls == []

    def test_declared_oversize_is_rejected_before_parsing(self, client, drive):
        """Content-Length well over the ceiling is refused by the middleware."""
        too_big = b"x" * (2 * 1024 * 1024)

        response = upload(client, content=too_big, category="Năm 1")

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert "error" in response.json()
        assert drive.calls == []

    def test_file_just_over_limit_is_rejected_without_drive_calls(self, client, drive):
        """A file slightly over the ceiling is caught after parsing."""
        just_over = b"x" * (1024 * 1024 + 10)

        response = upload(client, content=just_over, category="Năm 1")

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert response.json() == {"error": "File too large. Maximum size: 1MB"}
        assert drive.calls == []

    def test_drive_failure_is_a_500_with_backend_message(self):
        """Upstream errors surface as 500 with Drive's message."""
        drive = BrokenDriveClient()
        with TestClient(create_app(settings=make_settings(), drive=drive)) as client:
            response = upload(client, category="Năm 1")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "Backend Error"}


class TestListing:
    """GET /api/list and /api/list-by-category"""

    def test_root_listing_defaults_to_root_folder(self, client):
        """Without folderId the root folder is listed."""
        upload(client, category="Năm 1")

        response = client.get("/api/list")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["folderId"] == ROOT_FOLDER_ID
        assert [f["name"] for f in body["folders"]] == ["Năm 1"]
        assert body["files"] == []

    def test_list_by_category_after_upload(self, client):
        """A provisioned category lists its folder's files."""
        uploaded = upload(client, category="Năm 1").json()["file"]

        body = client.get("/api/list-by-category", params={"category": "Năm 1"}).json()

        assert body["folderId"] is not None
        assert body["folders"] == []
        assert [f["id"] for f in body["files"]] == [uploaded["id"]]

    def test_unknown_category_is_empty_not_an_error(self, client, drive):
        """Unknown categories answer 200 with an empty listing."""
        response = client.get("/api/list-by-category", params={"category": "Unknown"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"folderId": None, "folders": [], "files": []}
        assert drive.calls == []

    def test_missing_category_parameter_is_empty(self, client):
        """No category parameter lists as empty too."""
        response = client.get("/api/list-by-category")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"folderId": None, "folders": [], "files": []}

    def test_listing_failure_is_a_500(self):
        """Drive outages on listing surface as 500."""
        drive = BrokenDriveClient()
        with TestClient(create_app(settings=make_settings(), drive=drive)) as client:
            response = client.get("/api/list")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "Backend Error"}


class TestDownload:
    """GET /api/download/{file_id}"""

    def test_download_streams_content_with_metadata_headers(self, client, drive):
        """Bytes, MIME type and encoded file name all come from Drive."""
        name = "Báo cáo 2024 (final).pdf"
        file_id = upload(client, name=name, category="Năm 1").json()["file"]["id"]

        response = client.get(f"/api/download/{file_id}")

        assert response.status_code == status.HTTP_200_OK
        assert response.content == PDF_BYTES
        assert response.headers["content-type"] == "application/pdf"
        assert (
            response.headers["content-disposition"]
            == 'attachment; filename="B%C3%A1o%20c%C3%A1o%202024%20(final).pdf"'
        )
        assert drive.closed_downloads == [file_id]

    def test_unknown_file_is_a_500_json_error(self, client, drive):
        """A missing file fails before streaming, so the error is JSON."""
        response = client.get("/api/download/does-not-exist")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.headers["content-type"] == "application/json"
        assert "not found" in response.json()["error"].lower()
        assert "iter_content" not in drive.call_names()


class TestConfiguration:
    """Startup configuration policy."""

    def test_missing_configuration_aborts_startup(self):
        """Outside mock mode both required settings are named in the error."""
        settings = make_settings(drive_mock_mode=False, folder_id="", service_account_json_base64="")

        app = create_app(settings=settings)

        with pytest.raises(ConfigurationError) as excinfo:
            with TestClient(app):
                pass

        assert "FOLDER_ID" in excinfo.value.message
        assert "SERVICE_ACCOUNT_JSON_BASE64" in excinfo.value.message

    def test_injected_drive_is_used_as_is(self):
        """An injected client replaces the one built from settings."""
        drive = RecordingDriveClient()

        with TestClient(create_app(settings=make_settings(), drive=drive)) as client:
            client.get("/api/list")

        assert drive.call_names() == ["list_children"]


class TestCommandLine:
    """python -m drive_gateway"""

    def test_missing_configuration_exits_with_1(self, monkeypatch):
        """The server is never started with incomplete settings."""
        settings = make_settings(drive_mock_mode=False, folder_id="", service_account_json_base64="")
        started = []
        monkeypatch.setattr(cli, "get_settings", lambda: settings)
        monkeypatch.setattr(cli.uvicorn, "run", lambda *args, **kwargs: started.append(args))

        assert cli.main() == 1
        assert started == []

    def test_malformed_credentials_exit_with_1(self, monkeypatch):
        """An undecodable service account blob is a configuration error."""
        settings = make_settings(drive_mock_mode=False, service_account_json_base64="%%%")
        monkeypatch.setattr(cli, "get_settings", lambda: settings)
        monkeypatch.setattr(cli.uvicorn, "run", lambda *args, **kwargs: None)

        assert cli.main() == 1

    def test_valid_configuration_starts_without_building_a_drive_client(self, monkeypatch):
        """Validation only decodes the key; credentials are built once, in the lifespan."""
        key = base64.b64encode(json.dumps({"type": "service_account"}).encode()).decode()
        settings = make_settings(drive_mock_mode=False, service_account_json_base64=key)
        started = []
        monkeypatch.setattr(cli, "get_settings", lambda: settings)
        monkeypatch.setattr(cli.uvicorn, "run", lambda *args, **kwargs: started.append(kwargs))

        assert cli.main() == 0
        assert started == [{"host": settings.host, "port": settings.port, "log_level": settings.log_level.lower()}]
