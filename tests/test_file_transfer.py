"""
Tests for uploads and the two-step download flow.
"""

import asyncio

import pytest

from adapters.file_transfer import (
    DEFAULT_MIME_TYPE,
    classify_mime_type,
    download_file,
    download_from_url,
    infer_upload_kind,
    upload_file,
)
from core.errors import RemoteError, RequestValidationError

from conftest import FakeApi

IFC_BYTES = b"ISO-10303-21;\nHEADER;\nENDSEC;\n"


class TestMimeTypes:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("model.ifc", "application/x-step"),
            ("MODEL.IFC", "application/x-step"),
            ("rules.ids", "application/xml"),
            ("table.csv", "text/csv"),
            ("result.json", "application/json"),
            ("report.html", "text/html"),
            ("quantities.xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
            ("mesh.obj", DEFAULT_MIME_TYPE),
            ("no_extension", DEFAULT_MIME_TYPE),
        ],
    )
    def test_classify_by_extension(self, name, expected):
        assert classify_mime_type(name) == expected

    def test_infer_upload_kind(self):
        assert infer_upload_kind("a.IFC") == "ifc"
        assert infer_upload_kind("b.ids") == "ids"
        assert infer_upload_kind("c.glb") == "other"


class TestDownloadFile:
    """Tests for `download_file`."""

    def test_two_step_download(self):
        """A token is requested first, then the bytes are fetched with it."""

        def handler(method, path, body):
            if path == "/create_download_link":
                return {"token": "tok-123"}
            return IFC_BYTES

        api = FakeApi(handler)
        downloaded = asyncio.run(download_file(api, "output/converted/model.ifc"))

        assert api.calls == [
            ("POST", "/create_download_link", {"file_path": "output/converted/model.ifc"}),
            ("GET", "/download/tok-123", None),
        ]
        assert downloaded.data == IFC_BYTES
        assert downloaded.size == len(IFC_BYTES)
        assert downloaded.file_name == "model.ifc"
        assert downloaded.mime_type == "application/x-step"

    def test_missing_token_is_remote_error(self):
        api = FakeApi(lambda method, path, body: {"message": "no such file"})

        with pytest.raises(RemoteError):
            asyncio.run(download_file(api, "output/missing.ifc"))
        assert len(api.calls) == 1

    def test_link_failure_propagates(self):
        api = FakeApi(lambda method, path, body: RemoteError("not found", status_code=404))

        with pytest.raises(RemoteError) as info:
            asyncio.run(download_file(api, "output/missing.ifc"))
        assert info.value.status_code == 404

    def test_empty_path_is_rejected_before_any_call(self):
        api = FakeApi(lambda method, path, body: {})

        with pytest.raises(RequestValidationError):
            asyncio.run(download_file(api, ""))
        assert api.calls == []


class TestUploads:
    def test_upload_uses_kind_endpoint_and_mime_type(self):
        api = FakeApi(lambda method, path, body: {"filename": "model.ifc"})

        response = asyncio.run(upload_file(api, file_name="model.ifc", content=IFC_BYTES))

        assert response == {"filename": "model.ifc"}
        [(method, path, sent)] = api.calls
        assert (method, path) == ("POST", "/upload/ifc")
        assert sent["filename"] == "model.ifc"
        assert sent["content"] == IFC_BYTES
        assert sent["content_type"] == "application/x-step"
        assert sent["field"] == "file"

    def test_explicit_kind_and_content_type(self):
        api = FakeApi(lambda method, path, body: {})

        asyncio.run(upload_file(api, file_name="x.bin", content=b"1", kind="other", content_type="image/png"))

        assert api.calls[0][1] == "/upload/other"
        assert api.calls[0][2]["content_type"] == "image/png"

    def test_unsupported_kind(self):
        with pytest.raises(RequestValidationError):
            asyncio.run(upload_file(FakeApi(lambda m, p, b: {}), file_name="a.ifc", content=b"", kind="zip"))

    def test_download_from_url(self):
        api = FakeApi(lambda method, path, body: {"file_path": "uploads/remote.ifc"})

        asyncio.run(download_from_url(api, "https://example.org/remote.ifc"))

        assert api.calls == [("POST", "/download-from-url", {"url": "https://example.org/remote.ifc"})]
