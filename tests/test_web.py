from __future__ import annotations

import io
import tarfile
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import price_archive.persistence as persistence_mod
from price_archive.config import Settings
from price_archive.web import create_app

from tests.helpers.archives import csv_payload, make_tar, make_zip, read_zip_entry, zip_of_rows
from tests.helpers.db import count_prices

ROWS = [
    "1,Milk,Dairy,1.20,2024-01-05",
    "2,Bread,Bakery,2024-01-05",
    "3,Milk,Dairy,1.20,2024-01-05",
    "4,Cheese,Dairy,9.90,2024-01-07",
]


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://", max_archive_bytes=64 * 1024)


@pytest.fixture
def client(session_factory, settings: Settings) -> Iterator[TestClient]:
    with TestClient(create_app(session_factory, settings)) as c:
        yield c


def test_health(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_upload_raw_body(client: TestClient) -> None:
    resp = client.post("/api/v0/prices", content=zip_of_rows(ROWS))

    assert resp.status_code == 200
    assert resp.json() == {
        "total_count": 4,
        "duplicates_count": 2,
        "total_items": 2,
        "total_categories": 1,
        "total_price": 11.1,
    }


def test_upload_multipart_file_part(client: TestClient) -> None:
    resp = client.post(
        "/api/v0/prices",
        files={"file": ("upload.zip", zip_of_rows(ROWS), "application/zip")},
    )

    assert resp.status_code == 200
    assert resp.json()["total_items"] == 2


def test_upload_tar(client: TestClient, session_factory) -> None:
    data = make_tar([("data.csv", csv_payload(ROWS))])

    resp = client.post("/api/v0/prices", params={"type": "tar"}, content=data)

    assert resp.status_code == 200
    assert count_prices(session_factory) == 2


def test_upload_rejects_unknown_type(client: TestClient, session_factory) -> None:
    resp = client.post("/api/v0/prices", params={"type": "rar"}, content=zip_of_rows(ROWS))

    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidRequestError"
    assert count_prices(session_factory) == 0


def test_export_rejects_unknown_type(client: TestClient) -> None:
    resp = client.get("/api/v0/prices", params={"type": "7z"})

    assert resp.status_code == 400
    assert resp.json() == {
        "error": "InvalidRequestError",
        "detail": "type must be zip or tar, got '7z'",
    }


def test_multipart_without_file_part(client: TestClient, session_factory) -> None:
    resp = client.post(
        "/api/v0/prices",
        files={"archive": ("upload.zip", zip_of_rows(ROWS), "application/zip")},
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidRequestError"
    assert count_prices(session_factory) == 0


def _chunks(data: bytes, size: int = 1024) -> Iterator[bytes]:
    for start in range(0, len(data), size):
        yield data[start : start + size]


def test_multipart_without_content_length_is_refused(client: TestClient) -> None:
    boundary = "price-archive-boundary"
    body = (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="file"; filename="upload.zip"\r\n'
        "Content-Type: application/zip\r\n\r\n"
    ).encode() + zip_of_rows(ROWS) + f"\r\n--{boundary}--\r\n".encode()

    resp = client.post(
        "/api/v0/prices",
        content=_chunks(body),
        headers={"content-type": f"multipart/form-data; boundary={boundary}"},
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidRequestError"


def test_chunked_raw_upload_is_capped_while_streaming(
    client: TestClient, settings: Settings
) -> None:
    resp = client.post(
        "/api/v0/prices", content=_chunks(b"\0" * (settings.max_archive_bytes + 1))
    )

    assert resp.status_code == 413
    assert resp.json()["error"] == "LimitExceededError"


def test_chunked_raw_upload_is_accepted(client: TestClient) -> None:
    resp = client.post("/api/v0/prices", content=_chunks(zip_of_rows(ROWS), size=64))

    assert resp.status_code == 200
    assert resp.json()["total_items"] == 2


@pytest.mark.parametrize(
    ("data", "error"),
    [
        (make_zip([("prices.csv", csv_payload(ROWS))]), "PayloadNotFoundError"),
        (b"definitely not a zip file", "ArchiveFormatError"),
        (make_zip([("data.csv", b'h\n1,"Milk,Dairy,1.00,2024-01-05\n')]), "MalformedPayloadError"),
    ],
)
def test_unreadable_upload_is_a_client_error(
    client: TestClient, session_factory, data: bytes, error: str
) -> None:
    resp = client.post("/api/v0/prices", content=data)

    assert resp.status_code == 400
    assert resp.json()["error"] == error
    assert count_prices(session_factory) == 0


def test_oversized_upload_is_rejected(client: TestClient, settings: Settings) -> None:
    resp = client.post("/api/v0/prices", content=b"\0" * (settings.max_archive_bytes + 1))

    assert resp.status_code == 413
    assert resp.json()["error"] == "LimitExceededError"


def test_store_failure_maps_to_service_unavailable(
    client: TestClient, session_factory, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _broken_totals(session):
        raise OperationalError("SELECT sum(...)", {}, Exception("server closed the connection"))

    monkeypatch.setattr(persistence_mod, "store_totals", _broken_totals)

    resp = client.post("/api/v0/prices", content=zip_of_rows(ROWS))

    assert resp.status_code == 503
    body = resp.json()
    assert body["error"] == "PersistenceError"
    assert "total_items" not in body
    monkeypatch.undo()
    assert count_prices(session_factory) == 0


def test_export_zip_attachment(client: TestClient) -> None:
    client.post("/api/v0/prices", content=zip_of_rows(ROWS))

    resp = client.get("/api/v0/prices", params={"start": "2024-01-06"})

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/zip"
    assert resp.headers["content-disposition"] == 'attachment; filename="data.zip"'
    lines = read_zip_entry(resp.content).decode("utf-8").splitlines()
    assert lines[0] == "id,name,category,price,create_date"
    assert [line.split(",", 1)[1] for line in lines[1:]] == ["Cheese,Dairy,9.90,2024-01-07"]


def test_export_price_bounds_accept_decimal_comma(client: TestClient) -> None:
    client.post("/api/v0/prices", content=zip_of_rows(ROWS))

    resp = client.get("/api/v0/prices", params={"min": "1,20", "max": "1.20"})

    lines = read_zip_entry(resp.content).decode("utf-8").splitlines()
    assert [line.split(",", 1)[1] for line in lines[1:]] == ["Milk,Dairy,1.20,2024-01-05"]


def test_export_tar(client: TestClient) -> None:
    client.post("/api/v0/prices", content=zip_of_rows(ROWS))

    resp = client.get("/api/v0/prices", params={"type": "tar"})

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/x-tar"
    assert resp.headers["content-disposition"] == 'attachment; filename="data.tar"'
    with tarfile.open(fileobj=io.BytesIO(resp.content)) as tf:
        assert tf.getnames() == ["data.csv"]


def test_export_of_empty_store_is_header_only(client: TestClient) -> None:
    resp = client.get("/api/v0/prices")

    assert resp.status_code == 200
    assert read_zip_entry(resp.content) == b"id,name,category,price,create_date\n"


@pytest.mark.parametrize(
    "params",
    [
        {"start": "2024/01/01"},
        {"min": "abc"},
        {"start": "2024-02-01", "end": "2024-01-01"},
        {"min": "10", "max": "5"},
    ],
)
def test_invalid_export_bounds_are_client_errors(client: TestClient, params) -> None:
    resp = client.get("/api/v0/prices", params=params)

    assert resp.status_code == 400
    assert resp.json()["error"] == "InputRangeError"
