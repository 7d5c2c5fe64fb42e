"""Zip/tar container handling for uploads and exports.

``unwrap_payload`` locates the single ``data.csv`` entry of an uploaded
archive. Matching is on the entry's base filename, case-insensitively; there is
no fallback to other CSV-looking names. Directory entries and empty entries are
skipped. ``pack_payload`` does the reverse for exports.
"""

from __future__ import annotations

import io
import tarfile
import zipfile
import zlib
from collections.abc import Callable
from pathlib import PurePosixPath
from typing import IO

from .errors import ArchiveFormatError, LimitExceededError, PayloadNotFoundError
from .logging_setup import get_logger
from .models import ArchiveKind

PAYLOAD_FILENAME = "data.csv"

# Fixed entry timestamp so the same payload always yields the same zip bytes.
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

logger = get_logger("price_archive.archives")


def _is_payload_name(entry_name: str) -> bool:
    return PurePosixPath(entry_name).name.lower() == PAYLOAD_FILENAME


def _read_capped(stream: IO[bytes], declared_size: int, max_bytes: int) -> bytes:
    if declared_size > max_bytes:
        raise LimitExceededError(
            f"{PAYLOAD_FILENAME} is {declared_size} bytes uncompressed; limit is {max_bytes}"
        )
    # Declared sizes can lie; never buffer more than the ceiling.
    data = stream.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise LimitExceededError(f"{PAYLOAD_FILENAME} exceeds {max_bytes} bytes uncompressed")
    return data


def _unwrap_zip(data: bytes, max_bytes: int) -> bytes:
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as exc:
        raise ArchiveFormatError("invalid zip archive") from exc

    with zf:
        for info in zf.infolist():
            if info.is_dir() or info.file_size == 0:
                continue
            if not _is_payload_name(info.filename):
                continue
            try:
                with zf.open(info) as stream:
                    return _read_capped(stream, info.file_size, max_bytes)
            except (
                zipfile.BadZipFile,
                zlib.error,
                EOFError,
                NotImplementedError,
                RuntimeError,
                OSError,
            ) as exc:
                raise ArchiveFormatError(f"failed to read {info.filename} from zip") from exc
    raise PayloadNotFoundError(f"{PAYLOAD_FILENAME} not found in archive")


def _unwrap_tar(data: bytes, max_bytes: int) -> bytes:
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tf:
            for member in tf:
                if not member.isfile() or member.size == 0:
                    continue
                if not _is_payload_name(member.name):
                    continue
                stream = tf.extractfile(member)
                if stream is None:
                    continue
                with stream:
                    return _read_capped(stream, member.size, max_bytes)
    except (tarfile.TarError, EOFError, OSError) as exc:
        raise ArchiveFormatError("invalid tar archive") from exc
    raise PayloadNotFoundError(f"{PAYLOAD_FILENAME} not found in archive")


_UNWRAPPERS: dict[ArchiveKind, Callable[[bytes, int], bytes]] = {
    ArchiveKind.ZIP: _unwrap_zip,
    ArchiveKind.TAR: _unwrap_tar,
}


def unwrap_payload(data: bytes, kind: ArchiveKind, *, max_payload_bytes: int) -> bytes:
    """Return the bytes of the archive's ``data.csv`` entry.

    Raises
    ------
    ArchiveFormatError
        ``data`` is not a readable archive of the declared ``kind``.
    PayloadNotFoundError
        No non-empty file entry is named ``data.csv``.
    LimitExceededError
        The entry is larger than ``max_payload_bytes`` once decompressed.
    """

    payload = _UNWRAPPERS[ArchiveKind(kind)](data, max_payload_bytes)
    logger.debug("unwrapped %s payload: %d archive bytes -> %d", kind, len(data), len(payload))
    return payload


def _pack_zip(payload: bytes) -> bytes:
    buf = io.BytesIO()
    info = zipfile.ZipInfo(PAYLOAD_FILENAME, date_time=_ZIP_EPOCH)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    with zipfile.ZipFile(buf, mode="w") as zf:
        zf.writestr(info, payload)
    return buf.getvalue()


def _pack_tar(payload: bytes) -> bytes:
    buf = io.BytesIO()
    info = tarfile.TarInfo(PAYLOAD_FILENAME)
    info.size = len(payload)
    info.mode = 0o644
    info.mtime = 0
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tf:
        tf.addfile(info, io.BytesIO(payload))
    return buf.getvalue()


_PACKERS: dict[ArchiveKind, Callable[[bytes], bytes]] = {
    ArchiveKind.ZIP: _pack_zip,
    ArchiveKind.TAR: _pack_tar,
}


def pack_payload(payload: bytes, kind: ArchiveKind = ArchiveKind.ZIP) -> bytes:
    """Wrap ``payload`` as the single ``data.csv`` entry of a new archive."""

    return _PACKERS[ArchiveKind(kind)](payload)


__all__ = [
    "PAYLOAD_FILENAME",
    "pack_payload",
    "unwrap_payload",
]
