from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote, urlparse

from cachetools import TTLCache

from ..db.dynamodb.client import aws_client
from ..settings import settings


@dataclass(frozen=True)
class FileRule:
    prefix: str
    extensions: tuple[str, ...]
    max_bytes: int
    label: str
    size_label: str


FILE_RULES: dict[str, FileRule] = {
    "avatar": FileRule(
        prefix="avatars",
        extensions=(".jpg", ".jpeg", ".png", ".gif", ".webp"),
        max_bytes=2 * 1024 * 1024,
        label="JPG, JPEG, PNG, GIF, and WebP",
        size_label="2MB",
    ),
    "resume": FileRule(
        prefix="resumes",
        extensions=(".pdf", ".doc", ".docx"),
        max_bytes=5 * 1024 * 1024,
        label="PDF, DOC, and DOCX",
        size_label="5MB",
    ),
}

_PLACEHOLDERS = {"", "https://example.com", "example.com"}


class UploadRejected(ValueError):
    pass


def get_assets_bucket_name() -> str:
    name = (settings.assets_bucket_name or "").strip()
    if not name:
        raise RuntimeError("ASSETS_BUCKET_NAME is not set")
    return name


def _extension(file_name: str) -> str:
    m = re.search(r"(\.[a-zA-Z0-9]{1,10})$", (file_name or "").strip())
    return m.group(1).lower() if m else ""


def _safe_name(file_name: str) -> str:
    base = (file_name or "").strip().split("/")[-1].split("\\")[-1]
    safe = re.sub(r"[^a-zA-Z0-9._-]", "_", base)[:120]
    return safe or "file"


def validate_upload(*, kind: str, file_name: str, file_size: int) -> FileRule:
    rule = FILE_RULES.get(str(kind or "").strip().lower())
    if rule is None:
        raise UploadRejected("fileType must be avatar or resume")
    if _extension(file_name) not in rule.extensions:
        raise UploadRejected(f"Invalid file type. Only {rule.label} files are allowed.")
    if int(file_size or 0) > rule.max_bytes:
        raise UploadRejected(f"File too large. Maximum size is {rule.size_label}.")
    return rule


def make_user_file_key(*, kind: str, user_id: str, file_name: str) -> str:
    rule = FILE_RULES[kind]
    uid = re.sub(r"[^a-zA-Z0-9_-]", "_", str(user_id or ""))[:80] or "unknown"
    return f"{rule.prefix}/{uid}/{int(time.time() * 1000)}-{_safe_name(file_name)}"


def is_placeholder(ref: Any) -> bool:
    return str(ref or "").strip() in _PLACEHOLDERS


def key_from_ref(ref: str) -> str:
    """Object key from either a bare key or a full (virtual-hosted) S3 URL."""
    raw = str(ref or "").strip()
    if raw.startswith(("http://", "https://")):
        raw = unquote(urlparse(raw).path)
    return raw.lstrip("/")


def owner_of_key(key: str) -> str | None:
    parts = str(key or "").split("/")
    if len(parts) < 3 or parts[0] not in {r.prefix for r in FILE_RULES.values()}:
        return None
    return parts[1] or None


def presign_put_object(*, key: str, content_type: str | None, expires_in: int = 900) -> dict[str, Any]:
    bucket = get_assets_bucket_name()
    params: dict[str, Any] = {"Bucket": bucket, "Key": key}
    if content_type:
        params["ContentType"] = str(content_type)

    url = aws_client("s3").generate_presigned_url(
        ClientMethod="put_object",
        Params=params,
        ExpiresIn=max(60, min(3600, int(expires_in or 900))),
    )
    return {"bucket": bucket, "key": key, "url": url}


# Signed GET URLs live for an hour; cache for slightly less so callers never get a stale one.
_GET_URL_CACHE: TTLCache[str, str] = TTLCache(maxsize=2048, ttl=55 * 60)


def presign_get_object(*, key: str, expires_in: int = 3600) -> str:
    cached = _GET_URL_CACHE.get(key)
    if cached:
        return cached
    url = aws_client("s3").generate_presigned_url(
        ClientMethod="get_object",
        Params={"Bucket": get_assets_bucket_name(), "Key": key},
        ExpiresIn=max(60, min(24 * 3600, int(expires_in or 3600))),
    )
    _GET_URL_CACHE[key] = url
    return url


def delete_object(*, key: str) -> None:
    aws_client("s3").delete_object(Bucket=get_assets_bucket_name(), Key=key)
    _GET_URL_CACHE.pop(key, None)
