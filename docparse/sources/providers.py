"""
Concrete folder sources — one per connected storage provider.

  provider     path form accepted                      location fields
  ──────────   ─────────────────────────────────────   ─────────────────────
  s3           "s3://bucket/prefix" | "bucket/prefix"   bucket, prefix
  sharepoint   "<site>/<folder path>"                   site, path
  box          numeric folder id ("0" = root)           folder_id
  dropbox      "/absolute/path" | "" (root)             path
"""

from __future__ import annotations

import re
from typing import Any

from docparse.sources.base import RemoteFolderSource

# S3 bucket naming rules (lower-case, 3–63 chars, no underscores)
_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")


class S3FolderSource(RemoteFolderSource):
    provider = "s3"

    def location(self, path: str) -> dict[str, Any]:
        path = path.strip()
        if path.startswith("s3://"):
            path = path[len("s3://"):]
        bucket, _, prefix = path.partition("/")
        if not _BUCKET_RE.match(bucket):
            raise ValueError(f"Invalid S3 bucket name in {path!r}")
        return {"bucket": bucket, "prefix": prefix}


class SharePointFolderSource(RemoteFolderSource):
    provider = "sharepoint"

    def location(self, path: str) -> dict[str, Any]:
        site, _, folder = path.strip().strip("/").partition("/")
        if not site:
            raise ValueError("SharePoint paths start with the site name: '<site>/<folder>'")
        return {"site": site, "path": "/" + folder}


class BoxFolderSource(RemoteFolderSource):
    provider = "box"

    def location(self, path: str) -> dict[str, Any]:
        folder_id = path.strip() or "0"
        if not folder_id.isdigit():
            raise ValueError(f"Box folders are addressed by numeric id, got {path!r}")
        return {"folder_id": folder_id}


class DropboxFolderSource(RemoteFolderSource):
    provider = "dropbox"

    def location(self, path: str) -> dict[str, Any]:
        path = path.strip()
        if path in ("", "/"):
            return {"path": ""}         # Dropbox API spells the root as ""
        if not path.startswith("/"):
            raise ValueError(f"Dropbox paths must be absolute, got {path!r}")
        return {"path": path.rstrip("/")}
