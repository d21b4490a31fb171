from docparse.sources.base import FolderEntry, RemoteFolderSource
from docparse.sources.factory import PROVIDERS, get_folder_source
from docparse.sources.providers import (
    BoxFolderSource,
    DropboxFolderSource,
    S3FolderSource,
    SharePointFolderSource,
)

__all__ = [
    "BoxFolderSource",
    "DropboxFolderSource",
    "FolderEntry",
    "PROVIDERS",
    "RemoteFolderSource",
    "S3FolderSource",
    "SharePointFolderSource",
    "get_folder_source",
]
