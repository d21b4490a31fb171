"""
Parse request model — what the caller asks the service to parse.

A ParseRequest is frozen: once submitted, nothing about it changes. Each
input is one of:
  - a local file path   (read off the event loop at submit time)
  - an in-memory buffer (bytes + a file name)
  - a remote URL        (fetched by the service, never by the client)
"""

from __future__ import annotations

import asyncio
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Union


class ProcessingMode(str, Enum):
    """Accuracy/speed trade-off sent with every parse request."""
    DEFAULT  = "default"
    ADVANCED = "advanced"

    @classmethod
    def _missing_(cls, value):
        # accept "ADVANCED" / "Advanced" as well as the wire value
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None


class InputKind(str, Enum):
    PATH   = "path"
    BYTES  = "bytes"
    URL    = "url"
    FOLDER = "folder"      # a path inside a connected storage provider


DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class InputSource:
    kind:         InputKind
    value:        Union[str, bytes]        # path string, URL, or raw bytes
    filename:     str | None = None
    content_type: str | None = None

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_path(cls, path: str | Path) -> "InputSource":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            kind=InputKind.PATH,
            value=str(path),
            filename=path.name,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
        )

    @classmethod
    def from_bytes(
        cls,
        data:         bytes,
        filename:     str = "document.bin",
        content_type: str | None = None,
    ) -> "InputSource":
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"from_bytes expects bytes, got {type(data).__name__}")
        guessed, _ = mimetypes.guess_type(filename)
        return cls(
            kind=InputKind.BYTES,
            value=bytes(data),
            filename=filename,
            content_type=content_type or guessed or DEFAULT_CONTENT_TYPE,
        )

    @classmethod
    def from_url(cls, url: str) -> "InputSource":
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"Not an http(s) URL: {url!r}")
        return cls(kind=InputKind.URL, value=url)

    @classmethod
    def from_folder(cls, provider: str, path: str) -> "InputSource":
        return cls(kind=InputKind.FOLDER, value=path, filename=provider)

    @classmethod
    def coerce(cls, value: "InputLike") -> "InputSource":
        """Accept InputSource | Path | str (path or URL) | bytes."""
        if isinstance(value, InputSource):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls.from_bytes(value)
        if isinstance(value, Path):
            return cls.from_path(value)
        if isinstance(value, str):
            if value.startswith(("http://", "https://")):
                return cls.from_url(value)
            return cls.from_path(value)
        raise TypeError(f"Unsupported input type: {type(value).__name__}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_url(self) -> bool:
        return self.kind is InputKind.URL

    @property
    def source_id(self) -> str:
        """Stable identifier used as Document.source."""
        if self.kind is InputKind.BYTES:
            return self.filename or "document.bin"
        if self.kind is InputKind.FOLDER:
            return f"{self.filename}:{self.value}"
        return str(self.value)

    async def read_bytes(self) -> bytes:
        """File contents for upload. Disk reads run in the default executor."""
        if self.kind is InputKind.BYTES:
            return self.value  # type: ignore[return-value]
        if self.kind is InputKind.PATH:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, Path(str(self.value)).read_bytes)
        raise ValueError(f"{self.kind.value} inputs are fetched by the service, not uploaded")

    def __repr__(self) -> str:
        if self.kind is InputKind.BYTES:
            return f"InputSource(bytes, filename={self.filename!r}, size={len(self.value)})"
        return f"InputSource({self.kind.value}, {self.value!r})"


InputLike = Union[InputSource, Path, str, bytes]


@dataclass(frozen=True)
class ParseRequest:
    """
    inputs        : ordered, non-empty tuple of InputSource
    mode          : ProcessingMode sent to the service
    timeout       : per-request override of the await_completion budget
    poll_interval : per-request override of the poll interval
    """
    inputs:        tuple[InputSource, ...]
    mode:          ProcessingMode    = ProcessingMode.DEFAULT
    timeout:       float | None      = None
    poll_interval: float | None      = None

    def __post_init__(self) -> None:
        inputs = tuple(InputSource.coerce(i) for i in self.inputs)
        if not inputs:
            raise ValueError("ParseRequest needs at least one input")
        object.__setattr__(self, "inputs", inputs)
        object.__setattr__(self, "mode", ProcessingMode(self.mode))
        for name in ("timeout", "poll_interval"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    @classmethod
    def of(
        cls,
        inputs: InputLike | Iterable[InputLike],
        mode:   ProcessingMode | str = ProcessingMode.DEFAULT,
        **kwargs,
    ) -> "ParseRequest":
        """Build a request from one input or an iterable of inputs."""
        if isinstance(inputs, (InputSource, Path, str, bytes, bytearray)):
            inputs = [inputs]
        return cls(inputs=tuple(inputs), mode=ProcessingMode(mode), **kwargs)

    @property
    def sources(self) -> list[str]:
        return [i.source_id for i in self.inputs]
