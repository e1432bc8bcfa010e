"""Content blobs carried by tasks (public keys, file contents, unit files)."""

from pathlib import Path


class Content:
    """Opaque piece of content a task writes or uploads.

    Content compares by its bytes, so a key read from disk and the same key
    held in memory produce no change.
    """

    def as_bytes(self) -> bytes:
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement as_bytes()"
        )

    def as_string(self) -> str:
        return self.as_bytes().decode("utf-8")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Content):
            return NotImplemented
        return self.as_bytes() == other.as_bytes()

    def __hash__(self) -> int:
        return hash(self.as_bytes())


class StringContent(Content):
    """Content held in memory."""

    def __init__(self, text: str):
        self.text = text

    def as_bytes(self) -> bytes:
        return self.text.encode("utf-8")

    def as_string(self) -> str:
        return self.text

    def __repr__(self) -> str:
        preview = self.text if len(self.text) <= 40 else self.text[:37] + "..."
        return f"StringContent({preview!r})"


class BytesContent(Content):
    """Raw bytes, such as a file read back from a node."""

    def __init__(self, data: bytes):
        self.data = data

    def as_bytes(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        return f"BytesContent({len(self.data)} bytes)"


class FileContent(Content):
    """Content read lazily from a local file."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def as_bytes(self) -> bytes:
        return self.path.read_bytes()

    def __repr__(self) -> str:
        return f"FileContent({str(self.path)!r})"


def content_as_string(content: Content | str | None) -> str | None:
    if content is None:
        return None
    if isinstance(content, str):
        return content
    return content.as_string()
