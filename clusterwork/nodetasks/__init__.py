"""Tasks that configure the node itself."""

from .file import File, FileType
from .package import Package
from .service import Service

__all__ = ["File", "FileType", "Package", "Service"]
