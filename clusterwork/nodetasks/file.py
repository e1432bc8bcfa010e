"""Files and directories on the node."""

import logging
import stat
from enum import Enum
from typing import Optional

from ..content import BytesContent, Content
from ..engine.context import Context
from ..engine.target import TargetKind
from ..engine.task import Task, renders
from ..errors import CannotChangeFieldError, MissingRequiredFieldError
from ..targets.local import LocalTarget

logger = logging.getLogger(__name__)


class FileType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class File(Task):
    """A file (or directory) at an absolute node path.

    Mode defaults to 0644 for files and 0755 for directories.
    """

    path: str
    contents: Optional[Content] = None
    mode: Optional[str] = None
    type: FileType = FileType.FILE

    def task_name(self) -> str:
        return self.path

    def find(self, c: Context) -> Optional["File"]:
        target_path = c.cloud.path(self.path)
        if not target_path.exists():
            return None

        st = target_path.stat()
        actual = File(
            path=self.path,
            mode=f"{stat.S_IMODE(st.st_mode):04o}",
            type=FileType.DIRECTORY if target_path.is_dir() else FileType.FILE,
            lifecycle=self.lifecycle,
        )
        if actual.type == FileType.FILE:
            actual.contents = BytesContent(target_path.read_bytes())
        return actual

    def normalize(self, c: Context) -> None:
        if self.mode is None:
            self.mode = "0755" if self.type == FileType.DIRECTORY else "0644"

    def check_changes(self, a, e, changes) -> None:
        if a is not None and changes.type is not None:
            raise CannotChangeFieldError("type", a.type, e.type)
        if e.type == FileType.FILE and a is None and e.contents is None:
            raise MissingRequiredFieldError("contents")

    @renders(TargetKind.LOCAL)
    def render_local(self, t: LocalTarget, a, e, changes) -> None:
        target_path = t.path(e.path)

        if e.type == FileType.DIRECTORY:
            logger.info(f"Creating directory {target_path}")
            target_path.mkdir(parents=True, exist_ok=True)
        elif a is None or changes.contents is not None:
            logger.info(f"Writing file {target_path}")
            target_path.parent.mkdir(parents=True, exist_ok=True)
            target_path.write_bytes(e.contents.as_bytes())

        if e.mode is not None:
            target_path.chmod(int(e.mode, 8))
