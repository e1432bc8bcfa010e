"""
Terraform target - renders tasks into a generated Terraform JSON document.

Tasks do not mutate any infrastructure here. Each renderer adds a named
resource block to a TerraformDocument; references to resources whose IDs do
not exist yet are expressed as Literal values and only resolved when the
document is finalized.
"""

import json
import logging
import re
import threading
from pathlib import Path
from typing import Any

from ..content import Content
from ..errors import ConfigurationError, DanglingReferenceError
from ..engine.target import Target, TargetKind
from ..settings import get_settings

logger = logging.getLogger(__name__)

MAIN_FILE_NAME = "kubernetes.tf.json"
DATA_DIR = "data"


def sanitize_name(name: str) -> str:
    """Turn a task name into a valid Terraform resource name."""
    name = name.replace(":", "")
    return re.sub(r"[^A-Za-z0-9_-]", "-", name)


class Literal:
    """A value resolved when the Terraform document is finalized.

    Three flavours exist:
    - attribute: ``${type.name.prop}``, the not-yet-known attribute of another
      resource in the same document
    - string: a value known at render time (e.g. an existing key name)
    - file: the contents of an asset written next to the document
    """

    __slots__ = ("_kind", "_value", "_resource_type", "_resource_name", "_prop")

    def __init__(
        self,
        kind: str,
        value: str | None = None,
        resource_type: str | None = None,
        resource_name: str | None = None,
        prop: str | None = None,
    ):
        self._kind = kind
        self._value = value
        self._resource_type = resource_type
        self._resource_name = resource_name
        self._prop = prop

    @classmethod
    def attribute(cls, resource_type: str, resource_name: str, prop: str) -> "Literal":
        return cls(
            "property",
            resource_type=resource_type,
            resource_name=resource_name,
            prop=prop,
        )

    @classmethod
    def from_string(cls, value: str) -> "Literal":
        return cls("string", value=value)

    @classmethod
    def file(cls, relative_path: str) -> "Literal":
        return cls("file", value=relative_path)

    @property
    def is_reference(self) -> bool:
        return self._kind == "property"

    def resolve(self, document: "TerraformDocument") -> str:
        if self._kind == "string":
            return self._value
        if self._kind == "file":
            return '${file("${path.module}/' + self._value + '")}'
        if not document.has_resource(self._resource_type, self._resource_name):
            raise DanglingReferenceError(
                None, f"{self._resource_type}.{self._resource_name}"
            )
        return f"${{{self._resource_type}.{self._resource_name}.{self._prop}}}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Literal):
            return NotImplemented
        return (
            self._kind,
            self._value,
            self._resource_type,
            self._resource_name,
            self._prop,
        ) == (
            other._kind,
            other._value,
            other._resource_type,
            other._resource_name,
            other._prop,
        )

    def __hash__(self) -> int:
        return hash((self._kind, self._value, self._resource_type, self._resource_name, self._prop))

    def __repr__(self) -> str:
        if self._kind == "property":
            return f"Literal({self._resource_type}.{self._resource_name}.{self._prop})"
        return f"Literal({self._kind}={self._value!r})"


class TerraformDocument:
    """Ordered collection of Terraform resource blocks and file assets."""

    def __init__(self):
        self._lock = threading.Lock()
        self._resources: dict[tuple[str, str], dict[str, Any]] = {}
        self._files: dict[str, bytes] = {}
        self._providers: dict[str, dict[str, Any]] = {}

    def add_resource(self, resource_type: str, name: str, body: dict[str, Any]) -> None:
        with self._lock:
            if (resource_type, name) in self._resources:
                raise ConfigurationError(
                    f"Terraform resource {resource_type}.{name} rendered twice"
                )
            self._resources[(resource_type, name)] = body
        logger.debug(f"Added Terraform resource {resource_type}.{name}")

    def add_file(self, relative_path: str, data: bytes) -> None:
        with self._lock:
            self._files[relative_path] = data

    def set_provider(self, name: str, body: dict[str, Any]) -> None:
        with self._lock:
            self._providers[name] = body

    def has_resource(self, resource_type: str, name: str) -> bool:
        with self._lock:
            return (resource_type, name) in self._resources

    def resource(self, resource_type: str, name: str) -> dict[str, Any] | None:
        with self._lock:
            return self._resources.get((resource_type, name))

    @property
    def files(self) -> dict[str, bytes]:
        with self._lock:
            return dict(self._files)

    def _resolve(self, value: Any) -> Any:
        if isinstance(value, Literal):
            return value.resolve(self)
        if isinstance(value, dict):
            return {k: self._resolve(v) for k, v in value.items() if v is not None}
        if isinstance(value, (list, tuple)):
            return [self._resolve(v) for v in value]
        return value

    def finalize(self) -> dict[str, Any]:
        """Resolve every Literal and return the JSON-ready document.

        Raises:
            DanglingReferenceError: If a Literal points at a resource that was
                never rendered into this document
        """
        with self._lock:
            resources = dict(self._resources)
            providers = dict(self._providers)

        document: dict[str, Any] = {}
        if providers:
            document["provider"] = self._resolve(providers)

        blocks: dict[str, dict[str, Any]] = {}
        for (resource_type, name), body in resources.items():
            blocks.setdefault(resource_type, {})[name] = self._resolve(body)
        if blocks:
            document["resource"] = blocks

        document["terraform"] = {"required_version": ">= 1.0.0"}
        return document

    def write(self, out_dir: Path) -> list[Path]:
        """Write the finalized document and its assets under out_dir."""
        document = self.finalize()
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        written = []
        main_file = out_dir / MAIN_FILE_NAME
        main_file.write_text(
            json.dumps(document, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
        written.append(main_file)

        for relative_path, data in sorted(self.files.items()):
            path = out_dir / relative_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            written.append(path)

        logger.info(f"Wrote Terraform configuration to {out_dir}")
        return written


class TerraformTarget(Target):
    """Render tasks into Terraform configuration instead of live infrastructure.

    Find is skipped: the generated document always describes the whole
    desired state, and Terraform computes its own plan from it.
    """

    kind = TargetKind.TERRAFORM
    check_existing = False

    def __init__(
        self,
        out_dir: Path | None = None,
        document: TerraformDocument | None = None,
        provider: str = "aws",
        region: str | None = None,
    ):
        settings = get_settings()
        self.out_dir = Path(out_dir or settings.terraform_out_dir)
        self.document = document or TerraformDocument()
        self.provider = provider
        self.region = region or settings.aws_region
        self.written: list[Path] = []
        self.document.set_provider(provider, {"region": self.region})

    def render_resource(self, resource_type: str, name: str, body: dict[str, Any]) -> None:
        self.document.add_resource(resource_type, name, body)

    def add_file_resource(
        self, resource_type: str, name: str, key: str, content: Content
    ) -> Literal:
        """Store content as an asset file and return a Literal reading it."""
        relative_path = f"{DATA_DIR}/{resource_type}_{name}_{key}"
        self.document.add_file(relative_path, content.as_bytes())
        return Literal.file(relative_path)

    def finish(self, result) -> None:
        if not result.success:
            logger.error("Run did not succeed; Terraform configuration not written")
            return
        self.written = self.document.write(self.out_dir)

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "out_dir": str(self.out_dir)}
