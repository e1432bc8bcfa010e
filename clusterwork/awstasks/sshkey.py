"""EC2 key pair task."""

import logging
from typing import Optional

from ..content import Content, content_as_string
from ..engine.context import Context
from ..engine.target import TargetKind
from ..engine.task import Task, renders
from ..errors import (
    AmbiguousMatchError,
    BackendError,
    CannotChangeFieldError,
    ResourceNotFoundError,
)
from ..pki import compute_aws_key_fingerprint
from ..targets.aws import AWSAPITarget, ec2_tags_to_map, tag_specifications
from ..targets.terraform import Literal, TerraformTarget, sanitize_name

logger = logging.getLogger(__name__)

KEY_NOT_FOUND = "InvalidKeyPair.NotFound"


class SSHKey(Task):
    """An SSH key pair registered with EC2.

    A key declared without ``public_key`` refers to a key pair that already
    exists in the account; it is looked up but never created.
    """

    name: Optional[str] = None
    id: Optional[str] = None
    public_key: Optional[Content] = None
    key_fingerprint: Optional[str] = None
    shared: bool = False
    tags: Optional[dict[str, str]] = None

    def compare_with_id(self) -> Optional[str]:
        return self.name

    def is_existing_key(self) -> bool:
        return self.public_key is None

    def no_ssh_key(self) -> bool:
        return (
            self.id is None
            and self.name is None
            and self.public_key is None
            and self.key_fingerprint is None
        )

    def find(self, c: Context) -> Optional["SSHKey"]:
        # The fingerprint comparison below needs the computed fingerprint
        self.normalize(c)

        try:
            response = c.cloud.call("describe_key_pairs", KeyNames=[self.name])
        except BackendError as e:
            if e.code != KEY_NOT_FOUND:
                raise
            response = {}

        key_pairs = response.get("KeyPairs") or []
        if not key_pairs:
            if self.is_existing_key() and self.name:
                raise ResourceNotFoundError(f"Unable to find specified SSH key '{self.name}'")
            return None

        if len(key_pairs) != 1:
            raise AmbiguousMatchError(f"Found multiple SSH keys with name '{self.name}'")

        k = key_pairs[0]
        actual = SSHKey(
            id=k.get("KeyPairId"),
            name=k.get("KeyName"),
            key_fingerprint=k.get("KeyFingerprint"),
            tags=ec2_tags_to_map(k.get("Tags")),
            shared=self.shared,
            lifecycle=self.lifecycle,
        )

        # AWS reports ed25519 fingerprints as padded base64 without a prefix
        if k.get("KeyType") == "ed25519" and actual.key_fingerprint:
            actual.key_fingerprint = "SHA256:" + actual.key_fingerprint.rstrip("=")

        if actual.key_fingerprint == self.key_fingerprint:
            logger.debug("SSH key fingerprints match; assuming public keys match")
            actual.public_key = self.public_key
        else:
            logger.debug(
                f"Computed SSH key fingerprint mismatch: "
                f"{self.key_fingerprint!r} {actual.key_fingerprint!r}"
            )

        if actual.shared:
            # Tag drift is not reported on keys owned elsewhere
            actual.tags = self.tags

        self.id = actual.id
        if self.is_existing_key() and self.name:
            self.key_fingerprint = actual.key_fingerprint

        return actual

    def normalize(self, c: Context) -> None:
        if self.key_fingerprint is None and self.public_key is not None:
            public_key = content_as_string(self.public_key)
            try:
                self.key_fingerprint = compute_aws_key_fingerprint(public_key)
            except ValueError as e:
                raise BackendError(
                    f"Error computing key fingerprint for SSH key '{self.name}': {e}"
                ) from e
            logger.debug(f"Computed SSH key fingerprint as {self.key_fingerprint!r}")

    def check_changes(self, a, e, changes) -> None:
        if a is not None and changes.name is not None:
            raise CannotChangeFieldError("name", a.name, e.name)

    @renders(TargetKind.AWS)
    def render_aws(self, t: AWSAPITarget, a, e, changes) -> None:
        if a is None:
            self._create_key_pair(t)
            return
        if not e.shared:
            t.add_aws_tags(t.context, e.id, e.tags)

    def _create_key_pair(self, t: AWSAPITarget) -> None:
        logger.info(f"Creating SSH key pair '{self.name}'")
        params = {
            "KeyName": self.name,
            "TagSpecifications": tag_specifications("key-pair", self.tags),
        }
        if self.public_key is not None:
            params["PublicKeyMaterial"] = self.public_key.as_bytes()

        response = t.cloud.call("import_key_pair", **params)
        self.key_fingerprint = response.get("KeyFingerprint")
        self.id = response.get("KeyPairId")

    @renders(TargetKind.TERRAFORM)
    def render_terraform(self, t: TerraformTarget, a, e, changes) -> None:
        # Keys that already exist are referenced by name, never declared
        if e.is_existing_key():
            return

        tf_name = sanitize_name(e.name)
        public_key = t.add_file_resource("aws_key_pair", tf_name, "public_key", e.public_key)
        t.render_resource(
            "aws_key_pair",
            tf_name,
            {
                "key_name": e.name,
                "public_key": public_key,
                "tags": e.tags,
            },
        )

    def terraform_link(self) -> Optional[Literal]:
        """Value other resources use for ``key_name``."""
        if self.no_ssh_key():
            return None
        if self.is_existing_key():
            return Literal.from_string(self.name)
        return Literal.attribute("aws_key_pair", sanitize_name(self.name), "id")
