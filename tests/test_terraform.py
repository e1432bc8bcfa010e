"""Tests for the Terraform target and the AWS tasks rendered through it."""

import json

import pytest

from clusterwork.awstasks import Instance, SSHKey
from clusterwork.content import StringContent
from clusterwork.engine import Context, Executor, Lifecycle, TaskRef, TaskStatus
from clusterwork.errors import ConfigurationError, DanglingReferenceError
from clusterwork.targets.terraform import Literal, TerraformDocument, TerraformTarget, sanitize_name


class TestDocument:
    """Tests for TerraformDocument and Literal resolution."""

    def test_sanitize_name(self):
        assert sanitize_name("kubernetes.demo:abc") == "kubernetes-demoabc"
        assert sanitize_name("nodes_1-a") == "nodes_1-a"

    def test_duplicate_resource_rejected(self):
        document = TerraformDocument()
        document.add_resource("aws_instance", "a", {})

        with pytest.raises(ConfigurationError):
            document.add_resource("aws_instance", "a", {})

    def test_literals_resolve_on_finalize(self):
        document = TerraformDocument()
        document.add_resource("aws_key_pair", "k", {"key_name": "k"})
        document.add_resource(
            "aws_instance",
            "i",
            {
                "key_name": Literal.attribute("aws_key_pair", "k", "id"),
                "user_data": Literal.file("data/aws_instance_i_user_data"),
                "ami": Literal.from_string("ami-1"),
                "subnet_id": None,
            },
        )

        block = document.finalize()["resource"]["aws_instance"]["i"]

        assert block["key_name"] == "${aws_key_pair.k.id}"
        assert block["user_data"] == '${file("${path.module}/data/aws_instance_i_user_data")}'
        assert block["ami"] == "ami-1"
        assert "subnet_id" not in block

    def test_literal_to_missing_resource(self):
        document = TerraformDocument()
        document.add_resource(
            "aws_instance", "i", {"key_name": Literal.attribute("aws_key_pair", "gone", "id")}
        )

        with pytest.raises(DanglingReferenceError, match="aws_key_pair.gone"):
            document.finalize()

    def test_literal_equality(self):
        assert Literal.attribute("a", "b", "id") == Literal.attribute("a", "b", "id")
        assert Literal.from_string("x") != Literal.file("x")


class TestTerraformRun:
    """Tests for reconciling AWS tasks into generated configuration."""

    @pytest.mark.asyncio
    async def test_key_and_instance(self, temp_dir, settings, rsa_public_key):
        key = SSHKey(name="kubernetes.demo", public_key=StringContent(rsa_public_key), tags={"a": "b"})
        instance = Instance(
            name="nodes.demo",
            image_id="ami-123",
            instance_type="t3.medium",
            ssh_key=TaskRef.named("SSHKey/kubernetes.demo"),
        )
        target = TerraformTarget(out_dir=temp_dir, region="eu-west-1")

        result = await Executor(Context(target, settings=settings)).run([instance, key])

        assert result.success
        assert result.status_of("SSHKey/kubernetes.demo") == TaskStatus.CREATED

        document = json.loads((temp_dir / "kubernetes.tf.json").read_text())
        assert document["provider"]["aws"]["region"] == "eu-west-1"

        key_block = document["resource"]["aws_key_pair"]["kubernetes-demo"]
        assert key_block["key_name"] == "kubernetes.demo"
        assert key_block["public_key"] == (
            '${file("${path.module}/data/aws_key_pair_kubernetes-demo_public_key")}'
        )

        instance_block = document["resource"]["aws_instance"]["nodes-demo"]
        assert instance_block["key_name"] == "${aws_key_pair.kubernetes-demo.id}"
        assert instance_block["ami"] == "ami-123"
        assert instance_block["tags"]["Name"] == "nodes.demo"

        asset = temp_dir / "data" / "aws_key_pair_kubernetes-demo_public_key"
        assert asset.read_text() == rsa_public_key

    @pytest.mark.asyncio
    async def test_existing_key_is_linked_by_name(self, temp_dir, settings):
        key = SSHKey(name="ops-key")
        instance = Instance(
            name="nodes.demo",
            image_id="ami-123",
            instance_type="t3.medium",
            ssh_key=key.ref(),
        )
        target = TerraformTarget(out_dir=temp_dir)

        result = await Executor(Context(target, settings=settings)).run([key, instance])

        assert result.success
        document = json.loads((temp_dir / "kubernetes.tf.json").read_text())
        assert "aws_key_pair" not in document["resource"]
        assert document["resource"]["aws_instance"]["nodes-demo"]["key_name"] == "ops-key"

    @pytest.mark.asyncio
    async def test_non_sync_lifecycle_is_skipped(self, temp_dir, settings):
        key = SSHKey(name="ops-key", lifecycle=Lifecycle.EXISTS_AND_VALIDATES)
        target = TerraformTarget(out_dir=temp_dir)

        result = await Executor(Context(target, settings=settings)).run([key])

        assert result.status_of("SSHKey/ops-key") == TaskStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_nothing_written_on_failure(self, temp_dir, settings):
        instance = Instance(name="bad", instance_type="t3.medium")
        target = TerraformTarget(out_dir=temp_dir)

        result = await Executor(Context(target, settings=settings)).run([instance])

        assert result.status_of("Instance/bad") == TaskStatus.FAILED
        assert not (temp_dir / "kubernetes.tf.json").exists()

    @pytest.mark.asyncio
    async def test_warn_if_insufficient_access_renders(self, temp_dir, settings, rsa_public_key):
        key = SSHKey(
            name="kubernetes.demo",
            public_key=StringContent(rsa_public_key),
            lifecycle=Lifecycle.WARN_IF_INSUFFICIENT_ACCESS,
        )
        instance = Instance(
            name="nodes.demo",
            image_id="ami-123",
            instance_type="t3.medium",
            ssh_key=key.ref(),
        )
        target = TerraformTarget(out_dir=temp_dir)

        result = await Executor(Context(target, settings=settings)).run([key, instance])

        assert result.success
        assert result.status_of("SSHKey/kubernetes.demo") == TaskStatus.CREATED
        document = json.loads((temp_dir / "kubernetes.tf.json").read_text())
        assert "kubernetes-demo" in document["resource"]["aws_key_pair"]

    @pytest.mark.asyncio
    async def test_unresolvable_document_is_a_run_failure(self, temp_dir, settings, rsa_public_key):
        key = SSHKey(
            name="kubernetes.demo",
            public_key=StringContent(rsa_public_key),
            lifecycle=Lifecycle.EXISTS_AND_VALIDATES,
        )
        instance = Instance(
            name="nodes.demo",
            image_id="ami-123",
            instance_type="t3.medium",
            ssh_key=key.ref(),
        )
        target = TerraformTarget(out_dir=temp_dir)

        result = await Executor(Context(target, settings=settings)).run([key, instance])

        assert result.status_of("SSHKey/kubernetes.demo") == TaskStatus.SKIPPED
        assert result.status_of("Instance/nodes.demo") == TaskStatus.CREATED
        assert isinstance(result.error, DanglingReferenceError)
        assert not result.success
        assert result.to_dict()["error"]["type"] == "DanglingReferenceError"
        assert not (temp_dir / "kubernetes.tf.json").exists()
