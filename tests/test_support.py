"""Tests for fingerprints, content, retry and settings."""

import base64
import hashlib

import pytest
from cryptography.hazmat.primitives import serialization

from clusterwork.content import FileContent, StringContent, content_as_string
from clusterwork.pki import compute_aws_key_fingerprint, compute_openssh_fingerprint
from clusterwork.retry import RetryManager
from clusterwork.settings import ClusterworkSettings


class TestFingerprints:
    def test_openssh_fingerprint(self, ed25519_public_key):
        blob = base64.b64decode(ed25519_public_key.split()[1])
        expected = base64.b64encode(hashlib.sha256(blob).digest()).decode().rstrip("=")

        assert compute_openssh_fingerprint(ed25519_public_key) == "SHA256:" + expected

    def test_aws_rsa_fingerprint_is_md5_of_der(self, rsa_public_key):
        key = serialization.load_ssh_public_key(rsa_public_key.split(" test@")[0].encode())
        der = key.public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        digest = hashlib.md5(der).hexdigest()

        fingerprint = compute_aws_key_fingerprint(rsa_public_key)

        assert fingerprint.replace(":", "") == digest
        assert len(fingerprint.split(":")) == 16

    def test_aws_ed25519_fingerprint(self, ed25519_public_key):
        assert compute_aws_key_fingerprint(ed25519_public_key) == compute_openssh_fingerprint(
            ed25519_public_key
        )

    def test_malformed_key(self):
        with pytest.raises(ValueError):
            compute_openssh_fingerprint("ssh-rsa")


class TestContent:
    def test_string_and_file_content_compare_by_bytes(self, temp_dir):
        path = temp_dir / "key.pub"
        path.write_text("ssh-ed25519 AAAA\n")

        assert FileContent(path) == StringContent("ssh-ed25519 AAAA\n")
        assert StringContent("a") != StringContent("b")

    def test_content_as_string(self):
        assert content_as_string(None) is None
        assert content_as_string("x") == "x"
        assert content_as_string(StringContent("y")) == "y"


class TestRetryManager:
    def test_exponential_delay_is_capped(self):
        retry = RetryManager(max_attempts=5, base_delay=1.0, max_delay=5.0)

        assert [retry.calculate_delay(i) for i in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_retries_until_success(self):
        sleeps = []
        attempts = []
        retry = RetryManager(max_attempts=3, base_delay=0.5, max_delay=10, sleep=sleeps.append)

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("reset")
            return "ok"

        assert retry.call(flaky, lambda e: isinstance(e, ConnectionError)) == "ok"
        assert sleeps == [0.5, 1.0]

    def test_non_retryable_raises_immediately(self):
        retry = RetryManager(max_attempts=3, base_delay=0, max_delay=0, sleep=lambda _: None)
        attempts = []

        def broken():
            attempts.append(1)
            raise KeyError("x")

        with pytest.raises(KeyError):
            retry.call(broken, lambda e: False)
        assert len(attempts) == 1

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryManager(max_attempts=0, base_delay=0, max_delay=0)


class TestSettings:
    def test_defaults(self):
        settings = ClusterworkSettings(_env_file=None)

        assert settings.max_workers == 4
        assert settings.fail_fast is False
        assert settings.run_timeout is None

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("CLW_MAX_WORKERS", "8")
        monkeypatch.setenv("CLW_FAIL_FAST", "true")
        monkeypatch.setenv("CLW_AWS_REGION", "ap-south-1")

        settings = ClusterworkSettings(_env_file=None)

        assert settings.max_workers == 8
        assert settings.fail_fast is True
        assert settings.aws_region == "ap-south-1"
