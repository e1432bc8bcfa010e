"""
Pytest configuration and fixtures for Clusterwork tests.
"""

import tempfile
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

from clusterwork.engine import Context
from clusterwork.settings import ClusterworkSettings

from tests.fakes import FakeEC2, MemoryTarget, WidgetStore, fake_cloud


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def settings():
    """Settings independent of the environment and any .env file."""
    return ClusterworkSettings(
        _env_file=None,
        max_workers=4,
        fail_fast=False,
        run_timeout=None,
        retry_max_attempts=3,
        retry_base_delay=0,
        retry_max_delay=0,
    )


@pytest.fixture
def store():
    return WidgetStore()


@pytest.fixture
def memory_context(store, settings):
    """Context for Widget tasks backed by an in-memory store."""
    return Context(MemoryTarget(), cloud=store, settings=settings)


@pytest.fixture
def ec2():
    return FakeEC2()


@pytest.fixture
def cloud(ec2):
    return fake_cloud(ec2)


@pytest.fixture(scope="session")
def rsa_public_key():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.public_key().public_bytes(
        serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH
    ).decode("ascii") + " test@clusterwork\n"


@pytest.fixture(scope="session")
def ed25519_public_key():
    key = ed25519.Ed25519PrivateKey.generate()
    return key.public_key().public_bytes(
        serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH
    ).decode("ascii") + "\n"
