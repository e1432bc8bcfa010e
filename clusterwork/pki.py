"""SSH public key fingerprints as reported by AWS and ssh-keygen."""

import base64
import hashlib

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa


def _parse_openssh_line(public_key: str) -> tuple[str, bytes]:
    parts = public_key.strip().split()
    if len(parts) < 2:
        raise ValueError("SSH public key is not in OpenSSH format")
    try:
        blob = base64.b64decode(parts[1], validate=True)
    except ValueError as e:
        raise ValueError(f"SSH public key has invalid base64 data: {e}") from e
    return parts[0], blob


def compute_openssh_fingerprint(public_key: str) -> str:
    """SHA256 fingerprint, matching the output of ``ssh-keygen -lf``."""
    _, blob = _parse_openssh_line(public_key)
    digest = hashlib.sha256(blob).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


def compute_aws_key_fingerprint(public_key: str) -> str:
    """Fingerprint AWS reports for an imported key pair.

    RSA keys use the colon separated MD5 of the DER encoded public key,
    ed25519 keys use the ssh-keygen SHA256 format.
    """
    key = serialization.load_ssh_public_key(public_key.strip().encode("utf-8"))

    if isinstance(key, ed25519.Ed25519PublicKey):
        return compute_openssh_fingerprint(public_key)

    if not isinstance(key, rsa.RSAPublicKey):
        raise ValueError(f"Unsupported SSH key type: {type(key).__name__}")

    der = key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashlib.md5(der).hexdigest()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))
