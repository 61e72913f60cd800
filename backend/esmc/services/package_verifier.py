"""
Package integrity verification

A distributable package ships an integrity manifest
    {buildVersion, buildDate, architecture, totalFiles, checksums: {relpath: sha256}}
and a signature file {signature}, the HMAC-SHA256 of the compact manifest JSON.
"""
import hashlib
import hmac
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from esmc.core.config import get_settings
from esmc.core.exceptions import IntegrityError
from esmc.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

DEFAULT_MANIFEST = Path(".claude") / "ESMC-Chaos" / ".integrity-manifest.json"
DEFAULT_SIGNATURE = Path(".package-signature")


@dataclass
class VerificationReport:
    valid: bool = False
    signature_valid: bool = False
    build_version: Optional[str] = None
    verified: int = 0
    modified: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def derive_key(build_version: str, passphrase: Optional[str] = None) -> bytes:
    """sha256 of the passphrase (configured override first, then the build default)"""
    secret = passphrase or get_settings().package_signature_key or f"ESMC-{build_version}-package-signature"
    return hashlib.sha256(secret.encode("utf-8")).digest()


def _canonical(manifest: Dict[str, Any]) -> bytes:
    return json.dumps(manifest, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sign_manifest(manifest: Dict[str, Any], passphrase: Optional[str] = None) -> str:
    key = derive_key(str(manifest.get("buildVersion", "")), passphrase)
    return hmac.new(key, _canonical(manifest), hashlib.sha256).hexdigest()


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def build_manifest(root: Union[str, Path], files: List[str], build_version: str, **extra: Any) -> Dict[str, Any]:
    """Manifest for the given files relative to root"""
    root = Path(root)
    checksums = {rel: file_sha256(root / rel) for rel in sorted(files)}
    return {"buildVersion": build_version, **extra, "totalFiles": len(checksums), "checksums": checksums}


def _read_json(path: Path, what: str) -> Dict[str, Any]:
    if not path.exists():
        raise IntegrityError(f"{what} not found: {path}", details={"path": str(path)})
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise IntegrityError(f"{what} unreadable: {e}", details={"path": str(path)}) from e
    if not isinstance(data, dict):
        raise IntegrityError(f"{what} must be a JSON object", details={"path": str(path)})
    return data


def verify_package(
    root: Union[str, Path],
    manifest_path: Optional[Union[str, Path]] = None,
    signature_path: Optional[Union[str, Path]] = None,
    passphrase: Optional[str] = None,
) -> VerificationReport:
    """
    Verify manifest signature and every file checksum

    Raises:
        IntegrityError: if the manifest or signature file is missing or unreadable
    """
    root = Path(root)
    manifest = _read_json(root / (manifest_path or DEFAULT_MANIFEST), "Integrity manifest")
    signature = _read_json(root / (signature_path or DEFAULT_SIGNATURE), "Package signature")

    report = VerificationReport(build_version=manifest.get("buildVersion"))
    expected = sign_manifest(manifest, passphrase)
    report.signature_valid = hmac.compare_digest(expected, str(signature.get("signature", "")))
    if not report.signature_valid:
        logger.error("Package signature mismatch, package may be tampered")
        return report

    for rel, expected_hash in (manifest.get("checksums") or {}).items():
        path = root / rel
        if not path.exists():
            report.missing.append(rel)
        elif file_sha256(path) != expected_hash:
            report.modified.append(rel)
        else:
            report.verified += 1

    report.valid = not report.missing and not report.modified
    if report.valid:
        logger.info(f"Package integrity verified ({report.verified} files)")
    else:
        logger.error(
            "Package integrity compromised",
            extra={"modified": report.modified, "missing": report.missing}
        )
    return report
