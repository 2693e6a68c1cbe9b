"""Helpers for reading and updating ``.sops.yaml`` creation rules."""

from __future__ import annotations

import re
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, ValidationError

from src.infra.errors import BootstrapError, ErrorKind

SOPS_CONFIG_FILE = ".sops.yaml"

# .sops.yaml key for each supported provider
PROVIDER_KEYS: dict[str, str] = {
    "age": "age",
    "aws-kms": "kms",
    "gcp-kms": "gcp_kms",
}


class CreationRule(BaseModel):
    path_regex: str | None = None
    age: str | None = None
    kms: str | None = None
    gcp_kms: str | None = None

    def recipient_for(self, provider: str) -> str | None:
        return getattr(self, PROVIDER_KEYS[provider])

    def matches(self, file_path: Path) -> bool:
        if not self.path_regex:
            return True
        return re.search(self.path_regex, file_path.as_posix()) is not None


class SopsConfig(BaseModel):
    creation_rules: list[CreationRule] = Field(default_factory=list)


def env_path_regex(env: str) -> str:
    """path_regex selecting the encrypted secrets file of one environment."""
    return rf"secrets\.{re.escape(env)}\.enc\.yaml$"


def read_sops_config(path: Path) -> SopsConfig:
    try:
        data = yaml.safe_load(path.read_text()) or {}
        return SopsConfig.model_validate(data)
    except OSError as e:
        raise BootstrapError(
            f"failed to read {path}: {e}",
            details="Check that .sops.yaml exists and is readable",
            kind=ErrorKind.NOT_FOUND,
        ) from e
    except (yaml.YAMLError, ValidationError) as e:
        raise BootstrapError(
            f"failed to parse {path}: {e}",
            details="Check the creation_rules entries in .sops.yaml",
            kind=ErrorKind.INPUT_VALIDATION,
        ) from e


def find_sops_config(start: Path) -> Path | None:
    """Walk from ``start`` up to the filesystem root looking for ``.sops.yaml``."""
    current = start.resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        candidate = directory / SOPS_CONFIG_FILE
        if candidate.is_file():
            return candidate
    return None


def find_recipient(target: Path, provider: str | None = None) -> tuple[str, str]:
    """Pick the recipient for encrypting ``target`` from the nearest ``.sops.yaml``.

    Args:
        target: Encrypted file that will be written
        provider: Restrict to one provider ("age", "aws-kms", "gcp-kms")

    Returns:
        (provider, recipient) of the first matching creation rule
    """
    if provider is not None and provider not in PROVIDER_KEYS:
        raise BootstrapError(
            f"unsupported SOPS provider: {provider}",
            details=f"Use one of: {', '.join(PROVIDER_KEYS)}",
            kind=ErrorKind.INPUT_VALIDATION,
        )

    config_path = find_sops_config(target.parent)
    if config_path is None:
        raise BootstrapError(
            f"no {SOPS_CONFIG_FILE} found above {target.parent}",
            details="Run 'cluster-bootstrap secrets init <env> --recipient <key>' first",
            kind=ErrorKind.NOT_FOUND,
        )

    config = read_sops_config(config_path)
    providers = [provider] if provider else list(PROVIDER_KEYS)
    for rule in config.creation_rules:
        if not rule.matches(target):
            continue
        for name in providers:
            recipient = rule.recipient_for(name)
            if recipient:
                return name, recipient

    raise BootstrapError(
        f"no creation rule in {config_path} matches {target.name}",
        details=f"Add a rule with path_regex matching {target.name}",
        kind=ErrorKind.NOT_FOUND,
    )


def upsert_sops_rule(config_path: Path, provider: str, key: str, env: str) -> None:
    """Create or update the creation rule for one environment.

    A rule whose path_regex equals the environment regex is replaced,
    otherwise a new rule is appended. The file is created if missing.
    """
    if provider not in PROVIDER_KEYS:
        raise BootstrapError(
            f"unsupported SOPS provider: {provider}",
            details=f"Use one of: {', '.join(PROVIDER_KEYS)}",
            kind=ErrorKind.INPUT_VALIDATION,
        )

    path_regex = env_path_regex(env)
    rule = CreationRule.model_validate(
        {"path_regex": path_regex, PROVIDER_KEYS[provider]: key}
    )

    config = read_sops_config(config_path) if config_path.exists() else SopsConfig()
    for index, existing in enumerate(config.creation_rules):
        if existing.path_regex == path_regex:
            config.creation_rules[index] = rule
            break
    else:
        config.creation_rules.append(rule)

    config_path.write_text(
        yaml.safe_dump(config.model_dump(exclude_none=True), sort_keys=False)
    )
    config_path.chmod(0o600)
