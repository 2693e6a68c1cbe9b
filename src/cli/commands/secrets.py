"""Secrets file management commands.

- init: register an environment in .sops.yaml (or .gitattributes for git-crypt)
  and write a plaintext secrets template
- encrypt: encrypt secrets.<env>.yaml into secrets.<env>.enc.yaml with sops
"""

from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
import yaml  # type: ignore[import-untyped]

from src.cli.deployment.shell_commands import CommandRunner, SopsCommands
from src.infra.errors import BootstrapError, ErrorKind
from src.infra.secrets import (
    SopsSecretsProvider,
    ensure_gitcrypt_attributes,
    upsert_sops_rule,
)

from .shared import configure_logging, console, print_header, with_error_handling

secrets_app = typer.Typer(
    name="secrets",
    help="Manage per-environment secrets files.",
    no_args_is_help=True,
)


class Provider(str, Enum):
    AGE = "age"
    AWS_KMS = "aws-kms"
    GCP_KMS = "gcp-kms"
    GIT_CRYPT = "git-crypt"


SECRETS_TEMPLATE: dict[str, dict[str, str]] = {
    "repo": {
        "url": "git@github.com:<org>/<repo>.git",
        "targetRevision": "main",
        "sshPrivateKey": "<paste the deploy key here>",
    },
}


@secrets_app.command()
@with_error_handling
def init(
    env: Annotated[str, typer.Argument(help="Environment name")],
    provider: Annotated[
        Provider,
        typer.Option("--provider", "-p", help="Encryption provider"),
    ] = Provider.AGE,
    recipient: Annotated[
        str | None,
        typer.Option(
            "--recipient",
            "-r",
            help="Age public key, AWS KMS ARN or GCP KMS resource id (not used for git-crypt)",
        ),
    ] = None,
    output_dir: Annotated[
        Path,
        typer.Option("--output-dir", "-o", help="Directory for the secrets files"),
    ] = Path("."),
) -> None:
    """Prepare encryption config and a secrets template for an environment.

    Examples:
        cluster-bootstrap secrets init dev --recipient age1...
        cluster-bootstrap secrets init prod --provider aws-kms --recipient arn:aws:kms:...
        cluster-bootstrap secrets init dev --provider git-crypt
    """
    print_header(f"Initializing secrets for '{env}'")
    output_dir.mkdir(parents=True, exist_ok=True)

    if provider is Provider.GIT_CRYPT:
        if ensure_gitcrypt_attributes(output_dir):
            console.ok(f"Added git-crypt filter to {output_dir / '.gitattributes'}")
        else:
            console.info(".gitattributes already routes secrets files through git-crypt")
    else:
        if not recipient:
            raise BootstrapError(
                f"--recipient is required for the {provider.value} provider",
                details="Pass the age public key or KMS key id with --recipient",
                kind=ErrorKind.INPUT_VALIDATION,
            )
        upsert_sops_rule(output_dir / ".sops.yaml", provider.value, recipient, env)
        console.ok(f"Creation rule for '{env}' written to {output_dir / '.sops.yaml'}")

    template = output_dir / f"secrets.{env}.yaml"
    if template.exists():
        console.info(f"{template} already exists, leaving it untouched")
        return

    template.write_text(yaml.safe_dump(SECRETS_TEMPLATE, sort_keys=False))
    template.chmod(0o600)
    console.ok(f"Secrets template written to {template}")
    if provider is not Provider.GIT_CRYPT:
        console.info(f"Fill it in, then run: cluster-bootstrap secrets encrypt {env}")


@secrets_app.command()
@with_error_handling
def encrypt(
    env: Annotated[str, typer.Argument(help="Environment name")],
    base_dir: Annotated[
        Path,
        typer.Option("--base-dir", "-b", help="Directory holding the secrets files"),
    ] = Path("."),
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Only use recipients of this provider"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs"),
    ] = False,
) -> None:
    """Encrypt secrets.<env>.yaml for the recipient configured in .sops.yaml.

    Examples:
        cluster-bootstrap secrets encrypt dev
        cluster-bootstrap secrets encrypt prod --base-dir k8s --provider aws-kms
    """
    configure_logging(verbose)

    # sops runs from the working directory, so hand it absolute paths
    source = (base_dir / f"secrets.{env}.yaml").resolve()
    target = (base_dir / f"secrets.{env}.enc.yaml").resolve()

    sops = SopsSecretsProvider(SopsCommands(CommandRunner(Path.cwd())))
    recipient = sops.encrypt(source, target, provider)

    console.ok(f"Encrypted {source} -> {target}")
    console.print(f"[dim]Recipient: {recipient}[/dim]")
    console.warn(f"Remove or git-ignore the plaintext file {source}")
