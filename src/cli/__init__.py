"""Main CLI application module.

This module provides the main entry point for the cluster-bootstrap CLI.

Commands:
- bootstrap: Decrypt secrets, install Argo CD and deploy the app-of-apps
- validate: Check configuration, secrets and cluster readiness
- health: Show readiness of Argo CD, Vault and External Secrets
- status / info: Cluster version, component readiness and Argo CD Applications
- secrets: Initialize and encrypt per-environment secrets files
- vault-token: Store the Vault root token as a secret
- gitcrypt-key: Store the git-crypt key as a secret
"""

import typer

from .commands import (
    bootstrap,
    gitcrypt_key,
    health,
    secrets_app,
    status,
    validate,
    vault_token,
)

# Create the main CLI application
app = typer.Typer(
    help="🚀 cluster-bootstrap - GitOps cluster bootstrap tool",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command(name="bootstrap")(bootstrap)
app.command(name="validate")(validate)
app.command(name="health")(health)
app.command(name="status")(status)
app.command(name="info", help="Alias of status.")(status)
app.command(name="vault-token")(vault_token)
app.command(name="gitcrypt-key")(gitcrypt_key)
app.add_typer(secrets_app, name="secrets")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
