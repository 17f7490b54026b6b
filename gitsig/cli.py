"""gitsig CLI application with Typer."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer

from gitsig import __version__
from gitsig.bootstrap import ApplicationContainer, bootstrap_application
from gitsig.config import get_settings, set_settings
from gitsig.errors import GitSigError
from gitsig.signature.model import SignatureVersion
from gitsig.utils.cli_output import json_response
from gitsig.utils.offline import OfflineModeGate

app = typer.Typer(
    name="git-sig",
    help="Sign arbitrary git objects with signify and minisign keys",
    add_completion=True,
    no_args_is_help=True,
)
raw_app = typer.Typer(help="Create and check signature objects without references")
app.add_typer(raw_app, name="raw")
rm_app = typer.Typer(help="Remove signature data")
app.add_typer(rm_app, name="rm")
audit_app = typer.Typer(help="Audit ledger management")
app.add_typer(audit_app, name="audit")

PublicKeyOption = Annotated[
    Path,
    typer.Option(
        "--key",
        "-k",
        envvar="GIT_KEY_PUB",
        help="Public key file, or directory of *.pub files",
    ),
]
SecretKeyOption = Annotated[
    Path,
    typer.Option(
        "--key",
        "-k",
        envvar="GIT_KEY_SEC",
        help="Secret key file, or directory of *.sec files",
    ),
]
RevisionArgument = Annotated[str, typer.Argument(help="Git revision of the object")]


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"git-sig version {__version__}")
        raise typer.Exit()


def require_online(gate: OfflineModeGate, feature_name: str) -> None:
    """Enforce that ``feature_name`` may only run in online mode."""

    try:
        gate.require(feature_name)
    except RuntimeError as exc:
        typer.secho(f"\n{exc}\nAborting.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=2) from exc


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn gitsig failures into a red ``Error:`` line and exit code 1."""

    try:
        yield
    except GitSigError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def _container() -> ApplicationContainer:
    with reported_errors():
        return bootstrap_application()


def _configure_logging(level: str) -> None:
    logger = logging.getLogger("gitsig")
    logger.setLevel(level)
    if logging.getLevelName(level) < logging.WARNING and not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
    repo: Annotated[
        Path | None,
        typer.Option("--repo", "-C", help="Run as if started in this repository path"),
    ] = None,
    offline: Annotated[
        bool,
        typer.Option("--offline", help="Refuse operations that contact remotes"),
    ] = False,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Override data directory (audit ledger)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """git-sig - attach signify/minisign signatures to git objects."""
    settings = get_settings()
    if repo:
        settings.repo_path = repo
    if offline:
        settings.online = False
    if data_dir:
        settings.data_dir = data_dir
    if verbose:
        settings.log_level = "DEBUG"
    set_settings(settings)
    _configure_logging(settings.log_level)


# ---------------------------------------------------------------------------
# raw
# ---------------------------------------------------------------------------


@raw_app.command("sign")
def raw_sign(
    key: SecretKeyOption,
    rev: RevisionArgument,
    legacy_layout: Annotated[
        bool,
        typer.Option(
            "--legacy-layout",
            help="Write the flat v0 tree layout (signify keys only) instead of v1",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation for --legacy-layout"),
    ] = False,
) -> None:
    """Sign an object and print the id of the new signature object."""

    if legacy_layout and not yes:
        typer.confirm(
            "The v0 layout is a legacy format kept for older verifiers. Continue?",
            abort=True,
        )
    version = SignatureVersion.V0 if legacy_layout else SignatureVersion.current()

    container = _container()
    with reported_errors():
        for outcome in container.signing_service.raw_sign(key, rev, version=version):
            typer.echo(outcome.signature_id)


@raw_app.command("verify")
def raw_verify(
    key: PublicKeyOption,
    rev: Annotated[str, typer.Argument(help="Git revision of the signature object")],
    recover: Annotated[
        bool,
        typer.Option("--recover", "-p", help="Print the id of the signed object"),
    ] = False,
) -> None:
    """Verify a signature object with one or more public keys."""

    container = _container()
    with reported_errors():
        for outcome in container.signing_service.raw_verify(key, rev):
            if recover:
                typer.echo(outcome.signed_id)


# ---------------------------------------------------------------------------
# sign / verify / lookup
# ---------------------------------------------------------------------------


@app.command("sign")
def sign(key: SecretKeyOption, rev: RevisionArgument) -> None:
    """Sign an object and store a reference to the signature."""

    container = _container()
    with reported_errors():
        for outcome in container.signing_service.sign(key, rev):
            if outcome.created:
                typer.secho("Signed with key:", fg=typer.colors.GREEN)
            else:
                typer.secho("Signature already exists with key:", fg=typer.colors.YELLOW)
            typer.echo(f"  - {outcome.key_path}")
            typer.echo("Signature stored under:")
            typer.echo(f"  - {outcome.reference}")


@app.command("verify")
def verify(key: PublicKeyOption, rev: RevisionArgument) -> None:
    """Verify the stored signatures of an object."""

    container = _container()
    with reported_errors():
        for outcome in container.signing_service.verify(key, rev):
            if outcome.verified:
                typer.secho(
                    f"Signature verified successfully with {outcome.key_path}",
                    fg=typer.colors.GREEN,
                )
            else:
                typer.secho(
                    f"No signature found for key {outcome.key_path}", fg=typer.colors.YELLOW
                )


@app.command("rev-lookup")
def rev_lookup(key: PublicKeyOption, rev: RevisionArgument) -> None:
    """Print the signature references of an object for the given keys."""

    container = _container()
    with reported_errors():
        for outcome in container.signing_service.rev_lookup(key, rev):
            if outcome.exists:
                typer.echo(outcome.reference)


@app.command("fingerprint")
def fingerprint(key: PublicKeyOption) -> None:
    """Print the fingerprint of public keys."""

    from gitsig.keys import load_public_keys

    with reported_errors():
        for path, public_key in load_public_keys(key):
            typer.echo(f"{path}:")
            typer.echo(f"  - {public_key.fingerprint()}")


@app.command("list-signatures")
def list_signatures(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    remote: Annotated[
        str | None,
        typer.Option("--remote", "-r", help="List signatures advertised by this remote"),
    ] = None,
) -> None:
    """List signed objects and their signers."""

    container = _container()
    if remote is not None:
        require_online(container.offline_gate, "list-signatures --remote")

    with reported_errors():
        signers = container.sync_service.list_signatures(remote)
        described = {
            object_id: container.sync_service.describe(object_id) for object_id in signers
        }

    if json_output:
        typer.echo(
            json_response(
                "signatures",
                1,
                remote=remote,
                total_objects=len(signers),
                signatures=[
                    {
                        "object": object_id,
                        "description": described[object_id],
                        "signers": sorted(fingerprints),
                    }
                    for object_id, fingerprints in signers.items()
                ],
            )
        )
        return

    for object_id, fingerprints in signers.items():
        typer.echo(f"Signers of {described[object_id]}:")
        for signer in sorted(fingerprints):
            typer.echo(f"  - {signer}")


# ---------------------------------------------------------------------------
# push / pull / rm
# ---------------------------------------------------------------------------


@app.command("push")
def push(
    remote: Annotated[str | None, typer.Argument(help="Remote to push to")] = None,
) -> None:
    """Push all signature data to a remote."""

    container = _container()
    require_online(container.offline_gate, "push")
    with reported_errors():
        target = container.sync_service.push(remote)
    typer.secho(f"Pushed signatures to {target}", fg=typer.colors.GREEN)


@app.command("pull")
def pull(
    remote: Annotated[str | None, typer.Argument(help="Remote to fetch from")] = None,
) -> None:
    """Fetch all signature data from a remote."""

    container = _container()
    require_online(container.offline_gate, "pull")
    with reported_errors():
        target = container.sync_service.pull(remote)
    typer.secho(f"Fetched signatures from {target}", fg=typer.colors.GREEN)


@rm_app.command("signature")
def rm_signature(
    key: PublicKeyOption,
    rev: RevisionArgument,
    remote: Annotated[
        str | None,
        typer.Option("--remote", "-R", help="Delete the reference on this remote instead"),
    ] = None,
) -> None:
    """Remove the signature references of an object for the given keys."""

    container = _container()
    if remote is not None:
        require_online(container.offline_gate, "rm signature --remote")

    with reported_errors():
        for outcome in container.sync_service.remove_signatures(key, rev, remote=remote):
            if outcome.removed:
                typer.echo(f"Removed {outcome.reference}")
            else:
                typer.secho(
                    f"No signature found for key {outcome.key_path}", fg=typer.colors.YELLOW
                )


# ---------------------------------------------------------------------------
# audit
# ---------------------------------------------------------------------------


@audit_app.command("show")
def audit_show(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    tail: Annotated[
        int | None,
        typer.Option("--tail", "-n", help="Show last N entries"),
    ] = None,
) -> None:
    """Show audit ledger entries."""

    container = _container()

    if not container.audit_service.is_enabled():
        typer.secho("No audit ledger found", fg=typer.colors.YELLOW)
        return

    entries = container.audit_service.get_entries(tail=tail)

    if not entries:
        typer.secho("No audit ledger entries found", fg=typer.colors.YELLOW)
        return

    if json_output:
        typer.echo(
            json_response(
                "audit_log",
                1,
                total_entries=len(entries),
                entries=[entry.model_dump(mode="json") for entry in entries],
            )
        )
    else:
        for entry in entries:
            subjects = entry.references or entry.objects
            typer.echo(f"{entry.timestamp} | {entry.operation} | {', '.join(subjects)}")


@audit_app.command("verify")
def audit_verify() -> None:
    """Verify audit ledger integrity."""
    container = _container()

    if not container.audit_service.is_enabled():
        typer.secho("No audit ledger found", fg=typer.colors.YELLOW)
        return

    valid, error = container.audit_service.verify()

    if valid:
        typer.secho("Audit ledger is valid", fg=typer.colors.GREEN)
        return

    message = error or "Audit ledger integrity check failed"
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
