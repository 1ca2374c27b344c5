"""Typer application entrypoint for operators."""

import sys
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich import print as rprint
from rich.table import Table

from vista.client.api_client import VistaApiClient
from vista.client.exceptions import ClientError, LoginError
from vista.client.login import DEFAULT_CREDENTIALS_FILE, CredentialStore, FirebaseAuthClient
from vista.client.reviewer import ScanReviewer
from vista.client.uploader import ScanUploader
from vista.logging.logger import Log

DEFAULT_API_URL = "http://localhost:8080"

app = typer.Typer(help="Upload CT scans and review their AI findings")


@app.callback()
def main(
    ctx: typer.Context,
    api_url: str = typer.Option(DEFAULT_API_URL, envvar="VISTA_API_URL", help="VISTA API base URL"),
    token: str = typer.Option("", envvar="VISTA_ID_TOKEN", help="Identity token sent as Bearer"),
    credentials_file: Path = typer.Option(
        DEFAULT_CREDENTIALS_FILE,
        envvar="VISTA_CREDENTIALS_FILE",
        help="Where 'login' keeps the session",
    ),
    firebase_api_key: str = typer.Option(
        "", envvar="VISTA_FIREBASE_API_KEY", help="Firebase web API key used to sign in"
    ),
    log_level: str = typer.Option("WARNING", envvar="LOG_LEVEL"),
) -> None:
    Log.configure(log_level, component="cli", stream=sys.stderr)
    ctx.obj = {
        "api_url": api_url,
        "token": token,
        "credentials_file": credentials_file,
        "firebase_api_key": firebase_api_key,
    }


def _client(ctx: typer.Context) -> VistaApiClient:
    token = ctx.obj["token"] or _stored_token(ctx)
    if not token:
        typer.echo("An identity token is required (--token, VISTA_ID_TOKEN or 'vista login').")
        raise typer.Exit(code=2)
    return VistaApiClient(ctx.obj["api_url"], token)


def _stored_token(ctx: typer.Context) -> str:
    store = CredentialStore(ctx.obj["credentials_file"])
    session = store.load()
    if session is None:
        return ""
    if not session.is_expired():
        return session.id_token
    try:
        with FirebaseAuthClient(ctx.obj["firebase_api_key"]) as auth:
            session = auth.refresh(session)
    except LoginError as exc:
        typer.echo(f"Stored session could not be refreshed ({exc}); run 'vista login'.")
        raise typer.Exit(code=2) from exc
    store.save(session)
    return session.id_token


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"Error: {exc}")
    raise typer.Exit(code=1)


def _print_findings(findings: list[dict]) -> None:
    if not findings:
        typer.echo("No findings.")
        return
    for finding in findings:
        marker = "[red]error[/red]" if finding.get("error") else "[green]ok[/green]"
        rprint(f"[bold]{finding.get('filename')}[/bold] ({marker})")
        typer.echo(f"  {finding.get('result')}")


@app.command("login")
def login(
    ctx: typer.Context,
    email: str = typer.Option(..., prompt=True, help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Account password"),
) -> None:
    """Sign in with email and password and remember the session."""
    try:
        with FirebaseAuthClient(ctx.obj["firebase_api_key"]) as auth:
            session = auth.sign_in(email, password)
    except LoginError as exc:
        _fail(exc)
    CredentialStore(ctx.obj["credentials_file"]).save(session)
    typer.echo(f"Signed in as {session.email}")


@app.command("logout")
def logout(ctx: typer.Context) -> None:
    """Forget the stored session."""
    if CredentialStore(ctx.obj["credentials_file"]).clear():
        typer.echo("Signed out")
    else:
        typer.echo("No stored session")


@app.command("upload")
def upload(
    ctx: typer.Context,
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="DICOM slices or one ZIP"),
    wait: bool = typer.Option(False, help="Wait until the scan is processed"),
    timeout: float = typer.Option(300.0, help="Seconds to wait with --wait"),
) -> None:
    """Zip and upload slices for analysis."""
    with _client(ctx) as client:
        uploader = ScanUploader(client)
        try:
            archive = uploader.prepare_archive(files)
            with typer.progressbar(length=100, label=f"Uploading {archive.name}") as bar:
                state = {"last": 0}

                def on_progress(percent: int) -> None:
                    bar.update(percent - state["last"])
                    state["last"] = percent

                response = uploader.upload(archive, on_progress)
            typer.echo(f"Uploaded scan {response['scan_id']}")
            if wait:
                scan = uploader.wait_until_processed(response["scan_id"], timeout)
                _print_findings(scan.get("ai_analysis") or [])
        except (ClientError, ValueError) as exc:
            _fail(exc)


@app.command("scans")
def scans(
    ctx: typer.Context,
    status: Optional[str] = typer.Option("processed", help="Filter by status ('' for all)"),
) -> None:
    """List your scans."""
    with _client(ctx) as client:
        try:
            if status == "processed":
                rows = ScanReviewer(client).list_processed()
            else:
                rows = client.list_scans(status=status or None)
        except ClientError as exc:
            _fail(exc)
    table = Table(title="Scans")
    table.add_column("ID")
    table.add_column("Status")
    table.add_column("Slices", justify="right")
    table.add_column("Created")
    for row in rows:
        table.add_row(
            row["id"],
            row["status"],
            str(len(row.get("slices") or [])),
            str(row.get("created_at") or ""),
        )
    rprint(table)


@app.command("show")
def show(ctx: typer.Context, scan_id: str) -> None:
    """Print the AI findings of a scan."""
    with _client(ctx) as client:
        try:
            findings = ScanReviewer(client).findings(scan_id)
        except ClientError as exc:
            _fail(exc)
    _print_findings(findings)


@app.command("rerun")
def rerun(ctx: typer.Context, scan_id: str) -> None:
    """Re-analyze every slice of a scan and store the new findings."""
    with _client(ctx) as client:
        try:
            findings = ScanReviewer(client).rerun(scan_id)
        except (ClientError, ValueError) as exc:
            _fail(exc)
    _print_findings(findings)


@app.command("requeue")
def requeue(ctx: typer.Context, scan_id: str) -> None:
    """Queue the analysis of a pending scan again."""
    with _client(ctx) as client:
        try:
            response = client.requeue_analysis(scan_id)
        except ClientError as exc:
            _fail(exc)
    if response["queued"]:
        typer.echo(f"Analysis of scan {scan_id} queued")
    else:
        typer.echo(f"Analysis of scan {scan_id} is already queued")


@app.command("delete")
def delete(
    ctx: typer.Context,
    scan_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a scan's slice images."""
    if not yes:
        typer.confirm(f"Delete all slices of scan {scan_id}?", abort=True)
    with _client(ctx) as client:
        try:
            summary = ScanReviewer(client).delete_slices(scan_id)
        except ClientError as exc:
            _fail(exc)
    typer.echo(f"Deleted {len(summary['deleted'])} objects, queued {summary['queued']} cleanups")


if __name__ == "__main__":
    app()
