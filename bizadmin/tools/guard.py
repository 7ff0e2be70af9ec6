"""Entity guard: snapshot file hashes of stable screens and verify them before a change.

    bizadmin-guard snapshot --files bizadmin/core/forms.py,bizadmin/templates/form.html
    bizadmin-guard snapshot --filelist protected-files.json
    bizadmin-guard verify

Exit codes: 0 all good; 1 nothing to snapshot/verify or a protected file is gone;
2 hash mismatch, or a listed path did not exist at snapshot time.
"""

import hashlib
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List

import click

SNAPSHOT_FILE = ".entity-snapshots.json"
DEFAULT_EXTS = {".py", ".html", ".js", ".ts"}


def sha256_file(path) -> str:
    return hashlib.sha256(Path(path).read_bytes()).hexdigest()


def load_snapshot(state: Path) -> dict:
    if not state.exists():
        return {}
    return json.loads(state.read_text(encoding="utf-8"))


def save_snapshot(state: Path, snap: dict) -> None:
    state.write_text(json.dumps(snap, indent=2) + "\n", encoding="utf-8")


def parse_file_list(arg: str) -> List[str]:
    return [s.strip() for s in (arg or "").split(",") if s.strip()]


def load_file_list_json(path: str) -> List[str]:
    p = Path(path)
    if not p.exists():
        raise click.ClickException(f"filelist not found: {path}")
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"invalid JSON in {path}: {e}")
    if not isinstance(raw, list):
        raise click.ClickException(f"{path} must be an array of paths")
    return [str(x) for x in raw]


def _rel(path: Path) -> str:
    return os.path.relpath(path, Path.cwd()).replace("\\", "/")


def expand_entries(entries: Iterable[str]):
    """Expand directories to their source files; returns (files, missing)."""
    files: List[str] = []
    missing: List[str] = []
    for entry in entries:
        p = Path(entry)
        if not p.exists():
            missing.append(entry)
            continue
        if p.is_dir():
            found = sorted(f for f in p.rglob("*") if f.is_file() and f.suffix in DEFAULT_EXTS)
            candidates = [_rel(f) for f in found]
        else:
            candidates = [_rel(p)]
        for c in candidates:
            if c not in files:
                files.append(c)
    return files, missing


@click.group()
@click.option("--state", default=SNAPSHOT_FILE, show_default=True, help="Snapshot file location.")
@click.pass_context
def cli(ctx, state):
    """Protect stable entity screens from accidental edits."""
    ctx.obj = Path(state)


@cli.command()
@click.option("--files", "files_arg", default="", help="Comma-separated files or directories.")
@click.option("--filelist", default="", help="JSON array of files or directories.")
@click.pass_obj
def snapshot(state: Path, files_arg: str, filelist: str):
    """Record the current hash of every protected file."""
    entries = []
    for e in (load_file_list_json(filelist) if filelist else []) + parse_file_list(files_arg):
        if e not in entries:
            entries.append(e)
    files, missing = expand_entries(entries)
    for m in missing:
        click.echo(f"Not found: {m}", err=True)
    if not files and not missing:
        click.echo("Provide protected paths with --files a,b or --filelist protected.json", err=True)
        raise SystemExit(1)

    snap = load_snapshot(state)
    ts = datetime.now(timezone.utc).isoformat()
    snap["_updatedAt"] = ts
    snap.setdefault("files", {})
    for f in files:
        digest = sha256_file(f)
        snap["files"][f] = {"hash": digest, "ts": ts}
        click.echo(f"snapshot {f} = {digest}")
    save_snapshot(state, snap)
    click.echo(f"Snapshot updated in {state}")
    if missing:
        raise SystemExit(2)


@cli.command()
@click.pass_obj
def verify(state: Path):
    """Fail when any protected file changed or disappeared since the snapshot."""
    snap = load_snapshot(state)
    files = snap.get("files") or {}
    if not files:
        click.echo("No snapshots found. Run: bizadmin-guard snapshot --files <list>", err=True)
        raise SystemExit(1)

    click.echo(f"Verifying {len(files)} files from snapshot {snap.get('_updatedAt', '')}")
    missing = mismatched = 0
    for f, meta in files.items():
        if not Path(f).exists():
            click.echo(f"Missing file: {f}", err=True)
            missing += 1
            continue
        current = sha256_file(f)
        if current != meta.get("hash"):
            click.echo(f"Hash mismatch: {f}\n   snapshot={meta.get('hash')}\n   current ={current}", err=True)
            mismatched += 1
        else:
            click.echo(f"OK: {f}")

    if mismatched:
        click.echo("Verification failed; protected files changed.", err=True)
        raise SystemExit(2)
    if missing:
        click.echo("Verification failed; protected files are missing.", err=True)
        raise SystemExit(1)
    click.echo("All protected files match snapshots.")


def main():
    cli()


if __name__ == "__main__":
    main()
