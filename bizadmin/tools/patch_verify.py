"""Check that a file still has the sha256 a patch was generated against.

    bizadmin-patch-verify <path> <expected-sha256>

Exit 0 on match, 1 on mismatch or read error, 2 on missing arguments.
"""

import hashlib
from pathlib import Path

import click


@click.command()
@click.argument("path")
@click.argument("expected")
def cli(path: str, expected: str):
    """Verify PATH hashes to EXPECTED (sha256, case-insensitive). Never applies anything."""
    p = Path(path)
    if not p.exists():
        click.echo(f"File not found: {path}", err=True)
        raise SystemExit(1)
    try:
        actual = hashlib.sha256(p.read_bytes()).hexdigest()
    except OSError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    if actual.lower() != expected.strip().lower():
        click.echo(f"Mismatch for {path}\n   expected={expected}\n   actual  ={actual}", err=True)
        raise SystemExit(1)
    click.echo(f"OK: {path}\n   sha256={actual}")


def main():
    cli()


if __name__ == "__main__":
    main()
