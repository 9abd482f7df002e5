from __future__ import annotations

from pathlib import Path

import click

from . import pipeline
from .config import APP_VERSION
from .errors import StegVaultError
from .image_utils import generate_cover, save_image_png
from .validation import format_file_size, stego_filename


def _password_options(fn):
    fn = click.option("--no-password", "embed_key", is_flag=True,
                      help="Store a random key inside the container (anyone with the file can decrypt it)")(fn)
    fn = click.option("--password", default=None, help="Password for AES-256-GCM key derivation")(fn)
    return fn


def _check_tier(password, embed_key):
    if password is None and not embed_key:
        raise click.UsageError("Give --password or explicitly choose --no-password")


def _progress(percent: int, message: str) -> None:
    click.echo(f"[{percent:3d}%] {message}", err=True)


class _Guard:
    """Turn library failures into a one-line CLI error."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is not None and isinstance(exc, StegVaultError):
            raise click.ClickException(str(exc)) from exc
        return False


@click.group()
@click.version_option(APP_VERSION, prog_name="stegvault")
def cli():
    """stegvault CLI: encrypt files into containers and hide them in images."""


@cli.command()
@click.option("--in", "in_path", required=True, type=click.Path(dir_okay=False), help="File to encrypt")
@click.option("--out", "out_path", default=None, type=click.Path(dir_okay=False), help="Output container (default: <in>.enc)")
@click.option("--mime", "mime_type", default=None, help="MIME type to record (guessed from the name by default)")
@click.option("--workers", type=int, default=1, show_default=True, help="Parallel chunk workers")
@_password_options
def encrypt(in_path: str, out_path: str, mime_type: str, workers: int, password: str, embed_key: bool):
    """Encrypt a file into a self-describing container."""
    _check_tier(password, embed_key)
    with _Guard():
        dest = pipeline.encrypt_file(in_path, out_path, password, embed_key=embed_key,
                                     mime_type=mime_type, workers=workers, progress=_progress)
    click.echo(f"Encrypted container saved to: {dest}")


@cli.command()
@click.option("--in", "in_path", required=True, type=click.Path(dir_okay=False), help="Container (.enc) to decrypt")
@click.option("--out-dir", default=None, type=click.Path(file_okay=False), help="Directory for the recovered file")
@click.option("--password", default=None, help="Password, if the container has one")
@click.option("--workers", type=int, default=1, show_default=True, help="Parallel chunk workers")
def decrypt(in_path: str, out_dir: str, password: str, workers: int):
    """Decrypt a container back to the original file."""
    with _Guard():
        dest = pipeline.decrypt_file(in_path, out_dir, password, workers=workers, progress=_progress)
    click.echo(f"Recovered file saved to: {dest}")


@cli.command()
@click.option("--in", "in_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Container to inspect")
def inspect(in_path: str):
    """Show container metadata without decrypting."""
    with _Guard():
        meta = pipeline.inspect_container(Path(in_path).read_bytes())
    click.echo(f"filename:  {meta.filename}")
    click.echo(f"mime type: {meta.mime_type}")
    click.echo(f"version:   {meta.version}")
    click.echo(f"chunks:    {meta.chunks_count}")
    click.echo(f"password:  {'required' if meta.has_password else 'no (key embedded)'}")


@cli.command()
@click.option("--in", "in_path", required=True, type=click.Path(dir_okay=False), help="Cover image")
@click.option("--out", "out_path", default=None, type=click.Path(dir_okay=False), help="Output stego image (PNG)")
@click.option("--file", "secret_path", default=None, type=click.Path(dir_okay=False), help="Secret file to hide")
@click.option("--text", default=None, help="Secret text to hide instead of a file")
@_password_options
def hide(in_path: str, out_path: str, secret_path: str, text: str, password: str, embed_key: bool):
    """Encrypt a file or text and hide it inside an image."""
    if (secret_path is None) == (text is None):
        raise click.UsageError("Give exactly one of --file or --text")
    _check_tier(password, embed_key)
    out_path = out_path or str(Path(in_path).with_name(stego_filename(in_path)))
    with _Guard():
        if secret_path is not None:
            dest = pipeline.hide_file(in_path, secret_path, out_path, password, embed_key=embed_key)
        else:
            dest = pipeline.hide_text_file(in_path, text, out_path, password, embed_key=embed_key)
    click.echo(f"Stego image saved to: {dest}")


@cli.command()
@click.option("--in", "in_path", required=True, type=click.Path(dir_okay=False), help="Stego image")
@click.option("--out-dir", default=".", show_default=True, type=click.Path(file_okay=False), help="Directory for the recovered file")
@click.option("--password", default=None, help="Password, if the hidden container has one")
def reveal(in_path: str, out_dir: str, password: str):
    """Extract and decrypt a container hidden in an image."""
    with _Guard():
        dest = pipeline.reveal_file(in_path, out_dir, password)
    click.echo(f"Recovered file saved to: {dest}")


@cli.command()
@click.option("--in", "in_path", required=True, type=click.Path(dir_okay=False), help="Cover image")
def capacity(in_path: str):
    """Show how many container bytes an image can carry."""
    with _Guard():
        size = pipeline.image_capacity(in_path)
    click.echo(f"Capacity: {size} bytes ({format_file_size(size)})")


@cli.command()
@click.option("--out", "out_path", default="cover.png", show_default=True, type=click.Path(dir_okay=False))
@click.option("--width", type=int, default=682, show_default=True)
@click.option("--height", type=int, default=1024, show_default=True)
@click.option("--seed", type=int, default=42, show_default=True)
def cover(out_path: str, width: int, height: int, seed: int):
    """Generate a synthetic noisy PNG cover image."""
    dest = save_image_png(out_path, generate_cover(width, height, seed))
    click.echo(f"Wrote {dest.resolve()}")


if __name__ == "__main__":
    cli()
