"""Command-line interface for TBB certificate extensions."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from tbb_cert import __version__
from tbb_cert.cert_extensions import TBB_CERTIFICATES, ExtType
from tbb_cert.cert_ops import HASH_ALGOS, CertGen, hash_file
from tbb_cert.encoder import ExtensionRecord
from tbb_cert.errors import EncodingError

app = typer.Typer(
    name="tbbcert",
    help="Encode Trusted Board Boot X.509 extensions and certificates.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)
console = Console()

FORMAT = "[<->] %(asctime)s |%(process)d| %(message)s"

# Registry shared by all commands of one invocation
_cert_gen: CertGen | None = None


def get_cert_gen() -> CertGen:
    """Get or create the CertGen instance and its initialized registry."""
    global _cert_gen
    if _cert_gen is None:
        _cert_gen = CertGen()
    return _cert_gen


def load_key(path: Path) -> Any:
    """Load a PEM private key, or a PEM public key when it is not one."""
    data = path.read_bytes()
    try:
        return serialization.load_pem_private_key(data, password=None)
    except ValueError:
        return serialization.load_pem_public_key(data)


def parse_assignments(values: list[str] | None, what: str) -> dict[str, str]:
    result: dict[str, str] = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name or not value:
            raise typer.BadParameter(f"{what} must look like NAME=VALUE, got '{item}'")
        result[name] = value
    return result


def show_record(record: ExtensionRecord) -> None:
    cg = get_cert_gen()
    table = Table(title="Extension", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Name", cg.registry.short_name(record.numeric_id))
    table.add_row("OID", record.oid.dotted_string)
    table.add_row("Critical", "Yes" if record.critical else "No")
    table.add_row("Value", cg.registry.render(record.numeric_id, record.encoded_value))
    table.add_row("DER", record.encoded_value.hex())
    console.print(table)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    logging.basicConfig(
        level="DEBUG" if verbose else "WARNING",
        format=FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S %z",
        handlers=[RichHandler(console=console)],
    )


@app.command()
def extensions() -> None:
    """List the registered TBB extensions."""
    cg = get_cert_gen()
    table = Table(title="TBB Extensions")
    table.add_column("NID", style="dim")
    table.add_column("OID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Kind", style="yellow")
    table.add_column("Type", style="green")
    table.add_column("Max", style="magenta")

    for nid, definition in cg.registry.definitions():
        table.add_row(
            str(nid),
            definition.oid,
            f"{definition.short_name}\n[dim]{definition.long_name}[/dim]",
            definition.value_kind.value,
            definition.ext_type.value if definition.ext_type else "-",
            str(definition.nvctr_max) if definition.nvctr_max is not None else "-",
        )
    console.print(table)


@app.command()
def encode_hash(
    extension: Annotated[str, typer.Argument(help="Extension short name or OID")],
    digest: Annotated[
        Optional[str],
        typer.Option("--digest", "-d", help="Digest as hex")
    ] = None,
    image: Annotated[
        Optional[Path],
        typer.Option("--image", "-i", help="Image file to hash")
    ] = None,
    hash_algo: Annotated[
        str,
        typer.Option("--hash", "-h", help="Hash algorithm for --image: sha256, sha384, sha512")
    ] = "sha256",
    non_critical: Annotated[bool, typer.Option("--non-critical", help="Clear the critical flag")] = False,
) -> None:
    """
    Encode a hash extension.

    [bold]Examples:[/bold]

        $ tbbcert encode-hash TrustedBootFirmwareHash --image bl2.bin
    """
    if (digest is None) == (image is None):
        console.print("[red]Error:[/red] Exactly one of --digest or --image must be provided.")
        raise typer.Exit(1)

    cg = get_cert_gen()
    try:
        value = bytes.fromhex(digest) if digest is not None else hash_file(image, hash_algo)
        record = cg.encoder.encode_hash(cg.registry.nid(extension), not non_critical, value)
    except (EncodingError, ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    show_record(record)


@app.command()
def encode_counter(
    extension: Annotated[str, typer.Argument(help="Extension short name or OID")],
    value: Annotated[int, typer.Argument(help="Counter value")],
    non_critical: Annotated[bool, typer.Option("--non-critical", help="Clear the critical flag")] = False,
) -> None:
    """Encode a non-volatile counter extension."""
    cg = get_cert_gen()
    if value < 0:
        console.print("[red]Error:[/red] NV counters cannot be negative.")
        raise typer.Exit(1)
    try:
        record = cg.encoder.encode_counter(cg.registry.nid(extension), not non_critical, value)
    except EncodingError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    show_record(record)


@app.command()
def encode_key(
    extension: Annotated[str, typer.Argument(help="Extension short name or OID")],
    key_path: Annotated[Path, typer.Argument(help="PEM public or private key")],
    non_critical: Annotated[bool, typer.Option("--non-critical", help="Clear the critical flag")] = False,
) -> None:
    """Encode a public key extension."""
    cg = get_cert_gen()
    try:
        record = cg.encoder.encode_public_key(
            cg.registry.nid(extension), not non_critical, load_key(key_path)
        )
    except (EncodingError, ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    show_record(record)


@app.command()
def create(
    category: Annotated[str, typer.Argument(help="Certificate to create, e.g. trusted-key-cert")],
    key: Annotated[
        Optional[list[str]],
        typer.Option("--key", "-k", help="Signing key as NAME=PEM_PATH, e.g. rot=rot_key.pem")
    ] = None,
    ext: Annotated[
        Optional[list[str]],
        typer.Option("--ext", "-e", help="Extension payload as SHORT_NAME=VALUE (counter, image path or key path)")
    ] = None,
    hash_algo: Annotated[
        str,
        typer.Option("--hash", "-h", help="Signature hash: sha256, sha384, sha512")
    ] = "sha256",
    form: Annotated[str, typer.Option("--form", "-f", help="Output encoding: der or pem")] = "der",
    output_dir: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output directory")
    ] = Path("/tmp"),
) -> None:
    """
    Create a TBB certificate.

    [bold]Examples:[/bold]

        $ tbbcert create tb-fw-cert --key rot=rot_key.pem \\
            --ext TrustedWorldNVCounter=0 --ext TrustedBootFirmwareHash=bl2.bin
    """
    if category not in TBB_CERTIFICATES:
        console.print(f"[red]Error:[/red] Invalid certificate '{category}'. "
                      f"Must be one of: {', '.join(TBB_CERTIFICATES)}.")
        raise typer.Exit(1)
    if hash_algo not in HASH_ALGOS:
        console.print(f"[red]Error:[/red] Invalid hash algorithm '{hash_algo}'.")
        raise typer.Exit(1)

    form = form.lower()
    cg = get_cert_gen()
    try:
        keys = {name: load_key(Path(p)) for name, p in parse_assignments(key, "--key").items()}
        payloads: dict[str, Any] = {}
        for name, raw in parse_assignments(ext, "--ext").items():
            definition = cg.registry.definition(name)
            ext_type = definition.ext_type if definition else None
            if ext_type is ExtType.NVCOUNTER:
                payloads[name] = int(raw, 0)
            elif ext_type is ExtType.HASH:
                payloads[name] = Path(raw)
            elif ext_type is ExtType.PKEY:
                payloads[name] = load_key(Path(raw))
            else:
                raise ValueError(f"{name} is not a TBB extension")

        with console.status(f"[bold green]Creating {category}...[/bold green]"):
            cert = cg.cert_gen(category, keys, payloads, signing_algo=hash_algo)
            output_dir.mkdir(parents=True, exist_ok=True)
            suffix = "crt" if form == "der" else "pem"
            cert_path = cg.obj2file(cert, f"{category}.{suffix}", form=form, basedir=output_dir)
    except (EncodingError, ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print()
    console.print(Panel.fit(
        f"[bold green]✓[/bold green] Certificate created!\n\n"
        f"[bold]Output:[/bold] {cert_path}\n"
        f"[bold]Extensions:[/bold] {len(TBB_CERTIFICATES[category]['extensions'])}",
        title=f"[bold]{category}[/bold]",
        border_style="green",
    ))


@app.command()
def info(
    cert_path: Annotated[Path, typer.Argument(help="Path to DER or PEM certificate")],
) -> None:
    """Display the extensions of a certificate."""
    try:
        data = cert_path.read_bytes()
        if data.startswith(b"-----BEGIN"):
            cert = x509.load_pem_x509_certificate(data)
        else:
            cert = x509.load_der_x509_certificate(data)
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    cg = get_cert_gen()
    console.print()
    table = Table(title=f"Certificate: {cert_path.name}", show_header=False)
    table.add_column("Property", style="cyan", width=20)
    table.add_column("Value", style="white")
    table.add_row("Subject", cert.subject.rfc4514_string())
    table.add_row("Issuer", cert.issuer.rfc4514_string())
    table.add_row("Serial Number", str(cert.serial_number))
    table.add_row("Signature Algorithm", cert.signature_algorithm_oid._name)
    console.print(table)

    ext_table = Table(title="Extensions", show_header=True)
    ext_table.add_column("Extension", style="cyan")
    ext_table.add_column("Critical", style="yellow")
    ext_table.add_column("Value", style="white")
    for name, critical, value in cg.read_extensions(cert):
        ext_table.add_row(name, "Yes" if critical else "No",
                          value[:80] + "..." if len(value) > 80 else value)
    console.print(ext_table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print()
    console.print(Panel.fit(
        "[bold]TBB Certificate Tool[/bold]\n\n"
        f"Version: {__version__}\n"
        "Python: 3.10+\n"
        "License: Apache 2.0",
        title="[bold]tbbcert[/bold]",
        border_style="blue",
    ))


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
