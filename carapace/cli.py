"""
Carapace CLI -- PE Header Decoder
==================================

Click-based command-line interface that decodes a PE file and renders
its headers, data directories, section table and import descriptors.

Usage::

    # Decode and render
    carapace /path/to/app.exe

    # JSON to stdout
    carapace /path/to/app.exe --json

    # Tolerate a missing MZ signature or unknown optional-header magic
    carapace /path/to/blob.bin --lenient

    # Treat the import directory address as a raw file offset
    carapace /path/to/app.exe --raw-offsets

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import json
import sys

import click
from rich.markup import escape

from shared.config import CarapaceConfig
from shared.console import CarapaceConsole
from shared.logger import CarapaceLogger

from carapace.core.engine import load_image
from carapace.core.errors import CarapaceError, DecodeError
from carapace.output.console import ImageConsoleOutput


@click.command("carapace")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output decoded structures as JSON to stdout.",
)
@click.option(
    "--lenient",
    is_flag=True,
    default=False,
    help="Warn instead of failing on a bad MZ signature or optional-header magic.",
)
@click.option(
    "--raw-offsets",
    is_flag=True,
    default=False,
    help="Use the import directory address as a file offset (no RVA translation).",
)
@click.option(
    "--no-imports",
    is_flag=True,
    default=False,
    help="Skip the import descriptor table.",
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a carapace.toml configuration file.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
def carapace_cli(
    path: str,
    json_output: bool,
    lenient: bool,
    raw_offsets: bool,
    no_imports: bool,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Carapace -- decode the headers of a Windows PE file.

    PATH is the executable, DLL or driver to decode.

    \b
    Examples:
        carapace C:/Windows/notepad.exe
        carapace sample.dll --json --no-imports
    """
    console = CarapaceConsole()
    errors = CarapaceConsole(stderr=True)

    try:
        config = CarapaceConfig.load(config_path)
    except (OSError, ValueError) as exc:
        errors.error(f"Cannot load configuration: {escape(str(exc))}")
        sys.exit(1)

    if lenient:
        config.decoder.strict = False
    if raw_offsets:
        config.decoder.translate_rva = False

    if verbose:
        logger = CarapaceLogger.from_config("cli", config, log_level="DEBUG")
    else:
        logger = CarapaceLogger.from_config("cli", config)

    output = ImageConsoleOutput(console=console)

    try:
        image = load_image(path, config=config, logger=logger)
    except CarapaceError as exc:
        errors.error(escape(str(exc)))
        partial = getattr(exc, "partial", None)
        if partial is not None and not json_output:
            output.display_partial(partial)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(image.to_dict(imports=not no_imports), indent=2))
        return

    imports = None
    if not no_imports:
        try:
            imports = image.named_imports()
        except DecodeError as exc:
            errors.warning(f"Import table could not be decoded: {escape(str(exc))}")

    output.display(image, imports)


def main() -> None:
    """Entry point for ``python -m carapace.cli``."""
    carapace_cli()


if __name__ == "__main__":
    main()
