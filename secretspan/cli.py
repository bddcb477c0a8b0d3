"""
Command Line Interface for SecretSpan
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import click
import pathspec
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import load_config
from .engine import SecretEngine
from .errors import ConfigurationError, PasswordCancelled, ScanError
from .models import EngineConfig

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

PASSWORD_ENV = "SECRETSPAN_PASSWORD"


def setup_logging(verbose: bool = False):
    """Setup logging with rich formatting"""
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
    )


def make_prompt(password: Optional[str]):
    """Build the password prompt handed to the engine"""

    async def prompt() -> Optional[str]:
        if password:
            return password
        try:
            # an empty answer cancels, like dismissing an input box;
            # read in a worker thread so expiry timers keep running
            return await asyncio.to_thread(
                click.prompt,
                "Password",
                hide_input=True,
                default="",
                show_default=False,
                err=True,
            )
        except click.Abort:
            return None

    return prompt


def fail(message: str, code: int = 1):
    err_console.print(f"[red]Error: {message}[/red]")
    sys.exit(code)


def read_text(path: str) -> str:
    try:
        # keep line terminators as they are on disk
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        fail(f"cannot read {path}: {e}")


def write_text(path: str, text: str):
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
    except OSError as e:
        fail(f"cannot write {path}: {e}")


def select_lines(lines: List[str], numbers: Iterable[int]) -> List[int]:
    """Validate 1-based line numbers and return them as 0-based indexes"""
    indexes = []
    for number in sorted(set(numbers)):
        if number < 1 or number > len(lines):
            fail(f"line {number} is out of range (1-{len(lines)})")
        indexes.append(number - 1)
    return indexes


def split_eol(line: str) -> Tuple[str, str]:
    """Split a line into its content and its line terminator"""
    content = line.rstrip("\r\n")
    return content, line[len(content) :]


@click.group()
@click.version_option()
@click.option(
    "--config", "config_path", type=click.Path(exists=True), help="YAML configuration file"
)
@click.option("--token", help="Token word delimiting secrets (overrides configuration)")
@click.option(
    "--password",
    envvar=PASSWORD_ENV,
    help=f"Password to use instead of prompting (or set {PASSWORD_ENV})",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(
    ctx,
    config_path: Optional[str],
    token: Optional[str],
    password: Optional[str],
    verbose: bool,
):
    """
    SecretSpan - inline password-protected secrets for plain text

    Secrets live inside ordinary files between two tokens, for example
    secret:<ciphertext>:secret. SecretSpan encrypts lines into such spans
    and reveals them again with the right password.

    \b
    Examples:

      # Encrypt a value and paste it into a file
      secretspan encrypt "db-password-123"

      # Show what the secrets in a file decrypt to
      secretspan preview settings.py

      # Decrypt the secrets on line 12 in place
      secretspan decrypt settings.py -l 12 --in-place
    """
    setup_logging(verbose)

    try:
        config = load_config(config_path, overrides={"token": token})
        engine = SecretEngine(config)
    except (ConfigurationError, ScanError) as e:
        fail(str(e))

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["engine"] = engine
    ctx.obj["prompt"] = make_prompt(password)


@cli.command()
@click.argument("text", required=False)
@click.pass_context
def encrypt(ctx, text: Optional[str]):
    """
    Encrypt TEXT (or stdin) and print it wrapped in tokens.
    """
    engine: SecretEngine = ctx.obj["engine"]
    if text is None:
        text = click.get_text_stream("stdin").read().rstrip("\r\n")

    try:
        wrapped = asyncio.run(engine.encrypt_text(text, ctx.obj["prompt"]))
    except PasswordCancelled as e:
        fail(str(e))

    if wrapped is None:
        fail("nothing to encrypt (empty text or already a secret)")
    click.echo(wrapped)


@cli.command("encrypt-lines")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--line",
    "-l",
    "line_numbers",
    type=int,
    multiple=True,
    required=True,
    help="Line to encrypt (1-based, repeatable)",
)
@click.option("--in-place", is_flag=True, help="Rewrite the file instead of printing")
@click.pass_context
def encrypt_lines(ctx, path: str, line_numbers: Tuple[int, ...], in_place: bool):
    """
    Encrypt whole lines of the file at PATH.

    Lines that are empty or already hold a secret are left unchanged.
    """
    engine: SecretEngine = ctx.obj["engine"]
    lines = read_text(path).splitlines(keepends=True)
    indexes = select_lines(lines, line_numbers)

    async def run() -> int:
        changed = 0
        for index in indexes:
            content, eol = split_eol(lines[index])
            wrapped = await engine.encrypt_text(content, ctx.obj["prompt"])
            if wrapped is None:
                logger.info(f"Line {index + 1} skipped")
                continue
            lines[index] = wrapped + eol
            changed += 1
        return changed

    try:
        changed = asyncio.run(run())
    except PasswordCancelled as e:
        fail(str(e))

    output = "".join(lines)
    if in_place:
        write_text(path, output)
        err_console.print(f"[green]Encrypted {changed} line(s) in {path}[/green]")
    else:
        click.echo(output, nl=False)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--line",
    "-l",
    "line_numbers",
    type=int,
    multiple=True,
    help="Only decrypt this line (1-based, repeatable)",
)
@click.option("--in-place", is_flag=True, help="Rewrite the file instead of printing")
@click.pass_context
def decrypt(ctx, path: str, line_numbers: Tuple[int, ...], in_place: bool):
    """
    Replace the secrets in the file at PATH with their plaintext.

    Secrets that fail to decrypt are kept and reported; the exit code is
    2 when any secret failed.
    """
    engine: SecretEngine = ctx.obj["engine"]
    text = read_text(path)
    lines = text.splitlines(keepends=True)
    indexes = select_lines(lines, line_numbers)

    async def run():
        if not indexes:
            return await engine.decrypt_text(text, ctx.obj["prompt"])

        failures = []
        for index in indexes:
            content, eol = split_eol(lines[index])
            revealed, failed = await engine.decrypt_text(content, ctx.obj["prompt"])
            lines[index] = revealed + eol
            # spans were scanned one line at a time
            for item in failed:
                item.match.line_number = index + 1
            failures.extend(failed)
        return "".join(lines), failures

    try:
        output, failures = asyncio.run(run())
    except PasswordCancelled as e:
        fail(str(e))

    if in_place:
        write_text(path, output)
    else:
        click.echo(output, nl=False)

    for item in failures:
        err_console.print(
            f"[yellow]Line {item.match.line_number}, column {item.match.column_start}: "
            f"{item.error}[/yellow]"
        )
    if failures:
        sys.exit(2)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def preview(ctx, path: str):
    """
    Show the decrypted value of every secret in PATH without changing it.
    """
    engine: SecretEngine = ctx.obj["engine"]
    text = read_text(path)

    try:
        previews = asyncio.run(engine.preview(text, ctx.obj["prompt"]))
    except PasswordCancelled as e:
        fail(str(e))

    if not previews:
        console.print(Panel("No secrets found", style="green"))
        return

    table = Table(title=f"🔐 Secrets in {path}")
    table.add_column("Line", justify="right", style="magenta")
    table.add_column("Column", justify="right", style="magenta")
    table.add_column("Value")

    for item in previews:
        if item.ok:
            value = escape(item.plaintext)
        else:
            value = "[red]Failed to decrypt the secret (is the password correct?)[/red]"
        table.add_row(str(item.match.line_number), str(item.match.column_start), value)

    console.print(table)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--line",
    "-l",
    "line_numbers",
    type=int,
    multiple=True,
    help="Only copy secrets on this line (1-based, repeatable)",
)
@click.option("--separator", help="Text placed between secrets (default from configuration)")
@click.pass_context
def copy(ctx, path: str, line_numbers: Tuple[int, ...], separator: Optional[str]):
    """
    Print the decrypted secrets of PATH joined by a separator.
    """
    engine: SecretEngine = ctx.obj["engine"]
    text = read_text(path)
    if line_numbers:
        lines = text.splitlines(keepends=True)
        text = "".join(lines[i] for i in select_lines(lines, line_numbers))

    try:
        joined = asyncio.run(engine.copy_secrets(text, ctx.obj["prompt"], separator))
    except PasswordCancelled as e:
        fail(str(e))

    click.echo(joined)


def collect_files(target: Path, config: EngineConfig) -> List[Path]:
    """Collect files under target matching languages and not excluded"""
    if target.is_file():
        return [target]

    include = pathspec.PathSpec.from_lines("gitwildmatch", config.languages)
    exclude = pathspec.PathSpec.from_lines("gitwildmatch", config.exclude_patterns)

    files = []
    for file_path in sorted(target.rglob("*")):
        if not file_path.is_file():
            continue
        relative = file_path.relative_to(target).as_posix()
        if exclude.match_file(relative) or not include.match_file(relative):
            continue
        if file_path.stat().st_size > config.max_file_size:
            logger.debug(f"Skipping large file {relative}")
            continue
        files.append(file_path)

    logger.debug(f"Collected {len(files)} files for scanning")
    return files


@cli.command()
@click.argument("target", type=click.Path(exists=True))
@click.pass_context
def scan(ctx, target: str):
    """
    List secret spans in TARGET (a file or a directory) without decrypting.
    """
    engine: SecretEngine = ctx.obj["engine"]
    config: EngineConfig = ctx.obj["config"]

    table = Table(title="🔍 Secret spans")
    table.add_column("File", style="cyan")
    table.add_column("Line", justify="right", style="magenta")
    table.add_column("Column", justify="right", style="magenta")
    table.add_column("End token", justify="center")

    total = 0
    for file_path in collect_files(Path(target), config):
        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping {file_path}: {e}")
            continue

        for match in engine.scan(text):
            total += 1
            table.add_row(
                str(file_path),
                str(match.line_number),
                str(match.column_start),
                "yes" if match.has_end_token else "no",
            )

    if total:
        console.print(table)
    console.print(f"[bold]Spans found:[/bold] {total}")


if __name__ == "__main__":
    cli()
