"""
External process execution for dbtool.
"""

import logging
import re
import shlex
import subprocess
from typing import IO, Optional, Sequence

from .exceptions import CommandExecutionError
from .models import CommandResult

MASKED_PASSWORD = "-p****"
# nesting depth of shell quoting a password flag can end up under
# (script inside ssh argument inside the logged command line)
MAX_QUOTING_DEPTH = 4

_QUOTED_PASSWORD = re.compile(r"'-p[^']*'")
_PLAIN_PASSWORD = re.compile(r"(?<![\w'-])-p[^\s']+")
_secrets: set[str] = set()


def register_secret(password: str) -> None:
    """Mask this password wherever it shows up in logged command lines."""
    if password:
        _secrets.add(password)


def _quoted_forms(token: str) -> list[str]:
    """A token as it appears inside successive layers of shlex quoting."""
    forms = [token]
    for _ in range(MAX_QUOTING_DEPTH):
        forms.append(forms[-1].replace("'", "'\"'\"'"))
    return forms


def mask_passwords(text: str) -> str:
    """Hide -p<password> arguments in a printable command line."""
    forms = {form for secret in _secrets for form in _quoted_forms(f"-p{secret}")}
    for form in sorted(forms, key=len, reverse=True):
        text = text.replace(form, MASKED_PASSWORD)
    text = _QUOTED_PASSWORD.sub(f"'{MASKED_PASSWORD}'", text)
    return _PLAIN_PASSWORD.sub(MASKED_PASSWORD, text)


def format_command(args: Sequence[str]) -> str:
    """Printable, password-masked form of an argument list."""
    masked = [MASKED_PASSWORD if arg.startswith("-p") else arg for arg in args]
    return mask_passwords(" ".join(shlex.quote(arg) for arg in masked))


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def run_command(
    args: Sequence[str],
    stdin: Optional[IO[bytes]] = None,
    stdout: Optional[IO[bytes]] = None,
    check: bool = True
) -> CommandResult:
    """Run a command to completion.

    Args:
        args: Argument list, executed without a local shell.
        stdin: Optional file to feed to the process; stdin is closed otherwise.
        stdout: Optional file receiving stdout; captured when omitted.
        check: Raise CommandExecutionError on a non-zero exit status.

    Returns:
        CommandResult with exit status and captured output.
    """
    logging.debug(f"Running: {format_command(args)}")

    try:
        proc = subprocess.run(
            list(args),
            stdin=stdin if stdin is not None else subprocess.DEVNULL,
            stdout=stdout if stdout is not None else subprocess.PIPE,
            stderr=subprocess.PIPE
        )
    except FileNotFoundError as e:
        raise CommandExecutionError(
            f"Command '{args[0]}' not found. Ensure it is installed and on PATH"
        ) from e

    result = CommandResult(
        args=list(args),
        returncode=proc.returncode,
        stdout=_decode(proc.stdout),
        stderr=_decode(proc.stderr)
    )

    if check and not result.success:
        raise CommandExecutionError(
            f"Command '{args[0]}' failed with exit code {result.returncode}",
            returncode=result.returncode,
            stderr=result.stderr
        )

    return result
