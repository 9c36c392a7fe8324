"""
Main entry point for the radiko-recorder application.
Runs the typer app and maps uncaught errors to exit codes.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from radiko_recorder.cli.app import app
from radiko_recorder.cli.formatters import format_error_with_suggestions
from radiko_recorder.exceptions import RecorderError


def main() -> None:
    """Console script entry point."""
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    log = logging.getLogger("radiko_recorder")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print(
            "\n[yellow]⚠️  Recording cancelled by user. "
            "The partial file was left in place.[/yellow]"
        )
        sys.exit(130)
    except RecorderError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
