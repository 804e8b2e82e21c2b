"""CLI Utility Functions"""

import logging
import os
import subprocess
import sys
import tempfile

from aicommit.output import bold, dim, info, colorize_commit_type

logger = logging.getLogger(__name__)


def copy_to_clipboard(text: str) -> tuple[bool, str]:
    """Copy text to clipboard. Returns (success, failure_reason)."""
    data = text.encode('utf-8')
    try:
        if sys.platform == 'win32':
            subprocess.run(['clip'], input=data, check=True)
        elif sys.platform == 'darwin':
            subprocess.run(['pbcopy'], input=data, check=True)
        else:
            try:
                subprocess.run(['xclip', '-selection', 'clipboard'], input=data, check=True)
            except FileNotFoundError:
                subprocess.run(['xsel', '--clipboard', '--input'], input=data, check=True)
    except FileNotFoundError:
        if sys.platform.startswith('linux'):
            return False, "Install xclip or xsel: sudo apt install xclip"
        return False, "No clipboard tool found"
    except (subprocess.CalledProcessError, OSError) as e:
        return False, f"Clipboard command failed: {e}"
    return True, ""


def add_ticket_reference(message: str, ticket: str | None, prefix: str = "Refs") -> str:
    """Append a 'Refs: PROJ-123' trailer, once."""
    if not ticket:
        return message
    trailer = f"{prefix}: {ticket.upper()}"
    if trailer in message:
        return message
    return f"{message}\n\n{trailer}"


def format_option(message: str, option_num: int) -> str:
    colored = colorize_commit_type(message)
    return f"{info(f'[{option_num}]')} {bold(colored)}"


def display_options(options: list[str]) -> int | None:
    """Show candidates and read a selection. None means the user quit."""
    print()
    for i, opt in enumerate(options, 1):
        print(format_option(opt, i))
    print()

    while True:
        try:
            choice = input(f"Select [1-{len(options)}] or (q)uit: ").strip().lower()
        except (KeyboardInterrupt, EOFError):
            return None
        if choice == 'q':
            return None
        if choice == '' and len(options) == 1:
            return 0
        if choice.isdigit() and 1 <= int(choice) <= len(options):
            return int(choice) - 1
        print(dim(f"Enter 1-{len(options)} or q"))


def edit_message(message: str) -> str | None:
    """Open message in user's editor. Returns edited text or None on failure."""
    editor = os.environ.get('VISUAL') or os.environ.get('EDITOR')
    if not editor:
        editor = 'notepad' if sys.platform == 'win32' else 'vi'

    tmp = tempfile.NamedTemporaryFile(mode='w', suffix='.gitcommit', delete=False, encoding='utf-8')
    try:
        tmp.write(message)
        tmp.close()
        subprocess.run([editor, tmp.name], check=True)
        with open(tmp.name, 'r', encoding='utf-8') as f:
            edited = f.read().strip()
        return edited or None
    except (subprocess.CalledProcessError, OSError) as e:
        logger.warning("Editor '%s' failed: %s", editor, e)
        return None
    finally:
        try:
            os.unlink(tmp.name)
        except OSError as e:
            logger.warning("Could not delete temp file %s: %s", tmp.name, e)
