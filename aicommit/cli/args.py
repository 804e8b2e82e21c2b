"""CLI Argument Parsing"""

import argparse
import argcomplete

from aicommit import COMMIT_TYPE_NAMES, __version__
from aicommit.providers import AUTO_PROVIDER, ProviderName


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='aic',
        description='Generate AI-powered commit messages from staged changes',
        epilog='Example: aic -n 3 (pick one of three suggestions)'
    )

    parser.add_argument('-v', '--version', action='version', version=f'%(prog)s {__version__}')

    # Generation options
    parser.add_argument('-n', '--count', type=int, metavar='N', help='Number of suggestions (1-10, default from config)')
    parser.add_argument('--no-conventional', action='store_true', help='Allow messages without type(scope): prefix')
    parser.add_argument('-l', '--language', type=str, metavar='CODE', help='Message language, e.g. en, de, fr')
    parser.add_argument('--hint', type=str, metavar='TEXT', help='Add context: --hint "fixing the login bug"')
    parser.add_argument('-t', '--type', type=str, choices=COMMIT_TYPE_NAMES, help='Force commit type')
    parser.add_argument('-j', '--jira', type=str, nargs='?', const='auto', metavar='TICKET',
                        help='Add ticket reference: -j PROJ-123 (no value: take it from the branch name)')
    parser.add_argument('--ticket-prefix', type=str, metavar='PREFIX', help='Ticket reference prefix (default: Refs)')

    # Provider options
    parser.add_argument('-p', '--provider', type=str, choices=[p.value for p in ProviderName] + [AUTO_PROVIDER],
                        help='LLM provider (auto: try ollama, then claude)')
    parser.add_argument('-m', '--model', type=str, metavar='MODEL', help='Model name')

    # Output options
    parser.add_argument('--no-copy', action='store_true', help='Print message only, do not copy to clipboard')
    parser.add_argument('--verbose', action='store_true', help='Debug logging, prompt size and timings')
    parser.add_argument('--no-cache', action='store_true', help='Skip cached suggestions for this diff')

    # Subcommands
    parser.add_argument('--list-models', action='store_true', help='List models for the provider')
    parser.add_argument('--test-provider', action='store_true', help='Check that the provider is reachable')
    parser.add_argument('--warmup', action='store_true', help='Pre-load Ollama model into memory')
    parser.add_argument('--display-config', action='store_true', help='Show current configuration')
    parser.add_argument('--clear-cache', action='store_true', help='Delete cached suggestions')
    parser.add_argument('--install-completion', action='store_true', help='Install shell tab completion')

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    argcomplete.autocomplete(parser)
    args = parser.parse_args(argv)
    if args.count is not None and not 1 <= args.count <= 10:
        parser.error("--count must be between 1 and 10")
    return args
