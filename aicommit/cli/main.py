"""CLI Main Entry Point"""

import asyncio
import logging
import sys
import time

from aicommit.cache import ResponseCache
from aicommit.config import Config, get_manager
from aicommit.errors import ProviderError
from aicommit.git import GitAnalyzer, GitError, DiffProcessor, ProcessedDiff, StagedChanges
from aicommit.log import setup_logging
from aicommit.prompts import GenerateOptions
from aicommit.providers import OllamaProvider, ProviderChain, ProviderSelector
from aicommit.output import (
    success, warning, info, dim, bold, print_error, CHECK, RULE, Spinner, colorize_commit_type,
)

from aicommit.cli.args import parse_args
from aicommit.cli.commands import (
    display_config, report_provider_error, run_clear_cache, run_install_completion,
    run_list_models, run_test_provider, run_warmup,
)
from aicommit.cli.utils import add_ticket_reference, copy_to_clipboard, display_options, edit_message

logger = logging.getLogger(__name__)


def _display_file_list(processed: ProcessedDiff, max_shown: int = 8) -> None:
    """Show which files will be analyzed, collapsing long lists."""
    if not processed.file_details:
        return
    print(bold("Staged changes:"))
    shown = processed.file_details[:max_shown]
    remaining = len(processed.file_details) - len(shown)
    for path, additions, deletions in shown:
        print(dim(f"  {path} (+{additions} -{deletions})"))
    if remaining > 0:
        print(dim(f"  ... and {remaining} more files"))
    if processed.filtered_files > 0:
        print(dim(f"  {processed.filtered_files} noise files filtered"))


def _display_message(message: str) -> None:
    """Display commit message between horizontal rules with colored type."""
    lines = colorize_commit_type(message).split('\n')
    # Width from the raw text, colored lines carry ANSI codes
    width = max((len(line) for line in message.split('\n')), default=40)
    print(f"\n{dim(RULE * width)}")
    print(bold(lines[0]))
    for line in lines[1:]:
        print(line)
    print(dim(RULE * width))


def _copy_and_report(message: str, no_copy: bool) -> None:
    if no_copy:
        return
    copied, reason = copy_to_clipboard(message)
    if copied:
        print(f"{success(CHECK)} Copied to clipboard!")
    else:
        print(f"{warning('!')} Could not copy to clipboard{': ' + reason if reason else ''}")
        print(dim("  Select the message above to copy manually."))


def _build_options(args, config: Config) -> GenerateOptions:
    """CLI flags win over config values."""
    return GenerateOptions(
        count=args.count or config.count,
        conventional=config.conventional and not args.no_conventional,
        language=args.language or config.language,
        model=args.model,
        hint=args.hint,
        forced_type=args.type,
        max_length=config.max_subject_length,
    )


def _resolve_ticket(args, changes: StagedChanges) -> str | None:
    if not args.jira:
        return None
    if args.jira == 'auto':
        if not changes.ticket:
            logger.warning("No ticket id found in branch name '%s'", changes.branch)
        return changes.ticket
    return args.jira


# Subjects shown to the model as a style reference
RECENT_SUBJECTS = 5


def _prepare_staged_changes(analyzer: GitAnalyzer | None = None) -> tuple[StagedChanges, ProcessedDiff]:
    changes = (analyzer or GitAnalyzer()).get_staged_changes()
    if changes.is_empty:
        raise GitError("No staged changes. Run 'git add' first.")
    processed = DiffProcessor().process(changes)
    return changes, processed


def _open_cache(args, config: Config) -> ResponseCache | None:
    if args.no_cache or not config.cache:
        return None
    return ResponseCache(config.cache_dir, config.cache_ttl)


async def _generate(chain: ProviderChain, diff: str, options: GenerateOptions, is_pipe: bool,
                    cache: ResponseCache | None = None, use_cached: bool = True) -> list[str]:
    """Serve from cache when allowed, else warm up local models and generate."""
    if cache is not None and use_cached:
        cached = cache.get(diff, options)
        if cached:
            logger.debug("Using %d cached candidates", len(cached))
            return cached

    primary = chain.primary
    if isinstance(primary, OllamaProvider) and not await primary.is_model_loaded():
        if not is_pipe:
            print(dim("loading model... "), end='', flush=True)
        if not await primary.warmup() and not is_pipe:
            print(warning("warmup failed, generation may be slow... "), end='', flush=True)

    async with Spinner("generating") as spinner:
        candidates = await chain.generate_commit_messages(diff, options)
    logger.debug("Generated %d candidates with %s in %.2fs",
                  len(candidates), chain.active.display_name, spinner.elapsed)
    if cache is not None:
        cache.set(diff, options, candidates)
    return candidates


def _choose(candidates: list[str], is_interactive: bool) -> str | None:
    if len(candidates) == 1 or not is_interactive:
        return candidates[0]
    idx = display_options(candidates)
    return None if idx is None else candidates[idx]


def _ask_action() -> str:
    try:
        return input(f"\n{dim('(e)dit, (r)egenerate, or Enter to accept: ')}").strip().lower()
    except (KeyboardInterrupt, EOFError):
        return ''


async def _commit_flow(args, config: Config, chain: ProviderChain) -> int:
    is_pipe = not sys.stdout.isatty()
    is_interactive = sys.stdin.isatty() and not is_pipe

    analyzer = GitAnalyzer()
    changes, processed = _prepare_staged_changes(analyzer)
    diff = processed.diff if not processed.is_empty else changes.diff
    options = _build_options(args, config)
    options.summary = processed.summary or None
    options.recent_subjects = analyzer.get_recent_subjects(RECENT_SUBJECTS)
    ticket = _resolve_ticket(args, changes)
    prefix = args.ticket_prefix or config.ticket_prefix
    cache = _open_cache(args, config)
    use_cached = True

    if not is_pipe:
        _display_file_list(processed, config.max_file_display)
        print(f"Analyzing {bold(str(processed.total_files))} files using {info(repr(chain))}... ",
              end='', flush=True)

    while True:
        started = time.monotonic()
        candidates = await _generate(chain, diff, options, is_pipe, cache, use_cached)

        if is_pipe:
            print(add_ticket_reference(candidates[0], ticket, prefix))
            return 0

        print(success("done!"))
        if args.verbose:
            print(dim(f"  Diff: ~{processed.estimated_tokens} tokens, "
                      f"{time.monotonic() - started:.2f}s, {chain.active.display_name} "
                      f"circuit {chain.active.breaker.get_state().value}"))

        message = _choose(candidates, is_interactive)
        if message is None:
            print(dim("Cancelled."))
            return 0

        message = add_ticket_reference(message, ticket, prefix)
        _display_message(message)
        _copy_and_report(message, args.no_copy)

        if not is_interactive:
            return 0

        action = _ask_action()
        if action == 'e':
            edited = edit_message(message)
            if edited:
                _display_message(edited)
                _copy_and_report(edited, args.no_copy)
            return 0
        if action != 'r':
            return 0

        try:
            regen_hint = input(f"{dim('  Hint (Enter to skip): ')}").strip()
        except (KeyboardInterrupt, EOFError):
            return 0
        if regen_hint:
            options.hint = regen_hint
        # Regenerating asks for fresh candidates, the new ones replace the cached entry
        use_cached = False
        print("\nRegenerating... ", end='', flush=True)


async def _run(args, config: Config) -> int:
    chain = ProviderSelector(get_manager()).create_chain(args.provider, args.model)
    try:
        if args.warmup:
            return await run_warmup(chain.primary)
        if args.list_models:
            return await run_list_models(chain.primary)
        if args.test_provider:
            return await run_test_provider(chain.primary)
        try:
            return await _commit_flow(args, config, chain)
        except ProviderError as e:
            if sys.stdout.isatty():
                print()
            report_provider_error(e, chain.active)
            return 1
    finally:
        await chain.aclose()


def main() -> int:
    """Main entry point for the CLI."""
    args = parse_args()

    if args.install_completion:
        return run_install_completion()

    config = get_manager().load()
    setup_logging(args.verbose, config.log_file)

    if args.display_config:
        return display_config()
    if args.clear_cache:
        return run_clear_cache(config)

    try:
        return asyncio.run(_run(args, config))
    except (ProviderError, GitError) as e:
        print_error(str(e))
        return 1
    except KeyboardInterrupt:
        print()
        print(dim("Cancelled."))
        return 130


if __name__ == '__main__':
    sys.exit(main())
