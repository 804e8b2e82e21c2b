"""
aicommit

AI-powered commit message generation from staged git changes, with a
resilient provider layer (circuit breaker, retries, diff chunking).
"""

__version__ = "1.1.0"

# Centralized commit types - single source of truth
# Used by: prompts/builder.py, providers/candidates.py (validation), cli/args.py
COMMIT_TYPES = {
    'feat': 'A new feature or capability',
    'fix': 'A bug fix',
    'refactor': 'Code restructuring without behavior change',
    'chore': 'Maintenance tasks, dependencies, tooling',
    'docs': 'Documentation only changes',
    'test': 'Adding or updating tests',
    'style': 'Formatting, whitespace, no code change',
    'perf': 'Performance improvement',
    'ci': 'CI/CD configuration changes',
    'build': 'Build system or external dependency changes',
    'revert': 'Reverts a previous commit',
}

COMMIT_TYPE_NAMES = list(COMMIT_TYPES.keys())

# Breaking changes use "feat!:" or "feat(api)!:"
