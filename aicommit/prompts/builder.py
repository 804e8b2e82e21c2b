"""Prompt Builder - Construct LLM prompts for commit message generation."""

from dataclasses import dataclass, field

from aicommit import COMMIT_TYPES

SYSTEM_PROMPT = """You are a senior software engineer specialized in writing precise, informative git commit messages.

Your standards:
- Identify the PRIMARY purpose of a change from the diff
- The diff shows WHAT; the subject line says what the commit achieves
- Specific verbs over vague ones (never "update", "change", "modify")"""

RESPONSE_SYSTEM_PROMPT = "You are an expert software developer who helps fix code issues and improve code quality."

LANGUAGES = {
    'en': 'English',
    'es': 'Spanish',
    'fr': 'French',
    'de': 'German',
    'it': 'Italian',
    'pt': 'Portuguese',
    'ru': 'Russian',
    'ja': 'Japanese',
    'ko': 'Korean',
    'zh': 'Chinese',
}


@dataclass
class GenerateOptions:
    """Caller-provided knobs for one generation request."""
    count: int = 3
    conventional: bool = True
    language: str = "en"
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    chunk_index: int | None = None
    total_chunks: int | None = None
    hint: str | None = None
    forced_type: str | None = None
    max_length: int = 72
    summary: str | None = None  # per-file overview shown above the diff
    recent_subjects: list[str] = field(default_factory=list)

    @property
    def is_chunk(self) -> bool:
        return self.total_chunks is not None and self.total_chunks > 1


def language_name(code: str) -> str:
    return LANGUAGES.get(code.lower(), 'English') if code else 'English'


class PromptBuilder:
    """Constructs prompts optimized for commit message generation."""

    def build(self, diff: str, options: GenerateOptions | None = None) -> str:
        options = options or GenerateOptions()
        sections = [
            self._build_format_section(options),
            self._build_chunk_section(options),
            self._build_diff_section(diff, options),
            self._build_history_section(options),
            self._build_hints_section(options),
            self._build_instructions(options),
        ]
        return "\n\n".join(filter(None, sections))

    def build_response_prompt(self, prompt: str) -> str:
        return f"{RESPONSE_SYSTEM_PROMPT}\n\n{prompt}"

    def _build_format_section(self, options: GenerateOptions) -> str:
        max_len = options.max_length
        if options.conventional:
            format_desc = f"type(scope): subject (lowercase, imperative mood, max {max_len} chars)"
            type_instruction = self._build_type_instruction(options.forced_type)
        else:
            format_desc = f"subject line (imperative mood, max {max_len} chars)"
            type_instruction = "Use a simple, direct subject line without type prefixes."

        return f"""<format>
Write each commit message as a single line:

{format_desc}

{type_instruction}
Write the messages in {language_name(options.language)}.
</format>"""

    def _build_type_instruction(self, forced_type: str | None) -> str:
        if forced_type:
            return f"IMPORTANT: Use type '{forced_type}' for every message."
        types_list = "\n".join(f"  - {t}: {desc}" for t, desc in COMMIT_TYPES.items())
        return f"Choose the most appropriate type:\n{types_list}"

    def _build_chunk_section(self, options: GenerateOptions) -> str:
        if not options.is_chunk:
            return ""
        return (f"<note>This diff is part {options.chunk_index + 1} of {options.total_chunks} "
                f"of a larger change. Describe what this part contributes.</note>")

    def _build_diff_section(self, diff: str, options: GenerateOptions) -> str:
        if not options.summary:
            return f"<changes>\n{diff}\n</changes>"
        return f"<changes>\n{options.summary}\n\nDIFF DETAILS:\n{diff}\n</changes>"

    def _build_history_section(self, options: GenerateOptions) -> str:
        if not options.recent_subjects:
            return ""
        subjects = "\n".join(f"- {s}" for s in options.recent_subjects)
        return f"""<history>
Recent commit subjects in this repository. Match their style, not their content:
{subjects}
</history>"""

    def _build_hints_section(self, options: GenerateOptions) -> str:
        if not options.hint:
            return ""

        return f"""<context>
The developer provided this context about the changes:
"{options.hint}"

Use this to inform your messages, but verify it matches what you see in the diff.
</context>"""

    def _build_instructions(self, options: GenerateOptions) -> str:
        n = options.count
        noun = "commit message" if n == 1 else "different commit messages"
        return f"""<instructions>
Generate exactly {n} {noun}, one per line.

Rules:
- No numbering, bullets or quotes
- No markdown formatting (no ```, no bold)
- No preamble like "Here are some commit messages:"
- No explanation after the messages
</instructions>"""
