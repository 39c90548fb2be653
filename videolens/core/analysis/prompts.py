"""
Prompt assembly for video analysis.

The prompts are here, not in config, because they're core business logic.
Changing them changes what the product does. They should be version
controlled and reviewed like code.
"""

from typing import Optional


SYSTEM_INSTRUCTION = (
    "You are an expert video analysis system. Provide a structured, detailed analysis of the provided video. "
    "Include: (1) clear summary, (2) timeline/scene breakdown where relevant with approximate timestamps if inferable, "
    "(3) domain-specific insights (e.g., coaching, marketing hooks, storytelling, UX, security), "
    "(4) concise bullet-point recommendations."
)

FOCUS_SUFFIX_TEMPLATE = (
    ' The user has an additional focus: "{focus}". '
    "Prioritize this focus in your analysis while still covering core observations."
)

DEFAULT_SUFFIX = (
    " If no additional focus is provided, infer the most valuable insights for a professional audience."
)


def build_prompt(focus: Optional[str] = None) -> str:
    """
    Merge the system instruction with the focus-dependent suffix.

    Pure function: the same focus always yields the same prompt.
    A blank focus is treated the same as no focus.
    """
    focus = (focus or "").strip()
    if focus:
        return SYSTEM_INSTRUCTION + FOCUS_SUFFIX_TEMPLATE.format(focus=focus)
    return SYSTEM_INSTRUCTION + DEFAULT_SUFFIX
