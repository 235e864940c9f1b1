"""
Post-processing of answers before they reach the user.

Assistants configured with a persona tend to wrap every answer in the same
greeting and closing lines. Sanitizer strips a fixed, ordered list of those
phrases. is_invalid_output() spots replies that echo credentials or the
identity context back instead of answering.
"""

from __future__ import annotations

from typing import Sequence

DEFAULT_BOILERPLATE: tuple[str, ...] = (
    "Hi, this is Ava your KAM AI Agent. How can I help you today? "
    "You can ask questions like How do I join KAM, what does KAM do.",
    "Hi, this is Ava, your KAM AI Agent.",
    "Let me check that for you.",
    "By the way, may I get your name, phone number, and email in case "
    "you'd like more insights or help joining KAM?",
)

INVALID_OUTPUT_MARKERS: tuple[str, ...] = (
    "secret code",
    "user_role",
    "token =",
    "eyj",  # JWT prefix
    "bearer",
    "authorization",
)


class Sanitizer:
    """
    Removes boilerplate phrases, optionally newlines, then trims.

    Idempotent: removal repeats until the text stops changing, so a phrase
    that only appears once another one is cut out is removed as well.
    """

    def __init__(
        self,
        phrases: Sequence[str] = DEFAULT_BOILERPLATE,
        *,
        single_line: bool = False,
    ):
        """
        Args:
            phrases: Literal phrases to remove, applied in order.
            single_line: Also drop newline characters (for display surfaces
                         that can't render them).
        """
        self.phrases = tuple(p for p in phrases if p)
        self.single_line = single_line

    def _pass(self, text: str) -> str:
        for phrase in self.phrases:
            text = text.replace(phrase, "")
        if self.single_line:
            text = text.replace("\r", "").replace("\n", "")
        return text.strip()

    def __call__(self, text: str | None) -> str:
        if not text:
            return ""
        current = text
        while True:
            cleaned = self._pass(current)
            if cleaned == current:
                return cleaned
            current = cleaned


sanitize = Sanitizer()
sanitize_single_line = Sanitizer(single_line=True)


def is_invalid_output(text: str, markers: Sequence[str] = INVALID_OUTPUT_MARKERS) -> bool:
    """True if text contains any marker (case-insensitive)."""
    lowered = text.lower()
    return any(marker in lowered for marker in markers)
