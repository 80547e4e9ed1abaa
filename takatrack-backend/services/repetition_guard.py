"""
Flags answers that repeat what the user was told a few minutes ago
"""
from typing import Iterable
from rapidfuzz import fuzz

SIMILARITY_THRESHOLD = 80.0

PERSONALIZATION_NOTE = (
    "\n\n[Note: This response has been personalized based on your current financial "
    "situation and recent interactions.]"
)


def is_repetitive(answer: str, recent_answers: Iterable[str], threshold: float = SIMILARITY_THRESHOLD) -> bool:
    return any(fuzz.ratio(answer, previous) >= threshold for previous in recent_answers)


def apply_repetition_note(answer: str, recent_answers: Iterable[str]) -> str:
    """Append the personalization note once when the answer is too close to a recent one."""
    if is_repetitive(answer, recent_answers):
        return answer + PERSONALIZATION_NOTE
    return answer
