"""
Expense classifier
Suggests a category for a free-text expense description
"""
import re
from typing import Any, Dict, List, Sequence
from services.question_rules import CLASSIFIER_PATTERNS, USER_CATEGORY_HINTS

MIN_KEYWORD_LENGTH = 4
DEFAULT_SUGGESTIONS = ["Other", "Miscellaneous", "Personal"]


def extract_keywords(description: str) -> List[str]:
    """Unique lowercase words of four letters or more, in order of appearance."""
    seen = []
    for word in re.findall(r"[a-z0-9']+", description.lower()):
        if len(word) >= MIN_KEYWORD_LENGTH and word not in seen:
            seen.append(word)
    return seen


def confidence_label(score: float) -> str:
    if score >= 60:
        return "high"
    if score >= 30:
        return "medium"
    return "low"


def fallback_category(description: str, category_names: Sequence[str]) -> str:
    """
    Match the description against hint words for the user's own categories.

    A category qualifies when its name contains the hint (e.g. "Food & Dining" for "food").
    Falls back to the user's first category, then "Other".
    """
    lowered = description.lower()
    for hint, words in USER_CATEGORY_HINTS:
        for name in category_names:
            if hint in name.lower() and any(word in lowered for word in words):
                return name
    return category_names[0] if category_names else "Other"


def classify_expense(description: str, category_names: Sequence[str] = ()) -> Dict[str, Any]:
    """
    Classify `description` by whole-word pattern matches, falling back to the user's categories.

    Args:
        description: Expense description
        category_names: Names of the categories visible to the user

    Returns:
        dict with category, confidence, confidence_score, method,
        alternative_categories, keywords_found and reasoning_steps
    """
    steps = []
    keywords = extract_keywords(description)
    steps.append(f"Keywords extracted: {', '.join(keywords)}")

    matches: Dict[str, int] = {}
    for category, patterns in CLASSIFIER_PATTERNS:
        hits = sum(1 for pattern in patterns if pattern in keywords)
        if hits:
            matches[category] = hits
    steps.append("Pattern matching completed")

    if matches:
        ranked = sorted(matches.items(), key=lambda item: item[1], reverse=True)
        suggestions = [category for category, _ in ranked[:3]]
        score = min(ranked[0][1] / len(keywords) * 100, 100.0)
        steps.append("Category suggestions generated")
        steps.append(f"Confidence score calculated: {score:.1f}%")
        return {
            "category": suggestions[0],
            "confidence": confidence_label(score),
            "confidence_score": round(score, 2),
            "method": "keyword_workflow",
            "alternative_categories": suggestions[1:],
            "keywords_found": keywords,
            "reasoning_steps": steps,
        }

    category = fallback_category(description, category_names)
    steps.append(f"No pattern matched, fell back to user categories: {category}")
    return {
        "category": category,
        "confidence": "low",
        "confidence_score": 0.0,
        "method": "fallback",
        "alternative_categories": [name for name in DEFAULT_SUGGESTIONS if name != category][:2],
        "keywords_found": keywords,
        "reasoning_steps": steps,
    }
