"""
Keyword rule tables for the AI advice features.

Every table is an ordered list of (label, keywords) pairs. Lookups walk the
list top to bottom and the first label with a matching keyword wins, so the
order of entries is part of the behaviour.
"""
from typing import List, Optional, Sequence, Tuple

Rule = Tuple[str, Sequence[str]]

COMPLEXITY_MIN_LENGTH = 100

COMPLEXITY_KEYWORDS: Sequence[str] = (
    "analyze", "compare", "strategy", "plan", "long-term", "short-term",
    "investment", "portfolio", "retirement", "debt", "consolidation",
    "budget", "savings", "emergency", "financial", "planning",
)

QUESTION_TYPE_RULES: List[Rule] = [
    ("budget", ("budget", "budgeting", "spending plan")),
    ("saving", ("save", "saving", "emergency fund")),
    ("investment", ("invest", "investment", "stocks", "bonds")),
    ("debt", ("debt", "loan", "credit card")),
    ("expense", ("expense", "cost", "spending")),
    ("income", ("income", "salary", "earnings")),
]

DEFAULT_QUESTION_TYPE = "general"

FALLBACK_RULES: List[Rule] = [
    ("I'd love to help you with budgeting! 💰 Here are some quick tips: 1) Track your income and expenses, "
     "2) Use the 50/30/20 rule (50% needs, 30% wants, 20% savings), 3) Set up automatic transfers to savings, "
     "4) Review and adjust monthly. What specific budgeting challenge are you facing?",
     ("budget",)),
    ("Great question about saving money! 💸 Here are some effective strategies: 1) Follow the 50/30/20 rule, "
     "2) Set up automatic transfers, 3) Track your expenses, 4) Cut unnecessary subscriptions, "
     "5) Cook at home more often, 6) Use cashback apps. What's your biggest saving goal?",
     ("save", "saving")),
    ("Investment is a great way to grow your wealth! 📈 For beginners, consider: 1) Emergency fund first "
     "(3-6 months expenses), 2) 401(k) or IRA for retirement, 3) Index funds for diversification, "
     "4) Individual stocks for growth. Start with low-cost index funds and gradually learn more. "
     "What's your investment timeline?",
     ("invest",)),
    ("Managing debt is crucial for financial health! 💳 I can help you create a debt payoff strategy. "
     "The two main methods are: 1) Snowball method (pay smallest debts first), 2) Avalanche method "
     "(pay highest interest first). What types of debt are you dealing with?",
     ("debt",)),
    ("I'm here to help with your financial journey! 💪 The key areas to focus on are: 1) Track your spending, "
     "2) Create a budget, 3) Build an emergency fund, 4) Pay off high-interest debt, 5) Start investing. "
     "What's your biggest financial challenge right now?",
     ("financial", "money")),
]

DEFAULT_FALLBACK_ANSWER = (
    "I'm here to help with your financial questions! 💰 Whether you need help with budgeting, saving, "
    "investing, or debt management, I'm ready to assist. What specific financial topic would you like to discuss?"
)

# Description keywords -> expense category, used by the spending analysis
CATEGORY_RULES: List[Rule] = [
    ("Food & Dining", ("restaurant", "food", "dining", "cafe", "coffee", "lunch", "dinner", "grocery")),
    ("Transportation", ("gas", "fuel", "uber", "taxi", "bus", "train", "parking", "car")),
    ("Shopping", ("store", "shop", "mall", "amazon", "online", "purchase", "retail")),
    ("Entertainment", ("movie", "cinema", "game", "entertainment", "fun", "netflix", "spotify")),
    ("Health & Fitness", ("gym", "fitness", "doctor", "medical", "pharmacy", "health", "hospital")),
    ("Bills & Utilities", ("electric", "water", "internet", "phone", "utility", "bill", "rent")),
]

# Whole-word patterns used by the expense classifier
CLASSIFIER_PATTERNS: List[Rule] = [
    ("Food & Dining", ("restaurant", "food", "dining", "cafe", "coffee", "lunch", "dinner")),
    ("Transportation", ("gas", "fuel", "uber", "taxi", "bus", "train", "parking")),
    ("Shopping", ("store", "shop", "mall", "amazon", "online", "purchase")),
    ("Entertainment", ("movie", "cinema", "game", "entertainment", "fun")),
    ("Health & Fitness", ("gym", "fitness", "doctor", "medical", "pharmacy", "health")),
    ("Bills & Utilities", ("electric", "water", "internet", "phone", "utility", "bill")),
]

# Substring hints matched against the user's own category names
USER_CATEGORY_HINTS: List[Rule] = [
    ("food", ("restaurant", "food", "dining", "grocery", "supermarket", "cafe")),
    ("transport", ("uber", "taxi", "gas", "fuel", "parking", "metro", "bus")),
    ("entertainment", ("movie", "cinema", "netflix", "spotify", "game", "entertainment")),
    ("shopping", ("shop", "store", "amazon", "clothes", "fashion", "shopping")),
    ("utilities", ("electric", "water", "internet", "phone", "utility", "bill")),
]


def first_match(text: str, rules: List[Rule]) -> Optional[str]:
    """Return the label of the first rule with a keyword contained in `text` (case-insensitive)."""
    lowered = text.lower()
    for label, keywords in rules:
        if any(keyword in lowered for keyword in keywords):
            return label
    return None


def is_complex_question(question: str) -> bool:
    """Long questions that mention a planning keyword go through the multi-step workflow."""
    if len(question) <= COMPLEXITY_MIN_LENGTH:
        return False
    lowered = question.lower()
    return any(keyword in lowered for keyword in COMPLEXITY_KEYWORDS)


def detect_question_type(question: str) -> str:
    return first_match(question, QUESTION_TYPE_RULES) or DEFAULT_QUESTION_TYPE


def fallback_answer(question: str) -> str:
    """Canned answer used whenever the model cannot be reached."""
    return first_match(question, FALLBACK_RULES) or DEFAULT_FALLBACK_ANSWER


def categorize_description(description: Optional[str]) -> str:
    return first_match(description or "", CATEGORY_RULES) or "Other"
