"""
Canned answers for greetings and very common one-line questions.
A hit skips the model call and nothing is stored.
"""
from typing import Optional

QUICK_RESPONSES = {
    "hi": "Hello! 👋 I'm your AI financial advisor. I can help you with budgeting, saving strategies, investment advice, and any money-related questions you have. What would you like to know?",
    "hello": "Hi there! 😊 I'm here to help you with your financial journey. Whether you need advice on saving money, managing expenses, or planning for the future, I'm ready to assist. What's on your mind?",
    "hey": "Hey! 👋 Great to see you! I'm your personal finance assistant, and I'm here to help you make smarter financial decisions. What can I help you with today?",
    "good morning": "Good morning! ☀️ Ready to start your day with some smart financial planning? I'm here to help you achieve your money goals. What would you like to work on?",
    "good afternoon": "Good afternoon! 🌤️ Perfect time to review your finances and plan ahead. How can I help you with your financial goals today?",
    "good evening": "Good evening! 🌙 Great time to reflect on your financial progress. What financial questions or goals can I help you with tonight?",
    "how are you": "I'm doing fantastic! 😊 I'm energized and ready to help you with your financial questions and goals. What would you like to discuss?",
    "what can you do": "I'm your comprehensive financial assistant! 💰 I can help you with:\n\n• Budgeting and expense tracking\n• Saving strategies and tips\n• Investment guidance\n• Debt management\n• Financial planning\n• Spending analysis\n• Money-saving techniques\n\nWhat specific area would you like to explore?",
    "help": "I'm here to help! 🤝 I can assist you with:\n\n• Creating budgets and tracking expenses\n• Finding ways to save money\n• Investment advice and planning\n• Debt management strategies\n• Financial goal setting\n• Analyzing your spending patterns\n\nJust ask me anything about your finances!",
    "thanks": "You're very welcome! 😊 I'm always here to help with your financial questions. Feel free to ask me anything else about money management, budgeting, or financial planning!",
    "thank you": "You're absolutely welcome! 🙏 It's my pleasure to help you with your financial journey. Don't hesitate to reach out if you have more questions!",
    "budget": "Great question about budgeting! 💰 I can help you create a budget that works for your lifestyle. Based on your current financial situation, I'd recommend starting with the 50/30/20 rule: 50% for needs, 30% for wants, and 20% for savings. Would you like me to help you set up a personalized budget?",
    "save money": "I love that you're thinking about saving! 💸 There are so many ways to save money effectively. I can help you with strategies like the 50/30/20 rule, automatic transfers, cutting unnecessary expenses, and finding better deals. What specific saving goals do you have in mind?",
    "invest": "Investment is a fantastic way to grow your wealth! 📈 I can help you understand different investment options like stocks, bonds, mutual funds, and retirement accounts. It's important to start with your risk tolerance and financial goals. What kind of investment timeline are you thinking about?",
    "debt": "Managing debt is crucial for financial health! 💳 I can help you create a debt payoff strategy, whether it's the snowball method, avalanche method, or debt consolidation. What types of debt are you dealing with, and what's your current situation?",
    "gym membership": "Great question about gym membership costs! 💪 Gym memberships can vary widely - from $10-50/month for basic plans to $100-200+/month for premium facilities. Consider your usage: if you go 3+ times per week, it's usually worth it. Look for discounts, student rates, or family plans. You could also explore alternatives like community centers, outdoor activities, or home workouts. What's your current gym situation and how often do you go?",
    "gym": "Gym memberships are a great investment in your health! 🏋️‍♀️ Costs typically range from $10-50/month for basic gyms to $100-200+/month for premium facilities. The key is finding the right balance between cost and value. Consider your usage frequency, available amenities, and location convenience. Would you like help evaluating if your current gym membership is worth the cost?",
    "how can i save money": "Great question! 💰 Here are some effective ways to save money: 1) Follow the 50/30/20 rule (50% needs, 30% wants, 20% savings), 2) Set up automatic transfers to savings, 3) Track your expenses to identify spending patterns, 4) Cut unnecessary subscriptions, 5) Cook at home more often, 6) Use cashback apps and coupons. What specific area would you like to focus on first?",
    "how to budget better": "Budgeting is key to financial success! 📊 Start with the 50/30/20 rule: 50% for needs (rent, food, bills), 30% for wants (entertainment, dining out), and 20% for savings. Track your expenses for a month to see where your money goes, then adjust accordingly. Use budgeting apps or spreadsheets to stay organized. What's your current budgeting approach?",
    "what should i invest in": "Investment depends on your goals and risk tolerance! 📈 For beginners, consider: 1) Emergency fund first (3-6 months expenses), 2) 401(k) or IRA for retirement, 3) Index funds for diversification, 4) Individual stocks for growth. Start with low-cost index funds and gradually learn more. What's your investment timeline and risk comfort level?",
    "help me with budgeting": "I'd love to help you with budgeting! 💰 Let's start with the basics: 1) Track your income and expenses for a month, 2) Use the 50/30/20 rule (50% needs, 30% wants, 20% savings), 3) Set up automatic transfers to savings, 4) Review and adjust monthly. What's your current financial situation?",
    "budgeting help": "Budgeting is the foundation of financial success! 📊 I can help you create a budget that works for your lifestyle. Start by tracking your spending for a month, then categorize expenses into needs vs wants. Would you like me to help you set up a personalized budget plan?",
    "financial planning": "Great question about financial planning! 🎯 A solid financial plan includes: 1) Emergency fund (3-6 months expenses), 2) Debt payoff strategy, 3) Retirement savings, 4) Investment portfolio, 5) Insurance coverage. What specific area would you like to focus on first?",
    "money management": "Money management is key to financial freedom! 💪 Here are the essentials: 1) Track your spending, 2) Create a budget, 3) Build an emergency fund, 4) Pay off high-interest debt, 5) Start investing. What's your biggest financial challenge right now?",
    "debt management": "Managing debt is crucial for financial health! 💳 I can help you create a debt payoff strategy. The two main methods are: 1) Snowball method (pay smallest debts first), 2) Avalanche method (pay highest interest first). What types of debt are you dealing with?",
}


def normalize_question(question: str) -> str:
    return question.strip().lower()


def match_quick_response(question: str) -> Optional[str]:
    """Exact lookup on the trimmed, lowercased question."""
    return QUICK_RESPONSES.get(normalize_question(question))
