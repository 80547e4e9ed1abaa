"""
AI advice entry point.

Routes a question through the quick-response table, then either the
single-call path or the multi-step workflow depending on its complexity.
"""
import random
import uuid
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import models
from services.advice_workflow import AdviceWorkflow
from services.conversation_store import ConversationStore
from services.financial_context import FinancialContext, build_financial_context
from services.llm_gateway import LLMGateway, PROVENANCE_MODEL
from services.question_rules import is_complex_question
from services.quick_responses import match_quick_response
from services.repetition_guard import apply_repetition_note
import logging

logger = logging.getLogger(__name__)

HISTORY_ANSWER_PREVIEW = 100

SYSTEM_PROMPTS = [
    "You are a friendly, knowledgeable financial advisor who talks like ChatGPT. Be conversational, encouraging, and helpful. Use a warm, approachable tone with occasional emojis. Provide practical, actionable advice based on the user's financial data. Keep responses engaging and easy to understand.",
    "You are an experienced financial consultant who communicates like a trusted friend. Be supportive, encouraging, and conversational. Use a natural, friendly tone while providing personalized financial advice. Make complex topics simple and relatable.",
    "You are a personal finance expert who speaks like ChatGPT - naturally, helpfully, and conversationally. Be encouraging, provide practical advice, and always consider the user's specific financial situation. Use a warm, approachable tone.",
    "You are a financial coach who talks like a supportive friend. Be motivational, clear, and encouraging. Provide actionable guidance with a conversational tone. Use emojis when appropriate and always be helpful and understanding.",
    "You are a money management specialist who communicates clearly and conversationally. Be thorough, practical, and encouraging. Provide specific strategies with a friendly, professional tone. Always be helpful and supportive.",
    "You are a financial mentor who speaks wisdom with warmth. Be thoughtful, strategic, and encouraging. Provide guidance that considers both short-term and long-term goals. Use a conversational, supportive tone.",
    "You are a wealth-building expert who explains complex topics simply. Be analytical yet conversational, data-driven yet approachable. Provide investment and savings advice with a friendly, professional tone.",
    "You are a financial wellness coach who cares about both money and well-being. Be empathetic, understanding, and encouraging. Provide holistic advice with a warm, conversational tone. Always be supportive and helpful.",
]

CONVERSATION_STARTERS = [
    "Based on my financial situation, what advice do you have for me?",
    "Looking at my money data, what would you recommend I focus on?",
    "I'd love to get your thoughts on my financial situation and any suggestions you have.",
    "What do you think about my spending patterns and how can I improve?",
    "I'm looking for some personalized financial advice based on my current situation.",
    "What financial strategies would you suggest for someone in my position?",
    "I'd appreciate your insights on my financial health and any recommendations.",
    "What are the key areas I should focus on to improve my financial situation?",
    "Based on my financial data, what steps would you recommend I take?",
    "I'm seeking guidance on how to better manage my money and achieve my goals.",
    "What opportunities do you see for improving my financial well-being?",
    "I'd like your expert opinion on my financial situation and next steps.",
]


def build_advice_prompt(
    question: str,
    context: FinancialContext,
    history: List[models.AiConversation],
    starter: str,
) -> str:
    """
    Assemble the single-call prompt: question, context block, recent history and a starter line.

    History answers are cut to their first 100 characters.
    """
    parts = [question, "", context.to_prompt_block()]
    parts.append(f"- Analysis Date: {models.utcnow().strftime('%Y-%m-%d %H:%M:%S')}")
    parts.append(f"- Request ID: {uuid.uuid4().hex[:13]}")

    if history:
        parts.extend(["", "Recent Conversation History:"])
        for conversation in history:
            parts.append(f"Q: {conversation.question}")
            parts.append(f"A: {conversation.answer[:HISTORY_ANSWER_PREVIEW]}...")
            parts.append("")

    parts.extend(["", starter])
    return "\n".join(parts)


class AdviceService:
    """Answers advice questions for a single request"""

    def __init__(self, db: Session, gateway: LLMGateway, rng: Optional[random.Random] = None):
        """
        Args:
            db: Database session
            gateway: External model gateway
            rng: Randomness source for prompt variants (seed it in tests)
        """
        self.db = db
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.store = ConversationStore(db)

    def answer(self, user: models.User, question: str) -> Dict[str, Any]:
        quick = match_quick_response(question)
        if quick is not None:
            logger.info(f"Quick response served to user {user.user_id}")
            return {"answer": quick, "context_used": False}

        if is_complex_question(question):
            return self._answer_with_workflow(user, question)

        return self._answer_single_call(user, question)

    def _answer_with_workflow(self, user: models.User, question: str) -> Dict[str, Any]:
        logger.info(f"Routing complex question from user {user.user_id} through advice workflow")
        result = AdviceWorkflow(self.db, self.gateway, self.store).run(user.user_id, question)
        return {
            "answer": result.answer,
            "context_used": result.workflow_state == "completed" and result.provenance == PROVENANCE_MODEL,
            "workflow_state": result.workflow_state,
            "reasoning_steps": result.reasoning_steps,
            "question_type": result.question_type,
        }

    def _answer_single_call(self, user: models.User, question: str) -> Dict[str, Any]:
        context = build_financial_context(self.db, user.user_id)
        history = self.store.recent_history(user.user_id)
        prompt = build_advice_prompt(question, context, history, self.rng.choice(CONVERSATION_STARTERS))
        system_prompt = self.rng.choice(SYSTEM_PROMPTS)

        reply = self.gateway.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            fallback_for=question,
            max_tokens=500,
            temperature=0.8,
            top_p=0.9,
        )

        if not reply.ok:
            logger.warning(f"Serving fallback advice to user {user.user_id} for question: {question!r}")
            return {"answer": reply.content, "context_used": False}

        answer = apply_repetition_note(reply.content, self.store.recent_answers(user.user_id))
        self.store.save(
            user.user_id,
            question,
            answer,
            "advice",
            {
                "context": context.as_dict(),
                "tokens_used": reply.total_tokens,
                "system_prompt_used": system_prompt,
            },
        )
        return {"answer": answer, "context_used": True}
