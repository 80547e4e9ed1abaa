"""
Advice Orchestrator
Runs complex questions through a fixed sequence of steps:

    analyze_question -> gather_data -> generate_advice -> format_response
    -> save_conversation -> completed

Each step receives an immutable WorkflowState and returns a new one with its
own fields filled in and at least one reasoning step appended. Any exception
ends the run in the `error` state with a generic answer.
"""
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple
from sqlalchemy.orm import Session
from services.financial_context import FinancialContext, build_financial_context
from services.conversation_store import ConversationStore
from services.llm_gateway import LLMGateway
from services.question_rules import detect_question_type
from services.repetition_guard import PERSONALIZATION_NOTE, is_repetitive
import logging

logger = logging.getLogger(__name__)

MAX_ANSWER_LENGTH = 1000

WORKFLOW_SYSTEM_PROMPT = (
    "You are a professional financial advisor with access to the user's financial data. "
    "Provide personalized, actionable advice based on their specific situation. "
    "Be encouraging, practical, and specific."
)

ERROR_ANSWER = (
    "I apologize, but I encountered an issue processing your request. Please try again in a moment."
)


@dataclass(frozen=True)
class WorkflowState:
    user_id: int
    question: str
    step: str = "analyze_question"
    question_type: Optional[str] = None
    financial_data: Optional[FinancialContext] = None
    prompt: Optional[str] = None
    ai_response: Optional[str] = None
    provenance: Optional[str] = None
    repetitive: bool = False
    tokens_used: int = 0
    formatted_response: Optional[str] = None
    reasoning_steps: Tuple[str, ...] = ()

    def advance(self, step: str, *notes: str, **changes) -> "WorkflowState":
        """Copy of this state moved to `step` with `notes` appended to the reasoning log."""
        return replace(self, step=step, reasoning_steps=self.reasoning_steps + notes, **changes)


@dataclass(frozen=True)
class WorkflowResult:
    answer: str
    workflow_state: str
    question_type: str
    reasoning_steps: List[str] = field(default_factory=list)
    provenance: Optional[str] = None


def build_workflow_prompt(question: str, question_type: str, context: FinancialContext) -> str:
    lines = [
        f"User Question: {question}",
        "",
        f"Question Type: {question_type}",
        "",
        "User's Financial Context:",
        f"- Total Income (last 30 days): ${context.total_income:,.2f}",
        f"- Total Expenses (last 30 days): ${context.total_expenses:,.2f}",
        f"- Net Balance: ${context.net_balance:,.2f}",
        f"- Transaction Count: {context.transaction_count}",
        "",
    ]
    if context.recent_transactions:
        lines.append("Recent Transactions:")
        for transaction in context.recent_transactions:
            lines.append(f"- {transaction['type']}: ${transaction['amount']:,.2f} ({transaction['category']})")
        lines.append("")
    lines.append(
        "Please provide personalized, actionable advice based on this financial context. "
        "Be specific, encouraging, and practical. Focus on actionable steps the user can take."
    )
    return "\n".join(lines)


class AdviceWorkflow:
    """Multi-step advice generation for complex questions"""

    def __init__(
        self,
        db: Session,
        gateway: LLMGateway,
        store: Optional[ConversationStore] = None,
        context_builder: Callable[[Session, int], FinancialContext] = build_financial_context,
    ):
        self.db = db
        self.gateway = gateway
        self.store = store or ConversationStore(db)
        self.context_builder = context_builder

    @property
    def steps(self) -> Tuple[Callable[[WorkflowState], WorkflowState], ...]:
        return (
            self.analyze_question,
            self.gather_data,
            self.generate_advice,
            self.format_response,
            self.save_conversation,
        )

    def run(self, user_id: int, question: str) -> WorkflowResult:
        """
        Execute every step in order.

        Returns:
            WorkflowResult in state `completed`, or `error` if a step raised
        """
        state = WorkflowState(user_id=user_id, question=question)
        try:
            for step in self.steps:
                state = step(state)
        except Exception as e:
            logger.error(
                f"Advice workflow failed at step {state.step} for user {user_id}: {e} (question: {question!r})",
                exc_info=True,
            )
            return WorkflowResult(
                answer=ERROR_ANSWER,
                workflow_state="error",
                question_type="error",
                reasoning_steps=list(state.reasoning_steps) + ["Workflow failed"],
            )

        return WorkflowResult(
            answer=state.formatted_response,
            workflow_state=state.step,
            question_type=state.question_type,
            reasoning_steps=list(state.reasoning_steps),
            provenance=state.provenance,
        )

    def analyze_question(self, state: WorkflowState) -> WorkflowState:
        question_type = detect_question_type(state.question)
        return state.advance(
            "gather_data",
            "Analyzing question type and intent...",
            f"Detected question type: {question_type}",
            question_type=question_type,
        )

    def gather_data(self, state: WorkflowState) -> WorkflowState:
        context = self.context_builder(self.db, state.user_id)
        return state.advance(
            "generate_advice",
            "Gathering relevant financial data...",
            f"Gathered financial data: Income: ${context.total_income:,.2f}, "
            f"Expenses: ${context.total_expenses:,.2f}, Net: ${context.net_balance:,.2f}",
            financial_data=context,
            prompt=build_workflow_prompt(state.question, state.question_type, context),
        )

    def generate_advice(self, state: WorkflowState) -> WorkflowState:
        reply = self.gateway.complete(
            [
                {"role": "system", "content": WORKFLOW_SYSTEM_PROMPT},
                {"role": "user", "content": state.prompt},
            ],
            fallback_for=state.question,
            max_tokens=400,
            temperature=0.7,
            top_p=0.8,
            frequency_penalty=0.1,
            presence_penalty=0.1,
            timeout=15,
            max_retries=2,
        )

        repetitive = False
        if reply.ok:
            repetitive = is_repetitive(reply.content, self.store.recent_answers(state.user_id))
            note = "Successfully generated AI response"
        else:
            note = "AI request failed, using fallback response"

        return state.advance(
            "format_response",
            "Generating personalized advice...",
            note,
            ai_response=reply.content,
            provenance=reply.provenance,
            repetitive=repetitive,
            tokens_used=reply.total_tokens,
        )

    def format_response(self, state: WorkflowState) -> WorkflowState:
        # Note is appended after truncation; the total stays within MAX_ANSWER_LENGTH
        note = PERSONALIZATION_NOTE if state.repetitive else ""
        limit = MAX_ANSWER_LENGTH - len(note)
        response = state.ai_response.strip()
        if len(response) > limit:
            response = response[:limit - 3] + "..."
        response += note
        return state.advance(
            "save_conversation",
            "Formatting and validating response...",
            "Response formatted and validated",
            formatted_response=response,
        )

    def save_conversation(self, state: WorkflowState) -> WorkflowState:
        saving = state.advance(state.step, "Saving conversation...")
        metadata = {
            "question_type": state.question_type,
            "reasoning_steps": list(saving.reasoning_steps),
            "context": state.financial_data.as_dict() if state.financial_data else {},
            "tokens_used": state.tokens_used,
            "provenance": state.provenance,
        }
        try:
            self.store.save(state.user_id, state.question, state.formatted_response, "advice", metadata)
            note = "Conversation saved successfully"
        except Exception as e:
            # Non-fatal: the answer is still returned
            self.db.rollback()
            logger.error(f"Failed to save workflow conversation for user {state.user_id}: {e}", exc_info=True)
            note = "Failed to save conversation"

        return saving.advance("completed", note)
