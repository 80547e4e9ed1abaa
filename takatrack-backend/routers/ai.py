from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging
import models
import schemas
from database import get_db
from routers.utils import get_current_user
from routers.categories import visible_categories_query
from services.advice_service import AdviceService
from services.ai_insights import generate_insights
from services.conversation_store import ConversationStore
from services.expense_classifier import classify_expense
from services.llm_gateway import LLMGateway, get_llm_gateway
from services.spending_analysis import analyze_spending

logger = logging.getLogger(__name__)
router = APIRouter()


def error_response(error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": error, "message": "Please try again later."}
    )


# ============ ADVICE ============

@router.post("/advice", response_model=schemas.AdviceResponse, response_model_exclude_none=True)
def get_advice(
    request: schemas.AdviceRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    """
    Answer a personal-finance question.

    Greetings and common questions are answered from canned responses,
    long analytical questions go through the multi-step workflow and
    everything else is a single model call with the user's recent context.
    Upstream failures still return 200 with a fallback answer.
    """
    try:
        return AdviceService(db, gateway).answer(current_user, request.question)
    except Exception as e:
        db.rollback()
        logger.error(
            f"AI advice failed for user {current_user.user_id} (question: {request.question[:100]!r}): {e}",
            exc_info=True
        )
        return error_response("Failed to get AI advice")


# ============ SPENDING ANALYSIS ============

@router.post("/spending-insights", response_model=schemas.SpendingInsightsResponse)
def get_spending_insights(
    request: schemas.SpendingInsightsRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Analyze a list of expenses and suggest where to save"""
    try:
        expenses = [expense.model_dump() for expense in request.expenses]
        insights = analyze_spending(expenses)
        summary = {
            "total_expenses": len(expenses),
            "total_amount": sum(expense["amount"] for expense in expenses),
        }

        try:
            ConversationStore(db).save(
                current_user.user_id,
                "Spending analysis request",
                f"Analyzed {len(expenses)} expenses. Top category: {insights['top_category']}",
                conversation_type="analysis",
                metadata={"summary": summary},
            )
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to store spending analysis for user {current_user.user_id}: {e}", exc_info=True)

        return {"insights": insights, "summary": summary}
    except Exception as e:
        logger.error(f"Spending insights failed for user {current_user.user_id}: {e}", exc_info=True)
        return error_response("Failed to get spending insights")


@router.post("/classify-expense", response_model=schemas.ClassifyExpenseResponse)
def classify_expense_description(
    request: schemas.ClassifyExpenseRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Suggest a category for an expense description"""
    try:
        category_names = [
            category.name
            for category in visible_categories_query(db, current_user)
            .filter(models.Category.type == "expense")
            .order_by(models.Category.name)
            .all()
        ]
        return classify_expense(request.description, category_names)
    except Exception as e:
        logger.error(f"Expense classification failed for user {current_user.user_id}: {e}", exc_info=True)
        return error_response("Failed to classify expense")


# ============ HISTORY ============

@router.get("/conversations", response_model=schemas.ConversationList)
def get_conversations(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """The 20 most recent AI conversations"""
    try:
        conversations = ConversationStore(db).list_recent(current_user.user_id)
        return schemas.ConversationList(conversations=[
            schemas.ConversationResponse(
                id=conversation.conversation_id,
                question=conversation.question,
                answer=conversation.answer,
                type=conversation.type,
                created_at=conversation.created_at,
            )
            for conversation in conversations
        ])
    except Exception as e:
        logger.error(f"Failed to load conversations for user {current_user.user_id}: {e}", exc_info=True)
        return error_response("Failed to get conversations")


# ============ LEGACY INSIGHTS ============

@router.post("/insights", response_model=schemas.InsightsResponse)
def create_insights(
    request: schemas.InsightsRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    """Generate free-text insights from a pre-computed summary"""
    try:
        ai_request = generate_insights(db, current_user.user_id, request.summary.model_dump(), gateway)
        return schemas.InsightsResponse(
            insights=ai_request.response,
            request_id=ai_request.request_id,
            status=ai_request.status,
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Insights generation failed for user {current_user.user_id}: {e}", exc_info=True)
        return error_response("Failed to generate insights")
