from fastapi import APIRouter, Depends, HTTPException, Request

from educonnect.api.deps import get_current_user
from educonnect.core.logging_config import get_logger
from educonnect.core.rate_limit import limiter
from educonnect.models.user import User
from educonnect.schemas.ai import SuggestionRequest, SuggestionResponse
from educonnect.services.ai_service import generate_reply_suggestions

logger = get_logger(__name__)

router = APIRouter(prefix="/ai", tags=["AI Suggestions"])


@router.post("/suggestions", response_model=SuggestionResponse)
@limiter.limit("20/minute")
async def reply_suggestions(
    request: Request,
    body: SuggestionRequest,
    current_user: User = Depends(get_current_user),
):
    """Suggest three replies and three reactions for a received message."""
    if not body.message_title.strip() or not body.message_content.strip():
        raise HTTPException(status_code=400, detail="Message title and content are required")

    logger.info(f"Reply suggestions requested | user={current_user.id} | language={body.language or 'default'}")
    suggestions = await generate_reply_suggestions(
        body.message_title, body.message_content, body.language,
    )
    return SuggestionResponse(suggestions=suggestions)
