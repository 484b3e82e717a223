"""AI assistant chat endpoints.

Endpoints:
- POST /api/chat: ask the assistant (chat policy: 10 per minute per client)
- GET  /api/chat: last 50 messages of the caller
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from emarketer_api.assistant import ChatCompletionClient, SYSTEM_PROMPT, build_marketing_context
from emarketer_api.auth.access import check_access
from emarketer_api.auth.session_auth import SessionIdentity, get_session_identity
from emarketer_api.context import company_id_var
from emarketer_api.db.models import ChatMessage
from emarketer_api.db.repo_companies import CompanyRepository
from emarketer_api.db.session import get_db
from emarketer_api.ratelimit.dependency import rate_limit
from emarketer_api.schemas import ChatRequest, ChatResponse

router = APIRouter(prefix="/api/chat", tags=["chat"])
logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10


def get_chat_client():
    """Chat completion client (overridable in tests)."""
    with httpx.Client(timeout=60.0) as http:
        yield ChatCompletionClient(http)


def _resolve_company(db: Session, user_id: str, company_id: Optional[str]) -> Optional[str]:
    if company_id:
        check_access(db, user_id, company_id)
        return company_id
    rows = CompanyRepository(db).list_for_user(user_id)
    return rows[0][0].id if rows else None


@router.post("", response_model=ChatResponse, dependencies=[Depends(rate_limit("chat"))])
def chat(
    request: ChatRequest,
    identity: SessionIdentity = Depends(get_session_identity),
    db: Session = Depends(get_db),
    client: ChatCompletionClient = Depends(get_chat_client),
) -> ChatResponse:
    received_at = datetime.now(timezone.utc)
    company_id = _resolve_company(db, identity.user_id, request.company_id)
    if company_id:
        company_id_var.set(company_id)

    history = list(
        db.execute(
            select(ChatMessage)
            .where(ChatMessage.user_id == identity.user_id)
            .order_by(ChatMessage.created_at.desc())
            .limit(HISTORY_WINDOW)
        ).scalars()
    )
    history.reverse()

    messages = [{"role": "system", "content": SYSTEM_PROMPT.format(context=build_marketing_context(db, company_id))}]
    messages.extend({"role": m.role, "content": m.content} for m in history)
    messages.append({"role": "user", "content": request.message})

    reply = client.complete(messages)

    # Stamped at arrival so it always sorts before the reply
    user_message = ChatMessage(
        user_id=identity.user_id,
        company_id=company_id,
        role="user",
        content=request.message,
        created_at=received_at,
    )
    assistant_message = ChatMessage(
        user_id=identity.user_id, company_id=company_id, role="assistant", content=reply
    )
    db.add_all([user_message, assistant_message])
    db.commit()

    logger.info("Chat reply generated", extra={"event": "chat.reply", "history_size": len(history)})
    return ChatResponse(reply=reply, message_id=assistant_message.id)


@router.get("", dependencies=[Depends(rate_limit("api"))])
def chat_history(
    identity: SessionIdentity = Depends(get_session_identity),
    db: Session = Depends(get_db),
) -> dict:
    rows = db.execute(
        select(ChatMessage)
        .where(ChatMessage.user_id == identity.user_id)
        .order_by(ChatMessage.created_at.asc())
        .limit(50)
    ).scalars()
    return {
        "messages": [
            {"id": m.id, "role": m.role, "content": m.content, "createdAt": m.created_at.isoformat()}
            for m in rows
        ]
    }
