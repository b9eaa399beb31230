from fastapi import APIRouter, Depends

from campus_rag.api.deps import get_owner, get_rag
from campus_rag.schemas.chat import ChatQueryIn, ChatResult
from campus_rag.schemas.conversations import Owner
from campus_rag.services.rag import RagService

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatResult)
async def chat_query(
    payload: ChatQueryIn,
    owner: Owner = Depends(get_owner),
    rag: RagService = Depends(get_rag),
):
    return await rag.answer_query(
        query=payload.query,
        role=payload.role,
        conversation_id=payload.conversation_id,
        owner=owner,
    )
