from fastapi import APIRouter, Depends, HTTPException

from campus_rag.api.deps import get_current_user, get_rag
from campus_rag.core.errors import NotFoundError
from campus_rag.schemas.conversations import AuthenticatedUser
from campus_rag.services.rag import RagService

router = APIRouter(prefix="/conversations", tags=["conversations"])

NOT_FOUND = "Conversation does not exist or you do not have access to it"


@router.get("")
async def list_conversations(
    user: AuthenticatedUser = Depends(get_current_user),
    rag: RagService = Depends(get_rag),
):
    conversations = await rag.conversations.list_for(user)
    return {"success": True, "conversations": conversations, "count": len(conversations)}


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    rag: RagService = Depends(get_rag),
):
    try:
        conversation = await rag.conversations.get(conversation_id, user)
    except NotFoundError:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return {"success": True, "conversation": conversation}


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    rag: RagService = Depends(get_rag),
):
    try:
        await rag.conversations.delete(conversation_id, user)
    except NotFoundError:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return {"success": True, "message": "Conversation deleted successfully"}
