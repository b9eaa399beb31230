from fastapi import APIRouter
from campus_rag.api.routes import chat, conversations, documents

router = APIRouter()
router.include_router(documents.router)
router.include_router(chat.router)
router.include_router(conversations.router)
