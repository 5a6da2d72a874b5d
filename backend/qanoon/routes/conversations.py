"""Qanoon Conversation Routes

Endpoints:
- GET /api/conversations - List conversations, most recent first
- POST /api/conversations - Create a conversation
- GET /api/conversations/latest - Conversation to reopen on load
- GET /api/conversations/{id} - Get one conversation
- PATCH /api/conversations/{id} - Rename
- PUT /api/conversations/{id}/folder - File into or out of a folder
- DELETE /api/conversations/{id} - Delete with its messages
- GET/POST /api/conversations/{id}/messages - Messages
- GET/POST /api/folders, PATCH/DELETE /api/folders/{id} - Folders
"""

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field
from typing import Optional
import logging

from middleware import AuthContext, require_auth
from qanoon.models.conversations import (
    ConversationCreate,
    ConversationUpdate,
    ConversationMove,
    MessageCreate,
    FolderCreate,
)
from qanoon.services.conversation_service import conversation_service
from qanoon.services.errors import FunctionError, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversations", tags=["Conversations"])
folders_router = APIRouter(prefix="/api/folders", tags=["Conversations"])


class FolderUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


@router.get("")
async def list_conversations(folder_id: Optional[str] = None, user: AuthContext = Depends(require_auth)):
    conversations = await conversation_service.list_conversations(user.user_id, folder_id)
    return {"conversations": conversations}


@router.post("", status_code=201)
async def create_conversation(data: ConversationCreate, user: AuthContext = Depends(require_auth)):
    try:
        return await conversation_service.create_conversation(user.user_id, data.title)
    except Exception as e:
        logger.error(f"Failed to create conversation: {e}")
        raise HTTPException(status_code=500, detail="Failed to create conversation")


@router.get("/latest")
async def latest_conversation(user: AuthContext = Depends(require_auth)):
    return {"conversation": await conversation_service.get_latest_conversation(user.user_id)}


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, user: AuthContext = Depends(require_auth)):
    try:
        return await conversation_service.get_conversation(user.user_id, conversation_id)
    except FunctionError as e:
        raise to_http_exception(e)


@router.patch("/{conversation_id}")
async def rename_conversation(conversation_id: str, data: ConversationUpdate, user: AuthContext = Depends(require_auth)):
    try:
        return await conversation_service.rename_conversation(user.user_id, conversation_id, data.title)
    except (FunctionError, ValueError) as e:
        raise to_http_exception(e)


@router.put("/{conversation_id}/folder")
async def move_conversation(conversation_id: str, data: ConversationMove, user: AuthContext = Depends(require_auth)):
    try:
        return await conversation_service.move_to_folder(user.user_id, conversation_id, data.folder_id)
    except FunctionError as e:
        raise to_http_exception(e)


@router.delete("/{conversation_id}")
async def delete_conversation(conversation_id: str, user: AuthContext = Depends(require_auth)):
    try:
        await conversation_service.delete_conversation(user.user_id, conversation_id)
    except FunctionError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete conversation {conversation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete conversation")
    return {"message": "Conversation deleted"}


@router.get("/{conversation_id}/messages")
async def list_messages(conversation_id: str, user: AuthContext = Depends(require_auth)):
    try:
        messages = await conversation_service.list_messages(user.user_id, conversation_id)
    except FunctionError as e:
        raise to_http_exception(e)
    return {"messages": messages}


@router.post("/{conversation_id}/messages", status_code=201)
async def add_message(conversation_id: str, data: MessageCreate, user: AuthContext = Depends(require_auth)):
    try:
        return await conversation_service.add_message(user.user_id, conversation_id, data.role, data.content)
    except FunctionError as e:
        raise to_http_exception(e)


# ============================================================================
# Folders
# ============================================================================

@folders_router.get("")
async def list_folders(user: AuthContext = Depends(require_auth)):
    return {"folders": await conversation_service.list_folders(user.user_id)}


@folders_router.post("", status_code=201)
async def create_folder(data: FolderCreate, user: AuthContext = Depends(require_auth)):
    return await conversation_service.create_folder(user.user_id, data.name, data.icon, data.color)


@folders_router.patch("/{folder_id}")
async def rename_folder(folder_id: str, data: FolderUpdate, user: AuthContext = Depends(require_auth)):
    try:
        return await conversation_service.rename_folder(user.user_id, folder_id, data.name)
    except (FunctionError, ValueError) as e:
        raise to_http_exception(e)


@folders_router.delete("/{folder_id}")
async def delete_folder(folder_id: str, user: AuthContext = Depends(require_auth)):
    try:
        await conversation_service.delete_folder(user.user_id, folder_id)
    except FunctionError as e:
        raise to_http_exception(e)
    return {"message": "Folder deleted"}
