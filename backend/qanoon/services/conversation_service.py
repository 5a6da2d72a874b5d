"""Conversation, message and folder management.

Every call is scoped to the owning user. There is no cache; clients
re-fetch the list after each mutation.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
import logging

from database import database
from qanoon.models.conversations import (
    Conversation,
    ConversationFolder,
    Message,
    DEFAULT_CONVERSATION_TITLE,
)
from qanoon.services.errors import NotFoundError

logger = logging.getLogger(__name__)

# How far back get_latest_conversation looks for a conversation with messages
LATEST_SCAN_LIMIT = 20


class ConversationService:
    
    def _get_db(self):
        return database.get_db()
    
    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------
    
    async def list_conversations(self, user_id: str, folder_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Most recently updated first."""
        query = {"user_id": user_id}
        if folder_id:
            query["folder_id"] = folder_id
        
        cursor = self._get_db().conversations.find(query, {"_id": 0}).sort("updated_at", -1)
        return await cursor.to_list(500)
    
    async def get_conversation(self, user_id: str, conversation_id: str) -> Dict[str, Any]:
        conversation = await self._get_db().conversations.find_one(
            {"id": conversation_id, "user_id": user_id},
            {"_id": 0}
        )
        if not conversation:
            raise NotFoundError("Conversation not found")
        return conversation
    
    async def create_conversation(self, user_id: str, title: Optional[str] = None) -> Dict[str, Any]:
        conversation = Conversation(user_id=user_id, title=title or DEFAULT_CONVERSATION_TITLE)
        doc = conversation.model_dump()
        await self._get_db().conversations.insert_one(doc)
        doc.pop("_id", None)
        
        logger.info(f"Conversation {conversation.id} created for user {user_id}")
        return doc
    
    async def rename_conversation(self, user_id: str, conversation_id: str, title: str) -> Dict[str, Any]:
        title = (title or "").strip()
        if not title:
            raise ValueError("Title is required")
        
        await self.get_conversation(user_id, conversation_id)
        await self._get_db().conversations.update_one(
            {"id": conversation_id, "user_id": user_id},
            {"$set": {"title": title, "updated_at": datetime.now(timezone.utc)}}
        )
        return await self.get_conversation(user_id, conversation_id)
    
    async def move_to_folder(self, user_id: str, conversation_id: str, folder_id: Optional[str]) -> Dict[str, Any]:
        """File a conversation into a folder, or un-file it with folder_id None."""
        db = self._get_db()
        await self.get_conversation(user_id, conversation_id)
        
        if folder_id:
            folder = await db.conversation_folders.find_one({"id": folder_id, "user_id": user_id}, {"_id": 0})
            if not folder:
                raise NotFoundError("Folder not found")
        
        await db.conversations.update_one(
            {"id": conversation_id, "user_id": user_id},
            {"$set": {"folder_id": folder_id, "updated_at": datetime.now(timezone.utc)}}
        )
        return await self.get_conversation(user_id, conversation_id)
    
    async def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        """Delete the messages first, then the conversation."""
        db = self._get_db()
        await self.get_conversation(user_id, conversation_id)
        
        result = await db.messages.delete_many({"conversation_id": conversation_id})
        await db.conversations.delete_one({"id": conversation_id, "user_id": user_id})
        
        logger.info(f"Conversation {conversation_id} deleted with {result.deleted_count} messages")
    
    async def get_latest_conversation(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Most recent conversation that has messages, else the most recent one."""
        db = self._get_db()
        recent = await db.conversations.find(
            {"user_id": user_id},
            {"_id": 0}
        ).sort("updated_at", -1).limit(LATEST_SCAN_LIMIT).to_list(LATEST_SCAN_LIMIT)
        
        if not recent:
            return None
        
        for conversation in recent:
            if await db.messages.count_documents({"conversation_id": conversation["id"]}, limit=1):
                return conversation
        return recent[0]
    
    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    
    async def list_messages(self, user_id: str, conversation_id: str) -> List[Dict[str, Any]]:
        await self.get_conversation(user_id, conversation_id)
        cursor = self._get_db().messages.find(
            {"conversation_id": conversation_id},
            {"_id": 0}
        ).sort("created_at", 1)
        return await cursor.to_list(1000)
    
    async def add_message(self, user_id: str, conversation_id: str, role: str, content: str) -> Dict[str, Any]:
        db = self._get_db()
        await self.get_conversation(user_id, conversation_id)
        
        message = Message(conversation_id=conversation_id, user_id=user_id, role=role, content=content)
        doc = message.model_dump()
        await db.messages.insert_one(doc)
        doc.pop("_id", None)
        
        await db.conversations.update_one(
            {"id": conversation_id},
            {"$set": {"updated_at": message.created_at}}
        )
        return doc
    
    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------
    
    async def list_folders(self, user_id: str) -> List[Dict[str, Any]]:
        cursor = self._get_db().conversation_folders.find({"user_id": user_id}, {"_id": 0}).sort("name", 1)
        return await cursor.to_list(200)
    
    async def create_folder(self, user_id: str, name: str, icon: Optional[str] = None, color: Optional[str] = None) -> Dict[str, Any]:
        folder = ConversationFolder(user_id=user_id, name=name.strip(), icon=icon, color=color)
        doc = folder.model_dump()
        await self._get_db().conversation_folders.insert_one(doc)
        doc.pop("_id", None)
        return doc
    
    async def rename_folder(self, user_id: str, folder_id: str, name: str) -> Dict[str, Any]:
        db = self._get_db()
        name = (name or "").strip()
        if not name:
            raise ValueError("Folder name is required")
        
        result = await db.conversation_folders.update_one(
            {"id": folder_id, "user_id": user_id},
            {"$set": {"name": name, "updated_at": datetime.now(timezone.utc)}}
        )
        if result.matched_count == 0:
            raise NotFoundError("Folder not found")
        
        return await db.conversation_folders.find_one({"id": folder_id, "user_id": user_id}, {"_id": 0})
    
    async def delete_folder(self, user_id: str, folder_id: str) -> None:
        """Delete a folder. Its conversations stay, un-filed."""
        db = self._get_db()
        folder = await db.conversation_folders.find_one({"id": folder_id, "user_id": user_id}, {"_id": 0})
        if not folder:
            raise NotFoundError("Folder not found")
        
        await db.conversations.update_many(
            {"folder_id": folder_id, "user_id": user_id},
            {"$set": {"folder_id": None}}
        )
        await db.conversation_folders.delete_one({"id": folder_id, "user_id": user_id})


conversation_service = ConversationService()
