from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
import os
import logging
from pathlib import Path

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db = None
    
    async def connect(self):
        try:
            mongo_url = os.environ['MONGO_URL']
            self.client = AsyncIOMotorClient(mongo_url)
            self.db = self.client[os.environ['DB_NAME']]
            # Verify connection
            await self.db.command("ping")
            logger.info(f"Connected to MongoDB: {os.environ['DB_NAME']}")
            
            await self._create_indexes()
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise
    
    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")
    
    def get_db(self):
        return self.db

    async def ping(self):
        """Round trip to the server; raises when MongoDB is unreachable."""
        await self.db.command("ping")
    
    async def _create_indexes(self):
        """Create MongoDB indexes for the dashboard's lookups."""
        try:
            # Auth users and profiles - email is the login key
            try:
                await self.db.auth_users.create_index("email", unique=True)
            except Exception:
                pass  # Index may already exist with different options
            await self.db.auth_users.create_index("user_id", unique=True)
            
            await self.db.profiles.create_index("user_id", unique=True)
            await self.db.profiles.create_index("email")
            await self.db.profiles.create_index("current_company_id", sparse=True)
            
            await self.db.user_roles.create_index([("user_id", 1), ("role", 1)], unique=True)
            
            # Tenants
            await self.db.companies.create_index("id", unique=True)
            await self.db.user_company_roles.create_index("id", unique=True)
            await self.db.user_company_roles.create_index([("user_id", 1), ("company_id", 1)])
            await self.db.invitation_tokens.create_index("token", unique=True)
            await self.db.invitation_tokens.create_index([("email", 1), ("company_id", 1), ("accepted_at", 1)])
            
            # Conversations - sidebar lists by recency
            await self.db.conversations.create_index("id", unique=True)
            await self.db.conversations.create_index([("user_id", 1), ("updated_at", -1)])
            await self.db.conversations.create_index("folder_id", sparse=True)
            await self.db.messages.create_index([("conversation_id", 1), ("created_at", 1)])
            await self.db.conversation_folders.create_index([("user_id", 1), ("name", 1)])
            
            # Credits ledger
            await self.db.credit_transactions.create_index([("user_id", 1), ("created_at", -1)])
            await self.db.credit_transactions.create_index("transaction_type")
            await self.db.credit_purchases.create_index("id", unique=True)
            await self.db.credit_purchases.create_index("stripe_checkout_session_id", sparse=True)
            
            # Document lifecycle
            await self.db.legal_letters.create_index("id", unique=True)
            await self.db.legal_letters.create_index([("user_id", 1), ("status", 1)])
            await self.db.letter_share_links.create_index("token", unique=True)
            await self.db.letter_share_links.create_index("created_by")
            await self.db.document_expiry_tracking.create_index([("expires_at", 1), ("reminder_sent", 1)])
            await self.db.signature_requests.create_index("id", unique=True)
            await self.db.signature_recipients.create_index("id", unique=True)
            await self.db.signature_recipients.create_index("access_token", unique=True)
            await self.db.signature_recipients.create_index([("signature_request_id", 1), ("signed_at", 1)])
            await self.db.signature_field_positions.create_index([("recipient_id", 1), ("page_number", 1)])
            await self.db.signing_sessions.create_index("session_token", unique=True)
            
            # Notifications and activity
            await self.db.notifications.create_index("id", unique=True)
            await self.db.notifications.create_index([("user_id", 1), ("created_at", -1)])
            await self.db.notifications.create_index([("user_id", 1), ("read_at", 1)])
            await self.db.company_activity_logs.create_index([("company_id", 1), ("created_at", -1)])
            await self.db.payment_failures.create_index([("status", 1), ("next_retry_at", 1)])
            
            await self.db.system_config.create_index("config_key", unique=True)
            
            logger.info("Database indexes created successfully")
        except Exception as e:
            logger.warning(f"Index creation warning (may already exist): {e}")

# Global database instance
database = Database()

