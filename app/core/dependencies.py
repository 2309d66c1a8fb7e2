"""
Core dependencies for route protection and shared room services
"""

import threading
import logging
from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config import settings
from app.database.supabase_client import SupabaseClient, get_supabase
from app.modules.auth.service import AuthService
from app.modules.support_groups.catalog import GroupCatalog, InMemoryGroupCatalog, SupabaseGroupCatalog
from app.modules.support_groups.schemas import SupportGroup
from app.modules.support_rooms.service import SupportRoomService
from app.modules.support_rooms.store import InMemoryRoomStore, SupabaseRoomStore
from supabase import Client

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def is_super_user(user_data: dict) -> bool:
    """Check if user is a super user from app_metadata"""
    # app_metadata is set server-side and cannot be modified by users
    app_metadata = user_data.get("app_metadata") or {}
    return app_metadata.get("type") == "super_user"


class RoomServices:
    """Process-wide room service; the keyed locks and room cache only work if every request shares it."""
    _service: SupportRoomService = None
    _lock = threading.Lock()

    @classmethod
    def get_service(cls) -> SupportRoomService:
        with cls._lock:
            if cls._service is None:
                if settings.room_store_backend == "memory":
                    logger.warning("Using in-memory room store; state is lost on restart")
                    groups = [SupportGroup(id=group_id, name=name) for group_id, name in settings.get_memory_groups_list()]
                    if not groups:
                        logger.warning("MEMORY_GROUPS is empty; every join will report an unknown group")
                    cls._service = SupportRoomService(InMemoryRoomStore(), InMemoryGroupCatalog(groups))
                else:
                    client = SupabaseClient.get_service_client()
                    cls._service = SupportRoomService(SupabaseRoomStore(client), SupabaseGroupCatalog(client))
            return cls._service

    @classmethod
    def reset(cls):
        with cls._lock:
            cls._service = None


def get_support_room_service() -> SupportRoomService:
    return RoomServices.get_service()


def get_group_catalog(service: SupportRoomService = Depends(get_support_room_service)) -> GroupCatalog:
    return service.catalog
