from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List, Tuple


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for the room unit-of-work RPC under RLS

    # Support rooms
    max_room_members: int = 10  # Used when a group stage has no explicit capacity
    default_stages: str = "beginner,intermediate,advanced"
    room_lock_timeout_seconds: float = 5.0
    room_max_retries: int = 5
    room_retry_base_delay_ms: int = 100
    room_store_backend: str = "supabase"  # supabase | memory
    memory_groups: str = ""  # memory backend catalog, e.g. "anxiety:Anxiety,grief:Grief"

    # App
    app_name: str = "support-rooms"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_default_stages_list(self) -> List[str]:
        return [s.strip() for s in self.default_stages.split(",") if s.strip()]

    def get_memory_groups_list(self) -> List[Tuple[str, str]]:
        """(id, name) pairs; a bare id is also used as the name"""
        groups = []
        for entry in self.memory_groups.split(","):
            group_id, _, name = entry.strip().partition(":")
            if group_id.strip():
                groups.append((group_id.strip(), name.strip() or group_id.strip()))
        return groups

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
