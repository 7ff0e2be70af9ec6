from typing import Dict
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Business Administration"
    API_V1_STR: str = "/api"

    # Namespace for every document path: artifacts/{APP_ID}/tenants/{tenantId}/...
    APP_ID: str = "default-app-id"

    # Picker / list fetch cap per entity
    LIST_ROW_CAP: int = 100

    LOG_LEVEL: str = "INFO"

    TENANT_COOKIE: str = "bizadmin_tenant_id"
    ACTOR_COOKIE: str = "bizadmin_actor"

    DEFAULT_CURRENCY: str = "USD"

    # tenantId -> key reference (KMS alias / secret id). References only, never key material.
    PII_KEY_REFS: Dict[str, str] = {}

    class Config:
        case_sensitive = True
        env_prefix = "BIZADMIN_"

settings = Settings()
