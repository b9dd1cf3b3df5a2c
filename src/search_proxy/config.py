from pydantic import Field
from pydantic_settings import BaseSettings

from search_proxy.models import CredentialPool, CredentialProfile


def split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = {"env_prefix": "SP_", "populate_by_name": True}

    api_keys: str = Field(default="", validation_alias="GOOGLE_API_KEYS")
    search_engine_ids: str = Field(default="", validation_alias="GOOGLE_SEARCH_ENGINE_IDS")

    # legacy single-credential deployments
    api_key: str = Field(default="", validation_alias="GOOGLE_API_KEY")
    search_engine_id: str = Field(default="", validation_alias="GOOGLE_SEARCH_ENGINE_ID")

    search_base_url: str = "https://www.googleapis.com/customsearch/v1"
    request_timeout: float = 10.0
    cache_control: str = "s-maxage=600, stale-while-revalidate"

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    def credential_profile(self) -> CredentialProfile:
        if self.api_keys.strip() or self.search_engine_ids.strip():
            return CredentialProfile.ROTATION
        if self.api_key.strip() or self.search_engine_id.strip():
            return CredentialProfile.SINGLE
        return CredentialProfile.ROTATION

    def credential_pool(self) -> CredentialPool:
        if self.credential_profile() is CredentialProfile.SINGLE:
            keys = [self.api_key.strip()] if self.api_key.strip() else []
            ids = [self.search_engine_id.strip()] if self.search_engine_id.strip() else []
            return CredentialPool.from_lists(keys, ids)
        return CredentialPool.from_lists(split_csv(self.api_keys), split_csv(self.search_engine_ids))


settings = Settings()
