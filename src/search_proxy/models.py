from enum import Enum

from pydantic import BaseModel, SecretStr


class CredentialProfile(str, Enum):
    ROTATION = "rotation"
    SINGLE = "single"


class CredentialPair(BaseModel):
    model_config = {"frozen": True}

    api_key: SecretStr
    search_engine_id: str


class CredentialPool(BaseModel):
    """Ordered credential pairs; the order is the rotation order.

    The raw list lengths are kept so a mismatched configuration can be told
    apart from an empty one when logging.
    """

    model_config = {"frozen": True}

    pairs: tuple[CredentialPair, ...] = ()
    key_count: int = 0
    id_count: int = 0

    @classmethod
    def from_lists(cls, keys: list[str], ids: list[str]) -> "CredentialPool":
        pairs: tuple[CredentialPair, ...] = ()
        if len(keys) == len(ids):
            pairs = tuple(
                CredentialPair(api_key=SecretStr(key), search_engine_id=cx)
                for key, cx in zip(keys, ids)
            )
        return cls(pairs=pairs, key_count=len(keys), id_count=len(ids))

    @property
    def is_configured(self) -> bool:
        return self.key_count > 0 and self.id_count > 0 and self.key_count == self.id_count

    @property
    def size(self) -> int:
        return len(self.pairs)


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    profile: CredentialProfile
    credentials_configured: bool
    pool_size: int
