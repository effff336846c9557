"""Service configuration.

Settings are read from environment variables once, at application start-up,
and passed down explicitly. Nothing below is read lazily from the environment.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_DATABASE_URL = "sqlite:///data/marketrec.db"
DEFAULT_EMBEDDING_DIM = 768
DEFAULT_SIMILAR_ITEMS_LIMIT = 4
DEFAULT_PERSONALIZED_LIMIT = 20
DEFAULT_MAX_RECOMMENDATION_LIMIT = 100
DEFAULT_LOG_LEVEL = "INFO"


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _bool_setting(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServiceConfig:
    """Runtime settings for the recommendation service.

    Attributes:
        database_url: SQLAlchemy URL of the relational store.
        embedding_dim: Length of item embedding vectors.
        similar_items_limit: Default result size for item-to-item queries.
        personalized_limit: Default result size for user-to-item queries.
        max_recommendation_limit: Upper bound accepted for ``limit``.
        log_level: Root logging level.
        create_schema: Create missing tables on start-up.
    """

    database_url: str = DEFAULT_DATABASE_URL
    embedding_dim: int = DEFAULT_EMBEDDING_DIM
    similar_items_limit: int = DEFAULT_SIMILAR_ITEMS_LIMIT
    personalized_limit: int = DEFAULT_PERSONALIZED_LIMIT
    max_recommendation_limit: int = DEFAULT_MAX_RECOMMENDATION_LIMIT
    log_level: str = DEFAULT_LOG_LEVEL
    create_schema: bool = True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """Build a config from environment variables.

        Args:
            env: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            Populated ServiceConfig.

        Raises:
            ValueError: If a numeric setting is not a positive integer.
        """
        if env is None:
            env = os.environ

        return cls(
            database_url=env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
            embedding_dim=_int_setting(env, "EMBEDDING_DIM", DEFAULT_EMBEDDING_DIM),
            similar_items_limit=_int_setting(
                env, "SIMILAR_ITEMS_LIMIT", DEFAULT_SIMILAR_ITEMS_LIMIT
            ),
            personalized_limit=_int_setting(
                env, "PERSONALIZED_LIMIT", DEFAULT_PERSONALIZED_LIMIT
            ),
            max_recommendation_limit=_int_setting(
                env, "MAX_RECOMMENDATION_LIMIT", DEFAULT_MAX_RECOMMENDATION_LIMIT
            ),
            log_level=(env.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
            create_schema=_bool_setting(env, "CREATE_SCHEMA", True),
        )
