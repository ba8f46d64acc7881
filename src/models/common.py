"""Shared types, enums, and base models used across Actorgate domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# --- Reusable annotated types ---

UUIDv7 = Annotated[UUID, Field(description="Time-sortable UUID v7.")]
UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]


# --- Shared enums ---


class ActorType(StrEnum):
    """Kinds of actor an account can hold."""

    ACCOUNT_USER = "account_user"
    ACCOUNT_ADMIN_USER = "account_admin_user"
    SERVICE_ACCOUNT = "service_account"


class ProviderAdapter(StrEnum):
    """Authentication provider adapters."""

    EMAIL = "email"
    OPENID_CONNECT = "openid_connect"
    TOKEN = "token"


# --- Base model ---


class ActorgateBase(BaseModel):
    """Base model with common configuration for all Actorgate Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "protected_namespaces": (),
    }
