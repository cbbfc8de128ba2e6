import enum

from sqlalchemy import Boolean, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class BundlePlatform(str, enum.Enum):
    ios = "ios"
    android = "android"


class Bundle(Base):
    __tablename__ = "bundles"

    # Time-ordered (UUIDv7) id; creation time is derived from it, never stored.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    channel: Mapped[str] = mapped_column(String(120), nullable=False, default="production", index=True)
    platform: Mapped[BundlePlatform] = mapped_column(Enum(BundlePlatform), nullable=False)
    target_app_version: Mapped[str] = mapped_column(String(60), nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    should_force_update: Mapped[bool] = mapped_column(Boolean, default=False)
    file_hash: Mapped[str | None] = mapped_column(String(128))
    git_commit_hash: Mapped[str | None] = mapped_column(String(64))
