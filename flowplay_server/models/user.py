# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""User model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from flowplay_server.models.base import Base
from flowplay_server.models.timestamp import TimestampMixin, new_id

DEFAULT_PREFERENCES: dict[str, Any] = {
    "theme": "dark",
    "volume": 0.8,
    "repeat": "none",
    "shuffle": False,
}


class User(Base, TimestampMixin):
    """User account for authentication and player preferences.

    username and email are stored lower-cased so the unique constraints
    are case-insensitive.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    avatar: Mapped[str] = mapped_column(Text, default="", nullable=False)
    preferences: Mapped[dict[str, Any]] = mapped_column(
        JSON, default=lambda: dict(DEFAULT_PREFERENCES), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
