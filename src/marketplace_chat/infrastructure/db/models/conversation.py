from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, func, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace_chat.infrastructure.db.base import Base


class ConversationModel(Base):
    __tablename__ = "conversations"

    conversation_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user1_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.user_id"),
        nullable=False,
    )
    user2_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.user_id"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    messages = relationship(
        "MessageModel",
        back_populates="conversation",
        lazy="noload",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("user1_id <> user2_id", name="distinct_users"),
        # One row per unordered pair: (1, 2) and (2, 1) collide here.
        Index(
            "uq_conversations_pair",
            func.least(user1_id, user2_id),
            func.greatest(user1_id, user2_id),
            unique=True,
        ),
        Index("ix_conversations_user1", "user1_id"),
        Index("ix_conversations_user2", "user2_id"),
    )
