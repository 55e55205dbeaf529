from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from headshot_common.ids import HeadshotId, UserId
from headshot_db.db import Base


class Headshot(Base):
    __tablename__ = "headshots"

    id: Mapped[HeadshotId] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[UserId] = mapped_column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    style: Mapped[str] = mapped_column(String(64), nullable=False)
    background: Mapped[str] = mapped_column(String(64), nullable=False)
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false(), default=False)
    credits_used: Mapped[int] = mapped_column(Integer, nullable=False)
