"""Database tables / schema"""

from typing import Optional

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class DBEntry(Base):
    __tablename__ = "kv_entries"
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    expires_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)  # None: never expires
    updated_at_ms: Mapped[int] = mapped_column(BigInteger)
