from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from .database import Base

# Column names follow the hosted database, which mixes camelCase timestamps
# with snake_case foreign keys.

class Room(Base):
    __tablename__ = "room"

    id = Column(String, primary_key=True)
    title = Column(Text, nullable=False)
    published = Column(Boolean, nullable=False, default=False)
    createdAt = Column(DateTime, nullable=False)
    updatedAt = Column(DateTime, nullable=False)

class User(Base):
    __tablename__ = "user"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    password = Column(String, nullable=True)
    createdAt = Column(DateTime, nullable=False)
    updatedAt = Column(DateTime, nullable=False)

class Message(Base):
    __tablename__ = "message"

    id = Column(String, primary_key=True)
    title = Column(Text, nullable=False)
    room_id = Column(String, ForeignKey("room.id"), nullable=False)
    user_id = Column(String, ForeignKey("user.id"), nullable=False)
    published = Column(Boolean, nullable=False, default=False)
    createdAt = Column(DateTime, nullable=False)
    updatedAt = Column(DateTime, nullable=False)

Index("idx_message_updated_at", Message.updatedAt)
