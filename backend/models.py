# backend/models.py
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey,
    Index, func
)
from sqlalchemy.orm import relationship
from db import Base  # we defined Base in db.py

# Using ORM classes that map to the tables

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default="admin")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

class Agent(Base):
    __tablename__ = "agents"
    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    mobile = Column(String(16), nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    tasks = relationship("Task", back_populates="agent", cascade="all, delete-orphan")

class Task(Base):
    __tablename__ = "tasks"
    id = Column(Integer, primary_key=True)
    first_name = Column(String(50), nullable=False)
    phone = Column(String(15), nullable=False)
    notes = Column(String(500), nullable=False, default="")
    agent_id = Column(Integer, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    agent = relationship("Agent", back_populates="tasks")

    __table_args__ = (
        Index("ix_tasks_agent_created", "agent_id", "created_at"),
    )
