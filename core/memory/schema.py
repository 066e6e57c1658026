from __future__ import annotations

from pathlib import Path

from sqlalchemy import (
    Column,
    JSON,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import func

Base = declarative_base()

DEFAULT_DB_FILE = "roadmap.db"


class RoadmapManualState(Base):
    __tablename__ = "roadmap_manual_state"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner = Column(String(255), nullable=False, index=True)
    repo = Column(String(255), nullable=False, index=True)
    project_id = Column(String(64), nullable=False, default="", server_default="")
    # {weekKey: {added, removed, overrides}}
    state = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(String(64), nullable=True)

    __table_args__ = (UniqueConstraint("owner", "repo", "project_id", name="uq_roadmap_manual_state_key"),)


class RoadmapIngestionState(Base):
    __tablename__ = "roadmap_ingestion_state"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner = Column(String(255), nullable=False, index=True)
    repo = Column(String(255), nullable=False, index=True)
    project_id = Column(String(64), nullable=False, default="", server_default="")
    last_commit_sha = Column(String(64), nullable=True)
    last_commit_message = Column(Text, nullable=True)
    last_commit_author = Column(String(255), nullable=True)
    last_commit_url = Column(Text, nullable=True)
    # timestamps stay ISO strings so equality checks are exact
    last_commit_at = Column(String(64), nullable=True)
    last_commit_paths = Column(JSON, nullable=False, default=list)
    last_manual_state_at = Column(String(64), nullable=True)
    last_run_sha = Column(String(64), nullable=True)
    last_run_at = Column(String(64), nullable=True)
    last_run_manual_state_at = Column(String(64), nullable=True)
    updated_at = Column(String(64), nullable=True)

    __table_args__ = (UniqueConstraint("owner", "repo", "project_id", name="uq_roadmap_ingestion_state_key"),)


class RoadmapStatusSnapshot(Base):
    __tablename__ = "roadmap_status_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner = Column(String(255), nullable=False, index=True)
    repo = Column(String(255), nullable=False, index=True)
    project_id = Column(String(64), nullable=False, default="", server_default="")
    branch = Column(String(255), nullable=False, index=True)
    commit_sha = Column(String(64), nullable=True)
    source = Column(String(32), nullable=False, default="live")  # live | artifact
    payload = Column(JSON, nullable=False)
    generated_at = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


def _normalize_db_path(db_path: str) -> str:
    raw = str(db_path or "").strip()
    if not raw:
        return f"sqlite:///{Path(DEFAULT_DB_FILE).resolve()}"
    if raw.startswith("sqlite:///:memory:"):
        return raw
    if raw.startswith("sqlite:///"):
        return raw
    if raw.startswith("sqlite:"):
        # Handle malformed sqlite URI inputs such as "sqlite:/roadmap.db"
        tail = raw[len("sqlite:") :].lstrip("/")
        if not tail:
            tail = DEFAULT_DB_FILE
        return f"sqlite:///{Path(tail).resolve()}"
    if "://" in raw:
        return raw
    if raw.startswith("/"):
        return f"sqlite:///{raw}"
    return f"sqlite:///{Path(raw).resolve()}"


def create_memory_engine(db_path: str = f"sqlite:///{DEFAULT_DB_FILE}"):
    normalized = _normalize_db_path(db_path)
    connect_args = {"check_same_thread": False} if normalized.startswith("sqlite:///") else {}
    return create_engine(normalized, connect_args=connect_args)


def create_session_factory(db_path: str = f"sqlite:///{DEFAULT_DB_FILE}"):
    engine = create_memory_engine(db_path=db_path)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
