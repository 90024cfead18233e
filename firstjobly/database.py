"""
Database schema and engine construction.

One table, ``posts``, shared by the primary (MySQL/TiDB or PostgreSQL) and
the embedded SQLite fallback. Schema creation is additive only.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, List

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from .normalize import clean_skills

Base = declarative_base()

JSON_DIALECTS = ("postgresql", "mysql", "mariadb")


def encode_skills(skills) -> str:
    return json.dumps(clean_skills(skills or []))


def decode_skills(value: Any) -> List[str]:
    """Decode a stored skills value; anything malformed reads back as []."""
    if isinstance(value, (list, tuple)):
        return clean_skills(value)
    if isinstance(value, (str, bytes)):
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return clean_skills(parsed) if isinstance(parsed, list) else []
    return []


class SkillList(TypeDecorator):
    """Skills column: a list in Python, JSON in the database.

    Native JSON columns are used where the engine has them; SQLite stores
    the encoded array as text.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        if dialect.name in ("mysql", "mariadb"):
            return dialect.type_descriptor(mysql.JSON())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if dialect.name in JSON_DIALECTS:
            return clean_skills(value or [])
        return encode_skills(value)

    def process_result_value(self, value, dialect):
        return decode_skills(value)


class Post(Base):
    """Job posting row."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(1000), nullable=False)
    description = Column(Text().with_variant(mysql.LONGTEXT(), "mysql"), nullable=False)
    company_name = Column(String(255))
    company_logo = Column(String(500))
    job_req_id = Column(String(200))  # upsert key
    apply_link = Column(Text)
    location = Column(Text)
    experience = Column(String(200))
    skills = Column(SkillList)
    remote_type = Column(String(100))
    time_type = Column(String(100))
    posted_date = Column(Date)
    created_at = Column(
        DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql"),
        nullable=False,
        default=datetime.now,
    )

    __table_args__ = (
        UniqueConstraint("job_req_id", name="uq_posts_job_req_id"),
        {"mysql_engine": "InnoDB", "mysql_charset": "utf8mb4"},
    )


Index("idx_posts_created_at", Post.created_at.desc(), Post.id.desc())
Index("idx_posts_company", Post.company_name)
# Containment queries on skills; only PostgreSQL can index the JSONB column
Index("idx_posts_skills", Post.skills, postgresql_using="gin").ddl_if(dialect="postgresql")


def init_database(engine: Engine) -> None:
    """Create the posts table and its indexes if they are absent."""
    Base.metadata.create_all(engine, checkfirst=True)


def _connect_args(url: URL, connect_timeout: int, require_ssl: bool) -> dict:
    backend = url.get_backend_name()
    if backend in ("mysql", "mariadb"):
        args = {"connect_timeout": connect_timeout}
        if require_ssl:
            args.update({"ssl_verify_cert": True, "ssl_verify_identity": True})
        return args
    if backend == "postgresql":
        args = {"connect_timeout": connect_timeout}
        if require_ssl:
            args["sslmode"] = "require"
        return args
    if backend == "sqlite":
        return {"timeout": connect_timeout, "check_same_thread": False}
    return {}


def create_primary_engine(
    url: URL,
    pool_size: int = 15,
    pool_timeout: int = 30,
    connect_timeout: int = 20,
    require_ssl: bool = True,
) -> Engine:
    """
    Engine for the networked store with a bounded connection pool.

    Callers beyond ``pool_size`` wait up to ``pool_timeout`` seconds for a
    connection instead of opening new ones.
    """
    return create_engine(
        url,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        pool_recycle=1800,
        connect_args=_connect_args(url, connect_timeout, require_ssl),
    )


def create_embedded_engine(db_path: Path) -> Engine:
    """
    Engine for the local SQLite fallback file.

    Args:
        db_path: Path to SQLite database file
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30.0},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA busy_timeout = 30000;")
        cursor.close()

    return engine
