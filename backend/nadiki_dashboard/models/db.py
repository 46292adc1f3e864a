import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel, Session, create_engine

from nadiki_dashboard.config import env_str


def _uuid_str() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# DB MODELS
# ============================================================

class WorkloadRecord(SQLModel, table=True):
    __tablename__ = "workloads"
    __table_args__ = (
        UniqueConstraint("server_id", "facility_id", "pod_name", name="uq_workload_server_facility_pod"),
    )

    id: str = Field(default_factory=_uuid_str, primary_key=True)
    server_id: str = Field(index=True)
    facility_id: str = Field(index=True)
    pod_name: str = Field(index=True)

    created_at: datetime = Field(default_factory=_utcnow, index=True)
    updated_at: datetime = Field(default_factory=_utcnow)


class MetricRecord(SQLModel, table=True):
    __tablename__ = "metrics"

    id: str = Field(default_factory=_uuid_str, primary_key=True)
    metric_name: str
    unit: str
    entity: str

    created_at: datetime = Field(default_factory=_utcnow, index=True)
    updated_at: datetime = Field(default_factory=_utcnow)


# ============================================================
# SETUP
# ============================================================

sqlite_file_name = "nadiki.db"
sqlite_url = f"sqlite:///{sqlite_file_name}"

DATABASE_URL = env_str("DATABASE_URL", sqlite_url) or sqlite_url

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)


def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session
