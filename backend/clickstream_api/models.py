"""SQLAlchemy ORM models.

This module defines the pipeline registry consulted by attribution analysis:
each project has at most one clickstream pipeline, and each app ingested by
that pipeline may declare the timezone its reports are computed in.
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


DEFAULT_TIMEZONE = "UTC"


class Pipeline(Base):
    """Clickstream ingestion pipeline owning a project's event warehouse.

    The warehouse database is named after `project_id`; each app ingested by
    the pipeline gets its own schema named after the app id.
    """
    __tablename__ = "pipelines"

    id = Column(String, primary_key=True)
    project_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    region = Column(String, nullable=True)
    status = Column(String, default="active")  # active, updating, failed, deleted
    created_at = Column(DateTime, default=datetime.utcnow)

    app_timezones = relationship(
        "PipelineAppTimezone",
        back_populates="pipeline",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "pipelineId": self.id,
            "projectId": self.project_id,
            "name": self.name,
            "region": self.region,
            "status": self.status,
        }

    def __str__(self):
        return f"{self.name} ({self.project_id})"


class PipelineAppTimezone(Base):
    """Reporting timezone of one app within a pipeline."""
    __tablename__ = "pipeline_app_timezones"
    __table_args__ = (
        UniqueConstraint("pipeline_id", "app_id", name="uq_pipeline_app_timezone"),
    )

    id = Column(String, primary_key=True)
    pipeline_id = Column(String, ForeignKey("pipelines.id"), nullable=False)
    app_id = Column(String, nullable=False)
    timezone = Column(String, nullable=False, default=DEFAULT_TIMEZONE)

    pipeline = relationship("Pipeline", back_populates="app_timezones")

    def __str__(self):
        return f"{self.app_id}: {self.timezone}"
