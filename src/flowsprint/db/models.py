from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flowsprint.db.session import Base

PROVIDER_USAGE_FIELDS = {
    "openrouter": "openrouter_calls",
    "cerebras": "cerebras_calls",
    "meta-llama": "meta_llama_calls",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        Index("ix_projects_name_created_by", "name", "created_by"),
        Index("ix_projects_status", "status"),
        Index("ix_projects_type_industry", "type", "industry"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="web-app")
    industry: Mapped[str] = mapped_column(String(32), nullable=False, default="tech")
    complexity: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="planning")
    features: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    tech_stack: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    mindmap: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    prd: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    last_route: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    mindmap_completed: Mapped[bool] = mapped_column(default=False, nullable=False)
    prd_completed: Mapped[bool] = mapped_column(default=False, nullable=False)
    code_generated: Mapped[bool] = mapped_column(default=False, nullable=False)
    percent_complete: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_requests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    openrouter_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cerebras_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    meta_llama_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_response_time_ms: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False, default="anonymous")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    last_generated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    code_files: Mapped[list[GeneratedCode]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="GeneratedCode.id",
    )

    def refresh_progress(self) -> None:
        completed = sum(1 for flag in (self.mindmap_completed, self.prd_completed, self.code_generated) if flag)
        self.percent_complete = round(completed / 3 * 100)
        self.updated_at = _utcnow()

    def record_usage(self, provider: str, response_time_ms: float) -> None:
        self.total_requests = (self.total_requests or 0) + 1
        current = self.avg_response_time_ms or 0.0
        self.avg_response_time_ms = round((current * (self.total_requests - 1) + response_time_ms) / self.total_requests)
        attr = PROVIDER_USAGE_FIELDS.get(provider)
        if attr:
            setattr(self, attr, (getattr(self, attr) or 0) + 1)
        self.last_generated_at = _utcnow()


class GeneratedCode(Base):
    __tablename__ = "generated_code"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), nullable=False)
    language: Mapped[str] = mapped_column(String(32), nullable=False)
    filename: Mapped[str] = mapped_column(String(256), nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ai_provider: Mapped[str] = mapped_column(String(64), nullable=False)
    model: Mapped[str] = mapped_column(String(128), nullable=False, default="unknown")
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)

    project: Mapped[Project] = relationship(back_populates="code_files")
