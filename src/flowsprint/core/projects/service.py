from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select

from flowsprint.core.content.code import clean_code, slug_file_name
from flowsprint.core.content.mindmap import parse_mindmap
from flowsprint.core.content.prd import structure_prd
from flowsprint.core.gateway.normalizer import RouteResult
from flowsprint.core.gateway.router import GatewayRouter
from flowsprint.core.runtime.errors import AllProvidersFailedError
from flowsprint.core.telemetry.logging import get_logger
from flowsprint.db.models import GeneratedCode, Project

UPDATABLE_FIELDS = {"name", "description", "type", "industry", "complexity", "status", "features", "tech_stack", "tags"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def features_text(features: dict[str, Any] | None) -> str:
    if not features:
        return "Core functionality and user interface"
    lines = []
    for category, items in features.items():
        rendered = ", ".join(str(i) for i in items) if isinstance(items, list) else str(items)
        lines.append(f"{category}: {rendered}")
    return "\n".join(lines)


def project_to_dict(row: Project, *, include_code: bool = False) -> dict[str, Any]:
    out = {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "type": row.type,
        "industry": row.industry,
        "complexity": row.complexity,
        "status": row.status,
        "features": row.features or {},
        "techStack": row.tech_stack or [],
        "tags": row.tags or [],
        "mindmap": row.mindmap,
        "prd": row.prd,
        "lastRoute": row.last_route,
        "progress": {
            "mindmapCompleted": row.mindmap_completed,
            "prdCompleted": row.prd_completed,
            "codeGenerated": row.code_generated,
            "percentComplete": row.percent_complete,
        },
        "aiUsage": {
            "totalRequests": row.total_requests,
            "openRouterCalls": row.openrouter_calls,
            "cerebrasCalls": row.cerebras_calls,
            "metaLlamaCalls": row.meta_llama_calls,
            "avgResponseTime": row.avg_response_time_ms,
        },
        "createdBy": row.created_by,
        "createdAt": _iso(row.created_at),
        "updatedAt": _iso(row.updated_at),
        "lastGeneratedAt": _iso(row.last_generated_at),
    }
    if include_code:
        out["generatedCode"] = [code_to_dict(c) for c in row.code_files]
    return out


def code_to_dict(row: GeneratedCode) -> dict[str, Any]:
    return {
        "id": row.id,
        "language": row.language,
        "filename": row.filename,
        "code": row.code,
        "description": row.description,
        "aiProvider": row.ai_provider,
        "model": row.model,
        "generatedAt": _iso(row.generated_at),
    }


class ProjectService:
    """Project records plus the generation flows that route through the gateway.

    Provider calls happen with no database session open; the session is only
    held to read the project and to write the finished result back.
    """

    def __init__(self, *, db_session_factory, router: GatewayRouter, auto_mindmap: bool = True) -> None:
        self.db_session_factory = db_session_factory
        self.router = router
        self.auto_mindmap = auto_mindmap
        self.logger = get_logger("flowsprint.projects")

    def create_project(
        self,
        *,
        name: str,
        description: str,
        type: str = "web-app",
        industry: str = "tech",
        complexity: str = "medium",
        features: dict[str, Any] | None = None,
        tech_stack: list[str] | None = None,
        tags: list[str] | None = None,
        created_by: str = "anonymous",
    ) -> dict[str, Any]:
        with self.db_session_factory() as db:
            row = Project(
                name=name.strip(),
                description=description.strip(),
                type=type,
                industry=industry,
                complexity=complexity,
                features=features or {},
                tech_stack=tech_stack or [],
                tags=tags or [],
                created_by=created_by,
                created_at=_utcnow(),
                updated_at=_utcnow(),
            )
            row.refresh_progress()
            db.add(row)
            db.commit()
            project_id = row.id
        self.logger.info("project_created", project_id=project_id, name=name)

        if self.auto_mindmap:
            try:
                self.generate_mindmap(project_id, complexity=complexity)
            except AllProvidersFailedError as exc:
                self.logger.warning("auto_mindmap_failed", project_id=project_id, error=str(exc), attempted=exc.attempted)

        project = self.get_project(project_id)
        assert project is not None
        return project

    def list_projects(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
        type: str | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        stmt = select(Project)
        if status:
            stmt = stmt.where(Project.status == status)
        if type:
            stmt = stmt.where(Project.type == type)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(Project.name.ilike(pattern), Project.description.ilike(pattern)))

        with self.db_session_factory() as db:
            total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
            rows = (
                db.execute(stmt.order_by(Project.updated_at.desc(), Project.id.desc()).offset((page - 1) * limit).limit(limit))
                .scalars()
                .all()
            )
            items = [project_to_dict(r) for r in rows]
        return {
            "items": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit if limit else 0,
            },
        }

    def get_project(self, project_id: int) -> dict[str, Any] | None:
        with self.db_session_factory() as db:
            row = db.get(Project, project_id)
            if row is None:
                return None
            return project_to_dict(row, include_code=True)

    def update_project(self, project_id: int, changes: dict[str, Any]) -> dict[str, Any] | None:
        with self.db_session_factory() as db:
            row = db.get(Project, project_id)
            if row is None:
                return None
            for key, value in changes.items():
                if key in UPDATABLE_FIELDS and value is not None:
                    setattr(row, key, value)
            row.updated_at = _utcnow()
            db.commit()
            return project_to_dict(row, include_code=True)

    def delete_project(self, project_id: int) -> bool:
        with self.db_session_factory() as db:
            row = db.get(Project, project_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
        self.logger.info("project_deleted", project_id=project_id)
        return True

    def _load(self, project_id: int) -> dict[str, Any] | None:
        with self.db_session_factory() as db:
            row = db.get(Project, project_id)
            return project_to_dict(row) if row is not None else None

    def _store(self, project_id: int, result: RouteResult, apply) -> dict[str, Any] | None:
        with self.db_session_factory() as db:
            row = db.get(Project, project_id)
            if row is None:
                return None
            apply(db, row)
            row.last_route = result.to_dict()
            row.record_usage(result.provider, result.response_time_ms)
            row.refresh_progress()
            db.commit()
            return project_to_dict(row)

    def generate_mindmap(self, project_id: int, *, complexity: str | None = None, priority: str = "speed") -> dict[str, Any] | None:
        project = self._load(project_id)
        if project is None:
            return None
        prompt = "\n".join(
            [
                f"Create a detailed technical project mindmap for: {project['name']}",
                "",
                f"Project Description: {project['description']}",
                "",
                "Features:",
                features_text(project["features"]),
                "",
                f"Tech Stack: {', '.join(project['techStack']) or 'React, Node.js, MongoDB'}",
                f"Project Type: {project['type']}",
                f"Industry: {project['industry']}",
                f"Complexity: {complexity or project['complexity']}",
            ]
        )
        result = self.router.route("mindmap", {"prompt": prompt, "priority": priority, "complexity": complexity})
        tree = parse_mindmap(result.content)

        def apply(_db, row: Project) -> None:
            row.mindmap = tree
            row.mindmap_completed = True

        stored = self._store(project_id, result, apply)
        self.logger.info("mindmap_saved", project_id=project_id, provider=result.provider, fallback=result.fallback_used)
        return {"mindmap": tree, "route": result.to_dict(), "project": stored}

    def generate_prd(
        self,
        project_id: int,
        *,
        target_audience: str = "general",
        sections: str = "all",
        complexity: str = "standard",
    ) -> dict[str, Any] | None:
        project = self._load(project_id)
        if project is None:
            return None
        prompt = "\n".join(
            [
                f"Create a comprehensive Product Requirements Document for: {project['name']}",
                f"Description: {project['description']}",
                f"Type: {project['type']}",
                f"Industry: {project['industry']}",
                f"Target Audience: {target_audience}",
                f"Sections: {sections}",
            ]
        )
        result = self.router.route("prd", {"prompt": prompt, "complexity": complexity, "targetAudience": target_audience})
        prd = structure_prd(result.content)

        def apply(_db, row: Project) -> None:
            row.prd = prd
            row.prd_completed = True

        stored = self._store(project_id, result, apply)
        return {"prd": prd, "route": result.to_dict(), "project": stored}

    def generate_code(
        self,
        project_id: int,
        *,
        language: str = "javascript",
        framework: str = "",
        features: list[str] | None = None,
        complexity: str = "medium",
    ) -> dict[str, Any] | None:
        project = self._load(project_id)
        if project is None:
            return None
        prompt = "\n".join(
            [
                f"Generate {language} code for: {project['name']}",
                f"Description: {project['description']}",
                f"Framework: {framework}",
                f"Features: {', '.join(features or [])}",
                f"Complexity: {complexity}",
                f"Type: {project['type']}",
            ]
        )
        result = self.router.route(
            "code",
            {"prompt": prompt, "language": language, "complexity": complexity, "framework": framework},
        )
        code = clean_code(result.content)
        filename = slug_file_name(project["name"], language)

        def apply(db, row: Project) -> None:
            db.add(
                GeneratedCode(
                    project_id=row.id,
                    language=language,
                    filename=filename,
                    code=code,
                    description=f"Generated {language} code for {row.name}",
                    ai_provider=result.provider,
                    model=result.model,
                    generated_at=_utcnow(),
                )
            )
            row.code_generated = True

        stored = self._store(project_id, result, apply)
        return {"code": code, "filename": filename, "language": language, "route": result.to_dict(), "project": stored}

    def project_code(self, project_id: int) -> dict[str, Any] | None:
        with self.db_session_factory() as db:
            row = db.get(Project, project_id)
            if row is None:
                return None
            files = [code_to_dict(c) for c in row.code_files]
            return {"projectName": row.name, "codeFiles": files, "totalFiles": len(files)}

    def stats(self) -> dict[str, Any]:
        with self.db_session_factory() as db:
            total, avg_progress, total_requests, avg_response = db.execute(
                select(
                    func.count(Project.id),
                    func.avg(Project.percent_complete),
                    func.sum(Project.total_requests),
                    func.avg(Project.avg_response_time_ms),
                )
            ).one()
            by_status = db.execute(select(Project.status, func.count(Project.id)).group_by(Project.status)).all()
            by_type = db.execute(select(Project.type, func.count(Project.id)).group_by(Project.type)).all()
            recent = db.execute(select(Project).order_by(Project.updated_at.desc(), Project.id.desc()).limit(5)).scalars().all()
            recent_items = [
                {
                    "id": r.id,
                    "name": r.name,
                    "status": r.status,
                    "percentComplete": r.percent_complete,
                    "updatedAt": _iso(r.updated_at),
                }
                for r in recent
            ]
        return {
            "overview": {
                "totalProjects": int(total or 0),
                "avgProgress": float(avg_progress or 0),
                "totalAIRequests": int(total_requests or 0),
                "avgResponseTime": float(avg_response or 0),
            },
            "recentProjects": recent_items,
            "statusDistribution": {status: count for status, count in by_status},
            "typeDistribution": {kind: count for kind, count in by_type},
        }
