from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from flowsprint import __version__
from flowsprint.apps.runtime_support import GatewayRuntime, build_gateway_runtime
from flowsprint.cli import base_parser
from flowsprint.core.api.schemas import (
    CodeGenerateRequest,
    GenerateRequest,
    MindmapGenerateRequest,
    PrdGenerateRequest,
    ProjectCreateRequest,
    ProjectUpdateRequest,
    StreamRequest,
)
from flowsprint.core.content.code import clean_code, file_name_for
from flowsprint.core.content.mindmap import parse_mindmap
from flowsprint.core.content.prd import default_node_prd, structure_prd
from flowsprint.core.gateway.normalizer import RouteResult
from flowsprint.core.providers.prompts import subject_for
from flowsprint.core.runtime.errors import (
    AllProvidersFailedError,
    InvalidRequestOptionsError,
    ProviderNotFoundError,
    UnknownRequestKindError,
)
from flowsprint.core.telemetry.logging import get_logger
from flowsprint.core.telemetry.tracing import recent_traces

MISSING_SUBJECT = {
    "mindmap": ("Project description is required", "MISSING_PROJECT_DESCRIPTION"),
    "code": ("Code requirements are required", "MISSING_REQUIREMENTS"),
    "node-code": ("Node title and description are required", "MISSING_NODE_DATA"),
    "prd": ("Project idea is required", "MISSING_PROJECT_IDEA"),
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _sse(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


def _missing_subject(kind: str, body: dict) -> bool:
    if kind == "node-code":
        return not (body.get("nodeTitle") and body.get("nodeDescription"))
    return not subject_for(kind, body)


def _kind_data(kind: str, body: dict, result: RouteResult) -> dict:
    data = result.to_dict()
    if kind == "mindmap":
        data["mindmap"] = parse_mindmap(result.content)
        data["format"] = body.get("format", "json")
    elif kind == "code":
        data["code"] = clean_code(result.content)
        data["language"] = body.get("language") or "javascript"
        data["framework"] = body.get("framework")
    elif kind == "node-code":
        options = body.get("codeOptions") or {}
        language = options.get("language") or "typescript"
        node_type = body.get("nodeType") or "component"
        title = body.get("nodeTitle") or ""
        name = file_name_for(title, language, 0)
        data["files"] = [
            {
                "name": name,
                "path": f"src/components/{name}",
                "content": clean_code(result.content),
                "language": language,
                "type": node_type,
                "description": f"{node_type} implementation for {title}",
                "prd": default_node_prd(title, node_type, name),
            }
        ]
        data["nodeId"] = body.get("nodeId")
        data["nodeTitle"] = title
    elif kind == "prd":
        data["prd"] = structure_prd(result.content)
        data["rawContent"] = result.content
    data["complexity"] = body.get("complexity")
    return data


def create_app(config_path: str | None = None, runtime: GatewayRuntime | None = None) -> FastAPI:
    runtime = runtime or build_gateway_runtime(config_path=config_path)
    logger = get_logger("flowsprint.api")

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        runtime.start()
        try:
            yield
        finally:
            runtime.stop()

    app = FastAPI(title="FlowSprint Gateway API", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[runtime.cfg.runtime.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AllProvidersFailedError)
    async def _all_failed(_request: Request, exc: AllProvidersFailedError) -> JSONResponse:
        code = f"{exc.kind.replace('-', '_').upper()}_GENERATION_FAILED"
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": f"Failed to generate {exc.kind}",
                "message": str(exc),
                "code": code,
                "attempted": exc.attempted,
                "metadata": {"timestamp": _now()},
            },
        )

    @app.exception_handler(UnknownRequestKindError)
    async def _unknown_kind(_request: Request, exc: UnknownRequestKindError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Unknown request kind", "message": str(exc), "code": "UNKNOWN_REQUEST_KIND"},
        )

    @app.exception_handler(InvalidRequestOptionsError)
    async def _invalid_options(_request: Request, exc: InvalidRequestOptionsError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid generation options", "message": str(exc), "code": "INVALID_OPTIONS"},
        )

    @app.get("/health")
    def health() -> dict:
        return {
            "status": "ok",
            "service": "flowsprint-gateway",
            "version": __version__,
            "environment": runtime.cfg.environment,
            "timestamp": _now(),
        }

    @app.post("/generate/{kind}")
    def generate(kind: str, payload: GenerateRequest):
        if kind not in runtime.router.kinds():
            raise UnknownRequestKindError(kind)
        body = payload.model_dump(exclude_none=True)
        options = body.pop("options", {})
        if _missing_subject(kind, body):
            error, code = MISSING_SUBJECT.get(kind, ("Prompt is required", "MISSING_PROMPT"))
            return JSONResponse(status_code=400, content={"success": False, "error": error, "message": error, "code": code})

        result = runtime.router.route(kind, body, options)
        logger.info("generate_ok", kind=kind, provider=result.provider, fallback=result.fallback_used)
        return {
            "success": True,
            "data": _kind_data(kind, body, result),
            "metadata": {
                "responseTime": result.response_time_ms,
                "provider": result.provider,
                "model": result.model,
                "timestamp": _now(),
                "fallback": result.fallback_used,
            },
        }

    @app.post("/stream")
    def stream(payload: StreamRequest):
        prompt = (payload.prompt or "").strip()
        if not prompt:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Prompt is required", "message": "Prompt is required", "code": "MISSING_PROMPT"},
            )
        try:
            chunks = runtime.router.open_stream(prompt, provider=payload.provider, max_tokens=payload.maxTokens)
        except ProviderNotFoundError as exc:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Unknown provider", "message": str(exc), "code": "UNKNOWN_PROVIDER"},
            )

        def events():
            try:
                for chunk in chunks:
                    yield _sse({"type": "chunk", "content": chunk})
            except Exception as exc:  # noqa: BLE001
                logger.warning("stream_failed", error=str(exc))
                yield _sse({"type": "error", "message": str(exc)})
                return
            yield _sse({"type": "complete"})

        return StreamingResponse(events(), media_type="text/event-stream", headers={"Cache-Control": "no-cache"})

    @app.get("/gateway/status")
    def gateway_status() -> dict:
        return runtime.router.gateway_status()

    @app.get("/gateway/providers")
    def gateway_providers() -> dict:
        status = runtime.router.gateway_status()
        return {
            "success": True,
            "data": {
                "gateway": status["gateway"],
                "status": status["status"],
                "services": status["services"],
                "totalRequests": status["totalRequests"],
                "providers": runtime.router.providers(),
            },
            "metadata": {"timestamp": _now()},
        }

    @app.get("/gateway/health")
    def gateway_health() -> dict:
        return runtime.router.health_summary()

    @app.get("/gateway/traces")
    def gateway_traces(
        request_id: str | None = Query(default=None),
        limit: int = Query(default=20, ge=1, le=500),
    ) -> dict:
        return {"items": recent_traces(request_id=request_id, limit=limit)}

    @app.post("/projects", status_code=201)
    def create_project(payload: ProjectCreateRequest) -> dict:
        project = runtime.project_service.create_project(
            name=payload.name,
            description=payload.description,
            type=payload.type,
            industry=payload.industry,
            complexity=payload.complexity,
            features=payload.features,
            tech_stack=payload.techStack,
            tags=payload.tags,
        )
        return {"success": True, "data": project}

    @app.get("/projects")
    def list_projects(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        status: str | None = Query(default=None),
        type: str | None = Query(default=None),
        search: str | None = Query(default=None),
    ) -> dict:
        listed = runtime.project_service.list_projects(page=page, limit=limit, status=status, type=type, search=search)
        return {"success": True, "data": listed["items"], "pagination": listed["pagination"]}

    @app.get("/projects/stats")
    def project_stats() -> dict:
        return {"success": True, "data": runtime.project_service.stats()}

    @app.get("/projects/{project_id}")
    def get_project(project_id: int) -> dict:
        project = runtime.project_service.get_project(project_id)
        if project is None:
            raise HTTPException(status_code=404, detail="project_not_found")
        return {"success": True, "data": project}

    @app.put("/projects/{project_id}")
    def update_project(project_id: int, payload: ProjectUpdateRequest) -> dict:
        changes = payload.model_dump(exclude_none=True)
        if "techStack" in changes:
            changes["tech_stack"] = changes.pop("techStack")
        project = runtime.project_service.update_project(project_id, changes)
        if project is None:
            raise HTTPException(status_code=404, detail="project_not_found")
        return {"success": True, "data": project}

    @app.delete("/projects/{project_id}")
    def delete_project(project_id: int) -> dict:
        if not runtime.project_service.delete_project(project_id):
            raise HTTPException(status_code=404, detail="project_not_found")
        return {"success": True, "message": "Project deleted successfully"}

    @app.post("/projects/{project_id}/mindmap")
    def project_mindmap(project_id: int, payload: MindmapGenerateRequest) -> dict:
        out = runtime.project_service.generate_mindmap(project_id, complexity=payload.complexity, priority=payload.priority)
        if out is None:
            raise HTTPException(status_code=404, detail="project_not_found")
        return {"success": True, "data": out, "message": "Mindmap generated successfully"}

    @app.post("/projects/{project_id}/prd")
    def project_prd(project_id: int, payload: PrdGenerateRequest) -> dict:
        out = runtime.project_service.generate_prd(
            project_id,
            target_audience=payload.targetAudience,
            sections=payload.sections,
            complexity=payload.complexity,
        )
        if out is None:
            raise HTTPException(status_code=404, detail="project_not_found")
        return {"success": True, "data": out, "message": "PRD generated successfully"}

    @app.post("/projects/{project_id}/code")
    def project_code_generate(project_id: int, payload: CodeGenerateRequest) -> dict:
        out = runtime.project_service.generate_code(
            project_id,
            language=payload.language,
            framework=payload.framework,
            features=payload.features,
            complexity=payload.complexity,
        )
        if out is None:
            raise HTTPException(status_code=404, detail="project_not_found")
        return {"success": True, "data": out, "message": "Code generated successfully"}

    @app.get("/projects/{project_id}/code")
    def project_code_files(project_id: int) -> dict:
        out = runtime.project_service.project_code(project_id)
        if out is None:
            raise HTTPException(status_code=404, detail="project_not_found")
        return {"success": True, "data": out}

    return app


def main() -> int:
    parser = base_parser("flowsprint-api", "FlowSprint gateway API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3001)
    args = parser.parse_args()

    api = create_app(config_path=args.config)
    uvicorn.run(api, host=args.host, port=args.port, log_level="info")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
