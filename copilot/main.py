"""PRS Co-Pilot — FastAPI app around the plan/review/synthesize pipeline.

Loads configuration on startup and builds one shared Orchestrator. Exposes
the single stages (/plan, /review, /synthesize), the full pipeline
(/generate), and operational endpoints for health and hot-reload.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from copilot.config import SERVICE_NAME, SERVICE_VERSION, get_config, load_config, reload_config
from copilot.runtime import Orchestrator, PipelineError
from copilot.schemas import (
    GenerateRequest,
    GenerationOptions,
    PlanRequest,
    PlanResponse,
    ReviewRequest,
    ReviewResponse,
    SynthesizeRequest,
    SynthesizeResponse,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load config and build the orchestrator on startup."""
    config = load_config()
    app.state.orchestrator = Orchestrator(config)
    logger.info(
        f"{SERVICE_NAME} started (origins={config.allowed_origins}, "
        f"auth={'enabled' if config.api_key else 'disabled'}, "
        f"default_model={config.default_model}, port={config.port})"
    )
    yield
    logger.info(f"{SERVICE_NAME} shutting down")


# Load config early so we can read allowed_origins for CORS middleware.
_boot_config = load_config()

app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_boot_config.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


async def verify_api_key(request: Request) -> None:
    """Validate X-API-Key header against the configured key.
    If no api_key is set in config, auth is disabled (dev mode).
    """
    config = get_config()
    if not config.api_key:
        return  # no key configured

    key = request.headers.get("X-API-Key")
    if key != config.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def get_orchestrator(request: Request) -> Orchestrator:
    """The shared orchestrator; built lazily if the lifespan has not run."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = Orchestrator(get_config())
        request.app.state.orchestrator = orchestrator
    return orchestrator


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise HTTPException(status_code=400, detail=f"Missing {field}")
    return value


def _options(orchestrator: Orchestrator, body: GenerationOptions):
    return orchestrator.options(
        model=body.model,
        reasoning_effort=body.reasoning_effort,
        verbosity=body.verbosity,
    )


# ---------------------------------------------------------------------------
# Pipeline endpoints
# ---------------------------------------------------------------------------


@app.post("/plan", response_model=PlanResponse, dependencies=[Depends(verify_api_key)])
async def plan(body: PlanRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Author one structured plan for a case."""
    case_text = _require(body.case_text, "caseText")
    try:
        xml = await orchestrator.plan(case_text, _options(orchestrator, body))
    except PipelineError:
        raise HTTPException(status_code=500, detail="planner_failed")
    return PlanResponse(xml=xml)


@app.post("/review", response_model=ReviewResponse, dependencies=[Depends(verify_api_key)])
async def review(body: ReviewRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Run one review board turn on a plan."""
    plan_xml = _require(body.planner_xml, "plannerXml")
    try:
        outcome = await orchestrator.review(plan_xml, _options(orchestrator, body))
    except PipelineError:
        raise HTTPException(status_code=500, detail="review_failed")
    return ReviewResponse(verdict=outcome.verdict, comment=outcome.comment)


@app.post(
    "/synthesize", response_model=SynthesizeResponse, dependencies=[Depends(verify_api_key)]
)
async def synthesize(
    body: SynthesizeRequest, orchestrator: Orchestrator = Depends(get_orchestrator)
):
    """Render an approved plan as a Markdown operative note."""
    plan_xml = _require(body.approved_planner_xml, "approvedPlannerXml")
    try:
        markdown = await orchestrator.synthesize(plan_xml, _options(orchestrator, body))
    except PipelineError:
        raise HTTPException(status_code=500, detail="synth_failed")
    return SynthesizeResponse(markdown=markdown)


@app.post("/generate", dependencies=[Depends(verify_api_key)])
async def generate(body: GenerateRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Run the full pipeline: plan, review loop, override, synthesis.

    A final rejection is a 200 without ``markdown``.
    """
    case_text = _require(body.case_text, "caseText")
    try:
        result = await orchestrator.generate(case_text, _options(orchestrator, body))
    except PipelineError:
        raise HTTPException(status_code=500, detail="generate_failed")
    return result.as_response()


# ---------------------------------------------------------------------------
# Operational endpoints
# ---------------------------------------------------------------------------


@app.get("/")
async def root():
    return RedirectResponse(url="/health")


@app.get("/health")
async def health():
    """Liveness check with service identity and feature flags."""
    config = get_config()
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "features": {
            "responses_api": True,
            "chat_fallback": True,
            "manager_override": True,
            "max_rounds": config.pipeline.max_rounds,
            "default_model": config.default_model,
        },
    }


@app.post("/reload", dependencies=[Depends(verify_api_key)])
async def reload(request: Request):
    """Hot-reload config.yaml and rebuild the orchestrator without a restart."""
    try:
        new_config = reload_config()
        request.app.state.orchestrator = Orchestrator(new_config)
    except Exception as e:
        logger.error(f"Reload failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="reload_failed")
    return {
        "status": "reloaded",
        "default_model": new_config.default_model,
        "max_rounds": new_config.pipeline.max_rounds,
    }


def serve() -> None:
    """Run the app under uvicorn on the configured port."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_config().port)
