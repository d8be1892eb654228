import datetime
import logging
import pathlib
import time
from typing import Optional
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from .errors import AuthError, DeployerError, ValidationError
from .gh_api import GitHubPublisher
from .llm import create_generator
from .models import HealthResponse, TaskAccepted
from .notifier import Notifier
from .orchestrator import TaskOrchestrator
from .settings import Settings, settings
from .store import InMemoryTaskStore

logger = logging.getLogger(__name__)

INDEX_PAGE = """<h2>LLM App Deployer</h2><p>Welcome!</p>
<ul>
<li><a href="/health">Check Health</a></li>
<li>POST /api-endpoint</li>
<li>GET /task/{task_id}</li>
</ul>"""

def build_orchestrator(cfg: Settings) -> TaskOrchestrator:
    publisher = GitHubPublisher(
        token=cfg.GITHUB_TOKEN,
        owner=cfg.GITHUB_USERNAME,
        api_url=cfg.GITHUB_API_URL,
        branch=cfg.DEFAULT_BRANCH,
    )
    return TaskOrchestrator(
        store=InMemoryTaskStore(),
        generator=create_generator(cfg),
        publisher=publisher,
        notifier=Notifier(timeout=cfg.CALLBACK_TIMEOUT, log_path=cfg.NOTIFY_LOG_PATH),
        secret=cfg.SECRET_KEY,
    )

def _error(status: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": error, "message": message})

def create_app(orchestrator: Optional[TaskOrchestrator] = None, cfg: Optional[Settings] = None) -> FastAPI:
    cfg = cfg or settings
    logging.basicConfig(level=cfg.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    orchestrator = orchestrator or build_orchestrator(cfg)

    app = FastAPI(title="LLM App Deployer")
    app.state.orchestrator = orchestrator

    @app.on_event("startup")
    async def _banner():
        logger.info("=" * 60)
        logger.info("LLM App Deployer started")
        logger.info("Port: %s", cfg.PORT)
        logger.info("LLM provider: %s", cfg.LLM_PROVIDER.upper())
        logger.info("GitHub user: %s", cfg.GITHUB_USERNAME or "(not set)")
        logger.info("=" * 60)

    @app.exception_handler(AuthError)
    async def _auth_error(request: Request, exc: AuthError):
        logger.warning("Rejected request: %s", exc)
        return _error(401, "Unauthorized", str(exc))

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        logger.warning("Rejected request: %s", exc)
        return _error(400, "Bad Request", str(exc))

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def index():
        return INDEX_PAGE

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            llm_provider=cfg.LLM_PROVIDER,
            github_username=cfg.GITHUB_USERNAME,
            timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
        )

    # ---- MAIN ENDPOINT ----
    @app.post("/api-endpoint", status_code=202, response_model=TaskAccepted)
    async def receive_task(request: Request, background_tasks: BackgroundTasks):
        started_at = time.monotonic()
        try:
            try:
                payload = await request.json()
            except ValueError:
                raise ValidationError("Invalid JSON payload")

            req = orchestrator.validate(payload)
            # pipeline runs after the 202 is sent
            background_tasks.add_task(orchestrator.process, req, started_at)
            logger.info("Accepted task %s round %s", req.task_id, req.round)
            return TaskAccepted(task_id=req.task_id, round=req.round)
        except DeployerError:
            raise
        except Exception as e:
            logger.exception("Unexpected error while accepting task")
            return _error(500, "Internal Server Error", str(e))

    @app.get("/task/{task_id}")
    async def task_status(task_id: str):
        state = orchestrator.status(task_id)
        if state is None:
            return _error(404, "Not Found", "Task not found or not started yet")
        return JSONResponse(state.public())

    # ---- NOTIFY LOG VIEWER ----
    @app.get("/_notify_log", include_in_schema=False)
    async def notify_log():
        path = pathlib.Path(cfg.NOTIFY_LOG_PATH)
        if not path.exists():
            return PlainTextResponse(f"NO LOG: {path} not found\n")
        try:
            return PlainTextResponse(path.read_text(encoding="utf-8"))
        except OSError as e:
            return PlainTextResponse(f"ERROR reading log: {e}\n")

    return app

app = create_app()
