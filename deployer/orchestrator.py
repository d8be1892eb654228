import datetime
import logging
import re
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional
import pydantic
from .attachments import normalize_attachments
from .errors import AuthError, ValidationError
from .extract import extract_html
from .llm import Generator
from .models import CallbackPayload, TaskRequest, TaskState
from .notifier import Notifier
from .prompts import build_prompt
from .security import verify_secret
from .store import TaskStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("task_id", "brief", "evaluation_url")
_REPO_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")

def _utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()

def repo_slug(task_id: str) -> str:
    return _REPO_UNSAFE_RE.sub("-", task_id).strip("-") or "task"

class TaskOrchestrator:
    """
    Drives one task from request to published page:

        validate -> (202 returned by the caller) -> process:
            prompt -> generate -> extract -> publish -> enable Pages -> store -> callback

    `process` is meant to run off the request path (FastAPI BackgroundTasks). Every
    failure inside it ends as a `failed` TaskState plus a failure callback; nothing
    propagates back to the HTTP layer.
    """

    def __init__(self, store: TaskStore, generator: Generator, publisher, notifier: Notifier,
                 secret: str, clock: Callable[[], float] = time.time):
        self.store = store
        self.generator = generator
        self.publisher = publisher
        self.notifier = notifier
        self.secret = secret
        self.clock = clock
        self._locks: Dict[str, List] = {}
        self._locks_guard = threading.Lock()

    # ---- synchronous side ----
    def validate(self, payload) -> TaskRequest:
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        if not verify_secret(payload.get("secret"), self.secret):
            raise AuthError("Invalid or missing secret")
        missing = [f for f in REQUIRED_FIELDS if not payload.get(f)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        try:
            return TaskRequest.model_validate({k: v for k, v in payload.items() if v is not None})
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"Invalid fields: {problems}") from e

    def status(self, task_id: str) -> Optional[TaskState]:
        return self.store.get(task_id)

    # ---- background side ----
    def resolve_repo_name(self, req: TaskRequest, previous: Optional[TaskState]) -> str:
        if req.repo_name:
            return req.repo_name
        # a failed round 1 may have left a half-created repo behind; retry under a fresh name
        if previous and previous.repo_name and (previous.status == "completed" or req.round >= 2):
            return previous.repo_name
        return f"app-{repo_slug(req.task_id)}-{int(self.clock() * 1000)}"

    @contextmanager
    def _task_lock(self, task_id: str):
        # entry is [lock, holders + waiters]; dropped when the count reaches zero
        with self._locks_guard:
            entry = self._locks.setdefault(task_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[task_id]

    def process(self, req: TaskRequest, started_at: Optional[float] = None) -> TaskState:
        started_at = time.monotonic() if started_at is None else started_at
        # rounds for the same task_id run one after another
        with self._task_lock(req.task_id):
            state, payload = self._run(req, started_at)
        self.notifier.notify(req.evaluation_url, payload.model_dump(exclude_none=True))
        return state

    def _run(self, req: TaskRequest, started_at: float):
        previous = self.store.get(req.task_id)
        repo_name = None
        prior_html = None
        try:
            repo_name = self.resolve_repo_name(req, previous)
            logger.info("Task %s round %s -> repo %s", req.task_id, req.round, repo_name)
            # only trust the stored page if it was published to this same repo
            if previous and previous.repo_name == repo_name:
                prior_html = previous.artifact

            existing_html = None
            if req.round >= 2:
                existing_html = prior_html
                if existing_html is None:
                    existing_html = self.publisher.read_artifact(repo_name)

            prompt = build_prompt(req.brief, normalize_attachments(req.attachments), req.round, existing_html)
            html = extract_html(self.generator.generate(prompt))
            published = self.publisher.publish(repo_name, html, req.brief, req.round)
            deployment_url = self.publisher.ensure_site_enabled(published.repo_name)

            state = TaskState(
                task_id=req.task_id,
                repo_name=published.repo_name,
                repo_url=published.repo_url,
                deployment_url=deployment_url,
                round=req.round,
                status="completed",
                updated_at=_utc_now_iso(),
                artifact=html,
            )
            self.store.set(req.task_id, state)
            logger.info("Task %s round %s completed: %s", req.task_id, req.round, deployment_url)
            payload = CallbackPayload(
                task_id=req.task_id,
                round=req.round,
                status="completed",
                repo_url=published.repo_url,
                deployment_url=deployment_url,
                processing_time_ms=int((time.monotonic() - started_at) * 1000),
                timestamp=_utc_now_iso(),
            )
        except Exception as e:
            logger.exception("Task %s round %s failed", req.task_id, req.round)
            message = str(e) or type(e).__name__
            state = TaskState(
                task_id=req.task_id,
                repo_name=repo_name,
                round=req.round,
                status="failed",
                error=message,
                updated_at=_utc_now_iso(),
                artifact=prior_html,
            )
            self.store.set(req.task_id, state)
            payload = CallbackPayload(
                task_id=req.task_id,
                round=req.round,
                status="failed",
                error=message,
                timestamp=_utc_now_iso(),
            )
        return state, payload
