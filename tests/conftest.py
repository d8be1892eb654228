from typing import List, Optional
import pytest
from fastapi.testclient import TestClient
from deployer.errors import PublishError
from deployer.models import PublishResult
from deployer.orchestrator import TaskOrchestrator
from deployer.server import create_app
from deployer.settings import Settings
from deployer.store import InMemoryTaskStore

SECRET = "s3cret-value"
PAGE = "<!DOCTYPE html><html><body><h1>Todo</h1></body></html>"


class FakeGenerator:
    name = "fake"

    def __init__(self, output: str = "```html\n" + PAGE + "\n```", error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.output


class FakePublisher:
    owner = "octo"

    def __init__(self, existing: Optional[str] = None, fail_create: bool = False):
        self.calls: List[tuple] = []
        self.repos = {}
        self.existing = existing
        self.fail_create = fail_create

    def read_artifact(self, repo_name: str) -> Optional[str]:
        self.calls.append(("read_artifact", repo_name))
        return self.existing

    def publish(self, repo_name: str, html: str, brief: str, round: int = 1) -> PublishResult:
        if round <= 1:
            self.calls.append(("create", repo_name))
            if self.fail_create or repo_name in self.repos:
                raise PublishError("GitHub repository creation failed (422): name already exists on this account")
            self.repos[repo_name] = html
        else:
            self.calls.append(("update", repo_name))
            if repo_name not in self.repos:
                raise PublishError("GitHub repository lookup failed (404): Not Found")
            self.repos[repo_name] = html
        return PublishResult(repo_url=f"https://github.com/{self.owner}/{repo_name}", repo_name=repo_name)

    def ensure_site_enabled(self, repo_name: str) -> str:
        self.calls.append(("pages", repo_name))
        return f"https://{self.owner}.github.io/{repo_name}/"


class FakeNotifier:
    def __init__(self):
        self.sent: List[tuple] = []

    def notify(self, evaluation_url: str, payload: dict) -> bool:
        self.sent.append((evaluation_url, payload))
        return True


def build_orchestrator(generator=None, publisher=None, notifier=None, store=None, clock=None) -> TaskOrchestrator:
    return TaskOrchestrator(
        store=store if store is not None else InMemoryTaskStore(),
        generator=generator or FakeGenerator(),
        publisher=publisher or FakePublisher(),
        notifier=notifier or FakeNotifier(),
        secret=SECRET,
        clock=clock or (lambda: 1700000000.123),
    )


def build_client(orchestrator: TaskOrchestrator, tmp_path=None) -> TestClient:
    cfg = Settings(
        SECRET_KEY=SECRET,
        LLM_PROVIDER="openai",
        GITHUB_USERNAME="octo",
        NOTIFY_LOG_PATH=str(tmp_path / "notify.log") if tmp_path else "/nonexistent/notify.log",
    )
    return TestClient(create_app(orchestrator=orchestrator, cfg=cfg))


def task_body(**overrides) -> dict:
    body = {
        "secret": SECRET,
        "task_id": "task-1",
        "brief": "Build a todo list app",
        "attachments": [],
        "evaluation_url": "https://example.com/callback",
        "round": 1,
    }
    body.update(overrides)
    return body


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def orchestrator(generator, publisher, notifier):
    return build_orchestrator(generator=generator, publisher=publisher, notifier=notifier)


@pytest.fixture
def client(orchestrator, tmp_path):
    return build_client(orchestrator, tmp_path)
