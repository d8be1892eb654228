import threading
import pytest
from conftest import PAGE, SECRET, FakeGenerator, FakeNotifier, FakePublisher, build_orchestrator, task_body
from deployer.errors import AuthError, ValidationError
from deployer.gh_api import GitHubPublisher
from deployer.models import TaskRequest, TaskState
from deployer.orchestrator import repo_slug
from deployer.store import InMemoryTaskStore
from test_gh_api import FakeResponse


def _request(**overrides) -> TaskRequest:
    body = task_body(**overrides)
    body.pop("secret")
    return TaskRequest(**body)


def test_validate_returns_request(orchestrator):
    req = orchestrator.validate(task_body(repo_name="r", round=None))
    assert req.task_id == "task-1"
    assert req.round == 1
    assert req.repo_name == "r"


def test_validate_rejects_bad_secret_before_fields(orchestrator):
    with pytest.raises(AuthError):
        orchestrator.validate({"secret": "wrong"})
    with pytest.raises(AuthError):
        orchestrator.validate({"task_id": "t", "brief": "b", "evaluation_url": "u"})


def test_validate_reports_every_missing_field(orchestrator):
    with pytest.raises(ValidationError) as exc:
        orchestrator.validate({"secret": SECRET, "brief": ""})
    assert "task_id" in str(exc.value)
    assert "brief" in str(exc.value)
    assert "evaluation_url" in str(exc.value)


def test_validate_rejects_non_object(orchestrator):
    with pytest.raises(ValidationError):
        orchestrator.validate(["not", "a", "dict"])


def test_generated_repo_name_is_slug_plus_timestamp(orchestrator):
    assert orchestrator.resolve_repo_name(_request(task_id="My Task/42"), None) == "app-My-Task-42-1700000000123"
    assert repo_slug("///") == "task"


def test_repo_name_precedence(orchestrator):
    previous = TaskState(task_id="task-1", repo_name="stored", status="completed", updated_at="x")
    assert orchestrator.resolve_repo_name(_request(repo_name="explicit"), previous) == "explicit"
    assert orchestrator.resolve_repo_name(_request(), previous) == "stored"


def test_process_passes_attachments_into_prompt(orchestrator, generator):
    attachments = [
        {"type": "text", "filename": "req.txt", "content": "Use purple"},
        {"type": "image", "data": "data:image/png;base64,AAAA", "description": "logo"},
        {"type": "video", "data": "ignored"},
    ]
    state = orchestrator.process(_request(attachments=attachments))
    assert state.status == "completed"
    prompt = generator.prompts[0]
    assert "1. From req.txt:\nUse purple" in prompt
    assert "2. Image: image.png - logo" in prompt
    assert "video" not in prompt


def test_round_two_without_stored_artifact_reads_published_page():
    publisher = FakePublisher(existing="<html>published</html>")
    publisher.repos["existing-repo"] = "<html>published</html>"
    generator = FakeGenerator()
    orch = build_orchestrator(generator=generator, publisher=publisher)

    state = orch.process(_request(round=2, repo_name="existing-repo"))

    assert state.status == "completed"
    assert publisher.calls[0] == ("read_artifact", "existing-repo")
    assert ("update", "existing-repo") in publisher.calls
    assert "<html>published</html>" in generator.prompts[0]


def test_publish_failure_marks_task_failed():
    notifier = FakeNotifier()
    orch = build_orchestrator(publisher=FakePublisher(fail_create=True), notifier=notifier)

    state = orch.process(_request())

    assert state.status == "failed"
    assert "already exists" in state.error
    assert state.repo_name == "app-task-1-1700000000123"
    assert orch.status("task-1") is state
    assert notifier.sent[0][1]["status"] == "failed"
    assert "deployment_url" not in notifier.sent[0][1]


def test_blank_exception_message_falls_back_to_type_name():
    orch = build_orchestrator(generator=FakeGenerator(error=KeyError()))
    state = orch.process(_request())
    assert state.status == "failed"
    assert state.error == "KeyError"


def test_failed_round_keeps_previous_artifact_for_retry(orchestrator, generator):
    orchestrator.process(_request())
    generator.error = RuntimeError("provider down")
    failed = orchestrator.process(_request(round=2))
    assert failed.status == "failed"
    assert failed.artifact == PAGE

    generator.error = None
    retried = orchestrator.process(_request(round=2))
    assert retried.status == "completed"
    assert PAGE in generator.prompts[-1]


def test_same_task_rounds_are_serialized():
    entered = threading.Event()
    release = threading.Event()
    order = []

    class SlowGenerator(FakeGenerator):
        def generate(self, prompt):
            order.append("start")
            if len(order) == 1:
                entered.set()
                release.wait(5)
            order.append("end")
            return super().generate(prompt)

    orch = build_orchestrator(generator=SlowGenerator(), store=InMemoryTaskStore())
    first = threading.Thread(target=orch.process, args=(_request(),))
    first.start()
    assert entered.wait(5)
    second = threading.Thread(target=orch.process, args=(_request(round=2),))
    second.start()
    second.join(0.2)
    assert order == ["start"]
    release.set()
    first.join(5)
    second.join(5)
    assert order == ["start", "end", "start", "end"]
    assert orch.status("task-1").round == 2
    assert orch._locks == {}


class FakeGitHub:
    """Minimal stateful stand-in for the REST endpoints GitHubPublisher calls."""

    def __init__(self, failing_puts: int = 0):
        self.repos = {}
        self.failing_puts = failing_puts
        self.created = []

    def request(self, method, url, headers=None, timeout=None, json=None):
        path = url[len("https://api.github.com"):]
        if method == "POST" and path == "/user/repos":
            self.created.append(json["name"])
            if json["name"] in self.repos:
                return FakeResponse(422, {"message": "Repository creation failed.",
                                          "errors": [{"message": "name already exists on this account"}]})
            self.repos[json["name"]] = None
            return FakeResponse(201, {"html_url": f"https://github.com/octo/{json['name']}"})
        if method == "PUT" and path.endswith("/contents/index.html"):
            if self.failing_puts:
                self.failing_puts -= 1
                return FakeResponse(500, {"message": "Server Error"})
            self.repos[path.split("/")[3]] = json["content"]
            return FakeResponse(201, {"content": {}})
        if method == "POST" and path.endswith("/pages"):
            return FakeResponse(201, {})
        return FakeResponse(404, {"message": "Not Found"})


def test_round_one_retry_after_half_published_repo_uses_fresh_name():
    github = FakeGitHub(failing_puts=1)
    publisher = GitHubPublisher(token="tkn", owner="octo", session=github)
    ticks = iter([1700000000.0, 1700000001.0])
    orch = build_orchestrator(publisher=publisher, clock=lambda: next(ticks))

    first = orch.process(_request())
    assert first.status == "failed"
    assert first.repo_name == "app-task-1-1700000000000"

    retry = orch.process(_request())
    assert retry.status == "completed"
    assert retry.repo_name == "app-task-1-1700000001000"
    assert github.created == ["app-task-1-1700000000000", "app-task-1-1700000001000"]


def test_failed_round_two_keeps_repo_name_for_next_round(orchestrator, generator, publisher):
    done = orchestrator.process(_request())
    generator.error = RuntimeError("provider down")
    orchestrator.process(_request(round=2))
    generator.error = None
    again = orchestrator.process(_request(round=2))
    assert again.repo_name == done.repo_name
    assert [c for c in publisher.calls if c[0] == "create"] == [("create", done.repo_name)]


def test_stored_page_not_used_for_a_different_repo(orchestrator, generator, publisher):
    orchestrator.process(_request())
    publisher.repos["other-repo"] = "<html>other</html>"
    publisher.existing = "<html>other</html>"

    state = orchestrator.process(_request(round=2, repo_name="other-repo"))

    assert state.status == "completed"
    assert ("read_artifact", "other-repo") in publisher.calls
    assert "<html>other</html>" in generator.prompts[-1]
    assert "<h1>Todo</h1>" not in generator.prompts[-1]


def test_task_locks_are_released_after_processing(orchestrator):
    orchestrator.process(_request())
    orchestrator.process(_request(task_id="task-2"))
    assert orchestrator._locks == {}
