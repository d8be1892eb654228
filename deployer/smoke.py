"""
Manual end-to-end check against a running deployer.

    python -m deployer.smoke --base-url http://localhost:3000 --webhook https://webhook.site/<id>
    python -m deployer.smoke --round 2 --task-id task-123 --repo-name app-task-123-1700000000000
"""
import argparse
import json
import logging
import os
import time
from typing import Optional
import requests
from .settings import settings

logger = logging.getLogger(__name__)

# 1x1 transparent PNG
PIXEL_PNG = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

ROUND1_BRIEF = (
    "Create a todo list application: add tasks, mark them complete with a checkbox, delete tasks "
    "with a button, show a task count. Modern gradient background and a clean card layout."
)
ROUND2_BRIEF = "Add a dark mode toggle and a button that clears all completed tasks."

def round1_body(secret: str, task_id: str, webhook: str) -> dict:
    return {
        "secret": secret,
        "task_id": task_id,
        "brief": ROUND1_BRIEF,
        "attachments": [
            {
                "type": "text",
                "filename": "requirements.txt",
                "content": "- Use a purple and blue color scheme\n- Hover effects on buttons\n- Mobile responsive",
                "description": "Design requirements",
            },
            {"type": "image", "filename": "logo.png", "data": PIXEL_PNG, "description": "App logo for the header"},
        ],
        "evaluation_url": webhook,
        "round": 1,
    }

def round2_body(secret: str, task_id: str, webhook: str, repo_name: Optional[str] = None, round: int = 2) -> dict:
    body = {
        "secret": secret,
        "task_id": task_id,
        "brief": ROUND2_BRIEF,
        "evaluation_url": webhook,
        "round": round,
    }
    if repo_name:
        body["repo_name"] = repo_name
    return body

def submit(base_url: str, body: dict) -> dict:
    r = requests.post(f"{base_url}/api-endpoint", json=body, timeout=30)
    r.raise_for_status()
    return r.json()

def task_status(base_url: str, task_id: str) -> Optional[dict]:
    r = requests.get(f"{base_url}/task/{task_id}", timeout=30)
    if r.status_code == 404:
        return None
    r.raise_for_status()
    return r.json()

def wait_for_task(base_url: str, task_id: str, round: int, timeout: float = 180.0, interval: float = 5.0,
                  sleep=time.sleep) -> Optional[dict]:
    """Poll /task/<id> until the given round has a recorded outcome."""
    deadline = time.monotonic() + timeout
    while True:
        state = task_status(base_url, task_id)
        if state and state.get("round") == round:
            return state
        if time.monotonic() >= deadline:
            return state
        sleep(interval)

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Smoke-test a running deployer")
    parser.add_argument("--base-url", default=os.getenv("API_BASE_URL", f"http://localhost:{settings.PORT}"))
    parser.add_argument("--secret", default=os.getenv("SECRET_KEY", settings.SECRET_KEY))
    parser.add_argument("--webhook", default=os.getenv("TEST_WEBHOOK_URL", "https://webhook.site/your-unique-url"))
    parser.add_argument("--task-id", default=None)
    parser.add_argument("--repo-name", default=None)
    parser.add_argument("--round", type=int, default=1)
    parser.add_argument("--timeout", type=float, default=180.0)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    base_url = args.base_url.rstrip("/")
    health = requests.get(f"{base_url}/health", timeout=30)
    health.raise_for_status()
    logger.info("health: %s", health.json())

    task_id = args.task_id or f"task-{int(time.time() * 1000)}"
    if args.round <= 1:
        body = round1_body(args.secret, task_id, args.webhook)
    else:
        body = round2_body(args.secret, task_id, args.webhook, args.repo_name, args.round)
    logger.info("accepted: %s", submit(base_url, body))

    state = wait_for_task(base_url, task_id, args.round, timeout=args.timeout)
    logger.info("status:\n%s", json.dumps(state, indent=2))
    if not state or state.get("status") != "completed":
        return 1
    if args.round <= 1:
        logger.info("next: python -m deployer.smoke --round 2 --task-id %s --repo-name %s",
                    task_id, state.get("repoName"))
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
