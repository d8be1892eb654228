import base64
import binascii
import logging
from typing import Optional
import requests
from .errors import PublishError
from .models import PublishResult

logger = logging.getLogger(__name__)

ARTIFACT_PATH = "index.html"
REQUEST_TIMEOUT = 30

class GitHubPublisher:
    """
    Publishes a single index.html to <owner>/<repo_name> through the GitHub REST API
    and turns on GitHub Pages for it.

    Round 1 creates the repository; later rounds write over the existing file, passing
    its blob sha so the contents API treats the PUT as an update.
    """

    def __init__(self, token: str, owner: str, api_url: str = "https://api.github.com",
                 branch: str = "main", session: Optional[requests.Session] = None):
        self.owner = owner
        self.api_url = api_url.rstrip("/")
        self.branch = branch
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/vnd.github+json"}
        if token:
            self.headers["Authorization"] = f"token {token}"
        else:
            logger.warning("GITHUB_TOKEN not set; github operations will fail")

    def _repo_path(self, repo_name: str) -> str:
        return f"{self.api_url}/repos/{self.owner}/{repo_name}"

    def _request(self, method: str, url: str, **kwargs):
        logger.info("GitHub %s %s", method, url)
        try:
            return self.session.request(method, url, headers=self.headers, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise PublishError(f"GitHub operation failed: {e}") from e

    @staticmethod
    def _check(resp, action: str) -> dict:
        if 200 <= resp.status_code < 300:
            return resp.json()
        try:
            body = resp.json()
        except ValueError:
            body = {}
        detail = (body.get("message") if isinstance(body, dict) else None) or resp.text
        # 422s carry the useful part ("name already exists on this account") in errors[]
        errors = [e.get("message") for e in (body.get("errors") or []) if isinstance(e, dict)] if isinstance(body, dict) else []
        errors = [m for m in errors if m]
        if errors:
            detail = f"{detail} ({'; '.join(errors)})"
        raise PublishError(f"GitHub {action} failed ({resp.status_code}): {detail}")

    def site_url(self, repo_name: str) -> str:
        return f"https://{self.owner}.github.io/{repo_name}/"

    def _current_file(self, repo_name: str) -> Optional[dict]:
        try:
            r = self._request("GET", f"{self._repo_path(repo_name)}/contents/{ARTIFACT_PATH}")
        except PublishError as e:
            logger.info("Could not read %s/%s: %s", repo_name, ARTIFACT_PATH, e)
            return None
        if r.status_code != 200:
            logger.info("No existing %s in %s (status %s)", ARTIFACT_PATH, repo_name, r.status_code)
            return None
        try:
            return r.json()
        except ValueError:
            return None

    def read_artifact(self, repo_name: str) -> Optional[str]:
        """Return the published index.html, or None when it cannot be read."""
        current = self._current_file(repo_name)
        if not current or not current.get("content"):
            return None
        try:
            return base64.b64decode(current["content"]).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.warning("Existing %s in %s is not decodable", ARTIFACT_PATH, repo_name)
            return None

    def publish(self, repo_name: str, html: str, brief: str, round: int = 1) -> PublishResult:
        sha = None
        if round <= 1:
            repo = self._check(self._request("POST", f"{self.api_url}/user/repos", json={
                "name": repo_name,
                "description": f"Auto-generated app: {brief[:100]}",
                "private": False,
            }), "repository creation")
            message = "Initial commit"
        else:
            repo = self._check(self._request("GET", self._repo_path(repo_name)), "repository lookup")
            current = self._current_file(repo_name)
            sha = current.get("sha") if current else None
            message = f"Update round {round}"

        body = {
            "message": message,
            "content": base64.b64encode(html.encode("utf-8")).decode("ascii"),
        }
        if sha:
            body["sha"] = sha
        self._check(
            self._request("PUT", f"{self._repo_path(repo_name)}/contents/{ARTIFACT_PATH}", json=body),
            f"write of {ARTIFACT_PATH}",
        )
        repo_url = repo.get("html_url") or f"https://github.com/{self.owner}/{repo_name}"
        logger.info("Published %s to %s (round %s)", ARTIFACT_PATH, repo_url, round)
        return PublishResult(repo_url=repo_url, repo_name=repo_name)

    def ensure_site_enabled(self, repo_name: str) -> str:
        payload = {"source": {"branch": self.branch, "path": "/"}}
        try:
            r = self._request("POST", f"{self._repo_path(repo_name)}/pages", json=payload)
        except PublishError as e:
            logger.warning("Enable Pages failed for %s: %s", repo_name, e)
            return self.site_url(repo_name)
        if r.status_code == 409:
            logger.info("Pages already enabled for %s", repo_name)
        elif not 200 <= r.status_code < 300:
            logger.warning("Enable Pages returned %s: %s", r.status_code, r.text[:500])
        return self.site_url(repo_name)
