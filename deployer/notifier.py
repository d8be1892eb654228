import datetime
import logging
import requests
from .errors import CallbackError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
LOG_PATH = "/tmp/notify.log"

class Notifier:
    """Best-effort delivery of task outcomes to the caller's evaluation_url. One attempt, no retry."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, log_path: str = LOG_PATH):
        self.timeout = timeout
        self.log_path = log_path

    def _log(self, line: str):
        ts = datetime.datetime.now(datetime.timezone.utc).isoformat()
        logger.info("[notify] %s", line)
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(f"[notify] {ts} {line}\n")
        except OSError as e:
            logger.debug("notify log unavailable: %s", e)

    def _post(self, url: str, payload: dict):
        try:
            r = requests.post(url, json=payload, headers={"Content-Type": "application/json"}, timeout=self.timeout)
        except requests.RequestException as e:
            raise CallbackError(f"POST {url} failed: {e}") from e
        self._log(f"response: status={r.status_code} len={len(r.text)}")
        if not 200 <= r.status_code < 300:
            raise CallbackError(f"POST {url} returned {r.status_code}")

    def notify(self, evaluation_url: str, payload: dict) -> bool:
        self._log(f"POST {evaluation_url} task={payload.get('task_id')} status={payload.get('status')}")
        try:
            self._post(evaluation_url, payload)
        except CallbackError as e:
            self._log(f"giving up: {e}")
            logger.warning("Evaluation callback failed: %s", e)
            return False
        return True
