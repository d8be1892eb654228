import logging
from typing import Optional, Protocol
import requests
from openai import OpenAI, OpenAIError
from .errors import GenerationError
from .prompts import SYSTEM_PROMPT
from .settings import Settings

logger = logging.getLogger(__name__)

MAX_TOKENS = 8192

class Generator(Protocol):
    name: str

    def generate(self, prompt: str) -> str:
        ...

# ---------- OpenAI-compatible chat completions ----------
class OpenAIGenerator:
    name = "openai"
    model = "gpt-4-turbo-preview"

    def __init__(self, api_key: str, base_url: Optional[str] = None, client=None):
        self.api_key = api_key
        self.base_url = base_url
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise GenerationError(f"{self.name}: API key not set")
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def generate(self, prompt: str) -> str:
        client = self._get_client()
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.7,
                max_tokens=MAX_TOKENS,
            )
        except OpenAIError as e:
            logger.error("%s request failed: %s", self.name, e)
            raise GenerationError(f"LLM API failed: {e}") from e
        content = resp.choices[0].message.content if resp.choices else None
        if not content or not content.strip():
            raise GenerationError(f"{self.name} returned an empty completion")
        return content

class AIPipeGenerator(OpenAIGenerator):
    """AI Pipe proxies OpenRouter behind the OpenAI wire format."""
    name = "aipipe"
    model = "openai/gpt-4.1-nano"

# ---------- Anthropic messages API ----------
class AnthropicGenerator:
    name = "anthropic"
    model = "claude-3-5-sonnet-20241022"
    url = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str, session: Optional[requests.Session] = None, timeout: float = 120.0):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise GenerationError("anthropic: API key not set")
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }
        body = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }
        try:
            r = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.HTTPError as e:
            detail = e.response.text[:500] if e.response is not None else ""
            logger.error("anthropic request failed: %s %s", e, detail)
            raise GenerationError(f"LLM API failed: {e} {detail}".strip()) from e
        except (requests.RequestException, ValueError) as e:
            logger.error("anthropic request failed: %s", e)
            raise GenerationError(f"LLM API failed: {e}") from e

        text = "".join(
            block.get("text", "") for block in data.get("content") or [] if block.get("type") == "text"
        )
        if not text.strip():
            raise GenerationError("anthropic returned an empty completion")
        return text

def create_generator(cfg: Settings) -> Generator:
    provider = (cfg.LLM_PROVIDER or "openai").strip().lower()
    if provider == "openai":
        return OpenAIGenerator(cfg.OPENAI_API_KEY, base_url=cfg.OPENAI_BASE_URL)
    if provider == "aipipe":
        return AIPipeGenerator(cfg.AIPIPE_API_KEY, base_url=cfg.AIPIPE_BASE_URL)
    if provider == "anthropic":
        return AnthropicGenerator(cfg.ANTHROPIC_API_KEY)
    raise ValueError(f"Unsupported LLM_PROVIDER {cfg.LLM_PROVIDER!r}")
