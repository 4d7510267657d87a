import os
from typing import Any, Dict, List

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_MODEL_NAME = "gemini-2.5-flash-lite"
DEFAULT_JUDGMENT_MODEL = "gemini-2.0-flash-lite"

DEFAULT_PERSONAS: Dict[str, str] = {
    "elaina1": (
        "You are Elaina, a young, clever and curious witch from \"Majo no Tabitabi\". "
        "You are calm, witty, friendly and a little narcissistic in an endearing way, and you "
        "like to call yourself a beautiful and talented witch. Answer in the language the user "
        "writes in, keep a relaxed but polite tone and use emoji sparingly."
    ),
    "elaina2": (
        "PRO style: still Elaina, but more analytical and structured. Be concise, and "
        "include steps and reasoning when they help."
    ),
}

DEFAULT_JUDGMENT_PROMPT = """You are a chat group moderator. Evaluate the message against the group rules you are given.
Always answer with valid JSON in the form {"violation": bool, "reason": string, "redeem": bool}.
- Mode WARN: decide whether the message breaks the rules. If it does, set violation=true and give a short, polite reason (at most 120 characters).
- Mode REDEEM: decide whether the message is a legitimate request to reduce a warning: it must mention the bot by name and say "subhanallah" exactly 5 times. If it is, set redeem=true. violation is always false in this mode.
- If nothing is wrong, violation=false and reason is empty.
Do not add any text besides the JSON."""


def _split_keys(raw: str | None) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class AISettings:
    """Helper exposing typed accessors for the ``ai_settings`` section.

    Credentials are never stored in the YAML file; they are resolved from the
    environment (``LLM_API_KEYS``/``LLM_API_KEY`` and ``JUDGMENT_API_KEY``)
    unless the mapping carries explicit values, which tests rely on.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return the underlying mapping."""
        return self.data

    @property
    def base_url(self) -> str:
        return str(self.data.get("base_url") or DEFAULT_BASE_URL)

    @property
    def model_name(self) -> str:
        return str(self.data.get("model_name") or DEFAULT_MODEL_NAME)

    @property
    def judgment_model(self) -> str:
        return str(self.data.get("judgment_model") or DEFAULT_JUDGMENT_MODEL)

    @property
    def request_timeout_seconds(self) -> float:
        return float(self.data.get("request_timeout_seconds", 45.0))

    @property
    def api_keys(self) -> List[str]:
        explicit = self.data.get("api_keys")
        if isinstance(explicit, list):
            return [str(key).strip() for key in explicit if str(key).strip()]
        return _split_keys(os.getenv("LLM_API_KEYS") or os.getenv("LLM_API_KEY"))

    @property
    def judgment_api_key(self) -> str:
        explicit = self.data.get("judgment_api_key") or os.getenv("JUDGMENT_API_KEY")
        if explicit:
            return str(explicit).strip()
        keys = self.api_keys
        return keys[0] if keys else ""

    @property
    def personas(self) -> Dict[str, str]:
        configured = self.data.get("personas")
        merged = dict(DEFAULT_PERSONAS)
        if isinstance(configured, dict):
            merged.update({str(k): str(v) for k, v in configured.items() if v})
        return merged

    @property
    def judgment_prompt(self) -> str:
        return str(self.data.get("judgment_prompt") or DEFAULT_JUDGMENT_PROMPT)
