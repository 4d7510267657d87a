from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, List
import yaml

from elaina.configuration.ai_settings import AISettings
from elaina.moderation.redeem import DEFAULT_REDEEM_KEYWORDS
from elaina.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_PRIORITY_PATTERNS = {
    "tiktok": r"https?://(?:www\.|vm\.|vt\.|m\.)?tiktok\.com/",
}


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed properties for every section the bot reads at startup. Missing or
    malformed values fall back to defaults, so a missing file still yields a
    runnable (if unconfigured) bot.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if not isinstance(data, dict):
                    logger.warning("[APP CONFIGURATION] %s does not hold a mapping; ignoring it.", self.config_path)
                    return {}
                return data
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file, replace the cache and return the loaded mapping."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # bot
    # --------------------------
    @property
    def bot_name(self) -> str:
        return str(self._section("bot").get("name") or "Elaina")

    @property
    def trigger_word(self) -> str:
        return str(self._section("bot").get("trigger") or "elaina").strip().lower()

    @property
    def command_prefix(self) -> str:
        prefix = str(self._section("bot").get("command_prefix") or "!").strip()
        if len(prefix) != 1:
            logger.warning("[APP CONFIGURATION] command_prefix %r must be one character; using '!'", prefix)
            return "!"
        return prefix

    @property
    def group_mode(self) -> str:
        """``manual`` (groups need the trigger word) or ``auto``."""
        mode = str(self._section("bot").get("group_mode") or "manual").strip().lower()
        return mode if mode in {"manual", "auto"} else "manual"

    @property
    def owner_ids(self) -> List[str]:
        raw = self._section("bot").get("owner_ids") or []
        if not isinstance(raw, list):
            raw = [raw]
        return [str(item).strip() for item in raw if str(item).strip()]

    # --------------------------
    # moderation
    # --------------------------
    @property
    def moderation_enabled(self) -> bool:
        """Global switch; when false the moderation engine is never consulted."""
        return bool(self._section("moderation").get("enabled", True))

    @property
    def warn_threshold(self) -> int:
        value = int(self._section("moderation").get("warn_threshold", 5))
        return value if value > 0 else 5

    @property
    def redeem_keywords(self) -> List[str]:
        raw = self._section("moderation").get("redeem_keywords")
        if isinstance(raw, list) and raw:
            return [str(item).strip().lower() for item in raw if str(item).strip()]
        return list(DEFAULT_REDEEM_KEYWORDS)

    @property
    def evaluation_timeout_seconds(self) -> float:
        return float(self._section("moderation").get("evaluation_timeout_seconds", 40.0))

    # --------------------------
    # routing
    # --------------------------
    @property
    def priority_patterns(self) -> Dict[str, str]:
        raw = self._section("routing").get("priority_patterns")
        if isinstance(raw, dict):
            return {str(name): str(pattern) for name, pattern in raw.items() if pattern}
        return dict(DEFAULT_PRIORITY_PATTERNS)

    @property
    def handler_timeout_seconds(self) -> float:
        return float(self._section("routing").get("handler_timeout_seconds", 60.0))

    # --------------------------
    # memory
    # --------------------------
    @property
    def memory_turns(self) -> int:
        return _clamp(int(self._section("memory").get("turns", 8)), 0, 30)

    @property
    def memory_char_budget(self) -> int:
        return _clamp(int(self._section("memory").get("char_budget", 4000)), 500, 20000)

    # --------------------------
    # storage / ai
    # --------------------------
    @property
    def database_path(self) -> Path:
        return Path(str(self._section("database").get("path") or "./data/app.db")).resolve()

    @property
    def ai_settings(self) -> AISettings:
        """The ``ai_settings`` section wrapped in an :class:`AISettings` helper."""
        return AISettings(self._section("ai_settings"))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
