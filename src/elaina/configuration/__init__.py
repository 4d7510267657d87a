"""
Configuration management for Elaina.

This package handles all process-level configuration, loaded once at startup:

- **app_configuration.py**: File-locked YAML loader for global settings. Exposes
  the bot name, trigger word, command prefix, group mode, owner ids, warning
  threshold, redeem keywords, priority link patterns, handler timeouts,
  conversation memory limits and the database path. Falls back gracefully on
  missing or malformed config files.

- **ai_settings.py**: Typed view over the ``ai_settings`` section: endpoint,
  model names, persona prompts, judgment prompt and credentials resolved from
  the environment.
"""
