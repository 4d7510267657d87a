"""
External model clients.

- **key_ring.py**: `ApiKeyRing`, per-client round-robin key rotation.
- **llm_engine.py**: `LLMEngine`, text / vision / transcription requests.
- **judgment_client.py**: `JudgmentClient`, the moderation judgment collaborator.
- **persona.py**: system prompt selection from persona and pro mode.
"""
