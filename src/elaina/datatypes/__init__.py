"""
Plain data types shared across Elaina.

- **chat_datatypes.py**: `UserID`, `ChatID`, `ChatKind`, `AttachmentKind`.
- **envelope_datatypes.py**: `MessageEnvelope` and its parts (`CommandMatch`,
  `AttachmentRef`, `QuotedMessage`).
- **routing_datatypes.py**: `HandlerCategory`, `GatingDecision`, `DispatchResult`.
- **chat_state.py**: `Persona`, `ChatState`.
- **moderation_datatypes.py**: rules state, warning ledger rows, judgments,
  admin commands and evaluation outcomes.
"""
