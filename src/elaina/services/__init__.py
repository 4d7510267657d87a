"""
Services that own transactions and call the SQL repositories.

- **chat_state_service.py**: `ChatStateService` (persona / pro mode).
- **moderation_store.py**: `ModerationStore` (rules, warning ledger, evaluation claims).
- **memory_service.py**: `ConversationMemory` (rolling chat history).
"""
