from .state import COMMIT_STATUSES, DECISION_STATUSES, TRANSITIONS, can_transition, transition
from .store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionStore,
    generate_upload_id,
    validate_decisions,
)

__all__ = [
    "COMMIT_STATUSES",
    "DECISION_STATUSES",
    "TRANSITIONS",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "SessionStore",
    "can_transition",
    "generate_upload_id",
    "transition",
    "validate_decisions",
]
