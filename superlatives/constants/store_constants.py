"""Collection names and document ids shared by every store client."""

SUPERLATIVES_COLLECTION: str = "superlatives"
VOTES_COLLECTION: str = "votes"
APP_STATE_COLLECTION: str = "app_state"
SESSION_DOCUMENT_ID: str = "session"
