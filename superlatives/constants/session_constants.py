"""Participant roles and vote rejection reasons."""

ROLE_ADMIN: str = "admin"
ROLE_GRADUATING: str = "graduating"
ROLE_GUEST: str = "guest"
PARTICIPANT_ROLES: tuple[str, ...] = (ROLE_ADMIN, ROLE_GRADUATING, ROLE_GUEST)

REJECT_NOT_STARTED: str = "session_not_started"
REJECT_COMPLETED: str = "session_completed"
REJECT_NO_ACTIVE_QUESTION: str = "no_active_question"
REJECT_RESULT_REVEALED: str = "result_revealed"
REJECT_UNKNOWN_NOMINEE: str = "unknown_nominee"
REJECT_VOTE_IN_FLIGHT: str = "vote_in_flight"
REJECT_WRITE_FAILED: str = "write_failed"

DEFAULT_QUESTIONS_FILE: str = "superlatives.txt"
