from typing import Any, Optional
import uuid

import structlog

logger = structlog.get_logger(__name__)


class SessionResolver:
    """Derives the session/user id that partitions all memory state.

    The adapter itself uses whatever id it is given verbatim; only the host
    integration resolves ids, generating a fresh one when none is supplied.
    """

    def resolve(self, session_key: Optional[Any]) -> str:
        """Return the session key unchanged, or a new UUID when it is blank"""

        session_id = str(session_key) if session_key is not None else ""
        if session_id.strip():
            return session_id

        session_id = str(uuid.uuid4())
        logger.info("Generated session id", session_id=session_id)
        return session_id
