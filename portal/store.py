"""
In-memory session store for the investor portal.

Keyed by the portal_session cookie. Nothing is persisted -- a server
restart (or POST /v1/session/reset) discards the session, exactly like
reloading the page would.
"""

from portal.models.schemas import WorkflowState

# session_id -> WorkflowState
# Replaced wholesale after each workflow action; states are immutable.
sessions: dict[str, WorkflowState] = {}
