"""Teams: creation and membership management."""

from tracker.modules.teams.routes import router
from tracker.modules.teams.service import TeamService


__all__ = ["TeamService", "router"]
