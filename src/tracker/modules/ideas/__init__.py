"""Ideas: shareable content under private, team and public visibility."""

from tracker.modules.ideas.routes import router
from tracker.modules.ideas.service import IdeaService
from tracker.modules.ideas.teams import TeamDirectory
from tracker.modules.ideas.visibility import VisibilityEngine, plan_visibility_change


__all__ = [
    "IdeaService",
    "TeamDirectory",
    "VisibilityEngine",
    "plan_visibility_change",
    "router",
]
