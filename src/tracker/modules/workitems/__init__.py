"""Work items: epics, features, tasks, requirements and tickets."""

from tracker.modules.workitems.routes import router


__all__ = ["router"]
