from .database import Database
from .models import Interval, Session, Settings, Tag, UsageRecord
from .repository import Repository

__all__ = ["Database", "Interval", "Session", "Settings", "Tag", "UsageRecord", "Repository"]
