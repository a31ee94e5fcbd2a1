from .time_utils import get_current_timestamp
from .task_utils import TaskManager, invoke_handler

__all__ = ["get_current_timestamp", "TaskManager", "invoke_handler"]
