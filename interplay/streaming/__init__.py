from .events import ReportEventType, SSEEvent
from .manager import StreamManager

__all__ = ["ReportEventType", "SSEEvent", "StreamManager"]
