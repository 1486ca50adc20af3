from .report_store import InMemoryReportStore, ReportStore

__all__ = ["InMemoryReportStore", "ReportStore"]
