"""Report generators."""

from equityplan.reports.calendar import CalendarExporter

__all__ = ["CalendarExporter"]
