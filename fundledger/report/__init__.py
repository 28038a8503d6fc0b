"""Client statement rendering."""

from fundledger.report.writer import RenderedReport, ReportContext, ReportWriter

__all__ = ["RenderedReport", "ReportContext", "ReportWriter"]
