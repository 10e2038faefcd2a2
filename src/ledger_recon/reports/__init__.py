"""Report generation."""

from .excel_generator import ExcelReportGenerator, default_output_path

__all__ = ["ExcelReportGenerator", "default_output_path"]
