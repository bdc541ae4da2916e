from .text import BookExporter, ExportFormat, export_filename, render_text

__all__ = ["BookExporter", "ExportFormat", "export_filename", "render_text"]
