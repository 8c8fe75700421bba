from .service import AUDIT_DATASETS, ExportService

__all__ = ["AUDIT_DATASETS", "ExportService"]
