from .app import create_app
from .service import SYSTEM_CODES, DiagnosticService

__all__ = ["create_app", "DiagnosticService", "SYSTEM_CODES"]
