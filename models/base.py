from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class RunStatus(str, enum.Enum):
    """Ingestion run status"""
    RUNNING = "running"
    SUCCESS = "success"
    CANCELLED = "cancelled"
    CREDENTIAL_EXPIRED = "credential_expired"
    FAILED = "failed"


class PacingMode(str, enum.Enum):
    """How the runner paces its fetches"""
    STANDARD = "standard"
    OVERLAPPED = "overlapped"
