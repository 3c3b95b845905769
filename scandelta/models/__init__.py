"""SQLAlchemy ORM models."""

from scandelta.models.base import Base
from scandelta.models.host import Host
from scandelta.models.report import Report
from scandelta.models.vulnerability import Vulnerability

__all__ = ["Base", "Host", "Report", "Vulnerability"]
