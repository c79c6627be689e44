# models/__init__.py
from .task import Task, ProgressStatus
from .assignee import SourceKind, AssigneeRef, DirectoryEntry
from .people import Staff, Freelancer, Client, ClientContact
from .report_config import ReportConfig, DateBasis, ReportFormat, REPORT_COLUMNS
