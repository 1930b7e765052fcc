"""Load-time issue tracking."""

from .issues import IssueKind, IssueLog, IssueSnapshot, LoadIssue, record_issue

__all__ = ["IssueKind", "IssueLog", "IssueSnapshot", "LoadIssue", "record_issue"]
