"""Workflow nodes for graph state machine."""

from mergemend.workflow.nodes.apply import ApplyResolutions
from mergemend.workflow.nodes.inspect_repository import InspectRepository
from mergemend.workflow.nodes.report_conflicts import ReportConflicts
from mergemend.workflow.nodes.resolve import InteractiveResolve
from mergemend.workflow.nodes.suggest import SuggestResolutions

__all__ = [
    "InspectRepository",
    "ReportConflicts",
    "SuggestResolutions",
    "ApplyResolutions",
    "InteractiveResolve",
]
