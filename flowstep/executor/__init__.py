"""Execution engine for FlowStep pipelines.

Architecture (bottom-up):
- lifecycle: step-list normalization and result checking
- adapter: query steps inside command pipelines
- query_template: read-only pipeline skeleton
- command_template: write pipeline skeleton with audit info and events
"""

from flowstep.executor.adapter import QueryContextAdapter, dispatch_step
from flowstep.executor.command_template import CommandTemplate
from flowstep.executor.query_template import QueryTemplate

__all__ = [
    "CommandTemplate",
    "QueryContextAdapter",
    "QueryTemplate",
    "dispatch_step",
]
