"""Graph workflow definition."""

from pydantic_graph import Graph

from mergemend.core.config import State
from mergemend.core.log import logger


def create_workflow():
    """Create the conflicts workflow graph.

    InspectRepository -> ReportConflicts -> SuggestResolutions ->
        ApplyResolutions -> InteractiveResolve

    Every step after the report is optional and chosen by the command
    flags; any node may end the run with an exit code.

    Returns:
        Graph workflow with State as state_type
    """
    logger.debug("Building conflicts workflow graph")

    from mergemend.workflow.nodes import (
        ApplyResolutions,
        InspectRepository,
        InteractiveResolve,
        ReportConflicts,
        SuggestResolutions,
    )

    return Graph(
        nodes=(
            InspectRepository,
            ReportConflicts,
            SuggestResolutions,
            ApplyResolutions,
            InteractiveResolve,
        ),
        state_type=State,
    )
