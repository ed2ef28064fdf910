"""Domain-based routing of detected tasks to flow outputs."""

import logging
from typing import Optional, Sequence

from discubot.models.db import FlowOutput
from discubot.models.parsed import DetectedTask

logger = logging.getLogger(__name__)


def output_accepts(output: FlowOutput, domain: Optional[str]) -> bool:
    """An output without a domain filter accepts every task."""
    if not output.domain_filter:
        return True
    if not domain:
        return False
    wanted = domain.lower()
    return any(str(d).lower() == wanted for d in output.domain_filter)


def route_task_to_outputs(
    task: DetectedTask, outputs: Sequence[FlowOutput]
) -> list[FlowOutput]:
    """
    Outputs a task should be created in.

    Only active outputs are considered. A task matching nothing is a
    valid outcome and yields an empty list.

    Args:
        task: Detected task, possibly with a domain
        outputs: Candidate outputs of the flow

    Returns:
        Matching outputs, in the given order
    """
    matched = [o for o in outputs if o.active and output_accepts(o, task.domain)]
    if not matched:
        logger.info(f"Task '{task.title}' (domain={task.domain}) matched no outputs")
    else:
        logger.debug(
            f"Task '{task.title}' (domain={task.domain}) routed to "
            f"{', '.join(o.name for o in matched)}"
        )
    return matched
