"""
policy_engines.trigger_matching -- Select the workflow that gates a transaction.

Responsibility:
    Given an account's workflows (in creation order) and a transaction,
    pick the single workflow whose triggers match, by deterministic
    precedence.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Only ``active`` workflows are admissible.
    - A workflow matches when ANY of its triggers matches; a trigger matches
      when ALL of its conditions hold.
    - Precedence: specificity (total condition count) descending, then
      explicit ``priority`` descending, then creation order.  The sort is
      stable so creation order is the final tie-break.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Sequence

from policy_engines.conditions import evaluate_conditions
from policy_engines.tracer import traced_engine
from policy_kernel.domain.conditions import TransactionContext
from policy_kernel.domain.workflow import Trigger, Workflow, WorkflowStatus


@dataclass(frozen=True)
class WorkflowSelection:
    """Result of workflow selection, with enough context to trace it."""

    workflow: Workflow | None
    matched_triggers: tuple[Trigger, ...]
    admissible: tuple[str, ...]
    reason: str


def trigger_matches(trigger: Trigger, tx: TransactionContext) -> bool:
    return evaluate_conditions(trigger.conditions, tx)


def matching_triggers(workflow: Workflow, tx: TransactionContext) -> tuple[Trigger, ...]:
    """The workflow's triggers that match ``tx``, in declaration order."""
    return tuple(t for t in workflow.trigger_conditions if trigger_matches(t, tx))


def rank_workflows(workflows: Sequence[Workflow]) -> list[Workflow]:
    """Order workflows by match precedence.

    ``workflows`` must be in creation order; ``sorted`` is stable so equal
    keys keep that order.
    """
    return sorted(workflows, key=lambda w: (-w.specificity, -w.priority))


@traced_engine("trigger_matching", "1.0", fingerprint_fields=("workflows", "tx"))
def select_workflow(
    *,
    workflows: Sequence[Workflow],
    tx: TransactionContext,
) -> WorkflowSelection:
    """Pick the highest-precedence active workflow with a matching trigger.

    Args:
        workflows: One account's workflows, in creation order.
        tx: The transaction being evaluated.

    Returns:
        WorkflowSelection.  ``workflow`` is ``None`` when nothing matched.
    """
    active = [w for w in workflows if w.status == WorkflowStatus.ACTIVE]
    ranked = rank_workflows(active)
    admissible = tuple(w.id for w in ranked)

    for workflow in ranked:
        triggers = matching_triggers(workflow, tx)
        if triggers:
            return WorkflowSelection(
                workflow=workflow,
                matched_triggers=triggers,
                admissible=admissible,
                reason=(
                    f"specificity={workflow.specificity} "
                    f"priority={workflow.priority}"
                ),
            )

    return WorkflowSelection(
        workflow=None,
        matched_triggers=(),
        admissible=admissible,
        reason="no active workflow trigger matched" if active else "no active workflows",
    )
