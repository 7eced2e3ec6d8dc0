"""
POS Workflow Primitive - Generic State Machine
==============================================
A deterministic state machine shared by the order, shift and
QR-order lifecycles.

A WorkflowDefinition names its transitions: each action lists the
states it may start from and the single state it leads to.

RULES (NON-NEGOTIABLE):
- Invalid transitions are REJECTED, no silent state skips
- Terminal states accept no action at all
- Definitions are immutable (frozen)

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional

from core.commands.rejection import ReasonCode, RejectionReason


# ══════════════════════════════════════════════════════════════
# TRANSITION
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Transition:
    """One named action: from any of from_states to to_state."""

    action: str
    from_states: FrozenSet[str]
    to_state: str

    def __post_init__(self):
        if not self.action:
            raise ValueError("action must be non-empty.")
        if not self.from_states:
            raise ValueError("from_states must be non-empty.")
        if not self.to_state:
            raise ValueError("to_state must be non-empty.")


# ══════════════════════════════════════════════════════════════
# WORKFLOW DEFINITION (state machine schema)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Defines the valid states and transitions for a workflow type.

    Fields:
        name:            Identifier for this workflow type (e.g. "Order")
        initial_states:  States a new record may be created in
        terminal_states: States from which no action is allowed
        transitions:     Dict of {action → Transition}
    """

    name: str
    initial_states: FrozenSet[str]
    terminal_states: FrozenSet[str]
    transitions: Mapping[str, Transition] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Workflow name must be non-empty.")
        if not self.initial_states:
            raise ValueError("initial_states must be non-empty.")
        for action, transition in self.transitions.items():
            if action != transition.action:
                raise ValueError(
                    f"Transition key '{action}' does not match "
                    f"action '{transition.action}'."
                )
            if transition.from_states & self.terminal_states:
                raise ValueError(
                    f"Action '{action}' starts from a terminal state."
                )

    @property
    def states(self) -> FrozenSet[str]:
        found = set(self.initial_states) | set(self.terminal_states)
        for transition in self.transitions.values():
            found |= transition.from_states
            found.add(transition.to_state)
        return frozenset(found)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def allowed_next_states(self, from_state: str) -> FrozenSet[str]:
        return frozenset(
            t.to_state
            for t in self.transitions.values()
            if from_state in t.from_states
        )

    def allowed_actions(self, from_state: str) -> FrozenSet[str]:
        return frozenset(
            t.action
            for t in self.transitions.values()
            if from_state in t.from_states
        )

    def source_states(self, action: str) -> FrozenSet[str]:
        return self._get(action).from_states

    def target_state(self, action: str) -> str:
        return self._get(action).to_state

    def check(self, action: str, current_state: str) -> Optional[RejectionReason]:
        """
        Return None if `action` may be applied in `current_state`,
        otherwise a RejectionReason naming the current state.
        """
        transition = self._get(action)
        if current_state in transition.from_states:
            return None

        if self.is_terminal(current_state):
            message = (
                f"{self.name} is in terminal state '{current_state}'; "
                f"'{action}' is not allowed."
            )
        else:
            message = (
                f"Cannot {action} {self.name.lower()} in state "
                f"'{current_state}'. Allowed from: "
                f"{sorted(transition.from_states)}."
            )
        return RejectionReason(
            code=ReasonCode.INVALID_TRANSITION,
            message=message,
            policy_name=f"{self.name.lower()}_workflow",
        )

    def _get(self, action: str) -> Transition:
        try:
            return self.transitions[action]
        except KeyError:
            raise ValueError(
                f"Workflow '{self.name}' has no action '{action}'."
            ) from None


def build_transitions(*transitions: Transition) -> Dict[str, Transition]:
    """Index transitions by action name, rejecting duplicates."""
    indexed: Dict[str, Transition] = {}
    for transition in transitions:
        if transition.action in indexed:
            raise ValueError(f"Duplicate action '{transition.action}'.")
        indexed[transition.action] = transition
    return indexed
