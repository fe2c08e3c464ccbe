"""
component_8_proof_explanation.py

Plan explanations for the horizon planner.

A solve is documented as a linear chain of steps: the initial state and the
goal as premises, one step per time step of the timeline (an action or an
idle step), and a closing step that either concludes the goal at the horizon
or records why no plan was returned. Each step names the step(s) it depends
on, so the chain can be walked backwards from the conclusion.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union


class StepType(Enum):
    PREMISE = "premise"
    INFERENCE = "inference"  # an action occurs
    INERTIA = "inertia"  # idle step
    CONCLUSION = "conclusion"
    CONTRADICTION = "contradiction"  # no plan or aborted


_LABELS = {
    StepType.PREMISE: "PREMISE",
    StepType.INFERENCE: "ACTION",
    StepType.INERTIA: "IDLE",
    StepType.CONCLUSION: "OK",
    StepType.CONTRADICTION: "FAIL",
}


@dataclass
class ProofStep:
    """
    One documented step of a solve.

    Attributes:
        step_id: identifier, unique within its tree
        step_type: kind of step
        time_step: timeline step the entry describes (None for premises)
        inputs: literals the step relies on, e.g. action preconditions
        rule_name: name of the occurring action
        output: what the step establishes
        explanation_text: one-line description
        parent_steps: step_ids this step depends on
        metadata: free-form data (statistics, horizon, ...)
    """

    step_id: str
    step_type: StepType
    time_step: Optional[int] = None
    inputs: List[str] = field(default_factory=list)
    rule_name: Optional[str] = None
    output: str = ""
    explanation_text: str = ""
    parent_steps: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return _LABELS[self.step_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "step_type": self.step_type.value,
            "time_step": self.time_step,
            "inputs": list(self.inputs),
            "rule_name": self.rule_name,
            "output": self.output,
            "explanation_text": self.explanation_text,
            "parent_steps": list(self.parent_steps),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProofStep":
        values = dict(data)
        values["step_type"] = StepType(values["step_type"])
        return cls(**values)


@dataclass
class ProofTree:
    """Explanation of one solve: the query and its ordered steps."""

    query: str
    root_steps: List[ProofStep] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_root_step(self, step: ProofStep) -> None:
        if self.get_step_by_id(step.step_id) is not None:
            raise ValueError(f"Duplicate proof step id: {step.step_id}")
        self.root_steps.append(step)

    def add_steps(self, steps: Iterable[ProofStep]) -> None:
        for step in steps:
            self.add_root_step(step)

    def get_all_steps(self) -> List[ProofStep]:
        return list(self.root_steps)

    def get_step_by_id(self, step_id: str) -> Optional[ProofStep]:
        return next((s for s in self.root_steps if s.step_id == step_id), None)

    def steps_of_type(self, step_type: StepType) -> List[ProofStep]:
        return [s for s in self.root_steps if s.step_type == step_type]

    def support_of(self, step_id: str) -> List[ProofStep]:
        """
        Steps the given step transitively depends on, nearest first.

        Unknown parent ids are skipped; the tree may have been filtered.
        """
        seen = set()
        chain: List[ProofStep] = []
        frontier = [step_id]
        while frontier:
            current = self.get_step_by_id(frontier.pop(0))
            if current is None:
                continue
            for parent_id in current.parent_steps:
                if parent_id in seen:
                    continue
                seen.add(parent_id)
                parent = self.get_step_by_id(parent_id)
                if parent is not None:
                    chain.append(parent)
                    frontier.append(parent_id)
        return chain

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "root_steps": [step.to_dict() for step in self.root_steps],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProofTree":
        tree = cls(query=data["query"], metadata=dict(data.get("metadata", {})))
        tree.add_steps(ProofStep.from_dict(item) for item in data.get("root_steps", []))
        return tree


# ==================== Formatting ====================


def format_proof_step(step: ProofStep, show_details: bool = True, max_inputs: int = 4) -> str:
    """
    Render one step as text.

    The first line carries the time step (or ``-``), the label and the
    explanation; following lines hold the output and, with ``show_details``,
    the action name and its first ``max_inputs`` required literals.
    """
    when = f"t={step.time_step}" if step.time_step is not None else "-"
    lines = [f"{when:>5} [{step.label}] {step.explanation_text}".rstrip()]
    if step.output:
        lines.append(f"        => {step.output}")
    if show_details and step.rule_name:
        lines.append(f"        Action: {step.rule_name}")
    if show_details and step.inputs:
        shown = ", ".join(step.inputs[:max_inputs])
        hidden = len(step.inputs) - max_inputs
        suffix = f" (+{hidden})" if hidden > 0 else ""
        lines.append(f"        Requires: {shown}{suffix}")
    return "\n".join(lines)


def format_proof_tree(tree: ProofTree, show_details: bool = True) -> str:
    rule = "-" * 60
    lines = [f"Plan explanation for: {tree.query}", rule]
    if not tree.root_steps:
        lines.append("No steps recorded.")
        return "\n".join(lines)

    lines.extend(format_proof_step(step, show_details) for step in tree.root_steps)
    counts = {}
    for step in tree.root_steps:
        counts[step.label] = counts.get(step.label, 0) + 1
    summary = ", ".join(f"{label.lower()}={n}" for label, n in counts.items())
    lines.append(rule)
    lines.append(f"Total: {len(tree.root_steps)} steps ({summary})")
    return "\n".join(lines)


def format_proof_chain(steps: List[ProofStep]) -> str:
    """Compact numbered view: one line per step plus its output."""
    lines = []
    for number, step in enumerate(steps, 1):
        lines.append(f"{number}. [{step.label}] {step.explanation_text}")
        if step.output:
            lines.append(f"   => {step.output}")
    return "\n".join(lines)


# ==================== JSON Files ====================


def export_proof_to_json(tree: ProofTree, filepath: Union[str, Path]) -> None:
    Path(filepath).write_text(
        json.dumps(tree.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
    )


def import_proof_from_json(filepath: Union[str, Path]) -> ProofTree:
    return ProofTree.from_dict(json.loads(Path(filepath).read_text(encoding="utf-8")))
