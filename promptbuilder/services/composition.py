"""
Prompt Builder — Prompt Composition
Canvas state as an immutable container with pure transitions.

Every transition takes a CompositionState and returns a new one; nothing is
mutated in place, so callers can keep the previous state for undo or for
rolling back an optimistic update.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

VARIABLE_PATTERN = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")

COMPONENT_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class PromptComponent:
    id: int
    type: str
    content: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "type": self.type, "content": self.content}

    @classmethod
    def from_dict(cls, data: Mapping) -> "PromptComponent":
        return cls(id=int(data["id"]), type=str(data["type"]), content=str(data.get("content") or ""))


@dataclass(frozen=True)
class CompositionState:
    components: Tuple[PromptComponent, ...] = ()
    prompt_name: str = ""
    loaded_name: str = ""  # name of the saved prompt the canvas currently mirrors
    variable_names: Tuple[str, ...] = ()
    variable_values: Dict[str, str] = field(default_factory=dict)

    @property
    def next_id(self) -> int:
        return max((c.id for c in self.components), default=-1) + 1

    @property
    def generated_prompt(self) -> str:
        return generate_prompt(self.components)

    @property
    def rendered_prompt(self) -> str:
        return render_prompt(self.generated_prompt, self.variable_values)


# ── Variables ────────────────────────────────────────────────────────────────

def extract_variables(components: Iterable[PromptComponent]) -> List[str]:
    """Unique `{{name}}` placeholders in order of first appearance."""
    seen: Dict[str, None] = {}
    for comp in components:
        for match in VARIABLE_PATTERN.finditer(comp.content):
            seen.setdefault(match.group(1), None)
    return list(seen)


def sync_variable_values(names: Sequence[str], values: Mapping[str, str]) -> Dict[str, str]:
    """Keep values for referenced names, default new ones to "", drop the rest."""
    return {name: values.get(name, "") for name in names}


def render_prompt(text: str, values: Mapping[str, str]) -> str:
    """Substitute placeholders that have a non-empty value; leave the rest literal."""
    def _sub(match: re.Match) -> str:
        value = values.get(match.group(1))
        return value if value else match.group(0)

    return VARIABLE_PATTERN.sub(_sub, text)


def generate_prompt(components: Iterable[PromptComponent]) -> str:
    parts = []
    for comp in components:
        if comp.content.strip() == "":
            parts.append(f"**{comp.type}:**")
        else:
            parts.append(f"**{comp.type}:**\n{comp.content}")
    return COMPONENT_SEPARATOR.join(parts)


def _with_components(state: CompositionState, components: Sequence[PromptComponent], **changes) -> CompositionState:
    components = tuple(components)
    names = tuple(extract_variables(components))
    return replace(
        state,
        components=components,
        variable_names=names,
        variable_values=sync_variable_values(names, state.variable_values),
        **changes,
    )


# ── Transitions ──────────────────────────────────────────────────────────────

def add_component(state: CompositionState, component_type: str, content: str = "") -> CompositionState:
    new = PromptComponent(id=state.next_id, type=component_type, content=content)
    return _with_components(state, state.components + (new,), loaded_name="")


def edit_component(state: CompositionState, component_id: int, content: str) -> CompositionState:
    if not any(c.id == component_id for c in state.components):
        return state
    components = [replace(c, content=content) if c.id == component_id else c for c in state.components]
    return _with_components(state, components, loaded_name="")


def delete_component(state: CompositionState, component_id: int) -> CompositionState:
    components = [c for c in state.components if c.id != component_id]
    if len(components) == len(state.components):
        return state
    return _with_components(state, components, loaded_name="")


def move_component(state: CompositionState, active_id: int, over_id: int) -> CompositionState:
    """Move `active_id` to the position currently held by `over_id`."""
    if active_id == over_id:
        return state
    ids = [c.id for c in state.components]
    if active_id not in ids or over_id not in ids:
        return state
    old_index, new_index = ids.index(active_id), ids.index(over_id)
    components = list(state.components)
    components.insert(new_index, components.pop(old_index))
    return replace(state, components=tuple(components), loaded_name="")


def clear_canvas(state: CompositionState) -> CompositionState:
    return CompositionState()


def load_prompt(
    state: CompositionState,
    name: str,
    components: Iterable[PromptComponent],
    variable_values: Optional[Mapping[str, str]] = None,
) -> CompositionState:
    base = replace(state, variable_values=dict(variable_values or {}))
    return _with_components(base, list(components), prompt_name=name, loaded_name=name)


def set_prompt_name(state: CompositionState, name: str) -> CompositionState:
    return replace(state, prompt_name=name)


def set_variable_value(state: CompositionState, name: str, value: str) -> CompositionState:
    if name not in state.variable_names:
        return state
    values = dict(state.variable_values)
    values[name] = value
    return replace(state, variable_values=values)


def compose(components: Iterable[Mapping], variables: Optional[Mapping[str, str]] = None) -> CompositionState:
    """Build a state from wire-format components and a value map."""
    parsed = [PromptComponent.from_dict(c) for c in components]
    return load_prompt(CompositionState(), "", parsed, variables)
