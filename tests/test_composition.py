from promptbuilder.services.composition import (
    CompositionState,
    PromptComponent,
    add_component,
    clear_canvas,
    compose,
    delete_component,
    edit_component,
    extract_variables,
    generate_prompt,
    load_prompt,
    move_component,
    render_prompt,
    set_prompt_name,
    set_variable_value,
    sync_variable_values,
)


def _state(*contents):
    state = CompositionState()
    for content in contents:
        state = add_component(state, "Instructions", content)
    return state


def test_extract_variables_first_appearance_order_and_unique():
    components = [
        PromptComponent(0, "Context", "Hello {{ name }}, welcome to {{place}}"),
        PromptComponent(1, "Instructions", "Ask {{name}} about {{topic}}"),
    ]
    assert extract_variables(components) == ["name", "place", "topic"]


def test_extract_variables_is_idempotent():
    components = [PromptComponent(0, "Role", "{{a}} {{b}} {{a}}")]
    assert extract_variables(components) == extract_variables(components) == ["a", "b"]


def test_sync_variable_values_keeps_adds_and_drops():
    values = sync_variable_values(["name", "topic"], {"name": "Ada", "stale": "x"})
    assert values == {"name": "Ada", "topic": ""}


def test_render_prompt_leaves_empty_values_literal():
    text = "Hi {{name}}, about {{ topic }}"
    assert render_prompt(text, {"name": "Ada", "topic": ""}) == "Hi Ada, about {{ topic }}"


def test_generate_prompt_format():
    components = [
        PromptComponent(0, "Role", "You are a poet"),
        PromptComponent(1, "Context", "   "),
    ]
    assert generate_prompt(components) == "**Role:**\nYou are a poet\n\n---\n\n**Context:**"
    assert generate_prompt([]) == ""


def test_add_component_assigns_increasing_ids():
    state = _state("one", "two")
    assert [c.id for c in state.components] == [0, 1]
    state = delete_component(state, 0)
    state = add_component(state, "Tools", "")
    assert [c.id for c in state.components] == [1, 2]


def test_edit_component_updates_variables():
    state = _state("Hello {{name}}")
    state = set_variable_value(state, "name", "Ada")
    state = edit_component(state, 0, "Hello {{name}} from {{city}}")
    assert state.variable_names == ("name", "city")
    assert state.variable_values == {"name": "Ada", "city": ""}


def test_edit_unknown_component_is_noop():
    state = _state("x")
    assert edit_component(state, 42, "y") is state


def test_delete_component_drops_unreferenced_variables():
    state = _state("{{a}}", "{{b}}")
    state = delete_component(state, 1)
    assert state.variable_names == ("a",)
    assert "b" not in state.variable_values


def test_move_component_reorders_and_preserves_components():
    state = _state("a", "b", "c")
    moved = move_component(state, 0, 2)
    assert [c.content for c in moved.components] == ["b", "c", "a"]
    assert sorted(moved.components, key=lambda c: c.id) == sorted(state.components, key=lambda c: c.id)


def test_move_component_noop_cases():
    state = _state("a", "b")
    assert move_component(state, 1, 1) is state
    assert move_component(state, 1, 99) is state


def test_mutations_clear_loaded_name():
    state = load_prompt(CompositionState(), "Saved", [PromptComponent(0, "Role", "x")])
    assert state.loaded_name == "Saved"
    assert add_component(state, "Context").loaded_name == ""
    assert set_prompt_name(state, "Renamed").loaded_name == "Saved"


def test_load_prompt_syncs_supplied_values():
    state = load_prompt(
        CompositionState(),
        "Greeting",
        [PromptComponent(3, "Instructions", "Greet {{name}}")],
        {"name": "Ada", "unused": "x"},
    )
    assert state.prompt_name == "Greeting"
    assert state.variable_values == {"name": "Ada"}
    assert state.next_id == 4


def test_set_variable_value_ignores_unknown_names():
    state = _state("{{a}}")
    assert set_variable_value(state, "zzz", "1") is state


def test_clear_canvas():
    assert clear_canvas(_state("{{a}}")) == CompositionState()


def test_compose_from_wire_format():
    state = compose(
        [{"id": 0, "type": "Instructions", "content": "Summarize {{doc}}"}],
        {"doc": "the report"},
    )
    assert state.generated_prompt == "**Instructions:**\nSummarize {{doc}}"
    assert state.rendered_prompt == "**Instructions:**\nSummarize the report"
