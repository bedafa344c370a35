"""
Prompt Builder Backend — Composition Route
Flattens canvas components into a prompt and fills in variable values.
"""
from fastapi import APIRouter

from promptbuilder.schemas.schemas import ComposeRequest, ComposeResponse
from promptbuilder.services.composition import compose

router = APIRouter()


@router.post(
    "/compose",
    response_model=ComposeResponse,
    summary="Compose prompt",
    description="Generate the flattened prompt, its variables and the rendered text.",
)
async def compose_prompt(request: ComposeRequest):
    state = compose([c.model_dump() for c in request.components], request.variables)
    return ComposeResponse(
        prompt=state.generated_prompt,
        rendered_prompt=state.rendered_prompt,
        variables=list(state.variable_names),
        variable_values=state.variable_values,
    )
