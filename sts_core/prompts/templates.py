"""
LLM Prompt Templates

All instructions sent to the extraction service live here so they can be tuned
in one place. Each template is paired with a pydantic model from
sts_core.commands.schema; build_system_prompt() glues the two together.
"""

import json

from ..commands.schema import ActionKind

ACTION_INSTRUCTIONS = """Identify whether the input text is a creation, movement, rotation, scaling, modification, or system action.
Apply these rules in order and stop at the first one that matches:
1. IF the input contains START/STOP/PLAY/BEGIN/PAUSE/ENABLE/DISABLE in any form (RESTART, STOPPING, PAUSED), it is a system action.
2. IF the input contains RIGHT/LEFT/FORWARD/BACKWARD OR MOVE/LIFT/SLIDE/TRANSLATE, it is a movement action.
3. IF the input contains ROTATE/SPIN/TWIST/TILT/FLIP, it is a rotation action.
4. IF the input asks to make an existing object BIGGER/SMALLER or to SCALE it, it is a scaling action.
5. IF there is NO action verb, it is a creation action, EVEN IF the input contains a SIZE.
6. IF the input is similar to MAKE (IT/THE object) (COLOR/SHINY/METALLIC/ROUGHNESS), it is a modification.
7. IF the input is similar to MAKE (IT/THE object) BIGGER/SMALLER, it is a scaling action.
8. IF the input contains MORE, it is a creation action.
9. IF the action is MAKE, it is a creation action.
Answer with one of: creation, movement, rotation, scaling, modification, system."""

SYSTEM_WORD_INSTRUCTIONS = "Determine what the action word in the input is."

CREATE_INSTRUCTIONS = (
    "Identify the type of object, its size, its color, how rough it should be, and whether that "
    "color is metallic or not. Orb and ball are sphere, cube is box. IF the input contains MORE, "
    "the count is 3 unless a number is given. OTHERWISE the count is 1."
)

MODIFY_INSTRUCTIONS = (
    "From the input text, identify the color, the roughness, and whether that color is metallic "
    "or not. Use null for anything the input does not mention."
)

SCALE_INSTRUCTIONS = (
    "Identify the number to scale the object by. IF the input is similar to SCALE DOWN or MAKE "
    "SMALLER, AND there is a numerical value greater than 1, divide 1 by the numerical value to get "
    "the correct scale factor. IF no number is specified, BIGGER is 2, SMALLER is 0.5"
)

MOVE_INSTRUCTIONS = """Identify which axis the movement is on, whether it is a positive direction, and how far to move, in meters.
X is RIGHT (positive) / LEFT (negative).
Y is UP (positive) / DOWN (negative).
Z is FRONT, FORWARD or TOWARD ME (positive) / BACK, BACKWARD or AWAY (negative).
IF no distance is given, the distance is 0.5."""

ROTATE_INSTRUCTIONS = """Identify the axis to rotate around, the direction, and how many degrees.
Spinning or turning is around Y, tilting is around X, rolling is around Z.
Counter-clockwise or LEFT is positive, clockwise or RIGHT is negative.
IF no angle is given, the angle is 90 degrees."""

INSTRUCTIONS_FOR_KIND = {
    ActionKind.CREATION: CREATE_INSTRUCTIONS,
    ActionKind.MOVEMENT: MOVE_INSTRUCTIONS,
    ActionKind.ROTATION: ROTATE_INSTRUCTIONS,
    ActionKind.SCALING: SCALE_INSTRUCTIONS,
    ActionKind.MODIFICATION: MODIFY_INSTRUCTIONS,
    ActionKind.SYSTEM: SYSTEM_WORD_INSTRUCTIONS,
}

JSON_OUTPUT_TEMPLATE = """
OUTPUT FORMAT (JSON only, no markdown):
A single JSON object matching this schema. Values listed under "enum" are the only ones allowed,
numbers must stay inside "minimum"/"maximum".
{schema}
"""


def build_system_prompt(instructions: str, schema) -> str:
    """Instructions followed by the JSON schema the answer must follow."""
    return instructions.strip() + "\n" + JSON_OUTPUT_TEMPLATE.format(
        schema=json.dumps(schema.model_json_schema(), indent=2)
    )
