"""Map ChatML messages to provider-neutral conversation turns."""

from pydantic import BaseModel, Field

from doctranslate.constants import ChatRole, TurnRole
from doctranslate.prompting.chatml import ChatMessage

# ASSISTANT, MODEL and ALTERNATIVE all speak as the model
ROLE_TO_TURN = {
    ChatRole.USER: TurnRole.USER,
    ChatRole.ASSISTANT: TurnRole.MODEL,
    ChatRole.MODEL: TurnRole.MODEL,
    ChatRole.ALTERNATIVE: TurnRole.MODEL,
}


class Turn(BaseModel):
    role: TurnRole
    text: str


class ConvertedMessages(BaseModel):
    """System instruction plus ordered turns."""

    system_instruction: str | None = None
    turns: list[Turn] = Field(default_factory=list)


def to_turns(messages: list[ChatMessage]) -> ConvertedMessages:
    """Split off the first SYSTEM message and convert the rest to turns.

    Later SYSTEM messages are dropped.

    Args:
        messages: Parsed ChatML messages

    Returns:
        ConvertedMessages preserving message order
    """
    system_instruction = None
    seen_system = False
    turns: list[Turn] = []

    for message in messages:
        if message.role == ChatRole.SYSTEM:
            if not seen_system:
                system_instruction = message.content
                seen_system = True
            continue
        turns.append(Turn(role=ROLE_TO_TURN[message.role], text=message.content))

    return ConvertedMessages(system_instruction=system_instruction, turns=turns)


__all__ = ["ConvertedMessages", "Turn", "to_turns"]
