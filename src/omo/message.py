from enum import Enum
from pydantic import BaseModel, field_serializer


TOOL_CALL_PLACEHOLDER = "(tool call)"


class MessageRole(Enum):
    ASSISTANT = "assistant"
    USER = "user"


class Message(BaseModel):
    role: MessageRole
    content: str

    @field_serializer('role')
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    def to_input_item(self) -> dict:
        """Convert to a Responses API ``input`` record."""
        text_type = (
            "output_text" if self.role == MessageRole.ASSISTANT
            else "input_text"
        )
        return {
            "type": "message",
            "role": self.role.value,
            "content": [{"type": text_type, "text": self.content}],
        }


def tool_result_message(name: str, result: str) -> Message:
    return Message(
        role=MessageRole.USER,
        content=f'Tool "{name}" returned: {result}',
    )


def tool_error_message(name: str, error: str) -> Message:
    return Message(
        role=MessageRole.USER,
        content=f'Tool "{name}" error: {error}',
    )
