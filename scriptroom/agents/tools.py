"""
Agent tools - the actions a worker may request from the engine.

`AGENT_TOOLS` holds the OpenAI function-calling schemas sent to the
reasoning backend. The pydantic models below validate the arguments that
come back; anything that fails validation is a malformed action.
"""
import json
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Type, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from scriptroom.orchestration.enums import MessageKind, ScriptOperation
from scriptroom.orchestration.exceptions import ActionPayloadError

VOICE_STYLES = ["documentary", "energetic", "calm", "dramatic", "conversational"]
RECIPIENTS = ["all", "orchestrator", "researcher", "writer", "critic", "factchecker", "creative", "voiceover", "user"]


# ═══════════════════════════════════════════════════════════════════════════════
# FUNCTION-CALLING SCHEMAS
# ═══════════════════════════════════════════════════════════════════════════════

AGENT_TOOLS: Dict[str, Dict[str, Any]] = {
    "search_web": {
        "type": "function",
        "function": {
            "name": "search_web",
            "description": "Searches the web and returns summarized results with sources. Use for research.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search query"},
                    "num_results": {"type": "number", "description": "Number of results requested (default: 5)"},
                },
                "required": ["query"],
            },
        },
    },
    "send_message": {
        "type": "function",
        "function": {
            "name": "send_message",
            "description": "Sends a message to another agent, the whole team or the user. Use it to delegate tasks and report results.",
            "parameters": {
                "type": "object",
                "properties": {
                    "to": {"type": "string", "enum": RECIPIENTS, "description": "Message recipient"},
                    "message": {"type": "string", "description": "Message to send"},
                    "type": {
                        "type": "string",
                        "enum": [kind.value for kind in MessageKind],
                        "description": "Message type",
                    },
                },
                "required": ["to", "message", "type"],
            },
        },
    },
    "write_script_section": {
        "type": "function",
        "function": {
            "name": "write_script_section",
            "description": "Creates, updates or deletes one section of the script.",
            "parameters": {
                "type": "object",
                "properties": {
                    "section": {"type": "string", "description": "Section name, e.g. 'Hook', 'Intro', 'Section 1'"},
                    "content": {"type": "string", "description": "Section narration"},
                    "action": {
                        "type": "string",
                        "enum": [op.value for op in ScriptOperation],
                        "description": "Action type",
                    },
                },
                "required": ["section", "content", "action"],
            },
        },
    },
    "request_user_input": {
        "type": "function",
        "function": {
            "name": "request_user_input",
            "description": "Asks the user a question and pauses the team until they answer.",
            "parameters": {
                "type": "object",
                "properties": {
                    "question": {"type": "string", "description": "Question to ask the user"},
                    "options": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Suggested answers (optional)",
                    },
                },
                "required": ["question"],
            },
        },
    },
    "finalize_script": {
        "type": "function",
        "function": {
            "name": "finalize_script",
            "description": "Submits the complete script for approval. Rejected if it is outside the word range or contains non-narration.",
            "parameters": {
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Video title"},
                    "description": {"type": "string", "description": "Video description"},
                    "script": {"type": "string", "description": "Full narration text"},
                    "duration_estimate": {"type": "string", "description": "Estimated video duration"},
                },
                "required": ["title", "script"],
            },
        },
    },
    "generate_voiceover": {
        "type": "function",
        "function": {
            "name": "generate_voiceover",
            "description": "Converts the cleaned narration to speech. Use after the script is finalized.",
            "parameters": {
                "type": "object",
                "properties": {
                    "text": {"type": "string", "description": "Pure narration text to speak"},
                    "voice_style": {"type": "string", "enum": VOICE_STYLES, "description": "Voice style"},
                },
                "required": ["text"],
            },
        },
    },
}


def tools_for(capabilities) -> List[Dict[str, Any]]:
    """Schemas for the given tool names, in declaration order."""
    return [AGENT_TOOLS[name] for name in AGENT_TOOLS if name in capabilities]


# ═══════════════════════════════════════════════════════════════════════════════
# ACTION MODELS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ToolCall:
    """A raw action request as returned by the reasoning backend."""
    name: str
    arguments: Union[str, Dict[str, Any], None]
    call_id: Optional[str] = None


class SearchWeb(BaseModel):
    tool: ClassVar[str] = "search_web"
    query: str = Field(..., min_length=1)
    num_results: int = Field(5, ge=1, le=20)


class SendMessage(BaseModel):
    tool: ClassVar[str] = "send_message"
    to: str = Field(..., min_length=1)
    message: str
    type: MessageKind = MessageKind.INFO

    @field_validator("type", mode="before")
    @classmethod
    def coerce_kind(cls, v):
        return MessageKind.coerce(v) if v is not None else MessageKind.INFO


class WriteScriptSection(BaseModel):
    tool: ClassVar[str] = "write_script_section"
    section: str = Field(..., min_length=1)
    content: str = ""
    action: ScriptOperation = ScriptOperation.CREATE


class RequestUserInput(BaseModel):
    tool: ClassVar[str] = "request_user_input"
    question: str = Field(..., min_length=1)
    options: Optional[List[str]] = None


class FinalizeScript(BaseModel):
    tool: ClassVar[str] = "finalize_script"
    title: str
    script: str
    description: str = ""
    duration_estimate: Optional[str] = None


class GenerateVoiceover(BaseModel):
    tool: ClassVar[str] = "generate_voiceover"
    text: str
    voice_style: str = "documentary"

    @field_validator("voice_style", mode="before")
    @classmethod
    def default_style(cls, v):
        return v if v in VOICE_STYLES else "documentary"


Action = Union[SearchWeb, SendMessage, WriteScriptSection, RequestUserInput, FinalizeScript, GenerateVoiceover]

ACTION_MODELS: Dict[str, Type[BaseModel]] = {
    model.tool: model
    for model in (SearchWeb, SendMessage, WriteScriptSection, RequestUserInput, FinalizeScript, GenerateVoiceover)
}


def parse_action(call: ToolCall) -> Action:
    """
    Decode and validate one tool call.

    Raises:
        ActionPayloadError: unknown tool, unparsable JSON or invalid arguments
    """
    model = ACTION_MODELS.get(call.name)
    if model is None:
        raise ActionPayloadError(call.name, "unknown tool")

    arguments = call.arguments
    if arguments is None or arguments == "":
        arguments = {}
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise ActionPayloadError(call.name, f"arguments are not valid JSON ({e.msg})")
    if not isinstance(arguments, dict):
        raise ActionPayloadError(call.name, "arguments must be a JSON object")

    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "arguments" for err in e.errors())
        raise ActionPayloadError(call.name, f"invalid fields: {fields}")
