"""Fold an OpenAI message array into the single prompt string the upstream takes."""
from typing import Any, Iterable, Optional, Protocol, Union

# The upstream keeps its own conversation memory; the directive tells it to
# answer from the history we send instead.
PROMPT_DIRECTIVE = "Forget previous messages and focus on the current message!\n"
ASSISTANT_CUE = "\nassistant: "

Content = Optional[Union[str, list[dict[str, Any]]]]


class Turn(Protocol):
    role: str
    content: Content


def render_content(content: Content) -> str:
    """Plain text of a message: strings as-is, text parts of a content array joined."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "".join(
        str(part.get("text", ""))
        for part in content
        if isinstance(part, dict) and part.get("type") == "text"
    )


def build_prompt(turns: Iterable[Turn]) -> str:
    """
    Build the upstream prompt.

    Output is the directive, then ``"<role>: <content>"`` per turn in order
    with no separator, then ``"\\nassistant: "``. Pure: the same turns always
    give the same string, and no turns still give directive plus cue.
    """
    parts = [PROMPT_DIRECTIVE]
    parts.extend(f"{turn.role}: {render_content(turn.content)}" for turn in turns)
    return "".join(parts) + ASSISTANT_CUE
