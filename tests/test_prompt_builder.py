from chandler_api.schemas import ChatMessage
from chandler_api.services.prompt import ASSISTANT_CUE, PROMPT_DIRECTIVE, build_prompt, render_content


def test_turns_are_folded_in_order_after_directive():
    turns = [
        ChatMessage(role="system", content="Be brief."),
        ChatMessage(role="user", content="Hi"),
        ChatMessage(role="assistant", content="Hello!"),
        ChatMessage(role="user", content="Weather?"),
    ]
    assert build_prompt(turns) == (
        "Forget previous messages and focus on the current message!\n"
        "system: Be brief.user: Hiassistant: Hello!user: Weather?"
        "\nassistant: "
    )


def test_empty_history_still_has_directive_and_cue():
    assert build_prompt([]) == PROMPT_DIRECTIVE + ASSISTANT_CUE


def test_same_turns_give_identical_prompt():
    turns = [ChatMessage(role="user", content="ping")]
    assert build_prompt(turns) == build_prompt(list(turns))


def test_content_parts_keep_only_text():
    content = [
        {"type": "text", "text": "look at "},
        {"type": "image_url", "image_url": {"url": "https://example.com/cat.png"}},
        {"type": "text", "text": "this"},
    ]
    assert render_content(content) == "look at this"
    assert build_prompt([ChatMessage(role="user", content=content)]).endswith("user: look at this\nassistant: ")


def test_missing_content_renders_empty():
    assert build_prompt([ChatMessage(role="assistant")]) == PROMPT_DIRECTIVE + "assistant: " + ASSISTANT_CUE
