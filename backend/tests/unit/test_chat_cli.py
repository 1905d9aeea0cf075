import pytest


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cli_processor_greets_new_sender():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.cli import build_processor

    processor, store = build_processor()

    reply = await processor.handle_message("5511999990000", "oi")

    assert reply == fmt.LOGIN_PROMPT
    assert store.get("5511999990000").conversation_state.value == "awaiting_username"
