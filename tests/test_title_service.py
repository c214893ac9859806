import pytest

from pdfquiz.services.title_service import TitleGenerator

from conftest import ScriptedClient, TextOnlyClient


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply, expected",
    [
        ("  Cell Biology Basics \n", "Cell Biology Basics"),
        ('"Photosynthesis Quiz"', "Photosynthesis Quiz"),
        ("The Very Long Generated Title", "The Very Long"),
        ("", "Quiz"),
        ("   \n\t", "Quiz"),
    ],
)
async def test_title_trimming_and_fallback(reply, expected):
    generator = TitleGenerator(TextOnlyClient(reply))
    assert await generator.generate("cell-biology.pdf") == expected


@pytest.mark.asyncio
async def test_title_request_is_not_json_mode():
    client = ScriptedClient("Biology", json_mode=True)
    await TitleGenerator(client, max_tokens=10).generate("bio.pdf")

    call = client.completions.calls[0]
    assert "response_format" not in call
    assert call["max_tokens"] == 10
