"""Tests for ProviderAdapter: prompt building, reply parsing and suggestions."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest
from conftest import RecordingTransport, anthropic_reply, openai_reply, status_reply

from chartgen.adapters import ADAPTER_FACTORIES, ProviderAdapter, build_adapter, parse_chart
from chartgen.errors import InputError, ParseError, UnsupportedProviderError
from chartgen.llm_client import GeminiCompletion
from chartgen.schemas import ChartType, Provider, ProviderConfig

OPENAI_CONFIG = ProviderConfig(provider="OPENAI", model="gpt-4o-mini", api_key="sk-test")


def _dataset_rows_sent(system_prompt: str) -> list:
    """The template used in these tests ends the rows line with a fixed marker."""
    rows_json = system_prompt.split("Rows:\n", 1)[1].split("\nAnswer with JSON.", 1)[0]
    return json.loads(rows_json)


def test_end_to_end_chart_from_openai(template, sales_data, chart_reply) -> None:
    """A valid reply becomes a ChartSpec with the type uppercased."""

    transport = RecordingTransport(openai_reply(json.dumps(chart_reply)))
    adapter = build_adapter(Provider.OPENAI, transport)
    chart = asyncio.run(adapter.generate("Show total sales", template, OPENAI_CONFIG, sales_data))

    assert chart.type is ChartType.BAR
    assert chart.title == "Total Sales"
    assert chart.data == [{"month": "Jan", "sales": 100}]
    assert chart.id is None

    system_prompt = transport.last_json()["messages"][0]["content"]
    assert "- sales: number" in system_prompt
    assert _dataset_rows_sent(system_prompt) == sales_data.dataset


def test_fenced_reply_is_accepted(template, sales_data, chart_reply) -> None:
    reply = "Here is your chart:\n```json\n" + json.dumps(chart_reply) + "\n```"
    adapter = build_adapter(Provider.OPENAI, RecordingTransport(openai_reply(reply)))
    chart = asyncio.run(adapter.generate("Show total sales", template, OPENAI_CONFIG, sales_data))
    assert chart.x_axis_key == "month"


def test_invalid_chart_reply_is_parse_error(template, sales_data, chart_reply) -> None:
    chart_reply["data"] = [{"month": "Jan", "sales": "lots"}]
    adapter = build_adapter(Provider.OPENAI, RecordingTransport(openai_reply(json.dumps(chart_reply))))
    with pytest.raises(ParseError) as excinfo:
        asyncio.run(adapter.generate("Show total sales", template, OPENAI_CONFIG, sales_data))
    assert "Invalid chart structure" in str(excinfo.value)
    assert "numbers" in str(excinfo.value)


def test_prose_reply_is_parse_error(template, sales_data) -> None:
    adapter = build_adapter(Provider.OPENAI, RecordingTransport(openai_reply("I cannot help with that.")))
    with pytest.raises(ParseError):
        asyncio.run(adapter.generate("Show total sales", template, OPENAI_CONFIG, sales_data))


def test_generate_without_dataset_is_input_error(template) -> None:
    transport = RecordingTransport(openai_reply("{}"))
    adapter = build_adapter(Provider.OPENAI, transport)
    with pytest.raises(InputError):
        asyncio.run(adapter.generate("Show total sales", template, OPENAI_CONFIG, None))
    assert transport.requests == []


@pytest.mark.parametrize(
    "provider,config,reply",
    [
        (Provider.OPENAI, OPENAI_CONFIG, openai_reply),
        (
            Provider.OPENAI_COMPATIBLE,
            ProviderConfig(provider="OPENAI_COMPATIBLE", model="llama3", base_url="https://llm.example.com/v1"),
            openai_reply,
        ),
        (
            Provider.OLLAMA,
            ProviderConfig(provider="OLLAMA", model="llama3", base_url="http://127.0.0.1:11434"),
            openai_reply,
        ),
    ],
)
def test_openai_shaped_adapters_cap_rows_at_500(provider, config, reply, template, big_data, chart_reply) -> None:
    """10,000 uploaded rows -> exactly 500 rows in the outgoing payload."""

    transport = RecordingTransport(reply(json.dumps(chart_reply)))
    adapter = build_adapter(provider, transport)
    asyncio.run(adapter.generate("Show total sales", template, config, big_data))

    system_prompt = transport.last_json()["messages"][0]["content"]
    assert len(_dataset_rows_sent(system_prompt)) == 500


def test_anthropic_adapter_caps_rows_at_500(template, big_data, chart_reply) -> None:
    config = ProviderConfig(provider="ANTHROPIC", model="claude-3-5-sonnet", api_key="ak")
    transport = RecordingTransport(anthropic_reply(json.dumps(chart_reply)))
    chart = asyncio.run(build_adapter(Provider.ANTHROPIC, transport).generate("Show total sales", template, config, big_data))

    assert chart.type is ChartType.BAR
    assert len(_dataset_rows_sent(transport.last_json()["system"])) == 500


def test_gemini_adapter_caps_rows_at_500(template, big_data, chart_reply) -> None:
    calls = []

    async def generate_content(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(text=json.dumps(chart_reply))

    async def aclose():
        calls.append("closed")

    models = SimpleNamespace(generate_content=generate_content)
    client = SimpleNamespace(aio=SimpleNamespace(models=models, aclose=aclose))
    adapter = ProviderAdapter("Google Gemini", GeminiCompletion(lambda key, timeout: client))
    config = ProviderConfig(provider="GOOGLE", model="gemini-2.0-flash", api_key="g")
    chart = asyncio.run(adapter.generate("Show total sales", template, config, big_data))

    assert chart.data_key == "sales"
    text = calls[0]["contents"][0].parts[0].text
    system_prompt, user_part = text.split("\n\nUser Query: ")
    assert user_part == "Show total sales"
    assert len(_dataset_rows_sent(system_prompt)) == 500
    assert calls[-1] == "closed"


def test_suggestions_are_returned(template, sales_data) -> None:
    reply = json.dumps({"suggestions": ["Sales by month", "  Trend of sales ", 3, ""]})
    transport = RecordingTransport(openai_reply(reply))
    suggestions = asyncio.run(
        build_adapter(Provider.OPENAI, transport).generate_suggestions(template, OPENAI_CONFIG, sales_data)
    )
    assert suggestions == ["Sales by month", "Trend of sales"]
    messages = transport.last_json()["messages"]
    assert [m["role"] for m in messages] == ["user"]


@pytest.mark.parametrize(
    "handler",
    [
        status_reply(500),
        status_reply(401),
        status_reply(429),
        openai_reply("no json here"),
        openai_reply('{"other": []}'),
        openai_reply('["just", "a", "list"]'),
    ],
)
def test_suggestions_never_raise(handler, template, sales_data) -> None:
    adapter = build_adapter(Provider.OPENAI, RecordingTransport(handler))
    assert asyncio.run(adapter.generate_suggestions(template, OPENAI_CONFIG, sales_data)) == []


def test_suggestions_swallow_network_errors(template, sales_data) -> None:
    """A deliberately failing completion yields [] instead of an exception."""

    async def broken(config, system_prompt, user_prompt):
        raise ConnectionError("network down")

    adapter = ProviderAdapter("Broken", broken)
    assert asyncio.run(adapter.generate_suggestions(template, OPENAI_CONFIG, sales_data)) == []


def test_suggestions_without_dataset_is_empty(template) -> None:
    calls = []

    async def completion(config, system_prompt, user_prompt):
        calls.append(user_prompt)
        return '{"suggestions": ["never"]}'

    adapter = ProviderAdapter("Stub", completion)
    assert asyncio.run(adapter.generate_suggestions(template, OPENAI_CONFIG, None)) == []
    assert calls == []


def test_parse_chart_uppercases_type(chart_reply) -> None:
    chart_reply["type"] = "area"
    chart = asyncio.run(parse_chart(json.dumps(chart_reply)))
    assert chart.type is ChartType.AREA


def test_registry_covers_every_provider() -> None:
    assert set(ADAPTER_FACTORIES) == set(Provider)


def test_unknown_provider_is_unsupported() -> None:
    with pytest.raises(UnsupportedProviderError):
        build_adapter("MYSTERY")


def test_build_adapter_uses_given_registry() -> None:
    with pytest.raises(UnsupportedProviderError):
        build_adapter(Provider.OPENAI, registry={})
