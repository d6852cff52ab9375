"""Shared fixtures for the chart pipeline tests."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from chartgen.schemas import DynamicData

CHART_REPLY = {
    "title": "Total Sales",
    "description": "d",
    "type": "bar",
    "xAxisKey": "month",
    "dataKey": "sales",
    "data": [{"month": "Jan", "sales": 100}],
}

TEMPLATE = "Schema:\n{{SCHEMA}}\nRows:\n{{DATASET}}\nAnswer with JSON."


@pytest.fixture
def template() -> str:
    return TEMPLATE


@pytest.fixture
def chart_reply() -> dict:
    return dict(CHART_REPLY)


@pytest.fixture
def sales_data() -> DynamicData:
    rows = [{"month": "Jan", "sales": 100}, {"month": "Feb", "sales": 150}]
    return DynamicData(
        dataset=rows,
        schema="Dataset Schema:\n- month: string\n- sales: number",
        file_name="sales.csv",
    )


@pytest.fixture
def big_data() -> DynamicData:
    rows = [{"month": f"m{i}", "sales": i} for i in range(10_000)]
    return DynamicData(dataset=rows, schema="- month: string\n- sales: number", file_name="big.csv")


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


def openai_reply(content: str) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(
        200, json={"choices": [{"message": {"role": "assistant", "content": content}}]}
    )


def anthropic_reply(content: str) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(
        200, json={"content": [{"type": "text", "text": content}]}
    )


def status_reply(status: int, body: str = "boom") -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, text=body)
