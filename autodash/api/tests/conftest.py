import importlib

import anyio
import httpx
import pytest


class FakeAIClient:
    def __init__(self):
        self.calls = []

    def generate_insights(self, rows, profiles, correlations, summary):
        self.calls.append(("generate_insights", len(rows), len(profiles)))
        return [
            {
                "type": "pattern",
                "title": "Stub insight",
                "description": f"{summary.get('totalRows')} rows analyzed",
                "severity": "low",
                "confidence": 0.5,
            }
        ]

    def explain(self, data, chart_data, chart_type, title):
        self.calls.append(("explain", chart_type, title))
        return f"{title} shows {len(chart_data)} points"

    def forecast(self, data, column, periods=6):
        self.calls.append(("forecast", column, periods))
        return [
            {"date": f"2024-0{index + 1}-01", "predicted_value": 10.0, "lower_bound": 8.0, "upper_bound": 12.0}
            for index in range(periods)
        ]

    def query(self, question, column_info):
        self.calls.append(("query", question, len(column_info)))
        return {"sql": "SELECT * FROM data", "explanation": question}


@pytest.fixture()
def api_app(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANALYSIS_PROFILE", raising=False)

    from autodash.api import app as app_module

    importlib.reload(app_module)

    fake_ai = FakeAIClient()
    app_module.ai_client = fake_ai

    transport = httpx.ASGITransport(app=app_module.app)
    async_client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    class SyncClient:
        def request(self, method: str, url: str, **kwargs):
            return anyio.run(lambda: async_client.request(method, url, **kwargs))

        def get(self, url: str, **kwargs):
            return self.request("GET", url, **kwargs)

        def post(self, url: str, **kwargs):
            return self.request("POST", url, **kwargs)

    try:
        yield {
            "client": SyncClient(),
            "module": app_module,
            "ai": fake_ai,
        }
    finally:
        anyio.run(async_client.aclose)
