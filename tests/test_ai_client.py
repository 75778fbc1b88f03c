import json

import httpx
import pytest

from autodash.common.ai_client import AIClient, AIConfig


def _reply(content, status_code=200):
    def handler(request):
        if isinstance(content, Exception):
            raise content
        body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
        return httpx.Response(status_code, json=body)

    return handler


def make_client(handler, api_key="test-key"):
    recorded = []

    def transport_handler(request):
        recorded.append(request)
        return handler(request)

    config = AIConfig(api_key=api_key, base_url="https://llm.local/v1", model="test-model")
    http_client = httpx.Client(transport=httpx.MockTransport(transport_handler))
    return AIClient(config, http_client=http_client), recorded


SUMMARY = {"totalRows": 10, "totalColumns": 2, "numericColumns": 1}


def test_config_from_env():
    config = AIConfig.from_env(
        {
            "OPENAI_API_KEY": "sk-1",
            "OPENAI_BASE_URL": "https://proxy.local/v1/",
            "OPENAI_MODEL": "gpt-test",
            "AI_TIMEOUT_SECONDS": "12.5",
        }
    )
    assert config.api_key == "sk-1"
    assert config.base_url == "https://proxy.local/v1"
    assert config.model == "gpt-test"
    assert config.timeout == 12.5
    assert AIConfig.from_env({}).enabled is False
    assert AIConfig.from_env({}).timeout is None


def test_insights_without_key_are_empty():
    client, recorded = make_client(_reply("[]"), api_key=None)
    assert client.generate_insights([], [], [], SUMMARY) == []
    assert recorded == []


def test_insights_parse_json_array():
    insights = [{"type": "trend", "title": "Growth", "description": "Up", "severity": "low", "confidence": 0.9}]
    client, recorded = make_client(_reply(json.dumps(insights)))
    assert client.generate_insights([{"a": "1"}], [], [], SUMMARY) == insights

    request = recorded[0]
    assert request.url == "https://llm.local/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer test-key"
    payload = json.loads(request.content)
    assert payload["model"] == "test-model"
    assert payload["messages"][0]["role"] == "system"


def test_single_insight_object_is_wrapped():
    insight = {"type": "pattern", "title": "One", "description": "d", "severity": "medium", "confidence": 0.5}
    client, _ = make_client(_reply("```json\n" + json.dumps(insight) + "\n```"))
    assert client.generate_insights([], [], [], SUMMARY) == [insight]


def test_rate_limited_insights():
    client, _ = make_client(_reply("", status_code=429))
    result = client.generate_insights([], [], [], SUMMARY)
    assert result[0]["title"] == "Rate Limit Notice"


def test_server_error_insights():
    client, _ = make_client(_reply("", status_code=500))
    assert client.generate_insights([], [], [], SUMMARY)[0]["title"] == "AI Analysis Unavailable"


def test_network_error_insights():
    client, _ = make_client(_reply(httpx.ConnectError("boom")))
    assert client.generate_insights([], [], [], SUMMARY)[0]["title"] == "AI Analysis Unavailable"


def test_empty_reply_insights():
    client, _ = make_client(_reply(""))
    assert client.generate_insights([], [], [], SUMMARY)[0]["title"] == "Analysis Complete"


def test_unparsable_reply_insights():
    client, _ = make_client(_reply("Here are some thoughts"))
    result = client.generate_insights([], [], [], SUMMARY)
    assert result[0]["title"] == "Data Overview"
    assert "10 rows" in result[0]["description"]


def test_explain_sends_first_ten_records():
    client, recorded = make_client(_reply("Sales peak in March."))
    chart_data = [{"name": str(index), "value": index} for index in range(25)]
    assert client.explain([], chart_data, "bar", "Sales") == "Sales peak in March."
    prompt = json.loads(recorded[0].content)["messages"][1]["content"]
    assert '"name": "9"' in prompt
    assert '"name": "10"' not in prompt


def test_explain_fallbacks():
    client, _ = make_client(_reply("x"), api_key=None)
    assert "API key not configured" in client.explain([], [], "bar", "t")

    client, _ = make_client(_reply("", status_code=503))
    assert client.explain([], [], "bar", "t") == "Unable to generate explanation at this time"

    client, _ = make_client(_reply(httpx.ReadTimeout("slow")))
    assert client.explain([], [], "bar", "t") == "Explanation temporarily unavailable"


def test_forecast_history_uses_last_twelve_positive_values():
    data = [{"date": f"2024-{index:02d}", "sales": index} for index in range(1, 16)]
    data.insert(3, {"Date": "bad", "sales": -5})
    data.append({"timestamp": "t", "sales": "n/a"})
    history = AIClient.forecast_history(data, "sales")
    assert len(history) == 12
    assert history[0] == {"value": 4.0, "date": "2024-04"}
    assert history[-1] == {"value": 15.0, "date": "2024-15"}


def test_forecast_history_skips_non_finite_values():
    data = [{"date": "d1", "sales": "nan"}, {"date": "d2", "sales": "inf"}, {"date": "d3", "sales": 2}]
    assert AIClient.forecast_history(data, "sales") == [{"value": 2.0, "date": "d3"}]


def test_forecast_needs_three_points():
    client, recorded = make_client(_reply("[]"))
    assert client.forecast([{"sales": 1}, {"sales": 2}], "sales") == []
    assert recorded == []


def test_forecast_parses_points():
    points = [
        {"date": "2024-07-01", "predicted_value": 10, "lower_bound": 8, "upper_bound": 12, "note": "x"},
        {"date": "2024-08-01", "predicted_value": 11},
    ]
    client, _ = make_client(_reply(json.dumps(points)))
    data = [{"date": f"2024-0{index}-01", "sales": index * 10} for index in range(1, 7)]
    assert client.forecast(data, "sales", periods=2) == [
        {"date": "2024-07-01", "predicted_value": 10, "lower_bound": 8, "upper_bound": 12}
    ]


@pytest.mark.parametrize("content,status", [("not json", 200), ("", 500), ('{"date": 1}', 200)])
def test_forecast_failures_are_empty(content, status):
    client, _ = make_client(_reply(content, status_code=status))
    data = [{"sales": index} for index in range(1, 7)]
    assert client.forecast(data, "sales") == []


def test_query_returns_sql():
    client, recorded = make_client(_reply(json.dumps({"sql": "SELECT 1", "explanation": "one"})))
    columns = [{"name": "sales", "inferredType": "numeric", "sampleValues": ["1", "2", "3", "4"]}]
    assert client.query("how many?", columns) == {"sql": "SELECT 1", "explanation": "one"}
    prompt = json.loads(recorded[0].content)["messages"][1]["content"]
    assert "sales (numeric): 1, 2, 3" in prompt


def test_query_fallbacks():
    client, _ = make_client(_reply("x"), api_key=None)
    assert client.query("q", [])["sql"].startswith("--")

    client, _ = make_client(_reply("not json"))
    assert client.query("q", [])["sql"] == "-- Invalid response format"

    client, _ = make_client(_reply("", status_code=400))
    assert client.query("q", [])["sql"] == "-- Query generation failed"

    client, _ = make_client(_reply(httpx.ConnectError("down")))
    assert client.query("q", [])["sql"] == "-- Error occurred"
