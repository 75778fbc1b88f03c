"""Client for the LLM service behind AI insights, explanations, forecasts and SQL.

Every operation is one blocking round trip with no retry. Failures never
propagate: each call degrades to a fixed fallback payload.
"""
from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4.1-2025-04-14"

_FORECAST_HISTORY = 12
_FORECAST_MIN_HISTORY = 3
_FORECAST_FIELDS = ("date", "predicted_value", "lower_bound", "upper_bound")
_DATE_FIELDS = ("date", "Date", "timestamp")


def _fallback_insight(kind: str, title: str, description: str, severity: str = "low") -> Dict[str, Any]:
    return {
        "type": kind,
        "title": title,
        "description": description,
        "severity": severity,
        "confidence": 1.0,
    }


RATE_LIMIT_INSIGHT = _fallback_insight(
    "recommendation",
    "Rate Limit Notice",
    "The AI service rate limit was reached. Your data has been analyzed with statistics and "
    "visualizations; try again later for AI-powered insights.",
)
UNAVAILABLE_INSIGHT = _fallback_insight(
    "recommendation",
    "AI Analysis Unavailable",
    "AI-powered insights are temporarily unavailable, but the data analysis with charts and "
    "statistics is complete.",
)
COMPLETE_INSIGHT = _fallback_insight(
    "recommendation",
    "Analysis Complete",
    "Your data has been successfully analyzed with detailed statistics and visualizations.",
)


@dataclass(frozen=True)
class AIConfig:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    timeout: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AIConfig":
        env = os.environ if environ is None else environ
        timeout = env.get("AI_TIMEOUT_SECONDS")
        return cls(
            api_key=env.get("OPENAI_API_KEY") or None,
            base_url=(env.get("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            model=env.get("OPENAI_MODEL") or DEFAULT_MODEL,
            timeout=float(timeout) if timeout else None,
        )


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


class AIClient:
    """Thin chat-completions client with typed fallbacks."""

    def __init__(self, config: AIConfig, *, http_client: Optional[httpx.Client] = None) -> None:
        self.config = config
        self._http = http_client or httpx.Client(timeout=config.timeout)

    def close(self) -> None:
        self._http.close()

    def _chat(self, system: str, prompt: str, *, temperature: float, max_tokens: int) -> httpx.Response:
        return self._http.post(
            f"{self.config.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.config.model,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

    @staticmethod
    def _content(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
            choices = body.get("choices") or []
            content = choices[0].get("message", {}).get("content") if choices else None
        except (ValueError, AttributeError, IndexError):
            return None
        return content if isinstance(content, str) and content.strip() else None

    # ---- insights ----
    def generate_insights(
        self,
        rows: Sequence[Mapping[str, Any]],
        profiles: Sequence[Mapping[str, Any]],
        correlations: Sequence[Mapping[str, Any]],
        summary: Mapping[str, Any],
    ) -> List[Dict[str, Any]]:
        if not self.config.enabled:
            logger.info("AI key not configured, skipping AI insights")
            return []

        column_lines = "\n".join(
            f"{col.get('name')} ({col.get('inferredType')}): {col.get('uniqueValueCount')} unique values, "
            f"{col.get('nullCount')} nulls, stats: {json.dumps(col.get('stats', {}), default=str)}"
            for col in list(profiles)[:10]
        )
        correlation_lines = "\n".join(
            f"{pair.get('columnA')} <-> {pair.get('columnB')}: {float(pair.get('coefficient', 0.0)):.3f}"
            for pair in list(correlations)[:3]
        )
        prompt = (
            "You are an expert data analyst. Analyze this CSV dataset and provide 3-5 key insights "
            "in JSON format.\n\n"
            "Dataset Summary:\n"
            f"- {summary.get('totalRows')} rows, {summary.get('totalColumns')} columns\n"
            f"- {summary.get('numericColumns')} numeric columns, {summary.get('categoricalColumns')} "
            f"categorical, {summary.get('dateColumns')} date columns\n"
            f"- {summary.get('missingDataColumns')} columns have missing data\n"
            f"- {summary.get('highCardinalityColumns')} columns have high cardinality\n\n"
            f"Column Details:\n{column_lines}\n"
        )
        if correlation_lines:
            prompt += f"\nTop Correlations:\n{correlation_lines}\n"
        prompt += (
            f"\nSample Data (first 3 rows):\n{json.dumps(list(rows)[:3], indent=2, default=str)}\n\n"
            "Provide insights as a JSON array of objects with keys type "
            "(trend|anomaly|correlation|pattern|recommendation), title, description, "
            "severity (low|medium|high) and confidence (0-1). Focus on business value, trends, "
            "anomalies, and actionable recommendations."
        )

        try:
            response = self._chat(
                "You are an expert data analyst who provides concise, actionable insights about "
                "datasets. Always respond with valid JSON.",
                prompt,
                temperature=0.7,
                max_tokens=1500,
            )
        except httpx.HTTPError as exc:
            logger.warning("AI insights request failed", extra={"error": str(exc)})
            return [dict(UNAVAILABLE_INSIGHT)]

        if response.status_code == 429:
            logger.warning("AI insights rate limited")
            return [dict(RATE_LIMIT_INSIGHT)]
        if not response.is_success:
            logger.warning("AI insights request rejected", extra={"status_code": response.status_code})
            return [dict(UNAVAILABLE_INSIGHT)]

        content = self._content(response)
        if content is None:
            return [dict(COMPLETE_INSIGHT)]
        try:
            parsed = json.loads(_strip_code_fence(content))
        except ValueError:
            logger.warning("AI insights reply was not valid JSON")
            return [
                _fallback_insight(
                    "pattern",
                    "Data Overview",
                    f"Your dataset contains {summary.get('totalRows')} rows and "
                    f"{summary.get('totalColumns')} columns with {summary.get('numericColumns')} "
                    "numeric fields ready for analysis.",
                    severity="medium",
                )
            ]
        if isinstance(parsed, list):
            return [item for item in parsed if isinstance(item, dict)]
        if isinstance(parsed, dict):
            return [parsed]
        return [dict(COMPLETE_INSIGHT)]

    # ---- explain ----
    def explain(self, data: Any, chart_data: Sequence[Any], chart_type: str, title: str) -> str:
        if not self.config.enabled:
            return "AI explanation unavailable - API key not configured"

        prompt = (
            "You are a data analyst. Explain this chart insight in simple business language:\n\n"
            f"Chart: {title}\nType: {chart_type}\n"
            f"Data: {json.dumps(list(chart_data or [])[:10], default=str)}\n\n"
            "Provide a concise 1-2 sentence explanation of what this data shows, focusing on "
            "trends, patterns, or key findings that business users would care about."
        )
        try:
            response = self._chat(
                "You are a business data analyst who explains data insights in simple, "
                "non-technical language.",
                prompt,
                temperature=0.7,
                max_tokens=200,
            )
        except httpx.HTTPError as exc:
            logger.warning("AI explanation request failed", extra={"error": str(exc)})
            return "Explanation temporarily unavailable"

        if not response.is_success:
            return "Unable to generate explanation at this time"
        return self._content(response) or "No explanation available"

    # ---- forecast ----
    @staticmethod
    def forecast_history(data: Sequence[Mapping[str, Any]], column: str) -> List[Dict[str, Any]]:
        history: List[Dict[str, Any]] = []
        for row in data:
            try:
                value = float(row.get(column))
            except (TypeError, ValueError):
                continue
            if not math.isfinite(value) or value <= 0:
                continue
            date = next((row[key] for key in _DATE_FIELDS if row.get(key)), None)
            history.append({"value": value, "date": date})
        return history[-_FORECAST_HISTORY:]

    def forecast(self, data: Sequence[Mapping[str, Any]], column: str, periods: int = 6) -> List[Dict[str, Any]]:
        if not self.config.enabled:
            return []

        history = self.forecast_history(data or [], column)
        if len(history) < _FORECAST_MIN_HISTORY:
            return []

        prompt = (
            "Generate a time series forecast based on this historical data:\n"
            f"{json.dumps(history, default=str)}\n\n"
            f"Predict the next {periods} periods. Return as JSON array with format:\n"
            '[{"date": "2024-08-01", "predicted_value": 123.45, "lower_bound": 100.12, '
            '"upper_bound": 146.78}]\n\n'
            "Use simple trend analysis and consider confidence intervals."
        )
        try:
            response = self._chat(
                "You are a forecasting analyst. Always respond with valid JSON.",
                prompt,
                temperature=0.3,
                max_tokens=800,
            )
        except httpx.HTTPError as exc:
            logger.warning("AI forecast request failed", extra={"error": str(exc)})
            return []

        if not response.is_success:
            return []
        content = self._content(response)
        if content is None:
            return []
        try:
            parsed = json.loads(_strip_code_fence(content))
        except ValueError:
            return []
        if not isinstance(parsed, list):
            return []
        return [
            {name: point[name] for name in _FORECAST_FIELDS}
            for point in parsed
            if isinstance(point, dict) and all(name in point for name in _FORECAST_FIELDS)
        ]

    # ---- natural language to SQL ----
    def query(self, question: str, column_info: Sequence[Mapping[str, Any]]) -> Dict[str, str]:
        if not self.config.enabled:
            return {
                "sql": "-- AI query generation unavailable",
                "explanation": "Natural language query conversion requires AI service access",
            }

        schema_lines = "\n".join(
            f"{col.get('name')} ({col.get('inferredType') or col.get('type')}): "
            f"{', '.join(str(value) for value in list(col.get('sampleValues') or [])[:3])}"
            for col in column_info or []
        )
        prompt = (
            "Convert this natural language question to SQL:\n"
            f'Question: "{question}"\n\n'
            f"Available columns in 'data' table:\n{schema_lines}\n\n"
            'Return JSON with format:\n{"sql": "SELECT statement here", '
            '"explanation": "Plain English summary of what this query does"}\n\n'
            "Use standard SQL syntax. Table name is 'data'."
        )
        try:
            response = self._chat(
                "You are a SQL expert. Always respond with valid JSON containing SQL queries.",
                prompt,
                temperature=0.3,
                max_tokens=400,
            )
        except httpx.HTTPError as exc:
            logger.warning("AI query request failed", extra={"error": str(exc)})
            return {
                "sql": "-- Error occurred",
                "explanation": "An error occurred while generating the SQL query",
            }

        if not response.is_success:
            return {
                "sql": "-- Query generation failed",
                "explanation": "Unable to convert question to SQL at this time",
            }
        content = self._content(response)
        try:
            parsed = json.loads(_strip_code_fence(content or ""))
        except ValueError:
            parsed = None
        if not isinstance(parsed, dict) or not isinstance(parsed.get("sql"), str):
            return {
                "sql": "-- Invalid response format",
                "explanation": "Could not parse the generated query",
            }
        return {"sql": parsed["sql"], "explanation": str(parsed.get("explanation", ""))}
