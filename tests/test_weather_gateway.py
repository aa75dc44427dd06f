"""
test_weather_gateway.py — Tests for the OpenWeatherMap gateway.

Uses ``httpx.MockTransport`` so no network access is needed.

Covers:
    • Current-conditions parsing (m/s → km/h, 3h / 1h rain, defaults)
    • Forecast parsing and peaks
    • Unavailable provider → None (no key, 5xx after retries, 4xx, bad body)
    • One Call alerts

Run with:
    pytest tests/test_weather_gateway.py -v
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from prism.app.ingestion.weather_gateway import (
    MalformedPayload,
    WeatherGateway,
    parse_conditions,
    parse_forecast,
)

CHENNAI_LAT = 13.0827
CHENNAI_LON = 80.2707

CURRENT_PAYLOAD = {
    "main": {"temp": 31.5, "humidity": 78, "pressure": 1002},
    "wind": {"speed": 10.0},
    "rain": {"3h": 42.0, "1h": 12.0},
    "dt": 1760860800,
}

FORECAST_PAYLOAD = {
    "list": [
        {"dt": 1760871600, "main": {"temp": 30}, "wind": {"speed": 5}, "rain": {"3h": 12}},
        {"dt": 1760860800, "main": {"temp": 29}, "wind": {"speed": 20}},
    ],
}


def _gateway(handler, **kwargs) -> WeatherGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WeatherGateway(
        kwargs.pop("api_key", "test-key"),
        base_url="https://weather.test/data/2.5",
        max_retries=kwargs.pop("max_retries", 0),
        retry_backoff=0.0,
        client=client,
        **kwargs,
    )


def _routes(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/weather"):
        return httpx.Response(200, json=CURRENT_PAYLOAD)
    if request.url.path.endswith("/forecast"):
        return httpx.Response(200, json=FORECAST_PAYLOAD)
    if request.url.path.endswith("/onecall"):
        return httpx.Response(200, json={"alerts": [{"event": "Cyclone Watch"}]})
    return httpx.Response(404)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Parsing
# ═══════════════════════════════════════════════════════════════════════════

class TestParseConditions:

    def test_units_and_fields(self):
        c = parse_conditions(CURRENT_PAYLOAD)
        assert c.wind_speed_kmh == pytest.approx(36.0)
        assert c.rainfall_3h_mm == 42.0
        assert c.temperature_c == 31.5
        assert c.humidity_pct == 78
        assert c.pressure_hpa == 1002
        assert c.observed_at is not None

    def test_one_hour_rain_fallback(self):
        c = parse_conditions({"main": {}, "rain": {"1h": 7.5}})
        assert c.rainfall_3h_mm == 7.5

    def test_missing_blocks_take_defaults(self):
        c = parse_conditions({"main": {}})
        assert c.wind_speed_kmh == 0.0
        assert c.rainfall_3h_mm == 0.0
        assert c.temperature_c == 25.0
        assert c.pressure_hpa == 1013.0

    def test_missing_main_is_malformed(self):
        with pytest.raises(MalformedPayload):
            parse_conditions({"wind": {"speed": 3}})


class TestParseForecast:

    def test_sorted_with_peaks(self):
        series = parse_forecast(FORECAST_PAYLOAD)
        assert len(series) == 2
        assert series.points[0].timestamp < series.points[1].timestamp
        assert series.peak_rainfall_mm == 12
        assert series.peak_wind_speed_kmh == pytest.approx(72.0)

    def test_missing_list_is_malformed(self):
        with pytest.raises(MalformedPayload):
            parse_forecast({"cod": "200"})

    def test_slots_without_dt_skipped(self):
        assert len(parse_forecast({"list": [{"main": {}}, "junk"]})) == 0


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Gateway
# ═══════════════════════════════════════════════════════════════════════════

class TestWeatherGateway:

    def test_current_conditions(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _routes(request)

        conditions = asyncio.run(_gateway(handler).get_current_conditions(CHENNAI_LAT, CHENNAI_LON))

        assert conditions.wind_speed_kmh == pytest.approx(36.0)
        params = seen[0].url.params
        assert params["appid"] == "test-key"
        assert params["units"] == "metric"
        assert float(params["lat"]) == CHENNAI_LAT

    def test_forecast(self):
        series = asyncio.run(_gateway(_routes).get_forecast(CHENNAI_LAT, CHENNAI_LON))
        assert series.peak_rainfall_mm == 12

    def test_no_api_key_makes_no_request(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _routes(request)

        gateway = _gateway(handler, api_key="")
        assert not gateway.is_configured
        assert asyncio.run(gateway.get_current_conditions(CHENNAI_LAT, CHENNAI_LON)) is None
        assert seen == []

    def test_server_error_retried_then_none(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503)

        gateway = _gateway(handler, max_retries=2)
        assert asyncio.run(gateway.get_current_conditions(CHENNAI_LAT, CHENNAI_LON)) is None
        assert len(attempts) == 3

    def test_retry_recovers(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                return httpx.Response(500)
            return _routes(request)

        gateway = _gateway(handler, max_retries=1)
        assert asyncio.run(gateway.get_current_conditions(CHENNAI_LAT, CHENNAI_LON)) is not None

    def test_client_error_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(401, json={"message": "Invalid API key"})

        gateway = _gateway(handler, max_retries=2)
        assert asyncio.run(gateway.get_current_conditions(CHENNAI_LAT, CHENNAI_LON)) is None
        assert len(attempts) == 1

    def test_transport_error_is_none(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        assert asyncio.run(_gateway(handler).get_forecast(CHENNAI_LAT, CHENNAI_LON)) is None

    def test_malformed_body_is_none(self):
        def handler(request):
            return httpx.Response(200, json={"cod": 200})

        assert asyncio.run(_gateway(handler).get_current_conditions(CHENNAI_LAT, CHENNAI_LON)) is None

    def test_non_json_body_is_none(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        assert asyncio.run(_gateway(handler).get_forecast(CHENNAI_LAT, CHENNAI_LON)) is None

    def test_weather_alerts(self):
        alerts = asyncio.run(_gateway(_routes).get_weather_alerts(CHENNAI_LAT, CHENNAI_LON))
        assert alerts == [{"event": "Cyclone Watch"}]

    def test_weather_alerts_empty_on_failure(self):
        def handler(request):
            return httpx.Response(500)

        assert asyncio.run(_gateway(handler).get_weather_alerts(CHENNAI_LAT, CHENNAI_LON)) == []
