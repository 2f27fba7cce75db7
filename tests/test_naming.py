"""Tests for naming convention conversion."""

import pytest

from mcpdecl.kernel.naming import (
    identifier_from_uri,
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
    variants_of,
)


@pytest.mark.parametrize("name,expected", [
    ("getWeather", "get_weather"),
    ("GetWeather", "get_weather"),
    ("get-weather", "get_weather"),
    ("get_weather", "get_weather"),
    ("weather", "weather"),
])
def test_to_snake_case(name, expected):
    assert to_snake_case(name) == expected


@pytest.mark.parametrize("name,expected", [
    ("get_weather", "getWeather"),
    ("get-weather", "getWeather"),
    ("getWeather", "getWeather"),
    ("_get_data", "GetData"),
])
def test_to_camel_case(name, expected):
    assert to_camel_case(name) == expected


def test_to_pascal_case():
    assert to_pascal_case("get_weather") == "GetWeather"
    assert to_pascal_case("getWeather") == "GetWeather"
    assert to_pascal_case("") == ""


@pytest.mark.parametrize("name,expected", [
    ("WeatherServer", "weather-server"),
    ("weather_server", "weather-server"),
    ("My Weather_Server", "my-weather-server"),
    ("weather-server", "weather-server"),
])
def test_to_kebab_case(name, expected):
    assert to_kebab_case(name) == expected


@pytest.mark.parametrize("convert", [to_snake_case, to_camel_case, to_pascal_case, to_kebab_case])
@pytest.mark.parametrize("name", ["get_weather", "getWeather", "GetWeather", "get-weather", "x"])
def test_conversions_are_idempotent(convert, name):
    once = convert(name)
    assert convert(once) == once


def test_variants_of_is_deduplicated_and_ordered():
    assert variants_of("get_weather") == ["get_weather", "getWeather", "GetWeather", "get-weather"]
    assert variants_of("weather") == ["weather", "Weather"]


def test_identifier_from_uri():
    assert identifier_from_uri("config://server") == "config_server"
    assert identifier_from_uri("weather://alerts/today") == "weather_alerts_today"
    assert identifier_from_uri("1://x") == "_1_x"
