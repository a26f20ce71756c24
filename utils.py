import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
import requests
from dateutil import parser as date_parser

from fuzzy_logic import FuzzyResult, calculate_fuzzy_risk, get_membership_samples

logger = logging.getLogger(__name__)

# --- Constants ---
ACCUWEATHER_URL = "https://dataservice.accuweather.com/currentconditions/v1/{key}"
REQUEST_TIMEOUT = 10

FORECASTS = [
    "Partly cloudy with afternoon showers",
    "Scattered thunderstorms expected",
    "Hot and humid conditions",
    "Light rain possible in evening",
    "Clear skies, high UV index",
    "Monsoon winds from northeast",
]


@dataclass(frozen=True)
class WeatherStation:
    id: str
    name: str
    location: str
    coordinates: Tuple[float, float]  # (lat, lng)
    accuweather_key: str


@dataclass
class WeatherData:
    temperature: float
    humidity: float
    wind_speed: float
    forecast: str
    station: WeatherStation
    last_updated: datetime = field(default_factory=datetime.now)
    simulated: bool = False


MALAYSIA_STATIONS = [
    WeatherStation("putrajaya", "Putrajaya", "W.P. Putrajaya", (2.9264, 101.6964), "235400"),
    WeatherStation("kl", "Kuala Lumpur", "Subang", (3.1319, 101.5488), "48647"),
    WeatherStation("penang", "Penang", "Bayan Lepas", (5.2972, 100.2760), "229893"),
    WeatherStation("jb", "Johor Bahru", "Senai", (1.6416, 103.6696), "228029"),
    WeatherStation("kuching", "Kuching", "Sarawak", (1.5497, 110.3592), "230204"),
    WeatherStation("kk", "Kota Kinabalu", "Sabah", (5.9804, 116.0735), "229992"),
]


def get_station(station_id: str) -> WeatherStation:
    for station in MALAYSIA_STATIONS:
        if station.id == station_id:
            return station
    raise KeyError(f"Unknown station '{station_id}'")


# --- Weather Data ---


def generate_mock_weather_data(
    station: WeatherStation, rng: Optional[np.random.Generator] = None
) -> WeatherData:
    """
    Generate simulated readings within tropical Malaysian ranges.

    Args:
        station: station being simulated
        rng: numpy Generator, seed it for repeatable readings
    """
    rng = rng if rng is not None else np.random.default_rng()

    temperature = rng.uniform(28, 34)  # °C
    humidity = rng.uniform(65, 90)  # %
    wind = rng.uniform(5, 30)  # km/h

    return WeatherData(
        temperature=round(float(temperature), 1),
        humidity=float(round(humidity)),
        wind_speed=round(float(wind), 1),
        forecast=FORECASTS[int(rng.integers(len(FORECASTS)))],
        station=station,
        simulated=True,
    )


def _parse_current_conditions(payload, station: WeatherStation) -> WeatherData:
    # AccuWeather returns a list holding a single observation
    observation = payload[0]

    observed_at = observation.get("LocalObservationDateTime")
    last_updated = date_parser.isoparse(observed_at) if observed_at else datetime.now()

    return WeatherData(
        temperature=float(observation["Temperature"]["Metric"]["Value"]),
        humidity=float(observation["RelativeHumidity"]),
        wind_speed=float(observation["Wind"]["Speed"]["Metric"]["Value"]),
        forecast=observation.get("WeatherText") or "No forecast available",
        station=station,
        last_updated=last_updated,
    )


def fetch_weather_data(
    station: WeatherStation,
    api_key: Optional[str] = None,
    timeout: float = REQUEST_TIMEOUT,
) -> WeatherData:
    """
    Fetch current conditions from AccuWeather.

    Without an API key (argument or ACCUWEATHER_API_KEY env var) this returns
    simulated data. Failed requests fall back to simulated data as well.
    """
    api_key = api_key or os.getenv("ACCUWEATHER_API_KEY")
    if not api_key:
        return generate_mock_weather_data(station)

    try:
        response = requests.get(
            ACCUWEATHER_URL.format(key=station.accuweather_key),
            params={"apikey": api_key, "details": "true"},
            timeout=timeout,
        )
        response.raise_for_status()
        return _parse_current_conditions(response.json(), station)
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
        logger.warning("API fetch failed for %s, using mock data: %s", station.name, e)
        return generate_mock_weather_data(station)


def fetch_all_stations_data(api_key: Optional[str] = None) -> Dict[str, WeatherData]:
    data_map = {}
    for station in MALAYSIA_STATIONS:
        data_map[station.id] = fetch_weather_data(station, api_key)
    return data_map


# --- Risk Assessment ---


def assess_station(weather: WeatherData) -> FuzzyResult:
    return calculate_fuzzy_risk(
        wind=weather.wind_speed,
        humidity=weather.humidity,
        temperature=weather.temperature,
    )


def build_station_grid(weather_by_station: Dict[str, WeatherData]) -> pd.DataFrame:
    """
    Combine every station reading with its fuzzy assessment.

    Returns:
        DataFrame with one row per station, in MALAYSIA_STATIONS order.
    """
    columns = [
        "id", "name", "location", "lat", "lng",
        "wind", "humidity", "temperature",
        "risk", "status", "forecast", "simulated", "last_updated",
    ]

    rows = []
    for station in MALAYSIA_STATIONS:
        weather = weather_by_station.get(station.id)
        if weather is None:
            continue

        result = assess_station(weather)
        rows.append(
            {
                "id": station.id,
                "name": station.name,
                "location": station.location,
                "lat": station.coordinates[0],
                "lng": station.coordinates[1],
                "wind": weather.wind_speed,
                "humidity": weather.humidity,
                "temperature": weather.temperature,
                "risk": result.danger_percentage,
                "status": result.status.value,
                "forecast": weather.forecast,
                "simulated": weather.simulated,
                "last_updated": weather.last_updated,
            }
        )

    return pd.DataFrame(rows, columns=columns)


def get_membership_chart_data(variable: str, resolution: int = 100) -> pd.DataFrame:
    """Membership samples as a DataFrame for Plotly."""
    return pd.DataFrame(get_membership_samples(variable, resolution))
