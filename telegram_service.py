import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests

from fuzzy_logic import FuzzyResult, OutputClass

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"
REQUEST_TIMEOUT = 10


@dataclass
class AlertPayload:
    location: str
    wind: float
    humidity: float
    temperature: float
    risk_percentage: float


@dataclass
class AlertResponse:
    success: bool
    message: str
    error: Optional[str] = None


def should_alert(result: FuzzyResult) -> bool:
    return result.status is OutputClass.CRITICAL


def format_alert_message(payload: AlertPayload) -> str:
    """
    Render the alert as Telegram HTML.
    """
    return (
        "🚨 <b>SKYSENTINEL COMMAND: CRITICAL ALERT</b>\n"
        "\n"
        f"📍 <b>SECTOR:</b> {payload.location}\n"
        "\n"
        f"⚠️ <b>THREAT LEVEL:</b> CRITICAL ({payload.risk_percentage:.1f}%)\n"
        "\n"
        "<b>TELEMETRY:</b>\n"
        f"💨 Wind: {payload.wind} km/h\n"
        f"💧 Humidity: {payload.humidity} %\n"
        f"🌡️ Temp: {payload.temperature} °C\n"
        "\n"
        "🛑 <b>ACTION REQUIRED:</b> Immediate drone grounding and equipment securement."
    )


def send_telegram_alert(
    payload: AlertPayload,
    bot_token: Optional[str] = None,
    chat_id: Optional[str] = None,
    timeout: float = REQUEST_TIMEOUT,
) -> AlertResponse:
    """
    Send a critical alert to the configured Telegram chat.

    Args:
        payload: location, telemetry and risk percentage
        bot_token: defaults to the TELEGRAM_BOT_TOKEN env var
        chat_id: defaults to the TELEGRAM_CHAT_ID env var

    Returns:
        AlertResponse. Delivery failures are reported, never raised.
    """
    bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN")
    chat_id = chat_id or os.getenv("TELEGRAM_CHAT_ID")

    if not bot_token or not chat_id:
        logger.warning(
            "Telegram not configured. Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID."
        )
        return AlertResponse(
            success=False,
            message="Telegram not configured",
            error="Missing BOT_TOKEN or CHAT_ID environment variables",
        )

    try:
        response = requests.post(
            TELEGRAM_API_URL.format(token=bot_token),
            json={
                "chat_id": chat_id,
                "text": format_alert_message(payload),
                "parse_mode": "HTML",
            },
            timeout=timeout,
        )
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Telegram alert for %s failed: %s", payload.location, e)
        return AlertResponse(
            success=False,
            message="Failed to send Telegram alert",
            error=str(e) or "Network error",
        )

    if data.get("ok"):
        logger.info("Critical alert sent for %s", payload.location)
        return AlertResponse(success=True, message="Alert sent successfully to Telegram")

    return AlertResponse(
        success=False,
        message="Failed to send Telegram alert",
        error=data.get("description") or "Unknown error",
    )


def send_test_alert(location: str = "TEST LOCATION", **kwargs) -> AlertResponse:
    """Send a sample critical alert to check the bot configuration."""
    return send_telegram_alert(
        AlertPayload(
            location=location,
            wind=45,
            humidity=90,
            temperature=38,
            risk_percentage=85.5,
        ),
        **kwargs,
    )
