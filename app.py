import logging
from datetime import datetime

import gradio as gr
import plotly.graph_objects as go

import utils
from fuzzy_logic import (
    CAUTION_THRESHOLD,
    CRITICAL_THRESHOLD,
    DISPLAY_RANGES,
    RULES,
    calculate_fuzzy_risk,
)
from telegram_service import AlertPayload, send_telegram_alert, should_alert

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    "Stable": "#10b981",
    "Caution": "#f59e0b",
    "Critical": "#f43f5e",
}

LEVEL_COLORS = {
    "low": STATUS_COLORS["Stable"],
    "medium": STATUS_COLORS["Caution"],
    "high": STATUS_COLORS["Critical"],
}

TERM_LABELS = {
    "wind": {"low": "Calm", "medium": "Breezy", "high": "Gale"},
    "humidity": {"low": "Dry", "medium": "Moist", "high": "Humid"},
    "temperature": {"low": "Cold", "medium": "Optimal", "high": "Hot"},
}

AXIS_TITLES = {
    "wind": "Wind Speed (km/h)",
    "humidity": "Humidity (%)",
    "temperature": "Temperature (°C)",
}

RULE_HEADERS = ["#", "Wind", "Humidity", "Temp", "Output", "Strength", "Active"]

CRITICAL_BANNER = (
    "### 🚨 CRITICAL ALERT - {location}\n"
    "Danger level **{risk:.1f}%**. Environmental conditions are hazardous. "
    "UAV/Drone operations NOT recommended. Outdoor activities should be suspended."
)


# --- Charts ---


def build_gauge(danger_percentage, status):
    fig = go.Figure(
        go.Indicator(
            mode="gauge+number",
            value=danger_percentage,
            number={"suffix": "%", "valueformat": ".1f"},
            title={"text": status.upper()},
            gauge={
                "axis": {"range": [0, 100]},
                "bar": {"color": STATUS_COLORS[status]},
                "steps": [
                    {"range": [0, CAUTION_THRESHOLD], "color": "rgba(16,185,129,0.15)"},
                    {"range": [CAUTION_THRESHOLD, CRITICAL_THRESHOLD], "color": "rgba(245,158,11,0.15)"},
                    {"range": [CRITICAL_THRESHOLD, 100], "color": "rgba(244,63,94,0.15)"},
                ],
            },
        )
    )
    fig.update_layout(height=280, margin=dict(l=30, r=30, t=50, b=10))
    return fig


def build_membership_chart(variable, current_value, membership):
    samples = utils.get_membership_chart_data(variable, 100)
    labels = TERM_LABELS[variable]

    fig = go.Figure()
    for level in ("low", "medium", "high"):
        degree = getattr(membership, level)
        fig.add_trace(
            go.Scatter(
                x=samples["x"],
                y=samples[level],
                mode="lines",
                fill="tozeroy",
                line=dict(color=LEVEL_COLORS[level], width=2),
                name=f"{labels[level]} ({degree * 100:.0f}%)",
            )
        )

    # Current reading
    fig.add_vline(x=current_value, line=dict(color="white", width=2, dash="dash"))

    fig.update_layout(
        xaxis_title=AXIS_TITLES[variable],
        yaxis_title="Membership",
        xaxis=dict(range=[0, DISPLAY_RANGES[variable]], zeroline=False),
        yaxis=dict(range=[0, 1.05], zeroline=False),
        showlegend=True,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        height=260,
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig


def build_station_map(grid, focus=None):
    fig = go.Figure()

    for status, color in STATUS_COLORS.items():
        subset = grid[grid["status"] == status]
        if subset.empty:
            continue
        fig.add_trace(
            go.Scattergeo(
                lat=subset["lat"],
                lon=subset["lng"],
                text=[
                    f"{row.name} ({row.location})<br>{row.risk:.1f}% {row.status}"
                    for row in subset.itertuples()
                ],
                mode="markers+text",
                textposition="top center",
                marker=dict(size=14, color=color, line=dict(width=2, color="white")),
                name=status,
            )
        )

    center, scale = dict(lat=4.0, lon=109.5), 6
    if focus is not None:
        selected = grid[grid["id"] == focus]
        if not selected.empty:
            center = dict(lat=selected.iloc[0]["lat"], lon=selected.iloc[0]["lng"])
            scale = 20

    fig.update_geos(
        scope="asia",
        center=center,
        projection_scale=scale,
        showcountries=True,
        showland=True,
    )
    fig.update_layout(
        height=450,
        margin=dict(l=0, r=0, t=10, b=0),
        legend=dict(orientation="h", yanchor="bottom", y=1.0, xanchor="right", x=1),
    )
    return fig


def rules_table(result):
    rows = []
    for rule in result.sorted_rules():
        rows.append(
            [
                rule.rule_id,
                rule.inputs["wind"],
                rule.inputs["humidity"],
                rule.inputs["temperature"],
                rule.output.value,
                rule.firing_strength,
                "✓" if rule.active else "",
            ]
        )
    return rows


def aggregated_table(result):
    aggregated = result.aggregated_strengths
    return [
        ["Stable", aggregated.stable],
        ["Caution", aggregated.caution],
        ["Critical", aggregated.critical],
    ]


# --- The Lab ---


def run_lab(wind, humidity, temperature):
    try:
        result = calculate_fuzzy_risk(wind, humidity, temperature)
    except Exception as e:
        logger.exception("Lab evaluation failed")
        return None, f"Error: {str(e)}", None, None, None, [], [], ""

    status = result.status.value
    active_count = f"**{len(result.active_rules)}/{len(RULES)} Active**"

    return (
        build_gauge(result.danger_percentage, status),
        f"{status} ({result.danger_percentage:.1f}%)",
        build_membership_chart("wind", wind, result.wind_membership),
        build_membership_chart("humidity", humidity, result.humidity_membership),
        build_membership_chart("temperature", temperature, result.temperature_membership),
        aggregated_table(result),
        rules_table(result),
        active_count,
    )


# --- Simulator ---


def fetch_live(station_id):
    try:
        station = utils.get_station(station_id)
        weather = utils.fetch_weather_data(station)
    except Exception as e:
        logger.exception("Live fetch failed")
        return None, gr.update(), gr.update(), gr.update(), f"Error: {str(e)}"

    live = {
        "station": station.name,
        "wind": weather.wind_speed,
        "humidity": weather.humidity,
        "temperature": weather.temperature,
    }
    source = "simulated" if weather.simulated else "AccuWeather"
    summary = (
        f"**{station.name}** ({station.location}) - {weather.forecast}  \n"
        f"💨 {weather.wind_speed} km/h · 💧 {weather.humidity:.0f} % · "
        f"🌡️ {weather.temperature} °C  \n"
        f"_{source}, {weather.last_updated:%H:%M:%S}_"
    )

    return (
        live,
        round(weather.wind_speed),
        round(weather.humidity),
        round(weather.temperature),
        summary,
    )


def reset_to_live(live):
    if not live:
        return gr.update(), gr.update(), gr.update()
    return round(live["wind"]), round(live["humidity"]), round(live["temperature"])


def _delta(sim, live_value):
    delta = sim - live_value
    arrow = "▲" if delta > 0 else "▼" if delta < 0 else "="
    return f"{arrow} {delta:+.1f}"


def location_name(live):
    # Stays "Simulator" until a station is fetched
    if not live:
        return "Simulator"
    return live.get("station") or "Unknown Location"


def run_simulation(wind, humidity, temperature, live):
    try:
        sim_result = calculate_fuzzy_risk(wind, humidity, temperature)
    except Exception as e:
        logger.exception("Simulation failed")
        return None, f"Error: {str(e)}", "", gr.update(visible=False)

    comparison = "_Fetch live data to compare against a station._"
    if live:
        live_result = calculate_fuzzy_risk(live["wind"], live["humidity"], live["temperature"])
        comparison = "\n".join(
            [
                "| | Live | Simulated | Delta |",
                "|---|---|---|---|",
                f"| Wind (km/h) | {live['wind']} | {wind} | {_delta(wind, live['wind'])} |",
                f"| Humidity (%) | {live['humidity']:.0f} | {humidity} | {_delta(humidity, live['humidity'])} |",
                f"| Temp (°C) | {live['temperature']} | {temperature} | {_delta(temperature, live['temperature'])} |",
                f"| Risk (%) | {live_result.danger_percentage:.1f} | {sim_result.danger_percentage:.1f} "
                f"| {_delta(sim_result.danger_percentage, live_result.danger_percentage)} |",
                f"| Status | {live_result.status.value} | {sim_result.status.value} | |",
            ]
        )

    banner = gr.update(visible=False)
    if should_alert(sim_result):
        banner = gr.update(
            visible=True,
            value=CRITICAL_BANNER.format(
                location=location_name(live), risk=sim_result.danger_percentage
            ),
        )

    status = sim_result.status.value
    return (
        build_gauge(sim_result.danger_percentage, status),
        f"{status} ({sim_result.danger_percentage:.1f}%)",
        comparison,
        banner,
    )


def send_alert(wind, humidity, temperature, live):
    try:
        result = calculate_fuzzy_risk(wind, humidity, temperature)
    except Exception as e:
        return f"Error: {str(e)}"

    response = send_telegram_alert(
        AlertPayload(
            location=location_name(live),
            wind=wind,
            humidity=humidity,
            temperature=temperature,
            risk_percentage=result.danger_percentage,
        )
    )
    if response.success:
        return "✅ Test Alert Sent! Check your Telegram for the test message."
    return f"❌ Test Failed: {response.error or 'Could not send test alert. Check your .env configuration.'}"


# --- Live Sentinel ---


def refresh_stations():
    try:
        weather_by_station = utils.fetch_all_stations_data()
        grid = utils.build_station_grid(weather_by_station)
    except Exception as e:
        logger.exception("Station refresh failed")
        return None, None, f"🔴 OFFLINE - Error: {str(e)}", None

    table = grid[["name", "location", "wind", "humidity", "temperature", "risk", "status", "forecast"]]
    last_sync = f"🟢 CONNECTED - last sync {datetime.now():%H:%M:%S}"
    return build_station_map(grid), table, last_sync, grid


def station_detail(station_id, grid):
    if grid is None or grid.empty:
        return None, "_No station data yet._", gr.update()

    selected = grid[grid["id"] == station_id]
    if selected.empty:
        return None, "_No reading for this station._", build_station_map(grid)

    row = selected.iloc[0]
    source = "simulated" if row["simulated"] else "AccuWeather"
    details = (
        f"### {row['name']} ({row['location']})\n"
        f"**Status: {row['status'].upper()} ({row['risk']:.1f}%)**\n\n"
        f"| Sensor | Reading |\n"
        f"|---|---|\n"
        f"| 💨 Wind Speed | {row['wind']} km/h |\n"
        f"| 💧 Humidity | {row['humidity']:.0f} % |\n"
        f"| 🌡️ Temperature | {row['temperature']} °C |\n\n"
        f"**Forecast:** {row['forecast']}  \n"
        f"_{source}_"
    )
    return (
        build_gauge(row["risk"], row["status"]),
        details,
        build_station_map(grid, focus=station_id),
    )


DOCUMENTATION = """
## How SkySentinel works

SkySentinel scores atmospheric risk for drone and outdoor operations with a
Mamdani fuzzy inference system.

1. **Fuzzification** - each reading gets Low / Medium / High membership
   degrees (0-1) from trapezoid and triangle functions tuned for a tropical
   climate. Adjacent terms overlap on purpose.
2. **Rule evaluation** - 27 IF-THEN rules cover every Wind × Humidity ×
   Temperature combination. A rule fires with the MIN of its three degrees.
3. **Aggregation** - rules sharing an output (Stable, Caution, Critical) are
   combined with MAX.
4. **Defuzzification** - weighted average over the output centers
   (Stable = 15, Caution = 50, Critical = 85).

| Risk | Status |
|---|---|
| < 35% | Stable |
| 35% - 69.9% | Caution |
| ≥ 70% | Critical |

A Critical status can be pushed to Telegram (set `TELEGRAM_BOT_TOKEN` and
`TELEGRAM_CHAT_ID`). Live readings come from AccuWeather when
`ACCUWEATHER_API_KEY` is set, otherwise from simulated tropical data.
"""


# --- Layout UI ---

station_choices = [(f"{s.name} ({s.location})", s.id) for s in utils.MALAYSIA_STATIONS]

with gr.Blocks(title="SkySentinel") as demo:
    gr.Markdown("## SkySentinel - Fuzzy Atmospheric Risk Command")

    with gr.Tabs():
        with gr.TabItem("🧪 The Lab"):
            with gr.Row():
                with gr.Column(scale=1):
                    gr.Markdown("### 🎛️ Input Parameters")
                    with gr.Group():
                        lab_wind = gr.Slider(0, 100, value=15, step=1, label="Wind Speed (km/h)")
                        lab_humidity = gr.Slider(0, 100, value=50, step=1, label="Humidity (%)")
                        lab_temperature = gr.Slider(0, 50, value=28, step=1, label="Temperature (°C)")

                    lab_gauge = gr.Plot(label="Danger Level")
                    lab_status = gr.Label(label="Status", num_top_classes=1)
                    lab_aggregated = gr.Dataframe(
                        headers=["Output", "Strength"],
                        datatype=["str", "number"],
                        label="Aggregated Strengths (MAX)",
                        interactive=False,
                    )

                with gr.Column(scale=2):
                    gr.Markdown("### 📈 Membership Functions")
                    lab_wind_chart = gr.Plot(label="Wind")
                    lab_humidity_chart = gr.Plot(label="Humidity")
                    lab_temperature_chart = gr.Plot(label="Temperature")

                    gr.Markdown("### 📜 Logic Rules")
                    lab_active = gr.Markdown()
                    lab_rules = gr.Dataframe(
                        headers=RULE_HEADERS,
                        datatype=["number", "str", "str", "str", "str", "number", "str"],
                        interactive=False,
                    )

        with gr.TabItem("🎚️ Simulator"):
            live_state = gr.State(None)
            with gr.Row():
                with gr.Column(scale=1):
                    gr.Markdown("### 📡 MET Control")
                    sim_station = gr.Dropdown(
                        choices=station_choices, value="putrajaya", label="Active Station"
                    )
                    with gr.Row():
                        btn_fetch = gr.Button("🔄 Fetch Live Data", variant="primary")
                        btn_reset = gr.Button("↩️ Reset to Live", variant="secondary")
                    sim_live_summary = gr.Markdown("_No live data yet._")

                    gr.Markdown("### 🎛️ Simulation")
                    with gr.Group():
                        sim_wind = gr.Slider(0, 100, value=0, step=1, label="Wind Speed (km/h)")
                        sim_humidity = gr.Slider(0, 100, value=0, step=1, label="Humidity (%)")
                        sim_temperature = gr.Slider(0, 50, value=0, step=1, label="Temperature (°C)")

                    btn_alert = gr.Button("📨 Send Test Alert", variant="secondary")
                    sim_alert_msg = gr.Textbox(label="Telegram", interactive=False)

                with gr.Column(scale=2):
                    sim_banner = gr.Markdown(visible=False)
                    sim_gauge = gr.Plot(label="Simulated Danger Level")
                    sim_status = gr.Label(label="Simulated Status", num_top_classes=1)
                    sim_comparison = gr.Markdown()

        with gr.TabItem("🛰️ Live Sentinel"):
            grid_state = gr.State(None)
            with gr.Row():
                btn_refresh = gr.Button("🔄 Fetch Live Data", variant="primary")
                live_sync = gr.Markdown("🔴 OFFLINE")
            with gr.Row():
                with gr.Column(scale=1):
                    live_station = gr.Dropdown(
                        choices=station_choices, value="putrajaya", label="Active Station"
                    )
                    live_details = gr.Markdown("_No station data yet._")
                    live_gauge = gr.Plot(label="SkySentinel Risk Analysis")
                with gr.Column(scale=2):
                    live_map = gr.Plot(label="Malaysia Stations")
            live_grid = gr.Dataframe(label="Station Grid", interactive=False)

        with gr.TabItem("📖 Documentation"):
            gr.Markdown(DOCUMENTATION)

    lab_inputs = [lab_wind, lab_humidity, lab_temperature]
    lab_outputs = [
        lab_gauge,
        lab_status,
        lab_wind_chart,
        lab_humidity_chart,
        lab_temperature_chart,
        lab_aggregated,
        lab_rules,
        lab_active,
    ]
    for slider in lab_inputs:
        slider.change(fn=run_lab, inputs=lab_inputs, outputs=lab_outputs)
    demo.load(fn=run_lab, inputs=lab_inputs, outputs=lab_outputs)

    sim_inputs = [sim_wind, sim_humidity, sim_temperature, live_state]
    sim_outputs = [sim_gauge, sim_status, sim_comparison, sim_banner]
    for slider in (sim_wind, sim_humidity, sim_temperature):
        slider.change(fn=run_simulation, inputs=sim_inputs, outputs=sim_outputs)
    demo.load(fn=run_simulation, inputs=sim_inputs, outputs=sim_outputs)

    btn_fetch.click(
        fn=fetch_live,
        inputs=[sim_station],
        outputs=[live_state, sim_wind, sim_humidity, sim_temperature, sim_live_summary],
    ).then(fn=run_simulation, inputs=sim_inputs, outputs=sim_outputs)

    btn_reset.click(
        fn=reset_to_live,
        inputs=[live_state],
        outputs=[sim_wind, sim_humidity, sim_temperature],
    )

    btn_alert.click(fn=send_alert, inputs=sim_inputs, outputs=[sim_alert_msg])

    live_outputs = [live_map, live_grid, live_sync, grid_state]
    detail_inputs = [live_station, grid_state]
    detail_outputs = [live_gauge, live_details, live_map]
    btn_refresh.click(fn=refresh_stations, outputs=live_outputs).then(
        fn=station_detail, inputs=detail_inputs, outputs=detail_outputs
    )
    demo.load(fn=refresh_stations, outputs=live_outputs).then(
        fn=station_detail, inputs=detail_inputs, outputs=detail_outputs
    )
    live_station.change(fn=station_detail, inputs=detail_inputs, outputs=detail_outputs)

if __name__ == "__main__":
    import os
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    share_link = False
    server_port = int(os.getenv("PORT", 7860))

    parser = argparse.ArgumentParser()
    parser.add_argument("--share", action="store_true", help="Create a public Gradio link")
    args = parser.parse_args()
    if args.share:
        share_link = True

    demo.launch(
        server_name="127.0.0.1",
        server_port=server_port,
        theme=gr.themes.Default(),
        share=share_link,
    )
