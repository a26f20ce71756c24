import unittest
from datetime import datetime
from unittest import mock

import plotly.graph_objects as go

import app
from fuzzy_logic import calculate_fuzzy_risk
from telegram_service import AlertResponse
from utils import WeatherData, build_station_grid, get_station

LIVE = {"station": "Penang", "wind": 24.1, "humidity": 84.0, "temperature": 31.2}


class TestLab(unittest.TestCase):

    def test_run_lab_outputs(self):
        gauge, status, wind_chart, humidity_chart, temp_chart, aggregated, rules, active = app.run_lab(
            16.5, 50, 26
        )

        self.assertIsInstance(gauge, go.Figure)
        self.assertIsInstance(wind_chart, go.Figure)
        self.assertEqual(len(humidity_chart.data), 3)
        self.assertEqual(status, "Caution (50.0%)")
        self.assertEqual(aggregated, [["Stable", 0.0], ["Caution", 1.0], ["Critical", 0.0]])
        self.assertEqual(len(rules), 27)
        self.assertEqual(rules[0][0], 14)
        self.assertEqual(active, "**1/27 Active**")

    def test_run_lab_reports_errors(self):
        outputs = app.run_lab(float("nan"), 50, 26)
        self.assertTrue(outputs[1].startswith("Error:"))

    def test_rules_table_sorted_by_strength(self):
        rows = app.rules_table(calculate_fuzzy_risk(9, 50, 26))
        self.assertEqual([row[0] for row in rows[:2]], [14, 11])
        self.assertEqual(rows[0][6], "✓")
        self.assertEqual(rows[-1][6], "")

    def test_membership_chart_legend_shows_degree(self):
        result = calculate_fuzzy_risk(9, 50, 26)
        fig = app.build_membership_chart("wind", 9, result.wind_membership)
        self.assertEqual([trace.name for trace in fig.data], ["Calm (10%)", "Breezy (12%)", "Gale (0%)"])


class TestSimulator(unittest.TestCase):

    def test_location_name(self):
        self.assertEqual(app.location_name(None), "Simulator")
        self.assertEqual(app.location_name(LIVE), "Penang")

    def test_reset_to_live(self):
        self.assertEqual(app.reset_to_live(LIVE), (24, 84, 31))

    def test_simulation_without_live_data(self):
        _, status, comparison, _ = app.run_simulation(0, 0, 0, None)
        self.assertEqual(status, "Stable (15.0%)")
        self.assertIn("Fetch live data", comparison)

    def test_simulation_compares_with_live(self):
        _, status, comparison, _ = app.run_simulation(100, 100, 50, LIVE)
        self.assertEqual(status, "Critical (85.0%)")
        self.assertIn("| Wind (km/h) | 24.1 | 100 |", comparison)
        self.assertIn("| Status |", comparison)

    @mock.patch("app.send_telegram_alert")
    def test_send_alert_uses_simulated_values(self, mock_send):
        mock_send.return_value = AlertResponse(success=True, message="ok")

        message = app.send_alert(100, 100, 50, None)

        payload = mock_send.call_args[0][0]
        self.assertEqual(payload.location, "Simulator")
        self.assertEqual(payload.risk_percentage, 85.0)
        self.assertIn("Test Alert Sent", message)

    @mock.patch("app.send_telegram_alert")
    def test_send_alert_failure(self, mock_send):
        mock_send.return_value = AlertResponse(
            success=False, message="Telegram not configured", error="Missing BOT_TOKEN"
        )
        message = app.send_alert(10, 10, 10, LIVE)
        self.assertIn("Missing BOT_TOKEN", message)
        self.assertEqual(mock_send.call_args[0][0].location, "Penang")


class TestLiveSentinel(unittest.TestCase):

    def setUp(self):
        self.weather = {
            "putrajaya": WeatherData(0, 0, 0, "Clear", get_station("putrajaya"), simulated=True),
            "kk": WeatherData(50, 100, 100, "Storm", get_station("kk"), datetime(2024, 1, 1)),
        }

    @mock.patch("app.utils.fetch_all_stations_data")
    def test_refresh_stations(self, mock_fetch):
        mock_fetch.return_value = self.weather

        fig, table, last_sync, grid = app.refresh_stations()

        self.assertIsInstance(fig, go.Figure)
        self.assertEqual(list(table["name"]), ["Putrajaya", "Kota Kinabalu"])
        self.assertTrue(last_sync.startswith("🟢 CONNECTED"))
        self.assertEqual(list(grid["id"]), ["putrajaya", "kk"])

    @mock.patch("app.utils.fetch_all_stations_data")
    def test_refresh_stations_failure(self, mock_fetch):
        mock_fetch.side_effect = RuntimeError("boom")

        fig, table, last_sync, grid = app.refresh_stations()

        self.assertIsNone(fig)
        self.assertIsNone(grid)
        self.assertIn("OFFLINE", last_sync)

    def test_station_detail(self):
        grid = build_station_grid(self.weather)

        gauge, details, fig = app.station_detail("kk", grid)

        self.assertIsInstance(gauge, go.Figure)
        self.assertEqual(gauge.data[0].value, 85.0)
        self.assertIn("CRITICAL (85.0%)", details)
        self.assertIn("Storm", details)
        self.assertAlmostEqual(fig.layout.geo.center.lat, 5.9804)
        self.assertAlmostEqual(fig.layout.geo.center.lon, 116.0735)

    def test_station_detail_marks_simulated_data(self):
        grid = build_station_grid(self.weather)
        _, details, _ = app.station_detail("putrajaya", grid)
        self.assertIn("STABLE (15.0%)", details)
        self.assertIn("_simulated_", details)

    def test_station_detail_without_data(self):
        gauge, details, _ = app.station_detail("kk", None)
        self.assertIsNone(gauge)
        self.assertIn("No station data", details)

    def test_station_detail_missing_station(self):
        grid = build_station_grid(self.weather)
        gauge, details, fig = app.station_detail("penang", grid)
        self.assertIsNone(gauge)
        self.assertIn("No reading", details)
        self.assertEqual(fig.layout.geo.center.lat, 4.0)


if __name__ == '__main__':
    unittest.main()
