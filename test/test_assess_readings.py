import importlib.util
import os
import tempfile
import unittest

import pandas as pd

SCRIPT_PATH = os.path.join(os.path.dirname(__file__), "..", "scripts", "assess_readings.py")
_module_spec = importlib.util.spec_from_file_location("assess_readings", SCRIPT_PATH)
assess_readings = importlib.util.module_from_spec(_module_spec)
_module_spec.loader.exec_module(assess_readings)


class TestAssessReadings(unittest.TestCase):

    def test_scores_rows(self):
        df = pd.DataFrame(
            {
                "location": ["Calm", "Mild", "Storm"],
                "wind": [0, 16.5, 100],
                "humidity": [0, 50, 100],
                "temperature": [0, 26, 50],
            }
        )

        out = assess_readings.assess_readings(df)

        self.assertEqual(list(out["risk"]), [15.0, 50.0, 85.0])
        self.assertEqual(list(out["status"]), ["Stable", "Caution", "Critical"])

    def test_skips_invalid_rows(self):
        df = pd.DataFrame(
            {
                "location": ["Good", "Text", "Missing"],
                "wind": [0, "windy", 10],
                "humidity": [0, 50, None],
                "temperature": [0, 26, 30],
            }
        )

        with self.assertLogs("assess_readings", level="WARNING"):
            out = assess_readings.assess_readings(df)

        self.assertEqual(list(out["location"]), ["Good"])

    def test_missing_columns(self):
        with self.assertRaises(ValueError):
            assess_readings.assess_readings(pd.DataFrame({"location": ["x"], "wind": [1]}))

    def test_main_writes_csv(self):
        with tempfile.TemporaryDirectory() as tmp:
            input_path = os.path.join(tmp, "readings.csv")
            pd.DataFrame(
                {
                    "location": ["Putrajaya", "Kuching"],
                    "wind": [0, 100],
                    "humidity": [0, 100],
                    "temperature": [0, 50],
                }
            ).to_csv(input_path, index=False)

            self.assertEqual(assess_readings.main([input_path]), 0)

            result = pd.read_csv(os.path.join(tmp, "readings.risk.csv"))
            self.assertEqual(list(result["status"]), ["Stable", "Critical"])

    def test_main_missing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            missing = os.path.join(tmp, "nope.csv")
            self.assertEqual(assess_readings.main([missing]), 1)


if __name__ == '__main__':
    unittest.main()
