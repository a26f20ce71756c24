import argparse
import logging
import os
import sys

import numpy as np
import pandas as pd

from fuzzy_logic import calculate_fuzzy_risk

logger = logging.getLogger("assess_readings")

REQUIRED_COLUMNS = ["location", "wind", "humidity", "temperature"]


def assess_readings(df: pd.DataFrame) -> pd.DataFrame:
    """
    Score every row of a readings table.

    Rows with missing, non-numeric or non-finite readings are skipped.
    Returns the kept rows with extra `risk` and `status` columns.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {', '.join(missing)}")

    readings = df[["wind", "humidity", "temperature"]].apply(pd.to_numeric, errors="coerce")
    valid = np.isfinite(readings).all(axis=1)

    for index in df.index[~valid]:
        logger.warning("Skipping row %s (%s): invalid readings", index, df.at[index, "location"])

    out = df[valid].copy()
    results = [
        calculate_fuzzy_risk(w, h, t)
        for w, h, t in readings[valid].itertuples(index=False)
    ]
    out["risk"] = [r.danger_percentage for r in results]
    out["status"] = [r.status.value for r in results]
    return out


def main(argv=None):
    parser = argparse.ArgumentParser(description="Batch fuzzy risk assessment")
    parser.add_argument("input", help="CSV with location,wind,humidity,temperature")
    parser.add_argument("--output", help="Output CSV (default: <input>.risk.csv)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    output_path = args.output or os.path.splitext(args.input)[0] + ".risk.csv"

    logger.info("Reading from %s", args.input)
    try:
        df = pd.read_csv(args.input)
    except FileNotFoundError:
        logger.error("The file %s was not found.", args.input)
        return 1

    try:
        assessed = assess_readings(df)
    except ValueError as e:
        logger.error("%s", e)
        return 1

    assessed.to_csv(output_path, index=False)
    logger.info(
        "Wrote %d of %d rows to %s (%d critical)",
        len(assessed),
        len(df),
        output_path,
        int((assessed["status"] == "Critical").sum()),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
