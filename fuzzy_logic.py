import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np


# --- Linguistic Terms ---


class Level(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class OutputClass(Enum):
    STABLE = "Stable"
    CAUTION = "Caution"
    CRITICAL = "Critical"

    @property
    def center(self) -> float:
        """Singleton center used by the weighted-average defuzzifier."""
        return OUTPUT_CENTERS[self]


OUTPUT_CENTERS = {
    OutputClass.STABLE: 15.0,
    OutputClass.CAUTION: 50.0,
    OutputClass.CRITICAL: 85.0,
}

# Status bands on the crisp percentage (lower bound inclusive)
CAUTION_THRESHOLD = 35.0
CRITICAL_THRESHOLD = 70.0


def _round_half_up(value: float, digits: int) -> float:
    # Half-up, built-in round() is half-even
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


# --- Membership Functions ---

# Scalar closed forms instead of skfuzzy trapmf/trimf: those sample a fixed
# universe array, while these shoulders saturate over all reals and give the
# same floats for every caller.


def left_trapezoid(x, a, b):
    """Left shoulder: 1 up to a, linear ramp down to 0 at b."""
    if x <= a:
        return 1.0
    if x >= b:
        return 0.0
    return (b - x) / (b - a)


def right_trapezoid(x, a, b):
    """Right shoulder: 0 up to a, linear ramp up to 1 at b."""
    if x <= a:
        return 0.0
    if x >= b:
        return 1.0
    return (x - a) / (b - a)


def triangle(x, a, b, c):
    if x <= a or x >= c:
        return 0.0
    if x <= b:
        return (x - a) / (b - a)
    return (c - x) / (c - b)


@dataclass(frozen=True)
class MembershipTriple:
    low: float
    medium: float
    high: float

    def degree(self, level: Level) -> float:
        if level is Level.LOW:
            return self.low
        if level is Level.MEDIUM:
            return self.medium
        return self.high

    def as_dict(self) -> Dict[str, float]:
        return {"low": self.low, "medium": self.medium, "high": self.high}


# --- Fuzzification ---
# Parameters tuned for a tropical (Malaysian) climate


def fuzzify_wind(wind) -> MembershipTriple:
    # km/h: Calm / Breezy / Gale
    return MembershipTriple(
        low=left_trapezoid(wind, 0, 10),
        medium=triangle(wind, 8, 16.5, 25),
        high=right_trapezoid(wind, 20, 60),
    )


def fuzzify_humidity(humidity) -> MembershipTriple:
    # %: Dry / Moist / Humid
    return MembershipTriple(
        low=left_trapezoid(humidity, 0, 40),
        medium=triangle(humidity, 30, 50, 70),
        high=right_trapezoid(humidity, 60, 100),
    )


def fuzzify_temperature(temperature) -> MembershipTriple:
    # °C: Cold / Optimal / Hot
    return MembershipTriple(
        low=left_trapezoid(temperature, 0, 22),
        medium=triangle(temperature, 20, 26, 32),
        high=right_trapezoid(temperature, 30, 45),
    )


FUZZIFIERS = {
    "wind": fuzzify_wind,
    "humidity": fuzzify_humidity,
    "temperature": fuzzify_temperature,
}

# Chart ranges only, inputs are not clamped to these
DISPLAY_RANGES = {
    "wind": 100.0,
    "humidity": 100.0,
    "temperature": 50.0,
}


def get_membership_samples(variable: str, resolution: int = 100) -> List[Dict[str, float]]:
    """
    Sample the membership functions for charting.

    Args:
        variable: 'wind', 'humidity' or 'temperature'
        resolution: number of intervals, yields resolution + 1 points

    Returns:
        List of dicts {'x', 'low', 'medium', 'high'} from 0 up to the
        top of the variable display range.
    """
    if variable not in FUZZIFIERS:
        raise ValueError(
            f"Unknown variable '{variable}'. Expected one of: {', '.join(FUZZIFIERS)}"
        )
    if resolution < 1:
        raise ValueError(f"Resolution must be at least 1, got {resolution}")

    fuzzify = FUZZIFIERS[variable]
    max_value = DISPLAY_RANGES[variable]

    samples = []
    for i in range(resolution + 1):
        x = (i / resolution) * max_value
        membership = fuzzify(x)
        samples.append({"x": x, **membership.as_dict()})
    return samples


# --- Rule Base ---


@dataclass(frozen=True)
class Rule:
    wind: Level
    humidity: Level
    temperature: Level
    output: OutputClass

    @property
    def description(self) -> str:
        return (
            f"IF Wind={self.wind.value} AND Humidity={self.humidity.value} "
            f"AND Temp={self.temperature.value} THEN {self.output.value}"
        )


_L, _M, _H = Level.LOW, Level.MEDIUM, Level.HIGH
_STABLE, _CAUTION, _CRITICAL = (
    OutputClass.STABLE,
    OutputClass.CAUTION,
    OutputClass.CRITICAL,
)

# Ordered temperature, then wind, then humidity. Order is for display only.
RULES = (
    # Low temperature (cold)
    Rule(_L, _L, _L, _STABLE),
    Rule(_L, _M, _L, _STABLE),
    Rule(_L, _H, _L, _CAUTION),
    Rule(_M, _L, _L, _STABLE),
    Rule(_M, _M, _L, _CAUTION),
    Rule(_M, _H, _L, _CAUTION),
    Rule(_H, _L, _L, _CAUTION),
    Rule(_H, _M, _L, _CAUTION),
    Rule(_H, _H, _L, _CRITICAL),
    # Medium temperature (optimal)
    Rule(_L, _L, _M, _STABLE),
    Rule(_L, _M, _M, _STABLE),
    Rule(_L, _H, _M, _CAUTION),
    Rule(_M, _L, _M, _STABLE),
    Rule(_M, _M, _M, _CAUTION),
    Rule(_M, _H, _M, _CAUTION),
    Rule(_H, _L, _M, _CAUTION),
    Rule(_H, _M, _M, _CRITICAL),
    Rule(_H, _H, _M, _CRITICAL),
    # High temperature (hot)
    Rule(_L, _L, _H, _CAUTION),
    Rule(_L, _M, _H, _CAUTION),
    Rule(_L, _H, _H, _CRITICAL),
    Rule(_M, _L, _H, _CAUTION),
    Rule(_M, _M, _H, _CRITICAL),
    Rule(_M, _H, _H, _CRITICAL),
    Rule(_H, _L, _H, _CRITICAL),
    Rule(_H, _M, _H, _CRITICAL),
    Rule(_H, _H, _H, _CRITICAL),
)


# --- Inference ---


@dataclass(frozen=True)
class RuleResult:
    rule_id: int
    rule: Rule
    firing_strength: float
    active: bool

    @property
    def output(self) -> OutputClass:
        return self.rule.output

    @property
    def description(self) -> str:
        return self.rule.description

    @property
    def inputs(self) -> Dict[str, str]:
        return {
            "wind": self.rule.wind.value,
            "humidity": self.rule.humidity.value,
            "temperature": self.rule.temperature.value,
        }


def evaluate_rules(
    wind_membership: MembershipTriple,
    humidity_membership: MembershipTriple,
    temperature_membership: MembershipTriple,
    rules: Sequence[Rule] = RULES,
) -> List[RuleResult]:
    """
    Firing strength of every rule using AND = MIN.

    Strengths are stored rounded to 3 decimals and aggregation must use
    the rounded values so results stay reproducible.
    """
    results = []
    for index, rule in enumerate(rules):
        strength = min(
            wind_membership.degree(rule.wind),
            humidity_membership.degree(rule.humidity),
            temperature_membership.degree(rule.temperature),
        )
        results.append(
            RuleResult(
                rule_id=index + 1,
                rule=rule,
                firing_strength=_round_half_up(strength, 3),
                active=strength > 0,
            )
        )
    return results


# --- Aggregation ---


@dataclass(frozen=True)
class AggregatedStrengths:
    stable: float = 0.0
    caution: float = 0.0
    critical: float = 0.0

    def strength(self, output_class: OutputClass) -> float:
        if output_class is OutputClass.STABLE:
            return self.stable
        if output_class is OutputClass.CAUTION:
            return self.caution
        return self.critical

    @property
    def total(self) -> float:
        return self.stable + self.caution + self.critical

    def as_dict(self) -> Dict[str, float]:
        return {"stable": self.stable, "caution": self.caution, "critical": self.critical}


def aggregate(rule_results: Iterable[RuleResult]) -> AggregatedStrengths:
    # OR = MAX per output class
    strongest = {output_class: 0.0 for output_class in OutputClass}
    for result in rule_results:
        strongest[result.output] = max(strongest[result.output], result.firing_strength)

    return AggregatedStrengths(
        stable=strongest[OutputClass.STABLE],
        caution=strongest[OutputClass.CAUTION],
        critical=strongest[OutputClass.CRITICAL],
    )


# --- Defuzzification ---


def defuzzify(aggregated: AggregatedStrengths) -> float:
    """Weighted average over the class centers, rounded to 1 decimal."""
    numerator = sum(
        aggregated.strength(output_class) * output_class.center
        for output_class in OutputClass
    )
    denominator = aggregated.total

    # No rule fired at all
    if denominator <= 0:
        return 0.0
    return _round_half_up(numerator / denominator, 1)


def classify_risk(danger_percentage: float) -> OutputClass:
    if danger_percentage < CAUTION_THRESHOLD:
        return OutputClass.STABLE
    if danger_percentage < CRITICAL_THRESHOLD:
        return OutputClass.CAUTION
    return OutputClass.CRITICAL


# --- Result ---


@dataclass(frozen=True)
class FuzzyResult:
    danger_percentage: float
    status: OutputClass
    wind_membership: MembershipTriple
    humidity_membership: MembershipTriple
    temperature_membership: MembershipTriple
    fired_rules: Tuple[RuleResult, ...]
    aggregated_strengths: AggregatedStrengths

    @property
    def active_rules(self) -> List[RuleResult]:
        return [result for result in self.fired_rules if result.active]

    def sorted_rules(self) -> List[RuleResult]:
        """Rules by descending firing strength, for display."""
        return sorted(self.fired_rules, key=lambda r: r.firing_strength, reverse=True)

    def to_dict(self) -> dict:
        return {
            "danger_percentage": self.danger_percentage,
            "status": self.status.value,
            "wind_membership": self.wind_membership.as_dict(),
            "humidity_membership": self.humidity_membership.as_dict(),
            "temperature_membership": self.temperature_membership.as_dict(),
            "fired_rules": [
                {
                    "rule_id": r.rule_id,
                    "description": r.description,
                    "inputs": r.inputs,
                    "output": r.output.value,
                    "firing_strength": r.firing_strength,
                    "active": r.active,
                }
                for r in self.fired_rules
            ],
            "aggregated_strengths": self.aggregated_strengths.as_dict(),
        }


class FuzzyRiskEngine:
    def __init__(self, rules: Sequence[Rule] = RULES):
        self.rules = tuple(rules)

    def calculate(self, wind, humidity, temperature) -> FuzzyResult:
        """
        Run the full Mamdani pipeline on three crisp readings.
        """
        readings = {"wind": wind, "humidity": humidity, "temperature": temperature}
        for name, value in readings.items():
            if not np.isfinite(value):
                raise ValueError(f"{name} must be a finite number, got {value!r}")

        # 1. Fuzzification
        wind_membership = fuzzify_wind(wind)
        humidity_membership = fuzzify_humidity(humidity)
        temperature_membership = fuzzify_temperature(temperature)

        # 2. Rule evaluation (MIN)
        fired_rules = evaluate_rules(
            wind_membership,
            humidity_membership,
            temperature_membership,
            self.rules,
        )

        # 3. Aggregation (MAX)
        aggregated = aggregate(fired_rules)

        # 4. Defuzzification (weighted average)
        danger_percentage = defuzzify(aggregated)

        return FuzzyResult(
            danger_percentage=danger_percentage,
            status=classify_risk(danger_percentage),
            wind_membership=wind_membership,
            humidity_membership=humidity_membership,
            temperature_membership=temperature_membership,
            fired_rules=tuple(fired_rules),
            aggregated_strengths=aggregated,
        )

    def predict(self, wind, humidity, temperature):
        result = self.calculate(wind, humidity, temperature)
        return result.danger_percentage, result.status.value


fuzzy_engine = FuzzyRiskEngine()


def calculate_fuzzy_risk(wind, humidity, temperature) -> FuzzyResult:
    return fuzzy_engine.calculate(wind, humidity, temperature)
