from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Sequence

import pandas as pd

from glicemia.models import ReadingRecord
from glicemia.validation import parse_glucose_text

HYPO_BELOW = 70
OPTIMAL_MAX = 130
MODERATE_MAX = 180


class StatusBand(str, Enum):
    HYPOGLYCEMIA = "hipoglicemia"
    OPTIMAL = "ótimo"
    MODERATE = "moderado"
    HYPERGLYCEMIA = "hiperglicemia"
    INFORMATIONAL = "info"


@dataclass(frozen=True)
class BandStyle:
    label: str
    color: str
    background: str
    level: str  # streamlit message function name


BAND_STYLES = {
    StatusBand.HYPOGLYCEMIA: BandStyle("Hipoglicemia", "#2563eb", "#eff6ff", "info"),
    StatusBand.OPTIMAL: BandStyle("Ótimo", "#16a34a", "#f0fdf4", "success"),
    StatusBand.MODERATE: BandStyle("Moderado", "#a16207", "#fefce8", "warning"),
    StatusBand.HYPERGLYCEMIA: BandStyle("Hiperglicemia", "#dc2626", "#fef2f2", "error"),
    StatusBand.INFORMATIONAL: BandStyle("Sem dados", "#4b5563", "#f3f4f6", "info"),
}

BAND_ADVICE = {
    StatusBand.HYPOGLYCEMIA: (
        "Glicemia baixa. Consuma carboidrato de ação rápida, meça novamente em 15 minutos "
        "e procure seu médico se persistir."
    ),
    StatusBand.OPTIMAL: "Valor dentro da faixa ideal. Continue com o plano indicado pelo seu médico.",
    StatusBand.MODERATE: "Valor moderadamente elevado. Hidrate-se e revise as orientações do seu tratamento.",
    StatusBand.HYPERGLYCEMIA: (
        "Glicemia elevada. Entre em contato com seu médico e procure atendimento se tiver sintomas."
    ),
    StatusBand.INFORMATIONAL: "Nenhum registro encontrado no período selecionado.",
}


@dataclass(frozen=True)
class StatisticsSummary:
    count: int
    average: float
    minimum: float
    maximum: float
    status: StatusBand


EMPTY_SUMMARY = StatisticsSummary(0, 0.0, 0.0, 0.0, StatusBand.INFORMATIONAL)


def classify(value: float) -> StatusBand:
    if value < HYPO_BELOW:
        return StatusBand.HYPOGLYCEMIA
    if value <= OPTIMAL_MAX:
        return StatusBand.OPTIMAL
    if value <= MODERATE_MAX:
        return StatusBand.MODERATE
    return StatusBand.HYPERGLYCEMIA


def band_style(band: StatusBand) -> BandStyle:
    return BAND_STYLES[band]


def band_advice(band: StatusBand) -> str:
    return BAND_ADVICE[band]


def round_half_up(value: float, places: int) -> float:
    """Round exact halves away from zero, on the float's exact binary value."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(float(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def summarize(records: Sequence[ReadingRecord]) -> StatisticsSummary:
    """Count, mean, extrema and status band of the parseable readings.

    Readings whose value is not a finite number are left out; the status
    band is the classification of the unrounded mean.
    """
    if not records:
        return EMPTY_SUMMARY

    values = pd.Series([parse_glucose_text(r.glycemia_value) for r in records], dtype="float64").dropna()
    if values.empty:
        return EMPTY_SUMMARY

    # fsum keeps the mean independent of input order
    mean = math.fsum(values) / values.size
    return StatisticsSummary(
        count=int(values.size),
        average=round_half_up(mean, 1),
        minimum=round_half_up(values.min(), 0),
        maximum=round_half_up(values.max(), 0),
        status=classify(mean),
    )
