"""
Validated population inputs and the per-call decision state.

``ProbabilityVector`` and ``AuxiliaryMatrix`` are built once from caller
input and are read-only afterwards. ``DecisionState`` is the mutable working
copy a sampler owns for the duration of one call.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, TypeAlias

import numpy as np
import pandas as pd

from .constants import EPS_DEFAULT
from .utils import align_indices
from .validation import ErrorKind, ValidationError

ProbabilityInput: TypeAlias = pd.Series | np.ndarray | Sequence[float]
MatrixInput: TypeAlias = pd.DataFrame | pd.Series | np.ndarray | Sequence[Sequence[float]]


def _readonly(values: np.ndarray) -> np.ndarray:
    values = np.array(values, dtype=float, copy=True)
    values.flags.writeable = False
    return values


@dataclass(frozen=True, slots=True)
class ProbabilityVector:
    """Prescribed first-order inclusion probabilities, one per unit."""

    values: np.ndarray  # (N,) read-only, each in (0, 1]
    index: pd.Index  # caller labels (RangeIndex when none given)

    @classmethod
    def from_input(cls, probabilities: ProbabilityInput | ProbabilityVector) -> ProbabilityVector:
        """
        Validate ``probabilities`` and wrap them.

        Raises
        ------
        ValidationError
            ``EMPTY_POPULATION`` for zero length, ``MISMATCHED_DIMENSIONS`` for
            anything that is not one-dimensional, ``NON_FINITE`` for NaN/inf and
            ``OUT_OF_RANGE`` for values outside ``(0, 1]``.
        """
        if isinstance(probabilities, ProbabilityVector):
            return probabilities

        if isinstance(probabilities, pd.Series):
            index = probabilities.index
            raw = probabilities.to_numpy()
        else:
            index = None
            raw = probabilities

        try:
            values = np.asarray(raw, dtype=float)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"probabilities must be numeric: {e}",
                kind=ErrorKind.MISMATCHED_DIMENSIONS,
            ) from e

        if values.ndim != 1:
            raise ValidationError(
                f"probabilities must be one-dimensional, got shape {values.shape}",
                kind=ErrorKind.MISMATCHED_DIMENSIONS,
            )
        if values.size == 0:
            raise ValidationError(
                "population is empty", kind=ErrorKind.EMPTY_POPULATION
            )
        if not np.all(np.isfinite(values)):
            bad = int(np.flatnonzero(~np.isfinite(values))[0])
            raise ValidationError(
                f"probability of unit {bad} is not finite",
                kind=ErrorKind.NON_FINITE,
            )
        outside = (values <= 0.0) | (values > 1.0)
        if np.any(outside):
            bad = int(np.flatnonzero(outside)[0])
            raise ValidationError(
                f"probability of unit {bad} is {values[bad]}, must be in (0, 1]",
                kind=ErrorKind.OUT_OF_RANGE,
            )

        if index is None:
            index = pd.RangeIndex(values.size)
        return cls(values=_readonly(values), index=index)

    def __len__(self) -> int:
        return int(self.values.size)

    @property
    def expected_size(self) -> float:
        """Expected sample size, i.e. the sum of the probabilities."""
        return float(self.values.sum())

    def to_series(self) -> pd.Series:
        return pd.Series(self.values, index=self.index, name="pi")


@dataclass(frozen=True, slots=True)
class AuxiliaryMatrix:
    """Unit-indexed numeric table (coordinates and/or balancing variables)."""

    values: np.ndarray  # (N, d) read-only
    columns: pd.Index

    @classmethod
    def from_input(cls, data: MatrixInput | AuxiliaryMatrix, name: str = "auxiliaries") -> AuxiliaryMatrix:
        """
        Validate a row-major numeric table.

        A one-dimensional input is read as a single column.
        """
        if isinstance(data, AuxiliaryMatrix):
            return data

        columns: pd.Index | None = None
        if isinstance(data, pd.DataFrame):
            columns = data.columns
            raw: Any = data.to_numpy()
        elif isinstance(data, pd.Series):
            columns = pd.Index([data.name if data.name is not None else 0])
            raw = data.to_numpy()
        else:
            raw = data
            if isinstance(raw, Sequence) and len(raw) > 0:
                lengths = {len(row) if isinstance(row, Sequence) else -1 for row in raw}
                if len(lengths) > 1:
                    raise ValidationError(
                        f"{name} rows have differing lengths",
                        kind=ErrorKind.MISMATCHED_DIMENSIONS,
                    )

        try:
            values = np.asarray(raw, dtype=float)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"{name} must be a numeric table: {e}",
                kind=ErrorKind.MISMATCHED_DIMENSIONS,
            ) from e

        if values.ndim == 1:
            values = values[:, None]
        if values.ndim != 2:
            raise ValidationError(
                f"{name} must be two-dimensional, got shape {values.shape}",
                kind=ErrorKind.MISMATCHED_DIMENSIONS,
            )
        if values.shape[0] == 0:
            raise ValidationError(
                f"{name} has no rows", kind=ErrorKind.EMPTY_POPULATION
            )
        if values.shape[1] == 0:
            raise ValidationError(
                f"{name} must have at least one column",
                kind=ErrorKind.MISMATCHED_DIMENSIONS,
            )
        finite = np.isfinite(values)
        if not np.all(finite):
            row = int(np.flatnonzero(~finite.all(axis=1))[0])
            raise ValidationError(
                f"{name} row {row} contains a non-finite value",
                kind=ErrorKind.NON_FINITE,
            )

        if columns is None:
            columns = pd.RangeIndex(values.shape[1])
        return cls(values=_readonly(values), columns=columns)

    @property
    def n_units(self) -> int:
        return int(self.values.shape[0])

    @property
    def n_dims(self) -> int:
        return int(self.values.shape[1])


def check_population(
    probabilities: ProbabilityInput | ProbabilityVector,
    auxiliaries: MatrixInput | AuxiliaryMatrix,
    name: str = "auxiliaries",
) -> tuple[ProbabilityVector, AuxiliaryMatrix]:
    """Validate both inputs and make sure they describe the same units."""
    pv = ProbabilityVector.from_input(probabilities)
    am = AuxiliaryMatrix.from_input(auxiliaries, name=name)
    if not align_indices(probabilities, auxiliaries):  # type: ignore[arg-type]
        raise ValidationError(
            f"{name}.index must align with probabilities.index",
            kind=ErrorKind.MISMATCHED_DIMENSIONS,
        )
    if am.n_units != len(pv):
        raise ValidationError(
            f"{name} has {am.n_units} rows but there are {len(pv)} probabilities",
            kind=ErrorKind.MISMATCHED_DIMENSIONS,
        )
    return pv, am


class Decision(IntEnum):
    UNDECIDED = 0
    INCLUDED = 1
    EXCLUDED = -1


class DecisionState:
    """
    Working probabilities and per-unit decisions for one sampling call.

    A unit is decided by snapping its probability to exactly 0 or 1; the
    decision array and the probability are updated together so the two can
    never disagree.
    """

    __slots__ = ("p", "status", "eps", "n_undecided")

    def __init__(self, probabilities: ProbabilityVector, eps: float = EPS_DEFAULT):
        self.p = np.array(probabilities.values, dtype=float, copy=True)
        self.status = np.zeros(self.p.size, dtype=np.int8)
        self.eps = eps
        self.n_undecided = int(self.p.size)

    def is_undecided(self, unit: int) -> bool:
        return self.status[unit] == Decision.UNDECIDED

    def decide(self, unit: int, included: bool) -> None:
        self.p[unit] = 1.0 if included else 0.0
        self.status[unit] = Decision.INCLUDED if included else Decision.EXCLUDED
        self.n_undecided -= 1

    def settle(self, units: Sequence[int] | np.ndarray) -> list[int]:
        """Decide every undecided unit of ``units`` whose probability is within eps of 0 or 1."""
        settled = []
        for unit in units:
            unit = int(unit)
            if self.status[unit] != Decision.UNDECIDED:
                continue
            value = self.p[unit]
            if value >= 1.0 - self.eps:
                self.decide(unit, True)
            elif value <= self.eps:
                self.decide(unit, False)
            else:
                continue
            settled.append(unit)
        return settled

    def settle_all(self) -> list[int]:
        return self.settle(range(self.p.size))

    def undecided(self) -> np.ndarray:
        return np.flatnonzero(self.status == Decision.UNDECIDED)

    def included(self) -> np.ndarray:
        return np.flatnonzero(self.status == Decision.INCLUDED)
