"""Tests for the stage scheduler of svcconfig.model.model."""

from __future__ import annotations

from typing import Sequence

import pytest

from svcconfig.descriptor import FileDescriptorSet
from svcconfig.diag import BoundedDiagCollector, Diag, SimpleLocation
from svcconfig.exceptions import (
    CyclicStageDependencyError,
    ProcessorNotRegisteredError,
    StageNotEstablishedError,
)
from svcconfig.model.model import Model, StageResult
from svcconfig.model.stages import StageKey
from svcconfig.processors.base import Processor

BASE = StageKey("Base")
LEFT = StageKey("Left")
RIGHT = StageKey("Right")
TOP = StageKey("Top")


class _Recording(Processor):
    """Processor that logs its runs and optionally misbehaves."""

    def __init__(
        self,
        stage: StageKey,
        requires: Sequence[StageKey] = (),
        log: list[str] | None = None,
        succeed: bool = True,
        mark: bool = True,
        error: bool = False,
    ) -> None:
        self._stage = stage
        self._requires = list(requires)
        self.log = log if log is not None else []
        self._succeed = succeed
        self._mark = mark
        self._error = error

    def requires(self) -> Sequence[StageKey]:
        return self._requires

    def establishes(self) -> StageKey:
        return self._stage

    def run(self, model: Model) -> bool:
        self.log.append(self._stage.name)
        if self._error:
            model.add_diag(Diag.error(SimpleLocation.TOPLEVEL, "processor error"))
        if self._succeed and self._mark:
            model.mark_established(self._stage)
        return self._succeed


def _model(*processors: Processor, collector=None) -> Model:
    model = Model.create(FileDescriptorSet(), diag_collector=collector)
    for processor in processors:
        model.register_processor(processor)
    return model


class TestEstablishStage:
    """Ordering, once-only execution, and result reporting."""

    def test_prerequisites_run_first_and_once(self) -> None:
        log: list[str] = []
        model = _model(
            _Recording(BASE, log=log),
            _Recording(LEFT, [BASE], log=log),
            _Recording(RIGHT, [BASE], log=log),
            _Recording(TOP, [LEFT, RIGHT], log=log),
        )
        assert model.establish_stage(TOP) == StageResult.ESTABLISHED
        assert log == ["Base", "Left", "Right", "Top"]
        assert model.has_stage(BASE)

    def test_established_stage_is_not_rerun(self) -> None:
        log: list[str] = []
        model = _model(_Recording(BASE, log=log))
        assert model.establish_stage(BASE) == StageResult.ESTABLISHED
        assert model.establish_stage(BASE) == StageResult.ESTABLISHED
        assert log == ["Base"]

    def test_failed_prerequisite_stops_run(self) -> None:
        log: list[str] = []
        model = _model(_Recording(BASE, log=log, succeed=False), _Recording(TOP, [BASE], log=log))
        assert model.establish_stage(TOP) == StageResult.FAILED
        assert log == ["Base"]
        assert not model.has_stage(TOP)

    def test_aborted_when_collector_hits_cap(self) -> None:
        log: list[str] = []
        collector = BoundedDiagCollector(max_errors=0)
        model = _model(
            _Recording(BASE, log=log, error=True),
            _Recording(TOP, [BASE], log=log),
            collector=collector,
        )
        assert model.establish_stage(TOP) == StageResult.ABORTED
        assert log == ["Base"]
        assert model.establish_stage(LEFT) == StageResult.ABORTED

    def test_replacing_a_processor(self) -> None:
        first: list[str] = []
        second: list[str] = []
        model = _model(_Recording(BASE, log=first))
        model.register_processor(_Recording(BASE, log=second))
        model.establish_stage(BASE)
        assert (first, second) == ([], ["Base"])


class TestSchedulerErrors:
    """Wiring defects are raised, never reported as diags."""

    def test_cycle(self) -> None:
        model = _model(_Recording(LEFT, [RIGHT]), _Recording(RIGHT, [LEFT]))
        with pytest.raises(CyclicStageDependencyError) as exc_info:
            model.establish_stage(LEFT)
        assert str(exc_info.value) == "Cyclic dependency of stages: Left => Right => Left"

    def test_missing_processor(self) -> None:
        model = _model(_Recording(TOP, [BASE]))
        with pytest.raises(ProcessorNotRegisteredError, match="stage 'Base'"):
            model.establish_stage(TOP)

    def test_processor_that_does_not_mark_its_stage(self) -> None:
        model = _model(_Recording(BASE, mark=False))
        with pytest.raises(StageNotEstablishedError) as exc_info:
            model.establish_stage(BASE)
        assert str(exc_info.value) == "Processor '_Recording' failed to establish stage 'Base'"
        assert exc_info.value.exit_code == 9
