"""Tests for the versioning aspect."""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from svcconfig.model.model import Model, StageResult
from svcconfig.model.stages import MERGED, NORMALIZED
from svcconfig.models import Service


def _service(version: Optional[int]) -> Service:
    return Service(name="library.example.com", config_version=version)


class TestConfigVersion:
    @pytest.mark.parametrize("version", [-1, 5])
    def test_out_of_range(self, make_model: Callable[..., Model], version: int) -> None:
        model = make_model(_service(version))
        assert model.establish_stage(MERGED) == StageResult.FAILED
        assert [d.message for d in model.diag_collector.errors] == [
            f"versioning: config_version {version} is invalid, "
            "the latest config_version is 4."
        ]

    def test_default_version_is_written_back(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service(None))
        assert model.establish_stage(NORMALIZED) == StageResult.ESTABLISHED
        assert model.normalized_config.config_version == 3
        assert model.diag_collector.diags == []

    def test_non_default_version_is_linted(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service(4))
        assert model.establish_stage(NORMALIZED) == StageResult.ESTABLISHED
        assert model.normalized_config.config_version == 4
        (warning,) = model.diag_collector.warnings
        assert warning.message.startswith(
            "(lint) versioning-config: Specified config_version value '4' is not equal to "
            "the current default value '3'."
        )

    def test_warning_can_be_filtered(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service(4))
        model.set_warning_filter("versioning-config")
        model.establish_stage(NORMALIZED)
        assert model.diag_collector.diags == []
