"""Tests for single-asset return attribution."""

import numpy as np
import pandas as pd
import pytest

from toraniko.exceptions import InsufficientDataError
from toraniko.model import EstimatorConfig, FactorReturnsEstimator, compute_attribution
from toraniko.model.attribution import AttributionResult, FactorContribution


@pytest.fixture(params=[False, True], ids=["raw_styles", "residualized_styles"])
def estimated(request, model_panel):
    estimator = FactorReturnsEstimator(EstimatorConfig(residualize_styles=request.param), max_workers=1)
    result = estimator.estimate(
        model_panel["returns_df"], model_panel["mkt_cap_df"], model_panel["sector_df"], model_panel["style_df"]
    )
    return model_panel, result


class TestComputeAttribution:
    def test_total_matches_realized_return(self, estimated):
        panel, result = estimated
        attribution = compute_attribution("S04", result, panel["sector_df"])

        realized = panel["returns_df"].query("symbol == 'S04'")["asset_returns"].sum()
        assert attribution.total_return == pytest.approx(realized, abs=1e-10)
        assert attribution.factor_explained_return() + attribution.idiosyncratic_contribution == pytest.approx(
            attribution.total_return
        )

    def test_style_exposures_come_from_fit(self, estimated):
        panel, result = estimated
        attribution = compute_attribution("S04", result, panel["sector_df"])

        fitted = result.style_exposures.query("symbol == 'S04'").set_index("date")
        for contribution in attribution.style_contributions:
            expected = float((fitted[contribution.factor] * result.factor_returns[contribution.factor]).sum())
            assert contribution.contribution == pytest.approx(expected, abs=1e-14)
            assert contribution.exposure == pytest.approx(fitted[contribution.factor].mean())

    def test_components(self, estimated):
        panel, result = estimated
        attribution = compute_attribution("S04", result, panel["sector_df"])

        assert [c.factor for c in attribution.sector_contributions] == ["energy", "health", "tech"]
        assert [c.factor for c in attribution.style_contributions] == ["mom_score", "val_score"]
        # S04 sits in sector index 4 % 3 == 1
        exposures = {c.factor: c.exposure for c in attribution.sector_contributions}
        assert exposures == {"energy": 0.0, "health": 1.0, "tech": 0.0}
        health = attribution.sector_contributions[1]
        assert health.contribution == pytest.approx(result.factor_returns["health"].sum())
        assert attribution.market_contribution == pytest.approx(result.factor_returns["market"].sum())
        assert attribution.start_date == panel["dates"][0]
        assert attribution.end_date == panel["dates"][-1]
        assert 0.0 <= attribution.r_squared <= 1.0

    def test_to_frame(self, estimated):
        panel, result = estimated
        frame = compute_attribution("S00", result, panel["sector_df"]).to_frame()

        assert list(frame.columns) == ["component", "kind", "exposure", "factor_return", "contribution"]
        assert frame["component"].tolist() == [
            "market", "energy", "health", "tech", "mom_score", "val_score", "idiosyncratic"
        ]
        assert np.isnan(frame["exposure"].iloc[-1])

    def test_unknown_symbol(self, estimated):
        panel, result = estimated
        with pytest.raises(InsufficientDataError):
            compute_attribution("ZZZ", result, panel["sector_df"])


def test_market_and_sector_only_model(model_panel):
    result = FactorReturnsEstimator(max_workers=1).estimate(
        model_panel["returns_df"], model_panel["mkt_cap_df"], model_panel["sector_df"]
    )
    attribution = compute_attribution("S01", result, model_panel["sector_df"])

    assert attribution.style_contributions == []
    realized = model_panel["returns_df"].query("symbol == 'S01'")["asset_returns"].sum()
    assert attribution.total_return == pytest.approx(realized, abs=1e-10)


def test_factor_explained_return():
    result = AttributionResult(
        symbol="TEST",
        start_date=pd.Timestamp("2024-01-01"),
        end_date=pd.Timestamp("2024-12-31"),
        total_return=0.15,
        market_contribution=0.10,
        sector_contributions=[FactorContribution("tech", 1.0, 0.02, 0.02)],
        style_contributions=[FactorContribution("mom_score", 0.5, 0.04, 0.02)],
        idiosyncratic_contribution=0.01,
    )
    assert result.factor_explained_return() == pytest.approx(0.14)
