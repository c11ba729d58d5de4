"""
Test Suite for Scan Summaries

Tests the portfolio summary, revenue headline, traffic rollup,
benchmark comparison and summary caching.
"""

import pytest

from conftest import make_record
from idscan.models import (
    Capability,
    CompetitivePosition,
    DomainStatus,
    IdBloatSeverity,
    PrivacyRiskLevel,
    PublisherContext,
    PublisherVertical,
    RankHistoryEntry,
)
from idscan.scoring import (
    SummaryBuilder,
    compare_to_benchmarks,
    estimate_traffic,
    generate_portfolio_trend_summary,
    generate_revenue_impact,
    generate_scan_summary,
    score_record,
)


@pytest.fixture
def records():
    return [
        make_record("a.com"),
        make_record(
            "b.com",
            total_cookies=120,
            third_party_cookies=80,
            safari_blocked_cookies=60,
            loads_pre_consent=True,
            capabilities=[Capability.LIVERAMP],
        ),
    ]


class TestScanSummary:
    """Test portfolio summary generation."""

    def test_worst_case_labels(self, records, news_context):
        summary = generate_scan_summary(records, news_context)

        assert summary.worst_id_bloat_severity == IdBloatSeverity.CRITICAL
        assert summary.overall_privacy_risk == PrivacyRiskLevel.HIGH_RISK
        assert summary.overall_position == CompetitivePosition.COMMODITIZED
        assert summary.readiness_grade == "F"
        assert summary.avg_addressability_gap == pytest.approx(26.0)

    def test_total_loss_counts_every_pain_point(self, records, news_context):
        """Loss sums all pain points, not only the top three shown."""
        summary = generate_scan_summary(records, news_context)

        assert summary.total_revenue_loss == 32_760 + 256_200 + 147_000
        assert [p.id for p in summary.pain_points] == ["no-capi", "privacy-risk", "safari-blindness"]
        assert len(summary.opportunities) == 5

    def test_failed_domain_does_not_pollute_average(self, records, news_context):
        failed = make_record(
            "dead.com",
            status=DomainStatus.FAILED,
            total_cookies=0,
            safari_blocked_cookies=0,
            addressability_gap_pct=50.0,
        )
        summary = generate_scan_summary(records + [failed], news_context)

        assert summary.avg_addressability_gap == pytest.approx(26.0)
        assert summary.worst_id_bloat_severity == IdBloatSeverity.CRITICAL

    def test_empty_result_set(self):
        summary = generate_scan_summary([])

        assert summary.total_revenue_loss == 0
        assert summary.avg_addressability_gap == 0.0
        assert summary.pain_points == ()
        assert summary.worst_id_bloat_severity == IdBloatSeverity.LOW

    def test_summary_is_idempotent(self, records, news_context):
        first = generate_scan_summary(records, news_context)
        second = generate_scan_summary(records, news_context)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_prescored_records_give_same_summary(self, records, news_context):
        prescored = [score_record(r) for r in records]
        assert generate_scan_summary(prescored, news_context) == generate_scan_summary(records, news_context)


class TestRevenueImpact:
    """Test the executive headline."""

    def test_loss_headline(self, records, news_context):
        impact = generate_revenue_impact(records, news_context)

        assert impact.headline == "You're Leaving $435,960/Year on the Table"
        assert impact.total_monthly_loss == 36_330
        assert impact.strategic_position == CompetitivePosition.COMMODITIZED

    def test_grade_headline_without_loss(self):
        records = [make_record(
            safari_blocked_cookies=0,
            capabilities=[Capability.CONVERSION_API, Capability.PPID],
        )]
        impact = generate_revenue_impact(records)

        assert impact.headline == "Your 2026 Readiness Grade: A"
        assert impact.total_monthly_loss == 0
        assert impact.impressions_label is None

    def test_impressions_label(self):
        records = [
            make_record("a.com", estimated_monthly_impressions=3_000_000),
            make_record("b.com", estimated_monthly_impressions=1_500_000),
        ]
        impact = generate_revenue_impact(records)

        assert impact.impressions_label == "4.5M impressions/mo"
        assert impact.to_dict()["impressions_label"] == "4.5M impressions/mo"


class TestPortfolioTrend:
    """Test traffic rollup."""

    def test_rollup(self):
        records = [
            make_record("a.com", tranco_rank=1000, rank_history=(
                RankHistoryEntry("2026-01-07", 1000), RankHistoryEntry("2025-12-08", 3000),
            )),
            make_record("b.com", tranco_rank=3000, rank_history=(
                RankHistoryEntry("2026-01-07", 3000), RankHistoryEntry("2025-12-08", 3100),
            )),
            make_record("c.com"),
        ]
        context = PublisherContext(publisher_vertical=PublisherVertical.FINANCE)
        scored = [score_record(r) for r in records]
        trend = generate_portfolio_trend_summary(scored, context)

        expected_impressions = (
            estimate_traffic(1000).monthly_impressions + estimate_traffic(3000).monthly_impressions
        )
        assert trend.growing_domains == 1
        assert trend.stable_domains == 1
        assert trend.declining_domains == 0
        assert trend.avg_rank == 2000
        assert trend.total_monthly_impressions == expected_impressions
        assert trend.estimated_monthly_revenue == round(expected_impressions / 1000 * 12.0)
        assert trend.estimated_annual_loss > 0

    def test_no_ranks(self):
        trend = generate_portfolio_trend_summary([score_record(make_record())])

        assert trend.avg_rank is None
        assert trend.total_monthly_impressions == 0
        assert trend.estimated_annual_loss == 0


class TestBenchmarks:
    """Test industry benchmark comparison."""

    def test_metrics(self, records):
        comparisons = {c.metric: c for c in compare_to_benchmarks([score_record(r) for r in records])}

        assert len(comparisons) == 6
        cookies = comparisons["cookies_per_domain"]
        assert cookies.your_value == 85
        assert cookies.industry_value == 47
        assert not cookies.is_better

        assert comparisons["cmp_adoption"].your_value == pytest.approx(100.0)
        assert comparisons["id_solution_adoption"].your_value == pytest.approx(50.0)
        assert comparisons["addressability_gap"].industry_value == pytest.approx(26.0)

    def test_no_successful_domains(self):
        failed = make_record(status=DomainStatus.FAILED)
        assert compare_to_benchmarks([failed]) == []


class TestSummaryBuilder:
    """Test summary caching."""

    def test_same_result_set_is_cached(self, records, news_context):
        builder = SummaryBuilder()
        first = builder.build(records, news_context)

        assert builder.build(list(records), news_context) is first

    def test_new_result_triggers_rebuild(self, records, news_context):
        builder = SummaryBuilder()
        first = builder.build(records[:1], news_context)
        second = builder.build(records, news_context)

        assert second is not first
        assert second.worst_id_bloat_severity == IdBloatSeverity.CRITICAL

    def test_context_change_triggers_rebuild(self, records, news_context):
        builder = SummaryBuilder()
        first = builder.build(records, news_context)
        second = builder.build(records, None)

        assert second is not first
        assert second.total_revenue_loss == 0
