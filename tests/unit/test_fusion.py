"""FederatedSearchEngine 테스트 (부분 실패, 페이지네이션, 타임아웃)"""

import math

import pytest

from catalog_gateway.core.exceptions import ErrorKind, StructuralScrapeError, TransientTransportError
from catalog_gateway.crawlers.legacy.adapter import LegacyResult
from catalog_gateway.engine import BranchOutcome, BranchStatus, BudgetConfig, FederatedSearchEngine
from catalog_gateway.schemas.search_schema import (
    MediaFilter,
    MediaType,
    PageMeta,
    SearchRequest,
    SortKey,
)


FAST_BUDGET = BudgetConfig(branch_timeout=0.2, session_timeout=0.2, total_budget=1.0)


def _request(credentials, **overrides) -> SearchRequest:
    params = {"term": "dune", "credentials": credentials, "page": 1, "page_size": 10}
    params.update(overrides)
    return SearchRequest(**params)


def _legacy_result(fakes, count: int, total: int, page: int = 1, availability: str = "Available") -> LegacyResult:
    items = [fakes.make_item(n, MediaType.PHYSICAL, availability, copies=2) for n in range(1, count + 1)]
    return LegacyResult(items=items, meta=PageMeta.compute(page, 10, total))


def _digital_items(fakes, count: int, availability: str = "Available"):
    return [fakes.make_item(100 + n, MediaType.DIGITAL, availability, copies=1) for n in range(1, count + 1)]


def _engine(settings, legacy, digital=None, acquirer=None, budget=FAST_BUDGET) -> FederatedSearchEngine:
    return FederatedSearchEngine(
        legacy,
        session_acquirer=acquirer,
        digital_adapter_factory=(lambda config: digital) if digital is not None else None,
        budget_config=budget,
        app_settings=settings,
    )


class TestBudgetConfig:
    def test_rejects_non_positive(self) -> None:
        with pytest.raises(ValueError):
            BudgetConfig(branch_timeout=0)

    def test_rejects_branch_over_total(self) -> None:
        with pytest.raises(ValueError):
            BudgetConfig(branch_timeout=90, total_budget=60)


class TestBranchOutcome:
    def test_from_exception_uses_kind(self) -> None:
        outcome = BranchOutcome.from_exception("legacy", StructuralScrapeError("layout"))

        assert outcome.status == BranchStatus.FAILED
        assert outcome.kind == ErrorKind.STRUCTURAL_SCRAPE
        assert outcome.value_or("fallback") == "fallback"

    def test_unknown_exception_is_unhandled(self) -> None:
        assert BranchOutcome.from_exception("x", KeyError("k")).kind == ErrorKind.UNHANDLED


@pytest.mark.asyncio
class TestFederatedSearch:
    async def test_combined_dune_scenario(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 6, total=40))
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 4), total=12)
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(_request(credentials), fakes.ContextOnlyPage())

        assert len(response.results) == 10
        assert response.meta.total_results == 52
        assert response.meta.total_pages == 6
        assert response.meta.media_type_counts.physical == 40
        assert response.meta.media_type_counts.digital == 12
        # relevance: 실물+가용 (112) 이 디지털+가용 (101) 보다 앞
        assert [i.media_type for i in response.results[:6]] == [MediaType.PHYSICAL] * 6
        assert digital.closed is True
        assert digital.search_calls[0][1:3] == (0, 10)

    async def test_combined_offset_for_later_pages(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 10, total=40, page=2))
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 10), total=30)
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(_request(credentials, page=2), fakes.ContextOnlyPage())

        assert digital.search_calls[0][1] == 10
        assert legacy.calls[0][1] == 2
        # 두 출처의 한 페이지씩만 가져오므로 병합 후 두 번째 구간을 반환
        assert len(response.results) == 10
        assert response.meta.current_page == 2
        assert response.meta.total_pages == 7

    async def test_ycl_timeout_keeps_legacy_results(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 5, total=5))
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 3), total=3, search_delay=1.0, count_delay=1.0)
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(_request(credentials), fakes.ContextOnlyPage())

        assert len(response.results) == 5
        assert all(i.media_type == MediaType.PHYSICAL for i in response.results)
        assert response.meta.media_type_counts.digital == 0
        assert digital.closed is True

    async def test_session_failure_keeps_legacy_results(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 3, total=3))
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 3), total=3)
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer(cookie=None))

        response = await engine.search(_request(credentials), fakes.ContextOnlyPage())

        assert len(response.results) == 3
        assert response.meta.media_type_counts.digital == 0
        assert digital.search_calls == []

    async def test_session_error_is_contained(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 2, total=2))
        acquirer = fakes.FakeSessionAcquirer(error=RuntimeError("browser crashed"))
        engine = _engine(ycl_settings, legacy, fakes.FakeDigitalAdapter(), acquirer)

        response = await engine.search(_request(credentials), fakes.ContextOnlyPage())

        assert response.meta.media_type_counts.physical == 2
        assert response.meta.media_type_counts.digital == 0

    async def test_count_failure_falls_back_to_search_total(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 0, total=0))
        digital = fakes.FakeDigitalAdapter(
            _digital_items(fakes, 2), total=8, count_error=TransientTransportError("count", "reset")
        )
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(_request(credentials), fakes.ContextOnlyPage())

        assert response.meta.media_type_counts.digital == 8

    async def test_physical_only(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 4, total=24, page=3))
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 3), total=3)
        acquirer = fakes.FakeSessionAcquirer()
        engine = _engine(ycl_settings, legacy, digital, acquirer)

        response = await engine.search(
            _request(credentials, page=3, media_filter=MediaFilter.PHYSICAL), fakes.ContextOnlyPage()
        )

        assert all(i.media_type == MediaType.PHYSICAL for i in response.results)
        assert response.meta.media_type_counts.digital == 0
        assert response.meta.total_results == 24
        assert response.meta.current_page == 3
        assert acquirer.calls == []

    async def test_digital_only(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 4, total=24))
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 3), total=23)
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(
            _request(credentials, media_filter=MediaFilter.DIGITAL), fakes.ContextOnlyPage()
        )

        assert legacy.calls == []
        assert len(response.results) == 3
        assert response.meta.total_results == 23
        assert response.meta.total_pages == 3
        assert response.meta.media_type_counts.physical == 0

    async def test_unconfigured_ycl_is_skipped(self, fakes, credentials, no_ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 2, total=2))
        acquirer = fakes.FakeSessionAcquirer()
        engine = _engine(no_ycl_settings, legacy, fakes.FakeDigitalAdapter(), acquirer)

        response = await engine.search(_request(credentials), fakes.ContextOnlyPage())

        assert acquirer.calls == []
        assert response.meta.media_type_counts.digital == 0
        assert len(response.results) == 2

    async def test_request_slug_overrides_default(self, fakes, credentials, ycl_settings) -> None:
        acquirer = fakes.FakeSessionAcquirer()
        engine = _engine(ycl_settings, fakes.FakeLegacyAdapter(_legacy_result(fakes, 0, 0)), fakes.FakeDigitalAdapter(), acquirer)

        await engine.search(_request(credentials, library_slug="shelbyville"), fakes.ContextOnlyPage())

        assert acquirer.calls == ["https://catalog.example.org/auth/shelbyville/featured"]

    async def test_no_records_is_not_an_error(self, fakes, credentials, no_ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(LegacyResult(items=[], meta=PageMeta.empty()))
        engine = _engine(no_ycl_settings, legacy)

        response = await engine.search(_request(credentials, media_filter=MediaFilter.PHYSICAL), fakes.ContextOnlyPage())

        assert response.results == []
        assert response.meta.total_results == 0
        assert response.meta.total_pages == 0

    async def test_structural_failure_of_only_source_raises(self, fakes, credentials, no_ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(error=StructuralScrapeError("layout changed"))
        engine = _engine(no_ycl_settings, legacy)

        with pytest.raises(StructuralScrapeError):
            await engine.search(_request(credentials, media_filter=MediaFilter.PHYSICAL), fakes.ContextOnlyPage())

    async def test_structural_failure_in_combined_degrades(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(error=StructuralScrapeError("layout changed"))
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 2), total=2)
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(_request(credentials), fakes.ContextOnlyPage())

        assert len(response.results) == 2
        assert response.meta.media_type_counts.physical == 0

    async def test_structural_failure_in_combined_without_ycl_raises(self, fakes, credentials, no_ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(error=StructuralScrapeError("layout changed"))
        engine = _engine(no_ycl_settings, legacy)

        with pytest.raises(StructuralScrapeError):
            await engine.search(_request(credentials), fakes.ContextOnlyPage())

    async def test_digital_search_failure_zeroes_counts(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 3, total=3))
        digital = fakes.FakeDigitalAdapter(
            _digital_items(fakes, 2), total=9, search_error=TransientTransportError("ycl_search", "reset")
        )
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(
            _request(credentials, media_filter=MediaFilter.DIGITAL), fakes.ContextOnlyPage()
        )

        assert response.results == []
        assert response.meta.total_results == 0
        assert response.meta.media_type_counts.digital == 0
        assert legacy.calls == []

    async def test_legacy_timeout_degrades(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 3, total=3), delay=1.0)
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 2), total=2)
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(_request(credentials), fakes.ContextOnlyPage())

        assert [i.media_type for i in response.results] == [MediaType.DIGITAL, MediaType.DIGITAL]
        assert response.meta.media_type_counts.physical == 0

    async def test_sort_key_applied_in_combined(self, fakes, credentials, ycl_settings) -> None:
        legacy = fakes.FakeLegacyAdapter(
            LegacyResult(items=[fakes.make_item(1, title="Zebra")], meta=PageMeta.compute(1, 10, 1))
        )
        digital = fakes.FakeDigitalAdapter([fakes.make_item(2, MediaType.DIGITAL, title="Aardvark")], total=1)
        engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

        response = await engine.search(_request(credentials, sort_key=SortKey.TITLE), fakes.ContextOnlyPage())

        assert [i.title for i in response.results] == ["Aardvark", "Zebra"]

    async def test_total_pages_follow_total_results(self, fakes, credentials, ycl_settings) -> None:
        for physical, digital_total, size in [(40, 12, 10), (7, 0, 3), (0, 50, 50), (1, 1, 1)]:
            legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 1, total=physical))
            digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 1), total=digital_total)
            engine = _engine(ycl_settings, legacy, digital, fakes.FakeSessionAcquirer())

            response = await engine.search(_request(credentials, page_size=size), fakes.ContextOnlyPage())

            assert response.meta.total_pages == math.ceil(response.meta.total_results / size)

    async def test_deadline_returns_neutral_response(self, fakes, credentials, ycl_settings) -> None:
        budget = BudgetConfig(branch_timeout=0.5, session_timeout=0.5, total_budget=0.6)
        legacy = fakes.FakeLegacyAdapter(_legacy_result(fakes, 3, total=3), delay=0.4)
        acquirer = fakes.FakeSessionAcquirer(delay=0.4)
        digital = fakes.FakeDigitalAdapter(_digital_items(fakes, 2), total=2, search_delay=0.4)
        engine = _engine(ycl_settings, legacy, digital, acquirer, budget=budget)

        response = await engine.search_with_deadline(_request(credentials, page=2, page_size=5), fakes.ContextOnlyPage())

        assert response.results == []
        assert response.meta.current_page == 2
        assert response.meta.page_size == 5
        assert response.meta.total_results == 0
        assert response.meta.media_type_counts.physical == 0
        assert response.meta.media_type_counts.digital == 0
