"""Federated Search Engine - 통합 검색 오케스트레이터

요청마다:
1. mediaFilter와 YCL 설정 여부로 호출할 브랜치 결정
2. Legacy 검색 / YCL(세션 → 검색 + 카운트)을 동시에 실행
3. 브랜치마다 독립 타임아웃, 실패는 BranchOutcome으로 변환 (합류는 항상 완료)
4. combined면 병합 → 정렬 → 슬라이스, 아니면 출처 자체 메타 그대로
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from time import time
from typing import Any, Awaitable, Callable, Optional

from catalog_gateway.core.config import DigitalSourceConfig, Settings, settings
from catalog_gateway.core.exceptions import AuthenticationError, ErrorKind, StructuralScrapeError
from catalog_gateway.core.logging import get_logger
from catalog_gateway.crawlers.legacy.adapter import LegacyCatalogAdapter, LegacyResult
from catalog_gateway.crawlers.ycl.adapter import DigitalCatalogAdapter, DigitalResult, build_digital_adapter
from catalog_gateway.crawlers.ycl.session import SessionAcquirer
from catalog_gateway.schemas.search_schema import (
    MediaFilter,
    MediaTypeCounts,
    PageMeta,
    SearchMeta,
    SearchRequest,
    SearchResponse,
)

from .budget import BudgetConfig
from .ranking import paginate, sort_items
from .result import BranchOutcome, BranchStatus


DigitalAdapterFactory = Callable[[DigitalSourceConfig], DigitalCatalogAdapter]

LEGACY_BRANCH = "legacy"
SESSION_BRANCH = "ycl_session"
SEARCH_BRANCH = "ycl_search"
COUNT_BRANCH = "ycl_count"


@dataclass
class DigitalOutcome:
    """YCL 브랜치 결과 (검색 + 카운트)"""

    search: BranchOutcome
    count: BranchOutcome

    @classmethod
    def failed(cls, outcome: BranchOutcome) -> "DigitalOutcome":
        return cls(
            search=BranchOutcome(SEARCH_BRANCH, outcome.status, kind=outcome.kind, message=outcome.message),
            count=BranchOutcome(COUNT_BRANCH, outcome.status, kind=outcome.kind, message=outcome.message),
        )

    @property
    def result(self) -> DigitalResult:
        return self.search.value_or(DigitalResult())

    @property
    def total(self) -> int:
        """카운트 요청 값, 실패 시 검색 응답의 totalItems"""
        if self.count.ok:
            return int(self.count.value or 0)
        return self.result.total


class FederatedSearchEngine:
    """Legacy(실물) + YCL(디지털) 통합 검색 엔진

    Usage:
        engine = FederatedSearchEngine(LegacyCatalogAdapter(LegacyScraper()))
        response = await engine.search_with_deadline(request, page)
    """

    def __init__(
        self,
        legacy_adapter: LegacyCatalogAdapter,
        session_acquirer: Optional[SessionAcquirer] = None,
        digital_adapter_factory: Optional[DigitalAdapterFactory] = None,
        budget_config: Optional[BudgetConfig] = None,
        app_settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not legacy_adapter:
            raise ValueError("legacy_adapter must not be None")

        self.settings = app_settings or settings
        self.logger = logger or get_logger("search")
        self.legacy = legacy_adapter
        self.session_acquirer = session_acquirer or SessionAcquirer(logger=get_logger("ycl"))
        self.digital_adapter_factory = digital_adapter_factory or build_digital_adapter
        self.budget = budget_config or BudgetConfig.from_settings(self.settings)

    async def search_with_deadline(self, request: SearchRequest, page: Any) -> SearchResponse:
        """전체 예산(60초)과 경쟁. 초과 시 카운트 0인 중립 응답"""
        try:
            return await asyncio.wait_for(self.search(request, page), timeout=self.budget.total_budget)
        except asyncio.TimeoutError:
            self.logger.error(
                f"[SEARCH] Search operation timed out after {self.budget.total_budget}s: term='{request.term}'"
            )
            return SearchResponse.empty(request.page, request.page_size)

    async def search(self, request: SearchRequest, page: Any) -> SearchResponse:
        """통합 검색 실행

        Raises:
            StructuralScrapeError: Legacy만 호출됐는데 페이지 구조 인식 실패
        """
        started = time()
        query_legacy = request.media_filter in (MediaFilter.PHYSICAL, MediaFilter.COMBINED)
        query_digital = request.media_filter in (MediaFilter.DIGITAL, MediaFilter.COMBINED)
        digital_config = self.settings.ycl_config(request.library_slug) if query_digital else None

        if query_digital and digital_config is None:
            self.logger.info("[SEARCH] YCL is not configured for this request; skipping digital branch")

        self.logger.info(
            f"[SEARCH] Search started: term='{request.term}', filter={request.media_filter.value}, "
            f"page={request.page}, pageSize={request.page_size}, sort={request.sort_key.value}"
        )

        legacy_coro = (
            self._time_boxed(LEGACY_BRANCH, self._run_legacy(request, page), self.budget.branch_timeout)
            if query_legacy
            else self._skip(LEGACY_BRANCH, "not requested")
        )
        digital_coro = (
            self._run_digital(request, page, digital_config)
            if digital_config is not None
            else self._skip_digital(query_digital)
        )

        legacy_outcome, digital_outcome = await asyncio.gather(legacy_coro, digital_coro)
        self._log_outcomes(legacy_outcome, digital_outcome)

        # YCL이 실제로 호출되지 않았다면 Legacy가 유일한 출처
        legacy_only = query_legacy and digital_config is None
        if legacy_only and legacy_outcome.kind == ErrorKind.STRUCTURAL_SCRAPE:
            raise StructuralScrapeError(legacy_outcome.message or "legacy page structure not recognized")

        response = self._fuse(request, legacy_outcome, digital_outcome)
        self.logger.info(
            f"[SEARCH] Search completed: {len(response.results)} results, "
            f"total={response.meta.total_results}, elapsed={(time() - started) * 1000:.0f}ms"
        )
        return response

    # ------------------------------------------------------------------
    # 브랜치
    # ------------------------------------------------------------------

    async def _time_boxed(self, name: str, work: Awaitable[Any], timeout: float) -> BranchOutcome:
        """타임아웃/예외를 BranchOutcome으로 변환 (예외를 던지지 않음)"""
        started = time()
        try:
            value = await asyncio.wait_for(work, timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.error(f"[SEARCH] Branch '{name}' timed out after {timeout}s")
            return BranchOutcome.timed_out(name, timeout)
        except Exception as e:
            outcome = BranchOutcome.from_exception(name, e, (time() - started) * 1000)
            self.logger.error(f"[SEARCH] Branch '{name}' failed ({outcome.kind.value}): {outcome.message}")
            return outcome
        return BranchOutcome.success(name, value, (time() - started) * 1000)

    async def _skip(self, name: str, reason: str, kind: Optional[ErrorKind] = None) -> BranchOutcome:
        return BranchOutcome.skipped(name, reason, kind)

    async def _skip_digital(self, requested: bool) -> DigitalOutcome:
        if requested:
            skipped = BranchOutcome.skipped(SESSION_BRANCH, "ycl not configured", ErrorKind.CONFIGURATION)
        else:
            skipped = BranchOutcome.skipped(SESSION_BRANCH, "not requested")
        return DigitalOutcome.failed(skipped)

    async def _run_legacy(self, request: SearchRequest, page: Any) -> LegacyResult:
        return await self.legacy.search(request.term, request.page, request.credentials, page)

    async def _acquire_session(self, page: Any, auth_url: str) -> str:
        cookie = await self.session_acquirer.acquire_with_aux_page(page.context, auth_url)
        if not cookie:
            raise AuthenticationError("ycl", "no session cookie could be acquired")
        return cookie

    async def _run_digital(self, request: SearchRequest, page: Any, config: DigitalSourceConfig) -> DigitalOutcome:
        session = await self._time_boxed(
            SESSION_BRANCH, self._acquire_session(page, config.auth_url), self.budget.session_timeout
        )
        if not session.ok:
            self.logger.warning(f"[SEARCH] Failed to get YCL authentication cookie: {session.message}")
            return DigitalOutcome.failed(session)

        self.logger.info("[SEARCH] Successfully obtained YCL cookie")
        cookie: str = session.value
        try:
            adapter = self.digital_adapter_factory(config)
        except Exception as e:
            return DigitalOutcome.failed(BranchOutcome.from_exception(SEARCH_BRANCH, e))

        try:
            search, count = await asyncio.gather(
                self._time_boxed(
                    SEARCH_BRANCH,
                    adapter.search(request.term, request.offset, request.page_size, cookie),
                    self.budget.branch_timeout,
                ),
                self._time_boxed(COUNT_BRANCH, adapter.count(request.term, cookie), self.budget.branch_timeout),
            )
        finally:
            await self._close_adapter(adapter)
        return DigitalOutcome(search=search, count=count)

    async def _close_adapter(self, adapter: DigitalCatalogAdapter) -> None:
        try:
            await adapter.close()
        except Exception as e:
            self.logger.warning(f"[SEARCH] Error closing YCL transport (non-fatal): {type(e).__name__}: {e}")

    def _log_outcomes(self, legacy: BranchOutcome, digital: DigitalOutcome) -> None:
        for outcome in (legacy, digital.search, digital.count):
            if outcome.status == BranchStatus.SKIPPED:
                continue
            elapsed = f"{outcome.elapsed_ms:.0f}ms" if outcome.elapsed_ms is not None else "-"
            self.logger.debug(f"[SEARCH] Branch '{outcome.name}': {outcome.status.value} ({elapsed})")

    # ------------------------------------------------------------------
    # 합류
    # ------------------------------------------------------------------

    def _fuse(self, request: SearchRequest, legacy_outcome: BranchOutcome, digital: DigitalOutcome) -> SearchResponse:
        legacy: LegacyResult = legacy_outcome.value_or(None) or LegacyResult(
            meta=PageMeta.empty(request.page, request.page_size)
        )
        digital_result = digital.result
        digital_total = digital.total
        physical_total = legacy.meta.total_results

        if request.media_filter == MediaFilter.PHYSICAL:
            meta = SearchMeta(
                **legacy.meta.model_dump(),
                media_type_counts=MediaTypeCounts(physical=physical_total, digital=0),
            )
            return SearchResponse(meta=meta, results=legacy.items)

        if request.media_filter == MediaFilter.DIGITAL:
            # 검색이 실패하면 카운트가 성공했어도 메타 전체를 0으로 맞춤
            if digital.search.ok:
                base = PageMeta.compute(request.page, request.page_size, digital_total)
            else:
                base = PageMeta.empty(request.page, request.page_size)
            meta = SearchMeta(
                **base.model_dump(),
                media_type_counts=MediaTypeCounts(physical=0, digital=base.total_results),
            )
            return SearchResponse(meta=meta, results=digital_result.items)

        # combined: 두 출처의 한 페이지씩을 병합/정렬한 뒤 요청 페이지 범위로 자름
        merged = sort_items(legacy.items + digital_result.items, request.sort_key)
        total = physical_total + digital_total
        base = PageMeta.compute(request.page, request.page_size, total)
        meta = SearchMeta(
            **base.model_dump(),
            media_type_counts=MediaTypeCounts(physical=physical_total, digital=digital_total),
        )
        return SearchResponse(meta=meta, results=paginate(merged, request.page, request.page_size))
