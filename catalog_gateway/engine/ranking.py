"""통합 결과 정렬/페이지네이션"""

from catalog_gateway.schemas.search_schema import MediaType, SortKey, UnifiedItem


def is_available(item: UnifiedItem) -> bool:
    return "available" in (item.availability or "").lower()


def relevance_score(item: UnifiedItem) -> int:
    """가용 +100, 실물이면서 가용 +10, 사본 수 (최대 10)"""
    score = 0
    available = is_available(item)
    if available:
        score += 100
        if item.media_type == MediaType.PHYSICAL:
            score += 10
    score += min(max(item.copies, 0), 10)
    return score


def sort_items(items: list[UnifiedItem], sort_key: SortKey) -> list[UnifiedItem]:
    """정렬된 새 리스트 반환. 동점은 입력 순서 유지 (Legacy가 YCL보다 앞)"""
    if sort_key == SortKey.TITLE:
        return sorted(items, key=lambda i: (i.title.casefold(), i.title))
    if sort_key == SortKey.AUTHOR:
        return sorted(items, key=lambda i: (i.author.casefold(), i.author))
    if sort_key == SortKey.AVAILABILITY:
        return sorted(items, key=lambda i: 0 if is_available(i) else 1)
    # relevance (date는 별도 기준이 없어 relevance로 처리)
    return sorted(items, key=relevance_score, reverse=True)


def paginate(items: list[UnifiedItem], page: int, page_size: int) -> list[UnifiedItem]:
    start = (max(page, 1) - 1) * page_size
    return items[start:start + page_size]
