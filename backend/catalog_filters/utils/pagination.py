import math


def compute_total_pages(total_items: int, page_size: int) -> int:
    safe_total = max(0, int(total_items))
    safe_page_size = max(1, int(page_size))
    return max(1, math.ceil(safe_total / safe_page_size))


def clamp_page_size(page_size: int, max_page_size: int) -> int:
    return max(1, min(int(page_size), max(1, int(max_page_size))))


def page_offset(page: int, page_size: int) -> int:
    return (max(1, int(page)) - 1) * max(1, int(page_size))
