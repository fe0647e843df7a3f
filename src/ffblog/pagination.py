"""
Page bookkeeping for list views.
"""

from math import ceil
from urllib.parse import urlencode


class Paginator:
    """One page of results plus the numbers needed to render page links.

    :param items: Items on the current page.
    :type items: list
    :param total: Total number of items across all pages.
    :type total: int
    :param per_page: Page size; non-positive values fall back to 15.
    :type per_page: int
    :param current_page: Requested page, clamped into ``[1, last_page]``.
    :type current_page: int
    :param path: Base URL used when building page links.
    :type path: str
    :param query: Extra query-string arguments kept on every page link.
    :type query: dict or None
    """

    def __init__(self, items, total, per_page=15, current_page=1, path="", query=None):
        self.items = list(items)
        self.total = max(0, int(total))
        self.per_page = per_page if per_page and per_page > 0 else 15
        self.last_page = max(1, ceil(self.total / self.per_page))
        self.current_page = min(max(1, int(current_page)), self.last_page)
        self.path = path
        # Drop empty filters so links stay short
        self.query = {k: v for k, v in (query or {}).items() if v not in (None, "") and k != "page"}

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    def has_more_pages(self):
        return self.current_page < self.last_page

    def has_previous_pages(self):
        return self.current_page > 1

    def has_pages(self):
        return self.last_page > 1

    def url(self, page):
        """Return the link for ``page`` (values below 1 become 1)."""
        page = max(1, int(page))
        query = dict(self.query)
        query["page"] = page
        return f"{self.path}?{urlencode(query)}"

    def next_page_url(self):
        return self.url(self.current_page + 1) if self.has_more_pages() else None

    def previous_page_url(self):
        return self.url(self.current_page - 1) if self.has_previous_pages() else None

    def first_item(self):
        if self.total == 0:
            return 0
        return (self.current_page - 1) * self.per_page + 1

    def last_item(self):
        if self.total == 0:
            return 0
        return min(self.first_item() + len(self.items) - 1, self.total)

    def page_range(self, on_each_side=3):
        start = max(1, self.current_page - on_each_side)
        end = min(self.last_page, self.current_page + on_each_side)
        return list(range(start, end + 1))

    def elements(self, on_each_side=3):
        """Page numbers to render, with ``None`` marking an ellipsis.

        The first and last page are always included::

            >>> Paginator([], 200, 10, 10).elements(2)
            [1, None, 8, 9, 10, 11, 12, None, 20]
        """
        pages = self.page_range(on_each_side)
        elements = []

        if pages[0] > 1:
            elements.append(1)
            if pages[0] > 2:
                elements.append(None)

        elements.extend(pages)

        if pages[-1] < self.last_page:
            if pages[-1] < self.last_page - 1:
                elements.append(None)
            elements.append(self.last_page)

        return elements
