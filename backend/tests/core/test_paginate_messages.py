"""Message Pagination - verifies the limit + 1 overflow split."""

from briefly.core.paginate_messages import split_page


def test_full_page_with_overflow_returns_cursor_row():
    page, overflow = split_page(["m5", "m4", "m3", "m2"], limit=3)
    assert page == ["m5", "m4", "m3"]
    assert overflow == "m2"


def test_short_page_has_no_cursor():
    page, overflow = split_page(["m2", "m1"], limit=3)
    assert page == ["m2", "m1"]
    assert overflow is None


def test_exactly_limit_rows_has_no_cursor():
    page, overflow = split_page(["a", "b"], limit=2)
    assert page == ["a", "b"]
    assert overflow is None


def test_empty():
    assert split_page([], limit=10) == ([], None)
