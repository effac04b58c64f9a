from collections import Counter
from datetime import datetime

import polars as pl
import pytest

from reflex_data_table.filtering import GlobalSearchOptions
from reflex_data_table.lazyframe_source import LazyFrameSource, scan_file
from reflex_data_table.models import SortRule
from reflex_data_table.polars_utils import ROW_INDEX_FIELD


@pytest.fixture
def frame() -> pl.DataFrame:
    return pl.DataFrame(
        {
            "id": [1, 2, 3, 4],
            "name": ["api-gateway", "Billing", "cron-runner", "dashboard"],
            "status": ["running", "stopped", "running", "pending"],
            "regions": [["eu", "us"], ["eu"], [], ["ap", "eu", "us"]],
            "cpu": [4, 2, None, 8],
            "created": [
                datetime(2024, 5, 1, 10),
                datetime(2024, 5, 10, 8, 30),
                None,
                datetime(2024, 4, 20),
            ],
        },
        schema_overrides={"regions": pl.List(pl.String)},
    )


@pytest.fixture
def source(frame) -> LazyFrameSource:
    return LazyFrameSource(frame.lazy())


# --- paging ---

def test_first_page(source):
    result = source.fetch_page(page_index=0, page_size=2)
    assert result.total == 4
    assert [row["id"] for row in result.rows] == [1, 2]
    assert [row[ROW_INDEX_FIELD] for row in result.rows] == [0, 1]
    assert result.has_next and not result.has_prev


def test_last_page(source):
    result = source.fetch_page(page_index=1, page_size=2)
    assert [row[ROW_INDEX_FIELD] for row in result.rows] == [2, 3]
    assert not result.has_next and result.has_prev


def test_page_past_the_end_is_empty(source):
    result = source.fetch_page(page_index=5, page_size=2)
    assert result.rows == []
    assert result.total == 4


def test_page_info(source):
    info = source.fetch_page(page_size=3).page_info()
    assert (info.page_index, info.page_size, info.total_rows) == (0, 3, 4)
    assert info.has_next


def test_rows_are_json_safe_by_default(frame):
    row = LazyFrameSource(frame.lazy()).fetch_page(page_size=1).rows[0]
    assert isinstance(row["created"], str)

    raw = LazyFrameSource(frame.lazy(), json_safe=False).fetch_page(page_size=1).rows[0]
    assert raw["created"] == datetime(2024, 5, 1, 10)


# --- filters, search and sort ---

def test_filters_and_search_narrow_the_total(source):
    result = source.fetch_page({"status": ["running"], "q": "cron"})
    assert result.total == 1
    assert result.rows[0]["name"] == "cron-runner"


def test_explicit_query_wins_over_search_key(source):
    result = source.fetch_page({"q": "cron"}, query="billing")
    assert [row["id"] for row in result.rows] == [2]


def test_sort_is_applied_before_slicing(source):
    result = source.fetch_page(sort=[SortRule(column_id="cpu", direction="desc")], page_size=2)
    assert [row["id"] for row in result.rows] == [4, 1]


def test_search_columns_follow_options(frame):
    source = LazyFrameSource(
        frame.lazy(), search_options=GlobalSearchOptions(exclude_columns=["id", "created"])
    )
    assert source.search_columns == ["name", "status", "regions", "cpu"]

    source = LazyFrameSource(frame.lazy(), search_options=GlobalSearchOptions(searchable_columns=["name"]))
    assert source.fetch_page(query="running").total == 0


def test_facets_over_filtered_frame(source):
    assert source.facets("regions", {"status": ["running"]}) == Counter({"eu": 1, "us": 1})


# --- files ---

def test_scan_parquet(tmp_path, frame):
    path = tmp_path / "workloads.parquet"
    frame.write_parquet(path)
    source = LazyFrameSource.from_file(path)
    assert source.fetch_page().total == 4


def test_scan_csv(tmp_path):
    path = tmp_path / "workloads.csv"
    pl.DataFrame({"name": ["a", "b", "c"], "cpu": [1, 2, 3]}).write_csv(path)
    lf = scan_file(path)
    assert lf.collect().height == 3


def test_scan_file_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        scan_file(tmp_path / "missing.parquet")

    path = tmp_path / "workloads.xlsx"
    path.write_bytes(b"")
    with pytest.raises(ValueError, match="Unsupported file extension"):
        scan_file(path)
