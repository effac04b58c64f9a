"""reflex-data-table – filterable, sortable, paginated data tables for Reflex.

The engine (:class:`DataTable`) is plain Python and renders nothing; it
turns a list of records plus column descriptors into the rows, counts,
facets and pager state a table UI needs.  :class:`DataTableMixin` exposes
it to a Reflex page, and :class:`LazyFrameSource` serves pages straight
from a polars LazyFrame::

    pip install reflex-data-table
"""

from reflex_data_table.actions import MultiAction, RowAction, partition_row_actions
from reflex_data_table.columns import ColumnRegistry
from reflex_data_table.debounce import Debouncer
from reflex_data_table.exceptions import (
    ColumnConfigError,
    DataTableError,
    SelectionUnavailableError,
)
from reflex_data_table.facets import facet_counts, facet_min_max, facet_options
from reflex_data_table.filtering import (
    GlobalSearch,
    GlobalSearchOptions,
    column_filter_matches,
    filter_rows,
)
from reflex_data_table.inline_content import (
    InlineContentController,
    InlineContentState,
    LayoutEntry,
)
from reflex_data_table.lazyframe_source import LazyFrameSource, PageResult, scan_file
from reflex_data_table.models import ColumnDef, ColumnDescriptor, DateRange, SortRule
from reflex_data_table.pagination import (
    SHOW_ALL,
    ClientPaginator,
    ClientPaging,
    PageInfo,
    ServerPageInfo,
    ServerPaginator,
    ServerPaging,
)
from reflex_data_table.polars_utils import (
    apply_filter_state,
    apply_global_search,
    apply_sort_state,
    build_column_descriptors_from_schema,
    frame_facet_counts,
    lazyframe_to_rows,
    polars_dtype_to_sort_type,
)
from reflex_data_table.presets import PRESET_LABELS, preset_options, resolve_preset
from reflex_data_table.selection import SelectionController
from reflex_data_table.sorting import sort_labels, sort_rows, toggle_sort
from reflex_data_table.state import DataTableMixin
from reflex_data_table.store import CallbackStore, MemoryStore, Store
from reflex_data_table.table import DataTable, TableHandle
from reflex_data_table.toolbar import SearchConfig, ToolbarConfig, row_count_label, split_filters
from reflex_data_table.url_codec import (
    QueryParamFilterStore,
    apply_initial_state,
    decode_filter_value,
    decode_query_params,
    encode_filter_state,
    encode_filter_value,
)
