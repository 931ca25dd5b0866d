"""Admin batch pipeline - exports public API."""
from .errors import BatchError, BatchValidationError, EmptySelectionError, BackupNotFoundError
from .tags import normalize_tags, parse_tags_cell
from .operations import apply_operation, find_replace
from .filters import build_query, matches_filter, native_where
from .preview import RowData, PreviewResult, build_preview, preview_response
from .backup import backup_path, write_backup, read_backup
from .executor import JobCounters, chunk, update_docs_in_chunks
from .exports import list_rows
