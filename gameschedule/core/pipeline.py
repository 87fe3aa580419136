"""Single extraction pipeline: page source in, schedule store out."""

import logging
import os

from .models import ExtractionResult, ScheduleConfig
from .page_parser import extract_schedule

logger = logging.getLogger(__name__)


def run_pipeline(source, data_path: str, store, config: ScheduleConfig | None = None,
                 overrides: dict | None = None) -> ExtractionResult:
    """Load a document, extract its games and replace the stored schedule.

    Args:
        source: A page source adapter (see adapters.base.BasePageSource).
        data_path: File handed to the source.
        store: Anything with record_run / replace_all / mark_run_completed /
               mark_run_failed (core.store.ScheduleStore).
        config: Extraction tolerances.
        overrides: Manual corrections from core.overrides.load_overrides().

    The run is recorded in the store either way. Any error marks it failed
    with the error message and is re-raised; the stored games are only
    replaced when extraction succeeded.
    """
    filename = os.path.basename(data_path)
    try:
        document = source.load(data_path)
        result = extract_schedule(document, source_file=document.get('sourceFile') or data_path,
                                  config=config, overrides=overrides)
    except Exception as e:
        run_id = store.record_run(filename, None)
        store.mark_run_failed(run_id, str(e))
        logger.error('Extraction of %s failed: %s', filename, e)
        raise

    run_id = store.record_run(result.source_file or filename, result.document_date)
    try:
        count = store.replace_all(result.games)
        store.mark_run_completed(run_id, count)
    except Exception as e:
        store.mark_run_failed(run_id, str(e))
        logger.error('Saving games from %s failed: %s', filename, e)
        raise
    return result
