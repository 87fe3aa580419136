"""Adapter for reading schedule PDFs directly with PyMuPDF."""

import os
from urllib.parse import quote

import fitz

from ..core.models import ScheduleInputError
from .base import BasePageSource


class PdfPageSource(BasePageSource):
    """Turn every text span of a PDF into one raw text record.

    Coordinates are converted to pdf2json page units so the same
    tolerances apply whichever extractor produced the pages.
    """

    POINTS_PER_UNIT = 16.0

    def load(self, data_path: str) -> dict:
        try:
            doc = fitz.open(data_path)
        except (fitz.FileDataError, RuntimeError, OSError) as e:
            raise ScheduleInputError(f'Cannot open PDF {data_path}: {e}') from e

        pages = []
        for page_num in range(doc.page_count):
            pages.append(self._read_page(doc[page_num]))

        doc.close()
        return {'pages': pages, 'sourceFile': os.path.basename(data_path)}

    def _read_page(self, page) -> dict:
        scale = self.POINTS_PER_UNIT
        tokens = []
        blocks = page.get_text("dict")
        for block in blocks["blocks"]:
            if "lines" not in block:
                continue
            for line in block["lines"]:
                for span in line["spans"]:
                    text = span["text"]
                    if not text.strip():
                        continue
                    x0, y0, x1, _ = span["bbox"]
                    tokens.append({
                        'x': round(x0 / scale, 3),
                        'y': round(y0 / scale, 3),
                        'w': round((x1 - x0) / scale, 3),
                        'runs': [{'text': quote(text, safe='')}],
                    })

        return {
            'width': page.rect.width / scale,
            'height': page.rect.height / scale,
            'tokens': tokens,
        }
