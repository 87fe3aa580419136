"""Adapter for page collections saved as JSON.

Handles two formats:
  - pdf2json output: {"Pages": [{"Width", "Height", "Texts": [{"x", "y", "w",
    "R": [{"T": "GARAM%20MASALA%201A"}]}]}], "sourcePdfFile"?}
  - The normalized page collection described in base.BasePageSource.
"""

import json

from ..core.models import ScheduleInputError
from .base import BasePageSource


class JsonPageSource(BasePageSource):
    """Load a page collection from a JSON file."""

    def load(self, data_path: str) -> dict:
        try:
            with open(data_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ScheduleInputError(f'{data_path} is not valid JSON: {e}') from e
        except OSError as e:
            raise ScheduleInputError(f'Cannot read {data_path}: {e}') from e
        return self.normalize(raw)

    @staticmethod
    def normalize(raw) -> dict:
        """Convert either supported format into the normalized page collection."""
        if not isinstance(raw, dict):
            raise ScheduleInputError('Expected a JSON object with a page list')

        if 'Pages' in raw:
            pages = []
            for page in raw['Pages'] or []:
                if not isinstance(page, dict):
                    raise ScheduleInputError('pdf2json page is not an object')
                pages.append({
                    'width': page.get('Width'),
                    'height': page.get('Height'),
                    'tokens': [_pdf2json_token(t) for t in page.get('Texts', [])],
                })
            return {'pages': pages, 'sourceFile': raw.get('sourcePdfFile')}

        if 'pages' in raw:
            return {'pages': raw['pages'], 'sourceFile': raw.get('sourceFile')}

        raise ScheduleInputError('JSON has neither "Pages" nor "pages"')


def _pdf2json_token(text: dict) -> dict:
    if not isinstance(text, dict):
        raise ScheduleInputError(f'Malformed pdf2json text record: {text!r}')
    return {
        'x': text.get('x'),
        'y': text.get('y'),
        'w': text.get('w', 0.0),
        'runs': [{'text': run.get('T', '')} if isinstance(run, dict) else run
                 for run in text.get('R', [])],
    }
