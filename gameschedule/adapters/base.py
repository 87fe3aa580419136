"""Abstract base adapter for loading schedule documents as page collections."""

from abc import ABC, abstractmethod


class BasePageSource(ABC):
    @abstractmethod
    def load(self, data_path: str) -> dict:
        """Load a document and return its page collection.

        The returned dict has the shape:
            {
              "pages": [
                {"width": float, "height": float,
                 "tokens": [{"x": float, "y": float, "w": float,
                             "runs": [{"text": <percent-encoded str>}]}]}
              ],
              "sourceFile": str | None,
            }
        Coordinates are in pdf2json page units (PDF points / 16) with a
        top-left origin.
        """
        pass
