"""
Output destinations for generated PDFs.

An output hands the engine a binary stream at open(), finishes it at close()
and throws away partial work at discard().
"""

import logging
import os
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Union


logger = logging.getLogger(__name__)


class PdfOutput(ABC):
    """Base class for PDF destinations"""

    @abstractmethod
    def open(self) -> BinaryIO:
        """Return a writable binary stream."""
        pass

    @abstractmethod
    def close(self):
        """Finish the output after the engine has written the document."""
        pass

    @abstractmethod
    def discard(self):
        """Drop any partial output."""
        pass


class FileOutput(PdfOutput):
    """Writes the PDF to a file path"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._stream: Optional[BinaryIO] = None

    def open(self) -> BinaryIO:
        # OSError (missing directory, permissions) propagates to the caller
        self._stream = open(self.path, 'wb')
        logger.debug(f"Opened PDF output file: {self.path}")
        return self._stream

    def close(self):
        if self._stream is not None and not self._stream.closed:
            self._stream.close()
            logger.debug(f"Closed PDF output file: {self.path}")

    def discard(self):
        """Close and delete a partially written file."""
        if self._stream is not None and not self._stream.closed:
            self._stream.close()

        if self._stream is not None and self.path.exists():
            os.unlink(self.path)
            logger.info(f"Removed partial PDF output: {self.path}")

        self._stream = None

    def __repr__(self):
        return f"FileOutput({str(self.path)!r})"


class BufferOutput(PdfOutput):
    """Collects the PDF in memory"""

    def __init__(self):
        self._stream: Optional[BytesIO] = None
        self.data: Optional[bytes] = None

    def open(self) -> BinaryIO:
        self._stream = BytesIO()
        return self._stream

    def close(self):
        if self._stream is not None:
            self.data = self._stream.getvalue()
            self._stream.close()
            self._stream = None

    def discard(self):
        if self._stream is not None:
            self._stream.close()
        self._stream = None
        self.data = None

    def getvalue(self) -> bytes:
        if self.data is None:
            raise ValueError("Buffer output has not been closed yet")
        return self.data

    def __repr__(self):
        return "BufferOutput()"
