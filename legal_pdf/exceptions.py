"""
Legal PDF Custom Exceptions
"""


class LegalPdfError(Exception):
    """Base exception for the legal PDF pipeline"""
    pass


class WriterStateError(LegalPdfError, RuntimeError):
    """Page writer used outside its start()/finalize() lifecycle"""
    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot call {operation}() on a page writer that is {state}")


class ExportCancelledError(LegalPdfError):
    """Export aborted by the caller's cancellation signal"""
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"PDF export cancelled during '{stage}'")
