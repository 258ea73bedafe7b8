
class PdfDeskError(Exception):
    """Base class for every error raised by the composition engine."""


class MalformedDocument(PdfDeskError):
    pass


class PageIndexOutOfRange(PdfDeskError, IndexError):
    def __init__(self, page_index: int, page_count: int):
        super().__init__(f"page index {page_index} out of range (document has {page_count} pages)")
        self.page_index = page_index
        self.page_count = page_count


class FieldNotFound(PdfDeskError, KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f"form field not found: {self.name!r}"


class UnsupportedFormat(PdfDeskError):
    pass


class FlattenFailed(PdfDeskError):
    pass


class QuotaExceeded(PdfDeskError):
    pass


class ItemNotFound(PdfDeskError, KeyError):
    def __init__(self, item_id: str):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self):
        return f"placed item not found: {self.item_id!r}"


class InvalidTransition(PdfDeskError):
    pass
