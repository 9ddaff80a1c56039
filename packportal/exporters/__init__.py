"""Document exporters for shipping loads."""

from packportal.exporters.customs_document import generate_customs_document
from packportal.exporters.packing_list_pdf import generate_packing_list_pdf

__all__ = [
    "generate_customs_document",
    "generate_packing_list_pdf",
]
