"""Import of OpenAPI and Swagger documents.

Sub-modules:

* :mod:`~svcconfig.importer.loader` -- reading JSON/YAML documents.
* :mod:`~svcconfig.importer.type_builder` -- schema-to-type translation.
* :mod:`~svcconfig.importer.service_builder` -- the document-to-service
  importer.
* :mod:`~svcconfig.importer.names` -- identifier conversions.
"""

from svcconfig.importer.loader import detect_format, load_document, parse_document
from svcconfig.importer.service_builder import ImportResult, OpenApiImporter
from svcconfig.importer.type_builder import TypeBuilder
from svcconfig.importer.type_info import TypeInfo

__all__ = [
    "ImportResult",
    "OpenApiImporter",
    "TypeBuilder",
    "TypeInfo",
    "detect_format",
    "load_document",
    "parse_document",
]
