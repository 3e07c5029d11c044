"""PRONOM format codes used by the built-in converter catalog."""

from __future__ import annotations

from typing import Optional

PDF_14 = "fmt/18"
PDF_17 = "fmt/276"
PDF_CODES: tuple[str, ...] = (
    "fmt/14",  # 1.0
    "fmt/15",  # 1.1
    "fmt/16",  # 1.2
    "fmt/17",  # 1.3
    PDF_14,
    "fmt/19",  # 1.5
    "fmt/20",  # 1.6
    PDF_17,
    "fmt/1129",  # 2.0
)
PDF_VERSIONS = {
    "fmt/14": "1.0",
    "fmt/15": "1.1",
    "fmt/16": "1.2",
    "fmt/17": "1.3",
    PDF_14: "1.4",
    "fmt/19": "1.5",
    "fmt/20": "1.6",
    PDF_17: "1.7",
    "fmt/1129": "2.0",
}

PDFA_2B = "fmt/477"
# PDF/A code -> conformance part.
PDFA_PARTS = {
    "fmt/95": 1,  # 1a
    "fmt/354": 1,  # 1b
    "fmt/476": 2,  # 2a
    PDFA_2B: 2,  # 2b
    "fmt/478": 2,  # 2u
    "fmt/479": 3,  # 3a
    "fmt/480": 3,  # 3b
}
PDFA_CODES: tuple[str, ...] = tuple(PDFA_PARTS)

POSTSCRIPT_CODES: tuple[str, ...] = (
    "fmt/124",
    "x-fmt/91",
    "x-fmt/406",
    "x-fmt/407",
    "x-fmt/408",
    "fmt/501",
)

TIFF = "fmt/353"
PNG_12 = "fmt/13"
PNG_CODES: tuple[str, ...] = ("fmt/11", "fmt/12", PNG_12)
JPEG_CODES: tuple[str, ...] = (
    "fmt/41",
    "fmt/42",
    "fmt/43",
    "fmt/44",
    "x-fmt/398",
    "x-fmt/390",
    "x-fmt/391",
)
GIF_CODES: tuple[str, ...] = ("fmt/3", "fmt/4")
BMP_CODES: tuple[str, ...] = (
    "fmt/114",
    "fmt/115",
    "fmt/116",
    "fmt/117",
    "fmt/118",
    "fmt/119",
    "x-fmt/270",
)
TIFF_CODES: tuple[str, ...] = (
    TIFF,
    "fmt/154",
    "fmt/153",
    "fmt/155",
    "fmt/156",
)
RASTER_CODES: tuple[str, ...] = (
    *JPEG_CODES,
    *PNG_CODES,
    *GIF_CODES,
    *BMP_CODES,
    *TIFF_CODES,
)

DOC_CODES: tuple[str, ...] = (
    "x-fmt/329",
    "fmt/609",
    "fmt/39",
    "x-fmt/274",
    "x-fmt/275",
    "x-fmt/276",
    "fmt/37",
    "fmt/38",
    "fmt/40",
    "x-fmt/131",
    "x-fmt/42",
    "x-fmt/43",
    "x-fmt/44",
    "x-fmt/393",
    "x-fmt/394",
    "fmt/892",
)
DOCX_CODES: tuple[str, ...] = ("fmt/1827", "fmt/412")
DOCM_CODES: tuple[str, ...] = ("fmt/523",)
DOTX_CODES: tuple[str, ...] = ("fmt/597",)
ODT_CODES: tuple[str, ...] = (
    "x-fmt/3",
    "fmt/1756",
    "fmt/136",
    "fmt/290",
    "fmt/291",
)
RTF_CODES: tuple[str, ...] = (
    "fmt/355",
    "fmt/969",
    "fmt/45",
    "fmt/50",
    "fmt/52",
    "fmt/53",
)
XLS_CODES: tuple[str, ...] = (
    "fmt/55",
    "fmt/56",
    "fmt/57",
    "fmt/59",
    "fmt/61",
    "fmt/62",
)
XLSX_CODES: tuple[str, ...] = ("fmt/214", "fmt/1828")
XLSM_CODES: tuple[str, ...] = ("fmt/445",)
XLTX_CODES: tuple[str, ...] = ("fmt/598",)
ODS_CODES: tuple[str, ...] = ("fmt/1755", "fmt/137", "fmt/294", "fmt/295")
CSV_CODES: tuple[str, ...] = ("x-fmt/18", "fmt/800")
PPT_CODES: tuple[str, ...] = (
    "fmt/1537",
    "fmt/1866",
    "fmt/181",
    "fmt/1867",
    "fmt/179",
    "fmt/1747",
    "fmt/1748",
    "x-fmt/88",
    "fmt/125",
    "fmt/126",
)
PPTX_CODES: tuple[str, ...] = ("fmt/215", "fmt/1829", "fmt/494")
PPTM_CODES: tuple[str, ...] = ("fmt/487",)
POTX_CODES: tuple[str, ...] = ("fmt/631",)
ODP_CODES: tuple[str, ...] = ("fmt/293", "fmt/292", "fmt/138", "fmt/1754")

EML_CODES: tuple[str, ...] = ("fmt/278", "fmt/950")
MSG_CODES: tuple[str, ...] = ("x-fmt/430", "fmt/1144")
EML = "fmt/950"

_EXTENSIONS: dict[str, str] = {}
for _codes, _extension in (
    (PDF_CODES, "pdf"),
    (PDFA_CODES, "pdf"),
    (POSTSCRIPT_CODES, "ps"),
    (PNG_CODES, "png"),
    (JPEG_CODES, "jpg"),
    (GIF_CODES, "gif"),
    (BMP_CODES, "bmp"),
    (TIFF_CODES, "tif"),
    (DOC_CODES, "doc"),
    (DOCX_CODES, "docx"),
    (DOCM_CODES, "docm"),
    (DOTX_CODES, "dotx"),
    (ODT_CODES, "odt"),
    (RTF_CODES, "rtf"),
    (XLS_CODES, "xls"),
    (XLSX_CODES, "xlsx"),
    (XLSM_CODES, "xlsm"),
    (XLTX_CODES, "xltx"),
    (ODS_CODES, "ods"),
    (CSV_CODES, "csv"),
    (PPT_CODES, "ppt"),
    (PPTX_CODES, "pptx"),
    (PPTM_CODES, "pptm"),
    (POTX_CODES, "potx"),
    (ODP_CODES, "odp"),
    (EML_CODES, "eml"),
    (MSG_CODES, "msg"),
):
    for _code in _codes:
        _EXTENSIONS.setdefault(_code, _extension)


def extension_for(code: str) -> Optional[str]:
    """Return the conventional file extension (no dot) for ``code``."""

    return _EXTENSIONS.get(code)


def is_pdfa(code: str) -> bool:
    return code in PDFA_PARTS


__all__ = [
    "extension_for",
    "is_pdfa",
]
