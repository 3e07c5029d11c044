"""Compiled-in catalog of converter variants.

Declaration order is priority order: when several usable variants can
produce the same target, the earlier one is tried first.
"""

from __future__ import annotations

import importlib
import json
import os
import shutil
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from . import formats as fmt
from .models import ConversionError
from .probe import (
    ALL_OPERATING_SYSTEMS,
    DARWIN,
    LINUX,
    executable_available,
    first_executable,
    module_available,
)
from .tools import expect_output, run_tool, tool_version
from .variants import ConversionJob, ConverterVariant, capability_map

EMAIL_JAR_ENV = "PRESERVE_EMAIL_CONVERTER_JAR"

_SOFFICE = ("soffice", "libreoffice")
_GHOSTSCRIPT = ("gs", "gswin64c", "gswin32c")

_PDFA_OUTPUTS = ("fmt/354", fmt.PDFA_2B, "fmt/480")


def builtin_catalog(
    env: Optional[Mapping[str, str]] = None,
) -> tuple[ConverterVariant, ...]:
    """Return every known variant, usable or not, in priority order."""

    env_map = os.environ if env is None else env
    return (
        pillow_variant(),
        ghostscript_variant(),
        libreoffice_variant(),
        email_to_pdf_variant(env_map.get(EMAIL_JAR_ENV)),
        msgconvert_variant(),
    )


def _output_path(job: ConversionJob, extension: str) -> Path:
    job.destination_dir.mkdir(parents=True, exist_ok=True)
    target = job.output_path(extension)
    if target.resolve() == job.source.resolve():
        raise ConversionError(
            f"Refusing to overwrite the source file {job.source}; choose an "
            "output directory different from the input."
        )
    return target


def _require_extension(code: str) -> str:
    extension = fmt.extension_for(code)
    if extension is None:
        raise ConversionError(f"No file extension known for format {code}")
    return extension


def _require_executable(candidates: tuple[str, ...]) -> str:
    executable = first_executable(*candidates)
    if executable is None:
        raise ConversionError(
            "None of {0} found on PATH".format(", ".join(candidates))
        )
    return executable


# --- Pillow (raster images) ---

_PILLOW_TARGETS = (fmt.TIFF, fmt.PNG_12, fmt.PDF_14)
_PILLOW_FORMATS = {fmt.TIFF: "TIFF", fmt.PNG_12: "PNG", fmt.PDF_14: "PDF"}


def pillow_variant() -> ConverterVariant:
    return ConverterVariant(
        name="pillow",
        operating_systems=ALL_OPERATING_SYSTEMS,
        dependency_check=lambda: module_available("PIL"),
        capabilities=capability_map((fmt.RASTER_CODES, _PILLOW_TARGETS)),
        invoke=_convert_with_pillow,
        describe_version=lambda: _distribution_version("Pillow"),
    )


def _convert_with_pillow(job: ConversionJob) -> Path:
    image_module = _import_module("PIL.Image")
    save_format = _PILLOW_FORMATS.get(job.target_code)
    if save_format is None:
        raise ConversionError(f"pillow cannot produce {job.target_code}")
    output = _output_path(job, _require_extension(job.target_code))
    try:
        with image_module.open(job.source) as image:
            _save_image(image, output, save_format)
    except (OSError, ValueError) as exc:
        raise ConversionError(
            f"pillow failed on {job.source.name}: {exc}"
        ) from exc
    return expect_output(output, "pillow")


def _save_image(image: Any, output: Path, save_format: str) -> None:
    if save_format == "PNG":
        if image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I"):
            image = image.convert("RGBA")
        image.save(output, format="PNG")
        return
    if save_format == "PDF" and image.mode not in ("1", "L", "RGB", "CMYK"):
        image = image.convert("RGB")
    # Multi-frame sources (animated GIF, multi-page TIFF) keep every frame.
    extra: dict[str, Any] = {"save_all": getattr(image, "n_frames", 1) > 1}
    if save_format == "TIFF":
        extra["compression"] = "tiff_lzw"
    image.save(output, format=save_format, **extra)


# --- Ghostscript (PDF, PostScript) ---

_GS_DEVICES = {
    fmt.TIFF: "tiff24nc",
    fmt.PNG_12: "png16m",
    "fmt/43": "jpeg",
    "fmt/116": "bmp16m",
}


def ghostscript_variant() -> ConverterVariant:
    pdf_sources = (*fmt.PDF_CODES, *fmt.PDFA_CODES)
    return ConverterVariant(
        name="ghostscript",
        operating_systems=ALL_OPERATING_SYSTEMS,
        dependency_check=lambda: first_executable(*_GHOSTSCRIPT) is not None,
        capabilities=capability_map(
            (pdf_sources, tuple(_GS_DEVICES)),
            (fmt.PDF_CODES, fmt.PDFA_CODES),
            (fmt.POSTSCRIPT_CODES, (*fmt.PDF_CODES, *fmt.PDFA_CODES)),
        ),
        invoke=_convert_with_ghostscript,
        max_concurrency=2,
        describe_version=lambda: tool_version(
            [first_executable(*_GHOSTSCRIPT) or "gs", "--version"]
        ),
    )


def _convert_with_ghostscript(job: ConversionJob) -> Path:
    executable = _require_executable(_GHOSTSCRIPT)
    base = [executable, "-dBATCH", "-dNOPAUSE", "-dSAFER", "-dQUIET"]
    target_code = job.target_code
    extension = _require_extension(target_code)

    if target_code in _GS_DEVICES:
        if target_code == fmt.TIFF:
            output = _output_path(job, extension)
            pattern = output
        else:
            # One file per page; the first page stands for the document.
            job.destination_dir.mkdir(parents=True, exist_ok=True)
            stem = job.destination_dir / job.output_stem
            pattern = Path(f"{stem}-%03d.{extension}")
            output = Path(f"{stem}-001.{extension}")
        command = [
            *base,
            f"-sDEVICE={_GS_DEVICES[target_code]}",
            "-r300",
            f"-sOutputFile={pattern}",
            str(job.source),
        ]
    elif fmt.is_pdfa(target_code):
        output = _output_path(job, extension)
        command = [
            *base,
            f"-dPDFA={fmt.PDFA_PARTS[target_code]}",
            "-dNOOUTERSAVE",
            "-dPDFACompatibilityPolicy=1",
            "-sColorConversionStrategy=RGB",
            "-sDEVICE=pdfwrite",
            f"-sOutputFile={output}",
            str(job.source),
        ]
    elif target_code in fmt.PDF_VERSIONS:
        output = _output_path(job, extension)
        command = [
            *base,
            "-sDEVICE=pdfwrite",
            f"-dCompatibilityLevel={fmt.PDF_VERSIONS[target_code]}",
            f"-sOutputFile={output}",
            str(job.source),
        ]
    else:
        raise ConversionError(f"ghostscript cannot produce {target_code}")

    run_tool(command, timeout=job.timeout)
    return expect_output(output, "ghostscript")


# --- LibreOffice (office documents) ---

_WRITER_SOURCES = (
    *fmt.DOC_CODES,
    *fmt.DOCX_CODES,
    *fmt.DOCM_CODES,
    *fmt.DOTX_CODES,
    *fmt.ODT_CODES,
    *fmt.RTF_CODES,
)
_CALC_SOURCES = (
    *fmt.XLS_CODES,
    *fmt.XLSX_CODES,
    *fmt.XLSM_CODES,
    *fmt.XLTX_CODES,
    *fmt.ODS_CODES,
    *fmt.CSV_CODES,
)
_IMPRESS_SOURCES = (
    *fmt.PPT_CODES,
    *fmt.PPTX_CODES,
    *fmt.PPTM_CODES,
    *fmt.POTX_CODES,
    *fmt.ODP_CODES,
)
_PDF_FILTERS = (
    (frozenset(_WRITER_SOURCES), "writer_pdf_Export"),
    (frozenset(_CALC_SOURCES), "calc_pdf_Export"),
    (frozenset(_IMPRESS_SOURCES), "impress_pdf_Export"),
)
_DOCX, _ODT = "fmt/412", "fmt/1756"
_XLSX, _ODS = "fmt/214", "fmt/1755"
_PPTX, _ODP = "fmt/215", "fmt/1754"
_OFFICE_PDF = (fmt.PDF_17, *_PDFA_OUTPUTS)
_LEGACY_WRITER = (
    *fmt.DOC_CODES,
    *fmt.DOCM_CODES,
    *fmt.DOTX_CODES,
    *fmt.RTF_CODES,
)
_LEGACY_CALC = (
    *fmt.XLS_CODES,
    *fmt.XLSM_CODES,
    *fmt.XLTX_CODES,
    *fmt.CSV_CODES,
)
_LEGACY_IMPRESS = (*fmt.PPT_CODES, *fmt.PPTM_CODES, *fmt.POTX_CODES)


def libreoffice_variant() -> ConverterVariant:
    return ConverterVariant(
        name="libreoffice",
        operating_systems=ALL_OPERATING_SYSTEMS,
        dependency_check=lambda: first_executable(*_SOFFICE) is not None,
        capabilities=capability_map(
            (_LEGACY_WRITER, (_DOCX, _ODT, *_OFFICE_PDF)),
            (fmt.DOCX_CODES, (_ODT, *_OFFICE_PDF)),
            (fmt.ODT_CODES, (_DOCX, *_OFFICE_PDF)),
            (_LEGACY_CALC, (_XLSX, _ODS, *_OFFICE_PDF)),
            (fmt.XLSX_CODES, (_ODS, *_OFFICE_PDF)),
            (fmt.ODS_CODES, (_XLSX, *_OFFICE_PDF)),
            (_LEGACY_IMPRESS, (_PPTX, _ODP, *_OFFICE_PDF)),
            (fmt.PPTX_CODES, (_ODP, *_OFFICE_PDF)),
            (fmt.ODP_CODES, (_PPTX, *_OFFICE_PDF)),
        ),
        invoke=_convert_with_libreoffice,
        # A single soffice instance per host; parallel runs corrupt its
        # user profile.
        max_concurrency=1,
        describe_version=lambda: tool_version(
            [first_executable(*_SOFFICE) or "soffice", "--version"]
        ),
    )


def _libreoffice_filter(source_code: str, target_code: str) -> str:
    if not fmt.is_pdfa(target_code):
        return _require_extension(target_code)
    export_filter = "writer_pdf_Export"
    for sources, candidate in _PDF_FILTERS:
        if source_code in sources:
            export_filter = candidate
            break
    options = {
        "SelectPdfVersion": {
            "type": "long",
            "value": str(fmt.PDFA_PARTS[target_code]),
        }
    }
    return f"pdf:{export_filter}:{json.dumps(options, separators=(',', ':'))}"


def _convert_with_libreoffice(job: ConversionJob) -> Path:
    executable = _require_executable(_SOFFICE)
    output = _output_path(job, _require_extension(job.target_code))
    # soffice names its output after the input file, so a renamed output
    # stem needs a staging directory.
    staging = job.destination_dir
    if job.source.stem != job.output_stem:
        staging = job.destination_dir / f".{job.output_stem}.soffice"
        staging.mkdir(parents=True, exist_ok=True)
    command = [
        executable,
        "--headless",
        "--norestore",
        "--convert-to",
        _libreoffice_filter(job.source_code, job.target_code),
        "--outdir",
        str(staging),
        str(job.source),
    ]
    run_tool(command, timeout=job.timeout)
    if staging != job.destination_dir:
        produced = staging / f"{job.source.stem}{output.suffix}"
        if produced.is_file():
            produced.replace(output)
        shutil.rmtree(staging, ignore_errors=True)
    return expect_output(output, "libreoffice")


# --- E-mail ---


def email_to_pdf_variant(jar_path: Optional[str]) -> ConverterVariant:
    jar = Path(jar_path).expanduser() if jar_path else None

    def _dependencies_present() -> bool:
        return (
            jar is not None
            and jar.is_file()
            and executable_available("java", "wkhtmltopdf")
        )

    return ConverterVariant(
        name="email-to-pdf",
        operating_systems=ALL_OPERATING_SYSTEMS,
        dependency_check=_dependencies_present,
        capabilities=capability_map((fmt.EML_CODES, (fmt.PDF_14,))),
        invoke=_email_invoker(jar),
        max_concurrency=2,
        describe_version=lambda: jar.stem if jar is not None else "",
    )


def _email_invoker(jar: Optional[Path]) -> Callable[[ConversionJob], Path]:
    def _convert(job: ConversionJob) -> Path:
        if jar is None:
            raise ConversionError(f"{EMAIL_JAR_ENV} is not set")
        output = _output_path(job, "pdf")
        run_tool(
            ["java", "-jar", str(jar), "-o", str(output), str(job.source)],
            timeout=job.timeout,
        )
        return expect_output(output, "email-to-pdf")

    return _convert


def msgconvert_variant() -> ConverterVariant:
    return ConverterVariant(
        name="msgconvert",
        operating_systems=frozenset({LINUX, DARWIN}),
        dependency_check=lambda: executable_available("msgconvert"),
        capabilities=capability_map((fmt.MSG_CODES, (fmt.EML,))),
        invoke=_convert_with_msgconvert,
    )


def _convert_with_msgconvert(job: ConversionJob) -> Path:
    output = _output_path(job, "eml")
    run_tool(
        ["msgconvert", "--outfile", str(output), str(job.source)],
        timeout=job.timeout,
    )
    return expect_output(output, "msgconvert")


def _import_module(module: str) -> Any:
    try:
        return importlib.import_module(module)
    except ImportError as exc:
        raise ConversionError(
            f"Optional dependency '{module.split('.', 1)[0]}' is not "
            "installed. Install it with "
            '`pip install "preserve-utils[raster]"`.'
        ) from exc


def _distribution_version(name: str) -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return ""


__all__ = [
    "EMAIL_JAR_ENV",
    "builtin_catalog",
    "email_to_pdf_variant",
    "ghostscript_variant",
    "libreoffice_variant",
    "msgconvert_variant",
    "pillow_variant",
]
