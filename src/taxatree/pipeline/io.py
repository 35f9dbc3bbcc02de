"""Tabular rendering and file I/O for classification results."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Tuple

import polars as pl

from taxatree.utils.helpers import ensure_directory, serialize_json
from taxatree.utils.logging import get_logger

from .extraction.inputs import SequenceRecord, parse_fasta

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .main import Classified

_LOGGER = get_logger(module=__name__)

_FASTA_SUFFIXES = {".fa", ".fas", ".fasta", ".fna", ".ffn", ".faa"}

TAXON_BASE_SCHEMA: Dict[str, pl.DataType] = {
    "taxon_id": pl.Utf8,
    "parent_id": pl.Utf8,
    "name": pl.Utf8,
    "rank": pl.Utf8,
    "id_origin": pl.Utf8,
    "index": pl.Int64,
    "parent_index": pl.Int64,
}

ITEM_BASE_SCHEMA: Dict[str, pl.DataType] = {
    "item_id": pl.Utf8,
    "taxon_id": pl.Utf8,
    "taxon_index": pl.Int64,
}


def _extend_schema(base: Dict[str, pl.DataType], columns: List[str]) -> Dict[str, pl.DataType]:
    schema = dict(base)
    for column in columns:
        schema.setdefault(column, pl.Utf8)
    return schema


def taxa_frame(result: "Classified") -> pl.DataFrame:
    """One row per taxon in slot order, plus taxon-scoped metadata columns."""

    schema = _extend_schema(TAXON_BASE_SCHEMA, result.taxon_info_columns)
    data: Dict[str, list] = {column: [] for column in schema}
    for taxon in result.taxa:
        data["taxon_id"].append(taxon.taxon_id)
        data["parent_id"].append(taxon.parent_id)
        data["name"].append(taxon.name)
        data["rank"].append(taxon.rank)
        data["id_origin"].append(taxon.id_origin.value)
        data["index"].append(taxon.index)
        data["parent_index"].append(taxon.parent_index)
        info = result.taxon_info.get(taxon.index, {})
        for column in result.taxon_info_columns:
            value = info.get(column)
            data[column].append(None if value is None else str(value))
    return pl.DataFrame(data, schema=schema)


def items_frame(result: "Classified") -> pl.DataFrame:
    """One row per bound item in input order."""

    schema = _extend_schema(ITEM_BASE_SCHEMA, result.item_columns)
    data: Dict[str, list] = {column: [] for column in schema}
    for item in result.items:
        data["item_id"].append(item.item_id)
        data["taxon_id"].append(item.taxon_id)
        data["taxon_index"].append(item.taxon_index)
        for column in result.item_columns:
            value = item.attributes.get(column)
            data[column].append(None if value is None else str(value))
    return pl.DataFrame(data, schema=schema)


def classified_to_frames(result: "Classified") -> Tuple[pl.DataFrame, pl.DataFrame]:
    return taxa_frame(result), items_frame(result)


def load_records(path: str | Path) -> List[str] | List[SequenceRecord]:
    """Read input records from disk.

    FASTA files (by suffix) become sequence records; any other file yields one
    text record per non-blank line.
    """

    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"input file not found: {source}")
    with source.open("r", encoding="utf-8") as handle:
        if source.suffix.lower() in _FASTA_SUFFIXES:
            records: List[str] | List[SequenceRecord] = parse_fasta(handle)
        else:
            records = [line.rstrip("\r\n") for line in handle if line.strip()]
    _LOGGER.info("Loaded input records", path=str(source), total=len(records))
    return records


def write_tables(
    result: "Classified",
    output_dir: str | Path,
    *,
    format: str = "csv",
    prefix: str = "",
) -> Tuple[Path, Path]:
    """Write the taxon and item tables; returns their resolved paths."""

    directory = ensure_directory(output_dir)
    taxa, items = classified_to_frames(result)
    format = format.lower()
    if format == "csv":
        taxa_path = directory / f"{prefix}taxa.csv"
        items_path = directory / f"{prefix}items.csv"
        taxa.write_csv(taxa_path)
        items.write_csv(items_path)
    elif format == "json":
        taxa_path = serialize_json(taxa.to_dicts(), directory / f"{prefix}taxa.json")
        items_path = serialize_json(items.to_dicts(), directory / f"{prefix}items.json")
    else:
        raise ValueError(f"unsupported table export format: {format}")
    _LOGGER.info(
        "Wrote classification tables",
        taxa=str(taxa_path),
        items=str(items_path),
        format=format,
    )
    return taxa_path.resolve(), items_path.resolve()


def write_run_report(result: "Classified", output_path: str | Path) -> Path:
    """Write validation, diagnostics and unbound records as one JSON document."""

    payload = {
        "source": result.source.value,
        "validation": result.validation.to_dict(),
        "diagnostics": result.diagnostics.to_dict(),
        "unbound": [
            {
                "position": record.position,
                "item_id": record.item_id,
                "text": record.text,
                "reason": record.reason,
            }
            for record in result.unbound
        ],
    }
    path = Path(output_path)
    ensure_directory(path.parent)
    serialize_json(payload, path)
    _LOGGER.info("Wrote run report", path=str(path))
    return path.resolve()


__all__ = [
    "TAXON_BASE_SCHEMA",
    "ITEM_BASE_SCHEMA",
    "taxa_frame",
    "items_frame",
    "classified_to_frames",
    "load_records",
    "write_tables",
    "write_run_report",
]
