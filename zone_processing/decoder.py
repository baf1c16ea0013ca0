"""
Shapefile decoding into GeoJSON-shaped features.

The explorer only ever sees features as plain dicts:
    {"type": "Feature", "geometry": {...}, "properties": {...}}

Decoding is delegated to geopandas (pyogrio engine). The raw buffers are
written to a scratch directory because GDAL reads shapefiles by path. When the
.shx index is not supplied GDAL rebuilds it from the .shp.
"""

import struct
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import geopandas as gpd
import pyogrio
from loguru import logger

from zone_ops.errors import DecodeError

from .data_utils import Feature, normalize_value

SHP_FILE_CODE = 9994
SHP_HEADER_SIZE = 100
SHX_RECORD_SIZE = 8
DBF_HEADER_SIZE = 32


def _check_shp_header(shp_bytes: bytes) -> None:
    if len(shp_bytes) < SHP_HEADER_SIZE:
        raise DecodeError(f"SHP buffer too short for a shapefile header ({len(shp_bytes)} bytes)")
    (file_code,) = struct.unpack(">i", shp_bytes[:4])
    if file_code != SHP_FILE_CODE:
        raise DecodeError(f"SHP buffer has file code {file_code}, expected {SHP_FILE_CODE}")


def count_shp_records(shp_bytes: bytes, shx_bytes: Optional[bytes] = None) -> int:
    """
    Number of geometry records in a shapefile.

    The .shx index holds one fixed-size entry per record. Without it the .shp
    record headers are walked instead.

    Raises:
        DecodeError: If the index or the record headers are truncated
    """
    if shx_bytes is not None:
        body = len(shx_bytes) - SHP_HEADER_SIZE
        if body < 0 or body % SHX_RECORD_SIZE:
            raise DecodeError(f"SHX buffer has an invalid length ({len(shx_bytes)} bytes)")
        return body // SHX_RECORD_SIZE

    count = 0
    offset = SHP_HEADER_SIZE
    while offset < len(shp_bytes):
        if offset + 8 > len(shp_bytes):
            raise DecodeError(f"SHP record header truncated at byte {offset}")
        # Content length is counted in 16-bit words
        (_, content_words) = struct.unpack(">ii", shp_bytes[offset : offset + 8])
        offset += 8 + 2 * content_words
        if content_words < 0 or offset > len(shp_bytes):
            raise DecodeError(f"SHP record {count + 1} runs past the end of the buffer")
        count += 1
    return count


def count_dbf_records(dbf_bytes: bytes) -> int:
    """Number of attribute rows declared in a dBASE header."""
    if len(dbf_bytes) < DBF_HEADER_SIZE:
        raise DecodeError(f"DBF buffer too short for a dBASE header ({len(dbf_bytes)} bytes)")
    (count,) = struct.unpack("<I", dbf_bytes[4:8])
    return count


def features_from_geodataframe(gdf: gpd.GeoDataFrame) -> List[Feature]:
    """Convert a GeoDataFrame into GeoJSON-shaped feature dicts with plain Python values."""
    features = []
    for item in gdf.iterfeatures(na="null"):
        properties = {key: normalize_value(value) for key, value in item["properties"].items()}
        features.append({"type": "Feature", "geometry": item["geometry"], "properties": properties})
    return features


def decode(shp_bytes: bytes, dbf_bytes: bytes, shx_bytes: Optional[bytes] = None) -> List[Feature]:
    """
    Decode shapefile geometry and attribute buffers into features.

    Args:
        shp_bytes: Contents of the .shp file
        dbf_bytes: Contents of the .dbf file
        shx_bytes: Contents of the .shx index, if available

    Returns:
        Features in file order

    Raises:
        DecodeError: If the buffers are malformed or do not belong together
    """
    _check_shp_header(shp_bytes)
    if not dbf_bytes:
        raise DecodeError("DBF buffer is empty")

    shape_count = count_shp_records(shp_bytes, shx_bytes)
    row_count = count_dbf_records(dbf_bytes)
    if shape_count != row_count:
        raise DecodeError(
            f"SHP has {shape_count} records but DBF has {row_count}; the buffers do not belong together"
        )

    with tempfile.TemporaryDirectory(prefix="zone_explorer_") as scratch:
        base = Path(scratch) / "layer"
        base.with_suffix(".shp").write_bytes(shp_bytes)
        base.with_suffix(".dbf").write_bytes(dbf_bytes)
        if shx_bytes is not None:
            base.with_suffix(".shx").write_bytes(shx_bytes)
        else:
            pyogrio.set_gdal_config_options({"SHAPE_RESTORE_SHX": True})

        try:
            gdf = gpd.read_file(base.with_suffix(".shp"), engine="pyogrio")
        except Exception as e:
            raise DecodeError(f"Could not decode shapefile: {e}") from e
        finally:
            if shx_bytes is None:
                pyogrio.set_gdal_config_options({"SHAPE_RESTORE_SHX": None})

    features = features_from_geodataframe(gdf)
    logger.info(f"📊 Processed shapefile: {len(features)} features loaded")
    return features


def read_shapefile_buffers(base_path: Union[str, Path]) -> Tuple[bytes, bytes, Optional[bytes]]:
    """
    Read the .shp, .dbf and (if present) .shx components of a shapefile.

    Args:
        base_path: Shapefile path without extension

    Raises:
        FileNotFoundError: If the .shp or .dbf component is missing
    """
    base = Path(base_path)
    shp_path, dbf_path, shx_path = (Path(f"{base}{suffix}") for suffix in (".shp", ".dbf", ".shx"))

    missing = [str(p) for p in (shp_path, dbf_path) if not p.exists()]
    if missing:
        raise FileNotFoundError(f"Missing shapefile components: {missing}")

    logger.info(f"🔄 Loading shapefile data: {base.name}")
    return (
        shp_path.read_bytes(),
        dbf_path.read_bytes(),
        shx_path.read_bytes() if shx_path.exists() else None,
    )


def load_shapefile(base_path: Union[str, Path]) -> List[Feature]:
    """Read and decode a shapefile from disk by its base path (no extension)."""
    return decode(*read_shapefile_buffers(base_path))


def to_feature_collection(features: List[Feature]) -> Dict[str, Any]:
    """Wrap features in a GeoJSON FeatureCollection mapping."""
    return {"type": "FeatureCollection", "features": features}
