"""MBTiles tile store with read-merge-write updates."""

from __future__ import annotations

import io
import sqlite3
from pathlib import Path
from typing import Optional

from PIL import Image

from tileharvest.core.errors import StoreError
from tileharvest.core.models import RasterTile, TileStoreMetadata
from tileharvest.logging import get_logger
from tileharvest.sources.fetch import encode_png
from tileharvest.tiling.grid import invert_row

from .compositing import merge_tiles

LOGGER = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS metadata (name TEXT, value TEXT);
CREATE UNIQUE INDEX IF NOT EXISTS metadata_name ON metadata (name);
CREATE TABLE IF NOT EXISTS tiles (
    zoom_level INTEGER,
    tile_column INTEGER,
    tile_row INTEGER,
    tile_data BLOB
);
CREATE UNIQUE INDEX IF NOT EXISTS tile_index ON tiles (zoom_level, tile_column, tile_row);
"""


class MBTilesStore:
    """Single-writer handle on an MBTiles file.

    Rows are addressed in TMS (bottom-up) numbering. Once closed the handle
    rejects every further operation.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn: Optional[sqlite3.Connection] = sqlite3.connect(str(self._path))
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open tile store {self._path}: {exc}") from exc
        LOGGER.debug("opened tile store", extra={"path": str(self._path)})

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._conn is None

    def __enter__(self) -> "MBTilesStore":
        return self

    def __exit__(self, exc_type, exc, traceback) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError(f"Tile store {self._path} is closed")
        return self._conn

    def read_tile(self, zoom: int, column: int, row: int) -> Optional[bytes]:
        try:
            cursor = self._connection().execute(
                "SELECT tile_data FROM tiles WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?",
                (zoom, column, row),
            )
            found = cursor.fetchone()
        except sqlite3.Error as exc:
            raise StoreError(
                f"Could not read tile z:{zoom} column:{column} row:{row}: {exc}"
            ) from exc
        if found is None or found[0] is None:
            return None
        return bytes(found[0])

    def insert_tile(self, zoom: int, column: int, row: int, data: bytes) -> None:
        try:
            self._connection().execute(
                "INSERT INTO tiles (zoom_level, tile_column, tile_row, tile_data) VALUES (?, ?, ?, ?)",
                (zoom, column, row, sqlite3.Binary(data)),
            )
        except sqlite3.Error as exc:
            raise StoreError(
                f"Could not insert tile z:{zoom} column:{column} row:{row}: {exc}"
            ) from exc

    def update_tile(self, zoom: int, column: int, row: int, data: bytes) -> int:
        try:
            cursor = self._connection().execute(
                "UPDATE tiles SET tile_data = ? WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?",
                (sqlite3.Binary(data), zoom, column, row),
            )
        except sqlite3.Error as exc:
            raise StoreError(
                f"Could not update tile z:{zoom} column:{column} row:{row}: {exc}"
            ) from exc
        LOGGER.debug(
            "updated %d tile(s)",
            cursor.rowcount,
            extra={"zoom": zoom, "column": column, "row": row},
        )
        return cursor.rowcount

    def put_tile(self, tile: RasterTile) -> bool:
        """Store ``tile``, compositing it over any tile already at its coordinate.

        Returns ``True`` when an existing tile was updated.
        """

        coordinate = tile.coordinate
        zoom = coordinate.zoom
        column = coordinate.x
        row = invert_row(coordinate.y, zoom)

        existing = self.read_tile(zoom, column, row)
        if existing is None:
            self.insert_tile(zoom, column, row, tile.data)
            return False

        try:
            with Image.open(io.BytesIO(existing)) as stored:
                stored.load()
                merged = merge_tiles(stored, tile.image())
                data = encode_png(merged)
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "stored tile unreadable, replacing it: %s",
                exc,
                extra={"zoom": zoom, "column": column, "row": row},
            )
            data = tile.data
        self.update_tile(zoom, column, row, data)
        return True

    def write_metadata(self, metadata: TileStoreMetadata) -> None:
        try:
            conn = self._connection()
            conn.executemany(
                "INSERT OR REPLACE INTO metadata (name, value) VALUES (?, ?)",
                metadata.to_rows(),
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not write metadata to {self._path}: {exc}") from exc

    def commit(self) -> None:
        try:
            self._connection().commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not commit tile store {self._path}: {exc}") from exc

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not close tile store {self._path}: {exc}") from exc
        finally:
            conn.close()
        LOGGER.debug("closed tile store", extra={"path": str(self._path)})
