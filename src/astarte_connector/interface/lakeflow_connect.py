from abc import ABC, abstractmethod
from typing import Iterator

from pyspark.sql.types import StructType


class LakeflowConnect(ABC):
    """Base interface for a source that exposes remote data as tables.

    A source maps each table onto one family of API calls, declares a static
    Spark schema per table, and reads records in batches driven by offsets.
    """

    def __init__(self, options: dict[str, str]) -> None:
        """
        Initialize the source with connection-level parameters.
        Args:
            options: A dictionary of parameters such as the API base URL,
                the bearer token, and the tenant (realm) to query.
        """
        self.options = options

    @abstractmethod
    def list_tables(self) -> list[str]:
        """
        List names of all the tables supported by the source.
        Returns:
            A list of table names.
        """

    @abstractmethod
    def get_table_schema(
        self, table_name: str, table_options: dict[str, str]
    ) -> StructType:
        """
        Fetch the schema of a table.
        Args:
            table_name: The name of the table to fetch the schema for.
            table_options: Per-table options. Schemas of this source are static,
                so the options are accepted for interface symmetry only.
        Returns:
            A StructType object representing the schema of the table.
        """

    @abstractmethod
    def read_table_metadata(
        self, table_name: str, table_options: dict[str, str]
    ) -> dict:
        """
        Fetch the metadata of a table.
        Args:
            table_name: The name of the table to fetch the metadata for.
            table_options: Per-table options.
        Returns:
            A dictionary with the keys:
                - primary_keys: List of column names identifying a row.
                - cursor_field: Column used as the incremental cursor
                    (append tables only).
                - ingestion_type: "snapshot" (re-read everything every run)
                    or "append" (only rows past the stored cursor).
        """

    @abstractmethod
    def read_table(
        self, table_name: str, start_offset: dict, table_options: dict[str, str]
    ) -> tuple[Iterator[dict], dict]:
        """
        Read the records of a table and return an iterator of records and an offset.

        The caller invokes this method repeatedly, passing the previously
        returned offset as start_offset. Reading stops when the returned
        offset equals start_offset (no more data). Snapshot tables return
        an empty dict as the offset and deliver everything in one batch.

        Args:
            table_name: The name of the table to read.
            start_offset: The offset to resume from, or None on the first call.
            table_options: Per-table options such as device ID and interface.
        Returns:
            A two-element tuple of (records, offset).
            records: An iterator of JSON-compatible dicts.
            offset: A dict representing the position after this batch.
        """
