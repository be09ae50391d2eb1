"""Load and validate query definitions from YAML files."""

import os
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Union
import yaml
from pydantic import ValidationError

from .errors import LoadError, UnknownQueryError
from .models import QueryDefinition


logger = logging.getLogger(__name__)

DEFAULT_DEFINITIONS_PATH = "queries.yaml"


class QueryCatalog:
    """
    Immutable set of query definitions, keyed by id.

    Built once with QueryCatalog.load() and handed to the runner; nothing
    changes it afterwards, so concurrent readers need no locking.
    """

    def __init__(self, queries: Mapping[str, QueryDefinition], source: Optional[Path] = None):
        self._queries = MappingProxyType(dict(queries))
        self.source = source

    @classmethod
    def load(cls, source: Optional[Union[str, Path]] = None) -> "QueryCatalog":
        """
        Load query definitions from a YAML file or a directory of YAML files.

        Args:
            source: Path to a YAML file holding a list of definitions, or a
                    directory of such files. If None, uses the
                    QUERY_DEFINITIONS_PATH env var, then queries.yaml.

        Raises:
            LoadError: If the source cannot be read or deserialized
        """
        if source is None:
            source = os.getenv("QUERY_DEFINITIONS_PATH") or DEFAULT_DEFINITIONS_PATH

        path = Path(source)
        if not path.exists():
            raise LoadError(f"Query definitions not found: {path}")

        if path.is_dir():
            yaml_files = sorted(list(path.glob("*.yaml")) + list(path.glob("*.yml")))
            if not yaml_files:
                raise LoadError(f"No YAML files found in {path}")
        else:
            yaml_files = [path]

        logger.info(f"Loading queries from {path}")

        queries: Dict[str, QueryDefinition] = {}
        for yaml_file in yaml_files:
            for query_def in _load_file(yaml_file):
                if query_def.id in queries:
                    raise LoadError(f"Duplicate query id '{query_def.id}' in {yaml_file}")
                queries[query_def.id] = query_def
                logger.debug(f"Loaded query: {query_def.id}")

        logger.info(f"Loaded {len(queries)} queries")
        return cls(queries, source=path)

    def lookup(self, query_id: str) -> QueryDefinition:
        """Get a query by id, raising UnknownQueryError if absent."""
        try:
            return self._queries[query_id]
        except KeyError:
            raise UnknownQueryError(query_id) from None

    def get(self, query_id: str) -> Optional[QueryDefinition]:
        return self._queries.get(query_id)

    def ids(self) -> List[str]:
        return list(self._queries.keys())

    @property
    def queries(self) -> Mapping[str, QueryDefinition]:
        return self._queries

    def __contains__(self, query_id: object) -> bool:
        return query_id in self._queries

    def __iter__(self) -> Iterator[QueryDefinition]:
        return iter(self._queries.values())

    def __len__(self) -> int:
        return len(self._queries)


def _load_file(yaml_file: Path) -> List[QueryDefinition]:
    """Parse one YAML file into validated definitions."""
    try:
        with open(yaml_file, 'r') as f:
            raw_data = yaml.safe_load(f)
    except OSError as e:
        raise LoadError(f"Failed to read YAML file {yaml_file}: {e}") from e
    except yaml.YAMLError as e:
        raise LoadError(f"Failed to parse YAML file {yaml_file}: {e}") from e

    if raw_data is None:
        logger.warning(f"Empty YAML file: {yaml_file}")
        return []

    if not isinstance(raw_data, list):
        raise LoadError(
            f"Expected a list of query definitions in {yaml_file}, "
            f"got {type(raw_data).__name__}"
        )

    definitions = []
    for index, record in enumerate(raw_data):
        if not isinstance(record, dict):
            raise LoadError(f"Entry {index} in {yaml_file} is not a mapping")
        try:
            definitions.append(QueryDefinition.model_validate(record))
        except ValidationError as e:
            logger.error(f"Validation failed for entry {index} in {yaml_file}: {e}")
            raise LoadError(f"Invalid query definition {index} in {yaml_file}: {e}") from e
    return definitions
