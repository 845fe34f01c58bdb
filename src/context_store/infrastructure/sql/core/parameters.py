"""
SQL parameter binding utilities.

Entity attribute names are arbitrary strings, so they are never used as bind
parameter names directly. Columns are mapped to indexed parameter names
(col_0, col_1, ...) and batches are converted into the list-of-dicts shape
that SQLAlchemy executes as one executemany batch.
"""

import json
from typing import Any, Dict, List, Mapping, Sequence, Tuple


def build_indexed_params(columns: List[str]) -> Tuple[Dict[str, str], List[str]]:
    """
    Build indexed parameter mapping for SQL queries.

    Args:
        columns: List of column names

    Returns:
        Tuple of (column_to_param mapping, list of placeholder strings)

    Examples:
        >>> col_map, placeholders = build_indexed_params(["recvTime", "attrValue"])
        >>> col_map
        {'recvTime': 'col_0', 'attrValue': 'col_1'}
        >>> placeholders
        [':col_0', ':col_1']
    """
    col_param_map = {col: f"col_{i}" for i, col in enumerate(columns)}
    placeholders = [f":{col_param_map[col]}" for col in columns]
    return col_param_map, placeholders


def columns_to_records(columns: Mapping[str, Sequence[Any]]) -> List[Dict[str, Any]]:
    """
    Pivot a column-oriented batch into row dictionaries.

    Args:
        columns: Ordered mapping of field name to the values of every row

    Returns:
        One dictionary per row, keys in column order

    Raises:
        ValueError: If the columns do not all hold the same number of values

    Examples:
        >>> columns_to_records({"entityId": ["r1", "r2"], "temp": [20, 21]})
        [{'entityId': 'r1', 'temp': 20}, {'entityId': 'r2', 'temp': 21}]
    """
    if not columns:
        return []

    lengths = {name: len(values) for name, values in columns.items()}
    if len(set(lengths.values())) > 1:
        raise ValueError(f"Columns hold different numbers of values: {lengths}")

    names = list(columns.keys())
    row_count = next(iter(lengths.values()))
    return [
        {name: columns[name][i] for name in names} for i in range(row_count)
    ]


def adapt_value(value: Any, native: bool = True) -> Any:
    """
    Adapt a context value for binding.

    Native mode passes scalars through so typed columns receive typed values;
    structured values (dict/list) are always sent as JSON text. Text mode
    sends strings unchanged and every other non-null value as its JSON text.

    Examples:
        >>> adapt_value(21.5)
        21.5
        >>> adapt_value({"type": "Point"})
        '{"type": "Point"}'
        >>> adapt_value(True, native=False)
        'true'
        >>> adapt_value("21.5", native=False)
        '21.5'
    """
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if native or isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)
