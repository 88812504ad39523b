"""Document Sanitization Module

Prunes noise out of caller-supplied JSON documents before they are
indexed. The transform is pure: a new tree is built and the input is
never mutated.

Pruning rules for an object, applied bottom-up:
  - keys "." and ".." are always dropped
  - "lastModifiedDate" is dropped when its value is "" or null
  - nested objects and arrays are dropped when they sanitize to empty
  - empty strings and nulls are dropped
  - everything else (numbers, booleans, including 0 and false) is kept

Array elements follow the same rules minus the key-based ones; only
nulls, empty objects and empty arrays are removed from an array.
Surviving keys and elements keep their input order.
"""

import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

DOT_KEYS = frozenset({".", ".."})
DATE_KEY = "lastModifiedDate"


def sanitize(value: Any) -> Any:
    """
    Sanitize any JSON-representable value.

    Objects and arrays are pruned recursively; scalars are returned as-is.

    Args:
        value: Decoded JSON value (dict, list, str, number, bool or None)

    Returns:
        A new pruned tree for containers, the value itself otherwise
    """
    if isinstance(value, dict):
        return sanitize_document(value)
    if isinstance(value, list):
        return sanitize_array(value)
    return value


def sanitize_document(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sanitize a JSON object.

    Args:
        data: Decoded JSON object

    Returns:
        New dict holding only the surviving keys, in input order.
        May be empty if nothing survives.
    """
    result: Dict[str, Any] = {}

    for key, value in data.items():
        if key in DOT_KEYS:
            logger.debug("Dropping dot key %r", key)
            continue

        if key == DATE_KEY and (value is None or value == ""):
            logger.debug("Dropping empty %s", DATE_KEY)
            continue

        if isinstance(value, dict):
            cleaned = sanitize_document(value)
            if cleaned:
                result[key] = cleaned
            else:
                logger.debug("Dropping key %r: empty object", key)
        elif isinstance(value, list):
            cleaned = sanitize_array(value)
            if cleaned:
                result[key] = cleaned
            else:
                logger.debug("Dropping key %r: empty array", key)
        elif isinstance(value, str):
            if value:
                result[key] = value
            else:
                logger.debug("Dropping key %r: empty string", key)
        elif value is not None:
            result[key] = value
        else:
            logger.debug("Dropping key %r: null", key)

    return result


def sanitize_array(items: List[Any]) -> List[Any]:
    """
    Sanitize a JSON array, preserving element order.

    Nulls, and objects or arrays that sanitize to empty, are removed.
    Strings (including "") and other scalars are kept.
    """
    result: List[Any] = []

    for idx, value in enumerate(items):
        if isinstance(value, dict):
            cleaned = sanitize_document(value)
            if cleaned:
                result.append(cleaned)
            else:
                logger.debug("Dropping element %d: empty object", idx)
        elif isinstance(value, list):
            cleaned = sanitize_array(value)
            if cleaned:
                result.append(cleaned)
            else:
                logger.debug("Dropping element %d: empty array", idx)
        elif value is not None:
            result.append(value)
        else:
            logger.debug("Dropping element %d: null", idx)

    return result
