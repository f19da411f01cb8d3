"""
Class level permission merging for schemasync.

Builds the permission document submitted with every create/update. Declared
values win, live values fill the gaps, and anything still missing is closed.
``addField`` is always closed: fields may only be added through declared
schemas, never out-of-band by clients.
"""

import copy
import logging
from typing import Any, Dict, Iterable, Optional, Union

from .models import CLP_ACTIONS, CLP_EXTRA_KEYS


logger = logging.getLogger(__name__)

QUERY_WRITE_ACTIONS = ("find", "count", "get", "update", "create", "delete")

DENY_ALL: Dict[str, bool] = {"*": False}


def merge_class_level_permissions(
    class_name: str,
    declared: Optional[Dict[str, Any]] = None,
    live: Optional[Dict[str, Any]] = None,
    live_class_exists: bool = False,
) -> Dict[str, Any]:
    """
    Compute the permission document to submit for ``class_name``.

    Args:
        class_name: Class being reconciled, used for the warning only
        declared: Declared ``classLevelPermissions``, if any
        live: The live class's current permissions, if any
        live_class_exists: Whether the class already exists on the backend

    Returns:
        A new permission document; neither input is modified
    """
    if declared is None and not live_class_exists:
        logger.warning(f"classLevelPermissions not provided for {class_name}.")

    declared = declared or {}
    live = live or {}
    clp: Dict[str, Any] = {}

    for action in CLP_ACTIONS:
        if declared.get(action) is not None:
            clp[action] = copy.deepcopy(declared[action])
        elif live.get(action) is not None:
            clp[action] = copy.deepcopy(live[action])
        else:
            clp[action] = dict(DENY_ALL)

    for key in CLP_EXTRA_KEYS:
        if declared.get(key) is not None:
            clp[key] = copy.deepcopy(declared[key])
        elif live.get(key) is not None:
            clp[key] = copy.deepcopy(live[key])

    clp["addField"] = {}
    return clp


def clp(ops: Union[str, Iterable[str]], value: Dict[str, Any]) -> Dict[str, Any]:
    """Apply the same access rule to several actions; ``'*'`` means every query/write action."""
    if ops == "*":
        ops = QUERY_WRITE_ACTIONS
    return {op: dict(value) for op in ops}


def requires_authentication(ops: Union[str, Iterable[str]]) -> Dict[str, Any]:
    return clp(ops, {"requiresAuthentication": True})


def requires_anonymous(ops: Union[str, Iterable[str]]) -> Dict[str, Any]:
    return clp(ops, {"*": True})
