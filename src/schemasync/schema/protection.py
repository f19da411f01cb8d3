"""
Protected fields, indexes and classes.

The backend owns these: a reconciliation pass must never add, delete or
recreate them, whatever the declared schemas say.
"""

from typing import Dict, FrozenSet


DEFAULT_COLUMNS: Dict[str, Dict[str, Dict[str, str]]] = {
    "_Default": {
        "objectId": {"type": "String"},
        "createdAt": {"type": "Date"},
        "updatedAt": {"type": "Date"},
        "ACL": {"type": "ACL"},
    },
    "_User": {
        "username": {"type": "String"},
        "password": {"type": "String"},
        "email": {"type": "String"},
        "emailVerified": {"type": "Boolean"},
        "authData": {"type": "Object"},
    },
    "_Installation": {
        "installationId": {"type": "String"},
        "deviceToken": {"type": "String"},
        "channels": {"type": "Array"},
        "deviceType": {"type": "String"},
        "pushType": {"type": "String"},
        "GCMSenderId": {"type": "String"},
        "timeZone": {"type": "String"},
        "localeIdentifier": {"type": "String"},
        "badge": {"type": "Number"},
        "appVersion": {"type": "String"},
        "appName": {"type": "String"},
        "appIdentifier": {"type": "String"},
        "parseVersion": {"type": "String"},
    },
    "_Role": {
        "name": {"type": "String"},
        "users": {"type": "Relation", "targetClass": "_User"},
        "roles": {"type": "Relation", "targetClass": "_Role"},
    },
    "_Session": {
        "user": {"type": "Pointer", "targetClass": "_User"},
        "installationId": {"type": "String"},
        "sessionToken": {"type": "String"},
        "expiresAt": {"type": "Date"},
        "createdWith": {"type": "Object"},
    },
    "_Product": {
        "productIdentifier": {"type": "String"},
        "download": {"type": "File"},
        "downloadName": {"type": "String"},
        "icon": {"type": "File"},
        "order": {"type": "Number"},
        "title": {"type": "String"},
        "subtitle": {"type": "String"},
    },
    "_PushStatus": {
        "pushTime": {"type": "String"},
        "source": {"type": "String"},
        "query": {"type": "String"},
        "payload": {"type": "String"},
        "title": {"type": "String"},
        "expiry": {"type": "Number"},
        "expiration_interval": {"type": "Number"},
        "status": {"type": "String"},
        "numSent": {"type": "Number"},
        "numFailed": {"type": "Number"},
        "pushHash": {"type": "String"},
        "errorMessage": {"type": "Object"},
        "sentPerType": {"type": "Object"},
        "failedPerType": {"type": "Object"},
        "sentPerUTCOffset": {"type": "Object"},
        "failedPerUTCOffset": {"type": "Object"},
        "count": {"type": "Number"},
    },
    "_JobStatus": {
        "jobName": {"type": "String"},
        "source": {"type": "String"},
        "status": {"type": "String"},
        "message": {"type": "String"},
        "params": {"type": "Object"},
        "finishedAt": {"type": "Date"},
    },
    "_JobSchedule": {
        "jobName": {"type": "String"},
        "description": {"type": "String"},
        "params": {"type": "String"},
        "startAfter": {"type": "String"},
        "daysOfWeek": {"type": "Array"},
        "timeOfDay": {"type": "String"},
        "lastRun": {"type": "Number"},
        "repeatMinutes": {"type": "Number"},
    },
    "_Hooks": {
        "functionName": {"type": "String"},
        "className": {"type": "String"},
        "triggerName": {"type": "String"},
        "url": {"type": "String"},
    },
    "_GlobalConfig": {
        "objectId": {"type": "String"},
        "params": {"type": "Object"},
        "masterKeyOnly": {"type": "Object"},
    },
    "_GraphQLConfig": {
        "objectId": {"type": "String"},
        "config": {"type": "Object"},
    },
    "_Audience": {
        "objectId": {"type": "String"},
        "name": {"type": "String"},
        "query": {"type": "String"},
        "lastUsed": {"type": "Date"},
        "timesUsed": {"type": "Number"},
    },
    "_Idempotency": {
        "reqId": {"type": "String"},
        "expire": {"type": "Date"},
    },
}

SYSTEM_CLASSES: FrozenSet[str] = frozenset(
    {
        "_User",
        "_Installation",
        "_Role",
        "_Session",
        "_Product",
        "_PushStatus",
        "_JobStatus",
        "_JobSchedule",
        "_Audience",
        "_Idempotency",
    }
)

PRIMARY_KEY_INDEX = "_id_"

USER_PROTECTED_INDEXES: FrozenSet[str] = frozenset(
    {
        "case_insensitive_username",
        "case_insensitive_email",
        "username_1",
        "email_1",
    }
)


def is_protected_field(class_name: str, field_name: str) -> bool:
    """Whether ``field_name`` is a built-in field of every class or of ``class_name``."""
    if field_name in DEFAULT_COLUMNS["_Default"]:
        return True
    return field_name in DEFAULT_COLUMNS.get(class_name, {})


def is_protected_index(class_name: str, index_name: str) -> bool:
    """Whether ``index_name`` is the primary key index or a built-in ``_User`` index."""
    if index_name == PRIMARY_KEY_INDEX:
        return True
    return class_name == "_User" and index_name in USER_PROTECTED_INDEXES


def is_system_class(class_name: str) -> bool:
    return class_name in SYSTEM_CLASSES
