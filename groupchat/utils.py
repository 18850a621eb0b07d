"""Utility functions for the application."""

import datetime


def serialize_document(data):
    """Return a JSON-ready copy of a Firestore document dictionary.

    Datetimes become ISO-8601 strings. Nested dictionaries and lists are
    converted recursively.
    """
    if isinstance(data, dict):
        return {key: serialize_document(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [serialize_document(value) for value in data]
    if isinstance(data, datetime.datetime):
        return data.isoformat()
    return data
