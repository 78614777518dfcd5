# ==============================================
# TypeDetector
# ==============================================
#
# PURPOSE:
#   Name the type of one sampled value. Documents come back from
#   pymongo as Python values plus a few BSON classes, so both are
#   mapped onto a small set of type names.
#
# TYPE NAMES:
# -----------
#   null, bool, int, float, decimal, str, date, objectid, binary,
#   regex, uuid, array, object
#
#   Strings get a closer look: an IP address is "ip" (not "float"
#   for "1.2.3.4"), a UUID string is "uuid", an ISO-ish date string
#   is "datetime".
#
# ==============================================

import ipaddress
import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from bson import ObjectId
from bson.binary import Binary
from bson.decimal128 import Decimal128
from bson.regex import Regex


class TypeDetector:
    UUID_PATTERN = re.compile(
        r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
        re.IGNORECASE
    )

    DATETIME_FORMATS = [
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%dT%H:%M:%S.%fZ",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d",
    ]

    @classmethod
    def detect(cls, value: Any) -> str:
        if value is None:
            return "null"

        # bool before int: bool is a subclass of int
        if isinstance(value, bool):
            return "bool"

        if isinstance(value, int):
            return "int"

        if isinstance(value, float):
            return "float"

        if isinstance(value, (Decimal, Decimal128)):
            return "decimal"

        if isinstance(value, (datetime, date)):
            return "date"

        if isinstance(value, ObjectId):
            return "objectid"

        if isinstance(value, uuid.UUID):
            return "uuid"

        if isinstance(value, (bytes, Binary)):
            return "binary"

        if isinstance(value, (Regex, re.Pattern)):
            return "regex"

        if isinstance(value, (list, tuple)):
            return "array"

        if isinstance(value, dict):
            return "object"

        if isinstance(value, str):
            return cls._detect_string(value.strip())

        return type(value).__name__.lower()

    @classmethod
    def _detect_string(cls, value: str) -> str:
        if cls._is_ip_address(value):
            return "ip"

        if cls._is_uuid(value):
            return "uuid"

        if cls._parse_datetime(value) is not None:
            return "datetime"

        return "str"

    @classmethod
    def _is_ip_address(cls, value: str) -> bool:
        try:
            ipaddress.ip_address(value)
            return True
        except ValueError:
            return False

    @classmethod
    def _is_uuid(cls, value: str) -> bool:
        return bool(cls.UUID_PATTERN.match(value))

    @classmethod
    def _parse_datetime(cls, value: str) -> Optional[datetime]:
        for fmt in cls.DATETIME_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue
        return None
