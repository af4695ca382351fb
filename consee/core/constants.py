"""Well-known names and key layout of the internal bookkeeping namespace."""

from __future__ import annotations

import re

# Everything Consee writes for itself lives under this prefix and is hidden
# from normal key listings.
INTERNAL_KEY_PREFIX = ".consee-internal/"

VALUE_TYPE_PREFIX = INTERNAL_KEY_PREFIX + "kvmeta/valuetype/"
TOKEN_ID_NAME_PREFIX = INTERNAL_KEY_PREFIX + "acl-token/id-name/"
TOKEN_NAME_ID_PREFIX = INTERNAL_KEY_PREFIX + "acl-token/name-id/"
TOKEN_METADATA_PREFIX = INTERNAL_KEY_PREFIX + "acl-token/metadata/"
OPEN_NOTIFICATIONS_PREFIX = INTERNAL_KEY_PREFIX + "notifications/open/"

POLICY_NAME_GLOBAL_MANAGEMENT = "global-management"
POLICY_NAME_BUILTIN_GLOBAL_READONLY = "builtin/global-read-only"
BUILTIN_POLICY_NAMES = frozenset(
    {POLICY_NAME_GLOBAL_MANAGEMENT, POLICY_NAME_BUILTIN_GLOBAL_READONLY},
)

CONSEE_ADMIN = "consee-admin"
INITIALIZER = "initializer"

DEFAULT_VALUE_TYPE = "plaintext"

EXCLUSIVE_POLICY_NAME_RE = re.compile(
    r"^--[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
)

TOKEN_HEADER = "G-Consee-Token"
ERROR_HEADER = "G-Consee-Error"

# Metadata timestamps use this layout ("2006-01-02 15:04:05").
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def is_exclusive_policy_name(name: str) -> bool:
    """Return True if ``name`` follows the ``--<accessorId>`` convention."""
    return EXCLUSIVE_POLICY_NAME_RE.match(name) is not None


def exclusive_policy_name(accessor_id: str) -> str:
    """Name of the policy owned by the token ``accessor_id``."""
    return "--" + accessor_id
