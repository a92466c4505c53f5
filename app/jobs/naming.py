"""Framework name encoding.

Job identifiers are ``{username}~{jobName}``. The framework controller only
accepts lower-case alphanumeric names, so identifiers produced by this service
are hex-encoded behind a ``hex`` marker and can be decoded again. Anything else
goes through a lossy conversion; two different identifiers may collide there.
"""

import re

SEPARATOR = "~"
HEX_PREFIX = "hex"
LEGACY_PREFIX = "unknown"

_ILLEGAL_CHARS = re.compile(r"[^a-z0-9]")


def convert_name(name: str) -> str:
    """Lower-case and drop everything outside ``[a-z0-9]``."""
    return _ILLEGAL_CHARS.sub("", name.lower())


def encode_name(name: str) -> str:
    if name.startswith(LEGACY_PREFIX) or SEPARATOR not in name:
        # not generated by this service
        return convert_name(name[len(LEGACY_PREFIX):] if name.startswith(LEGACY_PREFIX) else name)
    return HEX_PREFIX + name.encode("utf-8").hex()


def decode_name(name: str) -> str:
    """Return the job name part of an encoded framework name.

    The username half is dropped; callers read it from the framework labels.
    Names without the marker were never encoded and are returned as is.
    """
    if not name.startswith(HEX_PREFIX):
        return name
    try:
        framework_name = bytes.fromhex(name[len(HEX_PREFIX):]).decode("utf-8")
    except ValueError:
        # lossy name that happens to start with the marker, e.g. "hexagon"
        return name
    _, sep, job_name = framework_name.partition(SEPARATOR)
    if not sep:
        # valid hex but not an encoded name, e.g. "hex41"
        return name
    return job_name


def split_framework_name(framework_name: str):
    """Split ``user~job`` on the first separator into ``(user, job)``."""
    username, _, job_name = framework_name.partition(SEPARATOR)
    return username, job_name
