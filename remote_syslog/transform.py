"""Line transform: label each line with its group and category.

Files live under ``/srv/<group>/<category>.log`` (``info.log``,
``exception.log`` ...). Every forwarded line becomes
``"<group>: <category>: <line>"`` with any leading
``[YYYY-MM-DD HH-MM-SS]`` stamp removed.
"""

import os
import re

GROUP_RE = re.compile(r"^/srv/([^/]+)/")
LOG_EXTENSION_RE = re.compile(r"\.log$")
TIME_PREFIX_RE = re.compile(r"^\[\d+-\d+-\d+ \d+-\d+-\d+\] ", re.ASCII)


def group_label(path: str) -> str:
    """Path segment after the ``/srv/`` root, or ``""`` when there is none."""
    match = GROUP_RE.match(path)
    return match.group(1) if match else ""


def category_label(path: str) -> str:
    """Base name of *path* without a trailing ``.log``."""
    return LOG_EXTENSION_RE.sub("", os.path.basename(path))


def strip_time_prefix(line: str) -> str:
    return TIME_PREFIX_RE.sub("", line, count=1)


class LineTransformer:
    """Pre-computes the labels for one file and applies them to its lines."""

    def __init__(self, path: str):
        self.group = group_label(path)
        self.category = category_label(path)

    def __call__(self, line: str) -> str:
        return f"{self.group}: {self.category}: {strip_time_prefix(line)}"
