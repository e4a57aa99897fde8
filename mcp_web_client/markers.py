"""Resource-request markers the model embeds in its first-round text.

The system prompt tells the model to emit both of these tags when it wants a
resource injected before answering:

    <resource_use="true"/><resource uri="orderfaq://all"/>

Matching is exact and case-sensitive.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

RESOURCE_USE_MARKER = '<resource_use="true"/>'
RESOURCE_URI_RE = re.compile(r'<resource uri="([^"]+)"/>')


def find_resource_request(text: str, known_uris: Iterable[str]) -> Optional[str]:
    """Purpose: Decide whether model text asks for a known resource.
    Inputs/Outputs: Input is assistant text and the catalog's resource URIs; output is
        the first marked URI that is known, or None.
    Side Effects / State: None; pure function.
    Dependencies: Used by the orchestrator to pick the resource branch.
    Failure Modes: Returns None when the use marker is missing or no marked URI resolves.
    If Removed: The resource branch can never be taken.
    Testing Notes: Marker with unknown URI must return None; case changes must not match.
    """
    # Both markers are required; an unknown URI falls through to the next branch.
    if not text or RESOURCE_USE_MARKER not in text:
        return None
    known = set(known_uris)
    for match in RESOURCE_URI_RE.finditer(text):
        uri = match.group(1)
        if uri in known:
            return uri
    return None
