from __future__ import annotations

from pathlib import Path
from typing import Sequence

from .models import ResourceDescriptor

NO_RESOURCES_LINE = "- (none)"


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text and strip BOM if present.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: None; pure function reading the filesystem.
    Dependencies: Uses Path.read_text/read_bytes; used when building the orchestrator.
    Failure Modes: UnicodeDecodeError triggers a fallback decode with errors ignored,
        which can drop invalid bytes.
    If Removed: The system prompt cannot be loaded and the app fails at startup.
    Testing Notes: Validate BOM-stripping and fallback decoding on non-UTF8 files.
    """
    # Read as UTF-8 and fall back to a tolerant decode if needed.
    try:
        return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        raw = prompt_path.read_bytes()
        text = raw.decode("utf-8", errors="ignore")
        return text.lstrip("\ufeff")


def render_system_prompt(template: str, resources: Sequence[ResourceDescriptor]) -> str:
    """Purpose: Fill the {resource_list} placeholder from the catalog snapshot.
    Inputs/Outputs: Inputs are the prompt template and resources; output is the prompt.
    Side Effects / State: None; pure function.
    Dependencies: Called by the orchestrator once per request.
    Failure Modes: Templates without the placeholder are returned unchanged.
    If Removed: The model is never told which resource URIs exist.
    Testing Notes: Each resource renders URI, name and description lines.
    """
    # str.replace keeps the literal braces in marker examples intact.
    lines = []
    for resource in resources:
        lines.append(f"- URI: {resource.uri}")
        if resource.name:
            lines.append(f"  Name: {resource.name}")
        if resource.description:
            lines.append(f"  Description: {resource.description}")
    return template.replace("{resource_list}", "\n".join(lines) or NO_RESOURCES_LINE)
