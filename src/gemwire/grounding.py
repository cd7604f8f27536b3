"""Render search-grounding metadata as Markdown."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gemwire.responses import Candidate, GroundingMetadata

NO_GROUNDING = "No grounding metadata available"


def _supported_text(metadata: GroundingMetadata) -> list[str]:
    chunks = metadata.grounding_chunks or ()
    lines: list[str] = []
    for support in metadata.grounding_supports or ():
        segment = support.segment
        if segment is None or segment.text is None or support.grounding_chunk_indices is None:
            continue
        line = segment.text
        for index in support.grounding_chunk_indices:
            if 0 <= index < len(chunks) and chunks[index].web is not None:
                line += f"[[{index + 1}]]({chunks[index].web.uri or ''})"
        lines.append(line)
    return lines


def render_grounding_markdown(candidate: Candidate) -> str:
    """Return the grounded answer with numbered source footnotes.

    Each supported segment is followed by ``[[n]](uri)`` links into the
    numbered source list; search queries and the search entry point are
    listed under "Grounding Sources".
    """
    metadata = candidate.grounding_metadata
    if metadata is None:
        return NO_GROUNDING

    out = [line + "\n" for line in _supported_text(metadata)]
    out.append("\n----\n## Grounding Sources\n")

    if metadata.web_search_queries:
        queries = ", ".join(f'"{q}"' for q in metadata.web_search_queries)
        out.append(f"\n**Web Search Queries:** {queries}\n")
        entry_point = metadata.search_entry_point
        if entry_point is not None and entry_point.rendered_content:
            out.append(f"\n**Search Entry Point:**\n {entry_point.rendered_content}\n")

    out.append("### Grounding Chunks\n")
    for number, chunk in enumerate(metadata.grounding_chunks or (), start=1):
        if chunk.web is not None:
            out.append(f"{number}. [{chunk.web.title or ''}]({chunk.web.uri or ''})\n")

    return "".join(out)
