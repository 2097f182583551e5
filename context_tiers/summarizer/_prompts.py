"""Prompt templates for zone compression.

Backends share these templates so that switching providers in the chain does
not change what is being asked for.
"""

SYSTEM_PROMPT = """You are a precise summarization assistant. Condense conversation history while preserving:
- Key events, decisions and outcomes
- The state of people, places and relationships being discussed
- Important dialogue and specific requests
- Facts the conversation will need later

Remove redundancy. Output only the summary, no preamble.""".strip()

ZONE_SUMMARY_PROMPT = """Summarize the following conversation segment to approximately {retention_pct}% of its original length (~{target_length} characters).

Segment {chunk_number} of {total_chunks} from the {zone} part of the conversation:
{content}

Summary:""".strip()

KOBOLD_PROMPT = """[INST] {system_prompt}

{user_prompt}
[/INST]
""".strip()


def format_zone_prompt(
    content: str,
    *,
    retention_rate: float,
    target_length: int,
    zone: str,
    chunk_index: int,
    total_chunks: int,
) -> str:
    """Fill the zone summary template for one chunk."""
    return ZONE_SUMMARY_PROMPT.format(
        retention_pct=round(retention_rate * 100),
        target_length=target_length,
        chunk_number=chunk_index + 1,
        total_chunks=total_chunks,
        zone=zone,
        content=content,
    )
