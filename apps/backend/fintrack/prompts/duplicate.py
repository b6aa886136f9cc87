"""Prompt templates for semantic duplicate checks."""

DUPLICATE_SYSTEM_PROMPT = """You compare two financial records from a personal finance tracker.
Decide whether both describe the SAME real-world item (the same loan, deposit or payment)
recorded twice, possibly with small differences in wording, rounding or dates.

Answer with exactly one word: "yes" if they are the same item, "no" otherwise.
"""


def get_duplicate_prompt(description_a: str, description_b: str) -> str:
    """Build the user message comparing two record descriptions."""
    return f"Record A: {description_a}\nRecord B: {description_b}\n\nSame item? Answer yes or no."
