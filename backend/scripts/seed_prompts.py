"""Seed the pipeline prompt templates into Langfuse for version-controlled prompt management.

The local fallbacks in ``interview_prep.prompts`` are the source of truth; run once
to create the initial prompts, or re-run to publish new versions.
Usage:
    python -m scripts.seed_prompts
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.clients import get_langfuse_client
from interview_prep.prompts import PROMPT_FALLBACKS


def seed(labels: list[str] | None = None) -> int:
    client = get_langfuse_client()
    if client is None:
        print("ERROR: Langfuse client not available. Check LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY.")
        sys.exit(1)

    labels = labels or ["production"]
    seeded = 0
    for name, template in PROMPT_FALLBACKS.items():
        try:
            client.create_prompt(name=name, type="text", prompt=template, labels=labels)
            seeded += 1
            print(f"  OK  {name}")
        except Exception as e:
            print(f"  FAIL {name}: {e}")

    client.flush()
    print(f"\nSeeded {seeded}/{len(PROMPT_FALLBACKS)} prompts.")
    return seeded


if __name__ == "__main__":
    seed()
