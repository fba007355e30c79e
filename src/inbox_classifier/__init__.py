"""Inbox Classifier package.

Objective:
    Provide a Python implementation of a fetch-and-classify workflow:
    - Fetch the most recent messages from Gmail.
    - Normalize raw MIME payloads into flat message records.
    - Classify each message into a fixed six-label taxonomy using a hosted
      LLM (OpenAI, Gemini or Groq).
    - Render the results grouped by category.

Key modules:
    - :mod:`inbox_classifier.normalizer`:
        Raw Gmail payload -> :class:`inbox_classifier.models.Message`.
    - :mod:`inbox_classifier.parser`:
        Free-text model output -> :class:`inbox_classifier.taxonomy.EmailCategory`.
    - :mod:`inbox_classifier.classifier` / :mod:`inbox_classifier.providers`:
        Prompt construction and provider calls.
    - :mod:`inbox_classifier.batch`:
        Per-message classification with failure isolation.
    - :mod:`inbox_classifier.orchestrator`:
        End-to-end workflow coordination and error translation.
    - :mod:`inbox_classifier.cli` / :mod:`inbox_classifier.webapp`:
        User-facing entrypoints.
"""

__version__ = "0.1.0"
