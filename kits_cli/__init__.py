"""Kits CLI: command-line client for the Kits AI audio API.

WHY: Voice conversion, text-to-speech, vocal separation, stem splitting and
voice blending all run server-side as asynchronous jobs. Users need one
terminal tool that submits those jobs, waits for them and saves the results.

HOW: Three-stage pipeline: submit (multipart upload), poll (fixed-interval
status fetches), download (streamed, concurrent for multi-part outputs).
The api package owns all HTTP; cli.py and interactive.py are presentation.

RULES:
- Every job goes submit → poll → download, in that order
- No job state is persisted locally; the remote API is the source of truth
- The only on-disk state is the single-key config file
"""

__version__ = "0.1.0"
