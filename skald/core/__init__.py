"""Core manuscript model: IR, metadata, grammar, scanner and writer.

WHY: Everything that knows about STF text and the manuscript data model
lives here; nothing in this package knows about MIME.

HOW: ir.py defines the data structures, metadata.py validates fields and
handles the JSON block, grammar.py holds the chapter rules, scanner.py
reads STF, writer.py writes it back, markup.py resolves italics.

RULES:
- IR dataclasses are the contract; change with care
- Validation lives in metadata.py and grammar.py, not in the IR
"""
