"""Skald: manuscript codec between STF markup and MIME transport containers.

WHY: Authors write manuscripts in the Skald Text Format (STF), a plain
line-oriented markup. Publishers receive them as a single MIME container
bundling metadata, narrative text and illustrations. This package converts
between the two, in both directions, without losing or inventing anything.

HOW: Four stages: scan (STF → Manuscript IR), encode (IR → container),
decode (container → IR, images extracted to a resource session), write
(IR → STF). Each stage is independently testable.

RULES:
- Scanner, encoder and decoder enforce the same segment grammar
- The Manuscript IR is the stable contract between stages
- Temporary files never outlive their resource session
"""

__version__ = "0.1.0"
