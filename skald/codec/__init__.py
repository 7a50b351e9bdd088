"""Transport container codec.

WHY: The MIME container is the wire format; this package is the only
place that builds or reads it.

HOW: encoder.py builds containers, decoder.py walks them, lines.py holds
the text-part line format both share, resources.py manages the temporary
files decoded images live in.
"""
