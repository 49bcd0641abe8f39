"""Grid geometry and addressing.

Modules:
    addressing  - "A1" labels, numeric-aware ordering, 8-connectivity
    calculator  - derive grid rows/cols from image dimensions
    svg         - SVG grid markup for HTML embedding
"""
