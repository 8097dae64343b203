"""
AstroVision Test Suite

Covers:
- Plate solving protocol and retry policy
- Image comparison and classification
- Discovery pipeline end to end
- API endpoints
"""
