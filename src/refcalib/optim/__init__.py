"""
Box-constrained estimation of the transform between two reference frames.

The problem is formulated once over [translation, Euler angles, scale...] and handed
to an interchangeable NLP backend.
"""
