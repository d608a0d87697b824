"""
Stock Correlation Dashboard Engine

Computes pairwise correlation, covariance and standard deviation matrices
over near-real-time price histories for a set of tradable instruments.
"""

__version__ = "0.1.0"
