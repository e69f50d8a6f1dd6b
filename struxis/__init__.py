"""
struxis - Market Structure Pipeline

Turns a time-ordered stream of price bars into consolidated bars, fractals,
swings, trends, key zones and an explainable supply/demand score, one
independent context per (symbol, timeframe).
"""

__version__ = "0.1.0"
__author__ = "struxis Team"
