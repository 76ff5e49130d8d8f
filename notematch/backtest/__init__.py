"""Backtesting of anchor patterns over historical candles.
Provides the simulator state machine, trade aggregation, a parallel runner for independent runs
and a random-entry Monte Carlo baseline.
"""
