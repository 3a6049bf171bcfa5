"""Test package for the colour n-back engine.

Unit tests cover each engine component in isolation (``*_core``); the
headless simulations drive whole rounds against a manual clock. Run
``pytest`` from the project root.
"""
