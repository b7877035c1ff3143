"""JSON web driver for py-memsim.

This package provides a Flask application that exposes a simulation
context over HTTP.  It is an **optional** extra — install with::

    pip install py-memsim[web]

The ``create_app`` factory in ``app.py`` wires a ``SimulationContext``
to a handful of JSON endpoints; rendering and pacing are left to the
client.
"""
